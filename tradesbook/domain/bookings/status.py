"""Booking status lifecycle"""

BOOKING_STATUSES = [
    "pending",
    "open",
    "confirmed",
    "assigned",
    "in-progress",
    "completed",
    "cancelled",
]

# Allowed moves for customers, installers and the worker
STATUS_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"open", "cancelled"},
    "open": {"confirmed", "assigned", "cancelled"},
    "confirmed": {"assigned", "cancelled"},
    "assigned": {"in-progress", "confirmed", "cancelled"},
    "in-progress": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}

# Bookings installers can still take
OPEN_FOR_LEADS = {"open", "confirmed"}
# Statuses an admin may still change once an installer is attached
ADMIN_EDITABLE_WHEN_ASSIGNED = {"open", "pending", "confirmed"}
CUSTOMER_CANCELLABLE = {"pending", "open", "confirmed", "assigned"}
ACTIVE_STATUSES = {"pending", "open", "confirmed"}


class InvalidStatusTransition(ValueError):
    def __init__(self, current: str, new: str):
        super().__init__(f"Cannot change booking status from '{current}' to '{new}'")
        self.current = current
        self.new = new


def can_transition(current: str, new: str) -> bool:
    return new in STATUS_TRANSITIONS.get(current, set())


def ensure_transition(current: str, new: str) -> None:
    if new not in BOOKING_STATUSES:
        raise ValueError(f"Unknown booking status: {new}")
    if not can_transition(current, new):
        raise InvalidStatusTransition(current, new)
