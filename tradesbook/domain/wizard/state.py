"""Booking wizard state machine

The wizard walks a customer through nine steps. Steps 3-7 configure the TV at
``currentTvIndex``; with several TVs the wizard loops back to step 1 for the
next incomplete TV once the current one is fully configured.

All transitions return a new state and never mutate their input.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from ..pricing.catalog import MOUNT_TYPES, SERVICE_TIERS, TIME_SLOTS, WALL_TYPES, tier_fits_tv_size

TOTAL_STEPS = 9
MAX_TVS = 10

STEP_NAMES = {
    1: "photo",
    2: "tv-quantity",
    3: "tv-size",
    4: "service",
    5: "wall-type",
    6: "mount-type",
    7: "addons",
    8: "schedule",
    9: "contact",
}

# Steps whose fields belong to a single TV
TV_STEPS = range(3, 8)


class WizardError(ValueError):
    """Raised when a transition or update is not allowed"""

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class TvConfig(BaseModel):
    tvSize: Optional[int] = None
    serviceType: Optional[str] = None
    wallType: Optional[str] = None
    mountType: Optional[str] = None
    needsWallMount: Optional[bool] = None
    wallMountOption: Optional[str] = None
    location: Optional[str] = None
    addons: list[str] = Field(default_factory=list)


class ContactDetails(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    eircode: Optional[str] = None


class WizardState(BaseModel):
    step: int = 1
    tvQuantity: int = 1
    currentTvIndex: int = 0
    tvs: list[TvConfig] = Field(default_factory=lambda: [TvConfig()])
    roomPhotoUrl: Optional[str] = None
    aiPreviewUrl: Optional[str] = None
    roomAnalysis: Optional[dict] = None
    preferredDate: Optional[date] = None
    timeSlot: Optional[str] = None
    contact: ContactDetails = Field(default_factory=ContactDetails)
    customerNotes: Optional[str] = None
    referralCode: Optional[str] = None
    referralDiscount: float = 0

    @property
    def is_multi_tv(self) -> bool:
        return self.tvQuantity > 1

    @property
    def current_tv(self) -> TvConfig:
        return self.tvs[self.currentTvIndex]


# ============================================================================
# Validity
# ============================================================================


def tv_missing_fields(tv: TvConfig, multi_tv: bool) -> list[str]:
    """Fields still needed before a TV configuration is complete"""
    missing = []
    if not tv.tvSize:
        missing.append("tvSize")
    if not tv.serviceType:
        missing.append("serviceType")
    if not tv.wallType:
        missing.append("wallType")
    if not tv.mountType:
        missing.append("mountType")
    if tv.needsWallMount is None:
        missing.append("needsWallMount")
    elif tv.needsWallMount and not tv.wallMountOption:
        missing.append("wallMountOption")
    if multi_tv and not tv.location:
        missing.append("location")
    return missing


def is_tv_complete(tv: TvConfig, multi_tv: bool) -> bool:
    return not tv_missing_fields(tv, multi_tv)


def all_tvs_complete(state: WizardState) -> bool:
    if len(state.tvs) != state.tvQuantity:
        return False
    return all(is_tv_complete(tv, state.is_multi_tv) for tv in state.tvs)


def next_incomplete_tv_index(state: WizardState) -> int:
    """Index of the first incomplete TV, or -1"""
    for index, tv in enumerate(state.tvs):
        if not is_tv_complete(tv, state.is_multi_tv):
            return index
    return -1


def missing_fields_for_step(state: WizardState, step: Optional[int] = None) -> list[str]:
    """Required fields of a step that are still empty"""
    step = state.step if step is None else step
    tv = state.current_tv

    if step == 1 or step == 7:
        # Photo and add-ons are optional
        return []
    if step == 2:
        return [] if state.tvQuantity > 0 else ["tvQuantity"]
    if step == 3:
        missing = [] if tv.tvSize else ["tvSize"]
        if state.is_multi_tv and not tv.location:
            missing.append("location")
        return missing
    if step == 4:
        return [] if tv.serviceType else ["serviceType"]
    if step == 5:
        return [] if tv.wallType else ["wallType"]
    if step == 6:
        missing = [] if tv.mountType else ["mountType"]
        if tv.needsWallMount is None:
            missing.append("needsWallMount")
        elif tv.needsWallMount and not tv.wallMountOption:
            missing.append("wallMountOption")
        return missing
    if step == 8:
        missing = []
        if not state.preferredDate:
            missing.append("preferredDate")
        if not state.timeSlot:
            missing.append("timeSlot")
        return missing
    if step == 9:
        contact = state.contact
        return [
            f"contact.{name}"
            for name in ("name", "email", "phone", "address")
            if not getattr(contact, name)
        ]
    raise WizardError(f"Unknown step: {step}")


def submission_errors(state: WizardState) -> list[str]:
    """Everything that blocks turning the draft into a booking"""
    errors = []
    for index, tv in enumerate(state.tvs):
        errors.extend(f"tvs[{index}].{name}" for name in tv_missing_fields(tv, state.is_multi_tv))
    if len(state.tvs) != state.tvQuantity:
        errors.append("tvQuantity")
    errors.extend(missing_fields_for_step(state, 8))
    errors.extend(missing_fields_for_step(state, 9))
    return errors


# ============================================================================
# Transitions
# ============================================================================


def next_step(state: WizardState) -> WizardState:
    """
    Advance the wizard.

    Raises:
        WizardError: when the current step's required fields are missing
    """
    missing = missing_fields_for_step(state)
    if missing:
        raise WizardError(
            f"Step {state.step} ({STEP_NAMES[state.step]}) is incomplete", missing=missing
        )

    new_state = state.model_copy(deep=True)

    if new_state.is_multi_tv and new_state.step in TV_STEPS:
        if is_tv_complete(new_state.current_tv, True) and not all_tvs_complete(new_state):
            index = next_incomplete_tv_index(new_state)
            if index != -1:
                new_state.currentTvIndex = index
                new_state.step = 1
                return new_state

    if new_state.step < TOTAL_STEPS:
        new_state.step += 1
    return new_state


def previous_step(state: WizardState) -> WizardState:
    new_state = state.model_copy(deep=True)
    new_state.step = max(1, new_state.step - 1)
    return new_state


def set_tv_quantity(state: WizardState, quantity: int) -> WizardState:
    """Resize the TV list, keeping existing configurations"""
    if quantity < 1 or quantity > MAX_TVS:
        raise WizardError(f"TV quantity must be between 1 and {MAX_TVS}")

    new_state = state.model_copy(deep=True)
    if quantity > len(new_state.tvs):
        new_state.tvs.extend(TvConfig() for _ in range(quantity - len(new_state.tvs)))
    else:
        new_state.tvs = new_state.tvs[:quantity]
    new_state.tvQuantity = quantity
    new_state.currentTvIndex = min(new_state.currentTvIndex, quantity - 1)
    return new_state


def select_tv(state: WizardState, index: int) -> WizardState:
    """Jump to another TV's configuration, starting at its size step"""
    if index < 0 or index >= len(state.tvs):
        raise WizardError(f"TV index {index} is out of range")
    new_state = state.model_copy(deep=True)
    new_state.currentTvIndex = index
    if new_state.step not in TV_STEPS:
        new_state.step = 3
    return new_state


def update_current_tv(
    state: WizardState, changes: dict, tiers: Optional[dict[str, dict]] = None
) -> WizardState:
    """
    Apply field changes to the current TV.

    Raises:
        WizardError: for values outside the allowed options
    """
    tiers = SERVICE_TIERS if tiers is None else tiers
    new_state = state.model_copy(deep=True)
    tv = new_state.current_tv

    for name, value in changes.items():
        if not hasattr(tv, name):
            raise WizardError(f"Unknown TV field: {name}")
        if name == "tvSize" and value is not None and (value < 20 or value > 120):
            raise WizardError("TV size must be between 20 and 120 inches")
        if name == "wallType" and value is not None and value not in WALL_TYPES:
            raise WizardError(f"Wall type must be one of: {', '.join(WALL_TYPES)}")
        if name == "mountType" and value is not None and value not in MOUNT_TYPES:
            raise WizardError(f"Mount type must be one of: {', '.join(MOUNT_TYPES)}")
        if name == "serviceType" and value is not None and value not in tiers:
            raise WizardError(f"Unknown service type: {value}")
        if name == "addons":
            value = list(dict.fromkeys(value or []))
        setattr(tv, name, value)

    if tv.needsWallMount is False:
        tv.wallMountOption = None

    # A size change can invalidate the chosen tier
    if tv.serviceType and tv.tvSize and tv.serviceType in tiers:
        if not tier_fits_tv_size(tiers[tv.serviceType], tv.tvSize):
            if "serviceType" in changes:
                raise WizardError(
                    f'Service "{tv.serviceType}" is not available for {tv.tvSize}" TVs'
                )
            tv.serviceType = None

    return new_state


def set_schedule(
    state: WizardState, preferred_date: Optional[date], time_slot: Optional[str], today: Optional[date] = None
) -> WizardState:
    today = today or date.today()
    if preferred_date is not None and preferred_date < today:
        raise WizardError("Preferred date cannot be in the past")
    if time_slot is not None and time_slot not in TIME_SLOTS:
        raise WizardError(f"Time slot must be one of: {', '.join(TIME_SLOTS)}")
    new_state = state.model_copy(deep=True)
    new_state.preferredDate = preferred_date
    new_state.timeSlot = time_slot
    return new_state
