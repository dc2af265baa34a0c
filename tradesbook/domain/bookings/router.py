"""Booking router - Booking CRUD, schedule negotiations and reviews"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_optional_user
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from ...services.notification_service import (
    notify_booking_created,
    notify_schedule_proposal,
    notify_status_change,
)
from .schemas import (
    BookingCancelRequest,
    BookingCreate,
    BookingResponse,
    BookingStatusResponse,
    InstallerRatingResponse,
    ReviewCreate,
    ReviewResponse,
    ScheduleNegotiationCreate,
    ScheduleNegotiationRespond,
    ScheduleNegotiationResponse,
)
from .service import (
    BookingService,
    ReviewService,
    ScheduleNegotiationService,
    booking_to_dict,
    negotiation_to_dict,
    review_to_dict,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bookings"])

rate_limit_booking_create = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="booking_create")


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def get_negotiation_service(db: Session = Depends(get_db)) -> ScheduleNegotiationService:
    return ScheduleNegotiationService(db)


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    return ReviewService(db)


# ============================================================================
# BOOKINGS
# ============================================================================


@router.post("/bookings", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    background_tasks: BackgroundTasks,
    user: Optional[User] = Depends(get_optional_user),
    service: BookingService = Depends(get_booking_service),
    _: None = Depends(rate_limit_booking_create),
):
    """Create a booking as a guest or signed-in customer"""
    booking = await service.create_booking(data, user)
    background_tasks.add_task(notify_booking_created, booking.id)
    return booking_to_dict(booking)


@router.get("/customer/bookings", response_model=list[BookingResponse])
async def get_customer_bookings(
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Bookings of the current customer, newest first"""
    return [booking_to_dict(b) for b in service.get_customer_bookings(user)]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return booking_to_dict(service.get_booking_for_user(booking_id, user))


@router.get("/bookings/{booking_id}/status", response_model=BookingStatusResponse)
async def get_booking_status(
    booking_id: int,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking_for_user(booking_id, user)
    return BookingStatusResponse(
        id=booking.id,
        qrCode=booking.qr_code,
        status=booking.status,
        installerAssigned=booking.installer_id is not None,
        scheduledDate=booking.scheduled_date,
        timeSlot=booking.time_slot,
        updatedAt=booking.updated_at,
    )


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[BookingCancelRequest] = None,
    user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking before the installation starts"""
    reason = data.reason if data else None
    booking = service.cancel_booking(booking_id, user, reason)
    background_tasks.add_task(notify_status_change, booking.id, reason)
    return booking_to_dict(booking)


# ============================================================================
# SCHEDULE NEGOTIATIONS
# ============================================================================


@router.post("/schedule-negotiations", response_model=ScheduleNegotiationResponse, status_code=201)
async def propose_schedule(
    data: ScheduleNegotiationCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    service: ScheduleNegotiationService = Depends(get_negotiation_service),
):
    """Propose a new date/time to the other party of a booking"""
    negotiation = service.propose(data, user)
    background_tasks.add_task(notify_schedule_proposal, negotiation.id)
    return negotiation_to_dict(negotiation)


@router.get(
    "/bookings/{booking_id}/schedule-negotiations",
    response_model=list[ScheduleNegotiationResponse],
)
async def get_schedule_negotiations(
    booking_id: int,
    user: User = Depends(get_current_user),
    service: ScheduleNegotiationService = Depends(get_negotiation_service),
):
    return [negotiation_to_dict(n) for n in service.list_for_booking(booking_id, user)]


@router.patch("/schedule-negotiations/{negotiation_id}")
async def respond_to_schedule(
    negotiation_id: int,
    data: ScheduleNegotiationRespond,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    service: ScheduleNegotiationService = Depends(get_negotiation_service),
):
    negotiation, counter = service.respond(negotiation_id, data, user)
    if counter is not None:
        background_tasks.add_task(notify_schedule_proposal, counter.id)
    return {
        "negotiation": negotiation_to_dict(negotiation),
        "counterProposal": negotiation_to_dict(counter) if counter is not None else None,
    }


# ============================================================================
# REVIEWS
# ============================================================================


@router.post("/reviews", response_model=ReviewResponse, status_code=201)
async def create_review(
    data: ReviewCreate,
    user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return review_to_dict(service.create_review(data, user))


@router.get("/installers/{installer_id}/reviews", response_model=list[ReviewResponse])
async def get_installer_reviews(
    installer_id: int,
    service: ReviewService = Depends(get_review_service),
):
    return [review_to_dict(r) for r in service.get_installer_reviews(installer_id)]


@router.get("/installers/{installer_id}/rating", response_model=InstallerRatingResponse)
async def get_installer_rating(
    installer_id: int,
    service: ReviewService = Depends(get_review_service),
):
    return service.get_installer_rating(installer_id)
