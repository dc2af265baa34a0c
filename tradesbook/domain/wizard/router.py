"""Booking wizard router - Server-side drafts for the multi-step booking flow"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...auth import get_optional_user
from ...database import get_db
from ...models import User
from ...services.notification_service import notify_booking_created
from ..bookings.service import booking_to_dict
from .schemas import DraftResponse, WizardUpdate
from .service import WizardService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/booking-drafts", tags=["Booking Wizard"])


def get_wizard_service(db: Session = Depends(get_db)) -> WizardService:
    """Dependency injection for WizardService"""
    return WizardService(db)


@router.post("", response_model=DraftResponse, status_code=201)
async def create_draft(
    user: Optional[User] = Depends(get_optional_user),
    service: WizardService = Depends(get_wizard_service),
):
    """Start a new booking draft at the photo step"""
    return service.to_response(service.create_draft(user))


@router.get("/{draft_id}", response_model=DraftResponse)
async def get_draft(
    draft_id: str,
    user: Optional[User] = Depends(get_optional_user),
    service: WizardService = Depends(get_wizard_service),
):
    return service.to_response(service.get_draft(draft_id, user))


@router.patch("/{draft_id}", response_model=DraftResponse)
async def update_draft(
    draft_id: str,
    data: WizardUpdate,
    user: Optional[User] = Depends(get_optional_user),
    service: WizardService = Depends(get_wizard_service),
):
    """Apply the fields present in the body to the draft"""
    return service.to_response(service.update_draft(draft_id, data, user))


@router.post("/{draft_id}/next", response_model=DraftResponse)
async def next_step(
    draft_id: str,
    user: Optional[User] = Depends(get_optional_user),
    service: WizardService = Depends(get_wizard_service),
):
    return service.to_response(service.advance(draft_id, user))


@router.post("/{draft_id}/back", response_model=DraftResponse)
async def previous_step(
    draft_id: str,
    user: Optional[User] = Depends(get_optional_user),
    service: WizardService = Depends(get_wizard_service),
):
    return service.to_response(service.go_back(draft_id, user))


@router.post("/{draft_id}/tvs/{index}/select", response_model=DraftResponse)
async def select_tv(
    draft_id: str,
    index: int,
    user: Optional[User] = Depends(get_optional_user),
    service: WizardService = Depends(get_wizard_service),
):
    return service.to_response(service.select_tv(draft_id, index, user))


@router.post("/{draft_id}/submit", status_code=201)
async def submit_draft(
    draft_id: str,
    background_tasks: BackgroundTasks,
    user: Optional[User] = Depends(get_optional_user),
    service: WizardService = Depends(get_wizard_service),
):
    """Create the booking from a completed draft"""
    draft, booking = await service.submit(draft_id, user)
    background_tasks.add_task(notify_booking_created, booking.id)
    return {"draft": service.to_response(draft), "booking": booking_to_dict(booking)}
