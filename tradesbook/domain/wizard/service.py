"""Wizard service - Persisted booking drafts driven by the wizard state machine"""

import logging
from typing import Optional

from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...models import Booking, BookingDraft, User
from ...shared.validators import validate_eircode, validate_email, validate_irish_phone
from ...utils.sanitization import clean_text
from ..bookings.schemas import BookingCreate, BookingTvInput
from ..bookings.service import BookingService
from ..pricing.calculator import PricingError, apply_discount
from ..pricing.service import PricingService
from .repository import DraftRepository
from .schemas import WizardUpdate
from .state import (
    STEP_NAMES,
    WizardError,
    WizardState,
    missing_fields_for_step,
    next_step,
    previous_step,
    select_tv,
    set_schedule,
    set_tv_quantity,
    submission_errors,
    update_current_tv,
)

logger = logging.getLogger(__name__)


def _wizard_http_error(e: WizardError) -> HTTPException:
    detail = {"message": str(e), "missingFields": e.missing} if e.missing else str(e)
    return HTTPException(status_code=400, detail=detail)


class WizardService:
    """Service layer for booking drafts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = DraftRepository()
        self.pricing = PricingService(db)

    # ========================================================================
    # Loading and serialising
    # ========================================================================

    def get_draft(self, public_id: str, user: Optional[User]) -> BookingDraft:
        draft = self.repo.get_by_public_id(self.db, public_id)
        if not draft:
            raise HTTPException(status_code=404, detail="Booking draft not found")
        if draft.user_id is not None and (user is None or user.id != draft.user_id):
            raise HTTPException(status_code=403, detail="This booking draft belongs to another account")
        return draft

    @staticmethod
    def load_state(draft: BookingDraft) -> WizardState:
        return WizardState.model_validate(draft.state)

    def totals(self, state: WizardState) -> Optional[dict]:
        """Running price of every TV that already has a service chosen"""
        priced = [tv.model_dump() for tv in state.tvs if tv.serviceType]
        if not priced:
            return None
        try:
            total, _ = self.pricing.price_tvs(priced)
        except PricingError as e:
            logger.warning(f"⚠️ Could not price wizard draft: {e}")
            return None
        discount, final_price = apply_discount(total.total_price, state.referralDiscount)
        return {
            "basePrice": total.base_price,
            "addonTotal": total.addon_total,
            "totalPrice": total.total_price,
            "discountAmount": discount,
            "finalPrice": final_price,
        }

    def to_response(self, draft: BookingDraft) -> dict:
        state = self.load_state(draft)
        missing = missing_fields_for_step(state)
        return {
            "id": draft.public_id,
            "status": draft.status,
            "bookingId": draft.booking_id,
            "state": state,
            "stepName": STEP_NAMES[state.step],
            "missingFields": missing,
            "canProceed": not missing,
            "totals": self.totals(state),
        }

    def _save(self, draft: BookingDraft, state: WizardState) -> BookingDraft:
        return self.repo.save_state(self.db, draft, state.model_dump(mode="json"))

    def _editable(self, public_id: str, user: Optional[User]) -> tuple[BookingDraft, WizardState]:
        draft = self.get_draft(public_id, user)
        if draft.status != "active":
            raise HTTPException(status_code=409, detail="This booking draft has already been submitted")
        return draft, self.load_state(draft)

    # ========================================================================
    # Operations
    # ========================================================================

    def create_draft(self, user: Optional[User]) -> BookingDraft:
        state = WizardState()
        if user:
            state.contact.name = user.full_name
            state.contact.email = user.email
            state.contact.phone = user.phone
        draft = self.repo.create(self.db, state.model_dump(mode="json"), user.id if user else None)
        logger.info(f"📋 Booking draft {draft.public_id} started")
        return draft

    def update_draft(self, public_id: str, data: WizardUpdate, user: Optional[User]) -> BookingDraft:
        draft, state = self._editable(public_id, user)
        try:
            state = self._apply_update(state, data)
        except WizardError as e:
            raise _wizard_http_error(e) from e
        return self._save(draft, state)

    def _apply_update(self, state: WizardState, data: WizardUpdate) -> WizardState:
        fields = data.model_fields_set

        for name in ("roomPhotoUrl", "aiPreviewUrl", "roomAnalysis"):
            if name in fields:
                state = state.model_copy(update={name: getattr(data, name)})

        if "tvQuantity" in fields and data.tvQuantity is not None:
            state = set_tv_quantity(state, data.tvQuantity)

        if "tv" in fields and data.tv is not None:
            changes = data.tv.model_dump(exclude_unset=True)
            self._check_catalog_keys(changes)
            state = update_current_tv(state, changes, tiers=self.pricing.tier_catalog())

        if "preferredDate" in fields or "timeSlot" in fields:
            state = set_schedule(
                state,
                data.preferredDate if "preferredDate" in fields else state.preferredDate,
                data.timeSlot if "timeSlot" in fields else state.timeSlot,
            )

        if "contact" in fields and data.contact is not None:
            state = self._apply_contact(state, data.contact.model_dump(exclude_unset=True))

        if "customerNotes" in fields:
            state = state.model_copy(update={"customerNotes": clean_text(data.customerNotes)})

        if "referralCode" in fields:
            state = self._apply_referral(state, data.referralCode)

        return state

    def _check_catalog_keys(self, changes: dict) -> None:
        if changes.get("addons"):
            known = self.pricing.addon_catalog()
            unknown = [key for key in changes["addons"] if key not in known]
            if unknown:
                raise WizardError(f"Unknown add-on: {', '.join(unknown)}")
        option = changes.get("wallMountOption")
        if option and option not in self.pricing.wall_mount_catalog():
            raise WizardError(f"Unknown wall mount option: {option}")

    @staticmethod
    def _apply_contact(state: WizardState, changes: dict) -> WizardState:
        validators = {
            "email": validate_email,
            "phone": validate_irish_phone,
            "eircode": validate_eircode,
            "name": lambda v: clean_text(v, max_length=255),
            "address": lambda v: clean_text(v, max_length=500),
        }
        contact = state.contact.model_copy()
        for name, value in changes.items():
            try:
                setattr(contact, name, validators[name](value) if value else None)
            except ValueError as e:
                raise WizardError(f"Invalid {name}: {e}") from e
        return state.model_copy(update={"contact": contact})

    def _apply_referral(self, state: WizardState, code: Optional[str]) -> WizardState:
        if not code or not code.strip():
            return state.model_copy(update={"referralCode": None, "referralDiscount": 0})
        referral = self.pricing.get_valid_referral(code)
        if not referral:
            raise WizardError("Invalid or expired referral code")
        return state.model_copy(
            update={"referralCode": referral.code, "referralDiscount": referral.discount_percentage}
        )

    def advance(self, public_id: str, user: Optional[User]) -> BookingDraft:
        draft, state = self._editable(public_id, user)
        try:
            state = next_step(state)
        except WizardError as e:
            raise _wizard_http_error(e) from e
        return self._save(draft, state)

    def go_back(self, public_id: str, user: Optional[User]) -> BookingDraft:
        draft, state = self._editable(public_id, user)
        return self._save(draft, previous_step(state))

    def select_tv(self, public_id: str, index: int, user: Optional[User]) -> BookingDraft:
        draft, state = self._editable(public_id, user)
        try:
            state = select_tv(state, index)
        except WizardError as e:
            raise _wizard_http_error(e) from e
        return self._save(draft, state)

    # ========================================================================
    # Submission
    # ========================================================================

    @staticmethod
    def to_booking_create(state: WizardState) -> BookingCreate:
        contact = state.contact
        return BookingCreate(
            contactName=contact.name,
            contactEmail=contact.email,
            contactPhone=contact.phone,
            address=contact.address,
            eircode=contact.eircode,
            tvs=[
                BookingTvInput(
                    tvSize=tv.tvSize,
                    serviceType=tv.serviceType,
                    wallType=tv.wallType,
                    mountType=tv.mountType,
                    needsWallMount=bool(tv.needsWallMount),
                    wallMountOption=tv.wallMountOption,
                    location=tv.location,
                    addons=tv.addons,
                )
                for tv in state.tvs
            ],
            preferredDate=state.preferredDate,
            timeSlot=state.timeSlot,
            customerNotes=state.customerNotes,
            roomPhotoUrl=state.roomPhotoUrl,
            aiPreviewUrl=state.aiPreviewUrl,
            roomAnalysis=state.roomAnalysis,
            referralCode=state.referralCode,
        )

    async def submit(self, public_id: str, user: Optional[User]) -> tuple[BookingDraft, Booking]:
        """Turn a complete draft into a booking"""
        draft, state = self._editable(public_id, user)

        errors = submission_errors(state)
        if errors:
            raise HTTPException(
                status_code=400,
                detail={"message": "Booking is incomplete", "missingFields": errors},
            )

        try:
            booking_data = self.to_booking_create(state)
        except ValidationError as e:
            messages = [err["msg"] for err in e.errors()]
            raise HTTPException(
                status_code=400, detail={"message": "Booking details are invalid", "errors": messages}
            ) from e

        booking = await BookingService(self.db).create_booking(booking_data, user)
        draft = self.repo.mark_submitted(self.db, draft, booking.id)
        logger.info(f"✅ Draft {draft.public_id} submitted as booking {booking.id}")
        return draft, booking
