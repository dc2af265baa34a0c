"""Booking service - Creation, access, cancellation, negotiations and reviews"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import is_admin
from ...models import Booking, Installer, Review, ScheduleNegotiation, User
from ...services.irish_geocoder import extract_county
from ...services.maps_service import geocode_address, is_google_configured
from ...services.qr_code_service import generate_qr_reference, tracking_url
from ...shared.wallet import refund_lead_fee
from ..pricing.calculator import PricingError, apply_discount
from ..pricing.catalog import format_time_window
from ..pricing.service import PricingService
from .repository import BookingRepository
from .schemas import (
    BookingCreate,
    ReviewCreate,
    ScheduleNegotiationCreate,
    ScheduleNegotiationRespond,
)
from .status import CUSTOMER_CANCELLABLE, InvalidStatusTransition, ensure_transition

logger = logging.getLogger(__name__)

QR_GENERATION_ATTEMPTS = 5
NOT_RESCHEDULABLE = ("completed", "cancelled", "in-progress")


def installer_summary(installer: Optional[Installer]) -> Optional[dict]:
    if not installer:
        return None
    return {
        "id": installer.id,
        "name": installer.contact_name,
        "businessName": installer.business_name,
        "phone": installer.phone,
    }


def booking_to_dict(booking: Booking) -> dict:
    return {
        "id": booking.id,
        "qrCode": booking.qr_code,
        "status": booking.status,
        "customerId": booking.customer_id,
        "installerId": booking.installer_id,
        "contactName": booking.contact_name,
        "contactEmail": booking.contact_email,
        "contactPhone": booking.contact_phone,
        "address": booking.address,
        "eircode": booking.eircode,
        "county": booking.county,
        "latitude": booking.latitude,
        "longitude": booking.longitude,
        "serviceType": booking.service_tier,
        "tvSize": booking.tv_size,
        "wallType": booking.wall_type,
        "mountType": booking.mount_type,
        "tvQuantity": booking.tv_quantity,
        "scheduledDate": booking.scheduled_date,
        "timeSlot": booking.time_slot,
        "timeWindow": format_time_window(booking.time_slot) or None,
        "customerNotes": booking.customer_notes,
        "roomPhotoUrl": booking.room_photo_url,
        "aiPreviewUrl": booking.ai_preview_url,
        "roomAnalysis": booking.room_analysis,
        "basePrice": booking.base_price,
        "addonTotal": booking.addon_total,
        "totalPrice": booking.total_price,
        "appFee": booking.app_fee,
        "discountAmount": booking.discount_amount or 0,
        "finalPrice": booking.final_price,
        "referralCode": booking.referral_code,
        "tvs": [
            {
                "position": tv.position,
                "location": tv.location,
                "tvSize": tv.tv_size,
                "serviceType": tv.service_tier,
                "wallType": tv.wall_type,
                "mountType": tv.mount_type,
                "needsWallMount": bool(tv.needs_wall_mount),
                "wallMountOption": tv.wall_mount_option,
                "basePrice": tv.base_price,
                "addonTotal": tv.addon_total or 0,
            }
            for tv in booking.tv_installations
        ],
        "addons": [
            {"tvPosition": a.tv_position or 0, "key": a.addon_key, "name": a.name, "price": a.price}
            for a in booking.addons
        ],
        "installer": installer_summary(booking.installer),
        "trackingUrl": tracking_url(booking.qr_code),
        "createdAt": booking.created_at,
        "completedAt": booking.completed_at,
        "cancelledAt": booking.cancelled_at,
    }


def negotiation_to_dict(negotiation: ScheduleNegotiation) -> dict:
    return {
        "id": negotiation.id,
        "bookingId": negotiation.booking_id,
        "installerId": negotiation.installer_id,
        "proposedBy": negotiation.proposed_by,
        "proposedDate": negotiation.proposed_date,
        "proposedTimeSlot": negotiation.proposed_time_slot,
        "timeWindow": format_time_window(negotiation.proposed_time_slot),
        "message": negotiation.message,
        "status": negotiation.status,
        "responseMessage": negotiation.response_message,
        "respondedAt": negotiation.responded_at,
        "createdAt": negotiation.created_at,
    }


def review_to_dict(review: Review) -> dict:
    customer_name = None
    if review.booking is not None:
        # First name only on public reviews
        customer_name = (review.booking.contact_name or "").split(" ")[0] or None
    return {
        "id": review.id,
        "bookingId": review.booking_id,
        "installerId": review.installer_id,
        "rating": review.rating,
        "title": review.title,
        "comment": review.comment,
        "customerName": customer_name,
        "createdAt": review.created_at,
    }


def is_booking_customer(booking: Booking, user: User) -> bool:
    if booking.customer_id is not None and booking.customer_id == user.id:
        return True
    # Guest bookings belong to whoever has proven they own the contact email
    return bool(user.email_verified and user.email) and booking.contact_email == user.email.lower()


def is_booking_installer(booking: Booking, user: User) -> bool:
    return booking.installer is not None and booking.installer.user_id == user.id


def release_cancelled_booking(db: Session, booking: Booking) -> None:
    """
    Unwind a booking that is being cancelled: refund the installer's lead
    fee, close the job assignment and reject pending schedule proposals.
    Caller commits.
    """
    assignment = BookingRepository.get_active_assignment(db, booking.id)
    if assignment:
        if booking.installer is not None:
            refund_lead_fee(db, booking.installer, assignment, booking.qr_code)
        assignment.status = "cancelled"
    closed = BookingRepository.close_pending_negotiations(db, booking.id, "Booking was cancelled")
    if assignment or closed:
        logger.info(
            f"🧹 Released cancelled booking {booking.id}: assignment "
            f"{assignment.id if assignment else None}, {closed} proposal(s) closed"
        )


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    # ========================================================================
    # Creation
    # ========================================================================

    def _generate_unique_qr_code(self) -> str:
        for _ in range(QR_GENERATION_ATTEMPTS):
            qr_code = generate_qr_reference()
            if not self.repo.qr_code_exists(self.db, qr_code):
                return qr_code
        raise HTTPException(status_code=500, detail="Could not allocate a booking reference")

    async def _locate(self, address: str, eircode: Optional[str]) -> dict:
        """Coordinates and county for the booking address; never fails the booking"""
        location = {"latitude": None, "longitude": None, "county": extract_county(address)}
        if not is_google_configured():
            return location

        query = f"{address}, {eircode}" if eircode and eircode not in address.upper() else address
        try:
            result = await geocode_address(query)
        except Exception as e:
            logger.warning(f"⚠️ Geocoding failed for booking address '{address}': {e}")
            return location

        if result:
            location["latitude"] = result["lat"]
            location["longitude"] = result["lng"]
            location["county"] = result.get("county") or location["county"]
        return location

    async def create_booking(self, data: BookingCreate, user: Optional[User]) -> Booking:
        """
        Validate and price a booking server-side, then persist it as open.

        Raises:
            HTTPException: 400 for catalog or referral problems
        """
        pricing = PricingService(self.db)
        tvs = [tv.model_dump() for tv in data.tvs]

        try:
            total, per_tv = pricing.price_tvs(tvs)
        except PricingError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        discount_amount = 0.0
        referral = None
        if data.referralCode:
            referral = pricing.get_valid_referral(data.referralCode)
            if not referral:
                raise HTTPException(status_code=400, detail="Invalid or expired referral code")
            discount_amount, _ = apply_discount(total.total_price, referral.discount_percentage)

        location = await self._locate(data.address, data.eircode)
        primary = data.tvs[0]

        booking_data = {
            "qr_code": self._generate_unique_qr_code(),
            "customer_id": user.id if user else None,
            "contact_name": data.contactName,
            "contact_email": data.contactEmail,
            "contact_phone": data.contactPhone,
            "address": data.address.strip(),
            "eircode": data.eircode,
            "county": location["county"],
            "latitude": location["latitude"],
            "longitude": location["longitude"],
            "service_tier": primary.serviceType,
            "tv_size": primary.tvSize,
            "wall_type": primary.wallType,
            "mount_type": primary.mountType,
            "tv_quantity": len(data.tvs),
            "scheduled_date": data.preferredDate,
            "time_slot": data.timeSlot,
            "customer_notes": data.customerNotes,
            "room_photo_url": data.roomPhotoUrl,
            "ai_preview_url": data.aiPreviewUrl,
            "room_analysis": data.roomAnalysis,
            "status": "open",
            "base_price": total.base_price,
            "addon_total": total.addon_total,
            "total_price": total.total_price,
            "app_fee": total.app_fee,
            "discount_amount": discount_amount,
            "referral_code": referral.code if referral else None,
        }

        tv_rows = []
        addon_rows = []
        for position, (tv, result) in enumerate(zip(data.tvs, per_tv)):
            tv_rows.append(
                {
                    "position": position,
                    "location": tv.location,
                    "tv_size": tv.tvSize,
                    "service_tier": tv.serviceType,
                    "wall_type": tv.wallType,
                    "mount_type": tv.mountType,
                    "needs_wall_mount": tv.needsWallMount,
                    "wall_mount_option": tv.wallMountOption,
                    "base_price": result.base_price,
                    "addon_total": result.addon_total,
                }
            )
            addon_rows.extend(
                {"tv_position": position, "addon_key": a["key"], "name": a["name"], "price": a["price"]}
                for a in result.addons
            )

        try:
            booking = self.repo.create_booking(self.db, booking_data, tv_rows, addon_rows)
        except IntegrityError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to save booking: {e}")
            raise HTTPException(status_code=500, detail="Failed to create booking") from e

        if referral:
            pricing.record_referral_use(referral)

        logger.info(
            f"✅ Booking {booking.id} ({booking.qr_code}) created: {booking.tv_quantity} TV(s), "
            f"€{booking.total_price:.2f}"
        )
        return booking

    # ========================================================================
    # Access
    # ========================================================================

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_booking_for_user(self, booking_id: int, user: User) -> Booking:
        """Owner, assigned installer or admin"""
        booking = self.get_booking(booking_id)
        if is_admin(user) or is_booking_customer(booking, user) or is_booking_installer(booking, user):
            return booking
        logger.warning(f"⚠️ User {user.id} denied access to booking {booking_id}")
        raise HTTPException(status_code=403, detail="You do not have access to this booking")

    def get_by_qr_code(self, qr_code: str) -> Booking:
        booking = self.repo.get_by_qr_code(self.db, qr_code)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_customer_bookings(self, user: User) -> list[Booking]:
        return self.repo.get_customer_bookings(self.db, user)

    # ========================================================================
    # Status changes
    # ========================================================================

    def change_status(self, booking: Booking, new_status: str) -> Booking:
        """
        Move a booking along the lifecycle.

        Raises:
            HTTPException: 400 for a disallowed transition
        """
        try:
            ensure_transition(booking.status, new_status)
        except InvalidStatusTransition as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        previous = booking.status
        booking.status = new_status
        now = datetime.utcnow()
        if new_status == "completed":
            booking.completed_at = now
        elif new_status == "cancelled":
            booking.cancelled_at = now
        self.db.commit()
        self.db.refresh(booking)
        logger.info(f"✅ Booking {booking.id} transitioned: {previous} → {new_status}")
        return booking

    def cancel_booking(self, booking_id: int, user: User, reason: Optional[str] = None) -> Booking:
        """Customer (or admin) cancellation before work starts"""
        booking = self.get_booking(booking_id)
        if not (is_admin(user) or is_booking_customer(booking, user)):
            raise HTTPException(status_code=403, detail="Only the customer can cancel this booking")
        if booking.status not in CUSTOMER_CANCELLABLE:
            raise HTTPException(
                status_code=400, detail=f"Booking cannot be cancelled once it is {booking.status}"
            )

        release_cancelled_booking(self.db, booking)

        if reason:
            note = f"Cancelled by customer: {reason}"
            booking.customer_notes = f"{booking.customer_notes}\n{note}" if booking.customer_notes else note

        return self.change_status(booking, "cancelled")

    # ========================================================================
    # Tracking
    # ========================================================================

    def get_tracking(self, qr_code: str) -> dict:
        """Public tracking payload for a QR reference"""
        booking = self.get_by_qr_code(qr_code)
        assignment = self.repo.get_active_assignment(self.db, booking.id)

        data = booking_to_dict(booking)
        # Contact details are shown separately on the tracking page
        for key in ("contactEmail", "contactPhone", "customerId", "roomAnalysis"):
            data.pop(key, None)

        return {
            "booking": data,
            "installer": installer_summary(booking.installer),
            "jobAssignment": (
                {
                    "id": assignment.id,
                    "status": assignment.status,
                    "acceptedAt": assignment.accepted_at,
                    "completedAt": assignment.completed_at,
                }
                if assignment
                else None
            ),
            "contact": {
                "name": booking.contact_name,
                "email": booking.contact_email,
                "phone": booking.contact_phone,
            },
        }


class ScheduleNegotiationService:
    """Date/time proposals between a booking's customer and installer"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()
        self.bookings = BookingService(db)

    def _party(self, booking: Booking, user: User) -> str:
        if is_booking_installer(booking, user):
            return "installer"
        if is_booking_customer(booking, user):
            return "customer"
        raise HTTPException(status_code=403, detail="You are not a party to this booking")

    def propose(self, data: ScheduleNegotiationCreate, user: User) -> ScheduleNegotiation:
        booking = self.bookings.get_booking(data.bookingId)
        party = self._party(booking, user)

        if booking.status in NOT_RESCHEDULABLE:
            raise HTTPException(status_code=400, detail=f"Cannot reschedule a booking that is {booking.status}")
        if self.repo.get_pending_negotiation(self.db, booking.id):
            raise HTTPException(status_code=409, detail="A schedule proposal is already pending for this booking")

        negotiation = ScheduleNegotiation(
            booking_id=booking.id,
            installer_id=booking.installer_id,
            proposed_by=party,
            proposed_date=data.proposedDate,
            proposed_time_slot=data.proposedTimeSlot,
            message=data.message,
            status="pending",
        )
        self.db.add(negotiation)
        self.db.commit()
        self.db.refresh(negotiation)
        logger.info(f"📋 Schedule proposal {negotiation.id} by {party} for booking {booking.id}")
        return negotiation

    def list_for_booking(self, booking_id: int, user: User) -> list[ScheduleNegotiation]:
        self.bookings.get_booking_for_user(booking_id, user)
        return self.repo.get_negotiations(self.db, booking_id)

    def respond(
        self, negotiation_id: int, data: ScheduleNegotiationRespond, user: User
    ) -> tuple[ScheduleNegotiation, Optional[ScheduleNegotiation]]:
        """
        Accept, reject or counter a pending proposal.

        Returns:
            (responded proposal, counter proposal or None)
        """
        negotiation = self.repo.get_negotiation(self.db, negotiation_id)
        if not negotiation:
            raise HTTPException(status_code=404, detail="Schedule proposal not found")
        booking = negotiation.booking
        party = self._party(booking, user)

        if negotiation.status != "pending":
            raise HTTPException(status_code=400, detail=f"Proposal is already {negotiation.status}")
        if booking.status in NOT_RESCHEDULABLE:
            raise HTTPException(status_code=400, detail=f"Cannot reschedule a booking that is {booking.status}")
        if party == negotiation.proposed_by:
            raise HTTPException(status_code=403, detail="You cannot respond to your own proposal")

        negotiation.response_message = data.responseMessage
        negotiation.responded_at = datetime.utcnow()
        counter = None

        if data.action == "accept":
            negotiation.status = "accepted"
            booking.scheduled_date = negotiation.proposed_date
            booking.time_slot = negotiation.proposed_time_slot
        elif data.action == "reject":
            negotiation.status = "rejected"
        else:
            negotiation.status = "countered"
            counter = ScheduleNegotiation(
                booking_id=booking.id,
                installer_id=booking.installer_id,
                proposed_by=party,
                proposed_date=data.counterDate,
                proposed_time_slot=data.counterTimeSlot,
                message=data.responseMessage,
                status="pending",
            )
            self.db.add(counter)

        self.db.commit()
        self.db.refresh(negotiation)
        if counter is not None:
            self.db.refresh(counter)
        logger.info(f"✅ Schedule proposal {negotiation.id} {negotiation.status} by {party}")
        return negotiation, counter


class ReviewService:
    """Customer reviews of completed installations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def create_review(self, data: ReviewCreate, user: User) -> Review:
        booking = self.repo.get_booking(self.db, data.bookingId)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        if not is_booking_customer(booking, user):
            raise HTTPException(status_code=403, detail="Only the booking customer can leave a review")
        if booking.status != "completed" or not booking.installer_id:
            raise HTTPException(status_code=400, detail="Only completed installations can be reviewed")
        if self.repo.get_review_for_booking(self.db, booking.id):
            raise HTTPException(status_code=409, detail="This booking has already been reviewed")

        review = Review(
            booking_id=booking.id,
            installer_id=booking.installer_id,
            customer_id=user.id,
            rating=data.rating,
            title=data.title,
            comment=data.comment,
        )
        self.db.add(review)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(status_code=409, detail="This booking has already been reviewed") from e
        self.db.refresh(review)
        logger.info(f"✅ Review {review.id} ({review.rating}★) for installer {review.installer_id}")
        return review

    def get_installer_reviews(self, installer_id: int) -> list[Review]:
        if not self.repo.get_installer(self.db, installer_id):
            raise HTTPException(status_code=404, detail="Installer not found")
        return self.repo.get_installer_reviews(self.db, installer_id)

    def get_installer_rating(self, installer_id: int) -> dict:
        if not self.repo.get_installer(self.db, installer_id):
            raise HTTPException(status_code=404, detail="Installer not found")
        average, count = (
            self.db.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.installer_id == installer_id)
            .one()
        )
        return {
            "installerId": installer_id,
            "averageRating": round(float(average), 1) if average is not None else 0.0,
            "reviewCount": count or 0,
        }
