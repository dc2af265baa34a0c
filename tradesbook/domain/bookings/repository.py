"""Booking repository - Data access layer for bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import (
    Booking,
    BookingAddOn,
    BookingTvInstallation,
    Installer,
    JobAssignment,
    Review,
    ScheduleNegotiation,
    User,
)


class BookingRepository:
    """Data access layer for bookings and their child rows"""

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_by_qr_code(db: Session, qr_code: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.qr_code == qr_code.strip().upper()).first()

    @staticmethod
    def qr_code_exists(db: Session, qr_code: str) -> bool:
        return db.query(Booking.id).filter(Booking.qr_code == qr_code).first() is not None

    @staticmethod
    def get_customer_bookings(db: Session, user: User) -> list[Booking]:
        """Bookings owned by the user, including guest bookings made with their verified email"""
        owned = Booking.customer_id == user.id
        if user.email_verified and user.email:
            owned = or_(owned, Booking.contact_email == user.email.lower())
        return db.query(Booking).filter(owned).order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    @staticmethod
    def list_bookings(db: Session, status: Optional[str] = None) -> list[Booking]:
        query = db.query(Booking)
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    @staticmethod
    def create_booking(
        db: Session, booking_data: dict, tvs: list[dict], addons: list[dict]
    ) -> Booking:
        booking = Booking(**booking_data)
        booking.tv_installations = [BookingTvInstallation(**tv) for tv in tvs]
        booking.addons = [BookingAddOn(**addon) for addon in addons]
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def delete_booking(db: Session, booking: Booking) -> None:
        """Delete a booking; child rows go through the relationship cascades"""
        db.delete(booking)
        db.commit()

    @staticmethod
    def get_assignment(db: Session, booking_id: int, installer_id: int) -> Optional[JobAssignment]:
        return (
            db.query(JobAssignment)
            .filter(JobAssignment.booking_id == booking_id, JobAssignment.installer_id == installer_id)
            .first()
        )

    @staticmethod
    def get_active_assignment(db: Session, booking_id: int) -> Optional[JobAssignment]:
        return (
            db.query(JobAssignment)
            .filter(
                JobAssignment.booking_id == booking_id,
                JobAssignment.status.in_(["accepted", "in-progress", "completed"]),
            )
            .first()
        )

    @staticmethod
    def get_installer(db: Session, installer_id: int) -> Optional[Installer]:
        return db.query(Installer).filter(Installer.id == installer_id).first()

    @staticmethod
    def get_installer_for_user(db: Session, user_id: int) -> Optional[Installer]:
        return db.query(Installer).filter(Installer.user_id == user_id).first()

    # ========================================================================
    # Schedule negotiations
    # ========================================================================

    @staticmethod
    def get_negotiation(db: Session, negotiation_id: int) -> Optional[ScheduleNegotiation]:
        return db.query(ScheduleNegotiation).filter(ScheduleNegotiation.id == negotiation_id).first()

    @staticmethod
    def get_negotiations(db: Session, booking_id: int) -> list[ScheduleNegotiation]:
        return (
            db.query(ScheduleNegotiation)
            .filter(ScheduleNegotiation.booking_id == booking_id)
            .order_by(ScheduleNegotiation.id.asc())
            .all()
        )

    @staticmethod
    def get_pending_negotiation(db: Session, booking_id: int) -> Optional[ScheduleNegotiation]:
        return (
            db.query(ScheduleNegotiation)
            .filter(ScheduleNegotiation.booking_id == booking_id, ScheduleNegotiation.status == "pending")
            .first()
        )

    @staticmethod
    def close_pending_negotiations(db: Session, booking_id: int, message: str) -> int:
        """Reject open proposals on a booking. Caller commits."""
        pending = (
            db.query(ScheduleNegotiation)
            .filter(ScheduleNegotiation.booking_id == booking_id, ScheduleNegotiation.status == "pending")
            .all()
        )
        now = datetime.utcnow()
        for negotiation in pending:
            negotiation.status = "rejected"
            negotiation.response_message = message
            negotiation.responded_at = now
        return len(pending)

    # ========================================================================
    # Reviews
    # ========================================================================

    @staticmethod
    def get_review_for_booking(db: Session, booking_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.booking_id == booking_id).first()

    @staticmethod
    def get_installer_reviews(db: Session, installer_id: int) -> list[Review]:
        return (
            db.query(Review)
            .filter(Review.installer_id == installer_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .all()
        )
