"""Installer repository - Database operations for installers, jobs and wallets"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import (
    Booking,
    Installer,
    InstallerAvailability,
    JobAssignment,
    Review,
    WalletTransaction,
)
from ..bookings.status import OPEN_FOR_LEADS

ACTIVE_JOB_STATUSES = ("accepted", "in-progress")


class InstallerRepository:
    """Repository for installer database operations"""

    @staticmethod
    def get_installer(db: Session, installer_id: int) -> Optional[Installer]:
        return db.query(Installer).filter(Installer.id == installer_id).first()

    @staticmethod
    def get_by_user_id(db: Session, user_id: int) -> Optional[Installer]:
        return db.query(Installer).filter(Installer.user_id == user_id).first()

    @staticmethod
    def create_installer(db: Session, **installer_data) -> Installer:
        installer = Installer(**installer_data)
        db.add(installer)
        db.commit()
        db.refresh(installer)
        return installer

    @staticmethod
    def update_installer(db: Session, installer: Installer, **updates) -> Installer:
        """Update an installer with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(installer, key):
                setattr(installer, key, value)
        db.commit()
        db.refresh(installer)
        return installer

    @staticmethod
    def list_installers(db: Session, approval_status: Optional[str] = None) -> list[Installer]:
        query = db.query(Installer)
        if approval_status:
            query = query.filter(Installer.approval_status == approval_status)
        return query.order_by(Installer.created_at.desc(), Installer.id.desc()).all()

    # ========================================================================
    # Leads and jobs
    # ========================================================================

    @staticmethod
    def get_open_bookings(db: Session, exclude_booking_ids: list[int]) -> list[Booking]:
        """Bookings still looking for an installer"""
        query = db.query(Booking).filter(
            Booking.status.in_(list(OPEN_FOR_LEADS)),
            Booking.installer_id.is_(None),
        )
        if exclude_booking_ids:
            query = query.filter(Booking.id.notin_(exclude_booking_ids))
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    @staticmethod
    def get_declined_booking_ids(db: Session, installer_id: int) -> list[int]:
        rows = (
            db.query(JobAssignment.booking_id)
            .filter(JobAssignment.installer_id == installer_id, JobAssignment.status == "declined")
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def get_assignment(db: Session, booking_id: int, installer_id: int) -> Optional[JobAssignment]:
        return (
            db.query(JobAssignment)
            .filter(JobAssignment.booking_id == booking_id, JobAssignment.installer_id == installer_id)
            .first()
        )

    @staticmethod
    def get_job(db: Session, job_id: int, installer_id: int) -> Optional[JobAssignment]:
        return (
            db.query(JobAssignment)
            .filter(JobAssignment.id == job_id, JobAssignment.installer_id == installer_id)
            .first()
        )

    @staticmethod
    def get_active_jobs(db: Session, installer_id: int) -> list[JobAssignment]:
        return (
            db.query(JobAssignment)
            .filter(
                JobAssignment.installer_id == installer_id,
                JobAssignment.status.in_(ACTIVE_JOB_STATUSES),
            )
            .order_by(JobAssignment.accepted_at.desc(), JobAssignment.id.desc())
            .all()
        )

    @staticmethod
    def count_jobs(db: Session, installer_id: int, statuses: Optional[tuple] = None) -> int:
        query = db.query(func.count(JobAssignment.id)).filter(
            JobAssignment.installer_id == installer_id,
            JobAssignment.status.notin_(("declined", "cancelled")),
        )
        if statuses:
            query = query.filter(JobAssignment.status.in_(statuses))
        return query.scalar() or 0

    # ========================================================================
    # Wallet
    # ========================================================================

    @staticmethod
    def get_transactions(db: Session, installer_id: int, limit: int = 100) -> list[WalletTransaction]:
        return (
            db.query(WalletTransaction)
            .filter(WalletTransaction.installer_id == installer_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def sum_transactions(db: Session, installer_id: int, type: str) -> float:
        total = (
            db.query(func.sum(WalletTransaction.amount))
            .filter(WalletTransaction.installer_id == installer_id, WalletTransaction.type == type)
            .scalar()
        )
        return float(total or 0)

    # ========================================================================
    # Availability
    # ========================================================================

    @staticmethod
    def get_availability(
        db: Session, installer_id: int, from_date: Optional[date] = None
    ) -> list[InstallerAvailability]:
        query = db.query(InstallerAvailability).filter(InstallerAvailability.installer_id == installer_id)
        if from_date:
            query = query.filter(InstallerAvailability.date >= from_date)
        return query.order_by(InstallerAvailability.date.asc(), InstallerAvailability.time_slot.asc()).all()

    @staticmethod
    def get_availability_slot(
        db: Session, installer_id: int, slot_date: date, time_slot: str
    ) -> Optional[InstallerAvailability]:
        return (
            db.query(InstallerAvailability)
            .filter(
                InstallerAvailability.installer_id == installer_id,
                InstallerAvailability.date == slot_date,
                InstallerAvailability.time_slot == time_slot,
            )
            .first()
        )

    # ========================================================================
    # Ratings
    # ========================================================================

    @staticmethod
    def get_rating(db: Session, installer_id: int) -> tuple[Optional[float], int]:
        average, count = (
            db.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.installer_id == installer_id)
            .one()
        )
        return (round(float(average), 1) if average is not None else None), int(count or 0)
