"""
Admin dashboard endpoints: platform stats, booking overrides, installer
approval, users and manual status automation runs.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_admin
from ..database import get_db
from ..domain.bookings.repository import BookingRepository
from ..domain.bookings.service import booking_to_dict, release_cancelled_booking
from ..domain.bookings.status import ACTIVE_STATUSES, ADMIN_EDITABLE_WHEN_ASSIGNED, BOOKING_STATUSES
from ..domain.installers.service import installer_to_dict
from ..domain.pricing.catalog import get_lead_fee
from ..models import Booking, Installer, User
from ..services.notification_service import notify_installer_decision, notify_status_change
from ..services.status_automation import cancel_stale_bookings
from ..utils.sanitization import clean_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


class AdminStatusUpdate(BaseModel):
    status: str
    message: Optional[str] = Field(None, max_length=1000)


class InstallerRejection(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class AdminStats(BaseModel):
    totalBookings: int
    monthlyBookings: int
    revenue: float
    appFees: float
    activeBookings: int
    completedBookings: int
    avgBookingValue: float
    topServiceType: Optional[str] = None
    totalInstallers: int
    totalUsers: int


class AutomationResult(BaseModel):
    checked: int
    cancelled: int
    bookingIds: list[int]


# ============================================================================
# STATS
# ============================================================================


@router.get("/stats", response_model=AdminStats)
async def get_admin_stats(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Platform-wide booking and revenue figures"""
    bookings = db.query(Booking).all()
    month_start = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    lead_fees = [get_lead_fee(b.service_tier) for b in bookings]
    revenue = round(sum(lead_fees), 2)
    service_counts = Counter(b.service_tier for b in bookings)

    return AdminStats(
        totalBookings=len(bookings),
        monthlyBookings=sum(1 for b in bookings if b.created_at and b.created_at >= month_start),
        revenue=revenue,
        appFees=round(revenue / len(bookings), 2) if bookings else 0.0,
        activeBookings=sum(1 for b in bookings if b.status in ACTIVE_STATUSES),
        completedBookings=sum(1 for b in bookings if b.status == "completed"),
        avgBookingValue=(
            round(sum(b.total_price for b in bookings) / len(bookings), 2) if bookings else 0.0
        ),
        topServiceType=service_counts.most_common(1)[0][0] if service_counts else None,
        totalInstallers=db.query(func.count(Installer.id)).scalar() or 0,
        totalUsers=db.query(func.count(User.id)).scalar() or 0,
    )


# ============================================================================
# BOOKINGS
# ============================================================================


@router.get("/bookings")
async def list_bookings(
    status: Optional[str] = Query(None),
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    if status and status not in BOOKING_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown booking status: {status}")
    return [booking_to_dict(b) for b in BookingRepository.list_bookings(db, status)]


@router.patch("/bookings/{booking_id}/status")
async def override_booking_status(
    booking_id: int,
    data: AdminStatusUpdate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """
    Set a booking's status directly. Once an installer is attached the
    booking is only editable while it is still pending, open or confirmed.
    """
    booking = BookingRepository.get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    if data.status not in BOOKING_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown booking status: {data.status}")
    if booking.installer_id is not None and booking.status not in ADMIN_EDITABLE_WHEN_ASSIGNED:
        raise HTTPException(
            status_code=400,
            detail=f"Booking is {booking.status} with an installer assigned and can no longer be changed",
        )

    previous = booking.status
    now = datetime.utcnow()
    try:
        if data.status == "cancelled":
            release_cancelled_booking(db, booking)
        booking.status = data.status
        if data.status == "completed":
            booking.completed_at = now
        elif data.status == "cancelled":
            booking.cancelled_at = now
        db.commit()
        db.refresh(booking)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Admin status override failed for booking {booking_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update booking status") from e

    logger.info(f"✅ Admin {admin.id} set booking {booking.id} status: {previous} → {data.status}")
    background_tasks.add_task(notify_status_change, booking.id, clean_text(data.message))
    return booking_to_dict(booking)


@router.delete("/bookings/{booking_id}")
async def delete_booking(
    booking_id: int,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    booking = BookingRepository.get_booking(db, booking_id)
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    if booking.installer_id is not None:
        raise HTTPException(status_code=400, detail="Bookings with an assigned installer cannot be deleted")

    qr_code = booking.qr_code
    BookingRepository.delete_booking(db, booking)
    logger.info(f"🗑️ Admin {admin.id} deleted booking {booking_id} ({qr_code})")
    return {"message": "Booking deleted", "id": booking_id}


# ============================================================================
# INSTALLERS
# ============================================================================


@router.get("/installers")
async def list_installers(
    status: Optional[str] = Query(None),
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Installer)
    if status:
        query = query.filter(Installer.approval_status == status)
    return [installer_to_dict(i) for i in query.order_by(Installer.id.desc()).all()]


def _get_installer(db: Session, installer_id: int) -> Installer:
    installer = db.query(Installer).filter(Installer.id == installer_id).first()
    if not installer:
        raise HTTPException(status_code=404, detail="Installer not found")
    return installer


@router.patch("/installers/{installer_id}/approve")
async def approve_installer(
    installer_id: int,
    background_tasks: BackgroundTasks,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    installer = _get_installer(db, installer_id)
    installer.approval_status = "approved"
    installer.approved_at = datetime.utcnow()
    installer.rejection_reason = None
    db.commit()
    db.refresh(installer)

    logger.info(f"✅ Installer {installer.id} ({installer.business_name}) approved by admin {admin.id}")
    background_tasks.add_task(notify_installer_decision, installer.id)
    return installer_to_dict(installer)


@router.patch("/installers/{installer_id}/reject")
async def reject_installer(
    installer_id: int,
    background_tasks: BackgroundTasks,
    data: Optional[InstallerRejection] = None,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    installer = _get_installer(db, installer_id)
    installer.approval_status = "rejected"
    installer.approved_at = None
    installer.rejection_reason = clean_text(data.reason, max_length=500) if data else None
    db.commit()
    db.refresh(installer)

    logger.info(f"⚠️ Installer {installer.id} ({installer.business_name}) rejected by admin {admin.id}")
    background_tasks.add_task(notify_installer_decision, installer.id)
    return installer_to_dict(installer)


# ============================================================================
# USERS AND AUTOMATION
# ============================================================================


@router.get("/users")
async def list_users(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    booking_counts = dict(
        db.query(Booking.customer_id, func.count(Booking.id))
        .filter(Booking.customer_id.isnot(None))
        .group_by(Booking.customer_id)
        .all()
    )
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return [
        {
            "id": u.id,
            "email": u.email,
            "fullName": u.full_name,
            "phone": u.phone,
            "role": u.role,
            "bookingCount": booking_counts.get(u.id, 0),
            "createdAt": u.created_at,
        }
        for u in users
    ]


@router.post("/status-automation/run", response_model=AutomationResult)
async def run_status_automation(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Cancel stale unassigned bookings now instead of waiting for the cron"""
    try:
        return cancel_stale_bookings(db)
    except Exception as e:
        raise HTTPException(status_code=500, detail="Status automation failed") from e
