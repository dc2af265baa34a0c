"""
Automated booking status transitions
Open or pending bookings whose date has passed without an installer are cancelled.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..config import STALE_BOOKING_GRACE_DAYS
from ..domain.bookings.service import release_cancelled_booking
from ..models import Booking

logger = logging.getLogger(__name__)

EXPIRABLE_STATUSES = ("open", "pending")


def cancel_stale_bookings(
    db: Session, today: Optional[date] = None, grace_days: int = STALE_BOOKING_GRACE_DAYS
) -> dict:
    """
    Cancel unassigned open/pending bookings scheduled more than grace_days ago.
    Should be run as a scheduled job (daily cron).

    Returns:
        dict: {"checked", "cancelled", "bookingIds"}
    """
    today = today or date.today()
    cutoff = today - timedelta(days=grace_days)

    stale = (
        db.query(Booking)
        .filter(
            Booking.status.in_(EXPIRABLE_STATUSES),
            Booking.installer_id.is_(None),
            Booking.scheduled_date.isnot(None),
            Booking.scheduled_date < cutoff,
        )
        .all()
    )

    summary = {"checked": len(stale), "cancelled": 0, "bookingIds": []}
    if not stale:
        return summary

    now = datetime.utcnow()
    try:
        for booking in stale:
            previous = booking.status
            release_cancelled_booking(db, booking)
            booking.status = "cancelled"
            booking.cancelled_at = now
            summary["cancelled"] += 1
            summary["bookingIds"].append(booking.id)
            logger.info(f"✅ Booking {booking.id} transitioned: {previous} → cancelled (date passed)")
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Status automation failed: {str(e)}")
        raise

    logger.info(f"📊 Status automation complete: {summary['cancelled']} stale bookings cancelled")
    return summary
