"""
ARQ Background Worker for Async Jobs
Handles installer lead notifications, booking reminders and status automation
"""

import logging
import os
from datetime import date, timedelta

from arq.cron import cron

# Import models at module level so SQLAlchemy can resolve relationships
from . import models  # noqa: F401
from .database import SessionLocal
from .models import Booking
from .services.job_queue import get_redis_settings
from .services.notification_service import notify_installers_of_booking, send_booking_reminders
from .services.status_automation import cancel_stale_bookings

logger = logging.getLogger(__name__)


async def notify_installers_task(ctx, booking_id: int):
    """
    Email approved installers about a new booking (lead).
    Queued by the API right after a booking is created.
    """
    logger.info(f"📋 Sending lead notifications for booking {booking_id}")

    db = SessionLocal()
    try:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            logger.warning(f"⚠️ Booking {booking_id} not found for lead notifications")
            return {"success": False, "error": "Booking not found"}
        sent = await notify_installers_of_booking(db, booking)
        return {"success": True, "sent": sent}
    except Exception as e:
        logger.error(f"❌ Lead notifications failed for booking {booking_id}: {str(e)}")
        raise
    finally:
        db.close()


async def send_booking_reminders_task(ctx):
    """Daily cron job: remind customers and installers about tomorrow's installations"""
    target = date.today() + timedelta(days=1)
    logger.info(f"Starting booking reminders for {target}")

    db = SessionLocal()
    try:
        return await send_booking_reminders(db, target)
    except Exception as e:
        logger.error(f"❌ Booking reminders failed: {str(e)}")
        raise
    finally:
        db.close()


async def booking_status_automation_task(ctx):
    """Daily cron job: cancel open bookings whose date passed without an installer"""
    logger.info("Starting daily booking status automation")

    db = SessionLocal()
    try:
        summary = cancel_stale_bookings(db)
        logger.info(f"Status automation complete: {summary}")
        return summary
    except Exception as e:
        logger.error(f"❌ Status automation failed: {str(e)}")
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [
        notify_installers_task,
        send_booking_reminders_task,
        booking_status_automation_task,
    ]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "20"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))

    health_check_interval = 60

    max_tries = 3

    cron_jobs = [
        cron(booking_status_automation_task, hour=0, minute=5),  # 12:05 AM UTC
        cron(send_booking_reminders_task, hour=17, minute=0),  # 5 PM UTC, evening before
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
