"""
Booking notifications
Builds email content from bookings and sends it. Every sender opens its own
session so it can run from BackgroundTasks or the arq worker, and a failed
email is logged without affecting the caller.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from .. import email_service
from ..config import FRONTEND_URL, NEARBY_INSTALLER_RADIUS_KM
from ..database import SessionLocal
from ..domain.pricing.catalog import SERVICE_TIERS, format_time_window, get_lead_fee
from ..models import Booking, Installer, ScheduleNegotiation, ServiceTier
from .job_queue import enqueue_job
from .maps_service import calculate_distance_km
from .qr_code_service import tracking_url

logger = logging.getLogger(__name__)


# ============================================================================
# Formatting helpers
# ============================================================================


def format_schedule(scheduled_date: Optional[date], time_slot: Optional[str]) -> str:
    if not scheduled_date:
        return "To be arranged"
    text = scheduled_date.strftime("%a %d %b %Y")
    window = format_time_window(time_slot)
    return f"{text}, {window}" if window else text


def describe_service(db: Session, tier_key: str) -> str:
    tier = db.query(ServiceTier).filter(ServiceTier.key == tier_key).first()
    if tier:
        return tier.name
    return SERVICE_TIERS.get(tier_key, {}).get("name", tier_key)


def tv_summary(booking: Booking) -> str:
    """'55" TV' or '2 TVs: 55" (Living room), 65" (Bedroom)'"""
    tvs = booking.tv_installations
    if len(tvs) <= 1:
        return f'{booking.tv_size}" TV'
    parts = [f'{tv.tv_size}" ({tv.location})' if tv.location else f'{tv.tv_size}"' for tv in tvs]
    return f"{len(tvs)} TVs: " + ", ".join(parts)


async def _safe_send(label: str, coro) -> bool:
    try:
        await coro
        return True
    except Exception as e:
        logger.error(f"❌ Failed to send {label}: {e}")
        return False


def _load_booking(db: Session, booking_id: int) -> Optional[Booking]:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        logger.warning(f"⚠️ Booking {booking_id} not found for notification")
    return booking


# ============================================================================
# New booking
# ============================================================================


async def notify_booking_created(booking_id: int) -> None:
    """Customer confirmation, admin notice, then the installer fan-out"""
    db = SessionLocal()
    try:
        booking = _load_booking(db, booking_id)
        if not booking:
            return

        service_name = describe_service(db, booking.service_tier)
        summary = tv_summary(booking)

        await _safe_send(
            f"booking confirmation for {booking.qr_code}",
            email_service.send_booking_confirmation(
                to=booking.contact_email,
                customer_name=booking.contact_name,
                qr_code=booking.qr_code,
                service_name=service_name,
                tv_summary=summary,
                address=booking.address,
                scheduled=format_schedule(booking.scheduled_date, booking.time_slot),
                total_price=booking.total_price,
                discount_amount=booking.discount_amount or 0,
                tracking_url=tracking_url(booking.qr_code),
            ),
        )
        await _safe_send(
            f"admin notification for booking {booking.id}",
            email_service.send_admin_new_booking_notification(
                booking_id=booking.id,
                qr_code=booking.qr_code,
                customer_name=booking.contact_name,
                customer_email=booking.contact_email,
                customer_phone=booking.contact_phone,
                address=booking.address,
                service_name=service_name,
                tv_summary=summary,
                total_price=booking.total_price,
                app_fee=booking.app_fee,
            ),
        )

        job_id = await enqueue_job("notify_installers_task", booking.id)
        if not job_id:
            await notify_installers_of_booking(db, booking)
    finally:
        db.close()


def installers_for_booking(db: Session, booking: Booking, radius_km: float = NEARBY_INSTALLER_RADIUS_KM) -> list[tuple[Installer, Optional[float]]]:
    """
    Approved installers to tell about a booking, with distance when both
    sides are geocoded. Geocoded installers outside the radius are skipped.
    """
    installers = db.query(Installer).filter(Installer.approval_status == "approved").all()
    recipients = []
    for installer in installers:
        distance = None
        if None not in (booking.latitude, booking.longitude, installer.latitude, installer.longitude):
            distance = calculate_distance_km(
                booking.latitude, booking.longitude, installer.latitude, installer.longitude
            )
            if distance > radius_km:
                continue
        recipients.append((installer, distance))
    return recipients


async def notify_installers_of_booking(db: Session, booking: Booking) -> int:
    """Send new-lead emails; returns how many were sent"""
    service_name = describe_service(db, booking.service_tier)
    summary = tv_summary(booking)
    scheduled = format_schedule(booking.scheduled_date, booking.time_slot)
    lead_fee = get_lead_fee(booking.service_tier)
    earnings = round(booking.total_price - booking.app_fee, 2)

    sent = 0
    for installer, distance in installers_for_booking(db, booking):
        ok = await _safe_send(
            f"lead email to installer {installer.id}",
            email_service.send_new_lead_notification(
                to=installer.email,
                installer_name=installer.contact_name,
                booking_id=booking.id,
                service_name=service_name,
                tv_summary=summary,
                county=booking.county,
                scheduled=scheduled,
                lead_fee=lead_fee,
                installer_earnings=earnings,
                distance_km=distance,
            ),
        )
        sent += int(ok)

    logger.info(f"📧 Booking {booking.id}: lead emails sent to {sent} installers")
    return sent


# ============================================================================
# Booking progress
# ============================================================================


async def notify_installer_assigned(booking_id: int) -> None:
    db = SessionLocal()
    try:
        booking = _load_booking(db, booking_id)
        if not booking or not booking.installer:
            return
        installer = booking.installer
        await _safe_send(
            f"installer assigned email for {booking.qr_code}",
            email_service.send_installer_assigned_email(
                to=booking.contact_email,
                customer_name=booking.contact_name,
                qr_code=booking.qr_code,
                installer_name=installer.contact_name,
                business_name=installer.business_name,
                installer_phone=installer.phone,
                scheduled=format_schedule(booking.scheduled_date, booking.time_slot),
                tracking_url=tracking_url(booking.qr_code),
            ),
        )
    finally:
        db.close()


async def notify_job_completed(booking_id: int) -> None:
    db = SessionLocal()
    try:
        booking = _load_booking(db, booking_id)
        if not booking:
            return
        business_name = booking.installer.business_name if booking.installer else "Your installer"
        await _safe_send(
            f"completion email for {booking.qr_code}",
            email_service.send_job_completed_email(
                to=booking.contact_email,
                customer_name=booking.contact_name,
                qr_code=booking.qr_code,
                business_name=business_name,
            ),
        )
    finally:
        db.close()


async def notify_status_change(booking_id: int, message: Optional[str] = None) -> None:
    """Tell the customer, and the assigned installer if any, about the current status"""
    db = SessionLocal()
    try:
        booking = _load_booking(db, booking_id)
        if not booking:
            return
        await _safe_send(
            f"status update for {booking.qr_code}",
            email_service.send_booking_status_update(
                to=booking.contact_email,
                customer_name=booking.contact_name,
                qr_code=booking.qr_code,
                status=booking.status,
                tracking_url=tracking_url(booking.qr_code),
                message=message,
            ),
        )
        if booking.installer:
            await _safe_send(
                f"installer status update for {booking.qr_code}",
                email_service.send_booking_status_update(
                    to=booking.installer.email,
                    customer_name=booking.installer.contact_name,
                    qr_code=booking.qr_code,
                    status=booking.status,
                    tracking_url=f"{FRONTEND_URL}/installer-dashboard?job={booking.id}",
                    message=message,
                ),
            )
    finally:
        db.close()


async def notify_schedule_proposal(negotiation_id: int) -> None:
    """Email the other party of a booking about a proposed time"""
    db = SessionLocal()
    try:
        negotiation = db.query(ScheduleNegotiation).filter(ScheduleNegotiation.id == negotiation_id).first()
        if not negotiation:
            return
        booking = negotiation.booking
        installer = booking.installer or (
            db.query(Installer).filter(Installer.id == negotiation.installer_id).first()
            if negotiation.installer_id
            else None
        )
        proposed = format_schedule(negotiation.proposed_date, negotiation.proposed_time_slot)

        if negotiation.proposed_by == "installer":
            to, name = booking.contact_email, booking.contact_name
            proposer = installer.business_name if installer else "Your installer"
            action_url = tracking_url(booking.qr_code)
        else:
            if not installer:
                return
            to, name = installer.email, installer.contact_name
            proposer = booking.contact_name
            action_url = f"{FRONTEND_URL}/installer-dashboard?job={booking.id}"

        await _safe_send(
            f"schedule proposal {negotiation.id}",
            email_service.send_schedule_proposal_email(
                to=to,
                recipient_name=name,
                proposer_label=proposer,
                qr_code=booking.qr_code,
                proposed=proposed,
                message=negotiation.message,
                action_url=action_url,
            ),
        )
    finally:
        db.close()


async def notify_installer_decision(installer_id: int) -> None:
    """Approval or rejection email, based on the stored status"""
    db = SessionLocal()
    try:
        installer = db.query(Installer).filter(Installer.id == installer_id).first()
        if not installer:
            return
        if installer.approval_status == "approved":
            coro = email_service.send_installer_approved_email(
                installer.email, installer.contact_name, installer.business_name
            )
        elif installer.approval_status == "rejected":
            coro = email_service.send_installer_rejected_email(
                installer.email, installer.contact_name, installer.business_name, installer.rejection_reason
            )
        else:
            return
        await _safe_send(f"approval decision for installer {installer.id}", coro)
    finally:
        db.close()


# ============================================================================
# Reminders
# ============================================================================


async def send_booking_reminders(db: Session, target_date: date) -> dict:
    """Day-before reminders for assigned bookings on target_date"""
    bookings = (
        db.query(Booking)
        .filter(
            Booking.scheduled_date == target_date,
            Booking.status == "assigned",
            Booking.installer_id.isnot(None),
        )
        .all()
    )

    summary = {"bookings": len(bookings), "customerEmails": 0, "installerEmails": 0}
    for booking in bookings:
        installer = booking.installer
        scheduled = format_schedule(booking.scheduled_date, booking.time_slot)

        if await _safe_send(
            f"customer reminder for {booking.qr_code}",
            email_service.send_booking_reminder(
                to=booking.contact_email,
                recipient_name=booking.contact_name,
                qr_code=booking.qr_code,
                scheduled=scheduled,
                address=booking.address,
                other_party_label="Installer",
                other_party_name=installer.business_name,
                other_party_phone=installer.phone,
                action_url=tracking_url(booking.qr_code),
            ),
        ):
            summary["customerEmails"] += 1

        if await _safe_send(
            f"installer reminder for {booking.qr_code}",
            email_service.send_booking_reminder(
                to=installer.email,
                recipient_name=installer.contact_name,
                qr_code=booking.qr_code,
                scheduled=scheduled,
                address=booking.address,
                other_party_label="Customer",
                other_party_name=booking.contact_name,
                other_party_phone=booking.contact_phone,
                action_url=f"{FRONTEND_URL}/installer-dashboard?job={booking.id}",
                is_installer_email=True,
            ),
        ):
            summary["installerEmails"] += 1

    logger.info(f"📧 Booking reminders for {target_date}: {summary}")
    return summary
