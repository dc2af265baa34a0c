"""
Email Service using Resend
Compiles MJML templates to HTML and sends booking notifications
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import ADMIN_EMAIL, EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .email_templates import (
    admin_new_booking_template,
    booking_confirmation_template,
    booking_reminder_template,
    booking_status_update_template,
    installer_approved_template,
    installer_assigned_template,
    installer_rejected_template,
    job_completed_template,
    new_lead_template,
    schedule_proposal_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailError(Exception):
    """Raised when an email cannot be compiled or delivered"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict with html and errors keys
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        if hasattr(result, "html"):
            if getattr(result, "errors", None):
                logger.warning(f"MJML compilation warnings: {result.errors}")
            return result.html
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailError(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    html_content = compile_mjml_to_html(mjml_content)

    recipients = [to] if isinstance(to, str) else to
    sender = from_address or EMAIL_FROM_ADDRESS

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailError("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": sender,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailError(f"Failed to send email: {str(e)}") from e


# ============================================
# Booking lifecycle emails
# ============================================


async def send_booking_confirmation(
    to: str,
    customer_name: str,
    qr_code: str,
    service_name: str,
    tv_summary: str,
    address: str,
    scheduled: str,
    total_price: float,
    discount_amount: float,
    tracking_url: str,
) -> dict:
    """Send booking confirmation to the customer"""
    mjml_content = booking_confirmation_template(
        customer_name=customer_name,
        qr_code=qr_code,
        service_name=service_name,
        tv_summary=tv_summary,
        address=address,
        scheduled=scheduled,
        total_price=total_price,
        discount_amount=discount_amount,
        tracking_url=tracking_url,
    )
    return await send_email(
        to=to,
        subject=f"Booking Confirmed - {qr_code}",
        mjml_content=mjml_content,
    )


async def send_admin_new_booking_notification(
    booking_id: int,
    qr_code: str,
    customer_name: str,
    customer_email: str,
    customer_phone: str,
    address: str,
    service_name: str,
    tv_summary: str,
    total_price: float,
    app_fee: float,
) -> dict:
    mjml_content = admin_new_booking_template(
        booking_id=booking_id,
        qr_code=qr_code,
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=customer_phone,
        address=address,
        service_name=service_name,
        tv_summary=tv_summary,
        total_price=total_price,
        app_fee=app_fee,
    )
    return await send_email(
        to=ADMIN_EMAIL,
        subject=f"New Booking #{booking_id} - {service_name}",
        mjml_content=mjml_content,
    )


async def send_new_lead_notification(
    to: str,
    installer_name: str,
    booking_id: int,
    service_name: str,
    tv_summary: str,
    county: Optional[str],
    scheduled: str,
    lead_fee: float,
    installer_earnings: float,
    distance_km: Optional[float] = None,
) -> dict:
    """Tell an installer a new request is available"""
    mjml_content = new_lead_template(
        installer_name=installer_name,
        booking_id=booking_id,
        service_name=service_name,
        tv_summary=tv_summary,
        county=county,
        scheduled=scheduled,
        lead_fee=lead_fee,
        installer_earnings=installer_earnings,
        distance_km=distance_km,
    )
    area = f" in {county}" if county else ""
    return await send_email(
        to=to,
        subject=f"New TV Installation Request{area}",
        mjml_content=mjml_content,
    )


async def send_booking_status_update(
    to: str,
    customer_name: str,
    qr_code: str,
    status: str,
    tracking_url: str,
    message: Optional[str] = None,
) -> dict:
    mjml_content = booking_status_update_template(
        customer_name=customer_name,
        qr_code=qr_code,
        status=status,
        tracking_url=tracking_url,
        message=message,
    )
    return await send_email(
        to=to,
        subject=f"Booking Update - {qr_code}",
        mjml_content=mjml_content,
    )


async def send_installer_assigned_email(
    to: str,
    customer_name: str,
    qr_code: str,
    installer_name: str,
    business_name: str,
    installer_phone: Optional[str],
    scheduled: str,
    tracking_url: str,
) -> dict:
    """Notify the customer that an installer accepted their booking"""
    mjml_content = installer_assigned_template(
        customer_name=customer_name,
        qr_code=qr_code,
        installer_name=installer_name,
        business_name=business_name,
        installer_phone=installer_phone,
        scheduled=scheduled,
        tracking_url=tracking_url,
    )
    return await send_email(
        to=to,
        subject=f"Installer Assigned - {business_name}",
        mjml_content=mjml_content,
    )


async def send_job_completed_email(to: str, customer_name: str, qr_code: str, business_name: str) -> dict:
    mjml_content = job_completed_template(
        customer_name=customer_name,
        qr_code=qr_code,
        business_name=business_name,
        review_url=f"{FRONTEND_URL}/customer-dashboard?review={qr_code}",
    )
    return await send_email(
        to=to,
        subject="Your TV Installation is Complete",
        mjml_content=mjml_content,
    )


async def send_schedule_proposal_email(
    to: str,
    recipient_name: str,
    proposer_label: str,
    qr_code: str,
    proposed: str,
    message: Optional[str],
    action_url: str,
) -> dict:
    mjml_content = schedule_proposal_template(
        recipient_name=recipient_name,
        proposer_label=proposer_label,
        qr_code=qr_code,
        proposed=proposed,
        message=message,
        action_url=action_url,
    )
    return await send_email(
        to=to,
        subject=f"New Time Proposed - {qr_code}",
        mjml_content=mjml_content,
    )


async def send_booking_reminder(
    to: str,
    recipient_name: str,
    qr_code: str,
    scheduled: str,
    address: str,
    other_party_label: str,
    other_party_name: str,
    other_party_phone: Optional[str],
    action_url: str,
    is_installer_email: bool = False,
) -> dict:
    """Day-before reminder for customers and installers"""
    mjml_content = booking_reminder_template(
        recipient_name=recipient_name,
        qr_code=qr_code,
        scheduled=scheduled,
        address=address,
        other_party_label=other_party_label,
        other_party_name=other_party_name,
        other_party_phone=other_party_phone,
        action_url=action_url,
        is_installer_email=is_installer_email,
    )
    return await send_email(
        to=to,
        subject=f"Reminder: Installation Tomorrow - {qr_code}",
        mjml_content=mjml_content,
    )


# ============================================
# Installer account emails
# ============================================


async def send_installer_approved_email(to: str, installer_name: str, business_name: str) -> dict:
    mjml_content = installer_approved_template(installer_name, business_name)
    return await send_email(
        to=to,
        subject="Your tradesbook.ie installer profile is approved",
        mjml_content=mjml_content,
    )


async def send_installer_rejected_email(
    to: str, installer_name: str, business_name: str, reason: Optional[str] = None
) -> dict:
    mjml_content = installer_rejected_template(installer_name, business_name, reason)
    return await send_email(
        to=to,
        subject="Update on your tradesbook.ie application",
        mjml_content=mjml_content,
    )
