"""
Public booking tracking by QR reference: JSON for the SPA, a standalone HTML
page for scanned QR codes, and QR image generation.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from ..config import FRONTEND_URL
from ..database import get_db
from ..domain.bookings.service import BookingService
from ..domain.pricing.catalog import format_time_window
from ..email_templates import STATUS_LABELS, THEME
from ..rate_limiter import create_rate_limiter
from ..services.qr_code_service import generate_qr_data_url, tracking_url
from ..utils.sanitization import escape_html

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tracking"])

rate_limit_tracking = create_rate_limiter(limit=60, window_seconds=60, key_prefix="qr_tracking")

# Status steps shown on the tracking page, in order
PROGRESS_STEPS = ["open", "assigned", "in-progress", "completed"]

MAX_QR_TEXT_LENGTH = 500


@router.get("/api/bookings/qr/{qr_code}")
async def get_booking_by_qr(
    qr_code: str,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_tracking),
):
    """Booking, installer, job and contact for a QR reference"""
    return BookingService(db).get_tracking(qr_code)


@router.get("/api/qr-code/{text:path}")
async def get_qr_code(text: str):
    """PNG QR code for arbitrary text, as a data URL"""
    if not text or len(text) > MAX_QR_TEXT_LENGTH:
        raise HTTPException(status_code=400, detail=f"Text must be 1-{MAX_QR_TEXT_LENGTH} characters")
    try:
        return {"text": text, "qrCodeUrl": generate_qr_data_url(text)}
    except Exception as e:
        logger.error(f"❌ QR code generation failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate QR code") from e


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{escape_html(title)} | tradesbook.ie</title>
  <style>
    body {{ font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background: {THEME['background']}; color: {THEME['text_primary']}; margin: 0; padding: 24px; }}
    .card {{ max-width: 560px; margin: 0 auto; background: #fff; border-radius: 12px; padding: 28px; box-shadow: 0 4px 16px rgba(0,0,0,0.06); }}
    h1 {{ font-size: 22px; margin: 0 0 4px; }}
    .ref {{ color: {THEME['text_muted']}; font-family: monospace; margin-bottom: 20px; }}
    .status {{ display: inline-block; padding: 6px 12px; border-radius: 999px; background: {THEME['primary']}; color: #fff; font-weight: 600; }}
    .status.cancelled {{ background: {THEME['danger']}; }}
    .steps {{ display: flex; gap: 6px; margin: 20px 0; }}
    .step {{ flex: 1; height: 6px; border-radius: 3px; background: {THEME['border']}; }}
    .step.done {{ background: {THEME['primary']}; }}
    dl {{ display: grid; grid-template-columns: 140px 1fr; row-gap: 8px; margin: 0; }}
    dt {{ color: {THEME['text_muted']}; }}
    dd {{ margin: 0; }}
    a.button {{ display: inline-block; margin-top: 24px; padding: 12px 20px; background: {THEME['primary']}; color: #fff; text-decoration: none; border-radius: 8px; }}
  </style>
</head>
<body>
  <div class="card">
{body}
  </div>
</body>
</html>"""


def render_tracking_page(tracking: dict) -> str:
    booking = tracking["booking"]
    installer = tracking["installer"]
    status = booking["status"]

    reached = PROGRESS_STEPS.index(status) if status in PROGRESS_STEPS else 0
    steps = "".join(
        f'<div class="step{" done" if status != "cancelled" and i <= reached else ""}"></div>'
        for i in range(len(PROGRESS_STEPS))
    )

    scheduled = "To be arranged"
    if booking.get("scheduledDate"):
        scheduled = booking["scheduledDate"].strftime("%a %d %b %Y")
        if booking.get("timeSlot"):
            scheduled += f", {format_time_window(booking['timeSlot'])}"

    rows = [
        ("Service", booking.get("serviceType")),
        ("TVs", str(booking.get("tvQuantity") or 1)),
        ("Address", booking.get("address")),
        ("Scheduled", scheduled),
        ("Total", f"€{booking['finalPrice']:.2f}"),
    ]
    if installer:
        rows.append(("Installer", installer["businessName"]))
        if installer.get("phone"):
            rows.append(("Installer phone", installer["phone"]))

    details = "\n".join(
        f"      <dt>{escape_html(label)}</dt><dd>{escape_html(value)}</dd>" for label, value in rows if value
    )
    status_class = "status cancelled" if status == "cancelled" else "status"
    qr_image = generate_qr_data_url(tracking_url(booking["qrCode"]), box_size=4)

    body = f"""    <h1>TV Installation Booking</h1>
    <div class="ref">{escape_html(booking['qrCode'])}</div>
    <span class="{status_class}">{escape_html(STATUS_LABELS.get(status, status))}</span>
    <div class="steps">{steps}</div>
    <dl>
{details}
    </dl>
    <p><img src="{qr_image}" alt="Booking QR code" width="120" height="120"></p>
    <a class="button" href="{escape_html(FRONTEND_URL)}/track/{escape_html(booking['qrCode'])}">Open in tradesbook.ie</a>"""
    return _page(f"Booking {booking['qrCode']}", body)


@router.get("/qr-tracking/{qr_code}", response_class=HTMLResponse)
async def qr_tracking_page(
    qr_code: str,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_tracking),
):
    """Page opened by scanning a booking QR code"""
    try:
        tracking = BookingService(db).get_tracking(qr_code)
    except HTTPException as e:
        if e.status_code != 404:
            raise
        body = f"""    <h1>Booking not found</h1>
    <div class="ref">{escape_html(qr_code)}</div>
    <p>We couldn't find a booking with this reference. Please check the code and try again.</p>
    <a class="button" href="{escape_html(FRONTEND_URL)}">Go to tradesbook.ie</a>"""
        return HTMLResponse(content=_page("Booking not found", body), status_code=404)

    return HTMLResponse(content=render_tracking_page(tracking))
