"""
MJML Email Templates
Booking, lead and installer account emails for tradesbook.ie
"""

from typing import Optional

from .config import FRONTEND_URL
from .utils.sanitization import escape_html

# Brand colours - Indigo/Slate
THEME = {
    "primary": "#4f46e5",
    "primary_dark": "#4338ca",
    "primary_light": "#e0e7ff",
    "background": "#f8fafc",
    "card_bg": "#ffffff",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "success": "#16a34a",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}

LOGO_URL = f"{FRONTEND_URL}/tradesbook-logo.png"

STATUS_LABELS = {
    "pending": "Pending",
    "open": "Open",
    "confirmed": "Confirmed",
    "assigned": "Installer Assigned",
    "in-progress": "In Progress",
    "completed": "Completed",
    "cancelled": "Cancelled",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    is_installer_email: bool = False,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    footer_notice = ""
    if is_installer_email:
        footer_notice = """
        <mj-text align="center" font-size="12px" color="#94a3b8" padding="12px 0 0 0">
          You're receiving this because you are a registered tradesbook.ie installer.
        </mj-text>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 20px">
          <mj-column>
            <mj-image
              src="{LOGO_URL}"
              alt="tradesbook.ie"
              width="140px"
              href="{FRONTEND_URL}"
              padding="0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 48px 40px">
          <mj-column>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 32px 0" />
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              © tradesbook.ie - Professional TV installation across Ireland
            </mj-text>
            {footer_notice}
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _detail_rows(rows: list[tuple[str, Optional[str]]]) -> str:
    """Two column label/value table, skipping empty values"""
    cells = "".join(
        f"""
        <tr>
          <td style="padding: 6px 0; color: {THEME['text_muted']}; width: 40%;">{label}</td>
          <td style="padding: 6px 0; color: {THEME['text_primary']}; font-weight: 600;">{escape_html(str(value))}</td>
        </tr>"""
        for label, value in rows
        if value not in (None, "")
    )
    return f"""
    <mj-table padding="8px 0 16px 0" font-size="15px">
      {cells}
    </mj-table>
    """


def _money(amount: Optional[float]) -> str:
    return f"€{(amount or 0):.2f}"


def booking_confirmation_template(
    customer_name: str,
    qr_code: str,
    service_name: str,
    tv_summary: str,
    address: str,
    scheduled: str,
    total_price: float,
    discount_amount: float,
    tracking_url: str,
) -> str:
    """Customer confirmation after a booking is placed"""
    price_rows = [("Total", _money(total_price))]
    if discount_amount:
        price_rows = [
            ("Subtotal", _money(total_price)),
            ("Referral discount", f"-{_money(discount_amount)}"),
            ("Total", _money(total_price - discount_amount)),
        ]

    details = _detail_rows(
        [
            ("Booking reference", qr_code),
            ("Service", service_name),
            ("TVs", tv_summary),
            ("Address", address),
            ("Preferred time", scheduled),
        ]
        + price_rows
    )

    content = f"""
    <mj-text>
      Hi {escape_html(customer_name)},
    </mj-text>

    <mj-text>
      Thanks for booking with tradesbook.ie. We're matching you with a vetted local installer
      and will email you as soon as one accepts your job.
    </mj-text>

    {details}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Keep your booking reference handy. You can track progress at any time with the link below.
    </mj-text>
    """

    return get_base_template(
        title="Your Booking is Confirmed",
        preview_text=f"Booking {qr_code} received",
        content_sections=content,
        cta_url=tracking_url,
        cta_label="Track Your Booking",
    )


def new_lead_template(
    installer_name: str,
    booking_id: int,
    service_name: str,
    tv_summary: str,
    county: Optional[str],
    scheduled: str,
    lead_fee: float,
    installer_earnings: float,
    distance_km: Optional[float] = None,
) -> str:
    """New job available for an installer"""
    details = _detail_rows(
        [
            ("Service", service_name),
            ("TVs", tv_summary),
            ("Area", county),
            ("Distance", f"{distance_km} km" if distance_km is not None else None),
            ("Preferred time", scheduled),
            ("You earn", _money(installer_earnings)),
            ("Lead fee", _money(lead_fee)),
        ]
    )

    content = f"""
    <mj-text>
      Hi {escape_html(installer_name)},
    </mj-text>

    <mj-text>
      A new TV installation request is available in your area.
    </mj-text>

    {details}

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Leads go to the first installer who accepts. The lead fee is charged to your wallet on acceptance.
    </mj-text>
    """

    return get_base_template(
        title="New Installation Request",
        preview_text=f"New {service_name} job near you",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/installer-dashboard?lead={booking_id}",
        cta_label="View Request",
        is_installer_email=True,
    )


def admin_new_booking_template(
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
) -> str:
    details = _detail_rows(
        [
            ("Booking", f"#{booking_id} ({qr_code})"),
            ("Customer", customer_name),
            ("Email", customer_email),
            ("Phone", customer_phone),
            ("Address", address),
            ("Service", service_name),
            ("TVs", tv_summary),
            ("Total", _money(total_price)),
            ("Platform fee", _money(app_fee)),
        ]
    )

    content = f"""
    <mj-text>
      A new booking has been placed.
    </mj-text>

    {details}
    """

    return get_base_template(
        title="New Booking Received",
        preview_text=f"Booking #{booking_id} from {customer_name}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/admin-dashboard?booking={booking_id}",
        cta_label="Open in Admin",
    )


def booking_status_update_template(
    customer_name: str,
    qr_code: str,
    status: str,
    tracking_url: str,
    message: Optional[str] = None,
) -> str:
    label = STATUS_LABELS.get(status, status.title())
    colour = THEME["danger"] if status == "cancelled" else THEME["primary_dark"]

    message_section = ""
    if message:
        message_section = f"""
        <mj-text color="{THEME['text_muted']}" font-size="15px">
          {escape_html(message)}
        </mj-text>
        """

    content = f"""
    <mj-text>
      Hi {escape_html(customer_name)},
    </mj-text>

    <mj-text>
      The status of booking <strong>{qr_code}</strong> is now
      <span style="color: {colour}; font-weight: 600;">{label}</span>.
    </mj-text>

    {message_section}
    """

    return get_base_template(
        title="Booking Update",
        preview_text=f"Booking {qr_code}: {label}",
        content_sections=content,
        cta_url=tracking_url,
        cta_label="View Booking",
    )


def installer_assigned_template(
    customer_name: str,
    qr_code: str,
    installer_name: str,
    business_name: str,
    installer_phone: Optional[str],
    scheduled: str,
    tracking_url: str,
) -> str:
    """Customer notice that an installer accepted the job"""
    details = _detail_rows(
        [
            ("Installer", installer_name),
            ("Business", business_name),
            ("Phone", installer_phone),
            ("Scheduled", scheduled),
            ("Reference", qr_code),
        ]
    )

    content = f"""
    <mj-text>
      Hi {escape_html(customer_name)},
    </mj-text>

    <mj-text>
      Good news! <strong>{escape_html(business_name)}</strong> has accepted your TV installation.
      They will be in touch to confirm the details.
    </mj-text>

    {details}
    """

    return get_base_template(
        title="Your Installer is Booked",
        preview_text=f"{business_name} accepted your booking",
        content_sections=content,
        cta_url=tracking_url,
        cta_label="Track Your Booking",
    )


def job_completed_template(customer_name: str, qr_code: str, business_name: str, review_url: str) -> str:
    content = f"""
    <mj-text>
      Hi {escape_html(customer_name)},
    </mj-text>

    <mj-text>
      {escape_html(business_name)} has marked your installation ({qr_code}) as complete.
      We hope you enjoy your new setup!
    </mj-text>

    <mj-text>
      Reviews help other customers choose the right installer. It only takes a minute.
    </mj-text>
    """

    return get_base_template(
        title="Installation Complete",
        preview_text="How did your installation go?",
        content_sections=content,
        cta_url=review_url,
        cta_label="Leave a Review",
    )


def installer_approved_template(installer_name: str, business_name: str) -> str:
    content = f"""
    <mj-text>
      Hi {escape_html(installer_name)},
    </mj-text>

    <mj-text>
      Your installer profile for <strong>{escape_html(business_name)}</strong> has been approved.
      You can now browse and accept installation requests in your area.
    </mj-text>

    <mj-text color="{THEME['text_muted']}" font-size="14px">
      Top up your wallet to cover lead fees before accepting your first job.
    </mj-text>
    """

    return get_base_template(
        title="You're Approved!",
        preview_text="Start accepting TV installation jobs",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/installer-dashboard",
        cta_label="Go to Dashboard",
        is_installer_email=True,
    )


def installer_rejected_template(installer_name: str, business_name: str, reason: Optional[str]) -> str:
    reason_section = ""
    if reason:
        reason_section = f"""
        <mj-text color="{THEME['text_muted']}">
          <strong>Reason:</strong> {escape_html(reason)}
        </mj-text>
        """

    content = f"""
    <mj-text>
      Hi {escape_html(installer_name)},
    </mj-text>

    <mj-text>
      Thank you for applying to join tradesbook.ie with {escape_html(business_name)}.
      Unfortunately we can't approve your profile at this time.
    </mj-text>

    {reason_section}

    <mj-text>
      You're welcome to update your profile and contact us if your circumstances change.
    </mj-text>
    """

    return get_base_template(
        title="Application Update",
        preview_text="An update on your installer application",
        content_sections=content,
        is_installer_email=True,
    )


def schedule_proposal_template(
    recipient_name: str,
    proposer_label: str,
    qr_code: str,
    proposed: str,
    message: Optional[str],
    action_url: str,
) -> str:
    """A booking party proposed a new date/time"""
    message_section = ""
    if message:
        message_section = f"""
        <mj-text color="{THEME['text_muted']}" font-size="15px">
          "{escape_html(message)}"
        </mj-text>
        """

    content = f"""
    <mj-text>
      Hi {escape_html(recipient_name)},
    </mj-text>

    <mj-text>
      {escape_html(proposer_label)} has proposed a new time for booking <strong>{qr_code}</strong>:
    </mj-text>

    <mj-text font-size="18px" font-weight="600" color="{THEME['text_primary']}">
      {proposed}
    </mj-text>

    {message_section}

    <mj-text>
      Please accept the new time or suggest an alternative.
    </mj-text>
    """

    return get_base_template(
        title="New Time Proposed",
        preview_text=f"New time proposed for {qr_code}",
        content_sections=content,
        cta_url=action_url,
        cta_label="Respond",
    )


def booking_reminder_template(
    recipient_name: str,
    qr_code: str,
    scheduled: str,
    address: str,
    other_party_label: str,
    other_party_name: str,
    other_party_phone: Optional[str],
    action_url: str,
    is_installer_email: bool = False,
) -> str:
    details = _detail_rows(
        [
            ("When", scheduled),
            ("Where", address),
            (other_party_label, other_party_name),
            ("Phone", other_party_phone),
        ]
    )

    content = f"""
    <mj-text>
      Hi {escape_html(recipient_name)},
    </mj-text>

    <mj-text>
      This is a reminder that installation <strong>{qr_code}</strong> is scheduled for tomorrow.
    </mj-text>

    {details}
    """

    return get_base_template(
        title="Installation Tomorrow",
        preview_text=f"Reminder: {qr_code} is tomorrow",
        content_sections=content,
        cta_url=action_url,
        cta_label="View Booking",
        is_installer_email=is_installer_email,
    )
