"""Tests for the MJML email templates and email sending."""
from unittest.mock import patch

import pytest

from tradesbook import email_service
from tradesbook.email_service import EmailError, compile_mjml_to_html
from tradesbook.email_service import send_email as real_send_email
from tradesbook.email_templates import (
    booking_confirmation_template,
    installer_rejected_template,
    new_lead_template,
)


def _confirmation(**overrides) -> str:
    values = {
        "customer_name": "Aoife Murphy",
        "qr_code": "TB-ABCDE12345",
        "service_name": "Silver Wall Mount",
        "tv_summary": '55" TV',
        "address": "12 Main Street, Swords",
        "scheduled": "Mon 02 Mar 2026, 11:00 - 13:00",
        "total_price": 208.0,
        "discount_amount": 0,
        "tracking_url": "https://api.tradesbook.ie/qr-tracking/TB-ABCDE12345",
    }
    values.update(overrides)
    return booking_confirmation_template(**values)


class TestTemplates:
    def test_confirmation_contents(self):
        mjml = _confirmation()
        assert "TB-ABCDE12345" in mjml
        assert "€208.00" in mjml
        assert "Referral discount" not in mjml
        assert "Track Your Booking" in mjml

    def test_confirmation_with_discount(self):
        mjml = _confirmation(discount_amount=20.8)
        assert "-€20.80" in mjml
        assert "€187.20" in mjml

    def test_user_text_is_escaped(self):
        mjml = _confirmation(customer_name="<img src=x onerror=alert(1)>")
        assert "<img src=x" not in mjml
        assert "&lt;img" in mjml

    def test_lead_skips_unknown_distance(self):
        mjml = new_lead_template("Ciaran", 7, "Gold", '65" TV', "Dublin", "To be arranged", 30.0, 220.15)
        assert "Distance" not in mjml
        assert "€220.15" in mjml
        assert "lead=7" in mjml

        with_distance = new_lead_template("Ciaran", 7, "Gold", '65" TV', "Dublin", "Soon", 30.0, 220.15, 12.4)
        assert "12.4 km" in with_distance

    def test_rejection_reason_optional(self):
        assert "Reason:" not in installer_rejected_template("Niamh", "Cork Mounts", None)
        assert "No insurance" in installer_rejected_template("Niamh", "Cork Mounts", "No insurance")

    def test_templates_compile(self):
        html = compile_mjml_to_html(_confirmation())
        assert "<html" in html.lower()
        assert "TB-ABCDE12345" in html


class TestSendEmail:
    async def test_requires_api_key(self):
        with pytest.raises(EmailError):
            await real_send_email(to="a@example.ie", subject="Hi", mjml_content=_confirmation())

    async def test_sends_through_resend(self, monkeypatch):
        monkeypatch.setattr(email_service, "RESEND_API_KEY", "re_test")
        with patch.object(email_service.resend.Emails, "send", return_value={"id": "email-1"}) as send:
            result = await real_send_email(to="a@example.ie", subject="Hi", mjml_content=_confirmation())

        assert result == {"id": "email-1"}
        params = send.call_args.args[0]
        assert params["to"] == ["a@example.ie"]
        assert params["subject"] == "Hi"
        assert "TB-ABCDE12345" in params["html"]

    async def test_provider_failure(self, monkeypatch):
        monkeypatch.setattr(email_service, "RESEND_API_KEY", "re_test")
        with patch.object(email_service.resend.Emails, "send", side_effect=RuntimeError("rejected")):
            with pytest.raises(EmailError):
                await real_send_email(to="a@example.ie", subject="Hi", mjml_content=_confirmation())
