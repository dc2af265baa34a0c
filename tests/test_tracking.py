"""Tests for public QR tracking and QR image generation."""
import base64


class TestTrackingJson:
    def test_lookup_by_reference(self, client, create_booking):
        booking = create_booking()
        r = client.get(f"/api/bookings/qr/{booking['qrCode']}")
        assert r.status_code == 200
        body = r.json()
        assert body["booking"]["id"] == booking["id"]
        assert "contactEmail" not in body["booking"]
        assert body["contact"]["email"] == "aoife@example.ie"
        assert body["installer"] is None
        assert body["jobAssignment"] is None

    def test_assigned_booking_shows_installer(self, client, auth, create_booking, make_installer):
        installer = make_installer()
        booking = create_booking()
        auth.user_id = installer.user_id
        client.post(f"/api/installer/accept-request/{booking['id']}")
        auth.logout()

        body = client.get(f"/api/bookings/qr/{booking['qrCode']}").json()
        assert body["installer"]["businessName"] == "Dublin TV Mounts"
        assert body["jobAssignment"]["status"] == "accepted"

    def test_unknown_reference(self, client):
        assert client.get("/api/bookings/qr/TB-0000000000").status_code == 404


class TestTrackingPage:
    def test_renders_html(self, client, create_booking):
        booking = create_booking(customerNotes="Gate code 1234")
        r = client.get(f"/qr-tracking/{booking['qrCode']}")
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/html")
        assert booking["qrCode"] in r.text
        assert "12 Main Street" in r.text
        assert "€208.00" in r.text
        assert "data:image/png;base64," in r.text
        # Contact details stay off the public page
        assert "aoife@example.ie" not in r.text

    def test_not_found_page(self, client):
        r = client.get("/qr-tracking/TB-<script>NOPE")
        assert r.status_code == 404
        assert "Booking not found" in r.text
        assert "<script>NOPE" not in r.text
        assert "TB-&lt;script&gt;NOPE" in r.text

    def test_html_csp_allows_inline_styles(self, client, create_booking):
        booking = create_booking()
        r = client.get(f"/qr-tracking/{booking['qrCode']}")
        assert "style-src 'unsafe-inline'" in r.headers["content-security-policy"]


class TestQrCode:
    def test_data_url(self, client):
        r = client.get("/api/qr-code/track/TB-ABC")
        assert r.status_code == 200
        body = r.json()
        assert body["text"] == "track/TB-ABC"
        assert body["qrCodeUrl"].startswith("data:image/png;base64,")
        png = base64.b64decode(body["qrCodeUrl"].split(",", 1)[1])
        assert png[:8] == b"\x89PNG\r\n\x1a\n"

    def test_text_too_long(self, client):
        assert client.get("/api/qr-code/" + "x" * 501).status_code == 400


class TestSecurityHeaders:
    def test_json_responses(self, client):
        r = client.get("/api/addons")
        assert r.headers["x-frame-options"] == "SAMEORIGIN"
        assert r.headers["x-content-type-options"] == "nosniff"
        assert r.headers["content-security-policy"].startswith("default-src 'none'")
        assert "unsafe-inline" not in r.headers["content-security-policy"]
        assert "camera=()" in r.headers["permissions-policy"]
