"""Tests for the admin dashboard endpoints."""
from datetime import date, timedelta

from tradesbook.models import Booking, BookingAddOn, BookingTvInstallation


def _accept(client, auth, installer, booking_id: int) -> dict:
    previous = auth.user_id
    auth.user_id = installer.user_id
    r = client.post(f"/api/installer/accept-request/{booking_id}")
    auth.user_id = previous
    assert r.status_code == 200, r.text
    return r.json()


class TestAccess:
    def test_customer_is_refused(self, client, auth, customer):
        auth.login(customer)
        assert client.get("/api/admin/stats").status_code == 403
        assert client.get("/api/admin/bookings").status_code == 403

    def test_guest_is_refused(self, client):
        assert client.get("/api/admin/stats").status_code == 401


class TestStats:
    def test_empty_platform(self, client, auth, admin):
        auth.login(admin)
        stats = client.get("/api/admin/stats").json()
        assert stats["totalBookings"] == 0
        assert stats["revenue"] == 0
        assert stats["avgBookingValue"] == 0
        assert stats["topServiceType"] is None

    def test_figures(self, client, auth, admin, create_booking):
        create_booking()
        create_booking()
        create_booking(serviceType="gold", tvSize=65, addons=[])

        auth.login(admin)
        stats = client.get("/api/admin/stats").json()
        assert stats["totalBookings"] == 3
        assert stats["monthlyBookings"] == 3
        assert stats["activeBookings"] == 3
        # Lead fees: silver 25 + silver 25 + gold 30
        assert stats["revenue"] == 80.0
        assert stats["appFees"] == 26.67
        assert stats["avgBookingValue"] == round((208 + 208 + 259) / 3, 2)
        assert stats["topServiceType"] == "silver"
        assert stats["totalUsers"] == 1


class TestBookings:
    def test_list_with_filter(self, client, auth, admin, customer, create_booking):
        first = create_booking(user=customer)
        create_booking()
        auth.login(customer)
        client.post(f"/api/bookings/{first['id']}/cancel")

        auth.login(admin)
        assert len(client.get("/api/admin/bookings").json()) == 2
        cancelled = client.get("/api/admin/bookings", params={"status": "cancelled"}).json()
        assert [b["id"] for b in cancelled] == [first["id"]]
        assert client.get("/api/admin/bookings", params={"status": "lost"}).status_code == 400

    def test_override_status(self, client, auth, admin, create_booking, sent_emails):
        booking = create_booking()
        auth.login(admin)
        sent_emails.reset_mock()

        r = client.patch(
            f"/api/admin/bookings/{booking['id']}/status",
            json={"status": "confirmed", "message": "Confirmed by phone"},
        )
        assert r.status_code == 200
        assert r.json()["status"] == "confirmed"
        assert sent_emails.await_args.kwargs["to"] == booking["contactEmail"]

        # Admin overrides are not bound to the lifecycle order
        r = client.patch(f"/api/admin/bookings/{booking['id']}/status", json={"status": "pending"})
        assert r.status_code == 200
        assert r.json()["status"] == "pending"

    def test_override_unknown_status(self, client, auth, admin, create_booking):
        booking = create_booking()
        auth.login(admin)
        r = client.patch(f"/api/admin/bookings/{booking['id']}/status", json={"status": "archived"})
        assert r.status_code == 400

    def test_override_refused_once_work_started(self, client, auth, admin, create_booking, make_installer):
        installer = make_installer()
        booking = create_booking()
        _accept(client, auth, installer, booking["id"])

        auth.login(admin)
        r = client.patch(f"/api/admin/bookings/{booking['id']}/status", json={"status": "open"})
        assert r.status_code == 400

    def test_admin_cancel_refunds_lead_fee(self, client, auth, db, admin, create_booking, make_installer):
        installer = make_installer()
        booking = create_booking()
        _accept(client, auth, installer, booking["id"])

        # Put the booking back into an editable state first
        db.query(Booking).filter(Booking.id == booking["id"]).update({"status": "confirmed"})
        db.commit()

        auth.login(admin)
        r = client.patch(f"/api/admin/bookings/{booking['id']}/status", json={"status": "cancelled"})
        assert r.status_code == 200
        assert r.json()["cancelledAt"] is not None

        db.refresh(installer)
        assert installer.wallet_balance == 100.0

    def test_delete_booking(self, client, auth, db, admin, create_booking):
        booking = create_booking()
        auth.login(admin)
        r = client.delete(f"/api/admin/bookings/{booking['id']}")
        assert r.status_code == 200
        assert db.query(Booking).count() == 0
        assert db.query(BookingTvInstallation).count() == 0
        assert db.query(BookingAddOn).count() == 0
        assert client.delete(f"/api/admin/bookings/{booking['id']}").status_code == 404

    def test_cannot_delete_assigned_booking(self, client, auth, admin, create_booking, make_installer):
        installer = make_installer()
        booking = create_booking()
        _accept(client, auth, installer, booking["id"])

        auth.login(admin)
        assert client.delete(f"/api/admin/bookings/{booking['id']}").status_code == 400


class TestInstallers:
    def test_approve(self, client, auth, admin, make_installer, sent_emails):
        pending = make_installer(approval_status="pending")
        auth.login(admin)

        listed = client.get("/api/admin/installers", params={"status": "pending"}).json()
        assert [i["id"] for i in listed] == [pending.id]

        r = client.patch(f"/api/admin/installers/{pending.id}/approve")
        assert r.status_code == 200
        assert r.json()["approvalStatus"] == "approved"
        assert sent_emails.await_args.kwargs["to"] == pending.email
        assert "approved" in sent_emails.await_args.kwargs["subject"].lower()

    def test_reject_with_reason(self, client, auth, admin, make_installer, sent_emails):
        pending = make_installer(approval_status="pending")
        auth.login(admin)
        r = client.patch(f"/api/admin/installers/{pending.id}/reject", json={"reason": "Missing insurance"})
        assert r.status_code == 200
        assert r.json()["approvalStatus"] == "rejected"
        assert r.json()["rejectionReason"] == "Missing insurance"
        assert "Missing insurance" in sent_emails.await_args.kwargs["mjml_content"]

    def test_unknown_installer(self, client, auth, admin):
        auth.login(admin)
        assert client.patch("/api/admin/installers/77/approve").status_code == 404


class TestUsersAndAutomation:
    def test_users_with_booking_counts(self, client, auth, admin, customer, create_booking):
        create_booking(user=customer)
        create_booking(user=customer)
        auth.login(admin)
        users = {u["id"]: u for u in client.get("/api/admin/users").json()}
        assert users[customer.id]["bookingCount"] == 2
        assert users[admin.id]["bookingCount"] == 0

    def test_run_status_automation(self, client, auth, db, admin, create_booking):
        stale = create_booking()
        fresh = create_booking()
        db.query(Booking).filter(Booking.id == stale["id"]).update(
            {"scheduled_date": date.today() - timedelta(days=3)}
        )
        db.commit()

        auth.login(admin)
        r = client.post("/api/admin/status-automation/run")
        assert r.status_code == 200
        assert r.json() == {"checked": 1, "cancelled": 1, "bookingIds": [stale["id"]]}

        statuses = dict(db.query(Booking.id, Booking.status).all())
        assert statuses[stale["id"]] == "cancelled"
        assert statuses[fresh["id"]] == "open"
