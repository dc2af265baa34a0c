"""Tests for booking creation, access, cancellation, negotiations and reviews."""
import re
from datetime import date, timedelta

from tradesbook.models import Booking, ReferralCode
from conftest import booking_payload


def _future(days: int) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def _as_installer(auth, installer):
    auth.user_id = installer.user_id


def _assign(client, auth, installer, booking_id: int) -> dict:
    previous = auth.user_id
    _as_installer(auth, installer)
    r = client.post(f"/api/installer/accept-request/{booking_id}")
    auth.user_id = previous
    assert r.status_code == 200, r.text
    return r.json()


def _complete(client, auth, installer, job_id: int) -> None:
    previous = auth.user_id
    _as_installer(auth, installer)
    for status in ("in-progress", "completed"):
        r = client.post(f"/api/installer/update-job-status/{job_id}", json={"status": status})
        assert r.status_code == 200, r.text
    auth.user_id = previous


class TestCreateBooking:
    def test_guest_booking(self, client, sent_emails):
        r = client.post("/api/bookings", json=booking_payload())
        assert r.status_code == 201, r.text
        body = r.json()
        assert re.fullmatch(r"TB-[A-Z0-9]{10}", body["qrCode"])
        assert body["status"] == "open"
        assert body["customerId"] is None
        assert body["contactPhone"] == "+353871234567"
        assert body["eircode"] == "K67 X2Y3"
        assert body["county"] == "Dublin"
        assert body["basePrice"] == 159.0
        assert body["addonTotal"] == 49.0
        assert body["totalPrice"] == 208.0
        assert body["appFee"] == 31.2
        assert body["finalPrice"] == 208.0
        assert body["timeWindow"] == "11:00 - 13:00"
        assert body["trackingUrl"].endswith(f"/qr-tracking/{body['qrCode']}")
        assert body["latitude"] is None

        recipients = [call.kwargs["to"] for call in sent_emails.await_args_list]
        assert "aoife@example.ie" in recipients

    def test_signed_in_booking(self, client, auth, customer):
        auth.login(customer)
        body = client.post("/api/bookings", json=booking_payload()).json()
        assert body["customerId"] == customer.id

    def test_multi_tv_booking(self, client):
        payload = booking_payload(
            tvs=[
                {
                    "tvSize": 65,
                    "serviceType": "gold",
                    "wallType": "concrete",
                    "mountType": "full-motion",
                    "location": "Living room",
                    "needsWallMount": True,
                    "wallMountOption": "full-motion-mount",
                    "addons": ["cable-concealment"],
                },
                {
                    "tvSize": 32,
                    "serviceType": "table-top-small",
                    "wallType": "other",
                    "mountType": "fixed",
                    "location": "Kitchen",
                },
            ]
        )
        r = client.post("/api/bookings", json=payload)
        assert r.status_code == 201, r.text
        body = r.json()
        assert body["tvQuantity"] == 2
        assert body["serviceType"] == "gold"
        assert body["basePrice"] == 348.0
        assert body["addonTotal"] == 114.0
        assert body["totalPrice"] == 462.0
        assert [tv["location"] for tv in body["tvs"]] == ["Living room", "Kitchen"]
        assert {a["key"] for a in body["addons"]} == {"cable-concealment", "full-motion-mount"}

    def test_referral_code_applied_and_counted(self, client, db):
        db.add(ReferralCode(code="NEWHOME", discount_percentage=10))
        db.commit()
        body = client.post("/api/bookings", json=booking_payload(referralCode="newhome")).json()
        assert body["discountAmount"] == 20.8
        assert body["finalPrice"] == 187.2
        assert body["referralCode"] == "NEWHOME"

        referral = db.query(ReferralCode).filter(ReferralCode.code == "NEWHOME").one()
        db.refresh(referral)
        assert referral.usage_count == 1

    def test_invalid_referral_code(self, client):
        r = client.post("/api/bookings", json=booking_payload(referralCode="BOGUS"))
        assert r.status_code == 400

    def test_tier_must_fit_tv_size(self, client):
        r = client.post("/api/bookings", json=booking_payload(serviceType="bronze", tvSize=75))
        assert r.status_code == 400

    def test_unknown_addon(self, client):
        r = client.post("/api/bookings", json=booking_payload(addons=["gold-plating"]))
        assert r.status_code == 400

    def test_validation_errors(self, client):
        assert client.post("/api/bookings", json=booking_payload(contactPhone="555")).status_code == 422
        assert client.post("/api/bookings", json=booking_payload(contactEmail="nope")).status_code == 422
        assert client.post("/api/bookings", json=booking_payload(timeSlot="10:30")).status_code == 422
        assert client.post("/api/bookings", json=booking_payload(wallType="glass")).status_code == 422
        past = booking_payload(preferredDate=(date.today() - timedelta(days=1)).isoformat())
        assert client.post("/api/bookings", json=past).status_code == 422

    def test_requires_a_tv(self, client):
        r = client.post("/api/bookings", json=booking_payload(serviceType=None))
        assert r.status_code == 422

    def test_wall_mount_option_required(self, client):
        r = client.post("/api/bookings", json=booking_payload(needsWallMount=True))
        assert r.status_code == 422

    def test_create_is_rate_limited(self, client):
        statuses = [client.post("/api/bookings", json=booking_payload()).status_code for _ in range(11)]
        assert statuses[:10] == [201] * 10
        assert statuses[10] == 429

    def test_email_failure_does_not_fail_booking(self, client, sent_emails):
        sent_emails.side_effect = RuntimeError("smtp down")
        r = client.post("/api/bookings", json=booking_payload())
        assert r.status_code == 201

    def test_lead_emails_to_approved_installers(self, client, make_installer, sent_emails):
        approved = make_installer()
        make_installer(approval_status="pending")
        client.post("/api/bookings", json=booking_payload())
        recipients = [call.kwargs["to"] for call in sent_emails.await_args_list]
        assert approved.email in recipients
        assert len(recipients) == 3


class TestBookingAccess:
    def test_customer_bookings_include_guest_bookings_by_email(self, client, auth, make_user, create_booking):
        user = make_user(email="aoife@example.ie")
        create_booking()
        create_booking(user=user)
        create_booking(contactEmail="someone.else@example.ie")

        auth.login(user)
        r = client.get("/api/customer/bookings")
        assert r.status_code == 200
        assert len(r.json()) == 2

    def test_requires_authentication(self, client, create_booking):
        booking = create_booking()
        assert client.get(f"/api/bookings/{booking['id']}").status_code == 401

    def test_owner_stranger_and_admin(self, client, auth, customer, admin, make_user, create_booking):
        booking = create_booking(user=customer)

        auth.login(customer)
        assert client.get(f"/api/bookings/{booking['id']}").status_code == 200

        auth.login(make_user())
        assert client.get(f"/api/bookings/{booking['id']}").status_code == 403

        auth.login(admin)
        assert client.get(f"/api/bookings/{booking['id']}").status_code == 200
        assert client.get("/api/bookings/9999").status_code == 404

    def test_assigned_installer_can_view(self, client, auth, customer, make_installer, create_booking):
        installer = make_installer()
        booking = create_booking(user=customer)
        _assign(client, auth, installer, booking["id"])

        _as_installer(auth, installer)
        r = client.get(f"/api/bookings/{booking['id']}")
        assert r.status_code == 200
        assert r.json()["installer"]["businessName"] == installer.business_name

    def test_status_endpoint(self, client, auth, customer, create_booking):
        booking = create_booking(user=customer)
        auth.login(customer)
        r = client.get(f"/api/bookings/{booking['id']}/status")
        assert r.status_code == 200
        assert r.json()["status"] == "open"
        assert r.json()["installerAssigned"] is False


class TestCancelBooking:
    def test_customer_cancels(self, client, auth, customer, create_booking):
        booking = create_booking(user=customer)
        auth.login(customer)
        r = client.post(f"/api/bookings/{booking['id']}/cancel", json={"reason": "Moving house"})
        assert r.status_code == 200
        assert r.json()["status"] == "cancelled"
        assert r.json()["cancelledAt"] is not None
        assert "Moving house" in r.json()["customerNotes"]

        again = client.post(f"/api/bookings/{booking['id']}/cancel")
        assert again.status_code == 400

    def test_stranger_cannot_cancel(self, client, auth, customer, make_user, create_booking):
        booking = create_booking(user=customer)
        auth.login(make_user())
        assert client.post(f"/api/bookings/{booking['id']}/cancel").status_code == 403

    def test_cancel_refunds_lead_fee(self, client, auth, db, customer, make_installer, create_booking):
        installer = make_installer(wallet_balance=50.0)
        booking = create_booking(user=customer)
        _assign(client, auth, installer, booking["id"])
        db.refresh(installer)
        assert installer.wallet_balance == 25.0

        auth.login(customer)
        assert client.post(f"/api/bookings/{booking['id']}/cancel").status_code == 200

        db.refresh(installer)
        assert installer.wallet_balance == 50.0
        assert installer.wallet_total_spent == 0.0

    def test_cannot_cancel_in_progress(self, client, auth, customer, make_installer, create_booking):
        installer = make_installer()
        booking = create_booking(user=customer)
        job = _assign(client, auth, installer, booking["id"])

        _as_installer(auth, installer)
        client.post(f"/api/installer/update-job-status/{job['id']}", json={"status": "in-progress"})

        auth.login(customer)
        assert client.post(f"/api/bookings/{booking['id']}/cancel").status_code == 400


class TestScheduleNegotiations:
    def test_propose_and_accept(self, client, auth, db, customer, make_installer, create_booking):
        installer = make_installer()
        booking = create_booking(user=customer)
        _assign(client, auth, installer, booking["id"])

        auth.login(customer)
        r = client.post(
            "/api/schedule-negotiations",
            json={"bookingId": booking["id"], "proposedDate": _future(10), "proposedTimeSlot": "15:00"},
        )
        assert r.status_code == 201, r.text
        proposal = r.json()
        assert proposal["proposedBy"] == "customer"
        assert proposal["timeWindow"] == "15:00 - 17:00"

        duplicate = client.post(
            "/api/schedule-negotiations",
            json={"bookingId": booking["id"], "proposedDate": _future(11), "proposedTimeSlot": "09:00"},
        )
        assert duplicate.status_code == 409

        own = client.patch(f"/api/schedule-negotiations/{proposal['id']}", json={"action": "accept"})
        assert own.status_code == 403

        _as_installer(auth, installer)
        r = client.patch(f"/api/schedule-negotiations/{proposal['id']}", json={"action": "accept"})
        assert r.status_code == 200
        assert r.json()["negotiation"]["status"] == "accepted"
        assert r.json()["counterProposal"] is None

        stored = db.query(Booking).filter(Booking.id == booking["id"]).one()
        assert stored.scheduled_date.isoformat() == _future(10)
        assert stored.time_slot == "15:00"

    def test_counter_proposal(self, client, auth, customer, make_installer, create_booking):
        installer = make_installer()
        booking = create_booking(user=customer)
        _assign(client, auth, installer, booking["id"])

        _as_installer(auth, installer)
        proposal = client.post(
            "/api/schedule-negotiations",
            json={"bookingId": booking["id"], "proposedDate": _future(5), "proposedTimeSlot": "09:00"},
        ).json()

        auth.login(customer)
        r = client.patch(
            f"/api/schedule-negotiations/{proposal['id']}",
            json={"action": "counter", "counterDate": _future(6), "counterTimeSlot": "17:00"},
        )
        assert r.status_code == 200
        counter = r.json()["counterProposal"]
        assert r.json()["negotiation"]["status"] == "countered"
        assert counter["proposedBy"] == "customer"
        assert counter["status"] == "pending"

        history = client.get(f"/api/bookings/{booking['id']}/schedule-negotiations").json()
        assert len(history) == 2

    def test_counter_requires_date_and_slot(self, client, auth, customer, make_installer, create_booking):
        installer = make_installer()
        booking = create_booking(user=customer)
        _assign(client, auth, installer, booking["id"])
        _as_installer(auth, installer)
        proposal = client.post(
            "/api/schedule-negotiations",
            json={"bookingId": booking["id"], "proposedDate": _future(5), "proposedTimeSlot": "09:00"},
        ).json()

        auth.login(customer)
        r = client.patch(f"/api/schedule-negotiations/{proposal['id']}", json={"action": "counter"})
        assert r.status_code == 422

    def test_cancellation_closes_pending_proposals(self, client, auth, db, customer, make_installer, create_booking):
        installer = make_installer()
        booking = create_booking(user=customer)
        _assign(client, auth, installer, booking["id"])

        auth.login(customer)
        proposal = client.post(
            "/api/schedule-negotiations",
            json={"bookingId": booking["id"], "proposedDate": _future(9), "proposedTimeSlot": "13:00"},
        ).json()
        assert client.post(f"/api/bookings/{booking['id']}/cancel").status_code == 200

        history = client.get(f"/api/bookings/{booking['id']}/schedule-negotiations").json()
        assert [n["status"] for n in history] == ["rejected"]
        assert history[0]["responseMessage"] == "Booking was cancelled"

        _as_installer(auth, installer)
        r = client.patch(f"/api/schedule-negotiations/{proposal['id']}", json={"action": "accept"})
        assert r.status_code == 400

        stored = db.query(Booking).filter(Booking.id == booking["id"]).one()
        assert stored.status == "cancelled"
        assert stored.scheduled_date.isoformat() == booking["scheduledDate"]

    def test_cannot_respond_once_work_started(self, client, auth, db, customer, make_installer, create_booking):
        installer = make_installer()
        booking = create_booking(user=customer)
        job = _assign(client, auth, installer, booking["id"])

        auth.login(customer)
        proposal = client.post(
            "/api/schedule-negotiations",
            json={"bookingId": booking["id"], "proposedDate": _future(9), "proposedTimeSlot": "13:00"},
        ).json()

        _as_installer(auth, installer)
        client.post(f"/api/installer/update-job-status/{job['id']}", json={"status": "in-progress"})
        r = client.patch(f"/api/schedule-negotiations/{proposal['id']}", json={"action": "accept"})
        assert r.status_code == 400
        assert db.query(Booking).filter(Booking.id == booking["id"]).one().time_slot == "11:00"

    def test_outsider_cannot_propose(self, client, auth, customer, make_user, create_booking):
        booking = create_booking(user=customer)
        auth.login(make_user())
        r = client.post(
            "/api/schedule-negotiations",
            json={"bookingId": booking["id"], "proposedDate": _future(3), "proposedTimeSlot": "09:00"},
        )
        assert r.status_code == 403


class TestReviews:
    def test_review_completed_booking(self, client, auth, customer, make_installer, create_booking):
        installer = make_installer()
        booking = create_booking(user=customer)
        job = _assign(client, auth, installer, booking["id"])

        auth.login(customer)
        early = client.post("/api/reviews", json={"bookingId": booking["id"], "rating": 5})
        assert early.status_code == 400

        _complete(client, auth, installer, job["id"])

        auth.login(customer)
        r = client.post(
            "/api/reviews",
            json={"bookingId": booking["id"], "rating": 4, "title": "Tidy job", "comment": "<b>Great</b> work"},
        )
        assert r.status_code == 201, r.text
        assert r.json()["customerName"] == "Aoife"
        assert "<b>" not in r.json()["comment"]

        assert client.post("/api/reviews", json={"bookingId": booking["id"], "rating": 5}).status_code == 409

        reviews = client.get(f"/api/installers/{installer.id}/reviews").json()
        assert len(reviews) == 1
        rating = client.get(f"/api/installers/{installer.id}/rating").json()
        assert rating == {"installerId": installer.id, "averageRating": 4.0, "reviewCount": 1}

    def test_rating_must_be_in_range(self, client, auth, customer):
        auth.login(customer)
        assert client.post("/api/reviews", json={"bookingId": 1, "rating": 6}).status_code == 422

    def test_unknown_installer(self, client):
        assert client.get("/api/installers/999/rating").status_code == 404
