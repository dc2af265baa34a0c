"""Tests for the booking wizard state machine and draft endpoints."""
from datetime import date, timedelta

import pytest

from tradesbook.domain.wizard.state import (
    TOTAL_STEPS,
    TvConfig,
    WizardError,
    WizardState,
    missing_fields_for_step,
    next_step,
    previous_step,
    select_tv,
    set_schedule,
    set_tv_quantity,
    submission_errors,
    update_current_tv,
)
from tradesbook.models import Booking, ReferralCode

COMPLETE_TV = {
    "tvSize": 55,
    "serviceType": "silver",
    "wallType": "drywall",
    "mountType": "tilting",
    "needsWallMount": False,
}


def _tomorrow() -> date:
    return date.today() + timedelta(days=1)


class TestStateMachine:
    def test_optional_photo_step(self):
        state = next_step(WizardState())
        assert state.step == 2

    def test_next_refuses_missing_fields(self):
        state = WizardState(step=3)
        with pytest.raises(WizardError) as exc:
            next_step(state)
        assert exc.value.missing == ["tvSize"]

    def test_transitions_do_not_mutate_input(self):
        state = WizardState(step=3, tvs=[TvConfig(tvSize=55)])
        advanced = next_step(state)
        assert state.step == 3
        assert advanced.step == 4

    def test_step_is_capped(self):
        state = WizardState(
            step=TOTAL_STEPS,
            contact={"name": "A", "email": "a@example.ie", "phone": "+353871234567", "address": "1 Main St"},
        )
        assert next_step(state).step == TOTAL_STEPS

    def test_back_stops_at_first_step(self):
        assert previous_step(WizardState(step=1)).step == 1
        assert previous_step(WizardState(step=5)).step == 4

    def test_wall_mount_option_required_when_needed(self):
        state = WizardState(step=6, tvs=[TvConfig(mountType="fixed", needsWallMount=True)])
        assert missing_fields_for_step(state) == ["wallMountOption"]

    def test_needs_wall_mount_must_be_answered(self):
        state = WizardState(step=6, tvs=[TvConfig(mountType="fixed")])
        assert missing_fields_for_step(state) == ["needsWallMount"]

    def test_multi_tv_requires_location(self):
        state = set_tv_quantity(WizardState(step=3), 2)
        state = update_current_tv(state, {"tvSize": 65})
        assert missing_fields_for_step(state) == ["location"]

    def test_multi_tv_loops_to_next_incomplete_tv(self):
        state = set_tv_quantity(WizardState(), 2)
        state = update_current_tv(state, {**COMPLETE_TV, "location": "Living room"})
        state = state.model_copy(update={"step": 7})

        advanced = next_step(state)
        assert advanced.step == 1
        assert advanced.currentTvIndex == 1

    def test_multi_tv_continues_once_all_complete(self):
        state = set_tv_quantity(WizardState(), 2)
        state = update_current_tv(state, {**COMPLETE_TV, "location": "Living room"})
        state = select_tv(state, 1)
        state = update_current_tv(state, {**COMPLETE_TV, "location": "Bedroom"})
        state = state.model_copy(update={"step": 7})

        advanced = next_step(state)
        assert advanced.step == 8
        assert advanced.currentTvIndex == 1

    def test_quantity_resize_keeps_configs_and_clamps_index(self):
        state = set_tv_quantity(WizardState(), 3)
        state = update_current_tv(state, {"tvSize": 43})
        state = select_tv(state, 2)
        shrunk = set_tv_quantity(state, 2)
        assert len(shrunk.tvs) == 2
        assert shrunk.tvs[0].tvSize == 43
        assert shrunk.currentTvIndex == 1

    def test_quantity_bounds(self):
        with pytest.raises(WizardError):
            set_tv_quantity(WizardState(), 0)
        with pytest.raises(WizardError):
            set_tv_quantity(WizardState(), 11)

    def test_size_change_clears_tier_that_no_longer_fits(self):
        state = update_current_tv(WizardState(), {"tvSize": 55, "serviceType": "silver"})
        state = update_current_tv(state, {"tvSize": 32})
        assert state.current_tv.serviceType is None

    def test_tier_that_does_not_fit_is_refused(self):
        state = update_current_tv(WizardState(), {"tvSize": 32})
        with pytest.raises(WizardError):
            update_current_tv(state, {"serviceType": "gold"})

    def test_unknown_values_are_refused(self):
        with pytest.raises(WizardError):
            update_current_tv(WizardState(), {"wallType": "glass"})
        with pytest.raises(WizardError):
            update_current_tv(WizardState(), {"colour": "black"})

    def test_select_tv_out_of_range(self):
        with pytest.raises(WizardError):
            select_tv(WizardState(), 1)

    def test_schedule_rejects_past_dates_and_unknown_slots(self):
        with pytest.raises(WizardError):
            set_schedule(WizardState(), date.today() - timedelta(days=1), "09:00")
        with pytest.raises(WizardError):
            set_schedule(WizardState(), _tomorrow(), "08:00")

    def test_submission_errors_list_everything(self):
        errors = submission_errors(WizardState())
        assert "tvs[0].tvSize" in errors
        assert "preferredDate" in errors
        assert "contact.email" in errors


def _walk_single_tv(client, draft_id: str) -> dict:
    """Fill in and advance through every step for one TV"""
    client.post(f"/api/booking-drafts/{draft_id}/next")
    client.post(f"/api/booking-drafts/{draft_id}/next")
    updates = [
        {"tv": {"tvSize": 55}},
        {"tv": {"serviceType": "silver"}},
        {"tv": {"wallType": "brick"}},
        {"tv": {"mountType": "tilting", "needsWallMount": True, "wallMountOption": "tilting-mount"}},
        {"tv": {"addons": ["cable-concealment"]}},
        {"preferredDate": _tomorrow().isoformat(), "timeSlot": "13:00"},
        {
            "contact": {
                "name": "Sean Kelly",
                "email": "Sean@Example.ie",
                "phone": "086 765 4321",
                "address": "4 Strand Road, Sandymount, Dublin 4",
            }
        },
    ]
    body = None
    for update in updates:
        r = client.patch(f"/api/booking-drafts/{draft_id}", json=update)
        assert r.status_code == 200, r.text
        body = r.json()
        if body["state"]["step"] < 9:
            body = client.post(f"/api/booking-drafts/{draft_id}/next").json()
    return body


class TestDraftApi:
    def test_create_draft_as_guest(self, client):
        r = client.post("/api/booking-drafts")
        assert r.status_code == 201
        body = r.json()
        assert body["state"]["step"] == 1
        assert body["stepName"] == "photo"
        assert body["canProceed"] is True
        assert body["totals"] is None

    def test_signed_in_draft_prefills_contact(self, client, auth, customer):
        auth.login(customer)
        body = client.post("/api/booking-drafts").json()
        assert body["state"]["contact"]["email"] == customer.email
        assert body["state"]["contact"]["name"] == customer.full_name

    def test_next_reports_missing_fields(self, client):
        draft_id = client.post("/api/booking-drafts").json()["id"]
        client.post(f"/api/booking-drafts/{draft_id}/next")
        client.post(f"/api/booking-drafts/{draft_id}/next")
        r = client.post(f"/api/booking-drafts/{draft_id}/next")
        assert r.status_code == 400
        assert r.json()["detail"]["missingFields"] == ["tvSize"]

    def test_totals_follow_the_configuration(self, client):
        draft_id = client.post("/api/booking-drafts").json()["id"]
        body = client.patch(
            f"/api/booking-drafts/{draft_id}",
            json={"tv": {"tvSize": 55, "serviceType": "silver", "addons": ["smart-tv-config"]}},
        ).json()
        assert body["totals"]["basePrice"] == 159.0
        assert body["totals"]["addonTotal"] == 39.0
        assert body["totals"]["finalPrice"] == 198.0

    def test_referral_discount_in_totals(self, client, db):
        db.add(ReferralCode(code="TEN", discount_percentage=10))
        db.commit()
        draft_id = client.post("/api/booking-drafts").json()["id"]
        client.patch(f"/api/booking-drafts/{draft_id}", json={"tv": {"tvSize": 40, "serviceType": "bronze"}})
        body = client.patch(f"/api/booking-drafts/{draft_id}", json={"referralCode": "ten"}).json()
        assert body["state"]["referralCode"] == "TEN"
        assert body["totals"]["discountAmount"] == 10.9

    def test_invalid_referral_code(self, client):
        draft_id = client.post("/api/booking-drafts").json()["id"]
        r = client.patch(f"/api/booking-drafts/{draft_id}", json={"referralCode": "NOPE"})
        assert r.status_code == 400

    def test_unknown_addon_rejected(self, client):
        draft_id = client.post("/api/booking-drafts").json()["id"]
        r = client.patch(f"/api/booking-drafts/{draft_id}", json={"tv": {"addons": ["hot-tub"]}})
        assert r.status_code == 400

    def test_invalid_contact_phone(self, client):
        draft_id = client.post("/api/booking-drafts").json()["id"]
        r = client.patch(f"/api/booking-drafts/{draft_id}", json={"contact": {"phone": "12"}})
        assert r.status_code == 400

    def test_back_and_select(self, client):
        draft_id = client.post("/api/booking-drafts").json()["id"]
        client.patch(f"/api/booking-drafts/{draft_id}", json={"tvQuantity": 2})
        body = client.post(f"/api/booking-drafts/{draft_id}/tvs/1/select").json()
        assert body["state"]["currentTvIndex"] == 1
        assert body["state"]["step"] == 3
        assert client.post(f"/api/booking-drafts/{draft_id}/back").json()["state"]["step"] == 2
        assert client.post(f"/api/booking-drafts/{draft_id}/tvs/5/select").status_code == 400

    def test_unknown_draft(self, client):
        assert client.get("/api/booking-drafts/does-not-exist").status_code == 404

    def test_draft_owned_by_another_user(self, client, auth, make_user):
        owner = make_user()
        auth.login(owner)
        draft_id = client.post("/api/booking-drafts").json()["id"]

        auth.login(make_user())
        assert client.get(f"/api/booking-drafts/{draft_id}").status_code == 403
        auth.logout()
        assert client.get(f"/api/booking-drafts/{draft_id}").status_code == 403

    def test_submit_incomplete_draft(self, client):
        draft_id = client.post("/api/booking-drafts").json()["id"]
        r = client.post(f"/api/booking-drafts/{draft_id}/submit")
        assert r.status_code == 400
        assert "contact.phone" in r.json()["detail"]["missingFields"]

    def test_full_walk_and_submit(self, client, db, sent_emails):
        draft_id = client.post("/api/booking-drafts").json()["id"]
        body = _walk_single_tv(client, draft_id)
        assert body["state"]["step"] == 9
        assert body["canProceed"] is True
        assert body["state"]["contact"]["email"] == "sean@example.ie"
        assert body["state"]["contact"]["phone"] == "+353867654321"

        r = client.post(f"/api/booking-drafts/{draft_id}/submit")
        assert r.status_code == 201, r.text
        result = r.json()
        assert result["draft"]["status"] == "submitted"
        booking = result["booking"]
        assert result["draft"]["bookingId"] == booking["id"]
        assert booking["status"] == "open"
        assert booking["wallType"] == "brick"
        # silver 159 + cable concealment 49 + tilting bracket 45
        assert booking["totalPrice"] == 253.0
        assert booking["tvs"][0]["wallMountOption"] == "tilting-mount"

        assert db.query(Booking).count() == 1
        assert sent_emails.await_count >= 2

        again = client.post(f"/api/booking-drafts/{draft_id}/submit")
        assert again.status_code == 409
        assert client.patch(f"/api/booking-drafts/{draft_id}", json={"customerNotes": "hi"}).status_code == 409
