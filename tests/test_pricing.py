"""Tests for the pricing catalog, calculator and pricing endpoints."""
import pytest

from tradesbook.domain.pricing.calculator import (
    PricingError,
    apply_discount,
    calculate_booking_pricing,
    calculate_multi_tv_pricing,
    resolve_addons,
)
from tradesbook.domain.pricing.catalog import (
    DEFAULT_LEAD_FEE,
    format_time_window,
    get_lead_fee,
    get_service_tiers_for_tv_size,
)
from tradesbook.models import ReferralCode


class TestCatalog:
    def test_tiers_for_small_tv(self):
        keys = {t["key"] for t in get_service_tiers_for_tv_size(32)}
        assert keys == {"table-top-small", "bronze"}

    def test_unbounded_tiers_cover_large_tvs(self):
        keys = {t["key"] for t in get_service_tiers_for_tv_size(98)}
        assert keys == {"table-top-large", "silver-large", "gold-large"}

    def test_range_bounds_are_inclusive(self):
        keys = {t["key"] for t in get_service_tiers_for_tv_size(85)}
        assert "silver" in keys
        assert "silver-large" not in keys

    def test_lead_fee_lookup(self):
        assert get_lead_fee("gold") == 30.0
        assert get_lead_fee("silver-large") == 25.0
        assert get_lead_fee("unknown-tier") == DEFAULT_LEAD_FEE
        assert get_lead_fee(None) == DEFAULT_LEAD_FEE

    def test_time_window(self):
        assert format_time_window("09:00") == "09:00 - 11:00"
        assert format_time_window(None) == ""


class TestCalculator:
    def test_single_tv_with_addon(self):
        result = calculate_booking_pricing("silver", ["cable-concealment"])
        assert result.base_price == 159.0
        assert result.addon_total == 49.0
        assert result.total_price == 208.0
        assert result.app_fee == 31.2
        assert result.installer_earnings == 176.8
        assert result.fee_percentage == 15.0

    def test_total_is_base_plus_addons(self):
        result = calculate_booking_pricing("gold", ["smart-tv-config", "multi-device-setup"])
        assert result.total_price == result.base_price + result.addon_total

    def test_duplicate_addons_counted_once(self):
        resolved = resolve_addons(["smart-tv-config", "smart-tv-config"])
        assert [a["key"] for a in resolved] == ["smart-tv-config"]

    def test_unknown_tier(self):
        with pytest.raises(PricingError):
            calculate_booking_pricing("platinum-plus")

    def test_unknown_addon(self):
        with pytest.raises(PricingError):
            calculate_booking_pricing("bronze", ["laser-show"])

    def test_size_outside_tier_range(self):
        with pytest.raises(PricingError):
            calculate_booking_pricing("bronze", tv_size=65)

    def test_custom_commission(self):
        result = calculate_booking_pricing("bronze", commission_rate=0.2)
        assert result.app_fee == 21.8
        assert result.fee_percentage == 20.0

    def test_multi_tv_sums(self):
        first = calculate_booking_pricing("silver", ["cable-concealment"])
        second = calculate_booking_pricing("bronze")
        total = calculate_multi_tv_pricing([first, second])
        assert total.base_price == 268.0
        assert total.addon_total == 49.0
        assert total.total_price == 317.0
        assert total.app_fee == round(first.app_fee + second.app_fee, 2)

    def test_multi_tv_requires_a_tv(self):
        with pytest.raises(PricingError):
            calculate_multi_tv_pricing([])

    def test_discount(self):
        assert apply_discount(200.0, 10) == (20.0, 180.0)
        assert apply_discount(200.0, None) == (0.0, 200.0)

    def test_discount_out_of_range(self):
        with pytest.raises(PricingError):
            apply_discount(100.0, 150)


class TestPricingApi:
    def test_service_tiers_filtered_by_size(self, client):
        r = client.get("/api/service-tiers", params={"tvSize": 55})
        assert r.status_code == 200
        keys = {t["key"] for t in r.json()}
        assert keys == {"table-top-large", "silver", "gold"}

    def test_addons_and_wall_mounts(self, client):
        addons = client.get("/api/addons").json()
        mounts = client.get("/api/wall-mount-pricing").json()
        assert any(a["key"] == "cable-concealment" for a in addons)
        assert [m["key"] for m in mounts][0] == "fixed-mount"

    def test_booking_options(self, client):
        r = client.get("/api/booking-options")
        assert r.status_code == 200
        assert "concrete" in r.json()["wallTypes"]
        assert r.json()["timeSlots"][0] == "09:00"

    def test_quote_with_wall_mount(self, client):
        r = client.post(
            "/api/pricing/quote",
            json={
                "tvs": [
                    {
                        "serviceType": "silver",
                        "tvSize": 55,
                        "addons": ["cable-concealment"],
                        "needsWallMount": True,
                        "wallMountOption": "tilting-mount",
                    }
                ]
            },
        )
        assert r.status_code == 200
        body = r.json()
        assert body["basePrice"] == 159.0
        assert body["addonTotal"] == 94.0
        assert body["totalPrice"] == 253.0
        assert body["finalPrice"] == 253.0

    def test_quote_unknown_tier(self, client):
        r = client.post("/api/pricing/quote", json={"tvs": [{"serviceType": "diamond"}]})
        assert r.status_code == 400

    def test_quote_with_referral(self, client, db):
        db.add(ReferralCode(code="WELCOME10", discount_percentage=10))
        db.commit()
        r = client.post(
            "/api/pricing/quote",
            json={"tvs": [{"serviceType": "bronze"}], "referralCode": "welcome10"},
        )
        assert r.status_code == 200
        assert r.json()["discountAmount"] == 10.9
        assert r.json()["finalPrice"] == 98.1

    def test_referral_validate(self, client, db):
        db.add(ReferralCode(code="FRIEND", discount_percentage=5, max_uses=1, usage_count=1))
        db.add(ReferralCode(code="SPRING", discount_percentage=15))
        db.commit()
        assert client.post("/api/referral/validate", json={"code": "spring"}).json()["valid"] is True
        used_up = client.post("/api/referral/validate", json={"code": "FRIEND"}).json()
        assert used_up["valid"] is False
        assert used_up["discountPercentage"] == 0


class TestAdminPricing:
    def test_requires_admin(self, client, auth, customer):
        auth.login(customer)
        r = client.get("/api/admin/wall-mount-pricing")
        assert r.status_code == 403

    def test_wall_mount_crud(self, client, auth, admin):
        auth.login(admin)
        r = client.post(
            "/api/admin/wall-mount-pricing",
            json={"key": "Ceiling Mount", "name": "Ceiling Mount", "price": 120},
        )
        assert r.status_code == 201
        option = r.json()
        assert option["key"] == "ceiling-mount"

        duplicate = client.post(
            "/api/admin/wall-mount-pricing",
            json={"key": "ceiling-mount", "name": "Again", "price": 1},
        )
        assert duplicate.status_code == 409

        r = client.put(f"/api/admin/wall-mount-pricing/{option['id']}", json={"price": 99, "isActive": False})
        assert r.status_code == 200
        assert r.json()["price"] == 99

        public = client.get("/api/wall-mount-pricing").json()
        assert "ceiling-mount" not in [m["key"] for m in public]

        assert client.delete(f"/api/admin/wall-mount-pricing/{option['id']}").status_code == 200
        assert client.delete(f"/api/admin/wall-mount-pricing/{option['id']}").status_code == 404

    def test_fee_structure_override_changes_app_fee(self, client, auth, admin):
        auth.login(admin)
        r = client.post("/api/admin/fee-structures", json={"serviceTierKey": "bronze", "feePercentage": 20})
        assert r.status_code == 200

        quote = client.post("/api/pricing/quote", json={"tvs": [{"serviceType": "bronze"}]}).json()
        assert quote["appFee"] == 21.8
        assert quote["feePercentage"] == 20.0

    def test_service_tier_price_update(self, client, auth, admin):
        auth.login(admin)
        r = client.patch("/api/admin/service-tiers/bronze", json={"basePrice": 119})
        assert r.status_code == 200
        quote = client.post("/api/pricing/quote", json={"tvs": [{"serviceType": "bronze"}]}).json()
        assert quote["basePrice"] == 119.0

    def test_referral_codes(self, client, auth, admin):
        auth.login(admin)
        r = client.post("/api/admin/referral-codes", json={"code": "summer25", "discountPercentage": 25})
        assert r.status_code == 201
        assert r.json()["code"] == "SUMMER25"
        assert client.post(
            "/api/admin/referral-codes", json={"code": "SUMMER25", "discountPercentage": 5}
        ).status_code == 409

        referral_id = r.json()["id"]
        assert client.delete(f"/api/admin/referral-codes/{referral_id}").status_code == 200
        assert client.post("/api/referral/validate", json={"code": "SUMMER25"}).json()["valid"] is False
