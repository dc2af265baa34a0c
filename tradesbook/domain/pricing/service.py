"""Pricing service - Catalog lookups, quotes, referral codes and admin pricing"""

import logging
from typing import Iterable, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...cache import CATALOG_TTL, cache, catalog_key, invalidate_catalog_cache
from ...config import COMMISSION_RATE
from ...models import AddOnService, ReferralCode, ServiceTier, User, WallMountPricing
from .calculator import (
    PricingError,
    PricingResult,
    apply_discount,
    calculate_booking_pricing,
    calculate_multi_tv_pricing,
)
from .catalog import MOUNT_TYPES, TIME_SLOTS, TV_SIZES, WALL_TYPES, tier_fits_tv_size
from .repository import PricingRepository
from .schemas import (
    AddOnUpdate,
    FeeStructureCreate,
    QuoteRequest,
    ServiceTierUpdate,
    WallMountPricingCreate,
    WallMountPricingUpdate,
)

logger = logging.getLogger(__name__)


def tier_to_dict(tier: ServiceTier) -> dict:
    return {
        "id": tier.id,
        "key": tier.key,
        "name": tier.name,
        "description": tier.description,
        "category": tier.category,
        "tvSizeMin": tier.tv_size_min,
        "tvSizeMax": tier.tv_size_max,
        "basePrice": tier.base_price,
        "isActive": bool(tier.is_active),
    }


def addon_to_dict(addon: AddOnService) -> dict:
    return {
        "id": addon.id,
        "key": addon.key,
        "name": addon.name,
        "description": addon.description,
        "price": addon.price,
        "isActive": bool(addon.is_active),
    }


def wall_mount_to_dict(option: WallMountPricing) -> dict:
    return {
        "id": option.id,
        "key": option.key,
        "name": option.name,
        "description": option.description,
        "price": option.price,
        "isActive": bool(option.is_active),
        "displayOrder": option.display_order or 0,
    }


def breakdown_to_dict(result: PricingResult) -> dict:
    return {
        "basePrice": result.base_price,
        "addonTotal": result.addon_total,
        "totalPrice": result.total_price,
        "appFee": result.app_fee,
        "installerEarnings": result.installer_earnings,
        "feePercentage": result.fee_percentage,
        "addons": result.addons,
    }


class PricingService:
    """Service layer for catalog and pricing logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PricingRepository()

    # ========================================================================
    # Public catalog
    # ========================================================================

    def list_service_tiers(self, tv_size: Optional[int] = None) -> list[dict]:
        key = catalog_key("service_tiers", tv_size)
        cached = cache.get(key)
        if cached is not None:
            return cached

        tiers = []
        for tier in self.repo.get_service_tiers(self.db):
            if tv_size is not None and not tier_fits_tv_size(
                {"min_tv_size": tier.tv_size_min, "max_tv_size": tier.tv_size_max}, tv_size
            ):
                continue
            tiers.append(tier_to_dict(tier))

        cache.set(key, tiers, CATALOG_TTL)
        return tiers

    def list_addons(self) -> list[dict]:
        key = catalog_key("addons")
        cached = cache.get(key)
        if cached is not None:
            return cached

        addons = [addon_to_dict(a) for a in self.repo.get_addons(self.db)]
        cache.set(key, addons, CATALOG_TTL)
        return addons

    def list_wall_mount_pricing(self, active_only: bool = True) -> list[dict]:
        if not active_only:
            return [wall_mount_to_dict(o) for o in self.repo.get_wall_mount_pricing(self.db, False)]

        key = catalog_key("wall_mount_pricing")
        cached = cache.get(key)
        if cached is not None:
            return cached

        options = [wall_mount_to_dict(o) for o in self.repo.get_wall_mount_pricing(self.db)]
        cache.set(key, options, CATALOG_TTL)
        return options

    @staticmethod
    def booking_options() -> dict:
        return {
            "wallTypes": WALL_TYPES,
            "mountTypes": MOUNT_TYPES,
            "tvSizes": TV_SIZES,
            "timeSlots": TIME_SLOTS,
        }

    # ========================================================================
    # Calculation
    # ========================================================================

    def tier_catalog(self) -> dict[str, dict]:
        """Active tiers in the shape the calculator expects"""
        return {
            t.key: {
                "key": t.key,
                "name": t.name,
                "category": t.category,
                "min_tv_size": t.tv_size_min,
                "max_tv_size": t.tv_size_max,
                "price": t.base_price,
            }
            for t in self.repo.get_service_tiers(self.db)
        }

    def addon_catalog(self) -> dict[str, dict]:
        return {
            a.key: {"key": a.key, "name": a.name, "price": a.price}
            for a in self.repo.get_addons(self.db)
        }

    def wall_mount_catalog(self) -> dict[str, dict]:
        return {
            o.key: {"key": o.key, "name": o.name, "price": o.price}
            for o in self.repo.get_wall_mount_pricing(self.db)
        }

    def price_tvs(self, tvs: Iterable[dict]) -> tuple[PricingResult, list[PricingResult]]:
        """
        Price a list of TV configurations ({serviceType, tvSize, addons,
        needsWallMount, wallMountOption}). A chosen wall-mount bracket is
        charged as an add-on line.

        Raises:
            PricingError: unknown tier/add-on or size mismatch
        """
        tiers = self.tier_catalog()
        addons = {**self.addon_catalog(), **self.wall_mount_catalog()}
        fee_overrides = self.repo.get_active_fee_percentages(self.db)

        results = []
        for tv in tvs:
            tier_key = tv.get("serviceType")
            rate = fee_overrides.get(tier_key)
            addon_keys = list(tv.get("addons") or [])
            if tv.get("needsWallMount") and tv.get("wallMountOption"):
                addon_keys.append(tv["wallMountOption"])
            results.append(
                calculate_booking_pricing(
                    tier_key,
                    addon_keys,
                    tiers=tiers,
                    addons=addons,
                    commission_rate=(rate / 100) if rate is not None else COMMISSION_RATE,
                    tv_size=tv.get("tvSize"),
                )
            )
        return calculate_multi_tv_pricing(results), results

    def quote(self, data: QuoteRequest) -> dict:
        try:
            total, per_tv = self.price_tvs(tv.model_dump() for tv in data.tvs)
        except PricingError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        discount_pct = 0.0
        referral_code = None
        if data.referralCode:
            referral = self.get_valid_referral(data.referralCode)
            if not referral:
                raise HTTPException(status_code=400, detail="Invalid or expired referral code")
            discount_pct = referral.discount_percentage
            referral_code = referral.code

        discount_amount, final_price = apply_discount(total.total_price, discount_pct)

        return {
            **breakdown_to_dict(total),
            "tvs": [breakdown_to_dict(r) for r in per_tv],
            "discountPercentage": discount_pct,
            "discountAmount": discount_amount,
            "finalPrice": final_price,
            "referralCode": referral_code,
        }

    # ========================================================================
    # Referral codes
    # ========================================================================

    def get_valid_referral(self, code: str) -> Optional[ReferralCode]:
        if not code or not code.strip():
            return None
        referral = self.repo.get_referral_code(self.db, code)
        if not referral or not referral.is_active:
            return None
        if referral.max_uses is not None and referral.usage_count >= referral.max_uses:
            return None
        return referral

    def validate_referral(self, code: str) -> dict:
        referral = self.get_valid_referral(code)
        if not referral:
            return {"valid": False, "code": (code or "").strip().upper(), "discountPercentage": 0}
        return {
            "valid": True,
            "code": referral.code,
            "discountPercentage": referral.discount_percentage,
        }

    def record_referral_use(self, referral: ReferralCode) -> None:
        referral.usage_count = (referral.usage_count or 0) + 1
        self.db.commit()

    def list_referral_codes(self) -> list[ReferralCode]:
        return self.repo.list_referral_codes(self.db)

    def create_referral_code(
        self, code: str, discount_percentage: float, owner: Optional[User], max_uses: Optional[int]
    ) -> ReferralCode:
        normalized = code.strip().upper()
        if self.repo.get_referral_code(self.db, normalized):
            raise HTTPException(status_code=409, detail="Referral code already exists")
        referral = self.repo.create_referral_code(
            self.db,
            code=normalized,
            discount_percentage=discount_percentage,
            owner_user_id=owner.id if owner else None,
            max_uses=max_uses,
        )
        logger.info(f"✅ Referral code {normalized} created ({discount_percentage}% off)")
        return referral

    def deactivate_referral_code(self, referral_id: int) -> None:
        referral = self.db.query(ReferralCode).filter(ReferralCode.id == referral_id).first()
        if not referral:
            raise HTTPException(status_code=404, detail="Referral code not found")
        referral.is_active = False
        self.db.commit()

    # ========================================================================
    # Admin pricing
    # ========================================================================

    def create_wall_mount_option(self, data: WallMountPricingCreate) -> WallMountPricing:
        if self.repo.get_wall_mount_option_by_key(self.db, data.key):
            raise HTTPException(status_code=409, detail=f"Wall mount option '{data.key}' already exists")
        option = self.repo.create_wall_mount_option(
            self.db,
            key=data.key,
            name=data.name,
            description=data.description,
            price=data.price,
            is_active=data.isActive,
            display_order=data.displayOrder,
        )
        invalidate_catalog_cache()
        logger.info(f"✅ Wall mount option created: {option.key}")
        return option

    def update_wall_mount_option(self, option_id: int, data: WallMountPricingUpdate) -> WallMountPricing:
        option = self.repo.get_wall_mount_option(self.db, option_id)
        if not option:
            raise HTTPException(status_code=404, detail="Wall mount option not found")
        option = self.repo.update(
            self.db,
            option,
            name=data.name,
            description=data.description,
            price=data.price,
            is_active=data.isActive,
            display_order=data.displayOrder,
        )
        invalidate_catalog_cache()
        return option

    def delete_wall_mount_option(self, option_id: int) -> None:
        option = self.repo.get_wall_mount_option(self.db, option_id)
        if not option:
            raise HTTPException(status_code=404, detail="Wall mount option not found")
        self.repo.delete(self.db, option)
        invalidate_catalog_cache()

    def update_service_tier(self, key: str, data: ServiceTierUpdate) -> ServiceTier:
        tier = self.repo.get_service_tier(self.db, key)
        if not tier:
            raise HTTPException(status_code=404, detail="Service tier not found")
        tier = self.repo.update(
            self.db,
            tier,
            name=data.name,
            description=data.description,
            base_price=data.basePrice,
            is_active=data.isActive,
        )
        invalidate_catalog_cache()
        logger.info(f"✅ Service tier {key} updated")
        return tier

    def update_addon(self, key: str, data: AddOnUpdate) -> AddOnService:
        addon = self.repo.get_addon(self.db, key)
        if not addon:
            raise HTTPException(status_code=404, detail="Add-on not found")
        addon = self.repo.update(
            self.db,
            addon,
            name=data.name,
            description=data.description,
            price=data.price,
            is_active=data.isActive,
        )
        invalidate_catalog_cache()
        return addon

    def set_fee_structure(self, data: FeeStructureCreate) -> dict:
        tier = self.repo.get_service_tier(self.db, data.serviceTierKey)
        if not tier:
            raise HTTPException(status_code=404, detail="Service tier not found")
        fee = self.repo.upsert_fee_structure(self.db, tier, data.feePercentage, data.isActive)
        return {
            "id": fee.id,
            "serviceTierKey": tier.key,
            "feePercentage": fee.fee_percentage,
            "isActive": bool(fee.is_active),
        }

    def initialize_catalog(self) -> dict:
        created = self.repo.seed_catalog(self.db)
        invalidate_catalog_cache()
        logger.info(f"📊 Pricing catalog initialized: {created}")
        return created
