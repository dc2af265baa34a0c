"""Pricing router - Public catalog, quotes, referral codes and admin pricing"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...models import ReferralCode, User
from ...rate_limiter import create_rate_limiter
from .schemas import (
    AddOnResponse,
    AddOnUpdate,
    BookingOptionsResponse,
    FeeStructureCreate,
    FeeStructureResponse,
    QuoteRequest,
    QuoteResponse,
    ReferralCodeCreate,
    ReferralCodeResponse,
    ReferralValidateRequest,
    ReferralValidateResponse,
    ServiceTierResponse,
    ServiceTierUpdate,
    WallMountPricingCreate,
    WallMountPricingResponse,
    WallMountPricingUpdate,
)
from .service import PricingService, addon_to_dict, tier_to_dict, wall_mount_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Pricing"])

rate_limit_referral = create_rate_limiter(limit=30, window_seconds=600, key_prefix="referral_validate")


def get_pricing_service(db: Session = Depends(get_db)) -> PricingService:
    """Dependency injection for PricingService"""
    return PricingService(db)


def _referral_response(referral: ReferralCode) -> ReferralCodeResponse:
    return ReferralCodeResponse(
        id=referral.id,
        code=referral.code,
        discountPercentage=referral.discount_percentage,
        usageCount=referral.usage_count or 0,
        maxUses=referral.max_uses,
        isActive=bool(referral.is_active),
    )


# ============================================================================
# PUBLIC CATALOG
# ============================================================================


@router.get("/service-tiers", response_model=list[ServiceTierResponse])
async def get_service_tiers(
    tvSize: Optional[int] = Query(None, ge=10, le=150),
    service: PricingService = Depends(get_pricing_service),
):
    """Active service tiers, optionally only those available for a TV size"""
    return service.list_service_tiers(tvSize)


@router.get("/addons", response_model=list[AddOnResponse])
async def get_addons(service: PricingService = Depends(get_pricing_service)):
    return service.list_addons()


@router.get("/wall-mount-pricing", response_model=list[WallMountPricingResponse])
async def get_wall_mount_pricing(service: PricingService = Depends(get_pricing_service)):
    """Active wall-mount options ordered for display"""
    return service.list_wall_mount_pricing()


@router.get("/booking-options", response_model=BookingOptionsResponse)
async def get_booking_options():
    return PricingService.booking_options()


@router.post("/pricing/quote", response_model=QuoteResponse)
async def get_quote(
    data: QuoteRequest,
    service: PricingService = Depends(get_pricing_service),
):
    """Price breakdown for one or more TVs with an optional referral discount"""
    return service.quote(data)


@router.post("/referral/validate", response_model=ReferralValidateResponse)
async def validate_referral_code(
    data: ReferralValidateRequest,
    service: PricingService = Depends(get_pricing_service),
    _: None = Depends(rate_limit_referral),
):
    return service.validate_referral(data.code)


# ============================================================================
# ADMIN PRICING
# ============================================================================


@router.get("/admin/wall-mount-pricing", response_model=list[WallMountPricingResponse])
async def admin_get_wall_mount_pricing(
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    """All wall-mount options including inactive ones"""
    return service.list_wall_mount_pricing(active_only=False)


@router.post("/admin/wall-mount-pricing", response_model=WallMountPricingResponse, status_code=201)
async def admin_create_wall_mount_pricing(
    data: WallMountPricingCreate,
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    return wall_mount_to_dict(service.create_wall_mount_option(data))


@router.put("/admin/wall-mount-pricing/{option_id}", response_model=WallMountPricingResponse)
async def admin_update_wall_mount_pricing(
    option_id: int,
    data: WallMountPricingUpdate,
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    return wall_mount_to_dict(service.update_wall_mount_option(option_id, data))


@router.delete("/admin/wall-mount-pricing/{option_id}")
async def admin_delete_wall_mount_pricing(
    option_id: int,
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    service.delete_wall_mount_option(option_id)
    return {"message": "Wall mount option deleted"}


@router.patch("/admin/service-tiers/{key}", response_model=ServiceTierResponse)
async def admin_update_service_tier(
    key: str,
    data: ServiceTierUpdate,
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    return tier_to_dict(service.update_service_tier(key, data))


@router.patch("/admin/addons/{key}", response_model=AddOnResponse)
async def admin_update_addon(
    key: str,
    data: AddOnUpdate,
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    return addon_to_dict(service.update_addon(key, data))


@router.post("/admin/fee-structures", response_model=FeeStructureResponse)
async def admin_set_fee_structure(
    data: FeeStructureCreate,
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    """Override the platform commission for one tier"""
    return service.set_fee_structure(data)


@router.post("/admin/pricing/initialize")
async def admin_initialize_pricing(
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    """Insert any missing default catalog rows"""
    created = service.initialize_catalog()
    return {"message": "Pricing catalog initialized", "created": created}


@router.get("/admin/referral-codes", response_model=list[ReferralCodeResponse])
async def admin_list_referral_codes(
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    return [_referral_response(r) for r in service.list_referral_codes()]


@router.post("/admin/referral-codes", response_model=ReferralCodeResponse, status_code=201)
async def admin_create_referral_code(
    data: ReferralCodeCreate,
    admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    referral = service.create_referral_code(data.code, data.discountPercentage, admin, data.maxUses)
    return _referral_response(referral)


@router.delete("/admin/referral-codes/{referral_id}")
async def admin_deactivate_referral_code(
    referral_id: int,
    _admin: User = Depends(get_current_admin),
    service: PricingService = Depends(get_pricing_service),
):
    service.deactivate_referral_code(referral_id)
    return {"message": "Referral code deactivated"}
