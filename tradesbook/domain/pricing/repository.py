"""Pricing repository - Database operations for the catalog"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import AddOnService, FeeStructure, ReferralCode, ServiceTier, WallMountPricing
from .catalog import ADDONS, DEFAULT_WALL_MOUNT_PRICING, SERVICE_TIERS


class PricingRepository:
    """Repository for catalog database operations"""

    @staticmethod
    def get_service_tiers(db: Session, active_only: bool = True) -> list[ServiceTier]:
        query = db.query(ServiceTier)
        if active_only:
            query = query.filter(ServiceTier.is_active.is_(True))
        return query.order_by(ServiceTier.display_order, ServiceTier.id).all()

    @staticmethod
    def get_service_tier(db: Session, key: str) -> Optional[ServiceTier]:
        return db.query(ServiceTier).filter(ServiceTier.key == key).first()

    @staticmethod
    def get_addons(db: Session, active_only: bool = True) -> list[AddOnService]:
        query = db.query(AddOnService)
        if active_only:
            query = query.filter(AddOnService.is_active.is_(True))
        return query.order_by(AddOnService.id).all()

    @staticmethod
    def get_addon(db: Session, key: str) -> Optional[AddOnService]:
        return db.query(AddOnService).filter(AddOnService.key == key).first()

    @staticmethod
    def get_wall_mount_pricing(db: Session, active_only: bool = True) -> list[WallMountPricing]:
        query = db.query(WallMountPricing)
        if active_only:
            query = query.filter(WallMountPricing.is_active.is_(True))
        return query.order_by(WallMountPricing.display_order, WallMountPricing.id).all()

    @staticmethod
    def get_wall_mount_option(db: Session, option_id: int) -> Optional[WallMountPricing]:
        return db.query(WallMountPricing).filter(WallMountPricing.id == option_id).first()

    @staticmethod
    def get_wall_mount_option_by_key(db: Session, key: str) -> Optional[WallMountPricing]:
        return db.query(WallMountPricing).filter(WallMountPricing.key == key).first()

    @staticmethod
    def create_wall_mount_option(db: Session, **data) -> WallMountPricing:
        option = WallMountPricing(**data)
        db.add(option)
        db.commit()
        db.refresh(option)
        return option

    @staticmethod
    def update(db: Session, obj, **updates):
        for key, value in updates.items():
            if value is not None and hasattr(obj, key):
                setattr(obj, key, value)
        db.commit()
        db.refresh(obj)
        return obj

    @staticmethod
    def delete(db: Session, obj) -> None:
        db.delete(obj)
        db.commit()

    @staticmethod
    def get_fee_structure(db: Session, service_tier_id: int) -> Optional[FeeStructure]:
        return db.query(FeeStructure).filter(FeeStructure.service_tier_id == service_tier_id).first()

    @staticmethod
    def upsert_fee_structure(db: Session, tier: ServiceTier, fee_percentage: float, is_active: bool) -> FeeStructure:
        fee = PricingRepository.get_fee_structure(db, tier.id)
        if fee:
            fee.fee_percentage = fee_percentage
            fee.is_active = is_active
        else:
            fee = FeeStructure(service_tier_id=tier.id, fee_percentage=fee_percentage, is_active=is_active)
            db.add(fee)
        db.commit()
        db.refresh(fee)
        return fee

    @staticmethod
    def get_active_fee_percentages(db: Session) -> dict[str, float]:
        """Per-tier commission overrides keyed by tier key"""
        rows = (
            db.query(ServiceTier.key, FeeStructure.fee_percentage)
            .join(FeeStructure, FeeStructure.service_tier_id == ServiceTier.id)
            .filter(FeeStructure.is_active.is_(True))
            .all()
        )
        return {key: pct for key, pct in rows}

    # ----------------------------------------------------------------
    # Referral codes
    # ----------------------------------------------------------------

    @staticmethod
    def get_referral_code(db: Session, code: str) -> Optional[ReferralCode]:
        return db.query(ReferralCode).filter(ReferralCode.code == code.strip().upper()).first()

    @staticmethod
    def list_referral_codes(db: Session) -> list[ReferralCode]:
        return db.query(ReferralCode).order_by(ReferralCode.created_at.desc()).all()

    @staticmethod
    def create_referral_code(db: Session, **data) -> ReferralCode:
        referral = ReferralCode(**data)
        db.add(referral)
        db.commit()
        db.refresh(referral)
        return referral

    # ----------------------------------------------------------------
    # Seeding
    # ----------------------------------------------------------------

    @staticmethod
    def seed_catalog(db: Session) -> dict:
        """Insert default tiers, add-ons and wall-mount options that don't exist yet"""
        created = {"service_tiers": 0, "addons": 0, "wall_mount_pricing": 0}

        existing_tiers = {t.key for t in db.query(ServiceTier.key).all()}
        for order, tier in enumerate(SERVICE_TIERS.values()):
            if tier["key"] in existing_tiers:
                continue
            db.add(
                ServiceTier(
                    key=tier["key"],
                    name=tier["name"],
                    description=tier["description"],
                    category=tier["category"],
                    tv_size_min=tier["min_tv_size"],
                    tv_size_max=tier["max_tv_size"],
                    base_price=tier["price"],
                    display_order=order,
                )
            )
            created["service_tiers"] += 1

        existing_addons = {a.key for a in db.query(AddOnService.key).all()}
        for addon in ADDONS.values():
            if addon["key"] in existing_addons:
                continue
            db.add(
                AddOnService(
                    key=addon["key"],
                    name=addon["name"],
                    description=addon["description"],
                    price=addon["price"],
                )
            )
            created["addons"] += 1

        existing_mounts = {m.key for m in db.query(WallMountPricing.key).all()}
        for option in DEFAULT_WALL_MOUNT_PRICING:
            if option["key"] in existing_mounts:
                continue
            db.add(WallMountPricing(**option))
            created["wall_mount_pricing"] += 1

        db.commit()
        return created
