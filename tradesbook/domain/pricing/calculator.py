"""Booking price calculation

Pure functions over catalog mappings so the same arithmetic is used for
wizard previews, quotes and booking creation.
"""

from dataclasses import asdict, dataclass, field
from typing import Iterable, Optional

from .catalog import ADDONS, COMMISSION_RATE, SERVICE_TIERS, tier_fits_tv_size


class PricingError(ValueError):
    """Raised for unknown tiers/add-ons or invalid discounts"""


@dataclass
class PricingResult:
    base_price: float
    addon_total: float
    total_price: float
    app_fee: float
    installer_earnings: float
    fee_percentage: float
    addons: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _money(value: float) -> float:
    return round(float(value), 2)


def resolve_addons(addon_keys: Optional[Iterable[str]], addons: Optional[dict[str, dict]] = None) -> list[dict]:
    """Look up add-ons by key, keeping first-seen order and dropping duplicates"""
    addons = ADDONS if addons is None else addons
    resolved = []
    seen = set()
    for key in addon_keys or []:
        if key in seen:
            continue
        if key not in addons:
            raise PricingError(f"Unknown add-on: {key}")
        seen.add(key)
        addon = addons[key]
        resolved.append({"key": key, "name": addon["name"], "price": float(addon["price"])})
    return resolved


def calculate_booking_pricing(
    tier_key: str,
    addon_keys: Optional[Iterable[str]] = None,
    tiers: Optional[dict[str, dict]] = None,
    addons: Optional[dict[str, dict]] = None,
    commission_rate: float = COMMISSION_RATE,
    tv_size: Optional[int] = None,
) -> PricingResult:
    """
    Price one TV installation.

    total_price is always base_price + addon_total. The platform commission
    (app_fee) is carried inside the total, so the installer earns the rest.

    Raises:
        PricingError: unknown tier or add-on, or a TV size outside the tier range
    """
    tiers = SERVICE_TIERS if tiers is None else tiers
    tier = tiers.get(tier_key)
    if not tier:
        raise PricingError(f"Unknown service type: {tier_key}")

    if tv_size is not None and not tier_fits_tv_size(tier, tv_size):
        raise PricingError(f'Service "{tier_key}" is not available for {tv_size}" TVs')

    resolved = resolve_addons(addon_keys, addons)

    base_price = float(tier["price"])
    addon_total = sum(a["price"] for a in resolved)
    total_price = base_price + addon_total
    app_fee = total_price * commission_rate

    return PricingResult(
        base_price=_money(base_price),
        addon_total=_money(addon_total),
        total_price=_money(total_price),
        app_fee=_money(app_fee),
        installer_earnings=_money(total_price - app_fee),
        fee_percentage=round(commission_rate * 100, 2),
        addons=resolved,
    )


def calculate_multi_tv_pricing(tv_results: list[PricingResult]) -> PricingResult:
    """Sum per-TV pricing into a booking level result"""
    if not tv_results:
        raise PricingError("At least one TV is required")

    base_price = sum(r.base_price for r in tv_results)
    addon_total = sum(r.addon_total for r in tv_results)
    app_fee = sum(r.app_fee for r in tv_results)
    total_price = base_price + addon_total

    return PricingResult(
        base_price=_money(base_price),
        addon_total=_money(addon_total),
        total_price=_money(total_price),
        app_fee=_money(app_fee),
        installer_earnings=_money(total_price - app_fee),
        fee_percentage=tv_results[0].fee_percentage,
        addons=[a for r in tv_results for a in r.addons],
    )


def apply_discount(total_price: float, discount_percentage: Optional[float]) -> tuple[float, float]:
    """
    Apply a percentage discount.

    Returns:
        (discount_amount, final_price)
    """
    if not discount_percentage:
        return 0.0, _money(total_price)
    if discount_percentage < 0 or discount_percentage > 100:
        raise PricingError("Discount percentage must be between 0 and 100")
    discount = _money(total_price * discount_percentage / 100)
    return discount, _money(total_price - discount)
