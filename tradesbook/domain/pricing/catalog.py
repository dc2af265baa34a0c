"""Static pricing catalog

Default service tiers, add-ons, wall-mount options and lead fees. These values
seed the database catalog; admins can adjust prices afterwards.
"""

from typing import Optional

# Platform commission taken from every booking total
COMMISSION_RATE = 0.15

# Installer price per tier (EUR)
SERVICE_TIERS: dict[str, dict] = {
    "table-top-small": {
        "key": "table-top-small",
        "name": "Table Top Installation",
        "description": "Professional table top setup for smaller TVs",
        "category": "table-top",
        "min_tv_size": 32,
        "max_tv_size": 42,
        "price": 89.0,
    },
    "table-top-large": {
        "key": "table-top-large",
        "name": "Table Top Installation",
        "description": "Professional table top setup for larger TVs",
        "category": "table-top",
        "min_tv_size": 43,
        "max_tv_size": None,
        "price": 109.0,
    },
    "bronze": {
        "key": "bronze",
        "name": "Bronze TV Mounting",
        "description": "Fixed wall mount installation",
        "category": "bronze",
        "min_tv_size": 32,
        "max_tv_size": 42,
        "price": 109.0,
    },
    "silver": {
        "key": "silver",
        "name": "Silver TV Mounting",
        "description": "Tilting wall mount with cable management",
        "category": "silver",
        "min_tv_size": 43,
        "max_tv_size": 85,
        "price": 159.0,
    },
    "silver-large": {
        "key": "silver-large",
        "name": "Silver TV Mounting",
        "description": "Tilting wall mount for large TVs",
        "category": "silver",
        "min_tv_size": 86,
        "max_tv_size": None,
        "price": 259.0,
    },
    "gold": {
        "key": "gold",
        "name": "Gold TV Mounting",
        "description": "Full motion mount with premium features",
        "category": "gold",
        "min_tv_size": 43,
        "max_tv_size": 85,
        "price": 259.0,
    },
    "gold-large": {
        "key": "gold-large",
        "name": "Gold TV Mounting",
        "description": "Premium large TV full motion installation",
        "category": "gold",
        "min_tv_size": 86,
        "max_tv_size": None,
        "price": 359.0,
    },
}

ADDONS: dict[str, dict] = {
    "cable-concealment": {
        "key": "cable-concealment",
        "name": "Cable Concealment",
        "description": "Hide cables inside the wall or in a trunking channel",
        "price": 49.0,
    },
    "multi-device-setup": {
        "key": "multi-device-setup",
        "name": "Multi-Device Setup",
        "description": "Connect soundbar, console and streaming devices",
        "price": 79.0,
    },
    "smart-tv-config": {
        "key": "smart-tv-config",
        "name": "Smart TV Configuration",
        "description": "Apps, accounts and network setup",
        "price": 39.0,
    },
    "same-day-service": {
        "key": "same-day-service",
        "name": "Same Day Service",
        "description": "Installation on the day of booking",
        "price": 99.0,
    },
    "weekend-installation": {
        "key": "weekend-installation",
        "name": "Weekend Installation",
        "description": "Saturday or Sunday appointment",
        "price": 49.0,
    },
    "evening-installation": {
        "key": "evening-installation",
        "name": "Evening Installation",
        "description": "Appointment after 6pm",
        "price": 39.0,
    },
}

DEFAULT_WALL_MOUNT_PRICING: list[dict] = [
    {
        "key": "fixed-mount",
        "name": "Fixed Wall Mount",
        "description": "Low profile bracket for TVs up to 55 inches",
        "price": 35.0,
        "display_order": 1,
    },
    {
        "key": "tilting-mount",
        "name": "Tilting Wall Mount",
        "description": "Tilting bracket for TVs up to 65 inches",
        "price": 45.0,
        "display_order": 2,
    },
    {
        "key": "full-motion-mount",
        "name": "Full Motion Wall Mount",
        "description": "Articulating arm for TVs up to 65 inches",
        "price": 65.0,
        "display_order": 3,
    },
    {
        "key": "heavy-duty-full-motion",
        "name": "Heavy Duty Full Motion Mount",
        "description": "Articulating arm for TVs from 65 to 85 inches",
        "price": 89.0,
        "display_order": 4,
    },
]

# What installers pay to take a booking, by service type
LEAD_FEES: dict[str, float] = {
    "table-top-small": 12.0,
    "table-top-medium": 15.0,
    "table-top-large": 18.0,
    "bronze": 20.0,
    "silver": 25.0,
    "gold": 30.0,
    "platinum": 35.0,
    "emergency": 40.0,
    "weekend": 30.0,
}
DEFAULT_LEAD_FEE = 15.0

WALL_TYPES = ["drywall", "concrete", "brick", "other"]
MOUNT_TYPES = ["fixed", "tilting", "full-motion"]
TV_SIZES = [32, 43, 55, 65, 75, 85]
TIME_SLOTS = ["09:00", "11:00", "13:00", "15:00", "17:00"]
TIME_SLOT_HOURS = 2


def tier_fits_tv_size(tier: dict, tv_size: int) -> bool:
    """Inclusive size range check; a missing maximum means no upper bound"""
    min_size = tier.get("min_tv_size")
    max_size = tier.get("max_tv_size")
    if min_size is not None and tv_size < min_size:
        return False
    if max_size is not None and tv_size > max_size:
        return False
    return True


def get_service_tiers_for_tv_size(tv_size: int, tiers: Optional[dict[str, dict]] = None) -> list[dict]:
    """Return the tiers that can be booked for a TV of the given size"""
    tiers = SERVICE_TIERS if tiers is None else tiers
    return [tier for tier in tiers.values() if tier_fits_tv_size(tier, tv_size)]


def get_lead_fee(service_type: Optional[str], fees: Optional[dict[str, float]] = None) -> float:
    """
    Lead fee for a service type. Size-suffixed tier keys (silver-large) fall
    back to their category fee (silver) before the default.
    """
    fees = LEAD_FEES if fees is None else fees
    if not service_type:
        return DEFAULT_LEAD_FEE
    if service_type in fees:
        return fees[service_type]
    category = service_type.rsplit("-", 1)[0]
    return fees.get(category, DEFAULT_LEAD_FEE)


def format_time_window(time_slot: Optional[str]) -> str:
    """'09:00' -> '09:00 - 11:00'"""
    if not time_slot:
        return ""
    try:
        hour, minute = time_slot.split(":")
        end_hour = int(hour) + TIME_SLOT_HOURS
    except ValueError:
        return time_slot
    return f"{time_slot} - {end_hour:02d}:{minute}"
