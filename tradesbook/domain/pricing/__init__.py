"""Pricing domain - Service tiers, add-ons, wall mounts, fees and referral codes"""

from .router import router

__all__ = ["router"]
