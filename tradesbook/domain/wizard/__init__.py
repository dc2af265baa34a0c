"""Booking wizard domain - Multi-step booking drafts"""

from .router import router

__all__ = ["router"]
