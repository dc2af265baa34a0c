"""Bookings domain - Bookings, schedule negotiations and reviews"""

from .router import router

__all__ = ["router"]
