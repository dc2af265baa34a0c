"""Installers domain - Profiles, leads, jobs, wallet and availability"""

from .router import router

__all__ = ["router"]
