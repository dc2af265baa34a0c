"""Installer router - Registration, profile, leads, jobs, wallet and availability"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_approved_installer, get_current_installer, get_current_user
from ...database import get_db
from ...models import Installer, User
from ...services.notification_service import (
    notify_installer_assigned,
    notify_job_completed,
    notify_status_change,
)
from .schemas import (
    AvailabilityResponse,
    AvailabilityUpdate,
    AvailableRequest,
    InstallerRegister,
    InstallerResponse,
    InstallerStatsResponse,
    InstallerUpdate,
    JobResponse,
    JobStatusUpdate,
    PublicInstallerResponse,
    WalletResponse,
    WalletTopUp,
)
from .service import InstallerService, availability_to_dict, installer_to_dict, job_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Installers"])


def get_installer_service(db: Session = Depends(get_db)) -> InstallerService:
    """Dependency injection for InstallerService"""
    return InstallerService(db)


# ============================================================================
# PROFILE
# ============================================================================


@router.post("/installers/register", response_model=InstallerResponse, status_code=201)
async def register_installer(
    data: InstallerRegister,
    user: User = Depends(get_current_user),
    service: InstallerService = Depends(get_installer_service),
):
    """Register the current user as an installer (pending admin approval)"""
    installer = await service.register(data, user)
    return installer_to_dict(installer)


@router.get("/installers", response_model=list[PublicInstallerResponse])
async def list_installers(service: InstallerService = Depends(get_installer_service)):
    """Approved installers with their rating"""
    return service.list_public_installers()


@router.get("/installer/profile", response_model=InstallerResponse)
async def get_profile(installer: Installer = Depends(get_current_installer)):
    return installer_to_dict(installer)


@router.patch("/installer/profile", response_model=InstallerResponse)
async def update_profile(
    data: InstallerUpdate,
    installer: Installer = Depends(get_current_installer),
    service: InstallerService = Depends(get_installer_service),
):
    installer = await service.update_profile(installer, data)
    return installer_to_dict(installer)


# ============================================================================
# LEADS
# ============================================================================


@router.get("/installer/available-requests", response_model=list[AvailableRequest])
async def get_available_requests(
    installer: Installer = Depends(get_approved_installer),
    service: InstallerService = Depends(get_installer_service),
):
    return service.get_available_requests(installer)


@router.post("/installer/accept-request/{booking_id}", response_model=JobResponse)
async def accept_request(
    booking_id: int,
    background_tasks: BackgroundTasks,
    installer: Installer = Depends(get_approved_installer),
    service: InstallerService = Depends(get_installer_service),
):
    """Pay the lead fee and take the booking"""
    job = service.accept_request(installer, booking_id)
    background_tasks.add_task(notify_installer_assigned, job.booking_id)
    return job_to_dict(job)


@router.post("/installer/decline-request/{booking_id}")
async def decline_request(
    booking_id: int,
    installer: Installer = Depends(get_approved_installer),
    service: InstallerService = Depends(get_installer_service),
):
    job = service.decline_request(installer, booking_id)
    return {"message": "Booking declined", "bookingId": job.booking_id}


# ============================================================================
# JOBS
# ============================================================================


@router.get("/installer/active-jobs", response_model=list[JobResponse])
async def get_active_jobs(
    installer: Installer = Depends(get_approved_installer),
    service: InstallerService = Depends(get_installer_service),
):
    return [job_to_dict(job) for job in service.get_active_jobs(installer)]


@router.post("/installer/update-job-status/{job_id}", response_model=JobResponse)
async def update_job_status(
    job_id: int,
    data: JobStatusUpdate,
    background_tasks: BackgroundTasks,
    installer: Installer = Depends(get_approved_installer),
    service: InstallerService = Depends(get_installer_service),
):
    job = service.update_job_status(installer, job_id, data)
    if job.status == "completed":
        background_tasks.add_task(notify_job_completed, job.booking_id)
    else:
        background_tasks.add_task(notify_status_change, job.booking_id)
    return job_to_dict(job)


# ============================================================================
# WALLET
# ============================================================================


@router.get("/installer/wallet", response_model=WalletResponse)
async def get_wallet(
    installer: Installer = Depends(get_current_installer),
    service: InstallerService = Depends(get_installer_service),
):
    return service.get_wallet(installer)


@router.post("/installer/wallet/add-credits", response_model=WalletResponse)
async def add_wallet_credits(
    data: WalletTopUp,
    installer: Installer = Depends(get_current_installer),
    service: InstallerService = Depends(get_installer_service),
):
    return service.top_up(installer, data.amount)


# ============================================================================
# AVAILABILITY AND STATS
# ============================================================================


@router.get("/installer/availability", response_model=list[AvailabilityResponse])
async def get_availability(
    from_date: Optional[date] = Query(None, alias="from"),
    installer: Installer = Depends(get_current_installer),
    service: InstallerService = Depends(get_installer_service),
):
    return [availability_to_dict(s) for s in service.get_availability(installer, from_date)]


@router.post("/installer/availability", response_model=list[AvailabilityResponse])
async def set_availability(
    data: AvailabilityUpdate,
    installer: Installer = Depends(get_current_installer),
    service: InstallerService = Depends(get_installer_service),
):
    return [availability_to_dict(s) for s in service.set_availability(installer, data)]


@router.get("/installer/stats", response_model=InstallerStatsResponse)
async def get_stats(
    installer: Installer = Depends(get_current_installer),
    service: InstallerService = Depends(get_installer_service),
):
    return service.get_stats(installer)
