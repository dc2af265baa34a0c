"""Installer service - Profiles, lead marketplace, jobs, wallet and availability"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import WALLET_DEMO_TOPUP_ENABLED
from ...models import Booking, Installer, InstallerAvailability, JobAssignment, User, WalletTransaction
from ...services.maps_service import calculate_distance_km, geocode_address, is_google_configured
from ...shared.wallet import InsufficientBalanceError, add_credits, charge_lead_fee, record_transaction
from ..bookings.service import booking_to_dict
from ..bookings.status import OPEN_FOR_LEADS, InvalidStatusTransition, ensure_transition
from ..pricing.catalog import get_lead_fee
from .repository import InstallerRepository
from .schemas import AvailabilityUpdate, InstallerRegister, InstallerUpdate, JobStatusUpdate

logger = logging.getLogger(__name__)


def installer_to_dict(installer: Installer) -> dict:
    return {
        "id": installer.id,
        "userId": installer.user_id,
        "businessName": installer.business_name,
        "contactName": installer.contact_name,
        "email": installer.email,
        "phone": installer.phone,
        "serviceArea": installer.service_area,
        "address": installer.address,
        "latitude": installer.latitude,
        "longitude": installer.longitude,
        "yearsExperience": installer.years_experience or 0,
        "bio": installer.bio,
        "profilePhotoUrl": installer.profile_photo_url,
        "approvalStatus": installer.approval_status,
        "rejectionReason": installer.rejection_reason,
        "walletBalance": installer.wallet_balance or 0,
        "createdAt": installer.created_at,
    }


def transaction_to_dict(transaction: WalletTransaction) -> dict:
    return {
        "id": transaction.id,
        "type": transaction.type,
        "amount": transaction.amount,
        "description": transaction.description,
        "jobAssignmentId": transaction.job_assignment_id,
        "status": transaction.status or "completed",
        "createdAt": transaction.created_at,
    }


def job_to_dict(job: JobAssignment) -> dict:
    return {
        "id": job.id,
        "bookingId": job.booking_id,
        "status": job.status,
        "leadFee": job.lead_fee or 0,
        "leadFeeStatus": job.lead_fee_status or "unpaid",
        "acceptedAt": job.accepted_at,
        "completedAt": job.completed_at,
        "booking": booking_to_dict(job.booking),
    }


def availability_to_dict(slot: InstallerAvailability) -> dict:
    return {
        "id": slot.id,
        "date": slot.date,
        "timeSlot": slot.time_slot,
        "isAvailable": bool(slot.is_available),
    }


def installer_earnings(booking: Booking) -> float:
    """What the installer collects for the job once the platform fee is taken"""
    return round((booking.total_price or 0) - (booking.app_fee or 0), 2)


def booking_distance_km(booking: Booking, installer: Installer) -> Optional[float]:
    if None in (booking.latitude, booking.longitude, installer.latitude, installer.longitude):
        return None
    return calculate_distance_km(booking.latitude, booking.longitude, installer.latitude, installer.longitude)


class InstallerService:
    """Service layer for installer business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = InstallerRepository()

    async def _geocode(self, address: Optional[str]) -> dict:
        if not address or not is_google_configured():
            return {}
        try:
            result = await geocode_address(address)
        except Exception as e:
            logger.warning(f"⚠️ Geocoding failed for installer address '{address}': {e}")
            return {}
        if not result:
            return {}
        return {"latitude": result["lat"], "longitude": result["lng"]}

    # ========================================================================
    # Profile
    # ========================================================================

    async def register(self, data: InstallerRegister, user: User) -> Installer:
        if self.repo.get_by_user_id(self.db, user.id):
            raise HTTPException(status_code=409, detail="You are already registered as an installer")

        location = await self._geocode(data.address)
        installer = self.repo.create_installer(
            self.db,
            user_id=user.id,
            business_name=data.businessName,
            contact_name=data.contactName,
            email=data.email or user.email,
            phone=data.phone,
            service_area=data.serviceArea,
            address=data.address,
            years_experience=data.yearsExperience,
            bio=data.bio,
            approval_status="pending",
            wallet_balance=0.0,
            wallet_total_spent=0.0,
            **location,
        )

        if user.role != "admin":
            user.role = "installer"
            self.db.commit()

        logger.info(f"✅ Installer registered: {installer.business_name} (id {installer.id}), awaiting approval")
        return installer

    async def update_profile(self, installer: Installer, data: InstallerUpdate) -> Installer:
        location = {}
        if data.address and data.address != installer.address:
            location = await self._geocode(data.address)

        return self.repo.update_installer(
            self.db,
            installer,
            business_name=data.businessName,
            contact_name=data.contactName,
            phone=data.phone,
            service_area=data.serviceArea,
            address=data.address,
            years_experience=data.yearsExperience,
            bio=data.bio,
            profile_photo_url=data.profilePhotoUrl,
            **location,
        )

    def list_public_installers(self) -> list[dict]:
        installers = []
        for installer in self.repo.list_installers(self.db, approval_status="approved"):
            average, count = self.repo.get_rating(self.db, installer.id)
            installers.append(
                {
                    "id": installer.id,
                    "businessName": installer.business_name,
                    "contactName": installer.contact_name,
                    "serviceArea": installer.service_area,
                    "yearsExperience": installer.years_experience or 0,
                    "bio": installer.bio,
                    "profilePhotoUrl": installer.profile_photo_url,
                    "averageRating": average,
                    "reviewCount": count,
                }
            )
        return installers

    # ========================================================================
    # Lead marketplace
    # ========================================================================

    def get_available_requests(self, installer: Installer) -> list[dict]:
        """Open bookings this installer can still buy, nearest first"""
        declined = self.repo.get_declined_booking_ids(self.db, installer.id)
        requests = []
        for booking in self.repo.get_open_bookings(self.db, declined):
            requests.append(
                {
                    "bookingId": booking.id,
                    "qrCode": booking.qr_code,
                    "serviceType": booking.service_tier,
                    "tvSize": booking.tv_size,
                    "tvQuantity": booking.tv_quantity or 1,
                    "wallType": booking.wall_type,
                    "mountType": booking.mount_type,
                    "county": booking.county,
                    "scheduledDate": booking.scheduled_date,
                    "timeSlot": booking.time_slot,
                    "totalPrice": booking.total_price,
                    "installerEarnings": installer_earnings(booking),
                    "leadFee": get_lead_fee(booking.service_tier),
                    "distanceKm": booking_distance_km(booking, installer),
                    "addons": [a.addon_key for a in booking.addons],
                    "createdAt": booking.created_at,
                }
            )

        # Bookings without coordinates go last
        requests.sort(key=lambda r: (r["distanceKm"] is None, r["distanceKm"] or 0))
        return requests

    def accept_request(self, installer: Installer, booking_id: int) -> JobAssignment:
        """
        Buy a lead: pay the fee from the wallet and take the booking.

        Raises:
            HTTPException: 404 unknown booking, 409 already taken, 402 balance too low
        """
        booking = self.db.query(Booking).filter(Booking.id == booking_id).with_for_update().first()
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        if booking.installer_id is not None or booking.status not in OPEN_FOR_LEADS:
            raise HTTPException(status_code=409, detail="This booking is no longer available")

        assignment = self.repo.get_assignment(self.db, booking.id, installer.id)
        if assignment is None:
            assignment = JobAssignment(booking_id=booking.id, installer_id=installer.id)
            self.db.add(assignment)
        assignment.status = "accepted"
        assignment.lead_fee = get_lead_fee(booking.service_tier)
        assignment.lead_fee_status = "unpaid"
        assignment.accepted_at = datetime.utcnow()
        assignment.declined_at = None

        try:
            self.db.flush()
            charge_lead_fee(self.db, installer, assignment, booking.qr_code)
            ensure_transition(booking.status, "assigned")
            booking.installer_id = installer.id
            booking.status = "assigned"
            self.db.commit()
        except InsufficientBalanceError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Installer {installer.id} cannot afford lead for booking {booking_id}: {e}")
            raise HTTPException(status_code=402, detail=str(e)) from e
        except InvalidStatusTransition as e:
            self.db.rollback()
            raise HTTPException(status_code=409, detail=str(e)) from e
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to accept booking {booking_id} for installer {installer.id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to accept booking") from e

        self.db.refresh(assignment)
        logger.info(
            f"✅ Installer {installer.id} accepted booking {booking.qr_code} (lead fee €{assignment.lead_fee:.2f})"
        )
        return assignment

    def decline_request(self, installer: Installer, booking_id: int) -> JobAssignment:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")

        assignment = self.repo.get_assignment(self.db, booking.id, installer.id)
        if assignment and assignment.status != "declined":
            raise HTTPException(status_code=409, detail="You have already accepted this booking")
        if assignment is None:
            assignment = JobAssignment(booking_id=booking.id, installer_id=installer.id, lead_fee=0.0)
            self.db.add(assignment)
        assignment.status = "declined"
        assignment.declined_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(assignment)
        return assignment

    # ========================================================================
    # Jobs
    # ========================================================================

    def get_active_jobs(self, installer: Installer) -> list[JobAssignment]:
        return self.repo.get_active_jobs(self.db, installer.id)

    def update_job_status(self, installer: Installer, job_id: int, data: JobStatusUpdate) -> JobAssignment:
        job = self.repo.get_job(self.db, job_id, installer.id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        if job.status in ("declined", "cancelled"):
            raise HTTPException(status_code=400, detail=f"This job was {job.status} and cannot be updated")

        booking = job.booking
        try:
            ensure_transition(booking.status, data.status)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        now = datetime.utcnow()
        job.status = data.status
        booking.status = data.status
        if data.notes:
            note = f"Installer note: {data.notes}"
            booking.customer_notes = f"{booking.customer_notes}\n{note}" if booking.customer_notes else note

        if data.status == "completed":
            job.completed_at = now
            booking.completed_at = now
            earnings = installer_earnings(booking)
            record_transaction(
                self.db, installer, "earnings", earnings, f"Earnings for booking {booking.qr_code}", job.id
            )

        self.db.commit()
        self.db.refresh(job)
        logger.info(f"✅ Job {job.id} for booking {booking.qr_code} is now {data.status}")
        return job

    # ========================================================================
    # Wallet
    # ========================================================================

    def get_wallet(self, installer: Installer) -> dict:
        return {
            "balance": installer.wallet_balance or 0,
            "totalSpent": installer.wallet_total_spent or 0,
            "transactions": [
                transaction_to_dict(t) for t in self.repo.get_transactions(self.db, installer.id)
            ],
        }

    def top_up(self, installer: Installer, amount: float) -> dict:
        if not WALLET_DEMO_TOPUP_ENABLED:
            raise HTTPException(status_code=403, detail="Wallet top-ups are not enabled")
        add_credits(self.db, installer, amount, f"Wallet top-up €{amount:.2f}")
        logger.info(f"✅ Installer {installer.id} wallet topped up by €{amount:.2f}")
        return self.get_wallet(installer)

    # ========================================================================
    # Availability
    # ========================================================================

    def get_availability(self, installer: Installer, from_date: Optional[date] = None) -> list[InstallerAvailability]:
        return self.repo.get_availability(self.db, installer.id, from_date)

    def set_availability(self, installer: Installer, data: AvailabilityUpdate) -> list[InstallerAvailability]:
        """Upsert slots by date and time slot"""
        for slot in data.slots:
            existing = self.repo.get_availability_slot(self.db, installer.id, slot.date, slot.timeSlot)
            if existing:
                existing.is_available = slot.isAvailable
            else:
                self.db.add(
                    InstallerAvailability(
                        installer_id=installer.id,
                        date=slot.date,
                        time_slot=slot.timeSlot,
                        is_available=slot.isAvailable,
                    )
                )
        self.db.commit()
        return self.repo.get_availability(self.db, installer.id)

    # ========================================================================
    # Stats
    # ========================================================================

    def get_stats(self, installer: Installer) -> dict:
        average, count = self.repo.get_rating(self.db, installer.id)
        return {
            "totalJobs": self.repo.count_jobs(self.db, installer.id),
            "completedJobs": self.repo.count_jobs(self.db, installer.id, ("completed",)),
            "activeJobs": self.repo.count_jobs(self.db, installer.id, ("accepted", "in-progress")),
            "totalEarnings": round(self.repo.sum_transactions(self.db, installer.id, "earnings"), 2),
            "leadSpend": round(installer.wallet_total_spent or 0, 2),
            "walletBalance": installer.wallet_balance or 0,
            "averageRating": average,
            "reviewCount": count,
        }
