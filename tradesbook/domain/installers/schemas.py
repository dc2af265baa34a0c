"""Installer domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...services.irish_geocoder import IRISH_COUNTIES
from ...shared.validators import validate_email, validate_irish_phone
from ...utils.sanitization import clean_text
from ..pricing.catalog import TIME_SLOTS

JOB_STATUS_UPDATES = ("in-progress", "completed")


def _normalize_county(v: Optional[str]) -> Optional[str]:
    if not v:
        return v
    for county in IRISH_COUNTIES:
        if county.lower() == v.strip().lower():
            return county
    raise ValueError(f"Unknown Irish county: {v}")


class InstallerRegister(BaseModel):
    """Schema for registering the current user as an installer"""

    businessName: str = Field(..., min_length=2, max_length=255)
    contactName: str = Field(..., min_length=2, max_length=255)
    email: Optional[str] = None
    phone: str
    serviceArea: str
    address: Optional[str] = Field(None, max_length=500)
    yearsExperience: int = Field(0, ge=0, le=60)
    bio: Optional[str] = Field(None, max_length=2000)

    @field_validator("businessName", "contactName", "bio")
    @classmethod
    def sanitize_text(cls, v):
        return clean_text(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v) if v else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_irish_phone(v)

    @field_validator("serviceArea")
    @classmethod
    def check_service_area(cls, v):
        return _normalize_county(v)


class InstallerUpdate(BaseModel):
    businessName: Optional[str] = Field(None, min_length=2, max_length=255)
    contactName: Optional[str] = Field(None, min_length=2, max_length=255)
    phone: Optional[str] = None
    serviceArea: Optional[str] = None
    address: Optional[str] = Field(None, max_length=500)
    yearsExperience: Optional[int] = Field(None, ge=0, le=60)
    bio: Optional[str] = Field(None, max_length=2000)
    profilePhotoUrl: Optional[str] = Field(None, max_length=500)

    @field_validator("businessName", "contactName", "bio")
    @classmethod
    def sanitize_text(cls, v):
        return clean_text(v) if v else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_irish_phone(v) if v else v

    @field_validator("serviceArea")
    @classmethod
    def check_service_area(cls, v):
        return _normalize_county(v)


class InstallerResponse(BaseModel):
    id: int
    userId: int
    businessName: str
    contactName: str
    email: str
    phone: Optional[str] = None
    serviceArea: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    yearsExperience: int = 0
    bio: Optional[str] = None
    profilePhotoUrl: Optional[str] = None
    approvalStatus: str
    rejectionReason: Optional[str] = None
    walletBalance: float = 0
    createdAt: Optional[datetime] = None


class PublicInstallerResponse(BaseModel):
    """Installer card shown to customers"""

    id: int
    businessName: str
    contactName: str
    serviceArea: Optional[str] = None
    yearsExperience: int = 0
    bio: Optional[str] = None
    profilePhotoUrl: Optional[str] = None
    averageRating: Optional[float] = None
    reviewCount: int = 0


class AvailableRequest(BaseModel):
    """An open booking offered to installers as a lead"""

    bookingId: int
    qrCode: str
    serviceType: str
    tvSize: int
    tvQuantity: int
    wallType: str
    mountType: str
    county: Optional[str] = None
    scheduledDate: Optional[date] = None
    timeSlot: Optional[str] = None
    totalPrice: float
    installerEarnings: float
    leadFee: float
    distanceKm: Optional[float] = None
    addons: list[str] = []
    createdAt: Optional[datetime] = None


class JobStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("status")
    @classmethod
    def check_status(cls, v):
        if v not in JOB_STATUS_UPDATES:
            raise ValueError(f"Status must be one of: {', '.join(JOB_STATUS_UPDATES)}")
        return v


class JobResponse(BaseModel):
    id: int
    bookingId: int
    status: str
    leadFee: float
    leadFeeStatus: str
    acceptedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    booking: dict


class WalletTopUp(BaseModel):
    amount: float = Field(..., gt=0, le=1000)


class WalletTransactionResponse(BaseModel):
    id: int
    type: str
    amount: float
    description: Optional[str] = None
    jobAssignmentId: Optional[int] = None
    status: str
    createdAt: Optional[datetime] = None


class WalletResponse(BaseModel):
    balance: float
    totalSpent: float
    transactions: list[WalletTransactionResponse]


class AvailabilitySlot(BaseModel):
    date: date
    timeSlot: str
    isAvailable: bool = True

    @field_validator("timeSlot")
    @classmethod
    def check_time_slot(cls, v):
        if v not in TIME_SLOTS:
            raise ValueError(f"Time slot must be one of: {', '.join(TIME_SLOTS)}")
        return v


class AvailabilityUpdate(BaseModel):
    slots: list[AvailabilitySlot] = Field(..., min_length=1, max_length=100)


class AvailabilityResponse(BaseModel):
    id: int
    date: date
    timeSlot: str
    isAvailable: bool


class InstallerStatsResponse(BaseModel):
    totalJobs: int
    completedJobs: int
    activeJobs: int
    totalEarnings: float
    leadSpend: float
    walletBalance: float
    averageRating: Optional[float] = None
    reviewCount: int
