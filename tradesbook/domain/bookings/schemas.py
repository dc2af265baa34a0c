"""Booking domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...shared.validators import (
    validate_eircode,
    validate_email,
    validate_future_date,
    validate_irish_phone,
)
from ...utils.sanitization import clean_text
from ..pricing.catalog import MOUNT_TYPES, TIME_SLOTS, WALL_TYPES

MAX_TVS_PER_BOOKING = 10


class BookingTvInput(BaseModel):
    """One TV within a booking"""

    tvSize: int = Field(..., ge=20, le=120)
    serviceType: str
    wallType: str
    mountType: str
    needsWallMount: bool = False
    wallMountOption: Optional[str] = None
    location: Optional[str] = Field(None, max_length=100)
    addons: list[str] = Field(default_factory=list)

    @field_validator("wallType")
    @classmethod
    def validate_wall_type(cls, v):
        if v not in WALL_TYPES:
            raise ValueError(f"Wall type must be one of: {', '.join(WALL_TYPES)}")
        return v

    @field_validator("mountType")
    @classmethod
    def validate_mount_type(cls, v):
        if v not in MOUNT_TYPES:
            raise ValueError(f"Mount type must be one of: {', '.join(MOUNT_TYPES)}")
        return v

    @model_validator(mode="after")
    def check_wall_mount(self):
        if self.needsWallMount and not self.wallMountOption:
            raise ValueError("wallMountOption is required when needsWallMount is true")
        if not self.needsWallMount:
            self.wallMountOption = None
        return self


class BookingCreate(BaseModel):
    """
    Schema for creating a booking. Accepts either a `tvs` list or the
    single-TV shorthand fields (serviceType, tvSize, wallType, mountType, addons).
    """

    contactName: str = Field(..., min_length=1, max_length=255)
    contactEmail: str
    contactPhone: str
    address: str = Field(..., min_length=5, max_length=500)
    eircode: Optional[str] = None

    tvs: list[BookingTvInput] = Field(default_factory=list)
    serviceType: Optional[str] = None
    tvSize: Optional[int] = None
    wallType: Optional[str] = None
    mountType: Optional[str] = None
    needsWallMount: bool = False
    wallMountOption: Optional[str] = None
    addons: list[str] = Field(default_factory=list)

    preferredDate: Optional[date] = None
    timeSlot: Optional[str] = None
    customerNotes: Optional[str] = None
    roomPhotoUrl: Optional[str] = None
    aiPreviewUrl: Optional[str] = None
    roomAnalysis: Optional[dict] = None
    referralCode: Optional[str] = None

    @field_validator("contactName")
    @classmethod
    def validate_name(cls, v):
        cleaned = clean_text(v, max_length=255)
        if not cleaned:
            raise ValueError("Contact name is required")
        return cleaned

    @field_validator("contactEmail")
    @classmethod
    def validate_contact_email(cls, v):
        return validate_email(v)

    @field_validator("contactPhone")
    @classmethod
    def validate_phone(cls, v):
        return validate_irish_phone(v)

    @field_validator("eircode")
    @classmethod
    def validate_eircode_field(cls, v):
        return validate_eircode(v) if v else None

    @field_validator("preferredDate")
    @classmethod
    def validate_date(cls, v):
        return validate_future_date(v)

    @field_validator("timeSlot")
    @classmethod
    def validate_time_slot(cls, v):
        if v is not None and v not in TIME_SLOTS:
            raise ValueError(f"Time slot must be one of: {', '.join(TIME_SLOTS)}")
        return v

    @field_validator("customerNotes")
    @classmethod
    def validate_notes(cls, v):
        return clean_text(v)

    @model_validator(mode="after")
    def collect_tvs(self):
        if not self.tvs and self.serviceType:
            self.tvs = [
                BookingTvInput(
                    tvSize=self.tvSize,
                    serviceType=self.serviceType,
                    wallType=self.wallType,
                    mountType=self.mountType,
                    needsWallMount=self.needsWallMount,
                    wallMountOption=self.wallMountOption,
                    addons=self.addons,
                )
            ]
        if not self.tvs:
            raise ValueError("At least one TV is required")
        if len(self.tvs) > MAX_TVS_PER_BOOKING:
            raise ValueError(f"At most {MAX_TVS_PER_BOOKING} TVs per booking")
        return self


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingTvResponse(BaseModel):
    position: int
    location: Optional[str] = None
    tvSize: int
    serviceType: str
    wallType: str
    mountType: str
    needsWallMount: bool
    wallMountOption: Optional[str] = None
    basePrice: float
    addonTotal: float


class BookingAddOnResponse(BaseModel):
    tvPosition: int
    key: str
    name: str
    price: float


class InstallerSummary(BaseModel):
    id: int
    name: str
    businessName: str
    phone: Optional[str] = None


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    qrCode: str
    status: str
    customerId: Optional[int] = None
    installerId: Optional[int] = None
    contactName: str
    contactEmail: str
    contactPhone: str
    address: str
    eircode: Optional[str] = None
    county: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    serviceType: str
    tvSize: int
    wallType: str
    mountType: str
    tvQuantity: int
    scheduledDate: Optional[date] = None
    timeSlot: Optional[str] = None
    timeWindow: Optional[str] = None
    customerNotes: Optional[str] = None
    roomPhotoUrl: Optional[str] = None
    aiPreviewUrl: Optional[str] = None
    roomAnalysis: Optional[dict] = None
    basePrice: float
    addonTotal: float
    totalPrice: float
    appFee: float
    discountAmount: float
    finalPrice: float
    referralCode: Optional[str] = None
    tvs: list[BookingTvResponse] = Field(default_factory=list)
    addons: list[BookingAddOnResponse] = Field(default_factory=list)
    installer: Optional[InstallerSummary] = None
    trackingUrl: str
    createdAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None


class BookingStatusResponse(BaseModel):
    id: int
    qrCode: str
    status: str
    installerAssigned: bool
    scheduledDate: Optional[date] = None
    timeSlot: Optional[str] = None
    updatedAt: Optional[datetime] = None


# ============================================================================
# Schedule negotiations
# ============================================================================


class ScheduleNegotiationCreate(BaseModel):
    bookingId: int
    proposedDate: date
    proposedTimeSlot: str
    message: Optional[str] = Field(None, max_length=1000)

    @field_validator("proposedDate")
    @classmethod
    def validate_date(cls, v):
        return validate_future_date(v)

    @field_validator("proposedTimeSlot")
    @classmethod
    def validate_time_slot(cls, v):
        if v not in TIME_SLOTS:
            raise ValueError(f"Time slot must be one of: {', '.join(TIME_SLOTS)}")
        return v

    @field_validator("message")
    @classmethod
    def validate_message(cls, v):
        return clean_text(v, max_length=1000)


class ScheduleNegotiationRespond(BaseModel):
    """Accept, reject, or counter with a new date/time"""

    action: Literal["accept", "reject", "counter"]
    responseMessage: Optional[str] = Field(None, max_length=1000)
    counterDate: Optional[date] = None
    counterTimeSlot: Optional[str] = None

    @field_validator("counterDate")
    @classmethod
    def validate_date(cls, v):
        return validate_future_date(v)

    @field_validator("responseMessage")
    @classmethod
    def validate_message(cls, v):
        return clean_text(v, max_length=1000)

    @model_validator(mode="after")
    def check_counter(self):
        if self.action == "counter":
            if not self.counterDate or not self.counterTimeSlot:
                raise ValueError("counterDate and counterTimeSlot are required to counter")
            if self.counterTimeSlot not in TIME_SLOTS:
                raise ValueError(f"Time slot must be one of: {', '.join(TIME_SLOTS)}")
        return self


class ScheduleNegotiationResponse(BaseModel):
    id: int
    bookingId: int
    installerId: Optional[int] = None
    proposedBy: str
    proposedDate: date
    proposedTimeSlot: str
    timeWindow: str
    message: Optional[str] = None
    status: str
    responseMessage: Optional[str] = None
    respondedAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None


# ============================================================================
# Reviews
# ============================================================================


class ReviewCreate(BaseModel):
    bookingId: int
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=255)
    comment: Optional[str] = Field(None, max_length=2000)

    @field_validator("title", "comment")
    @classmethod
    def validate_text(cls, v):
        return clean_text(v)


class ReviewResponse(BaseModel):
    id: int
    bookingId: int
    installerId: int
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    customerName: Optional[str] = None
    createdAt: Optional[datetime] = None


class InstallerRatingResponse(BaseModel):
    installerId: int
    averageRating: float
    reviewCount: int
