"""Booking wizard schemas"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from .state import WizardState


class TvUpdate(BaseModel):
    """Partial update of the TV currently being configured"""

    tvSize: Optional[int] = None
    serviceType: Optional[str] = None
    wallType: Optional[str] = None
    mountType: Optional[str] = None
    needsWallMount: Optional[bool] = None
    wallMountOption: Optional[str] = None
    location: Optional[str] = Field(None, max_length=100)
    addons: Optional[list[str]] = None


class ContactUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = Field(None, max_length=500)
    eircode: Optional[str] = None


class WizardUpdate(BaseModel):
    """Only the fields present in the request body are applied"""

    roomPhotoUrl: Optional[str] = None
    aiPreviewUrl: Optional[str] = None
    roomAnalysis: Optional[dict] = None
    tvQuantity: Optional[int] = None
    tv: Optional[TvUpdate] = None
    preferredDate: Optional[date] = None
    timeSlot: Optional[str] = None
    contact: Optional[ContactUpdate] = None
    customerNotes: Optional[str] = None
    referralCode: Optional[str] = None


class DraftTotals(BaseModel):
    basePrice: float
    addonTotal: float
    totalPrice: float
    discountAmount: float
    finalPrice: float


class DraftResponse(BaseModel):
    id: str
    status: str
    bookingId: Optional[int] = None
    state: WizardState
    stepName: str
    missingFields: list[str]
    canProceed: bool
    totals: Optional[DraftTotals] = None
