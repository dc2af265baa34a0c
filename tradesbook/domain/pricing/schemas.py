"""Pricing domain schemas - Pydantic models for the catalog and quotes"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ServiceTierResponse(BaseModel):
    id: int
    key: str
    name: str
    description: Optional[str] = None
    category: str
    tvSizeMin: Optional[int] = None
    tvSizeMax: Optional[int] = None
    basePrice: float
    isActive: bool = True


class AddOnResponse(BaseModel):
    id: int
    key: str
    name: str
    description: Optional[str] = None
    price: float
    isActive: bool = True


class WallMountPricingBase(BaseModel):
    key: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    isActive: bool = True
    displayOrder: int = 0

    @field_validator("key")
    @classmethod
    def normalize_key(cls, v):
        return v.strip().lower().replace(" ", "-")


class WallMountPricingCreate(WallMountPricingBase):
    pass


class WallMountPricingUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    isActive: Optional[bool] = None
    displayOrder: Optional[int] = None


class WallMountPricingResponse(WallMountPricingBase):
    id: int


class ServiceTierUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    basePrice: Optional[float] = Field(None, ge=0)
    isActive: Optional[bool] = None


class AddOnUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    isActive: Optional[bool] = None


class FeeStructureCreate(BaseModel):
    serviceTierKey: str
    feePercentage: float = Field(..., ge=0, le=100)
    isActive: bool = True


class FeeStructureResponse(BaseModel):
    id: int
    serviceTierKey: str
    feePercentage: float
    isActive: bool


class BookingOptionsResponse(BaseModel):
    wallTypes: list[str]
    mountTypes: list[str]
    tvSizes: list[int]
    timeSlots: list[str]


class QuoteTv(BaseModel):
    serviceType: str
    tvSize: Optional[int] = None
    addons: list[str] = []
    needsWallMount: Optional[bool] = None
    wallMountOption: Optional[str] = None


class QuoteRequest(BaseModel):
    tvs: list[QuoteTv] = Field(..., min_length=1, max_length=10)
    referralCode: Optional[str] = None


class PricingBreakdown(BaseModel):
    basePrice: float
    addonTotal: float
    totalPrice: float
    appFee: float
    installerEarnings: float
    feePercentage: float
    addons: list[dict] = []


class QuoteResponse(PricingBreakdown):
    tvs: list[PricingBreakdown]
    discountPercentage: float = 0
    discountAmount: float = 0
    finalPrice: float
    referralCode: Optional[str] = None


class ReferralValidateRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)


class ReferralValidateResponse(BaseModel):
    valid: bool
    code: str
    discountPercentage: float


class ReferralCodeCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_-]+$")
    discountPercentage: float = Field(..., gt=0, le=100)
    maxUses: Optional[int] = Field(None, ge=1)


class ReferralCodeResponse(BaseModel):
    id: int
    code: str
    discountPercentage: float
    usageCount: int
    maxUses: Optional[int] = None
    isActive: bool
