import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator

from ..domain.pricing.catalog import MOUNT_TYPES, WALL_TYPES
from ..rate_limiter import create_rate_limiter
from ..services.ai_preview import (
    MAX_IMAGE_BASE64_LENGTH,
    AINotConfiguredError,
    AIPreviewError,
    analyze_room,
    generate_tv_placement,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["AI"])

# Image generation is expensive; keep it tight per IP
rate_limit_ai = create_rate_limiter(limit=10, window_seconds=3600, key_prefix="ai_preview")


class RoomImage(BaseModel):
    imageBase64: str = Field(..., min_length=100, max_length=MAX_IMAGE_BASE64_LENGTH)


class TvPlacementRequest(RoomImage):
    tvSize: int = Field(..., ge=20, le=120)
    mountType: str
    wallType: str

    @field_validator("mountType")
    @classmethod
    def check_mount_type(cls, v):
        if v not in MOUNT_TYPES:
            raise ValueError(f"Mount type must be one of: {', '.join(MOUNT_TYPES)}")
        return v

    @field_validator("wallType")
    @classmethod
    def check_wall_type(cls, v):
        if v not in WALL_TYPES:
            raise ValueError(f"Wall type must be one of: {', '.join(WALL_TYPES)}")
        return v


@router.post("/analyze-room")
async def analyze_room_photo(data: RoomImage, _: None = Depends(rate_limit_ai)):
    """Installation recommendations for a room photo"""
    try:
        analysis = await analyze_room(data.imageBase64)
    except AINotConfiguredError as e:
        raise HTTPException(status_code=503, detail="AI room analysis is not available") from e
    except AIPreviewError as e:
        logger.error(f"❌ Room analysis failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to analyze room") from e
    return {"success": True, "analysis": analysis}


@router.post("/tv-placement")
async def tv_placement(data: TvPlacementRequest, _: None = Depends(rate_limit_ai)):
    """
    Preview image of the TV mounted in the customer's room.
    A failed image generation still returns 200 so the wizard can continue.
    """
    try:
        return await generate_tv_placement(data.imageBase64, data.tvSize, data.mountType, data.wallType)
    except AINotConfiguredError as e:
        raise HTTPException(status_code=503, detail="AI previews are not available") from e
    except AIPreviewError as e:
        logger.error(f"❌ TV placement analysis failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to analyze room for TV placement") from e
