import logging
import os
import uuid
from typing import Optional

import boto3
from botocore.config import Config
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from ..auth import get_optional_user
from ..config import R2_ACCESS_KEY_ID, R2_ACCOUNT_ID, R2_BUCKET_NAME, R2_SECRET_ACCESS_KEY
from ..models import User
from ..rate_limiter import create_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Upload"])

# Presigned URL expiration time (7 days, long enough for a booking to be reviewed)
PRESIGNED_URL_EXPIRATION = 7 * 24 * 3600

MAX_ROOM_PHOTO_SIZE = 10 * 1024 * 1024  # 10MB

ALLOWED_ROOM_PHOTO_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/heic": "heic",
    "image/heif": "heic",
}

rate_limit_upload = create_rate_limiter(limit=20, window_seconds=3600, key_prefix="room_photo_upload")


def get_r2_client():
    """Create and return an R2 client."""
    return boto3.client(
        "s3",
        endpoint_url=f"https://{R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=R2_ACCESS_KEY_ID,
        aws_secret_access_key=R2_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
    )


def is_storage_configured() -> bool:
    return bool(R2_ACCOUNT_ID and R2_ACCESS_KEY_ID and R2_SECRET_ACCESS_KEY)


def generate_presigned_url(key: str, expiration: int = PRESIGNED_URL_EXPIRATION) -> str:
    """Generate a presigned URL for a private object in R2."""
    r2 = get_r2_client()
    try:
        url = r2.generate_presigned_url(
            "get_object",
            Params={"Bucket": R2_BUCKET_NAME, "Key": key, "ResponseContentDisposition": "inline"},
            ExpiresIn=expiration,
        )
        logger.info(f"✅ Generated presigned URL for key: {key}")
        return url
    except Exception as e:
        logger.error(f"❌ Failed to generate presigned URL for key {key}: {e}")
        raise


def validate_filename(filename: Optional[str]) -> None:
    if not filename:
        return
    if os.path.basename(filename) != filename or ".." in filename:
        raise HTTPException(status_code=400, detail="Invalid filename")
    if len(filename) > 255:
        raise HTTPException(status_code=400, detail="Filename too long - maximum 255 characters")


@router.post("/upload-room-photo")
async def upload_room_photo(
    file: UploadFile = File(...),
    user: Optional[User] = Depends(get_optional_user),
    _: None = Depends(rate_limit_upload),
):
    """Upload the room photo taken in the first wizard step to R2 (private)."""
    if file.content_type not in ALLOWED_ROOM_PHOTO_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only PNG, JPEG, WebP and HEIC images are allowed.",
        )
    validate_filename(file.filename)

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(contents) > MAX_ROOM_PHOTO_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File size exceeds 10MB limit. Your file is {len(contents) / (1024 * 1024):.2f}MB.",
        )

    if not is_storage_configured():
        raise HTTPException(status_code=503, detail="Photo storage is not configured")

    owner = f"user-{user.id}" if user else "guest"
    key = f"room-photos/{owner}/{uuid.uuid4()}.{ALLOWED_ROOM_PHOTO_TYPES[file.content_type]}"

    try:
        r2 = get_r2_client()
        r2.put_object(
            Bucket=R2_BUCKET_NAME,
            Key=key,
            Body=contents,
            ContentType=file.content_type,
        )
        url = generate_presigned_url(key)
    except Exception as e:
        logger.error(f"❌ Room photo upload failed: {e}")
        raise HTTPException(status_code=500, detail="Upload failed") from e

    logger.info(f"📤 Room photo uploaded: {key} ({len(contents)} bytes)")
    return {"key": key, "url": url}
