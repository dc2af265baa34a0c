import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from ..auth import get_current_user, is_admin
from ..database import get_db
from ..models import Installer, User
from ..shared.validators import validate_irish_phone
from ..utils.sanitization import clean_text

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Users"])


class ProfileUpdate(BaseModel):
    fullName: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = None

    @field_validator("fullName")
    @classmethod
    def sanitize_name(cls, v):
        return clean_text(v, max_length=255) if v else v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_irish_phone(v) if v else v


class UserResponse(BaseModel):
    id: int
    email: str
    emailVerified: bool = False
    fullName: Optional[str] = None
    phone: Optional[str] = None
    role: str
    isAdmin: bool
    installerId: Optional[int] = None
    installerStatus: Optional[str] = None


def user_to_dict(user: User, installer: Optional[Installer]) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "emailVerified": bool(user.email_verified),
        "fullName": user.full_name,
        "phone": user.phone,
        "role": user.role,
        "isAdmin": is_admin(user),
        "installerId": installer.id if installer else None,
        "installerStatus": installer.approval_status if installer else None,
    }


@router.get("/user", response_model=UserResponse)
async def get_user(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """The signed-in user with their role and installer status"""
    installer = db.query(Installer).filter(Installer.user_id == user.id).first()
    return user_to_dict(user, installer)


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if data.fullName is not None:
        user.full_name = data.fullName
    if data.phone is not None:
        user.phone = data.phone
    db.commit()
    db.refresh(user)
    logger.info(f"✅ Profile updated for user {user.id}")

    installer = db.query(Installer).filter(Installer.user_id == user.id).first()
    return user_to_dict(user, installer)
