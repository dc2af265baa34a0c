import base64
import json
import logging
import time
from typing import Optional

import httpx
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.x509 import load_pem_x509_certificate
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import ADMIN_EMAILS, FIREBASE_PROJECT_ID
from .database import get_db
from .models import Installer, User

logger = logging.getLogger(__name__)

security = HTTPBearer()
optional_security = HTTPBearer(auto_error=False)

GOOGLE_CERTS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)

# Cache for Google's public keys
_cached_keys: Optional[dict] = None


async def get_google_public_keys(force_refresh: bool = False) -> Optional[dict]:
    """Fetch Google's public keys for Firebase token verification"""
    global _cached_keys
    if _cached_keys and not force_refresh:
        return _cached_keys

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await client.get(GOOGLE_CERTS_URL)
        if response.status_code == 200:
            _cached_keys = response.json()
            logger.info(f"✅ Fetched {len(_cached_keys)} Google public keys")
            return _cached_keys
        logger.error(f"❌ Failed to fetch Google public keys: HTTP {response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"❌ Error fetching Google public keys: {str(e)}")
    return None


def _b64decode(segment: str) -> bytes:
    padding_len = -len(segment) % 4
    return base64.urlsafe_b64decode(segment + "=" * padding_len)


async def verify_firebase_token(token: str) -> dict:
    """
    Verify a Firebase ID token: RS256 signature against Google's certificates,
    then audience, issuer, expiry and issued-at claims.
    """
    if not FIREBASE_PROJECT_ID:
        logger.error("❌ FIREBASE_PROJECT_ID not configured")
        raise HTTPException(status_code=500, detail="Firebase not configured")

    parts = token.split(".")
    if len(parts) != 3:
        raise HTTPException(status_code=401, detail="Invalid token format")
    header_b64, payload_b64, signature_b64 = parts

    try:
        header = json.loads(_b64decode(header_b64))
        payload = json.loads(_b64decode(payload_b64))
        signature = _b64decode(signature_b64)
    except (ValueError, TypeError) as e:
        logger.error(f"❌ Failed to decode token: {str(e)}")
        raise HTTPException(status_code=401, detail="Invalid token encoding") from e

    kid = header.get("kid")
    if header.get("alg") != "RS256" or not kid:
        raise HTTPException(status_code=401, detail="Invalid token header")

    public_keys = await get_google_public_keys()
    if not public_keys or kid not in public_keys:
        logger.warning(f"⚠️ Key ID {kid} not found in public keys, refreshing")
        public_keys = await get_google_public_keys(force_refresh=True)
        if not public_keys or kid not in public_keys:
            raise HTTPException(status_code=401, detail="Unable to verify token signature")

    cert = load_pem_x509_certificate(public_keys[kid].encode())
    try:
        cert.public_key().verify(
            signature,
            f"{header_b64}.{payload_b64}".encode(),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
    except InvalidSignature as e:
        logger.error("❌ Token signature verification failed")
        raise HTTPException(status_code=401, detail="Invalid token signature") from e

    if payload.get("aud") != FIREBASE_PROJECT_ID:
        raise HTTPException(status_code=401, detail="Invalid token audience")
    if payload.get("iss") != f"https://securetoken.google.com/{FIREBASE_PROJECT_ID}":
        raise HTTPException(status_code=401, detail="Invalid token issuer")

    now = time.time()
    if payload.get("exp", 0) < now:
        raise HTTPException(
            status_code=401,
            detail="Token has expired. Please refresh your session.",
            headers={"X-Token-Expired": "true"},
        )
    # Allow 60 seconds clock skew
    if payload.get("iat", 0) > now + 60:
        raise HTTPException(status_code=401, detail="Invalid token")

    return payload


def _get_or_create_user(db: Session, claims: dict) -> User:
    firebase_uid = claims.get("sub") or claims.get("user_id") or claims.get("uid")
    if not firebase_uid:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    email = (claims.get("email") or "").lower()
    email_verified = claims.get("email_verified") is True
    name = claims.get("name", "")

    user = db.query(User).filter(User.firebase_uid == firebase_uid).first()
    if user:
        if email_verified and not user.email_verified and user.email == email:
            user.email_verified = True
            db.commit()
            db.refresh(user)
        return user

    # Same email signed in with a different provider (password then Google).
    # Only a verified email may take over an existing account.
    if email and email_verified:
        user = db.query(User).filter(User.email == email).first()
        if user:
            logger.info(f"🔄 Linking {email} to new Firebase UID")
            user.firebase_uid = firebase_uid
            user.email_verified = True
            if name and not user.full_name:
                user.full_name = name
            db.commit()
            db.refresh(user)
            return user

    logger.info(f"🆕 Creating new user: {email} (verified: {email_verified})")
    user = User(
        firebase_uid=firebase_uid,
        email=email or f"{firebase_uid}@users.tradesbook.ie",
        email_verified=email_verified,
        full_name=name,
        role="admin" if email_verified and email in ADMIN_EMAILS else "customer",
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise HTTPException(
            status_code=409,
            detail="This email is already registered. Please sign in with your existing account.",
        ) from e
    db.refresh(user)
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from Firebase token"""
    try:
        claims = await verify_firebase_token(credentials.credentials)
        user = _get_or_create_user(db, claims)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Authentication failed: {str(e)}")
        raise HTTPException(status_code=401, detail="Authentication failed") from e

    logger.debug(f"✅ User authenticated: {user.email}")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Current user when a bearer token is present, None for guests"""
    if not credentials:
        return None
    return await get_current_user(credentials, db)


def is_admin(user: User) -> bool:
    if user.role == "admin":
        return True
    return bool(user.email_verified) and (user.email or "").lower() in ADMIN_EMAILS


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if not is_admin(user):
        logger.warning(f"⚠️ Non-admin user {user.id} attempted admin access")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def get_current_installer(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Installer:
    """Installer profile of the current user"""
    installer = db.query(Installer).filter(Installer.user_id == user.id).first()
    if not installer:
        raise HTTPException(status_code=403, detail="Installer profile required")
    return installer


async def get_approved_installer(installer: Installer = Depends(get_current_installer)) -> Installer:
    if installer.approval_status != "approved":
        raise HTTPException(
            status_code=403, detail="Your installer profile is awaiting approval"
        )
    return installer
