"""Shared fixtures: sqlite database, TestClient and user factories.

Environment is configured before the app is imported because the config
module reads it at import time.
"""

import os
import tempfile
from datetime import date, timedelta
from typing import Optional
from unittest.mock import AsyncMock, patch

import pytest

_TEST_DIR = tempfile.mkdtemp(prefix="tradesbook-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["REDIS_URL"] = "redis://localhost:1/0"
os.environ["ARQ_ENABLED"] = "false"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["GOOGLE_MAPS_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["R2_ACCOUNT_ID"] = ""
os.environ["ADMIN_EMAILS"] = ""
os.environ["SECURITY_HEADERS_ENABLED"] = "true"

from fastapi import Depends, HTTPException  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from tradesbook import rate_limiter  # noqa: E402
from tradesbook.auth import get_current_user, get_optional_user  # noqa: E402
from tradesbook.database import Base, SessionLocal, engine, get_db  # noqa: E402
from tradesbook.domain.pricing.repository import PricingRepository  # noqa: E402
from tradesbook.main import app  # noqa: E402
from tradesbook.models import Installer, User  # noqa: E402


class AuthState:
    """Which user the overridden auth dependencies resolve to"""

    def __init__(self):
        self.user_id: Optional[int] = None

    def login(self, user: User) -> None:
        self.user_id = user.id

    def logout(self) -> None:
        self.user_id = None


_auth = AuthState()


def _override_current_user(db: Session = Depends(get_db)) -> User:
    if _auth.user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return db.query(User).filter(User.id == _auth.user_id).first()


def _override_optional_user(db: Session = Depends(get_db)) -> Optional[User]:
    if _auth.user_id is None:
        return None
    return db.query(User).filter(User.id == _auth.user_id).first()


@pytest.fixture(autouse=True)
def setup_database():
    rate_limiter.memory_cache.clear()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        PricingRepository.seed_catalog(session)
    finally:
        session.close()
    _auth.logout()
    yield
    _auth.logout()


@pytest.fixture(autouse=True)
def sent_emails():
    """Every outgoing email is captured instead of sent"""
    with patch("tradesbook.email_service.send_email", new_callable=AsyncMock) as mock_send:
        mock_send.return_value = {"id": "test-email"}
        yield mock_send


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def auth():
    return _auth


@pytest.fixture()
def client():
    app.dependency_overrides[get_current_user] = _override_current_user
    app.dependency_overrides[get_optional_user] = _override_optional_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============================================================================
# Factories
# ============================================================================


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(
        role: str = "customer",
        email: Optional[str] = None,
        full_name: str = "Aoife Murphy",
        phone: str = "+353871234567",
        email_verified: bool = True,
    ) -> User:
        counter["n"] += 1
        user = User(
            firebase_uid=f"uid-{role}-{counter['n']}",
            email=email or f"{role}{counter['n']}@example.ie",
            email_verified=email_verified,
            full_name=full_name,
            phone=phone,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture()
def make_installer(db, make_user):
    def _make(
        approval_status: str = "approved",
        wallet_balance: float = 100.0,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        business_name: str = "Dublin TV Mounts",
    ) -> Installer:
        user = make_user(role="installer", full_name="Ciaran Byrne")
        installer = Installer(
            user_id=user.id,
            business_name=business_name,
            contact_name="Ciaran Byrne",
            email=user.email,
            phone="+353861112222",
            service_area="Dublin",
            years_experience=8,
            approval_status=approval_status,
            wallet_balance=wallet_balance,
            wallet_total_spent=0.0,
            latitude=latitude,
            longitude=longitude,
        )
        db.add(installer)
        db.commit()
        db.refresh(installer)
        return installer

    return _make


@pytest.fixture()
def customer(make_user):
    return make_user()


@pytest.fixture()
def admin(make_user):
    return make_user(role="admin", full_name="Site Admin")


def booking_payload(**overrides) -> dict:
    payload = {
        "contactName": "Aoife Murphy",
        "contactEmail": "aoife@example.ie",
        "contactPhone": "087 123 4567",
        "address": "12 Main Street, Swords, Co. Dublin",
        "eircode": "K67 X2Y3",
        "serviceType": "silver",
        "tvSize": 55,
        "wallType": "drywall",
        "mountType": "tilting",
        "addons": ["cable-concealment"],
        "preferredDate": (date.today() + timedelta(days=7)).isoformat(),
        "timeSlot": "11:00",
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def create_booking(client, auth):
    """POST a booking, optionally as a given user, and return the JSON body"""

    def _create(user: Optional[User] = None, **overrides) -> dict:
        previous = auth.user_id
        if user is not None:
            auth.login(user)
        response = client.post("/api/bookings", json=booking_payload(**overrides))
        auth.user_id = previous
        assert response.status_code == 201, response.text
        return response.json()

    return _create
