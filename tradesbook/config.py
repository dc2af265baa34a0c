import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tradesbook.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Comma separated list of emails that are always treated as admins
ADMIN_EMAILS = [
    e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()
]

# Cloudflare R2 Configuration (room photos)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "tradesbook")

# Frontend base URL for links in emails and tracking pages
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
# Public base URL of this API, embedded in QR codes
PUBLIC_API_URL = os.getenv("PUBLIC_API_URL", "http://localhost:8000")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "tradesbook.ie <bookings@tradesbook.ie>")
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@tradesbook.ie")

# OpenAI (room analysis and TV placement previews)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_IMAGE_MODEL = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-3")
OPENAI_TIMEOUT_SECONDS = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

# Google Maps
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY")

# Nominatim fallback geocoder
NOMINATIM_BASE_URL = os.getenv("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org").rstrip(
    "/"
)
# Required by Nominatim policy (include a way to contact you)
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "tradesbook/1.0 (support@tradesbook.ie)")

# Marketplace economics
COMMISSION_RATE = float(os.getenv("COMMISSION_RATE", "0.15"))
DEFAULT_LEAD_FEE = float(os.getenv("DEFAULT_LEAD_FEE", "15.0"))
NEARBY_INSTALLER_RADIUS_KM = float(os.getenv("NEARBY_INSTALLER_RADIUS_KM", "50"))

# Demo wallet top-ups (no payment provider behind them)
WALLET_DEMO_TOPUP_ENABLED = os.getenv("WALLET_DEMO_TOPUP_ENABLED", "false").lower() == "true"

# Open bookings older than this many days past their date are cancelled by the worker
STALE_BOOKING_GRACE_DAYS = int(os.getenv("STALE_BOOKING_GRACE_DAYS", "1"))
