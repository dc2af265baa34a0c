"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional

EIRCODE_PATTERN = re.compile(r"\b((?:[A-Z]\d{2}|D6W))\s?([A-Z0-9]{4})\b")


def validate_irish_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize an Irish phone number to E.164 format.

    Accepts national (087 123 4567), international (+353 87 123 4567) and
    00353 prefixed numbers.

    Returns:
        Normalized phone number (+353XXXXXXXXX)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    digits = re.sub(r"\D", "", phone)

    if digits.startswith("00353"):
        digits = digits[5:]
    elif digits.startswith("353"):
        digits = digits[3:]

    if digits.startswith("0"):
        digits = digits[1:]

    # Irish subscriber numbers are 7-9 digits after the trunk prefix
    if len(digits) < 7 or len(digits) > 9:
        raise ValueError("Phone number must be a valid Irish number")

    return f"+353{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def extract_eircode(text: Optional[str]) -> Optional[str]:
    """Find an Eircode in free text, returned as 'A65 F4E2'"""
    if not text:
        return None
    match = EIRCODE_PATTERN.search(text.upper())
    if not match:
        return None
    return f"{match.group(1)} {match.group(2)}"


def validate_eircode(eircode: Optional[str]) -> Optional[str]:
    """Normalize an Eircode or raise ValueError"""
    if not eircode:
        return eircode
    cleaned = eircode.strip().upper()
    normalized = extract_eircode(cleaned)
    if not normalized or len(cleaned.replace(" ", "")) != 7:
        raise ValueError("Invalid Eircode format")
    return normalized


def validate_future_date(value: Optional[date], today: Optional[date] = None) -> Optional[date]:
    """Reject dates in the past"""
    if value is None:
        return value
    today = today or date.today()
    if value < today:
        raise ValueError("Date cannot be in the past")
    return value
