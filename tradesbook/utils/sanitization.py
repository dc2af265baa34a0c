import html
import re
from typing import Optional

import bleach

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def escape_html(value: Optional[str]) -> str:
    """
    Escape HTML special characters for values interpolated into server
    rendered pages and email templates. None renders as an empty string.
    """
    if value is None:
        return ""
    return html.escape(str(value), quote=True)


def clean_text(value: Optional[str], max_length: int = 2000) -> Optional[str]:
    """
    Clean free text submitted by customers and installers (notes, bios,
    review comments).

    Markup is stripped with bleach rather than escaped so the stored text stays
    readable, control characters are dropped, and the result is truncated.

    Returns:
        Cleaned string, or None when the input is empty after cleaning
    """
    if value is None:
        return None

    cleaned = bleach.clean(str(value), tags=[], attributes={}, strip=True)
    # bleach escapes bare ampersands and angle brackets; keep plain text
    cleaned = html.unescape(cleaned)
    cleaned = CONTROL_CHARS.sub("", cleaned).strip()

    if not cleaned:
        return None

    return cleaned[:max_length]
