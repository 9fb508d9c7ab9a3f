import re
from datetime import datetime, timezone
from typing import Optional
import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize user-supplied free text (names, roll numbers, order notes) before storing it.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Collapses runs of whitespace
    - Trims surrounding whitespace
    """
    if value is None:
        return ""
    # remove NULL bytes
    val = value.replace("\x00", "")
    # strip tags
    val = bleach.clean(val, tags=set(), strip=True)
    val = re.sub(r"\s+", " ", val)
    return val.strip()


def normalize_email(value: Optional[str]) -> str:
    if value is None:
        return ""
    return value.strip().lower()


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite DateTime columns drop tzinfo anyway."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
