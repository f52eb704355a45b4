"""Shared parsing helpers for feed sources."""

import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

from bs4 import BeautifulSoup

DEFAULT_TITLE = "Untitled"


def strip_html(value: Optional[str]) -> str:
    """Convert an HTML fragment to collapsed plain text."""
    if not value:
        return ""
    if "<" not in value:
        return " ".join(value.split())

    text = BeautifulSoup(value, "html.parser").get_text(separator=" ")
    return " ".join(text.split())


def parse_published(
    value: Optional[str], parsed: Optional[time.struct_time] = None
) -> Optional[datetime]:
    """
    Parse a feed item date.

    Args:
        value: Raw date string (RFC 822 or ISO 8601)
        parsed: Pre-parsed UTC struct_time, as provided by feedparser

    Returns:
        Timezone-aware datetime, or None if absent or unparseable
    """
    if parsed is not None:
        try:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            pass

    if not value or not value.strip():
        return None

    value = value.strip()
    try:
        result = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        try:
            result = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result
