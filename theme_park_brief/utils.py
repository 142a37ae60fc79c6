from __future__ import annotations

import hashlib
import html
import re
from datetime import datetime, timezone
from urllib.parse import urljoin, urlparse, urlunparse

from dateutil import parser as date_parser


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def strip_html(value: str) -> str:
    text = re.sub(r"<[^>]*>", " ", value or "")
    text = html.unescape(text)
    return normalize_whitespace(text)


def stable_id(*parts: str) -> str:
    payload = "|".join(part for part in parts if part)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def canonicalize_url(url: str) -> str:
    """Drop the query string and fragment; unparseable input is returned as-is."""
    if not url:
        return ""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url
    if not parsed.scheme or not parsed.netloc:
        return url.strip()
    cleaned = parsed._replace(
        query="",
        fragment="",
        params="",
        scheme=parsed.scheme.lower(),
        netloc=parsed.netloc.lower(),
    )
    return urlunparse(cleaned)


def absolutize_url(url: str, base: str) -> str:
    if not url:
        return ""
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base, url)


def extract_domain(url: str) -> str:
    parsed = urlparse(url or "")
    return parsed.netloc.lower().replace("www.", "")


def parse_timestamp(value: datetime | str | int | float | None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        try:
            parsed = date_parser.parse(str(value))
        except (ValueError, TypeError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def hours_ago(published_at: datetime, now: datetime) -> float:
    return (now - published_at).total_seconds() / 3600


def is_recent(published_at: datetime | None, now: datetime, window_hours: float) -> bool:
    # Missing timestamps count as recent.
    if published_at is None:
        return True
    return hours_ago(published_at, now) <= window_hours


def safe_sentence(text: str, max_chars: int = 220) -> str:
    cleaned = normalize_whitespace(text)
    if len(cleaned) <= max_chars:
        return cleaned
    truncated = cleaned[: max_chars - 1]
    period_idx = truncated.rfind(".")
    if period_idx > 80:
        return truncated[: period_idx + 1]
    return truncated + "..."
