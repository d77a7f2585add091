import logging
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a ``Z`` suffix."""
    return to_iso(utc_now())


def to_iso(dt_value: datetime) -> str:
    dt_value = ensure_aware_utc(dt_value)
    return dt_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_datetime(dt_value, default_now: bool = True) -> datetime | None:
    """
    Parse datetime from API response or stored record to aware UTC datetime.

    Handles:
    - ISO string with timezone (e.g., "2024-01-01T00:00:00Z")
    - datetime object with or without timezone (naive values are taken as UTC)
    - None or invalid -> current UTC time (if default_now=True) or None
    """
    if dt_value is None or dt_value == "":
        return utc_now() if default_now else None

    if isinstance(dt_value, str):
        try:
            dt = datetime.fromisoformat(dt_value.replace("Z", "+00:00"))
            return ensure_aware_utc(dt)
        except (ValueError, AttributeError):
            logger.warning(f"Failed to parse datetime string: {dt_value}")
            return utc_now() if default_now else None

    if isinstance(dt_value, datetime):
        return ensure_aware_utc(dt_value)

    logger.warning(f"Unexpected datetime type: {type(dt_value)}")
    return utc_now() if default_now else None


def ensure_aware_utc(dt_value: datetime) -> datetime:
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value.astimezone(timezone.utc)


def format_duration(started_at, finished_at) -> str | None:
    """
    Human readable build duration, "4m 12s" or "37s".

    Returns None when either bound is missing or the range is negative.
    """
    start = parse_datetime(started_at, default_now=False)
    finish = parse_datetime(finished_at, default_now=False)
    if start is None or finish is None:
        return None

    duration_ms = int((finish - start).total_seconds() * 1000)
    if duration_ms < 0:
        return None

    minutes = duration_ms // 60000
    seconds = (duration_ms % 60000) // 1000
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"
