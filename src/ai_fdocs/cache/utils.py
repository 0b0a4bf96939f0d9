from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_date(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime(DATE_FORMAT)


def parse_date(value: str) -> datetime:
    return datetime.strptime(value.strip(), DATE_FORMAT).replace(tzinfo=timezone.utc)


def is_latest_cache_fresh(fetched_at: str, latest_ttl_hours: int, now: Optional[datetime] = None) -> bool:
    """
    Check a `YYYY-MM-DD` stamp against the TTL.

    The stamp counts from midnight UTC of that day. Anything unparsable is stale.
    """
    try:
        fetched = parse_date(fetched_at)
    except (TypeError, ValueError):
        return False
    current = now or utc_now()
    age_hours = int((current - fetched).total_seconds() // 3600)
    return age_hours < latest_ttl_hours


def _as_int(part: Optional[str]) -> Optional[int]:
    if part is None or not part.isdigit():
        return None
    return int(part)


def is_version_better(candidate: str, current_best: Optional[str]) -> bool:
    """Component-wise comparison: numeric parts compare as numbers, everything else as strings."""
    if current_best is None:
        return True

    new_parts = candidate.split(".")
    best_parts = current_best.split(".")
    for i in range(max(len(new_parts), len(best_parts))):
        new_raw = new_parts[i] if i < len(new_parts) else None
        best_raw = best_parts[i] if i < len(best_parts) else None
        new_num = _as_int(new_raw)
        best_num = _as_int(best_raw)

        if new_num is not None and best_num is not None and new_num != best_num:
            return new_num > best_num
        if new_num is not None and best_num is None:
            return True
        if new_num is None and best_num is not None:
            return False

        new_str = new_raw or ""
        best_str = best_raw or ""
        if new_str != best_str:
            return new_str > best_str

    return False


def package_dir_name(package_name: str, version: str) -> str:
    return f"{package_name}@{version}"


def split_name_version(dir_name: str) -> Optional[tuple[str, str]]:
    name, sep, version = dir_name.rpartition("@")
    if not sep or not name or not version:
        return None
    return name, version
