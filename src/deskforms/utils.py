from __future__ import annotations

import secrets
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

import orjson
import ulid


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    return ensure_aware(dt).isoformat()


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str):
        try:
            return ensure_aware(datetime.fromisoformat(value))
        except ValueError:
            return now_utc()
    return now_utc()


def day_bounds(moment: datetime, tz_name: str) -> tuple[datetime, datetime]:
    """Return the UTC start/end of the calendar day containing ``moment`` in ``tz_name``."""
    tz = ZoneInfo(tz_name)
    local = ensure_aware(moment).astimezone(tz)
    start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    end = datetime.fromordinal(start.toordinal() + 1).replace(tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def dumps_json(value: Any) -> str:
    return orjson.dumps(value).decode("utf-8")


def loads_json(value: str | bytes | None) -> Any:
    if not value:
        return None
    return orjson.loads(value)


def new_ulid() -> str:
    value = ulid.new()
    return getattr(value, "str", str(value))


def new_public_token() -> str:
    return secrets.token_hex(16)


def generate_item_id(existing: set[str]) -> str:
    while True:
        candidate = secrets.token_hex(6)
        if candidate not in existing:
            return candidate
