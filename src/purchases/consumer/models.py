import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from .errors import MessageDecodeError

# The wire format's "zero" instant (0001-01-01T00:00:00Z) means "not set".
ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)

# YYYY-MM-DDTHH:MM:SS[.frac](Z|+HH:MM|-HH:MM), nothing else
RFC3339_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})[Tt](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?(?:([Zz])|([+-])(\d{2}):(\d{2}))"
)


@dataclass
class PurchaseRecord:
    user_token: str = ""
    place_id: int = 0
    event_time: Optional[datetime] = None
    purchase_time: Optional[datetime] = None  # None -> insertion time
    cost: int = 0


@dataclass
class DonationRecord:
    user_token: str = ""
    collection_id: int = 0
    donation_time: Optional[datetime] = None  # None -> insertion time
    amount: int = 0


# -----------------------------------------------------------------------------
# Field parsers
# -----------------------------------------------------------------------------
def is_zero_time(value: Optional[datetime]) -> bool:
    return value is None or value == ZERO_TIME


def _parse_rfc3339(field: str, value: Any) -> Optional[datetime]:
    """
    RFC 3339 string -> tz-aware datetime
    - None -> None
    - offset (Z or +-HH:MM) is mandatory; date-only, basic format, spaces are rejected
    - fractions past microseconds are truncated
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise MessageDecodeError(f"{field}: expected RFC 3339 string, got {type(value).__name__}")

    m = RFC3339_RE.fullmatch(value)
    if m is None:
        raise MessageDecodeError(f"{field}: invalid timestamp {value!r}")

    year, month, day, hour, minute, second, frac, zulu, sign, off_h, off_m = m.groups()
    try:
        if zulu:
            tz = timezone.utc
        else:
            offset = timedelta(hours=int(off_h), minutes=int(off_m))
            tz = timezone(-offset if sign == "-" else offset)
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second),
            int((frac or "0")[:6].ljust(6, "0")),
            tzinfo=tz,
        )
    except ValueError as e:
        raise MessageDecodeError(f"{field}: invalid timestamp {value!r}") from e


def _int_field(field: str, value: Any) -> int:
    if value is None:
        return 0
    # bool is an int subclass; floats are rejected even when integral
    if isinstance(value, bool) or not isinstance(value, int):
        raise MessageDecodeError(f"{field}: expected integer, got {type(value).__name__}")
    return value


def _str_field(field: str, value: Any) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MessageDecodeError(f"{field}: expected string, got {type(value).__name__}")
    return value


def _optional_time(field: str, value: Any) -> Optional[datetime]:
    """Absent and zero both mean "use insertion time"."""
    dt = _parse_rfc3339(field, value)
    return None if is_zero_time(dt) else dt


# -----------------------------------------------------------------------------
# Decoders (payload is the already-parsed JSON object)
# -----------------------------------------------------------------------------
def decode_purchase(payload: Dict[str, Any]) -> PurchaseRecord:
    return PurchaseRecord(
        user_token=_str_field("user_token", payload.get("user_token")),
        place_id=_int_field("place_id", payload.get("place_id")),
        event_time=_parse_rfc3339("event_time", payload.get("event_time")),
        purchase_time=_optional_time("purchase_time", payload.get("purchase_time")),
        cost=_int_field("cost", payload.get("cost")),
    )


def decode_donation(payload: Dict[str, Any]) -> DonationRecord:
    return DonationRecord(
        user_token=_str_field("user_token", payload.get("user_token")),
        collection_id=_int_field("collection_id", payload.get("collection_id")),
        donation_time=_optional_time("donation_time", payload.get("donation_time")),
        amount=_int_field("amount", payload.get("amount")),
    )
