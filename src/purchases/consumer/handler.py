import json
import logging
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional, Union

from .models import (
    DonationRecord,
    PurchaseRecord,
    decode_donation,
    decode_purchase,
    is_zero_time,
)
from .repository import PostgresRepository

logger = logging.getLogger(__name__)

KIND_PURCHASE = "purchase"
KIND_DONATION = "donation"
KIND_UNKNOWN = "unknown"

# Optional explicit discriminant. Payloads without it are classified by shape.
TYPE_FIELD = "type"


# -----------------------------------------------------------------------------
# Parse / classify
# -----------------------------------------------------------------------------
def parse_body(body: bytes) -> Optional[Dict[str, Any]]:
    """
    Raw bytes -> JSON object
    - anything that is not a JSON object -> None (logged, never raised)
    """
    # ValueError covers JSONDecodeError, bad UTF-8 and oversized int literals
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as e:
        logger.warning("Received malformed message", extra={"body": _preview(body), "error": str(e)})
        return None

    if not isinstance(payload, dict):
        logger.warning("Received message that is not a JSON object", extra={"body": _preview(body)})
        return None
    return payload


def classify(payload: Dict[str, Any]) -> str:
    """
    1) "type" naming a registered kind wins
    2) otherwise shape: place_id -> purchase, collection_id -> donation (place_id checked first)
    3) neither -> unknown
    """
    tag = payload.get(TYPE_FIELD)
    if isinstance(tag, str) and tag in PROCESSORS:
        return tag

    if "place_id" in payload:
        return KIND_PURCHASE
    if "collection_id" in payload:
        return KIND_DONATION
    return KIND_UNKNOWN


# -----------------------------------------------------------------------------
# Validation (required fields must hold non-default values)
# -----------------------------------------------------------------------------
def validate_purchase(rec: PurchaseRecord) -> bool:
    return bool(rec.user_token) and rec.place_id != 0 and not is_zero_time(rec.event_time) and rec.cost != 0


def validate_donation(rec: DonationRecord) -> bool:
    return bool(rec.user_token) and rec.collection_id != 0 and rec.amount != 0


# -----------------------------------------------------------------------------
# Per-kind processing
# -----------------------------------------------------------------------------
def process_purchase(payload: Dict[str, Any], repo: PostgresRepository) -> bool:
    rec = decode_purchase(payload)
    if not validate_purchase(rec):
        logger.warning("Received invalid purchase message", extra={"record": _loggable(rec)})
        return False

    repo.insert_purchase(rec)
    logger.info("Saved ticket purchase", extra={"purchase_message": _loggable(rec)})
    return True


def process_donation(payload: Dict[str, Any], repo: PostgresRepository) -> bool:
    rec = decode_donation(payload)
    if not validate_donation(rec):
        logger.warning("Received invalid donation message", extra={"record": _loggable(rec)})
        return False

    repo.insert_donation(rec)
    logger.info("Saved donation", extra={"donation_message": _loggable(rec)})
    return True


PROCESSORS: Dict[str, Callable[[Dict[str, Any], PostgresRepository], bool]] = {
    KIND_PURCHASE: process_purchase,
    KIND_DONATION: process_donation,
}


# -----------------------------------------------------------------------------
# Main handler
# -----------------------------------------------------------------------------
def handle_message(body: bytes, repo: PostgresRepository) -> bool:
    """
    Process one delivery (called by the consumption loop).

    Returns:
    - True  => a row was inserted
    - False => message dropped (malformed, unknown shape, failed validation)

    Raises MessageDecodeError (bad field types) / PersistError for the loop to log.
    Nothing is retried either way: the delivery was already acknowledged.
    """
    if not body:
        logger.warning("Received empty message")
        return False

    payload = parse_body(body)
    if payload is None:
        return False

    kind = classify(payload)
    if kind == KIND_UNKNOWN:
        logger.warning("Received message with unknown type", extra={"body": _preview(body)})
        return False

    return PROCESSORS[kind](payload, repo)


# -----------------------------------------------------------------------------
# Log helpers
# -----------------------------------------------------------------------------
def _loggable(rec: Union[PurchaseRecord, DonationRecord]) -> Dict[str, Any]:
    """Record -> dict with ISO timestamps (JSON formatter friendly)."""
    out = asdict(rec)
    for k, v in out.items():
        if hasattr(v, "isoformat"):
            out[k] = v.isoformat()
    return out


def _preview(body: bytes, limit: int = 1024) -> str:
    return body[:limit].decode("utf-8", errors="replace")
