import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from faker import Faker

fake = Faker()

# ---------------------------------------------------------
# 1. Catalogs
# ---------------------------------------------------------
PLACES = [
    {"id": 1, "name": "Kazan Arena", "price": 2500},
    {"id": 2, "name": "Tatar Opera and Ballet Theatre", "price": 1800},
    {"id": 3, "name": "Kamal Theatre", "price": 1200},
    {"id": 4, "name": "Kazan Kremlin tour", "price": 700},
    {"id": 5, "name": "National Museum", "price": 400},
    {"id": 6, "name": "Chaliapin Palace concert hall", "price": 1500},
    {"id": 7, "name": "Kazan Circus", "price": 900},
    {"id": 8, "name": "Planetarium", "price": 350},
]

COLLECTIONS = [
    {"id": 1, "name": "Animal shelter"},
    {"id": 2, "name": "Park restoration"},
    {"id": 3, "name": "Children's hospital equipment"},
    {"id": 4, "name": "Library books"},
    {"id": 5, "name": "Veterans support"},
]

# Payload kinds the consumer has no table for
UNKNOWN_SHAPES = [
    {"foo": "bar"},
    {"user_token": "anonymous", "comment": "no discriminant"},
    {"order_id": 17, "amount": 100},
]


def rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def user_token() -> str:
    return fake.uuid4()


# ---------------------------------------------------------
# 2. Builders
# ---------------------------------------------------------
def build_purchase_json(token=None, place=None, tagged=False, with_purchase_time=True) -> Dict[str, Any]:
    """Single ticket purchase"""
    place = place if place else random.choice(PLACES)
    now = datetime.now(timezone.utc)
    event_time = now + timedelta(days=random.randint(1, 60), hours=random.randint(0, 23))

    msg: Dict[str, Any] = {
        "user_token": token if token else user_token(),
        "place_id": place["id"],
        "event_time": rfc3339(event_time),
        "cost": place["price"],
    }
    if with_purchase_time:
        msg["purchase_time"] = rfc3339(now)
    if tagged:
        msg["type"] = "purchase"
    return msg


def build_donation_json(token=None, collection=None, amount: Optional[int] = None, tagged=False) -> Dict[str, Any]:
    """Single donation (donation_time left out half the time -> insertion time)"""
    collection = collection if collection else random.choice(COLLECTIONS)

    msg: Dict[str, Any] = {
        "user_token": token if token else user_token(),
        "collection_id": collection["id"],
        "amount": amount if amount else random.choice([50, 100, 250, 500, 1000]),
    }
    if random.random() < 0.5:
        msg["donation_time"] = rfc3339(datetime.now(timezone.utc))
    if tagged:
        msg["type"] = "donation"
    return msg


def build_invalid_json() -> Dict[str, Any]:
    """Known shape, missing a required field"""
    if random.random() < 0.5:
        msg = build_purchase_json()
        drop = random.choice(["user_token", "event_time", "cost"])
    else:
        msg = build_donation_json()
        drop = random.choice(["user_token", "amount"])
    msg.pop(drop)
    return msg


def build_unknown_json() -> Dict[str, Any]:
    return dict(random.choice(UNKNOWN_SHAPES))
