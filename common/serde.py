import json
from datetime import date, datetime
from typing import Any


def _default(value):
    # dates come back from postgres as date/datetime objects
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


# converts rows (dicts with dates) to JSON bytes for the redis cache
def to_json_bytes(payload: Any) -> bytes:
    return json.dumps(payload, default=_default).encode("utf-8")


# converts JSON bytes back to Python objects
def from_json_bytes(data: bytes):
    return json.loads(data.decode("utf-8"))
