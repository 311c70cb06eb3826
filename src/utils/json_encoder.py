"""JSON helpers for calculation results (Decimal, dates, enums)."""

import json
from dataclasses import asdict, is_dataclass
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder for Decimal values, ISO dates and enum members.

    None stays None, so missing monthly values serialize as JSON null
    and are never dropped from a series.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return float(obj)
        elif isinstance(obj, (datetime, date)):
            return obj.isoformat()
        elif isinstance(obj, Enum):
            return obj.value
        elif is_dataclass(obj) and not isinstance(obj, type):
            return serialize_for_json(obj)
        return super().default(obj)


def serialize_for_json(obj: Any) -> Any:
    """Recursively convert an object to JSON-serializable format.

    Objects with a `to_dict` method are serialized through it.
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Enum):
        return obj.value
    elif isinstance(obj, dict):
        return {key: serialize_for_json(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [serialize_for_json(item) for item in obj]
    elif hasattr(obj, "to_dict"):
        return obj.to_dict()
    elif is_dataclass(obj) and not isinstance(obj, type):
        return serialize_for_json(asdict(obj))
    return obj


def json_dumps(obj: Any, **kwargs) -> str:
    """Serialize object to JSON string with Decimal support."""
    return json.dumps(obj, cls=DecimalEncoder, **kwargs)
