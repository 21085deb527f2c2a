"""
Helpers for the universal entity/dynamic-data tables.

Dynamic field values are stored as text together with a field_type; these
helpers convert between Python values and that representation.
"""

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

FIELD_TYPES = ("text", "number", "boolean", "json", "date")


def infer_field_type(value: Any) -> str:
    """Pick the dynamic field type for a Python value."""
    # bool is a subclass of int, so test it first
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, (dict, list)):
        return "json"
    return "text"


def encode_field_value(value: Any, field_type: Optional[str] = None) -> Optional[str]:
    """Serialize a value for core_dynamic_data.field_value."""
    if value is None:
        return None
    field_type = field_type or infer_field_type(value)
    if field_type == "json":
        return json.dumps(value, default=str)
    if field_type == "boolean":
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def decode_field_value(raw: Optional[str], field_type: str) -> Any:
    """
    Inverse of encode_field_value.

    Values that do not parse as their declared type are returned as the raw
    string rather than raising, since rows may have been written by other
    tools.
    """
    if raw is None:
        return None
    if field_type == "boolean":
        return raw.strip().lower() in ("true", "1", "yes")
    if field_type == "number":
        try:
            number = float(raw)
        except ValueError:
            return raw
        return int(number) if number.is_integer() and "." not in raw else number
    if field_type == "json":
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return raw


def flatten_fields(rows: Iterable[Any]) -> dict[str, Any]:
    """Merge dynamic data rows (objects with field_name/field_type/field_value) into a dict."""
    return {
        row.field_name: decode_field_value(row.field_value, row.field_type)
        for row in rows
    }


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce a JSON number-ish value to float."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default
