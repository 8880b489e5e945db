# Overview: Payload validation for JSON routes and CLI input.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from qrdisplay.errors import ValidationError
from qrdisplay.time_utils import parse_iso_datetime


# Largest unit count accepted in a single operation; guards integer overflow
# in SQLite/Postgres INTEGER columns.
MAX_QUANTITY = 1_000_000


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer for request bodies:
    - fields: allowed keys mapped to their expected type (int, str, bool, datetime)
    - required: keys that must be present
    """
    fields: dict[str, type]
    required: set[str] = field(default_factory=set)


def coerce_int(name: str, value: Any) -> int:
    """
    Strict integer coercion: rejects bools, floats, decimals and scientific notation.
    """
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{name} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{name} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{name} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{name} must be an integer, not a decimal")
    raise ValidationError(f"{name} must be an integer")


def require_positive_quantity(name: str, value: Any) -> int:
    qty = coerce_int(name, value)
    if qty <= 0:
        raise ValidationError(f"{name} must be > 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{name} cannot exceed {MAX_QUANTITY}")
    return qty


def require_text(name: str, value: Any, *, max_length: int = 255) -> str:
    if value is None:
        raise ValidationError(f"{name} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{name} cannot be blank")
    if len(text) > max_length:
        raise ValidationError(f"{name} exceeds max length {max_length}")
    return text


def _coerce_value(name: str, expected: type, value: Any):
    if expected is int:
        return coerce_int(name, value)
    if expected is bool:
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{name} must be a boolean")
    if expected is datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{name} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{name} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{name} must be an ISO-8601 datetime")
    return require_text(name, value)


def validate_payload(payload: Any, policy: PayloadPolicy) -> dict:
    """
    Validates + normalizes an incoming JSON object against a PayloadPolicy.
    Unknown keys are rejected; missing required keys are reported together.
    Returns a cleaned dict with only allowed, non-null fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = sorted(k for k in policy.required if payload.get(k) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cleaned: dict = {}
    for key, raw in payload.items():
        if key not in policy.fields:
            raise ValidationError(f"Field not allowed: {key}")
        if raw is None:
            continue
        cleaned[key] = _coerce_value(key, policy.fields[key], raw)
    return cleaned
