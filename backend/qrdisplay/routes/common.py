# Overview: Shared helpers for JSON routes; error mapping and acting-organization header.

from flask import current_app, request

from ..errors import DomainError, StorageError, ValidationError
from ..validation import coerce_int


ORG_HEADER = "X-Org-Id"


def error_response(exc: DomainError):
    """
    Map a domain error to its JSON body and status code.

    Caller-correctable messages are returned verbatim; storage failures only
    carry the generic public message.
    """
    if isinstance(exc, StorageError):
        current_app.logger.error("Storage failure surfaced to client: %s", exc.detail)
    return {"error": str(exc), "kind": exc.kind}, exc.status_code


def acting_org_id() -> int | None:
    """Organization the caller acts for (set by the auth layer), None for platform calls."""
    raw = request.headers.get(ORG_HEADER)
    if raw is None or raw == "":
        return None
    return coerce_int(ORG_HEADER, raw)


def query_int(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return coerce_int(name, raw)


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
