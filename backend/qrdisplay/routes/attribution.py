# backend/qrdisplay/routes/attribution.py
"""
Conversion tracking routes.

POST /api/attribution/conversions is what the order webhook handler calls
for a paid online order. A non-attributed order is a normal 200 answer with
"attributed": false, never an error.
"""
from datetime import datetime

from flask import Blueprint, request

from ..errors import DomainError
from ..services import attribution_service
from ..validation import PayloadPolicy, coerce_int, validate_payload
from .common import error_response, json_body


attribution_bp = Blueprint("attribution", __name__, url_prefix="/api/attribution")

CONVERSION_POLICY = PayloadPolicy(
    fields={
        "org_id": int,
        "customer_id": int,
        "external_order_id": str,
        "order_total_cents": int,
        "purchase_date": datetime,
        "credited_staff_id": int,
    },
    required={"org_id", "customer_id", "external_order_id", "order_total_cents"},
)


@attribution_bp.post("/conversions")
def record_conversion_route():
    try:
        data = validate_payload(json_body(), CONVERSION_POLICY)
        decision, conversion = attribution_service.record_conversion(**data)
    except DomainError as e:
        return error_response(e)
    body = decision.to_dict()
    body["conversion"] = conversion.to_dict() if conversion is not None else None
    return body, (201 if conversion is not None else 200)


@attribution_bp.post("/conversions/<int:conversion_id>/paid")
def mark_paid_route(conversion_id: int):
    try:
        conversion = attribution_service.mark_conversion_paid(conversion_id)
    except DomainError as e:
        return error_response(e)
    return {"conversion": conversion.to_dict()}


@attribution_bp.get("/orgs/<int:org_id>/conversions")
def list_conversions_route(org_id: int):
    try:
        paid_arg = request.args.get("paid")
        paid = None if paid_arg is None else paid_arg.lower() in {"1", "true", "yes"}
        store_arg = request.args.get("store_id")
        conversions = attribution_service.list_conversions(
            org_id,
            store_id=coerce_int("store_id", store_arg) if store_arg else None,
            paid=paid,
        )
    except DomainError as e:
        return error_response(e)
    return {"items": [c.to_dict() for c in conversions]}
