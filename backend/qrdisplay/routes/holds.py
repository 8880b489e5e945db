# backend/qrdisplay/routes/holds.py
"""
Product-hold routes.

POST creates a hold and reserves its units for PRODUCT_HOLD_HOURS. PATCH
applies the store's action (picked_up, cancelled, expired). GET lists a
store's holds, active ones by default.
"""
from flask import Blueprint, request

from ..errors import DomainError
from ..services import hold_service
from ..validation import PayloadPolicy, coerce_int, validate_payload
from .common import acting_org_id, error_response, json_body


holds_bp = Blueprint("holds", __name__, url_prefix="/api/holds")

CREATE_POLICY = PayloadPolicy(
    fields={"customer_id": int, "store_id": int, "product_sku": str, "quantity": int},
    required={"customer_id", "store_id", "product_sku"},
)

UPDATE_POLICY = PayloadPolicy(fields={"action": str}, required={"action"})


@holds_bp.post("")
def create_hold_route():
    try:
        data = validate_payload(json_body(), CREATE_POLICY)
        hold = hold_service.create_hold(**data)
    except DomainError as e:
        return error_response(e)
    return {"hold": hold.to_dict()}, 201


@holds_bp.get("")
def list_holds_route():
    try:
        store_id = coerce_int("store_id", request.args.get("store_id"))
        holds = hold_service.list_holds(store_id, status=request.args.get("status") or "active")
    except DomainError as e:
        return error_response(e)
    return {"items": [h.to_dict() for h in holds]}


@holds_bp.get("/<int:hold_id>")
def get_hold_route(hold_id: int):
    try:
        hold = hold_service.get_hold(hold_id)
    except DomainError as e:
        return error_response(e)
    return {"hold": hold.to_dict()}


@holds_bp.patch("/<int:hold_id>")
def update_hold_route(hold_id: int):
    try:
        data = validate_payload(json_body(), UPDATE_POLICY)
        hold = hold_service.update_hold(hold_id, data["action"], acting_org_id=acting_org_id())
    except DomainError as e:
        return error_response(e)
    return {"hold": hold.to_dict(), "action": data["action"]}
