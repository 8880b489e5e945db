# backend/qrdisplay/routes/receiving.py
"""
Wholesale receiving routes.

POST /api/receiving/verify is the store's one-tap "shipment arrived" action:
it receives every pending order sharing the verification token. Resubmitting
a used token answers 409.
"""
from flask import Blueprint, request

from ..errors import DomainError, ValidationError
from ..services import receive_service
from ..validation import PayloadPolicy, coerce_int, require_positive_quantity, require_text, validate_payload
from .common import acting_org_id, error_response, json_body, query_int


receiving_bp = Blueprint("receiving", __name__, url_prefix="/api/receiving")

INCOMING_ORDER_POLICY = PayloadPolicy(
    fields={
        "store_id": int,
        "product_sku": str,
        "quantity_ordered": int,
        "shopify_order_number": str,
        "verification_token": str,
    },
    required={"store_id", "product_sku", "quantity_ordered"},
)

VERIFY_POLICY = PayloadPolicy(fields={"verification_token": str}, required={"verification_token"})


@receiving_bp.post("/orders")
def create_incoming_order_route():
    try:
        data = validate_payload(json_body(), INCOMING_ORDER_POLICY)
        order = receive_service.create_incoming_order(**data)
    except DomainError as e:
        return error_response(e)
    return {"order": order.to_dict()}, 201


@receiving_bp.get("/orders/<int:order_id>")
def get_incoming_order_route(order_id: int):
    try:
        order = receive_service.get_incoming_order(order_id)
    except DomainError as e:
        return error_response(e)
    return {"order": order.to_dict()}


@receiving_bp.get("/stores/<int:store_id>/orders")
def list_incoming_orders_route(store_id: int):
    try:
        orders, total = receive_service.list_incoming_orders(
            store_id,
            status=request.args.get("status") or None,
            limit=query_int("limit", 100),
            offset=query_int("offset", 0),
        )
    except DomainError as e:
        return error_response(e)
    return {"items": [o.to_dict() for o in orders], "total": total}


@receiving_bp.post("/orders/<int:order_id>/receive")
def receive_order_route(order_id: int):
    try:
        order = receive_service.receive_wholesale(order_id, acting_org_id=acting_org_id())
    except DomainError as e:
        return error_response(e)
    return {"order": order.to_dict()}


@receiving_bp.post("/verify")
def verify_shipment_route():
    try:
        data = validate_payload(json_body(), VERIFY_POLICY)
        receipt = receive_service.receive_by_token(data["verification_token"], acting_org_id=acting_org_id())
    except DomainError as e:
        return error_response(e)
    return {
        "orders": [o.to_dict() for o in receipt.orders],
        "units_received": receipt.units_received,
    }


@receiving_bp.post("/convert")
def convert_wholesale_route():
    """
    Convert wholesale box lines to retail units.

    Body: {"org_id": 1, "lines": [{"sku": "VD-SB-30-BX", "quantity": 2}]}
    """
    try:
        payload = json_body()
        org_id = coerce_int("org_id", payload.get("org_id"))
        raw_lines = payload.get("lines")
        if not isinstance(raw_lines, list) or not raw_lines:
            raise ValidationError("lines must be a non-empty list")
        lines = []
        for raw in raw_lines:
            if not isinstance(raw, dict):
                raise ValidationError("Each line must be an object")
            lines.append(receive_service.WholesaleLine(
                sku=require_text("sku", raw.get("sku"), max_length=64),
                quantity=require_positive_quantity("quantity", raw.get("quantity")),
            ))
        result = receive_service.convert_wholesale_lines(org_id, lines)
    except DomainError as e:
        return error_response(e)
    return {
        "success": result.success,
        "updates": [u.__dict__ for u in result.updates],
        "errors": result.errors,
    }, (200 if result.success else 422)
