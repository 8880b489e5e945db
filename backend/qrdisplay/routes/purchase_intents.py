# backend/qrdisplay/routes/purchase_intents.py
"""
Purchase-intent routes.

Creating an intent reserves stock; fulfilling it consumes the reservation and
awards staff points in one transaction; cancelling releases the reservation.
The staff identity is passed through as given (authenticated upstream).
"""
from flask import Blueprint, request

from ..errors import DomainError
from ..services import fulfillment_service
from ..validation import PayloadPolicy, coerce_int, validate_payload
from .common import error_response, json_body


purchase_intents_bp = Blueprint("purchase_intents", __name__, url_prefix="/api/purchase-intents")

CREATE_POLICY = PayloadPolicy(
    fields={
        "customer_id": int,
        "store_id": int,
        "product_sku": str,
        "quantity": int,
        "original_price_cents": int,
        "discount_percent": int,
        "final_price_cents": int,
    },
    required={"customer_id", "store_id", "product_sku", "original_price_cents", "final_price_cents"},
)

FULFILL_POLICY = PayloadPolicy(
    fields={"staff_id": int, "final_price_cents": int},
    required={"staff_id"},
)


@purchase_intents_bp.post("")
def create_intent_route():
    try:
        data = validate_payload(json_body(), CREATE_POLICY)
        intent = fulfillment_service.create_purchase_intent(**data)
    except DomainError as e:
        return error_response(e)
    return {"intent": intent.to_dict()}, 201


@purchase_intents_bp.get("")
def list_intents_route():
    try:
        store_id = coerce_int("store_id", request.args.get("store_id"))
        intents = fulfillment_service.list_purchase_intents(store_id, status=request.args.get("status") or None)
    except DomainError as e:
        return error_response(e)
    return {"items": [i.to_dict() for i in intents]}


@purchase_intents_bp.get("/<int:intent_id>")
def get_intent_route(intent_id: int):
    try:
        intent = fulfillment_service.get_purchase_intent(intent_id)
    except DomainError as e:
        return error_response(e)
    return {"intent": intent.to_dict()}


@purchase_intents_bp.get("/verify/<string:verify_slug>")
def get_intent_by_slug_route(verify_slug: str):
    try:
        intent = fulfillment_service.get_by_verify_slug(verify_slug)
    except DomainError as e:
        return error_response(e)
    return {"intent": intent.to_dict()}


@purchase_intents_bp.post("/<int:intent_id>/fulfill")
def fulfill_intent_route(intent_id: int):
    try:
        data = validate_payload(json_body(), FULFILL_POLICY)
        intent = fulfillment_service.fulfill_purchase_intent(
            intent_id,
            data["staff_id"],
            final_price_cents=data.get("final_price_cents"),
        )
    except DomainError as e:
        return error_response(e)
    return {"intent": intent.to_dict()}


@purchase_intents_bp.post("/<int:intent_id>/cancel")
def cancel_intent_route(intent_id: int):
    try:
        intent = fulfillment_service.cancel_purchase_intent(intent_id)
    except DomainError as e:
        return error_response(e)
    return {"intent": intent.to_dict()}
