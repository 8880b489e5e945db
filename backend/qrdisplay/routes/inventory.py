# backend/qrdisplay/routes/inventory.py
"""
Stock ledger routes.

Reads expose the persisted schema surface (stock snapshots, ledger history
newest first, paginated). Writes go through ledger_service only.

Tenancy: an X-Org-Id header restricts manual corrections to that
organization's stores.
"""
from flask import Blueprint, request

from ..errors import DomainError
from ..services import ledger_service
from ..services.commands import AdjustCommand, ReleaseCommand, ReserveCommand
from ..validation import PayloadPolicy, validate_payload
from .common import acting_org_id, error_response, json_body, query_int


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

OPEN_STOCK_POLICY = PayloadPolicy(
    fields={"product_sku": str, "initial_quantity": int, "notes": str},
    required={"product_sku"},
)

HOLD_POLICY = PayloadPolicy(
    fields={"store_id": int, "product_sku": str, "quantity": int, "notes": str},
    required={"store_id", "product_sku", "quantity"},
)

ADJUST_POLICY = PayloadPolicy(
    fields={"store_id": int, "product_sku": str, "delta": int, "reason": str},
    required={"store_id", "product_sku", "delta", "reason"},
)

SET_ON_HAND_POLICY = PayloadPolicy(
    fields={"store_id": int, "product_sku": str, "quantity": int, "reason": str},
    required={"store_id", "product_sku", "quantity"},
)

SAMPLE_POLICY = PayloadPolicy(
    fields={"store_id": int, "product_sku": str, "quantity": int, "notes": str},
    required={"store_id", "product_sku"},
)


def _entry_response(entry, status=201):
    record = ledger_service.get_stock_record(entry.store_id, entry.product_sku)
    return {"entry": entry.to_dict(), "stock": record.to_dict()}, status


@inventory_bp.get("/stores/<int:store_id>/stock")
def list_stock_route(store_id: int):
    try:
        records = ledger_service.list_stock_records(store_id)
    except DomainError as e:
        return error_response(e)
    return {"items": [r.to_dict() for r in records]}


@inventory_bp.get("/stores/<int:store_id>/stock/<string:sku>")
def get_stock_route(store_id: int, sku: str):
    try:
        record = ledger_service.get_stock_record(store_id, sku)
    except DomainError as e:
        return error_response(e)
    return {"stock": record.to_dict()}


@inventory_bp.post("/stores/<int:store_id>/stock")
def open_stock_route(store_id: int):
    try:
        data = validate_payload(json_body(), OPEN_STOCK_POLICY)
        record = ledger_service.open_stock_record(
            store_id,
            data["product_sku"],
            initial_quantity=data.get("initial_quantity", 0),
            notes=data.get("notes"),
        )
    except DomainError as e:
        return error_response(e)
    return {"stock": record.to_dict()}, 201


@inventory_bp.get("/stores/<int:store_id>/history")
def history_route(store_id: int):
    """
    Ledger history, newest first.

    Query params: sku, type, limit (1-500, default 100), offset.
    """
    try:
        limit = query_int("limit", 100)
        offset = query_int("offset", 0)
        entries, total = ledger_service.list_ledger_entries(
            store_id,
            request.args.get("sku") or None,
            entry_type=request.args.get("type") or None,
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        return error_response(e)
    return {
        "items": [e.to_dict() for e in entries],
        "total": total,
        "limit": max(1, min(limit, 500)),
        "offset": max(0, offset),
    }


@inventory_bp.get("/stores/<int:store_id>/stock/<string:sku>/verify")
def verify_route(store_id: int, sku: str):
    try:
        result = ledger_service.verify_ledger(store_id, sku)
    except DomainError as e:
        return error_response(e)
    return {"verification": result.to_dict()}, (200 if result.ok else 409)


@inventory_bp.post("/reserve")
def reserve_route():
    try:
        data = validate_payload(json_body(), HOLD_POLICY)
        entry = ledger_service.apply_command(ReserveCommand(
            data["store_id"], data["product_sku"], data["quantity"], data.get("notes")
        ))
    except DomainError as e:
        return error_response(e)
    return _entry_response(entry)


@inventory_bp.post("/release")
def release_route():
    try:
        data = validate_payload(json_body(), HOLD_POLICY)
        entry = ledger_service.apply_command(ReleaseCommand(
            data["store_id"], data["product_sku"], data["quantity"], data.get("notes")
        ))
    except DomainError as e:
        return error_response(e)
    return _entry_response(entry)


@inventory_bp.post("/adjust")
def adjust_route():
    """Manual correction (shrink, damage, recount). Negative deltas allowed."""
    try:
        data = validate_payload(json_body(), ADJUST_POLICY)
        entry = ledger_service.apply_command(
            AdjustCommand(data["store_id"], data["product_sku"], data["delta"], data["reason"]),
            acting_org_id=acting_org_id(),
        )
    except DomainError as e:
        return error_response(e)
    return _entry_response(entry)


@inventory_bp.post("/set-on-hand")
def set_on_hand_route():
    try:
        data = validate_payload(json_body(), SET_ON_HAND_POLICY)
        entry = ledger_service.set_on_hand(
            data["store_id"],
            data["product_sku"],
            data["quantity"],
            data.get("reason"),
            acting_org_id=acting_org_id(),
        )
        if entry is None:
            record = ledger_service.get_stock_record(data["store_id"], data["product_sku"])
            return {"entry": None, "stock": record.to_dict()}, 200
    except DomainError as e:
        return error_response(e)
    return _entry_response(entry)


@inventory_bp.post("/samples")
def redeem_sample_route():
    try:
        data = validate_payload(json_body(), SAMPLE_POLICY)
        entry = ledger_service.redeem_sample(
            data["store_id"], data["product_sku"], data.get("quantity", 1), notes=data.get("notes")
        )
    except DomainError as e:
        return error_response(e)
    return _entry_response(entry)
