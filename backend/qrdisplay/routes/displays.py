# backend/qrdisplay/routes/displays.py
from flask import Blueprint, request

from ..errors import DomainError, ValidationError
from ..services import display_service
from ..validation import PayloadPolicy, coerce_int, validate_payload
from .common import error_response, json_body


displays_bp = Blueprint("displays", __name__, url_prefix="/api/displays")

CREATE_POLICY = PayloadPolicy(
    fields={"owner_org_id": int, "count": int, "prefix": str},
    required={"owner_org_id", "count"},
)

ACTIVATE_POLICY = PayloadPolicy(fields={"store_id": int}, required={"store_id"})


@displays_bp.post("")
def create_displays_route():
    try:
        data = validate_payload(json_body(), CREATE_POLICY)
        displays = display_service.create_displays(
            data["owner_org_id"], data["count"], prefix=data.get("prefix")
        )
    except DomainError as e:
        return error_response(e)
    return {"items": [d.to_dict() for d in displays]}, 201


@displays_bp.get("")
def list_displays_route():
    try:
        assigned = request.args.get("assigned_org_id")
        store = request.args.get("store_id")
        displays = display_service.list_displays(
            status=request.args.get("status") or None,
            assigned_org_id=coerce_int("assigned_org_id", assigned) if assigned else None,
            store_id=coerce_int("store_id", store) if store else None,
        )
    except DomainError as e:
        return error_response(e)
    return {"items": [d.to_dict() for d in displays]}


@displays_bp.post("/assign")
def assign_displays_route():
    """Body: {"org_id": 2, "display_ids": ["QRD-001", "QRD-002"]}"""
    try:
        payload = json_body()
        org_id = coerce_int("org_id", payload.get("org_id"))
        display_ids = payload.get("display_ids")
        if not isinstance(display_ids, list) or not all(isinstance(d, str) for d in display_ids):
            raise ValidationError("display_ids must be a list of display ids")
        displays = display_service.assign_to_org(display_ids, org_id)
    except DomainError as e:
        return error_response(e)
    return {"items": [d.to_dict() for d in displays]}


@displays_bp.get("/<string:display_id>")
def get_display_route(display_id: str):
    try:
        display = display_service.get_display(display_id)
    except DomainError as e:
        return error_response(e)
    return {"display": display.to_dict()}


@displays_bp.get("/<string:display_id>/route")
def entry_route(display_id: str):
    """Which customer flow a scan of this display opens."""
    try:
        display = display_service.get_display(display_id)
    except DomainError as e:
        return error_response(e)
    return {"display_id": display.display_id, "route": display_service.resolve_entry_route(display).value}


@displays_bp.post("/<string:display_id>/activate")
def activate_display_route(display_id: str):
    try:
        data = validate_payload(json_body(), ACTIVATE_POLICY)
        display = display_service.activate(display_id, data["store_id"])
    except DomainError as e:
        return error_response(e)
    return {"display": display.to_dict()}


@displays_bp.post("/<string:display_id>/reset")
def reset_display_route(display_id: str):
    try:
        display = display_service.reset(display_id)
    except DomainError as e:
        return error_response(e)
    return {"display": display.to_dict(), "message": "Display reset successfully"}


@displays_bp.post("/<string:display_id>/deactivate")
def deactivate_display_route(display_id: str):
    try:
        display = display_service.set_inactive(display_id)
    except DomainError as e:
        return error_response(e)
    return {"display": display.to_dict()}
