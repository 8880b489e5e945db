# backend/qrdisplay/routes/samples.py
from flask import Blueprint

from ..errors import DomainError
from ..services import customer_service
from ..validation import PayloadPolicy, validate_payload
from .common import error_response, json_body


samples_bp = Blueprint("samples", __name__, url_prefix="/api/samples")

REQUEST_POLICY = PayloadPolicy(
    fields={"display_id": str, "first_name": str, "last_name": str, "phone": str},
    required={"display_id", "first_name", "last_name", "phone"},
)

REDEEM_POLICY = PayloadPolicy(
    fields={"customer_id": int, "product_sku": str, "staff_id": int},
    required={"customer_id", "product_sku"},
)


@samples_bp.post("/request")
def request_sample_route():
    """Customer scanned an active display and asked for a sample."""
    try:
        data = validate_payload(json_body(), REQUEST_POLICY)
        customer = customer_service.register_sample_request(
            data["display_id"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            phone=data["phone"],
        )
    except DomainError as e:
        return error_response(e)
    return {"customer": customer.to_dict()}, 201


@samples_bp.post("/redeem")
def redeem_sample_route():
    try:
        data = validate_payload(json_body(), REDEEM_POLICY)
        customer = customer_service.redeem_customer_sample(
            data["customer_id"], data["product_sku"], staff_id=data.get("staff_id")
        )
    except DomainError as e:
        return error_response(e)
    return {"customer": customer.to_dict()}
