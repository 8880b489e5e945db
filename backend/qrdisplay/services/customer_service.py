# Overview: Sample funnel; customer capture at an active display and sample redemption.

"""
Sample funnel

1. A customer scans an active display and requests a sample:
   register_sample_request() creates the Customer bound to the display's store.
2. Staff hands the sample over: redeem_customer_sample() takes the unit from
   available stock, stamps sample_date/attributed_store_id (the facts
   attribution later reads) and awards the staff member sample points, all
   in one unit of work.

A customer redeems at most one sample; a second redemption is a ConflictError.
"""

from __future__ import annotations

import re

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from ..models import Customer, Display, PointType
from ..validation import require_text
from .concurrency import unit_of_work
from .display_service import EntryRoute, get_display, resolve_entry_route
from .ledger_service import _redeem_sample_inner
from .notification_service import CHANNEL_SMS, notify_after_commit
from .points_service import SAMPLE_POINTS, award_points, get_staff_member
from .store_service import get_organization, get_store
from qrdisplay.time_utils import utcnow


def normalize_phone(phone: str) -> str:
    """US numbers to E.164 (+1XXXXXXXXXX); other numbers keep their digits with a leading +."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if 10 <= len(digits) <= 15 and phone.strip().startswith("+"):
        return f"+{digits}"
    raise ValidationError("Invalid phone number format")


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def create_customer(
    *,
    org_id: int,
    first_name: str,
    last_name: str,
    store_id: int | None = None,
    phone: str | None = None,
    external_customer_id: str | None = None,
) -> Customer:
    first_name = require_text("first_name", first_name, max_length=128)
    last_name = require_text("last_name", last_name, max_length=128)
    phone = normalize_phone(phone) if phone else None

    with unit_of_work("create_customer", org_id=org_id):
        get_organization(org_id)
        if store_id is not None:
            get_store(store_id)
        customer = Customer(
            org_id=org_id,
            store_id=store_id,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            external_customer_id=external_customer_id,
        )
        db.session.add(customer)
        db.session.flush()
    return customer


def register_sample_request(display_id: str, *, first_name: str, last_name: str, phone: str) -> Customer:
    """
    Capture a customer from a QR scan on an active display.

    Raises:
        NotFoundError: display missing
        ValidationError: display not routed to the sample flow, bad input
    """
    display: Display = get_display(display_id)
    if resolve_entry_route(display) != EntryRoute.SAMPLE or display.store_id is None:
        raise ValidationError("Display is not active")

    store = get_store(display.store_id)
    if not store.is_active:
        raise ValidationError("Store is not active")

    org_id = display.assigned_org_id or display.owner_org_id
    customer = create_customer(
        org_id=org_id,
        store_id=store.id,
        first_name=first_name,
        last_name=last_name,
        phone=phone,
    )
    current_app.logger.info("Sample requested at %s via display %s (customer %s)", store.store_code, display_id, customer.id)
    return customer


def redeem_customer_sample(customer_id: int, product_sku: str, *, staff_id: int | None = None) -> Customer:
    """
    Hand a sample to a customer at their store.

    Raises:
        NotFoundError: customer, stock record or staff missing
        ConflictError: customer already redeemed a sample
        ValidationError: customer has no store, or no available stock
    """
    product_sku = require_text("product_sku", product_sku, max_length=64)

    with unit_of_work("redeem_customer_sample", customer_id=customer_id, sku=product_sku) as uow:
        customer = get_customer(customer_id)
        if customer.sample_date is not None:
            raise ConflictError("Sample already redeemed")
        if customer.store_id is None:
            raise ValidationError("Customer is not bound to a store")

        _redeem_sample_inner(
            customer.store_id,
            product_sku,
            1,
            notes=f"Sample redeemed by {customer.full_name}",
        )

        customer.sample_date = utcnow()
        customer.attributed_store_id = customer.store_id
        db.session.flush()

        if staff_id is not None:
            if get_staff_member(staff_id).store_id != customer.store_id:
                raise UnauthorizedError(f"Staff member {staff_id} does not work at store {customer.store_id}")
            award_points(
                staff_id,
                SAMPLE_POINTS,
                f"Sample redeemed by {customer.full_name}",
                point_type=PointType.SAMPLE,
                customer_id=customer.id,
            )

        notify_after_commit(
            uow,
            CHANNEL_SMS,
            customer.phone,
            f"Hi {customer.first_name}! Enjoy your sample. Reply STOP to opt out.",
        )

    return customer
