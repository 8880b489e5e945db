# Overview: Wholesale receiving workflow; moves ordered units from incoming to on hand.

"""
Wholesale Receiving Service

LIFECYCLE:
1. PENDING: wholesale order placed; units sit in the stock record's quantity_incoming
2. RECEIVED: store confirmed delivery; units moved to on hand (terminal)

VERIFICATION TOKEN:
- One token groups every line of one physical shipment at one store.
- receive_wholesale() processes exactly one order; receive_by_token() is the
  batch convenience that loops over the pending orders sharing a token.
- Receiving an order twice, or resubmitting a token whose orders are all
  received, is a ConflictError. This is the guard against double-counting stock.

WHOLESALE BOXES:
- Wholesale products are boxes named <retail sku>-BX. convert_wholesale_lines()
  turns box quantities into retail units before orders are created.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import IncomingOrder, IncomingOrderStatus, Product, StockRecord
from ..models.products import PRODUCT_TYPE_RETAIL, PRODUCT_TYPE_WHOLESALE_BOX, WHOLESALE_SKU_SUFFIX
from ..validation import require_positive_quantity, require_text
from .concurrency import lock_for_update, unit_of_work
from .ledger_service import (
    _add_incoming_inner,
    _apply_wholesale_receipt_inner,
    _get_or_open_stock_record_inner,
)
from .store_service import get_organization, get_product, get_store, require_store_in_org
from qrdisplay.time_utils import utcnow


@dataclass(frozen=True)
class WholesaleLine:
    sku: str
    quantity: int  # number of boxes


@dataclass(frozen=True)
class RetailUnitsUpdate:
    retail_sku: str
    retail_product_name: str
    units_to_add: int
    wholesale_box_sku: str
    box_quantity: int
    units_per_box: int


@dataclass
class ConversionResult:
    updates: list[RetailUnitsUpdate] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class TokenReceipt:
    """Result of receiving every pending order of one shipment."""
    verification_token: str
    orders: list[IncomingOrder]

    @property
    def units_received(self) -> int:
        return sum(o.quantity_received or 0 for o in self.orders)


# Matches the verification_token / shopify_order_number column width.
TOKEN_MAX_LENGTH = 64


def new_verification_token() -> str:
    return secrets.token_urlsafe(24)


def retail_sku_from_wholesale(wholesale_sku: str) -> str | None:
    """VD-SB-30-BX -> VD-SB-30; None when the SKU is not a wholesale box."""
    if not wholesale_sku.endswith(WHOLESALE_SKU_SUFFIX):
        return None
    return wholesale_sku[: -len(WHOLESALE_SKU_SUFFIX)]


def wholesale_sku_from_retail(retail_sku: str) -> str:
    return f"{retail_sku}{WHOLESALE_SKU_SUFFIX}"


def convert_wholesale_lines(org_id: int, lines: list[WholesaleLine]) -> ConversionResult:
    """
    Convert wholesale box lines into retail unit counts.

    Lines that cannot be converted are reported in `errors`; convertible lines
    are still returned so the caller decides whether to proceed.
    """
    get_organization(org_id)
    result = ConversionResult()

    for line in lines:
        retail_sku = retail_sku_from_wholesale(line.sku)
        if retail_sku is None:
            result.errors.append(f"SKU {line.sku} is not a wholesale box (doesn't end with {WHOLESALE_SKU_SUFFIX})")
            continue

        box = db.session.query(Product).filter_by(
            sku=line.sku, org_id=org_id, product_type=PRODUCT_TYPE_WHOLESALE_BOX, is_active=True
        ).first()
        if box is None:
            result.errors.append(f"Wholesale product {line.sku} not found or inactive")
            continue

        if not box.units_per_box or box.units_per_box <= 0:
            result.errors.append(f"Wholesale product {line.sku} has invalid units_per_box: {box.units_per_box}")
            continue

        retail = db.session.query(Product).filter_by(
            sku=retail_sku, org_id=org_id, product_type=PRODUCT_TYPE_RETAIL, is_active=True
        ).first()
        if retail is None:
            result.errors.append(f"Retail product {retail_sku} not found or inactive (converted from {line.sku})")
            continue

        result.updates.append(RetailUnitsUpdate(
            retail_sku=retail_sku,
            retail_product_name=retail.name,
            units_to_add=line.quantity * box.units_per_box,
            wholesale_box_sku=line.sku,
            box_quantity=line.quantity,
            units_per_box=box.units_per_box,
        ))

    return result


def create_incoming_order(
    *,
    store_id: int,
    product_sku: str,
    quantity_ordered: int,
    shopify_order_number: str | None = None,
    verification_token: str | None = None,
) -> IncomingOrder:
    """
    Record a placed wholesale order for one SKU at one store.

    Opens the stock record at zero when the store never stocked the SKU, adds
    the ordered units to quantity_incoming and stamps the shipment token.
    Incoming is not on hand, so no ledger entry is written until receipt.

    Raises:
        NotFoundError: store or product missing
        ValidationError: quantity not a positive integer, token or order
            number blank or longer than TOKEN_MAX_LENGTH
    """
    quantity_ordered = require_positive_quantity("quantity_ordered", quantity_ordered)
    product_sku = require_text("product_sku", product_sku, max_length=64)
    if verification_token is not None:
        token = require_text("verification_token", verification_token, max_length=TOKEN_MAX_LENGTH)
    else:
        token = new_verification_token()
    if shopify_order_number is not None:
        shopify_order_number = require_text("shopify_order_number", shopify_order_number, max_length=TOKEN_MAX_LENGTH)

    with unit_of_work("create_incoming_order", store_id=store_id, sku=product_sku):
        get_store(store_id)
        get_product(product_sku, require_active=True)

        record = _get_or_open_stock_record_inner(store_id, product_sku)
        _add_incoming_inner(record, quantity_ordered)

        order = IncomingOrder(
            stock_record_id=record.id,
            store_id=store_id,
            product_sku=product_sku,
            quantity_ordered=quantity_ordered,
            status=IncomingOrderStatus.PENDING,
            verification_token=token,
            shopify_order_number=shopify_order_number,
        )
        db.session.add(order)
        db.session.flush()

        record.verification_token = token
        record.pending_order_id = order.id
        db.session.flush()

    return order


def _receive_order_inner(order_id: int) -> IncomingOrder:
    order = lock_for_update(db.session.query(IncomingOrder).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Incoming order {order_id} not found")

    if order.status == IncomingOrderStatus.RECEIVED:
        raise ConflictError("Order already received")

    record = lock_for_update(db.session.query(StockRecord).filter_by(id=order.stock_record_id)).first()
    if record is None:
        raise NotFoundError(f"Stock record for incoming order {order_id} not found")

    _apply_wholesale_receipt_inner(record, order)

    order.status = IncomingOrderStatus.RECEIVED
    order.quantity_received = order.quantity_ordered
    order.received_at = utcnow()
    db.session.flush()

    still_pending = db.session.query(IncomingOrder).filter(
        IncomingOrder.stock_record_id == record.id,
        IncomingOrder.status == IncomingOrderStatus.PENDING,
    ).order_by(IncomingOrder.id.desc()).first()
    if still_pending is None:
        record.verification_token = None
        record.pending_order_id = None
    else:
        record.verification_token = still_pending.verification_token
        record.pending_order_id = still_pending.id
    db.session.flush()

    return order


def receive_wholesale(order_id: int, *, acting_org_id: int | None = None) -> IncomingOrder:
    """
    Mark one incoming order as received, moving its units incoming -> on hand.

    One unit of work: stock snapshot, order status and the wholesale_received
    ledger entry commit together or not at all.

    Raises:
        NotFoundError: order or its stock record missing
        ConflictError: order already received
        UnauthorizedError: order's store outside acting_org_id
    """
    with unit_of_work("receive_wholesale", order_id=order_id):
        order = db.session.get(IncomingOrder, order_id)
        if order is not None:
            require_store_in_org(order.store_id, acting_org_id)
        order = _receive_order_inner(order_id)

    current_app.logger.info(
        "Marked order %s as received - %s units of %s added to store %s",
        order.shopify_order_number or order.id, order.quantity_received, order.product_sku, order.store_id,
    )
    return order


def receive_by_token(verification_token: str, *, acting_org_id: int | None = None) -> TokenReceipt:
    """
    Receive every pending order of one shipment in a single unit of work.

    Raises:
        NotFoundError: no order carries this token
        ConflictError: every order with this token is already received
    """
    token = require_text("verification_token", verification_token, max_length=TOKEN_MAX_LENGTH)

    with unit_of_work("receive_by_token"):
        orders = (
            db.session.query(IncomingOrder)
            .filter_by(verification_token=token)
            .order_by(IncomingOrder.id.asc())
            .all()
        )
        if not orders:
            raise NotFoundError("Invalid or expired verification token")

        for store_id in {o.store_id for o in orders}:
            require_store_in_org(store_id, acting_org_id)

        pending_ids = [o.id for o in orders if o.status == IncomingOrderStatus.PENDING]
        if not pending_ids:
            raise ConflictError("Verification token already used: shipment already received")

        received = [_receive_order_inner(order_id) for order_id in pending_ids]

    current_app.logger.info(
        "Verification complete - %s order(s) received for token %s", len(received), token[:6] + "..."
    )
    return TokenReceipt(verification_token=token, orders=received)


def get_incoming_order(order_id: int) -> IncomingOrder:
    order = db.session.get(IncomingOrder, order_id)
    if order is None:
        raise NotFoundError(f"Incoming order {order_id} not found")
    return order


def list_incoming_orders(
    store_id: int,
    *,
    status: IncomingOrderStatus | str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[IncomingOrder], int]:
    get_store(store_id)
    query = db.session.query(IncomingOrder).filter(IncomingOrder.store_id == store_id)
    if status:
        try:
            status = IncomingOrderStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(IncomingOrder.status == status)

    total = query.count()
    rows = (
        query.order_by(IncomingOrder.created_at.desc(), IncomingOrder.id.desc())
        .offset(max(0, offset))
        .limit(max(1, min(limit, 500)))
        .all()
    )
    return rows, total
