# Overview: Customer product holds; reserve on create, consume on pick-up, release on cancel or expiry.

"""
Product Holds

LIFECYCLE:
    active -> picked_up | cancelled | expired   (terminal, exactly once)

STOCK COUPLING (one unit of work per transition):
- create: the hold row and its reservation commit together.
- pick up: the reserved units are sold (on hand and reserved both drop).
- cancel / expire: the reserved units return to available.

EXPIRY:
- A hold lasts PRODUCT_HOLD_HOURS (default 24) from creation.
- Nothing expires holds in the background. expire_due_holds() is run by the
  `flask holds expire` command, and a new hold for the same customer, store
  and SKU expires a due one first.
- A due hold can no longer be picked up.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from ..models import Customer, HoldStatus, ProductHold
from ..validation import require_positive_quantity, require_text
from .concurrency import lock_for_update, unit_of_work
from .ledger_service import _consume_on_fulfillment_inner, _release_inner, _reserve_inner
from .notification_service import CHANNEL_EMAIL, notify_after_commit
from .store_service import get_product, get_store, require_store_in_org
from qrdisplay.time_utils import to_utc_z, utcnow


HOLD_ACTIONS = {
    "picked_up": HoldStatus.PICKED_UP,
    "cancelled": HoldStatus.CANCELLED,
    "expired": HoldStatus.EXPIRED,
}


def hold_duration() -> timedelta:
    return timedelta(hours=int(current_app.config.get("PRODUCT_HOLD_HOURS", 24)))


def _lock_hold(hold_id: int) -> ProductHold:
    hold = lock_for_update(db.session.query(ProductHold).filter_by(id=hold_id)).first()
    if hold is None:
        raise NotFoundError(f"Hold {hold_id} not found")
    return hold


def _require_active(hold: ProductHold) -> None:
    if hold.status != HoldStatus.ACTIVE:
        raise ConflictError(f"Hold is not active (status: {HoldStatus(hold.status).value})")


def _close_hold_inner(hold: ProductHold, status: HoldStatus) -> ProductHold:
    """Release the reservation of an active hold and mark it cancelled or expired."""
    _require_active(hold)
    now = utcnow()
    hold.status = status
    hold.closed_at = now
    db.session.flush()

    _release_inner(
        hold.store_id,
        hold.product_sku,
        hold.quantity,
        notes=f"Hold {hold.id} {status.value} - {hold.quantity} unit(s) returned to available",
        product_hold_id=hold.id,
    )
    return hold


def create_hold(*, customer_id: int, store_id: int, product_sku: str, quantity: int = 1) -> ProductHold:
    """
    Set units aside for a customer and reserve them in one unit of work.

    An active hold for the same customer, store and SKU is returned as is.
    A due one is expired first and replaced.

    Raises:
        NotFoundError: customer, store, product or stock record missing
        UnauthorizedError: customer belongs to another organization
        ValidationError: bad quantity or not enough available stock
    """
    quantity = require_positive_quantity("quantity", quantity)
    product_sku = require_text("product_sku", product_sku, max_length=64)

    with unit_of_work("create_hold", customer_id=customer_id, store_id=store_id, sku=product_sku) as uow:
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        store = get_store(store_id)
        if customer.org_id != store.org_id:
            raise UnauthorizedError(f"Customer {customer_id} does not belong to the organization of store {store_id}")
        get_product(product_sku, require_active=True)

        now = utcnow()
        existing = lock_for_update(db.session.query(ProductHold).filter_by(
            customer_id=customer_id,
            store_id=store_id,
            product_sku=product_sku,
            status=HoldStatus.ACTIVE,
        )).first()
        if existing is not None:
            if not existing.is_due(now):
                return existing
            _close_hold_inner(existing, HoldStatus.EXPIRED)

        hold = ProductHold(
            store_id=store_id,
            customer_id=customer_id,
            product_sku=product_sku,
            quantity=quantity,
            status=HoldStatus.ACTIVE,
            expires_at=now + hold_duration(),
            notified_at=now if store.contact_email else None,
        )
        db.session.add(hold)
        db.session.flush()

        _reserve_inner(
            store_id,
            product_sku,
            quantity,
            notes=f"Hold {hold.id} created for {customer.full_name} - {quantity} unit(s)",
            product_hold_id=hold.id,
        )

        notify_after_commit(
            uow,
            CHANNEL_EMAIL,
            store.contact_email,
            f"Hold for {customer.full_name}: {quantity} x {product_sku}, "
            f"keep until {to_utc_z(hold.expires_at)}.",
        )

    current_app.logger.info(
        "Hold %s created: %s x %s at store %s (expires %s)",
        hold.id, quantity, product_sku, store_id, hold.expires_at,
    )
    return hold


def pick_up_hold(hold_id: int, *, acting_org_id: int | None = None) -> ProductHold:
    """
    The customer collected the held units: the reservation is sold.

    Raises:
        NotFoundError: hold missing
        ConflictError: hold no longer active, or past its expiry
        UnauthorizedError: hold's store belongs to another organization
    """
    with unit_of_work("pick_up_hold", hold_id=hold_id):
        hold = _lock_hold(hold_id)
        require_store_in_org(hold.store_id, acting_org_id)
        _require_active(hold)

        now = utcnow()
        if hold.is_due(now):
            raise ConflictError(f"Hold {hold_id} expired at {to_utc_z(hold.expires_at)}")

        hold.status = HoldStatus.PICKED_UP
        hold.picked_up_at = now
        hold.closed_at = now
        db.session.flush()

        _consume_on_fulfillment_inner(
            hold.store_id,
            hold.product_sku,
            hold.quantity,
            notes=f"Hold {hold.id} picked up - {hold.quantity} unit(s) sold",
            product_hold_id=hold.id,
        )

    current_app.logger.info("Hold %s picked up (%s x %s)", hold.id, hold.quantity, hold.product_sku)
    return hold


def cancel_hold(hold_id: int, *, acting_org_id: int | None = None) -> ProductHold:
    """Cancel an active hold and release its units in one unit of work."""
    with unit_of_work("cancel_hold", hold_id=hold_id):
        hold = _lock_hold(hold_id)
        require_store_in_org(hold.store_id, acting_org_id)
        _close_hold_inner(hold, HoldStatus.CANCELLED)
    return hold


def expire_hold(hold_id: int, *, acting_org_id: int | None = None) -> ProductHold:
    with unit_of_work("expire_hold", hold_id=hold_id):
        hold = _lock_hold(hold_id)
        require_store_in_org(hold.store_id, acting_org_id)
        _close_hold_inner(hold, HoldStatus.EXPIRED)
    return hold


def update_hold(hold_id: int, action: str, *, acting_org_id: int | None = None) -> ProductHold:
    """Apply a store action: picked_up, cancelled or expired."""
    status = HOLD_ACTIONS.get(action)
    if status is None:
        raise ValidationError(f"Invalid action: {action} (expected one of {', '.join(HOLD_ACTIONS)})")
    if status == HoldStatus.PICKED_UP:
        return pick_up_hold(hold_id, acting_org_id=acting_org_id)
    if status == HoldStatus.CANCELLED:
        return cancel_hold(hold_id, acting_org_id=acting_org_id)
    return expire_hold(hold_id, acting_org_id=acting_org_id)


def expire_due_holds(*, store_id: int | None = None, now: datetime | None = None) -> list[ProductHold]:
    """
    Expire every active hold past its expiry, one unit of work per hold.

    A hold closed by another writer in the meantime is skipped.
    """
    now = now or utcnow()
    query = db.session.query(ProductHold.id).filter(
        ProductHold.status == HoldStatus.ACTIVE,
        ProductHold.expires_at <= now,
    )
    if store_id is not None:
        get_store(store_id)
        query = query.filter(ProductHold.store_id == store_id)
    due_ids = [row.id for row in query.order_by(ProductHold.expires_at.asc(), ProductHold.id.asc()).all()]

    expired: list[ProductHold] = []
    for hold_id in due_ids:
        try:
            expired.append(expire_hold(hold_id))
        except ConflictError as e:
            current_app.logger.info("Skipping hold %s: %s", hold_id, e)
    if expired:
        current_app.logger.info("Expired %s hold(s)", len(expired))
    return expired


def get_hold(hold_id: int) -> ProductHold:
    hold = db.session.get(ProductHold, hold_id)
    if hold is None:
        raise NotFoundError(f"Hold {hold_id} not found")
    return hold


def list_holds(store_id: int, *, status: HoldStatus | str | None = HoldStatus.ACTIVE) -> list[ProductHold]:
    """A store's holds, newest first (active ones unless another status is given)."""
    get_store(store_id)
    query = db.session.query(ProductHold).filter_by(store_id=store_id)
    if status:
        try:
            status = HoldStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(ProductHold.status == status)
    return query.order_by(ProductHold.created_at.desc(), ProductHold.id.desc()).all()
