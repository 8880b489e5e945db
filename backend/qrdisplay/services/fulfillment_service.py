# Overview: Purchase-intent lifecycle; reserve on create, consume + award points on fulfill, release on cancel.

"""
Purchase-Intent Fulfillment

LIFECYCLE:
    pending -> fulfilled | cancelled   (terminal, exactly once)

STOCK COUPLING:
- create: the intent row and its reservation commit together.
- fulfill: intent transition, consume_on_fulfillment, staff points and the
  staff sales counter commit together. If the points sink raises, nothing is
  applied: the intent stays pending and stock is unchanged.
- cancel: intent transition and release of the reservation commit together.

Customer notifications are queued on the unit of work and sent only after
the commit.
"""

from __future__ import annotations

import secrets
import string

from flask import current_app

from ..extensions import db
from ..errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from ..models import Customer, PointType, PurchaseIntent, PurchaseIntentStatus, StaffMember
from ..validation import coerce_int, require_positive_quantity, require_text
from .concurrency import lock_for_update, unit_of_work
from .ledger_service import _consume_on_fulfillment_inner, _release_inner, _reserve_inner
from .notification_service import CHANNEL_SMS, notify_after_commit
from .points_service import DatabasePointsSink, PointsSink, instore_sale_points
from .store_service import get_product, get_store
from qrdisplay.time_utils import utcnow


VERIFY_SLUG_ALPHABET = string.ascii_letters + string.digits
VERIFY_SLUG_LENGTH = 10


def new_verify_slug() -> str:
    return "".join(secrets.choice(VERIFY_SLUG_ALPHABET) for _ in range(VERIFY_SLUG_LENGTH))


def _format_cents(cents: int) -> str:
    return f"${cents / 100:.2f}"


def _validate_prices(original_price_cents, discount_percent, final_price_cents) -> tuple[int, int, int]:
    original_price_cents = coerce_int("original_price_cents", original_price_cents)
    discount_percent = coerce_int("discount_percent", discount_percent)
    final_price_cents = coerce_int("final_price_cents", final_price_cents)
    if original_price_cents < 0 or final_price_cents < 0:
        raise ValidationError("Prices cannot be negative")
    if not 0 <= discount_percent <= 100:
        raise ValidationError("discount_percent must be between 0 and 100")
    return original_price_cents, discount_percent, final_price_cents


def _lock_intent(intent_id: int) -> PurchaseIntent:
    intent = lock_for_update(db.session.query(PurchaseIntent).filter_by(id=intent_id)).first()
    if intent is None:
        raise NotFoundError(f"Purchase intent {intent_id} not found")
    return intent


def _require_pending(intent: PurchaseIntent) -> None:
    if intent.status != PurchaseIntentStatus.PENDING:
        raise ConflictError(f"Purchase intent already {PurchaseIntentStatus(intent.status).value}")


def create_purchase_intent(
    *,
    customer_id: int,
    store_id: int,
    product_sku: str,
    original_price_cents: int,
    final_price_cents: int,
    discount_percent: int = 0,
    quantity: int = 1,
) -> PurchaseIntent:
    """
    Create a pending intent and reserve its stock in one unit of work.

    A pending intent for the same customer, store and SKU is returned as is
    (no second reservation).

    Raises:
        NotFoundError: customer, store, product or stock record missing
        UnauthorizedError: customer belongs to another organization
        ValidationError: bad prices/quantity or not enough available stock
    """
    quantity = require_positive_quantity("quantity", quantity)
    product_sku = require_text("product_sku", product_sku, max_length=64)
    original_price_cents, discount_percent, final_price_cents = _validate_prices(
        original_price_cents, discount_percent, final_price_cents
    )

    with unit_of_work("create_purchase_intent", customer_id=customer_id, store_id=store_id, sku=product_sku):
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        store = get_store(store_id)
        if customer.org_id != store.org_id:
            raise UnauthorizedError(f"Customer {customer_id} does not belong to the organization of store {store_id}")
        get_product(product_sku, require_active=True)

        existing = db.session.query(PurchaseIntent).filter_by(
            customer_id=customer_id,
            store_id=store_id,
            product_sku=product_sku,
            status=PurchaseIntentStatus.PENDING,
        ).first()
        if existing is not None:
            return existing

        intent = PurchaseIntent(
            customer_id=customer_id,
            store_id=store_id,
            product_sku=product_sku,
            quantity=quantity,
            status=PurchaseIntentStatus.PENDING,
            original_price_cents=original_price_cents,
            discount_percent=discount_percent,
            final_price_cents=final_price_cents,
            verify_slug=new_verify_slug(),
        )
        db.session.add(intent)
        db.session.flush()

        _reserve_inner(
            store_id,
            product_sku,
            quantity,
            notes=f"Reserved for purchase intent {intent.verify_slug}",
            purchase_intent_id=intent.id,
        )

    current_app.logger.info(
        "Purchase intent %s created: %s x %s at store %s", intent.id, quantity, product_sku, store_id
    )
    return intent


def fulfill_purchase_intent(
    intent_id: int,
    staff_id: int,
    *,
    final_price_cents: int | None = None,
    points_sink: PointsSink | None = None,
) -> PurchaseIntent:
    """
    Complete an in-store purchase as one atomic unit:
    intent -> fulfilled, reserved stock consumed, staff points awarded,
    staff sales counter incremented.

    Raises:
        NotFoundError: intent or staff missing
        ConflictError: intent already fulfilled or cancelled
        UnauthorizedError: staff member works at another store
        ValidationError: nothing reserved for the intent, bad price
        Anything raised by the points sink (after rolling everything back)
    """
    if final_price_cents is not None:
        final_price_cents = coerce_int("final_price_cents", final_price_cents)
        if final_price_cents < 0:
            raise ValidationError("final_price_cents cannot be negative")
    sink = points_sink or DatabasePointsSink()

    with unit_of_work("fulfill_purchase_intent", intent_id=intent_id, staff_id=staff_id) as uow:
        intent = _lock_intent(intent_id)
        _require_pending(intent)

        staff = lock_for_update(db.session.query(StaffMember).filter_by(id=staff_id)).first()
        if staff is None:
            raise NotFoundError(f"Staff member {staff_id} not found")
        if staff.store_id != intent.store_id:
            raise UnauthorizedError(f"Staff member {staff_id} does not work at store {intent.store_id}")

        if final_price_cents is not None:
            intent.final_price_cents = final_price_cents

        intent.status = PurchaseIntentStatus.FULFILLED
        intent.fulfilled_by_staff_id = staff.id
        intent.fulfilled_at = utcnow()
        db.session.flush()

        _consume_on_fulfillment_inner(
            intent.store_id,
            intent.product_sku,
            intent.quantity,
            notes=f"Purchase intent {intent.verify_slug} fulfilled by {staff.full_name}",
            purchase_intent_id=intent.id,
        )

        customer = intent.customer
        sink.award_points(
            staff.id,
            instore_sale_points(intent.final_price_cents),
            f"In-store sale: {customer.full_name} - {_format_cents(intent.final_price_cents)}",
            point_type=PointType.INSTORE_SALE,
            customer_id=customer.id,
            purchase_intent_id=intent.id,
        )

        staff.sales_generated = (staff.sales_generated or 0) + 1
        db.session.flush()

        notify_after_commit(
            uow,
            CHANNEL_SMS,
            customer.phone,
            f"Thanks {customer.first_name}! Your purchase of {intent.product_sku} "
            f"({_format_cents(intent.final_price_cents)}) is complete.",
        )

    current_app.logger.info(
        "Purchase intent %s fulfilled by staff %s (%s x %s)",
        intent.id, staff_id, intent.quantity, intent.product_sku,
    )
    return intent


def cancel_purchase_intent(intent_id: int) -> PurchaseIntent:
    """Cancel a pending intent and release its reservation in one unit of work."""
    with unit_of_work("cancel_purchase_intent", intent_id=intent_id):
        intent = _lock_intent(intent_id)
        _require_pending(intent)

        intent.status = PurchaseIntentStatus.CANCELLED
        intent.cancelled_at = utcnow()
        db.session.flush()

        _release_inner(
            intent.store_id,
            intent.product_sku,
            intent.quantity,
            notes=f"Purchase intent {intent.verify_slug} cancelled",
            purchase_intent_id=intent.id,
        )
    return intent


def get_purchase_intent(intent_id: int) -> PurchaseIntent:
    intent = db.session.get(PurchaseIntent, intent_id)
    if intent is None:
        raise NotFoundError(f"Purchase intent {intent_id} not found")
    return intent


def get_by_verify_slug(verify_slug: str) -> PurchaseIntent:
    intent = db.session.query(PurchaseIntent).filter_by(verify_slug=verify_slug).first()
    if intent is None:
        raise NotFoundError("Purchase intent not found")
    return intent


def list_purchase_intents(
    store_id: int,
    *,
    status: PurchaseIntentStatus | str | None = None,
) -> list[PurchaseIntent]:
    get_store(store_id)
    query = db.session.query(PurchaseIntent).filter_by(store_id=store_id)
    if status:
        try:
            status = PurchaseIntentStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")
        query = query.filter(PurchaseIntent.status == status)
    return query.order_by(PurchaseIntent.created_at.desc(), PurchaseIntent.id.desc()).all()
