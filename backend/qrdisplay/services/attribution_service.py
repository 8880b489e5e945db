# Overview: Sample-to-purchase attribution and store commission; pure rules plus conversion recording.

"""
Attribution / Commission

A purchase is credited to the store that handed out the customer's sample when:
- the customer has a sample_date,
- the customer has an attributed_store_id,
- 0 <= whole days from sample to purchase <= attribution window (inclusive).

Not attributing is a normal outcome: should_attribute() returns a decision
with a reason and never raises for it.

commission = order_total * commission_rate / 100. Money is kept in integer
cents; the commission is rounded half-up to the cent when stored.

The rule functions read nothing from the database. record_conversion() is the
only writer of Conversion.commission_amount_cents; it never touches stock.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Conversion, Customer, PointType
from ..validation import coerce_int, require_text
from .concurrency import unit_of_work
from .points_service import award_points, online_sale_points
from .store_service import get_org_settings, get_organization
from qrdisplay.time_utils import to_utc_naive, utcnow, whole_days_between


DEFAULT_ATTRIBUTION_WINDOW_DAYS = 30


@dataclass(frozen=True)
class AttributionDecision:
    attributed: bool
    reason: str
    days_to_conversion: int | None = None

    def to_dict(self) -> dict:
        return {
            "attributed": self.attributed,
            "reason": self.reason,
            "days_to_conversion": self.days_to_conversion,
        }


def calculate_commission(order_total, commission_rate) -> Decimal:
    """order_total * commission_rate / 100, exact (no rounding)."""
    return Decimal(str(order_total)) * Decimal(str(commission_rate)) / Decimal(100)


def commission_cents(order_total_cents: int, commission_rate) -> int:
    return int(calculate_commission(order_total_cents, commission_rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def days_to_conversion(sample_date: datetime | date, purchase_date: datetime | date) -> int:
    return whole_days_between(sample_date, purchase_date)


def is_within_attribution_window(
    sample_date: datetime | date,
    purchase_date: datetime | date,
    attribution_window_days: int,
) -> bool:
    days = days_to_conversion(sample_date, purchase_date)
    return 0 <= days <= attribution_window_days


def should_attribute(customer, org, purchase_date: datetime | date) -> AttributionDecision:
    """
    Decide whether a purchase is credited to the customer's sampling store.

    `customer` needs sample_date and attributed_store_id; `org` needs
    attribution_window_days (None falls back to 30 days).
    """
    if customer.sample_date is None:
        return AttributionDecision(False, "No sample date recorded")

    if customer.attributed_store_id is None:
        return AttributionDecision(False, "No attributed store")

    window = getattr(org, "attribution_window_days", None)
    if window is None:
        window = DEFAULT_ATTRIBUTION_WINDOW_DAYS

    days = days_to_conversion(customer.sample_date, purchase_date)
    if days < 0:
        return AttributionDecision(False, f"Purchase precedes sample ({days} days)", days)
    if days > window:
        return AttributionDecision(
            False, f"Outside attribution window ({days} days, limit is {window} days)", days
        )
    return AttributionDecision(True, "Within attribution window", days)


def record_conversion(
    *,
    org_id: int,
    customer_id: int,
    external_order_id: str,
    order_total_cents: int,
    purchase_date: datetime | date | None = None,
    credited_staff_id: int | None = None,
) -> tuple[AttributionDecision, Conversion | None]:
    """
    Evaluate an online order and record a Conversion when it is attributed.

    An order already recorded for the organization is returned unchanged.
    When `credited_staff_id` is given, that staff member earns online-sale
    points in the same unit of work.

    Returns:
        (decision, conversion or None when not attributed)
    """
    external_order_id = require_text("external_order_id", external_order_id, max_length=64)
    order_total_cents = coerce_int("order_total_cents", order_total_cents)
    if order_total_cents < 0:
        raise ValidationError("order_total_cents cannot be negative")
    purchase_date = to_utc_naive(purchase_date) if purchase_date is not None else utcnow()

    with unit_of_work("record_conversion", org_id=org_id, order=external_order_id):
        org = get_organization(org_id)
        customer = db.session.get(Customer, customer_id)
        if customer is None or customer.org_id != org_id:
            raise NotFoundError(f"Customer {customer_id} not found")

        settings = get_org_settings(org)
        decision = should_attribute(customer, settings, purchase_date)
        if not decision.attributed:
            current_app.logger.info("Order %s not attributed: %s", external_order_id, decision.reason)
            return decision, None

        existing = db.session.query(Conversion).filter_by(
            org_id=org_id, external_order_id=external_order_id
        ).first()
        if existing is not None:
            current_app.logger.info("Conversion already tracked for order %s", external_order_id)
            return decision, existing

        conversion = Conversion(
            org_id=org_id,
            customer_id=customer.id,
            store_id=customer.attributed_store_id,
            external_order_id=external_order_id,
            order_total_cents=order_total_cents,
            commission_rate=settings.commission_rate,
            commission_amount_cents=commission_cents(order_total_cents, settings.commission_rate),
            sample_date=customer.sample_date,
            purchase_date=purchase_date,
            days_to_conversion=decision.days_to_conversion,
            paid=False,
        )
        db.session.add(conversion)
        db.session.flush()

        if credited_staff_id is not None:
            award_points(
                credited_staff_id,
                online_sale_points(order_total_cents),
                f"Online sale: {customer.full_name} - ${order_total_cents / 100:.2f}",
                point_type=PointType.ONLINE_SALE,
                customer_id=customer.id,
                conversion_id=conversion.id,
            )

    current_app.logger.info(
        "Conversion tracked for order %s: %s cents commission to store %s",
        external_order_id, conversion.commission_amount_cents, conversion.store_id,
    )
    return decision, conversion


def mark_conversion_paid(conversion_id: int) -> Conversion:
    """Flag a conversion once its store credit has been applied."""
    with unit_of_work("mark_conversion_paid", conversion_id=conversion_id):
        conversion = db.session.get(Conversion, conversion_id)
        if conversion is None:
            raise NotFoundError(f"Conversion {conversion_id} not found")
        conversion.paid = True
        db.session.flush()
    return conversion


def list_conversions(org_id: int, *, store_id: int | None = None, paid: bool | None = None) -> list[Conversion]:
    get_organization(org_id)
    query = db.session.query(Conversion).filter_by(org_id=org_id)
    if store_id is not None:
        query = query.filter(Conversion.store_id == store_id)
    if paid is not None:
        query = query.filter(Conversion.paid.is_(paid))
    return query.order_by(Conversion.purchase_date.desc(), Conversion.id.desc()).all()
