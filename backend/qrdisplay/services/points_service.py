# Overview: Staff points sink; quarterly leaderboard points awarded inside the caller's transaction.

"""
Staff points

Point values:
- Sample redeemed: 5 points
- Online purchase: 1 point per dollar
- In-store purchase: 2 points per dollar

quarterly_points resets to 0 the first time points are awarded in a new
calendar quarter; total_points never resets.

award_points() only flushes. Fulfillment calls it inside its own unit of work,
so a failed award rolls back the stock change and the intent transition too.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import PointType, StaffMember, StaffPointTransaction
from ..validation import coerce_int, require_text
from .concurrency import lock_for_update, unit_of_work
from .store_service import get_store
from qrdisplay.time_utils import quarter_label, utcnow


SAMPLE_POINTS = 5
ONLINE_POINTS_PER_DOLLAR = 1
INSTORE_POINTS_PER_DOLLAR = 2


class PointsSink(Protocol):
    """Commission/points side effect of a fulfilled purchase. Raising aborts the fulfillment."""

    def award_points(self, staff_id: int, amount: int, reason: str, **context) -> object:
        ...


def online_sale_points(sale_amount_cents: int) -> int:
    return (sale_amount_cents * ONLINE_POINTS_PER_DOLLAR) // 100


def instore_sale_points(sale_amount_cents: int) -> int:
    return (sale_amount_cents * INSTORE_POINTS_PER_DOLLAR) // 100


def _reset_quarter_if_needed(staff: StaffMember, now: datetime) -> None:
    current = quarter_label(now)
    if staff.last_quarter_reset is None or quarter_label(staff.last_quarter_reset) != current:
        staff.quarterly_points = 0
        staff.last_quarter_reset = now


def get_staff_member(staff_id: int) -> StaffMember:
    staff = db.session.get(StaffMember, staff_id)
    if staff is None:
        raise NotFoundError(f"Staff member {staff_id} not found")
    return staff


def award_points(
    staff_id: int,
    amount: int,
    reason: str,
    *,
    point_type: PointType = PointType.MANUAL_ADJUSTMENT,
    customer_id: int | None = None,
    purchase_intent_id: int | None = None,
    conversion_id: int | None = None,
    now: datetime | None = None,
) -> StaffPointTransaction:
    """
    Append a point transaction and bump the staff totals (flush only).

    Raises:
        NotFoundError: unknown staff member
        ValidationError: inactive staff member or non-integer amount
    """
    amount = coerce_int("amount", amount)
    now = now or utcnow()

    staff = lock_for_update(db.session.query(StaffMember).filter_by(id=staff_id)).first()
    if staff is None:
        raise NotFoundError(f"Staff member {staff_id} not found")
    if not staff.is_active:
        raise ValidationError(f"Staff member {staff_id} is inactive")

    _reset_quarter_if_needed(staff, now)

    txn = StaffPointTransaction(
        staff_id=staff.id,
        store_id=staff.store_id,
        org_id=staff.org_id,
        points=amount,
        point_type=PointType(point_type),
        reason=reason[:255] if reason else None,
        quarter=quarter_label(now),
        customer_id=customer_id,
        purchase_intent_id=purchase_intent_id,
        conversion_id=conversion_id,
        created_at=now,
    )
    db.session.add(txn)

    staff.total_points = (staff.total_points or 0) + amount
    staff.quarterly_points = (staff.quarterly_points or 0) + amount
    db.session.flush()
    return txn


class DatabasePointsSink:
    """Default sink: writes StaffPointTransaction rows in the current transaction."""

    def award_points(self, staff_id: int, amount: int, reason: str, **context) -> StaffPointTransaction:
        return award_points(staff_id, amount, reason, **context)


def adjust_points(staff_id: int, amount: int, reason: str) -> StaffPointTransaction:
    """Manual points correction by an admin."""
    amount = coerce_int("amount", amount)
    if amount == 0:
        raise ValidationError("amount must be non-zero")
    reason = require_text("reason", reason)
    with unit_of_work("adjust_points", staff_id=staff_id):
        txn = award_points(staff_id, amount, reason, point_type=PointType.MANUAL_ADJUSTMENT)
    return txn


def create_staff_member(*, store_id: int, first_name: str, last_name: str) -> StaffMember:
    first_name = require_text("first_name", first_name, max_length=128)
    last_name = require_text("last_name", last_name, max_length=128)
    with unit_of_work("create_staff_member", store_id=store_id):
        store = get_store(store_id)
        staff = StaffMember(
            store_id=store.id,
            org_id=store.org_id,
            first_name=first_name,
            last_name=last_name,
        )
        db.session.add(staff)
        db.session.flush()
    return staff


def list_point_transactions(staff_id: int, *, quarter: str | None = None) -> list[StaffPointTransaction]:
    get_staff_member(staff_id)
    query = db.session.query(StaffPointTransaction).filter_by(staff_id=staff_id)
    if quarter:
        query = query.filter(StaffPointTransaction.quarter == quarter)
    return query.order_by(StaffPointTransaction.created_at.desc(), StaffPointTransaction.id.desc()).all()
