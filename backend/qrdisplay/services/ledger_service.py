# Overview: Inventory ledger engine; atomic read-modify-append on per-store, per-SKU stock.

"""
Inventory Ledger Invariants (authoritative)

Stock model:
- One StockRecord per (store_id, product_sku) holds the current snapshot:
  on_hand, reserved, incoming. available = on_hand - reserved, always derived.
- Every change to a snapshot appends exactly one LedgerEntry in the same
  transaction. A snapshot change without its entry (or the reverse) is a bug.

Business invariants:
- on_hand, reserved, incoming >= 0 and reserved <= on_hand, after every operation.
- Replaying quantity_delta over a key's entries in sequence order, starting
  from 0, reproduces every balance_after and the current on_hand.
- Reservation/release entries change reserved only (quantity_delta = 0).
- Nothing is clamped: an operation that would break an invariant raises
  ValidationError and changes nothing.

Concurrency:
- The StockRecord row is locked (FOR UPDATE) before reading it; version_id
  catches writers on engines without row locks.
- sequence is unique per key, so two racing appends can never both commit.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import func

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import IncomingOrder, LedgerEntry, LedgerEntryType, StockRecord
from ..validation import coerce_int, require_positive_quantity
from .commands import AdjustCommand, ReleaseCommand, ReserveCommand, StockCommand
from .concurrency import lock_for_update, unit_of_work
from .store_service import get_product, get_store, require_store_in_org
from qrdisplay.time_utils import utcnow


@dataclass(frozen=True)
class LedgerVerification:
    """Outcome of replaying one key's ledger against its snapshot."""
    store_id: int
    product_sku: str
    on_hand: int
    replayed_on_hand: int
    reserved: int
    replayed_reserved: int
    entry_count: int
    mismatches: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.mismatches

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "product_sku": self.product_sku,
            "ok": self.ok,
            "on_hand": self.on_hand,
            "replayed_on_hand": self.replayed_on_hand,
            "reserved": self.reserved,
            "replayed_reserved": self.replayed_reserved,
            "entry_count": self.entry_count,
            "mismatches": list(self.mismatches),
        }


# ================================================================================
# Internal helpers (no commit)
# ================================================================================

def _lock_stock_record(store_id: int, product_sku: str) -> StockRecord:
    query = db.session.query(StockRecord).filter_by(store_id=store_id, product_sku=product_sku)
    record = lock_for_update(query).first()
    if record is None:
        raise NotFoundError(f"No stock record for store {store_id} / {product_sku}")
    return record


def _next_sequence(store_id: int, product_sku: str) -> int:
    current = db.session.query(func.max(LedgerEntry.sequence)).filter(
        LedgerEntry.store_id == store_id,
        LedgerEntry.product_sku == product_sku,
    ).scalar()
    return int(current or 0) + 1


def _check_quantities(*, on_hand: int, reserved: int, incoming: int) -> None:
    """Reject a prospective snapshot that would break a stock invariant."""
    if on_hand < 0:
        raise ValidationError(f"Insufficient stock: on hand would become {on_hand}")
    if reserved < 0:
        raise ValidationError(f"Cannot release more than reserved: reserved would become {reserved}")
    if incoming < 0:
        raise ValidationError(f"Incoming quantity would become {incoming}")
    if reserved > on_hand:
        raise ValidationError(
            f"Reserved quantity ({reserved}) cannot exceed on hand ({on_hand})"
        )


def _apply_and_append(
    record: StockRecord,
    entry_type: LedgerEntryType,
    *,
    on_hand_delta: int = 0,
    reserved_delta: int = 0,
    incoming_delta: int = 0,
    notes: str | None = None,
    incoming_order_id: int | None = None,
    purchase_intent_id: int | None = None,
    product_hold_id: int | None = None,
) -> LedgerEntry:
    """
    Validate, mutate the snapshot, and append its ledger entry.

    The only place where on-hand and reserved are written.
    """
    new_on_hand = record.quantity_on_hand + on_hand_delta
    new_reserved = record.quantity_reserved + reserved_delta
    new_incoming = record.quantity_incoming + incoming_delta
    _check_quantities(on_hand=new_on_hand, reserved=new_reserved, incoming=new_incoming)

    record.quantity_on_hand = new_on_hand
    record.quantity_reserved = new_reserved
    record.quantity_incoming = new_incoming

    entry = LedgerEntry(
        store_id=record.store_id,
        product_sku=record.product_sku,
        sequence=_next_sequence(record.store_id, record.product_sku),
        entry_type=entry_type,
        quantity_delta=on_hand_delta,
        reserved_delta=reserved_delta,
        balance_after=new_on_hand,
        notes=notes[:255] if notes else None,
        incoming_order_id=incoming_order_id,
        purchase_intent_id=purchase_intent_id,
        product_hold_id=product_hold_id,
        created_at=utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def _open_stock_record_inner(
    store_id: int,
    product_sku: str,
    *,
    initial_quantity: int = 0,
    notes: str | None = None,
) -> StockRecord:
    get_store(store_id)
    get_product(product_sku)

    existing = db.session.query(StockRecord).filter_by(store_id=store_id, product_sku=product_sku).first()
    if existing is not None:
        raise ConflictError(f"Stock record for store {store_id} / {product_sku} already exists")

    record = StockRecord(
        store_id=store_id,
        product_sku=product_sku,
        quantity_on_hand=0,
        quantity_reserved=0,
        quantity_incoming=0,
    )
    db.session.add(record)
    db.session.flush()

    if initial_quantity:
        _apply_and_append(
            record,
            LedgerEntryType.ADJUSTMENT,
            on_hand_delta=initial_quantity,
            notes=notes or f"Initial stock: {initial_quantity} unit(s)",
        )
    return record


def _get_or_open_stock_record_inner(store_id: int, product_sku: str) -> StockRecord:
    query = db.session.query(StockRecord).filter_by(store_id=store_id, product_sku=product_sku)
    record = lock_for_update(query).first()
    if record is None:
        record = _open_stock_record_inner(store_id, product_sku)
    return record


def _add_incoming_inner(record: StockRecord, quantity: int) -> StockRecord:
    """
    Book units ordered from the wholesaler. Incoming is not stock on hand,
    so no ledger entry is appended until the order is received.
    """
    new_incoming = record.quantity_incoming + quantity
    _check_quantities(
        on_hand=record.quantity_on_hand,
        reserved=record.quantity_reserved,
        incoming=new_incoming,
    )
    record.quantity_incoming = new_incoming
    db.session.flush()
    return record


def _reserve_inner(store_id: int, product_sku: str, quantity: int, *,
                   notes: str | None = None, purchase_intent_id: int | None = None,
                   product_hold_id: int | None = None) -> LedgerEntry:
    record = _lock_stock_record(store_id, product_sku)
    if quantity > record.quantity_available:
        raise ValidationError(
            f"Insufficient available stock for {product_sku}: "
            f"available {record.quantity_available}, requested {quantity}"
        )
    return _apply_and_append(
        record,
        LedgerEntryType.RESERVATION,
        reserved_delta=quantity,
        notes=notes or f"Reserved {quantity} unit(s)",
        purchase_intent_id=purchase_intent_id,
        product_hold_id=product_hold_id,
    )


def _release_inner(store_id: int, product_sku: str, quantity: int, *,
                   notes: str | None = None, purchase_intent_id: int | None = None,
                   product_hold_id: int | None = None) -> LedgerEntry:
    record = _lock_stock_record(store_id, product_sku)
    return _apply_and_append(
        record,
        LedgerEntryType.RELEASE,
        reserved_delta=-quantity,
        notes=notes or f"Released {quantity} unit(s)",
        purchase_intent_id=purchase_intent_id,
        product_hold_id=product_hold_id,
    )


def _consume_on_fulfillment_inner(store_id: int, product_sku: str, quantity: int, *,
                                  notes: str | None = None,
                                  purchase_intent_id: int | None = None,
                                  product_hold_id: int | None = None) -> LedgerEntry:
    record = _lock_stock_record(store_id, product_sku)
    if quantity > record.quantity_reserved:
        raise ValidationError(
            f"Cannot fulfill {quantity} unit(s) of {product_sku}: only {record.quantity_reserved} reserved"
        )
    return _apply_and_append(
        record,
        LedgerEntryType.PURCHASE_FULFILLED,
        on_hand_delta=-quantity,
        reserved_delta=-quantity,
        notes=notes or f"Purchase fulfilled - {quantity} unit(s) sold",
        purchase_intent_id=purchase_intent_id,
        product_hold_id=product_hold_id,
    )


def _redeem_sample_inner(store_id: int, product_sku: str, quantity: int, *,
                         notes: str | None = None) -> LedgerEntry:
    record = _lock_stock_record(store_id, product_sku)
    if quantity > record.quantity_available:
        raise ValidationError(
            f"Insufficient available stock for sample of {product_sku}: "
            f"available {record.quantity_available}, requested {quantity}"
        )
    return _apply_and_append(
        record,
        LedgerEntryType.SAMPLE_REDEEMED,
        on_hand_delta=-quantity,
        notes=notes or f"Sample redeemed - {quantity} unit(s)",
    )


def _adjust_inner(store_id: int, product_sku: str, delta: int, reason: str) -> LedgerEntry:
    record = _lock_stock_record(store_id, product_sku)
    return _apply_and_append(
        record,
        LedgerEntryType.ADJUSTMENT,
        on_hand_delta=delta,
        notes=reason,
    )


def _apply_wholesale_receipt_inner(record: StockRecord, order: IncomingOrder) -> LedgerEntry:
    """
    Move an order's units from incoming to on hand (caller holds the row lock
    and owns the order status change).
    """
    entry = _apply_and_append(
        record,
        LedgerEntryType.WHOLESALE_RECEIVED,
        on_hand_delta=order.quantity_ordered,
        incoming_delta=-order.quantity_ordered,
        notes=(
            f"Received wholesale order #{order.shopify_order_number or order.id} - "
            f"{order.quantity_ordered} units"
        ),
        incoming_order_id=order.id,
    )
    record.last_restocked = utcnow()
    return entry


# ================================================================================
# Public operations (one unit of work each)
# ================================================================================

def open_stock_record(
    store_id: int,
    product_sku: str,
    *,
    initial_quantity: int = 0,
    notes: str | None = None,
) -> StockRecord:
    """
    Create the stock record for a (store, SKU) pair.

    A non-zero initial quantity is booked as an adjustment entry so the ledger
    replays to the opening balance.

    Raises:
        NotFoundError: store or product missing
        ConflictError: record already exists
        ValidationError: negative initial quantity
    """
    initial_quantity = coerce_int("initial_quantity", initial_quantity)
    if initial_quantity < 0:
        raise ValidationError("initial_quantity must be >= 0")

    with unit_of_work("open_stock_record", store_id=store_id, sku=product_sku):
        record = _open_stock_record_inner(
            store_id, product_sku, initial_quantity=initial_quantity, notes=notes
        )
    return record


def reserve(store_id: int, product_sku: str, quantity: int, *, notes: str | None = None) -> LedgerEntry:
    """Hold `quantity` units of available stock (reserved += quantity)."""
    cmd = ReserveCommand(store_id, product_sku, quantity, notes).validate()
    with unit_of_work("reserve", store_id=cmd.store_id, sku=cmd.product_sku):
        entry = _reserve_inner(cmd.store_id, cmd.product_sku, cmd.quantity, notes=cmd.notes)
    return entry


def release(store_id: int, product_sku: str, quantity: int, *, notes: str | None = None) -> LedgerEntry:
    """Return previously reserved units to available (reserved -= quantity)."""
    cmd = ReleaseCommand(store_id, product_sku, quantity, notes).validate()
    with unit_of_work("release", store_id=cmd.store_id, sku=cmd.product_sku):
        entry = _release_inner(cmd.store_id, cmd.product_sku, cmd.quantity, notes=cmd.notes)
    return entry


def consume_on_fulfillment(store_id: int, product_sku: str, quantity: int, *,
                           notes: str | None = None) -> LedgerEntry:
    """
    Sell reserved units: on_hand and reserved both drop by `quantity`.

    Fulfillment of a purchase intent calls the inner variant inside its own
    unit of work; this wrapper is for standalone callers.
    """
    quantity = require_positive_quantity("quantity", quantity)
    with unit_of_work("consume_on_fulfillment", store_id=store_id, sku=product_sku):
        entry = _consume_on_fulfillment_inner(store_id, product_sku, quantity, notes=notes)
    return entry


def redeem_sample(store_id: int, product_sku: str, quantity: int = 1, *,
                  notes: str | None = None) -> LedgerEntry:
    """Take sample units straight from available stock."""
    quantity = require_positive_quantity("quantity", quantity)
    with unit_of_work("redeem_sample", store_id=store_id, sku=product_sku):
        entry = _redeem_sample_inner(store_id, product_sku, quantity, notes=notes)
    return entry


def adjust(store_id: int, product_sku: str, delta: int, reason: str, *,
           acting_org_id: int | None = None) -> LedgerEntry:
    """
    Manual correction of on-hand stock (shrink, recount, damage).

    May be negative, but never below zero and never below what is reserved.
    """
    cmd = AdjustCommand(store_id, product_sku, delta, reason).validate()
    with unit_of_work("adjust", store_id=cmd.store_id, sku=cmd.product_sku):
        require_store_in_org(cmd.store_id, acting_org_id)
        entry = _adjust_inner(cmd.store_id, cmd.product_sku, cmd.delta, cmd.reason)
    return entry


def set_on_hand(store_id: int, product_sku: str, quantity: int, reason: str | None = None, *,
                acting_org_id: int | None = None) -> LedgerEntry | None:
    """
    Set on-hand to an absolute physical count by booking the difference.

    Returns None when the count already matches (nothing to book).
    """
    quantity = coerce_int("quantity", quantity)
    if quantity < 0:
        raise ValidationError("quantity cannot be negative")

    with unit_of_work("set_on_hand", store_id=store_id, sku=product_sku):
        require_store_in_org(store_id, acting_org_id)
        record = _lock_stock_record(store_id, product_sku)
        delta = quantity - record.quantity_on_hand
        if delta == 0:
            return None
        entry = _adjust_inner(
            store_id,
            product_sku,
            delta,
            reason or f"Physical count set on hand to {quantity}",
        )
    return entry


def apply_command(command: StockCommand, *, acting_org_id: int | None = None) -> LedgerEntry:
    """Dispatch a tagged stock command to its operation."""
    if isinstance(command, ReserveCommand):
        return reserve(command.store_id, command.product_sku, command.quantity, notes=command.notes)
    if isinstance(command, ReleaseCommand):
        return release(command.store_id, command.product_sku, command.quantity, notes=command.notes)
    if isinstance(command, AdjustCommand):
        return adjust(
            command.store_id, command.product_sku, command.delta, command.reason,
            acting_org_id=acting_org_id,
        )
    raise ValidationError(f"Unsupported stock command: {type(command).__name__}")


# ================================================================================
# Reads
# ================================================================================

def get_stock_record(store_id: int, product_sku: str) -> StockRecord:
    record = db.session.query(StockRecord).filter_by(store_id=store_id, product_sku=product_sku).first()
    if record is None:
        raise NotFoundError(f"No stock record for store {store_id} / {product_sku}")
    return record


def list_stock_records(store_id: int) -> list[StockRecord]:
    get_store(store_id)
    return (
        db.session.query(StockRecord)
        .filter_by(store_id=store_id)
        .order_by(StockRecord.product_sku.asc())
        .all()
    )


def list_ledger_entries(
    store_id: int,
    product_sku: str | None = None,
    *,
    entry_type: LedgerEntryType | str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[LedgerEntry], int]:
    """
    Ledger history for a store (optionally one SKU), newest first.

    Returns:
        Tuple of (entries, total count)
    """
    query = db.session.query(LedgerEntry).filter(LedgerEntry.store_id == store_id)
    if product_sku:
        query = query.filter(LedgerEntry.product_sku == product_sku)
    if entry_type:
        try:
            entry_type = LedgerEntryType(entry_type)
        except ValueError:
            raise ValidationError(f"Unknown ledger entry type: {entry_type}")
        query = query.filter(LedgerEntry.entry_type == entry_type)

    total = query.count()

    limit = max(1, min(limit, 500))
    offset = max(0, offset)
    rows = (
        query.order_by(LedgerEntry.created_at.desc(), LedgerEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def verify_ledger(store_id: int, product_sku: str) -> LedgerVerification:
    """
    Replay a key's ledger from zero and compare with the snapshot.

    Checks the sequence is gap-free, every balance_after, the final on-hand
    and the reserved total.
    """
    record = get_stock_record(store_id, product_sku)
    entries = (
        db.session.query(LedgerEntry)
        .filter_by(store_id=store_id, product_sku=product_sku)
        .order_by(LedgerEntry.sequence.asc())
        .all()
    )

    mismatches: list[str] = []
    balance = 0
    reserved = 0
    for expected_seq, entry in enumerate(entries, start=1):
        if entry.sequence != expected_seq:
            mismatches.append(f"sequence gap: expected {expected_seq}, found {entry.sequence}")
        balance += entry.quantity_delta
        reserved += entry.reserved_delta
        if entry.balance_after != balance:
            mismatches.append(
                f"entry {entry.sequence} ({entry.entry_type.value}): balance_after "
                f"{entry.balance_after} != replayed {balance}"
            )
        if balance < 0 or reserved < 0 or reserved > balance:
            mismatches.append(f"entry {entry.sequence}: invalid replayed state on_hand={balance} reserved={reserved}")

    if balance != record.quantity_on_hand:
        mismatches.append(f"on hand {record.quantity_on_hand} != replayed {balance}")
    if reserved != record.quantity_reserved:
        mismatches.append(f"reserved {record.quantity_reserved} != replayed {reserved}")

    return LedgerVerification(
        store_id=store_id,
        product_sku=product_sku,
        on_hand=record.quantity_on_hand,
        replayed_on_hand=balance,
        reserved=record.quantity_reserved,
        replayed_reserved=reserved,
        entry_count=len(entries),
        mismatches=mismatches,
    )
