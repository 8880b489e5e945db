from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from .types import StrEnum, enum_column_type
from qrdisplay.time_utils import to_utc_z, utcnow


class LedgerEntryType(StrEnum):
    WHOLESALE_RECEIVED = "wholesale_received"
    SAMPLE_REDEEMED = "sample_redeemed"
    PURCHASE_FULFILLED = "purchase_fulfilled"
    RESERVATION = "reservation"
    RELEASE = "release"
    ADJUSTMENT = "adjustment"


class IncomingOrderStatus(StrEnum):
    PENDING = "pending"
    RECEIVED = "received"


class StockRecord(db.Model):
    """
    Current stock snapshot for one (store_id, product_sku).

    OWNERSHIP: Mutated only by ledger_service, always together with the
    LedgerEntry that explains the change (same unit of work).

    quantity_available is derived (on_hand - reserved) and never stored.
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        db.UniqueConstraint("store_id", "product_sku", name="uq_stock_records_store_sku"),
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_stock_on_hand_non_negative"),
        db.CheckConstraint("quantity_reserved >= 0", name="ck_stock_reserved_non_negative"),
        db.CheckConstraint("quantity_incoming >= 0", name="ck_stock_incoming_non_negative"),
        db.CheckConstraint("quantity_reserved <= quantity_on_hand", name="ck_stock_reserved_within_on_hand"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_sku = db.Column(db.String(64), db.ForeignKey("products.sku"), nullable=False, index=True)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    quantity_reserved = db.Column(db.Integer, nullable=False, default=0)
    quantity_incoming = db.Column(db.Integer, nullable=False, default=0)

    # Open receiving batch (one physical shipment) and the order that opened it
    verification_token = db.Column(db.String(64), nullable=True, index=True)
    pending_order_id = db.Column(db.Integer, nullable=True)

    last_restocked = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now(), onupdate=utcnow)

    store = db.relationship("Store", backref=db.backref("stock_records", lazy=True))
    product = db.relationship("Product", foreign_keys=[product_sku])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def quantity_available(self) -> int:
        return self.quantity_on_hand - self.quantity_reserved

    def __repr__(self) -> str:
        return (
            f"<StockRecord store_id={self.store_id} sku={self.product_sku!r} "
            f"on_hand={self.quantity_on_hand} reserved={self.quantity_reserved} "
            f"incoming={self.quantity_incoming}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_sku": self.product_sku,
            "quantity_on_hand": self.quantity_on_hand,
            "quantity_reserved": self.quantity_reserved,
            "quantity_available": self.quantity_available,
            "quantity_incoming": self.quantity_incoming,
            "verification_token": self.verification_token,
            "pending_order_id": self.pending_order_id,
            "last_restocked": to_utc_z(self.last_restocked),
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class LedgerEntry(db.Model):
    """
    Append-only inventory ledger.

    INVARIANT: for one (store_id, product_sku), replaying quantity_delta in
    sequence order starting from 0 reproduces every balance_after and the
    StockRecord's quantity_on_hand. Reservation/release entries therefore carry
    quantity_delta = 0 and record the reserved change in reserved_delta.

    IMMUTABLE: Rows are never updated or deleted (enforced by mapper events below).
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.UniqueConstraint("store_id", "product_sku", "sequence", name="uq_ledger_entries_key_sequence"),
        db.Index("ix_ledger_entries_key_created", "store_id", "product_sku", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_sku = db.Column(db.String(64), nullable=False, index=True)

    sequence = db.Column(db.Integer, nullable=False)
    entry_type = db.Column(enum_column_type(LedgerEntryType), nullable=False, index=True)

    quantity_delta = db.Column(db.Integer, nullable=False)
    reserved_delta = db.Column(db.Integer, nullable=False, default=0)
    balance_after = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.String(255), nullable=True)

    incoming_order_id = db.Column(db.Integer, db.ForeignKey("incoming_orders.id"), nullable=True, index=True)
    purchase_intent_id = db.Column(db.Integer, db.ForeignKey("purchase_intents.id"), nullable=True, index=True)
    product_hold_id = db.Column(db.Integer, db.ForeignKey("product_holds.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry store_id={self.store_id} sku={self.product_sku!r} seq={self.sequence} "
            f"type={self.entry_type} delta={self.quantity_delta} balance_after={self.balance_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_sku": self.product_sku,
            "sequence": self.sequence,
            "type": self.entry_type.value,
            "quantity_delta": self.quantity_delta,
            "reserved_delta": self.reserved_delta,
            "balance_after": self.balance_after,
            "notes": self.notes,
            "incoming_order_id": self.incoming_order_id,
            "purchase_intent_id": self.purchase_intent_id,
            "product_hold_id": self.product_hold_id,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(LedgerEntry, "before_update")
def _ledger_entry_no_update(mapper, connection, target):
    raise ValueError("LedgerEntry rows are immutable")


@event.listens_for(LedgerEntry, "before_delete")
def _ledger_entry_no_delete(mapper, connection, target):
    raise ValueError("LedgerEntry rows are append-only")


class IncomingOrder(db.Model):
    """
    Wholesale order line waiting to be received at a store.

    LIFECYCLE: pending -> received (terminal, one-time). Orders that arrived in
    one physical shipment share a verification_token.
    """
    __tablename__ = "incoming_orders"
    __table_args__ = (
        db.CheckConstraint("quantity_ordered > 0", name="ck_incoming_orders_qty_positive"),
        db.Index("ix_incoming_orders_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    stock_record_id = db.Column(db.Integer, db.ForeignKey("stock_records.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_sku = db.Column(db.String(64), nullable=False)

    quantity_ordered = db.Column(db.Integer, nullable=False)
    quantity_received = db.Column(db.Integer, nullable=True)

    status = db.Column(
        enum_column_type(IncomingOrderStatus),
        nullable=False,
        default=IncomingOrderStatus.PENDING,
        index=True,
    )
    verification_token = db.Column(db.String(64), nullable=False, index=True)
    shopify_order_number = db.Column(db.String(64), nullable=True)

    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    stock_record = db.relationship("StockRecord", backref=db.backref("incoming_orders", lazy=True))

    def __repr__(self) -> str:
        return f"<IncomingOrder id={self.id} sku={self.product_sku!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stock_record_id": self.stock_record_id,
            "store_id": self.store_id,
            "product_sku": self.product_sku,
            "quantity_ordered": self.quantity_ordered,
            "quantity_received": self.quantity_received,
            "status": self.status.value,
            "verification_token": self.verification_token,
            "shopify_order_number": self.shopify_order_number,
            "received_at": to_utc_z(self.received_at),
            "created_at": to_utc_z(self.created_at),
        }
