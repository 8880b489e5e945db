from __future__ import annotations

from ..extensions import db
from .types import StrEnum, enum_column_type
from qrdisplay.time_utils import to_utc_naive, to_utc_z, utcnow


class HoldStatus(StrEnum):
    ACTIVE = "active"
    PICKED_UP = "picked_up"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class ProductHold(db.Model):
    """
    Units set aside at a store for one customer until expires_at.

    LIFECYCLE: active -> picked_up | cancelled | expired (terminal, exactly once).
    Creating a hold reserves stock; pick-up consumes the reservation;
    cancel and expiry release it.
    """
    __tablename__ = "product_holds"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_product_holds_qty_positive"),
        db.Index("ix_product_holds_store_status", "store_id", "status"),
        db.Index("ix_product_holds_status_expires", "status", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    product_sku = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(enum_column_type(HoldStatus), nullable=False, default=HoldStatus.ACTIVE)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    notified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    picked_up_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("holds", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def is_due(self, now) -> bool:
        return self.status == HoldStatus.ACTIVE and to_utc_naive(self.expires_at) <= now

    def __repr__(self) -> str:
        return f"<ProductHold id={self.id} sku={self.product_sku!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "customer_id": self.customer_id,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "status": self.status.value,
            "expires_at": to_utc_z(self.expires_at),
            "notified_at": to_utc_z(self.notified_at),
            "picked_up_at": to_utc_z(self.picked_up_at),
            "closed_at": to_utc_z(self.closed_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
