from __future__ import annotations

from ..extensions import db
from .types import StrEnum, enum_column_type
from qrdisplay.time_utils import to_utc_z, utcnow


class PurchaseIntentStatus(StrEnum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


class Customer(db.Model):
    """
    End customer captured through a display's sample flow.

    sample_date and attributed_store_id are the facts attribution reads;
    they are written by the sample funnel, never by the attribution engine.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_org_phone", "org_id", "phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    external_customer_id = db.Column(db.String(64), nullable=True, index=True)  # Shopify customer id

    sample_date = db.Column(db.DateTime(timezone=True), nullable=True)
    attributed_store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "store_id": self.store_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "external_customer_id": self.external_customer_id,
            "sample_date": to_utc_z(self.sample_date),
            "attributed_store_id": self.attributed_store_id,
            "created_at": to_utc_z(self.created_at),
        }


class PurchaseIntent(db.Model):
    """
    A customer's request to buy a product in store at a promo price.

    LIFECYCLE: pending -> fulfilled | cancelled (terminal, exactly once).
    Creating an intent reserves stock; fulfilling consumes the reservation;
    cancelling releases it.
    """
    __tablename__ = "purchase_intents"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchase_intents_qty_positive"),
        db.Index("ix_purchase_intents_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_sku = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    status = db.Column(
        enum_column_type(PurchaseIntentStatus),
        nullable=False,
        default=PurchaseIntentStatus.PENDING,
        index=True,
    )

    original_price_cents = db.Column(db.Integer, nullable=False)
    discount_percent = db.Column(db.Integer, nullable=False, default=0)
    final_price_cents = db.Column(db.Integer, nullable=False)

    verify_slug = db.Column(db.String(32), nullable=False, unique=True, index=True)

    fulfilled_by_staff_id = db.Column(db.Integer, db.ForeignKey("staff_members.id"), nullable=True)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("purchase_intents", lazy=True))
    fulfilled_by = db.relationship("StaffMember", foreign_keys=[fulfilled_by_staff_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PurchaseIntent id={self.id} sku={self.product_sku!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "store_id": self.store_id,
            "product_sku": self.product_sku,
            "quantity": self.quantity,
            "status": self.status.value,
            "original_price_cents": self.original_price_cents,
            "discount_percent": self.discount_percent,
            "final_price_cents": self.final_price_cents,
            "verify_slug": self.verify_slug,
            "fulfilled_by_staff_id": self.fulfilled_by_staff_id,
            "fulfilled_at": to_utc_z(self.fulfilled_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class Conversion(db.Model):
    """
    A purchase attributed to the store that handed out the customer's sample.

    commission_amount_cents is written only by attribution_service.
    paid flips when store credit has been applied (outside this core).
    """
    __tablename__ = "conversions"
    __table_args__ = (
        db.UniqueConstraint("org_id", "external_order_id", name="uq_conversions_org_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    external_order_id = db.Column(db.String(64), nullable=False)
    order_total_cents = db.Column(db.Integer, nullable=False)
    commission_rate = db.Column(db.Numeric(5, 2), nullable=False)
    commission_amount_cents = db.Column(db.Integer, nullable=False)

    sample_date = db.Column(db.DateTime(timezone=True), nullable=False)
    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False)
    days_to_conversion = db.Column(db.Integer, nullable=False)

    paid = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("conversions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "customer_id": self.customer_id,
            "store_id": self.store_id,
            "external_order_id": self.external_order_id,
            "order_total_cents": self.order_total_cents,
            "commission_rate": float(self.commission_rate),
            "commission_amount_cents": self.commission_amount_cents,
            "sample_date": to_utc_z(self.sample_date),
            "purchase_date": to_utc_z(self.purchase_date),
            "days_to_conversion": self.days_to_conversion,
            "paid": self.paid,
            "created_at": to_utc_z(self.created_at),
        }
