from __future__ import annotations

from ..extensions import db
from qrdisplay.time_utils import to_utc_z, utcnow


PRODUCT_TYPE_RETAIL = "retail"
PRODUCT_TYPE_WHOLESALE_BOX = "wholesale-box"
PRODUCT_TYPES = {PRODUCT_TYPE_RETAIL, PRODUCT_TYPE_WHOLESALE_BOX}

# Wholesale boxes share the retail SKU with this suffix: VD-SB-30-BX -> VD-SB-30
WHOLESALE_SKU_SUFFIX = "-BX"


class Product(db.Model):
    """
    Product master data, scoped to the brand organization.

    SKU is globally unique. Retail units are what stock records count;
    wholesale-box products only exist to convert incoming box orders into
    retail units (units_per_box).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    product_type = db.Column(db.String(32), nullable=False, default=PRODUCT_TYPE_RETAIL)
    units_per_box = db.Column(db.Integer, nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "sku": self.sku,
            "name": self.name,
            "product_type": self.product_type,
            "units_per_box": self.units_per_box,
            "price_cents": self.price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
