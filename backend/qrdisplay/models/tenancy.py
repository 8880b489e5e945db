from __future__ import annotations

from ..extensions import db
from qrdisplay.time_utils import to_utc_z, utcnow


class Organization(db.Model):
    """
    Multi-tenant root: a brand (or the platform itself) that owns displays,
    products, and stores.

    Commission and attribution settings are read-only inputs to the
    attribution engine. NULL means "use the configured default".
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_code = db.Column(db.String(64), nullable=False, unique=True, index=True)  # e.g. ORG-VITADREAMZ
    name = db.Column(db.String(255), nullable=False)

    commission_rate = db.Column(db.Numeric(5, 2), nullable=True)  # percent, e.g. 10.00
    attribution_window_days = db.Column(db.Integer, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} org_code={self.org_code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_code": self.org_code,
            "name": self.name,
            "commission_rate": float(self.commission_rate) if self.commission_rate is not None else None,
            "attribution_window_days": self.attribution_window_days,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Store(db.Model):
    """
    Retail location onboarded through display activation.

    MULTI-TENANT: Stores are scoped to the brand organization that activated them.
    store_code is the human-facing identifier (SID-001, SID-002, ...).
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.Index("ix_stores_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    store_code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(120), nullable=False)

    contact_name = db.Column(db.String(120), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(32), nullable=True)
    timezone = db.Column(db.String(64), nullable=False, default="UTC")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("stores", lazy=True))

    def __repr__(self) -> str:
        return f"<Store id={self.id} store_code={self.store_code!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "store_code": self.store_code,
            "name": self.name,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "timezone": self.timezone,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
