from __future__ import annotations

from ..extensions import db
from .types import StrEnum, enum_column_type
from qrdisplay.time_utils import to_utc_z, utcnow


class PointType(StrEnum):
    SAMPLE = "sample"
    ONLINE_SALE = "online_sale"
    INSTORE_SALE = "instore_sale"
    MANUAL_ADJUSTMENT = "manual_adjustment"


class StaffMember(db.Model):
    """
    Store staff member who redeems samples and completes in-store purchases.

    Points drive the staff leaderboard; quarterly_points resets at the start
    of each calendar quarter (see points_service).
    """
    __tablename__ = "staff_members"
    __table_args__ = (
        db.Index("ix_staff_members_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    first_name = db.Column(db.String(128), nullable=False)
    last_name = db.Column(db.String(128), nullable=False)

    total_points = db.Column(db.Integer, nullable=False, default=0)
    quarterly_points = db.Column(db.Integer, nullable=False, default=0)
    last_quarter_reset = db.Column(db.DateTime(timezone=True), nullable=True)
    sales_generated = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("staff_members", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "org_id": self.org_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "total_points": self.total_points,
            "quarterly_points": self.quarterly_points,
            "last_quarter_reset": to_utc_z(self.last_quarter_reset),
            "sales_generated": self.sales_generated,
            "is_active": self.is_active,
        }


class StaffPointTransaction(db.Model):
    """
    Append-only ledger of staff point awards.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "staff_point_transactions"
    __table_args__ = (
        db.Index("ix_staff_points_staff_quarter", "staff_id", "quarter"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff_members.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    points = db.Column(db.Integer, nullable=False)
    point_type = db.Column(enum_column_type(PointType), nullable=False, index=True)
    reason = db.Column(db.String(255), nullable=True)
    quarter = db.Column(db.String(8), nullable=False)  # 2025-Q1

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)
    purchase_intent_id = db.Column(db.Integer, db.ForeignKey("purchase_intents.id"), nullable=True, index=True)
    conversion_id = db.Column(db.Integer, db.ForeignKey("conversions.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    staff = db.relationship("StaffMember", backref=db.backref("point_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_id": self.staff_id,
            "store_id": self.store_id,
            "org_id": self.org_id,
            "points": self.points,
            "point_type": self.point_type.value,
            "reason": self.reason,
            "quarter": self.quarter,
            "customer_id": self.customer_id,
            "purchase_intent_id": self.purchase_intent_id,
            "conversion_id": self.conversion_id,
            "created_at": to_utc_z(self.created_at),
        }
