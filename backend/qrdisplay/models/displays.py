from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db
from .types import StrEnum, enum_column_type
from qrdisplay.time_utils import to_utc_z, utcnow


class DisplayStatus(StrEnum):
    INVENTORY = "inventory"
    SOLD = "sold"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Display(db.Model):
    """
    Physical QR-coded display unit.

    OWNERSHIP: owner_org_id is the platform-level owner and never changes.
    assigned_org_id is the brand the unit was sold to; it survives resets.
    store_id/activated_at are set only while the display is active.

    Status transitions are owned by display_service; other components only read.
    """
    __tablename__ = "displays"
    __table_args__ = (
        db.Index("ix_displays_status_assigned", "status", "assigned_org_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    display_id = db.Column(db.String(32), nullable=False, unique=True, index=True)  # QRD-001

    status = db.Column(
        enum_column_type(DisplayStatus),
        nullable=False,
        default=DisplayStatus.INVENTORY,
        index=True,
    )

    owner_org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    assigned_org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, server_default=db.func.now())

    owner_organization = db.relationship("Organization", foreign_keys=[owner_org_id])
    assigned_organization = db.relationship("Organization", foreign_keys=[assigned_org_id])
    store = db.relationship("Store", backref=db.backref("displays", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    @validates("owner_org_id")
    def _validate_owner_org_id(self, key, value):
        if self.owner_org_id is not None and value != self.owner_org_id:
            raise ValueError("owner_org_id is immutable once set")
        return value

    @validates("display_id")
    def _validate_display_id(self, key, value):
        if self.display_id is not None and value != self.display_id:
            raise ValueError("display_id is immutable once set")
        return value

    def __repr__(self) -> str:
        return f"<Display display_id={self.display_id!r} status={self.status} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_id": self.display_id,
            "status": self.status.value,
            "owner_org_id": self.owner_org_id,
            "assigned_org_id": self.assigned_org_id,
            "store_id": self.store_id,
            "activated_at": to_utc_z(self.activated_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
