# Overview: Existence lookups and tenancy checks for stores, products, and organizations.

"""
Store / product / organization lookups.

Every core operation resolves its keys through these helpers so that a
missing row is always reported the same way (NotFoundError) and cross-tenant
access the same way (UnauthorizedError).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, UnauthorizedError, ValidationError, ConflictError
from ..models import Organization, Store, Product
from ..models.products import PRODUCT_TYPE_RETAIL
from .concurrency import unit_of_work


@dataclass(frozen=True)
class OrgSettings:
    """Read-only organization configuration consumed by attribution."""
    commission_rate: Decimal
    attribution_window_days: int


def get_organization(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if org is None:
        raise NotFoundError(f"Organization {org_id} not found")
    return org


def get_org_settings(org: Organization) -> OrgSettings:
    """Organization commission settings with configured fallbacks for unset values."""
    rate = org.commission_rate
    if rate is None:
        rate = Decimal(str(current_app.config["DEFAULT_COMMISSION_RATE"]))
    window = org.attribution_window_days
    if window is None:
        window = int(current_app.config["DEFAULT_ATTRIBUTION_WINDOW_DAYS"])
    return OrgSettings(commission_rate=Decimal(rate), attribution_window_days=window)


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def get_store_by_code(store_code: str) -> Store:
    store = db.session.query(Store).filter_by(store_code=store_code).first()
    if store is None:
        raise NotFoundError(f"Store {store_code} not found")
    return store


def get_product(sku: str, *, require_active: bool = False) -> Product:
    product = db.session.query(Product).filter_by(sku=sku).first()
    if product is None:
        raise NotFoundError(f"Product {sku} not found")
    if require_active and not product.is_active:
        raise ValidationError(f"Product {sku} is inactive")
    return product


def require_store_in_org(store_id: int, org_id: int | None) -> Store:
    """
    Validate that a store belongs to the acting organization.

    org_id=None means the caller is platform-level (no tenant restriction).
    """
    store = get_store(store_id)
    if org_id is not None and store.org_id != org_id:
        raise UnauthorizedError(f"Store {store_id} does not belong to organization {org_id}")
    return store


def next_store_code() -> str:
    """SID-001, SID-002, ... (3-digit minimum padding)."""
    count = db.session.query(func.count(Store.id)).scalar() or 0
    return f"SID-{count + 1:03d}"


def create_organization(*, org_code: str, name: str, commission_rate=None, attribution_window_days=None) -> Organization:
    with unit_of_work("create_organization", org_code=org_code):
        if db.session.query(Organization).filter_by(org_code=org_code).first():
            raise ConflictError(f"Organization {org_code} already exists")
        org = Organization(
            org_code=org_code,
            name=name,
            commission_rate=commission_rate,
            attribution_window_days=attribution_window_days,
        )
        db.session.add(org)
        db.session.flush()
    return org


def create_store(*, org_id: int, name: str, contact_name=None, contact_email=None,
                 contact_phone=None, timezone: str = "UTC") -> Store:
    with unit_of_work("create_store", org_id=org_id):
        get_organization(org_id)
        store = Store(
            org_id=org_id,
            store_code=next_store_code(),
            name=name,
            contact_name=contact_name,
            contact_email=contact_email,
            contact_phone=contact_phone,
            timezone=timezone,
        )
        db.session.add(store)
        db.session.flush()
    return store


def create_product(*, org_id: int, sku: str, name: str, product_type: str = PRODUCT_TYPE_RETAIL,
                   units_per_box: int | None = None, price_cents: int | None = None) -> Product:
    with unit_of_work("create_product", sku=sku):
        get_organization(org_id)
        if db.session.query(Product).filter_by(sku=sku).first():
            raise ConflictError(f"Product {sku} already exists")
        product = Product(
            org_id=org_id,
            sku=sku,
            name=name,
            product_type=product_type,
            units_per_box=units_per_box,
            price_cents=price_cents,
        )
        db.session.add(product)
        db.session.flush()
    return product
