# Overview: Pytest coverage for sample-to-purchase attribution and commission.

from datetime import date, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from qrdisplay.errors import NotFoundError
from qrdisplay.models import Conversion, PointType, StaffPointTransaction
from qrdisplay.services import attribution_service, points_service
from qrdisplay.services.customer_service import create_customer

SAMPLE_DATE = datetime(2025, 1, 1, 12, 0)


def _customer(sample_date=SAMPLE_DATE, store_id=1):
    return SimpleNamespace(sample_date=sample_date, attributed_store_id=store_id)


class TestShouldAttribute:

    @pytest.mark.parametrize("days, attributed", [
        (0, True),
        (15, True),
        (30, True),
        (31, False),
        (-1, False),
    ])
    def test_default_window_is_inclusive(self, days, attributed):
        org = SimpleNamespace(attribution_window_days=None)
        decision = attribution_service.should_attribute(_customer(), org, SAMPLE_DATE + timedelta(days=days))

        assert decision.attributed is attributed
        assert decision.days_to_conversion == days

    def test_partial_days_are_floored(self):
        org = SimpleNamespace(attribution_window_days=30)
        purchase = SAMPLE_DATE + timedelta(days=30, hours=23)
        decision = attribution_service.should_attribute(_customer(), org, purchase)

        assert decision.attributed
        assert decision.days_to_conversion == 30

    def test_custom_window(self):
        org = SimpleNamespace(attribution_window_days=7)
        decision = attribution_service.should_attribute(_customer(), org, SAMPLE_DATE + timedelta(days=8))

        assert not decision.attributed
        assert "limit is 7 days" in decision.reason

    def test_missing_facts_are_reasons_not_errors(self):
        org = SimpleNamespace(attribution_window_days=30)

        no_sample = attribution_service.should_attribute(_customer(sample_date=None), org, SAMPLE_DATE)
        assert not no_sample.attributed
        assert no_sample.reason == "No sample date recorded"

        no_store = attribution_service.should_attribute(_customer(store_id=None), org, SAMPLE_DATE)
        assert not no_store.attributed
        assert no_store.reason == "No attributed store"

    def test_dates_and_datetimes_mix(self):
        assert attribution_service.days_to_conversion(date(2025, 1, 1), datetime(2025, 1, 31, 8)) == 30
        assert attribution_service.is_within_attribution_window(date(2025, 1, 1), date(2025, 1, 31), 30)


class TestCommission:

    def test_exact_commission(self):
        assert attribution_service.calculate_commission(5000, 10) == Decimal("500")
        assert attribution_service.calculate_commission("49.99", "12.5") == Decimal("6.24875")

    @pytest.mark.parametrize("total_cents, rate, expected", [
        (5000, 10, 500),
        (4999, "10.0", 500),
        (5, 10, 1),
        (1999, "12.5", 250),
        (0, 15, 0),
    ])
    def test_commission_cents_round_half_up(self, total_cents, rate, expected):
        assert attribution_service.commission_cents(total_cents, rate) == expected


class TestRecordConversion:

    @pytest.fixture
    def sampled_customer(self, db_session, customer, store):
        customer.sample_date = SAMPLE_DATE
        customer.attributed_store_id = store.id
        db_session.commit()
        return customer

    def test_attributed_order_creates_conversion(self, db_session, org, store, sampled_customer):
        decision, conversion = attribution_service.record_conversion(
            org_id=org.id,
            customer_id=sampled_customer.id,
            external_order_id="SHOP-1001",
            order_total_cents=4999,
            purchase_date=SAMPLE_DATE + timedelta(days=14),
        )

        assert decision.attributed
        assert conversion.store_id == store.id
        assert conversion.days_to_conversion == 14
        assert conversion.commission_amount_cents == 500
        assert conversion.paid is False

    def test_same_order_is_recorded_once(self, db_session, org, sampled_customer):
        kwargs = dict(
            org_id=org.id,
            customer_id=sampled_customer.id,
            external_order_id="SHOP-1002",
            order_total_cents=1000,
            purchase_date=SAMPLE_DATE + timedelta(days=1),
        )
        _, first = attribution_service.record_conversion(**kwargs)
        _, second = attribution_service.record_conversion(**kwargs)

        assert first.id == second.id
        assert db_session.query(Conversion).count() == 1

    def test_outside_window_records_nothing(self, db_session, org, sampled_customer):
        decision, conversion = attribution_service.record_conversion(
            org_id=org.id,
            customer_id=sampled_customer.id,
            external_order_id="SHOP-1003",
            order_total_cents=1000,
            purchase_date=SAMPLE_DATE + timedelta(days=31),
        )

        assert not decision.attributed
        assert conversion is None
        assert db_session.query(Conversion).count() == 0

    def test_credited_staff_earns_online_points(self, db_session, org, sampled_customer, staff):
        _, conversion = attribution_service.record_conversion(
            org_id=org.id,
            customer_id=sampled_customer.id,
            external_order_id="SHOP-1004",
            order_total_cents=4999,
            purchase_date=SAMPLE_DATE + timedelta(days=2),
            credited_staff_id=staff.id,
        )

        txn = db_session.query(StaffPointTransaction).filter_by(conversion_id=conversion.id).one()
        assert txn.point_type == PointType.ONLINE_SALE
        assert txn.points == 49
        assert points_service.get_staff_member(staff.id).total_points == 49

    def test_customer_of_other_org_not_found(self, db_session, org, other_org):
        outsider = create_customer(org_id=other_org.id, first_name="Out", last_name="Sider")
        with pytest.raises(NotFoundError):
            attribution_service.record_conversion(
                org_id=org.id,
                customer_id=outsider.id,
                external_order_id="SHOP-1005",
                order_total_cents=100,
            )

    def test_mark_paid_and_list(self, db_session, org, store, sampled_customer):
        _, conversion = attribution_service.record_conversion(
            org_id=org.id,
            customer_id=sampled_customer.id,
            external_order_id="SHOP-1006",
            order_total_cents=2500,
            purchase_date=SAMPLE_DATE + timedelta(days=3),
        )

        assert len(attribution_service.list_conversions(org.id, paid=False)) == 1
        attribution_service.mark_conversion_paid(conversion.id)
        assert attribution_service.list_conversions(org.id, paid=False) == []
        assert len(attribution_service.list_conversions(org.id, store_id=store.id, paid=True)) == 1
