# Overview: Pytest coverage for purchase-intent reservation, fulfillment atomicity and cancellation.

"""
Purchase-Intent Tests

Fulfillment is one transaction: intent transition, stock consumption, staff
points and the sales counter. A failing points sink must leave the intent
pending and the stock untouched.
"""

import pytest

from qrdisplay.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from qrdisplay.models import PointType, PurchaseIntentStatus, StaffPointTransaction
from qrdisplay.services import fulfillment_service, ledger_service, points_service
from qrdisplay.services.customer_service import create_customer


class ExplodingSink:
    def award_points(self, staff_id, amount, reason, **context):
        raise RuntimeError("points backend unavailable")


class RecordingSink:
    def __init__(self):
        self.calls = []

    def award_points(self, staff_id, amount, reason, **context):
        self.calls.append((staff_id, amount, reason, context))


@pytest.fixture
def intent(db_session, stock, customer, store, product):
    return fulfillment_service.create_purchase_intent(
        customer_id=customer.id,
        store_id=store.id,
        product_sku=product.sku,
        original_price_cents=2999,
        discount_percent=10,
        final_price_cents=2699,
    )


class TestCreatePurchaseIntent:

    def test_reserves_stock(self, db_session, intent, store, product):
        assert intent.status == PurchaseIntentStatus.PENDING
        assert len(intent.verify_slug) == 10

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 10
        assert record.quantity_reserved == 1

    def test_pending_intent_is_reused(self, db_session, intent, customer, store, product):
        again = fulfillment_service.create_purchase_intent(
            customer_id=customer.id,
            store_id=store.id,
            product_sku=product.sku,
            original_price_cents=2999,
            final_price_cents=2999,
        )

        assert again.id == intent.id
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_reserved == 1

    def test_not_enough_stock_creates_nothing(self, db_session, stock, customer, store, product):
        with pytest.raises(ValidationError):
            fulfillment_service.create_purchase_intent(
                customer_id=customer.id,
                store_id=store.id,
                product_sku=product.sku,
                quantity=11,
                original_price_cents=100,
                final_price_cents=100,
            )

        assert fulfillment_service.list_purchase_intents(store.id) == []
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_reserved == 0

    def test_customer_of_other_org_unauthorized(self, db_session, stock, store, product, other_org):
        outsider = create_customer(org_id=other_org.id, first_name="Out", last_name="Sider")
        with pytest.raises(UnauthorizedError):
            fulfillment_service.create_purchase_intent(
                customer_id=outsider.id,
                store_id=store.id,
                product_sku=product.sku,
                original_price_cents=100,
                final_price_cents=100,
            )

    @pytest.mark.parametrize("discount", [-1, 101])
    def test_discount_bounds(self, db_session, stock, customer, store, product, discount):
        with pytest.raises(ValidationError):
            fulfillment_service.create_purchase_intent(
                customer_id=customer.id,
                store_id=store.id,
                product_sku=product.sku,
                original_price_cents=100,
                discount_percent=discount,
                final_price_cents=100,
            )


class TestFulfillPurchaseIntent:

    def test_fulfill_consumes_and_awards_points(self, db_session, intent, staff, store, product, dispatcher):
        fulfilled = fulfillment_service.fulfill_purchase_intent(intent.id, staff.id)

        assert fulfilled.status == PurchaseIntentStatus.FULFILLED
        assert fulfilled.fulfilled_by_staff_id == staff.id
        assert fulfilled.fulfilled_at is not None

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 9
        assert record.quantity_reserved == 0

        staff = points_service.get_staff_member(staff.id)
        assert staff.total_points == 53  # 2 points per dollar on $26.99
        assert staff.quarterly_points == 53
        assert staff.sales_generated == 1

        txn = db_session.query(StaffPointTransaction).filter_by(purchase_intent_id=intent.id).one()
        assert txn.point_type == PointType.INSTORE_SALE

        assert dispatcher.sent[-1][0] == "sms"
        assert dispatcher.sent[-1][1] == "+15551234567"
        assert ledger_service.verify_ledger(store.id, product.sku).ok

    def test_final_price_override(self, db_session, intent, staff):
        sink = RecordingSink()
        fulfillment_service.fulfill_purchase_intent(intent.id, staff.id, final_price_cents=1000, points_sink=sink)

        assert fulfillment_service.get_purchase_intent(intent.id).final_price_cents == 1000
        staff_id, amount, _, context = sink.calls[0]
        assert staff_id == staff.id
        assert amount == 20
        assert context["point_type"] == PointType.INSTORE_SALE

    def test_failing_points_sink_rolls_everything_back(self, db_session, intent, staff, store, product, dispatcher):
        with pytest.raises(RuntimeError):
            fulfillment_service.fulfill_purchase_intent(intent.id, staff.id, points_sink=ExplodingSink())

        assert fulfillment_service.get_purchase_intent(intent.id).status == PurchaseIntentStatus.PENDING
        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 10
        assert record.quantity_reserved == 1
        assert points_service.get_staff_member(staff.id).sales_generated == 0
        assert dispatcher.sent == []
        assert ledger_service.verify_ledger(store.id, product.sku).entry_count == 2

    def test_double_fulfill_conflicts(self, db_session, intent, staff, store, product):
        fulfillment_service.fulfill_purchase_intent(intent.id, staff.id)

        with pytest.raises(ConflictError):
            fulfillment_service.fulfill_purchase_intent(intent.id, staff.id)

        assert ledger_service.get_stock_record(store.id, product.sku).quantity_on_hand == 9

    def test_staff_of_other_store_unauthorized(self, db_session, intent, other_store):
        outsider = points_service.create_staff_member(store_id=other_store.id, first_name="Al", last_name="Ex")
        with pytest.raises(UnauthorizedError):
            fulfillment_service.fulfill_purchase_intent(intent.id, outsider.id)

    def test_unknown_intent_not_found(self, db_session, staff):
        with pytest.raises(NotFoundError):
            fulfillment_service.fulfill_purchase_intent(99999, staff.id)


class TestCancelPurchaseIntent:

    def test_cancel_releases_reservation(self, db_session, intent, store, product):
        cancelled = fulfillment_service.cancel_purchase_intent(intent.id)

        assert cancelled.status == PurchaseIntentStatus.CANCELLED
        assert cancelled.cancelled_at is not None
        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_reserved == 0
        assert record.quantity_on_hand == 10

    def test_cancelled_intent_cannot_be_fulfilled(self, db_session, intent, staff):
        fulfillment_service.cancel_purchase_intent(intent.id)

        with pytest.raises(ConflictError):
            fulfillment_service.fulfill_purchase_intent(intent.id, staff.id)
        with pytest.raises(ConflictError):
            fulfillment_service.cancel_purchase_intent(intent.id)


class TestLookups:

    def test_by_verify_slug(self, db_session, intent):
        assert fulfillment_service.get_by_verify_slug(intent.verify_slug).id == intent.id
        with pytest.raises(NotFoundError):
            fulfillment_service.get_by_verify_slug("missing")

    def test_list_by_status(self, db_session, intent, store):
        assert len(fulfillment_service.list_purchase_intents(store.id, status="pending")) == 1
        assert fulfillment_service.list_purchase_intents(store.id, status="fulfilled") == []
