# Overview: Pytest coverage for wholesale receiving and box-to-unit conversion.

import pytest

from qrdisplay.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from qrdisplay.models import IncomingOrderStatus, LedgerEntry, LedgerEntryType
from qrdisplay.models.products import PRODUCT_TYPE_WHOLESALE_BOX
from qrdisplay.services import ledger_service, receive_service
from qrdisplay.services.receive_service import WholesaleLine
from qrdisplay.services.store_service import create_product


class TestReceiveWholesale:

    def test_received_order_moves_incoming_to_on_hand(self, db_session, stock, store, product):
        order = receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=50, shopify_order_number="1001"
        )

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 10
        assert record.quantity_incoming == 50
        assert record.verification_token == order.verification_token
        assert record.pending_order_id == order.id

        received = receive_service.receive_wholesale(order.id)

        assert received.status == IncomingOrderStatus.RECEIVED
        assert received.quantity_received == 50
        assert received.received_at is not None

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 60
        assert record.quantity_incoming == 0
        assert record.verification_token is None
        assert record.pending_order_id is None
        assert record.last_restocked is not None

        entry = db_session.query(LedgerEntry).filter_by(incoming_order_id=order.id).one()
        assert entry.entry_type == LedgerEntryType.WHOLESALE_RECEIVED
        assert entry.quantity_delta == 50
        assert entry.balance_after == 60
        assert ledger_service.verify_ledger(store.id, product.sku).ok

    def test_second_receive_conflicts_and_changes_nothing(self, db_session, stock, store, product):
        order = receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=50
        )
        receive_service.receive_wholesale(order.id)

        with pytest.raises(ConflictError):
            receive_service.receive_wholesale(order.id)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 60
        assert db_session.query(LedgerEntry).filter_by(incoming_order_id=order.id).count() == 1

    def test_first_order_opens_stock_record_at_zero(self, db_session, store, product):
        order = receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=12
        )

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.id == order.stock_record_id
        assert record.quantity_on_hand == 0
        assert record.quantity_incoming == 12
        assert db_session.query(LedgerEntry).count() == 0

    def test_token_points_at_latest_still_pending_order(self, db_session, stock, store, product):
        first = receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=5
        )
        second = receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=7
        )

        receive_service.receive_wholesale(first.id)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 15
        assert record.quantity_incoming == 7
        assert record.pending_order_id == second.id
        assert record.verification_token == second.verification_token

    def test_unknown_order_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            receive_service.receive_wholesale(99999)

    def test_foreign_org_cannot_receive(self, db_session, stock, store, product, other_org):
        order = receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=3
        )
        with pytest.raises(UnauthorizedError):
            receive_service.receive_wholesale(order.id, acting_org_id=other_org.id)

        assert receive_service.get_incoming_order(order.id).status == IncomingOrderStatus.PENDING

    @pytest.mark.parametrize("quantity", [0, -5, 2.5, False])
    def test_invalid_order_quantity_rejected(self, db_session, store, product, quantity):
        with pytest.raises(ValidationError):
            receive_service.create_incoming_order(
                store_id=store.id, product_sku=product.sku, quantity_ordered=quantity
            )


class TestReceiveByToken:

    @pytest.fixture
    def second_product(self, db_session, org):
        return create_product(org_id=org.id, sku="VD-MG-4", name="Mango 4mg")

    def test_receives_every_order_of_the_shipment(self, db_session, stock, store, product, second_product):
        token = receive_service.new_verification_token()
        receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=20, verification_token=token
        )
        receive_service.create_incoming_order(
            store_id=store.id, product_sku=second_product.sku, quantity_ordered=30, verification_token=token
        )

        receipt = receive_service.receive_by_token(token)

        assert len(receipt.orders) == 2
        assert receipt.units_received == 50
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_on_hand == 30
        assert ledger_service.get_stock_record(store.id, second_product.sku).quantity_on_hand == 30

    def test_reused_token_conflicts(self, db_session, stock, store, product):
        order = receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=4
        )
        receive_service.receive_by_token(order.verification_token)

        with pytest.raises(ConflictError):
            receive_service.receive_by_token(order.verification_token)

        assert ledger_service.get_stock_record(store.id, product.sku).quantity_on_hand == 14

    def test_unknown_token_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            receive_service.receive_by_token("not-a-real-token")

    def test_overlong_token_rejected_when_order_is_created(self, db_session, stock, store, product):
        token = "T" * (receive_service.TOKEN_MAX_LENGTH + 1)

        with pytest.raises(ValidationError, match="verification_token exceeds max length"):
            receive_service.create_incoming_order(
                store_id=store.id, product_sku=product.sku, quantity_ordered=5, verification_token=token
            )

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_incoming == 0
        assert receive_service.list_incoming_orders(store.id)[1] == 0

    def test_token_at_max_length_can_be_received(self, db_session, stock, store, product):
        token = "T" * receive_service.TOKEN_MAX_LENGTH
        receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=5, verification_token=token
        )

        receipt = receive_service.receive_by_token(token)

        assert receipt.units_received == 5
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_on_hand == 15


class TestListIncomingOrders:

    def test_filter_by_status(self, db_session, stock, store, product):
        first = receive_service.create_incoming_order(
            store_id=store.id, product_sku=product.sku, quantity_ordered=1
        )
        receive_service.create_incoming_order(store_id=store.id, product_sku=product.sku, quantity_ordered=2)
        receive_service.receive_wholesale(first.id)

        pending, total = receive_service.list_incoming_orders(store.id, status="pending")
        assert total == 1
        assert pending[0].quantity_ordered == 2

        _, total = receive_service.list_incoming_orders(store.id)
        assert total == 2

    def test_unknown_status_rejected(self, db_session, store):
        with pytest.raises(ValidationError):
            receive_service.list_incoming_orders(store.id, status="lost")


class TestWholesaleConversion:

    def test_boxes_convert_to_retail_units(self, db_session, org):
        create_product(org_id=org.id, sku="VD-SB-30", name="Strawberry Banana 30mg")
        create_product(
            org_id=org.id,
            sku="VD-SB-30-BX",
            name="Strawberry Banana 30mg (box of 10)",
            product_type=PRODUCT_TYPE_WHOLESALE_BOX,
            units_per_box=10,
        )

        result = receive_service.convert_wholesale_lines(org.id, [WholesaleLine("VD-SB-30-BX", 3)])

        assert result.success
        assert len(result.updates) == 1
        update = result.updates[0]
        assert update.retail_sku == "VD-SB-30"
        assert update.units_to_add == 30
        assert update.units_per_box == 10

    def test_unconvertible_lines_reported(self, db_session, org):
        create_product(
            org_id=org.id,
            sku="VD-GR-4-BX",
            name="Grape box without retail product",
            product_type=PRODUCT_TYPE_WHOLESALE_BOX,
            units_per_box=12,
        )

        result = receive_service.convert_wholesale_lines(org.id, [
            WholesaleLine("VD-SB-30", 1),
            WholesaleLine("MISSING-BX", 1),
            WholesaleLine("VD-GR-4-BX", 1),
        ])

        assert not result.success
        assert result.updates == []
        assert len(result.errors) == 3

    def test_sku_helpers(self):
        assert receive_service.retail_sku_from_wholesale("VD-SB-30-BX") == "VD-SB-30"
        assert receive_service.retail_sku_from_wholesale("VD-SB-30") is None
        assert receive_service.wholesale_sku_from_retail("VD-SB-30") == "VD-SB-30-BX"
