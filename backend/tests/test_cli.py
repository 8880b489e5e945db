# Overview: Pytest coverage for the ledger, display and hold CLI commands.

from datetime import timedelta

from qrdisplay.models import ProductHold, StockRecord
from qrdisplay.services import hold_service, ledger_service
from qrdisplay.time_utils import utcnow


class TestLedgerVerifyCommand:

    def test_matching_ledger_prints_pass(self, app, db_session, stock, store, product):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['ledger', 'verify', '--store-id', str(store.id)])

        assert result.exit_code == 0, result.output
        assert f"PASS {product.sku}: on_hand=10 reserved=0 entries=1" in result.output
        assert "DONE 1 stock record(s) verified." in result.output

    def test_tampered_snapshot_prints_fail(self, app, db_session, stock, store, product):
        db_session.execute(
            StockRecord.__table__.update()
            .where(StockRecord.store_id == store.id)
            .values(quantity_on_hand=99)
        )
        db_session.commit()
        store_id, sku = store.id, product.sku

        runner = app.test_cli_runner()
        result = runner.invoke(args=['ledger', 'verify', '--store-id', str(store_id), '--sku', sku])

        assert result.exit_code == 1
        assert f"FAIL {sku}:" in result.output
        assert "on hand 99 != replayed 10" in result.output

    def test_unknown_store_is_an_error(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['ledger', 'verify', '--store-id', '99999'])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestDisplaysCommands:

    def test_create_then_list(self, app, db_session, org):
        runner = app.test_cli_runner()
        org_id = org.id

        result = runner.invoke(args=['displays', 'create', '--owner-org-id', str(org_id), '--count', '2'])
        assert result.exit_code == 0, result.output
        assert "PASS Created 2 display(s)" in result.output

        result = runner.invoke(args=['displays', 'list', '--status', 'inventory'])
        assert result.exit_code == 0, result.output
        assert result.output.count("inventory") == 2


class TestHoldsCommands:

    def test_expire_releases_due_holds(self, app, db_session, stock, customer, store, product):
        hold = hold_service.create_hold(customer_id=customer.id, store_id=store.id, product_sku=product.sku)
        hold_id, store_id, sku = hold.id, store.id, product.sku
        db_session.execute(
            ProductHold.__table__.update()
            .where(ProductHold.__table__.c.id == hold_id)
            .values(expires_at=utcnow() - timedelta(minutes=5))
        )
        db_session.commit()

        runner = app.test_cli_runner()
        result = runner.invoke(args=['holds', 'expire', '--store-id', str(store_id)])

        assert result.exit_code == 0, result.output
        assert f"PASS Expired hold {hold_id}" in result.output
        assert "DONE 1 hold(s) expired." in result.output

        db_session.expire_all()
        assert ledger_service.get_stock_record(store_id, sku).quantity_reserved == 0
