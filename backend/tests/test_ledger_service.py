# Overview: Pytest coverage for the stock ledger engine.

"""
Stock Ledger Tests

Prove the ledger invariants hold after every operation:
1. on_hand, reserved, incoming never go negative and reserved <= on_hand
2. every snapshot change appends exactly one entry with the next sequence
3. replaying quantity_delta reproduces balance_after and on_hand
4. rejected operations change nothing (no clamping, no partial writes)
"""

import pytest

from qrdisplay.errors import ConflictError, NotFoundError, StorageError, UnauthorizedError, ValidationError
from qrdisplay.models import LedgerEntry, LedgerEntryType, StockRecord
from qrdisplay.services import ledger_service
from qrdisplay.services.commands import AdjustCommand, ReleaseCommand, ReserveCommand


def _entries(db_session, store_id, sku):
    return (
        db_session.query(LedgerEntry)
        .filter_by(store_id=store_id, product_sku=sku)
        .order_by(LedgerEntry.sequence.asc())
        .all()
    )


class TestOpenStockRecord:

    def test_initial_quantity_is_booked_as_adjustment(self, db_session, store, product):
        record = ledger_service.open_stock_record(store.id, product.sku, initial_quantity=10)

        assert record.quantity_on_hand == 10
        assert record.quantity_reserved == 0
        assert record.quantity_incoming == 0

        entries = _entries(db_session, store.id, product.sku)
        assert len(entries) == 1
        assert entries[0].sequence == 1
        assert entries[0].entry_type == LedgerEntryType.ADJUSTMENT
        assert entries[0].quantity_delta == 10
        assert entries[0].balance_after == 10

    def test_zero_initial_quantity_writes_no_entry(self, db_session, store, product):
        ledger_service.open_stock_record(store.id, product.sku)
        assert _entries(db_session, store.id, product.sku) == []

    def test_duplicate_record_conflicts(self, db_session, stock, store, product):
        with pytest.raises(ConflictError):
            ledger_service.open_stock_record(store.id, product.sku)

    def test_unknown_product_not_found(self, db_session, store):
        with pytest.raises(NotFoundError):
            ledger_service.open_stock_record(store.id, "NOPE-1")

    def test_unknown_store_not_found(self, db_session, product):
        with pytest.raises(NotFoundError):
            ledger_service.open_stock_record(99999, product.sku)

    def test_negative_initial_quantity_rejected(self, db_session, store, product):
        with pytest.raises(ValidationError):
            ledger_service.open_stock_record(store.id, product.sku, initial_quantity=-1)


class TestReserveRelease:

    def test_reserve_moves_available_not_on_hand(self, db_session, stock, store, product):
        entry = ledger_service.reserve(store.id, product.sku, 3)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 10
        assert record.quantity_reserved == 3
        assert record.quantity_available == 7

        assert entry.entry_type == LedgerEntryType.RESERVATION
        assert entry.quantity_delta == 0
        assert entry.reserved_delta == 3
        assert entry.balance_after == 10
        assert entry.sequence == 2

    def test_reserve_more_than_available_changes_nothing(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 8)

        with pytest.raises(ValidationError):
            ledger_service.reserve(store.id, product.sku, 3)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_reserved == 8
        assert len(_entries(db_session, store.id, product.sku)) == 2

    def test_release_returns_units_to_available(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 4)
        entry = ledger_service.release(store.id, product.sku, 3)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_reserved == 1
        assert record.quantity_available == 9
        assert entry.entry_type == LedgerEntryType.RELEASE
        assert entry.reserved_delta == -3
        assert entry.quantity_delta == 0

    def test_release_more_than_reserved_rejected(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 2)
        with pytest.raises(ValidationError):
            ledger_service.release(store.id, product.sku, 3)

        assert ledger_service.get_stock_record(store.id, product.sku).quantity_reserved == 2

    def test_reserve_without_stock_record_not_found(self, db_session, store, product):
        with pytest.raises(NotFoundError):
            ledger_service.reserve(store.id, product.sku, 1)

    @pytest.mark.parametrize("quantity", [0, -2, True, 1.5, "2.0", "1e3", None])
    def test_reserve_rejects_non_positive_or_non_integer(self, db_session, stock, store, product, quantity):
        with pytest.raises(ValidationError):
            ledger_service.reserve(store.id, product.sku, quantity)

    def test_reserve_accepts_integer_string(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, "2")
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_reserved == 2


class TestConsumeAndSamples:

    def test_consume_drops_on_hand_and_reserved(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 3)
        entry = ledger_service.consume_on_fulfillment(store.id, product.sku, 2)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 8
        assert record.quantity_reserved == 1
        assert entry.entry_type == LedgerEntryType.PURCHASE_FULFILLED
        assert entry.quantity_delta == -2
        assert entry.reserved_delta == -2
        assert entry.balance_after == 8

    def test_consume_more_than_reserved_rejected(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 1)
        with pytest.raises(ValidationError):
            ledger_service.consume_on_fulfillment(store.id, product.sku, 2)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 10
        assert record.quantity_reserved == 1

    def test_sample_comes_out_of_available(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 9)
        entry = ledger_service.redeem_sample(store.id, product.sku)

        assert entry.entry_type == LedgerEntryType.SAMPLE_REDEEMED
        assert entry.quantity_delta == -1
        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 9
        assert record.quantity_available == 0

        with pytest.raises(ValidationError):
            ledger_service.redeem_sample(store.id, product.sku)


class TestAdjust:

    def test_positive_and_negative_adjustments(self, db_session, stock, store, product):
        ledger_service.adjust(store.id, product.sku, 5, "Recount found a box")
        entry = ledger_service.adjust(store.id, product.sku, -3, "Damaged")

        assert entry.balance_after == 12
        assert entry.notes == "Damaged"
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_on_hand == 12

    def test_adjust_below_zero_rejected(self, db_session, stock, store, product):
        with pytest.raises(ValidationError):
            ledger_service.adjust(store.id, product.sku, -11, "Shrink")
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_on_hand == 10

    def test_adjust_below_reserved_rejected(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 6)
        with pytest.raises(ValidationError):
            ledger_service.adjust(store.id, product.sku, -5, "Shrink")

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 10
        assert record.quantity_reserved == 6

    def test_adjust_requires_reason_and_non_zero_delta(self, db_session, stock, store, product):
        with pytest.raises(ValidationError):
            ledger_service.adjust(store.id, product.sku, 2, "   ")
        with pytest.raises(ValidationError):
            ledger_service.adjust(store.id, product.sku, 0, "Nothing")

    def test_adjust_foreign_store_unauthorized(self, db_session, stock, store, product, other_org):
        with pytest.raises(UnauthorizedError):
            ledger_service.adjust(store.id, product.sku, 1, "Found", acting_org_id=other_org.id)
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_on_hand == 10

    def test_set_on_hand_books_the_difference(self, db_session, stock, store, product):
        entry = ledger_service.set_on_hand(store.id, product.sku, 4)

        assert entry.quantity_delta == -6
        assert entry.balance_after == 4
        assert ledger_service.set_on_hand(store.id, product.sku, 4) is None


class TestApplyCommand:

    def test_dispatches_each_command(self, db_session, stock, store, product):
        ledger_service.apply_command(ReserveCommand(store.id, product.sku, 4))
        ledger_service.apply_command(ReleaseCommand(store.id, product.sku, 1))
        entry = ledger_service.apply_command(AdjustCommand(store.id, product.sku, 2, "Return to shelf"))

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_on_hand == 12
        assert record.quantity_reserved == 3
        assert entry.sequence == 4

    def test_unknown_command_rejected(self, db_session, stock):
        with pytest.raises(ValidationError):
            ledger_service.apply_command({"quantity": 1})


class TestLedgerReplay:

    def test_sequence_is_gap_free_and_replay_matches(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 3)
        ledger_service.consume_on_fulfillment(store.id, product.sku, 2)
        ledger_service.redeem_sample(store.id, product.sku)
        ledger_service.adjust(store.id, product.sku, 4, "Recount")
        ledger_service.release(store.id, product.sku, 1)

        entries = _entries(db_session, store.id, product.sku)
        assert [e.sequence for e in entries] == [1, 2, 3, 4, 5, 6]

        balance = 0
        for e in entries:
            balance += e.quantity_delta
            assert e.balance_after == balance

        result = ledger_service.verify_ledger(store.id, product.sku)
        assert result.ok, result.mismatches
        assert result.on_hand == 11
        assert result.reserved == 0
        assert result.entry_count == 6

    def test_verify_reports_tampered_snapshot(self, db_session, stock, store, product):
        db_session.execute(
            StockRecord.__table__.update()
            .where(StockRecord.store_id == store.id)
            .values(quantity_on_hand=99)
        )
        db_session.commit()
        db_session.expire_all()

        result = ledger_service.verify_ledger(store.id, product.sku)
        assert not result.ok
        assert result.replayed_on_hand == 10
        assert any("on hand 99" in m for m in result.mismatches)

    def test_ledger_entries_are_immutable(self, db_session, stock, store, product):
        entry = _entries(db_session, store.id, product.sku)[0]
        entry.notes = "rewritten"
        with pytest.raises(ValueError):
            db_session.flush()
        db_session.rollback()

        entry = _entries(db_session, store.id, product.sku)[0]
        db_session.delete(entry)
        with pytest.raises(ValueError):
            db_session.flush()
        db_session.rollback()


class TestConcurrentWriters:
    """
    A second writer on the same (store, SKU) key is simulated in-session:
    the loaded snapshot goes stale, or the next sequence number is taken.
    Either way the operation fails as StorageError and writes nothing.
    """

    def test_stale_snapshot_version_rolls_back(self, db_session, stock, store, product):
        loaded_version = stock.version_id
        db_session.execute(
            StockRecord.__table__.update()
            .where(StockRecord.id == stock.id)
            .values(version_id=StockRecord.__table__.c.version_id + 1)
        )

        with pytest.raises(StorageError):
            ledger_service.reserve(store.id, product.sku, 2)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.version_id == loaded_version
        assert record.quantity_on_hand == 10
        assert record.quantity_reserved == 0
        assert len(_entries(db_session, store.id, product.sku)) == 1

    def test_taken_sequence_rolls_back(self, db_session, stock, store, product, monkeypatch):
        monkeypatch.setattr(ledger_service, "_next_sequence", lambda store_id, product_sku: 1)

        with pytest.raises(StorageError):
            ledger_service.reserve(store.id, product.sku, 2)

        record = ledger_service.get_stock_record(store.id, product.sku)
        assert record.quantity_reserved == 0
        assert [e.sequence for e in _entries(db_session, store.id, product.sku)] == [1]
        monkeypatch.undo()
        assert ledger_service.verify_ledger(store.id, product.sku).ok

    def test_writes_after_a_failed_writer_continue_the_sequence(self, db_session, stock, store, product, monkeypatch):
        with monkeypatch.context() as patched:
            patched.setattr(ledger_service, "_next_sequence", lambda store_id, product_sku: 1)
            with pytest.raises(StorageError):
                ledger_service.reserve(store.id, product.sku, 1)

        entry = ledger_service.reserve(store.id, product.sku, 1)

        assert entry.sequence == 2
        assert ledger_service.get_stock_record(store.id, product.sku).quantity_reserved == 1


class TestLedgerHistory:

    def test_newest_first_with_total(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 1)
        ledger_service.reserve(store.id, product.sku, 1)
        ledger_service.adjust(store.id, product.sku, 1, "Found")

        rows, total = ledger_service.list_ledger_entries(store.id, product.sku, limit=2)
        assert total == 4
        assert [r.sequence for r in rows] == [4, 3]

        rows, _ = ledger_service.list_ledger_entries(store.id, product.sku, limit=2, offset=2)
        assert [r.sequence for r in rows] == [2, 1]

    def test_filter_by_entry_type(self, db_session, stock, store, product):
        ledger_service.reserve(store.id, product.sku, 1)
        rows, total = ledger_service.list_ledger_entries(store.id, entry_type="reservation")
        assert total == 1
        assert rows[0].entry_type == LedgerEntryType.RESERVATION

    def test_unknown_entry_type_rejected(self, db_session, stock, store):
        with pytest.raises(ValidationError):
            ledger_service.list_ledger_entries(store.id, entry_type="teleported")
