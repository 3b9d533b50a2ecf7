import threading

import pytest
from sqlalchemy import select

from stockroom.app.db.models.core_types import AdjustmentKind, AlertKind, AlertSeverity
from stockroom.app.db.models.models_v1 import StockAdjustment, StockLedgerEntry
from stockroom.services import inventory
from stockroom.services.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)


def test_adjust_applies_signed_delta_and_records_it(db_session, make_ledger_entry):
    """
    GIVEN
    - ARM-100 with 50 on hand

    THEN
    - +20 then -5 leaves 65
    - one adjustment row per call, quantity_after matches
    """
    make_ledger_entry("ARM-100", quantity=50)

    inventory.adjust(db_session, "ARM-100", 20, reason="recount")
    entry = inventory.adjust(db_session, "ARM-100", -5)
    db_session.commit()

    assert entry.quantity == 65

    rows = db_session.execute(
        select(StockAdjustment).where(StockAdjustment.sku == "ARM-100").order_by(StockAdjustment.id)
    ).scalars().all()
    assert [(r.delta, r.quantity_after) for r in rows] == [(20, 70), (-5, 65)]
    assert rows[0].kind == AdjustmentKind.adjustment
    assert rows[0].reason == "recount"


def test_adjust_unknown_sku_is_not_found_and_creates_nothing(db_session):
    with pytest.raises(NotFoundError):
        inventory.adjust(db_session, "NOPE-1", 3)
    db_session.rollback()

    assert db_session.get(StockLedgerEntry, "NOPE-1") is None
    assert db_session.execute(select(StockAdjustment)).first() is None


@pytest.mark.parametrize("delta", [1.5, "3", True, None])
def test_adjust_rejects_non_integer_delta(db_session, make_ledger_entry, delta):
    make_ledger_entry("ARM-100", quantity=5)

    with pytest.raises(ValidationError):
        inventory.adjust(db_session, "ARM-100", delta)

    assert inventory.get_entry(db_session, "ARM-100").quantity == 5


def test_negative_stock_allowed_by_default(db_session, make_ledger_entry):
    make_ledger_entry("ARM-100", quantity=2)

    entry = inventory.adjust(db_session, "ARM-100", -5, allow_negative=True)
    db_session.commit()

    assert entry.quantity == -3


def test_negative_stock_refused_when_disabled(db_session, make_ledger_entry):
    """
    GIVEN
    - 2 on hand, negative stock disabled

    THEN
    - -5 is refused, quantity untouched, no audit row
    - -2 (down to exactly 0) is accepted
    """
    make_ledger_entry("ARM-100", quantity=2)

    with pytest.raises(InsufficientStockError) as exc:
        inventory.adjust(db_session, "ARM-100", -5, allow_negative=False)
    db_session.rollback()

    assert exc.value.quantity == 2
    assert inventory.get_entry(db_session, "ARM-100").quantity == 2
    assert db_session.execute(select(StockAdjustment)).first() is None

    entry = inventory.adjust(db_session, "ARM-100", -2, allow_negative=False)
    db_session.commit()
    assert entry.quantity == 0


def test_receipt_onto_negative_row_when_negatives_disabled(db_session, make_ledger_entry):
    """
    GIVEN
    - ARM-100 already at -30 (left over from before the policy was switched off)
    - negative stock disabled

    THEN
    - +20 is accepted and lands on -10
    - a further -1 is still refused
    """
    make_ledger_entry("ARM-100", quantity=-30)

    entry = inventory.adjust(db_session, "ARM-100", 20, allow_negative=False)
    db_session.commit()
    assert entry.quantity == -10

    with pytest.raises(InsufficientStockError):
        inventory.adjust(db_session, "ARM-100", -1, allow_negative=False)
    db_session.rollback()
    assert inventory.get_entry(db_session, "ARM-100").quantity == -10


def test_register_negative_quantity_follows_policy(db_session):
    with pytest.raises(ValidationError):
        inventory.register(db_session, sku="ARM-100", name="Armadillo Stand", quantity=-30, allow_negative=False)
    db_session.rollback()
    assert db_session.get(StockLedgerEntry, "ARM-100") is None

    entry = inventory.register(db_session, sku="ARM-100", name="Armadillo Stand", quantity=-30, allow_negative=True)
    db_session.commit()
    assert entry.quantity == -30


def test_idempotency_key_applies_once(db_session, make_ledger_entry):
    make_ledger_entry("ARM-100", quantity=10)

    inventory.adjust(db_session, "ARM-100", 4, idempotency_key="req-1")
    db_session.commit()
    replay = inventory.adjust(db_session, "ARM-100", 4, idempotency_key="req-1")
    db_session.commit()

    assert replay.quantity == 14
    count = db_session.execute(select(StockAdjustment).where(StockAdjustment.sku == "ARM-100")).all()
    assert len(count) == 1


def test_idempotency_key_reused_on_other_sku_conflicts(db_session, make_ledger_entry):
    make_ledger_entry("ARM-100", quantity=10)
    make_ledger_entry("LEG-200", quantity=10)

    inventory.adjust(db_session, "ARM-100", 1, idempotency_key="req-2")
    db_session.commit()

    with pytest.raises(ConflictError):
        inventory.adjust(db_session, "LEG-200", 1, idempotency_key="req-2")


def test_concurrent_adjustments_are_additive(session_factory, make_ledger_entry):
    """
    GIVEN
    - 8 workers, each with its own session, each committing 5 adjustments
      of mixed sign on the same SKU, all released at once

    THEN
    - final quantity == initial + sum of every delta (no lost update)
    """
    make_ledger_entry("ARM-100", quantity=100)

    workers = 8
    deltas = [3, -1, 7, -2, 1]
    barrier = threading.Barrier(workers)
    errors = []

    def work():
        db = session_factory()
        try:
            barrier.wait()
            for d in deltas:
                inventory.adjust(db, "ARM-100", d, allow_negative=True)
                db.commit()
        except Exception as e:
            db.rollback()
            errors.append(e)
        finally:
            db.close()

    threads = [threading.Thread(target=work) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []

    db = session_factory()
    try:
        assert inventory.get_entry(db, "ARM-100").quantity == 100 + workers * sum(deltas)
        audit = db.execute(select(StockAdjustment).where(StockAdjustment.sku == "ARM-100")).all()
        assert len(audit) == workers * len(deltas)
    finally:
        db.close()


def test_overwrite_sets_absolute_count_and_audits_delta(db_session, make_ledger_entry):
    make_ledger_entry("ARM-100", quantity=50)

    entry = inventory.overwrite(db_session, "ARM-100", 42, reason="stock take")
    db_session.commit()

    assert entry.quantity == 42
    row = db_session.execute(select(StockAdjustment)).scalars().one()
    assert row.kind == AdjustmentKind.overwrite
    assert row.delta == -8
    assert row.quantity_after == 42


def test_overwrite_unknown_sku_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        inventory.overwrite(db_session, "NOPE-1", 1)


def test_register_rejects_duplicate_sku(db_session):
    inventory.register(db_session, sku="ARM-100", name="Armadillo Stand", quantity=3)
    db_session.commit()

    with pytest.raises(ConflictError):
        inventory.register(db_session, sku="ARM-100", name="Again")


def test_register_requires_sku(db_session):
    with pytest.raises(ValidationError):
        inventory.register(db_session, sku="   ", name="Blank")


def test_low_stock_report_classifies_entries(db_session, make_ledger_entry):
    """
    GIVEN
    - OUT at 0, NEG at -2, LOW at 3 (min 5), EDGE at 5 (min 5), OK at 20 (min 5)

    THEN
    - OUT and NEG are out_of_stock/critical
    - LOW and EDGE are low_stock/warning
    - OK is not reported
    """
    make_ledger_entry("OUT", quantity=0, min_stock=5)
    make_ledger_entry("NEG", quantity=-2, min_stock=0)
    make_ledger_entry("LOW", quantity=3, min_stock=5)
    make_ledger_entry("EDGE", quantity=5, min_stock=5)
    make_ledger_entry("OK", quantity=20, min_stock=5)

    alerts = {a.sku: a for a in inventory.low_stock_report(db_session)}

    assert set(alerts) == {"OUT", "NEG", "LOW", "EDGE"}
    assert (alerts["OUT"].kind, alerts["OUT"].severity) == (AlertKind.out_of_stock, AlertSeverity.critical)
    assert alerts["NEG"].kind == AlertKind.out_of_stock
    assert (alerts["LOW"].kind, alerts["LOW"].severity) == (AlertKind.low_stock, AlertSeverity.warning)
    assert alerts["EDGE"].kind == AlertKind.low_stock
