import threading

from sqlalchemy import select

from stockroom.app.db.models.core_types import AdjustmentKind, OrderStatus
from stockroom.app.db.models.models_v1 import StockAdjustment
from stockroom.services import inventory, procurement


def test_apply_credits_ledger_once(db_session, make_ledger_entry, make_order, tracking):
    """
    GIVEN
    - ARM-100 with 50 on hand
    - a delivered order of 20 x ARM-100, no tracking number

    THEN
    - first apply: applied, ARM-100 == 70, one RECEIPT adjustment linked to the order
    - second apply: applied=false, ARM-100 still 70
    """
    # ---------- ARRANGE ----------
    make_ledger_entry("ARM-100", quantity=50)
    order = make_order(items=[("ARM-100", 20)], status=OrderStatus.delivered)

    # ---------- ACT ----------
    first = procurement.apply_to_inventory(db_session, order.id, tracking)
    db_session.commit()
    second = procurement.apply_to_inventory(db_session, order.id, tracking)
    db_session.commit()

    # ---------- ASSERT ----------
    assert first.applied is True
    assert [(i.sku, i.quantity) for i in first.applied_items] == [("ARM-100", 20)]
    assert first.skipped_skus == []

    assert second.applied is False
    assert second.message == procurement.MSG_ALREADY_APPLIED

    assert inventory.get_entry(db_session, "ARM-100").quantity == 70
    assert procurement.get_order(db_session, order.id).inventory_applied_at is not None

    receipt = db_session.execute(select(StockAdjustment)).scalars().one()
    assert receipt.kind == AdjustmentKind.receipt
    assert receipt.delta == 20
    assert receipt.manufacturer_order_id == order.id


def test_apply_refused_while_tracking_unconfirmed(db_session, make_ledger_entry, make_order, tracking):
    """
    GIVEN
    - stored status delivered, but a tracking number and no carrier status

    THEN
    - display status is "ordered": nothing applied, ledger untouched
    """
    make_ledger_entry("ARM-100", quantity=50)
    order = make_order(status=OrderStatus.delivered, tracking_number="BOL-77", carrier="Freight")

    result = procurement.apply_to_inventory(db_session, order.id, tracking)
    db_session.commit()

    assert result.applied is False
    assert result.message.startswith(procurement.MSG_NOT_RECEIVED)
    assert inventory.get_entry(db_session, "ARM-100").quantity == 50
    assert procurement.get_order(db_session, order.id).inventory_applied_at is None


def test_carrier_delivered_overrides_stored_shipped(db_session, make_ledger_entry, make_order, stub_tracking):
    make_ledger_entry("ARM-100", quantity=50)
    order = make_order(status=OrderStatus.shipped, tracking_number="7946", carrier="FedEx")
    tracking = stub_tracking({"7946": "delivered"})

    result = procurement.apply_to_inventory(db_session, order.id, tracking)
    db_session.commit()

    assert result.applied is True
    assert inventory.get_entry(db_session, "ARM-100").quantity == 70

    refreshed = procurement.get_order(db_session, order.id)
    assert refreshed.status == OrderStatus.delivered
    assert refreshed.actual_delivery is not None


def test_tracking_outage_does_not_apply(db_session, make_ledger_entry, make_order, stub_tracking):
    make_ledger_entry("ARM-100", quantity=50)
    order = make_order(status=OrderStatus.delivered, tracking_number="7946", carrier="FedEx")

    result = procurement.apply_to_inventory(db_session, order.id, stub_tracking(fail=True))

    assert result.applied is False
    assert inventory.get_entry(db_session, "ARM-100").quantity == 50


def test_cancelled_order_is_never_applied(db_session, make_ledger_entry, make_order, stub_tracking):
    make_ledger_entry("ARM-100", quantity=50)
    order = make_order(status=OrderStatus.cancelled, tracking_number="7946", carrier="FedEx")

    result = procurement.apply_to_inventory(db_session, order.id, stub_tracking({"7946": "delivered"}))

    assert result.applied is False
    assert inventory.get_entry(db_session, "ARM-100").quantity == 50


def test_unknown_skus_are_skipped_and_reported(db_session, make_ledger_entry, make_order, tracking):
    make_ledger_entry("ARM-100", quantity=50)
    order = make_order(items=[("ARM-100", 20), ("GHOST-9", 5)])

    result = procurement.apply_to_inventory(db_session, order.id, tracking)
    db_session.commit()

    assert result.applied is True
    assert [i.sku for i in result.applied_items] == ["ARM-100"]
    assert result.skipped_skus == ["GHOST-9"]
    assert inventory.get_entry(db_session, "ARM-100").quantity == 70


def test_concurrent_apply_credits_once(session_factory, make_ledger_entry, make_order, tracking):
    """
    GIVEN
    - two workers applying the same delivered order at the same time

    THEN
    - exactly one reports applied=true
    - ARM-100 goes 50 -> 70, not 90
    """
    make_ledger_entry("ARM-100", quantity=50)
    order_id = make_order(items=[("ARM-100", 20)]).id

    workers = 2
    barrier = threading.Barrier(workers)
    results, errors = [], []

    def work():
        db = session_factory()
        try:
            barrier.wait()
            res = procurement.apply_to_inventory(db, order_id, tracking)
            if res.applied:
                db.commit()
            else:
                db.rollback()
            results.append(res.applied)
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
    assert sorted(results) == [False, True]

    db = session_factory()
    try:
        assert inventory.get_entry(db, "ARM-100").quantity == 70
        assert len(db.execute(select(StockAdjustment)).all()) == 1
    finally:
        db.close()


def test_apply_order_without_items_is_refused(db_session, make_order, tracking):
    """
    GIVEN
    - a delivered order with no line items

    THEN
    - applied=false, "No order items found."
    - the order is not claimed and keeps its status
    """
    order = make_order(items=[], status=OrderStatus.delivered)

    result = procurement.apply_to_inventory(db_session, order.id, tracking)
    db_session.commit()

    assert result.applied is False
    assert result.message == procurement.MSG_NO_ITEMS

    stored = procurement.get_order(db_session, order.id)
    assert stored.inventory_applied_at is None
    assert stored.status == OrderStatus.delivered
    assert db_session.execute(select(StockAdjustment)).first() is None
