from decimal import Decimal

import pytest

from consumables.constants import CENTRAL_STORE, TX_ALLOCATION, TX_ENTRY
from consumables.exceptions import StockIntegrityError, StockNotFoundError
from consumables.models import LiveStock, StockTransaction
from consumables.services import allocation_service, ledger_service


def _record(**kwargs):
    params = {
        "item_name": "Acetone",
        "category": "chemical",
        "transaction_type": TX_ENTRY,
        "quantity": Decimal("1"),
    }
    params.update(kwargs)
    return ledger_service.record_transaction(**params)


@pytest.mark.django_db
def test_ledger_rows_cannot_be_edited():
    tx = _record()
    tx.quantity = Decimal("99")
    with pytest.raises(StockIntegrityError):
        tx.save()
    assert StockTransaction.objects.get().quantity == Decimal("1")


@pytest.mark.django_db
def test_ledger_rows_cannot_be_deleted():
    tx = _record()
    with pytest.raises(StockIntegrityError):
        tx.delete()
    with pytest.raises(StockIntegrityError):
        StockTransaction.objects.all().delete()
    with pytest.raises(StockIntegrityError):
        StockTransaction.objects.filter(pk=tx.pk).update(quantity=5)
    assert StockTransaction.objects.count() == 1


@pytest.mark.django_db
def test_get_transactions_filters():
    _record(lot_ref=1, from_location="vendor", to_location=CENTRAL_STORE)
    _record(
        lot_ref=1,
        dest_lot_ref=2,
        transaction_type=TX_ALLOCATION,
        from_location=CENTRAL_STORE,
        to_location="LAB01",
    )
    _record(item_name="Ethanol", category="chemical", lot_ref=3)

    assert ledger_service.get_transactions(lot_ref=1).count() == 2
    assert ledger_service.get_transactions(lot_ref=2).count() == 1
    assert ledger_service.get_transactions(location="LAB01").count() == 1
    assert ledger_service.get_transactions(transaction_type=TX_ALLOCATION).count() == 1
    assert ledger_service.get_transactions(item_name="eth").count() == 1
    assert len(ledger_service.get_transactions(limit=2)) == 2


@pytest.mark.django_db
def test_lot_history_replays_to_the_current_balance(receive):
    _, lot = receive(quantity=10)
    receive(quantity=5)
    allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 4}])

    history = ledger_service.get_lot_history(lot.lot_id)

    assert [row["change"] for row in history] == [Decimal("10"), Decimal("5"), Decimal("-4")]
    assert [row["balance"] for row in history] == [Decimal("10"), Decimal("15"), Decimal("11")]


@pytest.mark.django_db
def test_lab_lot_history_counts_incoming_allocations(lot_factory):
    lot_factory(quantity=10)
    allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 3}])
    allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 2}])
    lab = LiveStock.objects.get(location="LAB01")

    history = ledger_service.get_lot_history(lab.lot_id)

    assert [row["balance"] for row in history] == [Decimal("3"), Decimal("5")]


@pytest.mark.django_db
def test_lot_history_for_unknown_lot():
    with pytest.raises(StockNotFoundError):
        ledger_service.get_lot_history(404)
