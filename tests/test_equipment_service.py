import uuid

import pytest

from consumables.constants import CATEGORY_EQUIPMENT, CENTRAL_STORE, FACULTY, TX_RETURN
from consumables.exceptions import (
    InvalidTransitionError,
    StockNotFoundError,
    StockValidationError,
)
from consumables.models import EquipmentUnit, OutOfStockEntry, StockTransaction
from consumables.services import (
    allocation_service,
    equipment_service,
    ledger_service,
    stock_queries,
)


@pytest.fixture
def centrifuges(receive):
    _, units = receive(
        display_name="Centrifuge", quantity=2, unit="nos", category=CATEGORY_EQUIPMENT
    )
    return list(EquipmentUnit.objects.filter(name="Centrifuge").order_by("unit_id"))


@pytest.mark.django_db
def test_scan_moves_one_unit_to_a_lab(centrifuges):
    unit = centrifuges[0]

    moved = equipment_service.allocate_equipment_unit(unit.item_tag, "LAB02", actor="admin")

    assert (moved.location, moved.status, moved.assigned_to) == ("LAB02", "Issued", "")
    tx = StockTransaction.objects.filter(to_location="LAB02").get()
    assert tx.transaction_type == "allocation"
    assert not OutOfStockEntry.objects.exists()


@pytest.mark.django_db
def test_last_available_unit_registers_out_of_stock(centrifuges):
    for unit in centrifuges:
        equipment_service.allocate_equipment_unit(unit.item_tag, "LAB01")

    entry = OutOfStockEntry.objects.get()
    assert (entry.display_name, entry.category) == ("Centrifuge", CATEGORY_EQUIPMENT)


@pytest.mark.django_db
def test_issued_unit_cannot_be_scanned_again(centrifuges):
    unit = centrifuges[0]
    equipment_service.allocate_equipment_unit(unit.item_tag, "LAB01")

    with pytest.raises(StockValidationError):
        equipment_service.allocate_equipment_unit(unit.item_tag, "LAB01")
    with pytest.raises(InvalidTransitionError):
        equipment_service.allocate_equipment_unit(unit.item_tag, "LAB02")


@pytest.mark.django_db
def test_unknown_tag():
    with pytest.raises(StockNotFoundError):
        equipment_service.get_unit(uuid.uuid4())


@pytest.mark.django_db
def test_return_brings_the_unit_back(centrifuges):
    for unit in centrifuges:
        equipment_service.allocate_equipment_unit(unit.item_tag, "LAB01")

    returned = equipment_service.return_equipment_unit(centrifuges[0].item_tag, actor="lab1")

    assert (returned.location, returned.status) == (CENTRAL_STORE, "Available")
    assert not OutOfStockEntry.objects.exists()
    assert StockTransaction.objects.filter(transaction_type=TX_RETURN).count() == 1
    with pytest.raises(InvalidTransitionError):
        equipment_service.return_equipment_unit(centrifuges[0].item_tag)


@pytest.mark.django_db
def test_batch_allocation_of_equipment_takes_oldest_units(centrifuges):
    result = allocation_service.allocate(
        CENTRAL_STORE,
        "LAB03",
        [{"name": "Centrifuge", "quantity": 1, "category": CATEGORY_EQUIPMENT}],
    )

    assert result.ok
    first = EquipmentUnit.objects.get(pk=centrifuges[0].unit_id)
    assert first.location == "LAB03"
    assert EquipmentUnit.objects.get(pk=centrifuges[1].unit_id).location == CENTRAL_STORE


@pytest.mark.django_db
def test_fractional_equipment_line_fails(centrifuges):
    result = allocation_service.allocate(
        CENTRAL_STORE,
        "LAB03",
        [{"name": "Centrifuge", "quantity": "0.5", "category": CATEGORY_EQUIPMENT}],
    )
    assert not result.ok
    assert "whole units" in result.lines[0].reason


@pytest.mark.django_db
def test_live_stock_counts_units_per_location(centrifuges):
    equipment_service.allocate_equipment_unit(centrifuges[0].item_tag, "LAB01")

    central = stock_queries.get_live_stock(CENTRAL_STORE, CATEGORY_EQUIPMENT)
    lab = stock_queries.get_live_stock("LAB01", CATEGORY_EQUIPMENT)

    assert [(row["display_name"], row["quantity"]) for row in central] == [("Centrifuge", "1")]
    assert [(row["display_name"], row["quantity"]) for row in lab] == [("Centrifuge", "1")]


@pytest.mark.django_db
def test_ledger_rows_name_the_unit_that_moved(centrifuges):
    first, second = centrifuges

    result = allocation_service.allocate(
        CENTRAL_STORE,
        "LAB01",
        [{"name": "Centrifuge", "quantity": 1, "category": CATEGORY_EQUIPMENT}],
    )
    equipment_service.allocate_equipment_unit(second.item_tag, "LAB02")
    equipment_service.return_equipment_unit(second.item_tag)

    assert result.lines[0].movements[0]["item_tag"] == first.item_tag
    assert result.as_dict()["lines"][0]["movements"][0]["item_tag"] == str(first.item_tag)
    batch_row = StockTransaction.objects.get(to_location="LAB01")
    assert batch_row.item_tag == first.item_tag
    history = ledger_service.get_transactions(item_tag=second.item_tag)
    assert [row.transaction_type for row in history.order_by("transaction_id")] == [
        "allocation",
        TX_RETURN,
    ]


@pytest.mark.django_db
def test_faculty_issue_assigns_the_recipient(centrifuges):
    allocation_service.allocate(
        CENTRAL_STORE,
        "LAB01",
        [{"name": "Centrifuge", "quantity": 1, "category": CATEGORY_EQUIPMENT}],
    )
    line = {"name": "Centrifuge", "quantity": 1, "category": CATEGORY_EQUIPMENT}

    unnamed = allocation_service.allocate("LAB01", FACULTY, [line], actor="lab1")
    assert not unnamed.ok
    assert "recipient" in unnamed.lines[0].reason

    issued = allocation_service.allocate(
        "LAB01", FACULTY, [line], actor="lab1", recipient="dr.rao"
    )
    assert issued.ok
    unit = EquipmentUnit.objects.get(pk=centrifuges[0].unit_id)
    assert (unit.location, unit.assigned_to) == (FACULTY, "dr.rao")
    assert StockTransaction.objects.get(to_location=FACULTY).item_tag == unit.item_tag


@pytest.mark.django_db
def test_scan_straight_to_faculty_needs_a_recipient(centrifuges):
    unit = centrifuges[0]

    with pytest.raises(StockValidationError):
        equipment_service.allocate_equipment_unit(unit.item_tag, FACULTY, actor="admin")

    moved = equipment_service.allocate_equipment_unit(
        unit.item_tag, FACULTY, actor="admin", recipient="dr.rao"
    )
    assert moved.assigned_to == "dr.rao"
