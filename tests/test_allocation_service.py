from datetime import date
from decimal import Decimal

import pytest

from consumables.constants import CENTRAL_STORE, FACULTY, TX_ALLOCATION, TX_TRANSFER
from consumables.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    StockValidationError,
    UnitOfWorkTimeoutError,
)
from consumables.models import LiveStock, OutOfStockEntry, StockTransaction
from consumables.services import allocation_service, item_kinds, stock_store


def _central(name="Acetone"):
    return list(
        LiveStock.objects.filter(display_name=name, location=CENTRAL_STORE).order_by(
            *stock_store.FIFO_ORDER
        )
    )


@pytest.mark.django_db
def test_fifo_allocation_consumes_earliest_expiry_first(acetone_lots):
    first, second = acetone_lots

    result = allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 15}], actor="alice"
    )

    assert result.ok
    line = result.lines[0]
    assert line.status == allocation_service.LINE_ALLOCATED
    assert line.allocated_quantity == Decimal("15")
    assert [m["from_lot"] for m in line.movements] == [first.lot_id, second.lot_id]

    # The emptied lot is gone and the survivor takes the bare name.
    assert not LiveStock.objects.filter(pk=first.lot_id).exists()
    remaining = _central()
    assert [(lot.lot_id, lot.internal_name, lot.quantity) for lot in remaining] == [
        (second.lot_id, "Acetone", Decimal("5"))
    ]

    lab = LiveStock.objects.get(location="LAB01", display_name="Acetone")
    assert lab.quantity == Decimal("15")
    assert lab.is_allocated
    assert lab.internal_name == "Acetone"


@pytest.mark.django_db
def test_allocation_writes_one_ledger_row_per_lot(acetone_lots):
    first, second = acetone_lots

    allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 15}], actor="alice"
    )

    rows = list(StockTransaction.objects.order_by("transaction_id"))
    assert [(r.lot_ref, r.quantity) for r in rows] == [
        (first.lot_id, Decimal("10")),
        (second.lot_id, Decimal("5")),
    ]
    assert {r.transaction_type for r in rows} == {TX_ALLOCATION}
    assert {r.created_by for r in rows} == {"alice"}
    lab = LiveStock.objects.get(location="LAB01")
    assert {r.dest_lot_ref for r in rows} == {lab.lot_id}


@pytest.mark.django_db
def test_insufficient_stock_rolls_back_and_reports_zero(lot_factory):
    lot = lot_factory(display_name="Ethanol", quantity=50)

    result = allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Ethanol", "quantity": 100}]
    )

    assert not result.ok
    assert result.status == "failed"
    line = result.lines[0]
    assert line.status == allocation_service.LINE_FAILED
    assert line.allocated_quantity == Decimal("0")
    assert line.fulfillable_quantity == Decimal("50")
    assert line.reason == allocation_service.REASON_INSUFFICIENT_PARTIAL
    lot.refresh_from_db()
    assert lot.quantity == Decimal("50")
    assert not LiveStock.objects.filter(location="LAB01").exists()
    assert not StockTransaction.objects.exists()


@pytest.mark.django_db
def test_one_failing_line_rolls_back_the_whole_batch(lot_factory):
    acetone = lot_factory(display_name="Acetone", quantity=10)
    lot_factory(display_name="Ethanol", quantity=1)

    result = allocation_service.allocate(
        CENTRAL_STORE,
        "LAB01",
        [{"name": "Acetone", "quantity": 10}, {"name": "Ethanol", "quantity": 5}],
    )

    assert not result.ok
    statuses = [line.status for line in result.lines]
    assert statuses == [
        allocation_service.LINE_ROLLED_BACK,
        allocation_service.LINE_FAILED,
    ]
    assert result.lines[0].fulfillable_quantity == Decimal("10")
    assert all(line.allocated_quantity == 0 for line in result.lines)
    acetone.refresh_from_db()
    assert acetone.quantity == Decimal("10")
    assert not OutOfStockEntry.objects.exists()
    assert not StockTransaction.objects.exists()


@pytest.mark.django_db
def test_lines_after_a_failed_line_are_rolled_back_too(lot_factory):
    acetone = lot_factory(display_name="Acetone", quantity=10)
    ethanol = lot_factory(display_name="Ethanol", quantity=1)
    hexane = lot_factory(display_name="Hexane", quantity=5)

    result = allocation_service.allocate(
        CENTRAL_STORE,
        "LAB01",
        [
            {"name": "Acetone", "quantity": 4},
            {"name": "Ethanol", "quantity": 5},
            {"name": "Hexane", "quantity": 2},
        ],
    )

    assert [line.status for line in result.lines] == [
        allocation_service.LINE_ROLLED_BACK,
        allocation_service.LINE_FAILED,
        allocation_service.LINE_ROLLED_BACK,
    ]
    assert result.lines[2].fulfillable_quantity == Decimal("2")
    for lot, quantity in ((acetone, 10), (ethanol, 1), (hexane, 5)):
        lot.refresh_from_db()
        assert lot.quantity == Decimal(quantity)
    assert not LiveStock.objects.filter(location="LAB01").exists()
    assert not StockTransaction.objects.exists()


@pytest.mark.django_db
def test_missing_item_reports_plain_insufficient_stock():
    result = allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Unobtainium", "quantity": 1}]
    )
    assert result.lines[0].reason == allocation_service.REASON_INSUFFICIENT
    assert result.lines[0].fulfillable_quantity == 0


@pytest.mark.django_db
def test_sequential_requests_never_overdraw_a_lot(lot_factory):
    lot = lot_factory(quantity=10)

    first = allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 8}]
    )
    second = allocation_service.allocate(
        CENTRAL_STORE, "LAB02", [{"name": "Acetone", "quantity": 8}]
    )

    assert first.ok
    assert not second.ok
    assert second.lines[0].reason == allocation_service.REASON_INSUFFICIENT_PARTIAL
    assert second.lines[0].fulfillable_quantity == Decimal("2")
    lot.refresh_from_db()
    assert lot.quantity == Decimal("2")
    lab_total = sum(LiveStock.objects.filter(is_allocated=True).values_list("quantity", flat=True))
    assert lab_total == Decimal("8")


@pytest.mark.django_db
def test_lost_guarded_decrement_marks_batch_retryable(lot_factory, monkeypatch):
    lot = lot_factory(quantity=10)
    lot_factory(display_name="Ethanol", quantity=10)
    monkeypatch.setattr(stock_store, "guarded_decrement", lambda lot_id, quantity: False)

    result = allocation_service.allocate(
        CENTRAL_STORE,
        "LAB01",
        [{"name": "Acetone", "quantity": 8}, {"name": "Ethanol", "quantity": 1}],
    )

    assert not result.ok
    assert result.retryable
    assert result.lines[0].reason == allocation_service.REASON_CONFLICT
    assert result.lines[1].status == allocation_service.LINE_NOT_ATTEMPTED
    lot.refresh_from_db()
    assert lot.quantity == Decimal("10")


@pytest.mark.django_db
def test_writer_drawing_down_the_lot_mid_allocation_cannot_overdraw(lot_factory, monkeypatch):
    lot = lot_factory(quantity=10)
    racer = []
    seen = []
    real_lookup = item_kinds.BulkItemKind.lookup_lots
    real_decrement = stock_store.guarded_decrement

    def lookup_then_race(self, display_name, variant, location):
        lots = real_lookup(self, display_name, variant, location)
        if not racer:
            racer.append(None)
            racer[0] = allocation_service.allocate(
                CENTRAL_STORE, "LAB02", [{"name": "Acetone", "quantity": 8}], actor="bob"
            )
        return lots

    def observed_decrement(lot_id, quantity):
        applied = real_decrement(lot_id, quantity)
        seen.append((applied, LiveStock.objects.get(pk=lot_id).quantity))
        return applied

    monkeypatch.setattr(item_kinds.BulkItemKind, "lookup_lots", lookup_then_race)
    monkeypatch.setattr(stock_store, "guarded_decrement", observed_decrement)

    result = allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 8}], actor="alice"
    )

    assert racer[0].ok
    assert not result.ok
    assert result.retryable
    assert result.lines[0].reason == allocation_service.REASON_CONFLICT
    # The second decrement saw the lot already at 2 and refused.
    assert seen == [(True, Decimal("2")), (False, Decimal("2"))]
    assert all(quantity >= 0 for _, quantity in seen)
    moved = sum(r.lines[0].allocated_quantity for r in (racer[0], result) if r.ok)
    assert moved <= Decimal("10")
    lot.refresh_from_db()
    assert lot.quantity >= 0


@pytest.mark.django_db
def test_repeat_allocation_tops_up_the_lab_record(lot_factory):
    lot_factory(quantity=10)

    allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 3}])
    allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 4}])

    lab_lots = LiveStock.objects.filter(location="LAB01")
    assert lab_lots.count() == 1
    assert lab_lots.get().quantity == Decimal("7")


@pytest.mark.django_db
def test_lab_to_lab_transfer_keeps_empty_lab_lot(lot_factory):
    lot_factory(quantity=5)
    allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 5}])

    result = allocation_service.allocate(
        "LAB01", "LAB02", [{"name": "Acetone", "quantity": 5}]
    )

    assert result.ok
    source = LiveStock.objects.get(location="LAB01")
    assert source.quantity == 0
    assert LiveStock.objects.get(location="LAB02").quantity == Decimal("5")
    assert StockTransaction.objects.filter(transaction_type=TX_TRANSFER).count() == 1


@pytest.mark.django_db
def test_central_depletion_registers_out_of_stock(lot_factory):
    lot_factory(display_name="Toluene", quantity=4, unit="l")

    allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Toluene", "quantity": 4}])

    assert not _central("Toluene")
    entry = OutOfStockEntry.objects.get(display_name="Toluene")
    assert entry.unit == "l"


@pytest.mark.parametrize(
    "source,destination",
    [
        (CENTRAL_STORE, CENTRAL_STORE),
        ("LAB01", "LAB01"),
        (CENTRAL_STORE, "nowhere"),
        ("nowhere", "LAB01"),
        ("", "LAB01"),
    ],
)
@pytest.mark.django_db
def test_invalid_locations_are_rejected(source, destination):
    with pytest.raises(StockValidationError):
        allocation_service.allocate(source, destination, [{"name": "Acetone", "quantity": 1}])


@pytest.mark.django_db
def test_empty_batch_is_rejected():
    with pytest.raises(StockValidationError):
        allocation_service.allocate(CENTRAL_STORE, "LAB01", [])


@pytest.mark.django_db
def test_malformed_line_fails_without_touching_stock(lot_factory):
    lot = lot_factory(quantity=10)

    result = allocation_service.allocate(
        CENTRAL_STORE,
        "LAB01",
        [{"name": "Acetone", "quantity": 2}, {"name": "Acetone", "quantity": "lots"}],
    )

    assert not result.ok
    assert result.lines[1].status == allocation_service.LINE_FAILED
    assert "Invalid quantity" in result.lines[1].reason
    lot.refresh_from_db()
    assert lot.quantity == Decimal("10")


@pytest.mark.django_db
def test_issue_to_faculty_creates_no_destination_lot(lot_factory):
    lot_factory(quantity=10)
    allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 6}])

    result = allocation_service.allocate(
        "LAB01", FACULTY, [{"name": "Acetone", "quantity": 2}]
    )

    assert result.ok
    assert result.lines[0].movements[0]["to_lot"] is None
    assert LiveStock.objects.get(location="LAB01").quantity == Decimal("4")


@pytest.mark.django_db
def test_overrunning_the_deadline_rolls_back(lot_factory):
    lot = lot_factory(quantity=10)

    with pytest.raises(UnitOfWorkTimeoutError):
        allocation_service.allocate(
            CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 2}], timeout=0
        )

    lot.refresh_from_db()
    assert lot.quantity == Decimal("10")


def test_movement_type():
    assert allocation_service.movement_type(CENTRAL_STORE, "LAB01") == TX_ALLOCATION
    assert allocation_service.movement_type("LAB01", "LAB02") == TX_TRANSFER
    assert allocation_service.movement_type("LAB01", FACULTY) == "issue"


def test_result_as_dict_stringifies_quantities():
    line = allocation_service.LineResult(
        name="Acetone",
        category="chemical",
        variant="",
        requested_quantity=Decimal("1.5"),
        allocated_quantity=Decimal("1.5"),
        movements=[{"from_lot": 1, "to_lot": 2, "quantity": Decimal("1.5")}],
    )
    data = allocation_service.AllocationResult(
        source=CENTRAL_STORE, destination="LAB01", status="success", lines=[line]
    ).as_dict()
    assert data["lines"][0]["requested_quantity"] == "1.5"
    assert data["lines"][0]["movements"][0]["quantity"] == "1.5"
    assert data["retryable"] is False


@pytest.mark.django_db
def test_raise_for_status_reports_the_short_line(lot_factory):
    lot_factory(quantity=4)

    result = allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 6}]
    )

    with pytest.raises(InsufficientStockError) as excinfo:
        result.raise_for_status()
    assert excinfo.value.requested == Decimal("6")
    assert excinfo.value.available == Decimal("4")
    assert excinfo.value.details["lines"][0]["status"] == allocation_service.LINE_FAILED


@pytest.mark.django_db
def test_raise_for_status_per_failure_kind(lot_factory, monkeypatch):
    lot_factory(quantity=10)

    ok = allocation_service.allocate(CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 1}])
    assert ok.raise_for_status() is None

    malformed = allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": -1}]
    )
    with pytest.raises(StockValidationError):
        malformed.raise_for_status()

    monkeypatch.setattr(stock_store, "guarded_decrement", lambda lot_id, quantity: False)
    conflicted = allocation_service.allocate(
        CENTRAL_STORE, "LAB01", [{"name": "Acetone", "quantity": 1}]
    )
    with pytest.raises(ConcurrencyConflictError):
        conflicted.raise_for_status()
