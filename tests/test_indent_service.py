from datetime import date
from decimal import Decimal

import pytest

from consumables.constants import CENTRAL_STORE, TX_PURCHASE
from consumables.exceptions import InvalidTransitionError, StockValidationError
from consumables.models import Indent, IndentLine, LiveStock, StockTransaction
from consumables.services import indent_service


def _lines(*items):
    return [
        {"item_name": name, "quantity": quantity, "unit": "ml", "price_per_unit": "2.50"}
        for name, quantity in items
    ]


@pytest.mark.django_db
def test_lab_indent_starts_pending_with_total():
    indent = indent_service.create_lab_indent(
        "LAB01", _lines(("Acetone", 4), ("Ethanol", 2)), actor="lab1"
    )

    assert indent.status == "pending"
    assert indent.creator_role == "lab_assistant"
    assert indent.total_price == Decimal("15.00")
    assert indent.lines.count() == 2


@pytest.mark.django_db
def test_lab_indent_validation():
    with pytest.raises(StockValidationError):
        indent_service.create_lab_indent("LAB99", _lines(("Acetone", 1)), actor="lab1")
    with pytest.raises(StockValidationError):
        indent_service.create_lab_indent("LAB01", [], actor="lab1")
    with pytest.raises(StockValidationError):
        indent_service.create_lab_indent("LAB01", _lines(("Acetone", 0)), actor="lab1")


@pytest.mark.django_db
def test_allocating_an_indent_moves_every_line(lot_factory):
    lot_factory(display_name="Acetone", quantity=10)
    lot_factory(display_name="Ethanol", quantity=10)
    indent = indent_service.create_lab_indent(
        "LAB01", _lines(("Acetone", 4), ("Ethanol", 2)), actor="lab1"
    )

    indent, results = indent_service.process_lab_indent(indent.pk, "allocated", "admin")

    assert indent.status == "allocated"
    assert all(result.ok for result in results)
    assert set(indent.lines.values_list("is_allocated", flat=True)) == {True}
    assert StockTransaction.objects.filter(related_indent=indent).count() == 2
    assert LiveStock.objects.get(location="LAB01", display_name="Ethanol").quantity == 2


@pytest.mark.django_db
def test_short_line_leaves_indent_partially_fulfilled(lot_factory):
    lot_factory(display_name="Acetone", quantity=10)
    indent = indent_service.create_lab_indent(
        "LAB01", _lines(("Acetone", 4), ("Ethanol", 2)), actor="lab1"
    )

    indent, results = indent_service.process_lab_indent(indent.pk, "allocated", "admin")

    assert indent.status == "partially_fulfilled"
    assert [result.ok for result in results] == [True, False]
    ethanol = IndentLine.objects.get(indent=indent, item_name="Ethanol")
    assert not ethanol.is_allocated

    lot_factory(display_name="Ethanol", quantity=5)
    indent, results = indent_service.fulfill_remaining_indent(indent.pk, "admin")

    assert indent.status == "allocated"
    assert len(results) == 1
    assert LiveStock.objects.get(location="LAB01", display_name="Acetone").quantity == 4


@pytest.mark.django_db
def test_indent_transitions_are_enforced():
    indent = indent_service.create_lab_indent("LAB01", _lines(("Acetone", 1)), actor="lab1")

    indent, _ = indent_service.process_lab_indent(indent.pk, "rejected", "admin")

    assert indent.status == "rejected"
    with pytest.raises(InvalidTransitionError):
        indent_service.process_lab_indent(indent.pk, "allocated", "admin")
    with pytest.raises(InvalidTransitionError):
        indent_service.fulfill_remaining_indent(indent.pk, "admin")


@pytest.mark.django_db
def test_reviewed_indent_can_still_be_allocated(lot_factory):
    lot_factory(quantity=10)
    indent = indent_service.create_lab_indent("LAB01", _lines(("Acetone", 1)), actor="lab1")

    indent_service.process_lab_indent(indent.pk, "reviewed", "admin")
    indent, _ = indent_service.process_lab_indent(indent.pk, "allocated", "admin")

    assert indent.status == "allocated"


@pytest.mark.django_db
def test_draft_quotation_lifecycle():
    draft = indent_service.create_draft("central", vendor_name="Sigma")
    assert draft.status == "draft"

    with pytest.raises(StockValidationError):
        indent_service.submit_draft(draft.pk, "central")

    indent_service.add_lines_to_draft(draft.pk, _lines(("Acetone", 2)))
    submitted = indent_service.submit_draft(draft.pk, "central")

    assert submitted.status == "pending"
    assert submitted.total_price == Decimal("5.00")
    with pytest.raises(InvalidTransitionError):
        indent_service.add_lines_to_draft(draft.pk, _lines(("Ethanol", 1)))


@pytest.mark.django_db
def test_purchased_quotation_receives_stock():
    draft = indent_service.create_draft(
        "central",
        vendor_name="Sigma",
        lines=[
            {
                "item_name": "Acetone",
                "quantity": 3,
                "unit": "l",
                "price_per_unit": "10",
                "expiry_date": date(2026, 1, 1),
            }
        ],
    )
    indent_service.submit_draft(draft.pk, "central")
    indent_service.process_central_indent(draft.pk, "approved", "central")

    indent = indent_service.process_central_indent(draft.pk, "purchased", "central")

    assert indent.status == "purchased"
    lot = LiveStock.objects.get(location=CENTRAL_STORE, display_name="Acetone")
    assert lot.quantity == Decimal("3")
    assert lot.master.vendor == "Sigma"
    assert lot.expiry_date == date(2026, 1, 1)
    tx = StockTransaction.objects.get()
    assert tx.transaction_type == TX_PURCHASE
    assert tx.related_indent_id == indent.pk
    assert indent.lines.get().is_allocated


@pytest.mark.django_db
def test_central_and_lab_processing_do_not_mix():
    lab_indent = indent_service.create_lab_indent("LAB01", _lines(("Acetone", 1)), actor="lab1")
    draft = indent_service.create_draft("central", lines=_lines(("Acetone", 1)))

    with pytest.raises(InvalidTransitionError):
        indent_service.process_central_indent(lab_indent.pk, "approved", "central")
    with pytest.raises(InvalidTransitionError):
        indent_service.process_lab_indent(draft.pk, "allocated", "central")


@pytest.mark.django_db
def test_comments_and_remarks():
    indent = indent_service.create_lab_indent(
        "LAB01", _lines(("Acetone", 1), ("Ethanol", 1)), actor="lab1"
    )
    first, second = indent.lines.order_by("id")

    comment = indent_service.add_comment(indent.pk, "  Urgent please ", "lab1", "lab_assistant")
    assert comment.text == "Urgent please"
    with pytest.raises(StockValidationError):
        indent_service.add_comment(indent.pk, "   ", "lab1")

    assert indent_service.update_line_remarks(indent.pk, {first.pk: "Check stock"}) == 1
    assert indent_service.apply_standard_remark(indent.pk, "Approved as requested") == 1
    first.refresh_from_db()
    second.refresh_from_db()
    assert first.remarks == "Check stock"
    assert second.remarks == "Approved as requested"


@pytest.mark.django_db
def test_line_taken_by_another_approval_moves_only_once(lot_factory, monkeypatch):
    lot_factory(quantity=10)
    indent = indent_service.create_lab_indent("LAB01", _lines(("Acetone", 4)), actor="lab1")
    real_allocate_line = indent_service._allocate_indent_line
    outcomes = []

    def other_approval_first(indent, line, actor):
        # Another approver moves and marks the same line just before us.
        outcomes.append(real_allocate_line(indent, line, "admin2"))
        outcomes.append(real_allocate_line(indent, line, actor))
        return outcomes[-1]

    monkeypatch.setattr(indent_service, "_allocate_indent_line", other_approval_first)

    indent, results = indent_service.process_lab_indent(indent.pk, "allocated", "admin")

    assert outcomes[0].ok
    assert outcomes[1] is None
    assert results == []
    assert indent.status == "allocated"
    assert LiveStock.objects.get(location="LAB01").quantity == Decimal("4")
    assert LiveStock.objects.get(location=CENTRAL_STORE).quantity == Decimal("6")
    assert StockTransaction.objects.filter(related_indent=indent).count() == 1
    assert StockTransaction.objects.get().created_by == "admin2"
    assert indent.lines.get().allocated_quantity == Decimal("4")


@pytest.mark.django_db
def test_transition_refuses_a_status_changed_underneath():
    indent = indent_service.create_lab_indent("LAB01", _lines(("Acetone", 1)), actor="lab1")
    stale = indent_service.get_indent(indent.pk)
    Indent.objects.filter(pk=indent.pk).update(status="rejected")

    with pytest.raises(InvalidTransitionError):
        indent_service._transition(stale, "reviewed", "admin")

    assert Indent.objects.get(pk=indent.pk).status == "rejected"


@pytest.mark.django_db
def test_second_allocation_of_an_allocated_indent_is_refused(lot_factory):
    lot_factory(quantity=10)
    indent = indent_service.create_lab_indent("LAB01", _lines(("Acetone", 4)), actor="lab1")
    indent_service.process_lab_indent(indent.pk, "allocated", "admin")

    with pytest.raises(InvalidTransitionError):
        indent_service.process_lab_indent(indent.pk, "allocated", "admin2")

    assert LiveStock.objects.get(location="LAB01").quantity == Decimal("4")
    assert StockTransaction.objects.count() == 1
