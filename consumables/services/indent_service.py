"""Indent and quotation workflow.

Lab assistants raise indents that start ``pending`` and are allocated from
the central store. Central admins draft quotations to vendors that end up
``purchased``, which receives the goods as fresh stock.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from ..constants import (
    CATEGORY_CHEMICAL,
    CENTRAL_STORE,
    INDENT_ALLOCATED,
    INDENT_APPROVED,
    INDENT_DRAFT,
    INDENT_PARTIALLY_FULFILLED,
    INDENT_PENDING,
    INDENT_PURCHASED,
    INDENT_PURCHASING,
    INDENT_REJECTED,
    INDENT_REVIEWED,
    INDENT_TRANSITIONS,
    KIND_INDENT,
    KIND_QUOTATION,
    LAB_IDS,
    ROLE_CENTRAL_ADMIN,
    ROLE_LAB_ASSISTANT,
    TX_PURCHASE,
)
from ..exceptions import InvalidTransitionError, StockNotFoundError, StockValidationError
from ..models import Indent, IndentComment, IndentLine
from . import stock_store
from .allocation_service import AllocationResult, allocate
from .batch_naming import display_name_for
from .intake_service import intake_many

logger = logging.getLogger(__name__)


def get_indent(indent_id: int, for_update: bool = False) -> Indent:
    qs = Indent.objects.all()
    if for_update:
        qs = qs.select_for_update()
    indent = qs.filter(pk=indent_id).first()
    if indent is None:
        raise StockNotFoundError(f"Indent {indent_id} not found.")
    return indent


def _transition(indent: Indent, status: str, actor: str) -> None:
    """Move ``indent`` to ``status`` only if its stored status is still the one we read."""

    allowed = INDENT_TRANSITIONS.get(indent.status, set())
    if status not in allowed:
        raise InvalidTransitionError(
            f"{indent.kind.title()} {indent.pk} cannot go from {indent.status} to {status}.",
            details={"from": indent.status, "to": status},
        )
    updated = Indent.objects.filter(pk=indent.pk, status=indent.status).update(
        status=status, processed_by=actor or "", updated_at=timezone.now()
    )
    if not updated:
        raise InvalidTransitionError(
            f"{indent.kind.title()} {indent.pk} was processed by someone else.",
            details={"from": indent.status, "to": status},
        )
    logger.info("%s %s: %s -> %s by %s", indent.kind, indent.pk, indent.status, status, actor)
    indent.refresh_from_db(fields=["status", "processed_by", "updated_at"])


def _build_lines(indent: Indent, lines: Iterable[Dict[str, Any]]) -> List[IndentLine]:
    built = []
    for raw in lines:
        name = display_name_for(str(raw.get("item_name") or raw.get("name") or ""))
        if not name:
            raise StockValidationError("Each line needs an item name.")
        quantity = stock_store.to_quantity(raw.get("quantity", 0))
        if quantity <= 0:
            raise StockValidationError(f"Quantity for '{name}' must be greater than zero.")
        if not raw.get("unit"):
            raise StockValidationError(f"Unit for '{name}' is required.")
        price = raw.get("price_per_unit")
        built.append(
            IndentLine(
                indent=indent,
                category=raw.get("category") or CATEGORY_CHEMICAL,
                item_name=name,
                variant=raw.get("variant") or "",
                quantity=quantity,
                unit=raw["unit"],
                price_per_unit=None if price in (None, "") else Decimal(str(price)),
                remarks=raw.get("remarks") or "",
                expiry_date=raw.get("expiry_date"),
            )
        )
    return IndentLine.objects.bulk_create(built)


def create_lab_indent(
    lab_id: str, lines: List[Dict[str, Any]], actor: str, kind: str = KIND_INDENT
) -> Indent:
    """Raise an indent from a lab; it starts out pending."""

    if lab_id not in LAB_IDS:
        raise StockValidationError(f"Unknown lab: {lab_id!r}")
    if not lines:
        raise StockValidationError("An indent needs at least one line.")
    with transaction.atomic():
        indent = Indent.objects.create(
            kind=kind,
            created_by=actor,
            creator_role=ROLE_LAB_ASSISTANT,
            lab_id=lab_id,
            status=INDENT_PENDING,
        )
        _build_lines(indent, lines)
        indent.recompute_total()
        indent.save(update_fields=["total_price"])
    logger.info("Indent %s raised by %s for %s", indent.pk, actor, lab_id)
    return indent


def create_draft(
    actor: str,
    vendor_name: Optional[str] = None,
    lines: Optional[List[Dict[str, Any]]] = None,
    kind: str = KIND_QUOTATION,
) -> Indent:
    """Start an editable central quotation."""

    with transaction.atomic():
        indent = Indent.objects.create(
            kind=kind,
            created_by=actor,
            creator_role=ROLE_CENTRAL_ADMIN,
            vendor_name=vendor_name,
            status=INDENT_DRAFT,
        )
        if lines:
            _build_lines(indent, lines)
            indent.recompute_total()
            indent.save(update_fields=["total_price"])
    return indent


def add_lines_to_draft(indent_id: int, lines: List[Dict[str, Any]]) -> Indent:
    with transaction.atomic():
        indent = get_indent(indent_id, for_update=True)
        if indent.status != INDENT_DRAFT:
            raise InvalidTransitionError("Lines can only be added to drafts.")
        _build_lines(indent, lines)
        indent.recompute_total()
        indent.save(update_fields=["total_price", "updated_at"])
    return indent


def submit_draft(indent_id: int, actor: str) -> Indent:
    with transaction.atomic():
        indent = get_indent(indent_id, for_update=True)
        if indent.status != INDENT_DRAFT:
            raise InvalidTransitionError("Only drafts can be submitted.")
        if not indent.lines.exists():
            raise StockValidationError("Add at least one line before submitting.")
        _transition(indent, INDENT_PENDING, actor)
    return indent


def add_comment(indent_id: int, text: str, author: str, role: str = "") -> IndentComment:
    if not (text or "").strip():
        raise StockValidationError("Comment text is required.")
    indent = get_indent(indent_id)
    return IndentComment.objects.create(
        indent=indent, text=text.strip(), author=author, role=role or ""
    )


def update_line_remarks(indent_id: int, remarks: Dict[int, str]) -> int:
    """Set remarks on specific lines; returns how many lines changed."""

    indent = get_indent(indent_id)
    updated = 0
    with transaction.atomic():
        for line_id, text in remarks.items():
            updated += IndentLine.objects.filter(indent=indent, pk=line_id).update(
                remarks=text or ""
            )
    return updated


def apply_standard_remark(indent_id: int, remark: str) -> int:
    """Fill every blank remark with ``remark``."""

    indent = get_indent(indent_id)
    return IndentLine.objects.filter(indent=indent).filter(
        Q(remarks="") | Q(remarks__isnull=True)
    ).update(remarks=remark)


class _LineTaken(Exception):
    """The line was marked allocated by another approval; undo this move."""


def _allocate_indent_line(
    indent: Indent, line: IndentLine, actor: str
) -> Optional[AllocationResult]:
    """Move one line and mark it in the same savepoint.

    Returns ``None`` when another approval marked the line first; the move
    made here is rolled back so the line's stock moves once.
    """

    try:
        with transaction.atomic():
            result = allocate(
                CENTRAL_STORE,
                indent.lab_id,
                [
                    {
                        "name": line.item_name,
                        "quantity": line.quantity,
                        "category": line.category,
                        "variant": line.variant,
                    }
                ],
                actor=actor,
                related_indent=indent,
            )
            if result.ok and not IndentLine.objects.filter(
                pk=line.pk, is_allocated=False
            ).update(is_allocated=True, allocated_quantity=line.quantity):
                raise _LineTaken()
    except _LineTaken:
        logger.warning("Line %s of indent %s was already allocated; skipped", line.pk, indent.pk)
        return None
    return result


def _allocate_open_lines(indent: Indent, actor: str) -> List[AllocationResult]:
    """Allocate each unallocated line on its own; failures do not undo others."""

    results = []
    for line in list(indent.lines.filter(is_allocated=False)):
        result = _allocate_indent_line(indent, line, actor)
        if result is not None:
            results.append(result)
    return results


def _settle_allocation(indent: Indent, actor: str) -> Tuple[Indent, List[AllocationResult]]:
    results = _allocate_open_lines(indent, actor)
    status = (
        INDENT_ALLOCATED
        if not indent.lines.filter(is_allocated=False).exists()
        else INDENT_PARTIALLY_FULFILLED
    )
    _transition(indent, status, actor)
    return indent, results


def process_lab_indent(
    indent_id: int, status: str, actor: str
) -> Tuple[Indent, List[AllocationResult]]:
    """Review, reject or allocate a pending lab indent.

    ``allocated`` runs the allocation engine once per line. The indent ends
    up ``allocated`` when every line moved and ``partially_fulfilled``
    otherwise.
    """

    if status not in (INDENT_REVIEWED, INDENT_REJECTED, INDENT_ALLOCATED):
        raise StockValidationError(f"Unsupported status for a lab indent: {status!r}")
    with transaction.atomic():
        indent = get_indent(indent_id, for_update=True)
        if not indent.lab_id:
            raise InvalidTransitionError(
                "Central quotations are processed with process_central_indent."
            )
        if status != INDENT_ALLOCATED:
            _transition(indent, status, actor)
            return indent, []
        if INDENT_ALLOCATED not in INDENT_TRANSITIONS.get(indent.status, set()):
            raise InvalidTransitionError(
                f"Indent {indent.pk} cannot be allocated while {indent.status}."
            )
        return _settle_allocation(indent, actor)


def fulfill_remaining_indent(indent_id: int, actor: str) -> Tuple[Indent, List[AllocationResult]]:
    """Retry only the lines a partially fulfilled indent could not allocate."""

    with transaction.atomic():
        indent = get_indent(indent_id, for_update=True)
        if indent.status != INDENT_PARTIALLY_FULFILLED:
            raise InvalidTransitionError("Only partially fulfilled indents can be retried.")
        return _settle_allocation(indent, actor)


def process_central_indent(indent_id: int, status: str, actor: str) -> Indent:
    """Move a central quotation along; ``purchased`` receives its lines as stock."""

    if status not in (INDENT_APPROVED, INDENT_REJECTED, INDENT_PURCHASING, INDENT_PURCHASED):
        raise StockValidationError(f"Unsupported status for a quotation: {status!r}")
    with transaction.atomic():
        indent = get_indent(indent_id, for_update=True)
        if indent.lab_id:
            raise InvalidTransitionError("Lab indents are processed with process_lab_indent.")
        if status == INDENT_PURCHASED:
            if status not in INDENT_TRANSITIONS.get(indent.status, set()):
                raise InvalidTransitionError(
                    f"Quotation {indent.pk} cannot be purchased while {indent.status}."
                )
            lines = list(indent.lines.all())
            intake_many(
                [
                    {
                        "display_name": line.item_name,
                        "quantity": line.quantity,
                        "unit": line.unit,
                        "expiry_date": line.expiry_date,
                        "vendor": indent.vendor_name or "",
                        "price_per_unit": line.price_per_unit,
                        "category": line.category,
                        "variant": line.variant,
                    }
                    for line in lines
                ],
                actor=actor,
                related_indent=indent,
                transaction_type=TX_PURCHASE,
            )
            for line in lines:
                IndentLine.objects.filter(pk=line.pk).update(
                    is_allocated=True, allocated_quantity=line.quantity
                )
        _transition(indent, status, actor)
    return indent
