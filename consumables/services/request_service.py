"""Faculty experiment requests served from a lab's own stock.

Approving a request as ``fulfilled`` first previews every open line against
the lab's stock. If anything is short and the caller did not ``force``, the
preview is returned and nothing changes. Otherwise the fulfillable lines
are issued one by one and the rest stay open for :func:`fulfill_remaining`.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils.dateparse import parse_date

from ..constants import (
    CATEGORY_CHEMICAL,
    CATEGORY_EQUIPMENT,
    EQUIPMENT_ISSUED,
    FACULTY,
    LAB_IDS,
    REQUEST_APPROVED,
    REQUEST_FULFILLED,
    REQUEST_PARTIALLY_FULFILLED,
    REQUEST_PENDING,
    REQUEST_REJECTED,
    REQUEST_TRANSITIONS,
    TX_ISSUE,
)
from ..exceptions import InvalidTransitionError, StockNotFoundError, StockValidationError
from ..models import (
    EquipmentUnit,
    ExperimentRequest,
    LineAllocation,
    LiveStock,
    RequestExperiment,
    RequestLine,
)
from . import ledger_service, stock_store
from .batch_naming import display_name_for
from .item_kinds import get_kind
from .stock_queries import invalidate_live_stock

logger = logging.getLogger(__name__)


class _LineSkipped(Exception):
    """A line whose stock moved between preview and issue."""


@dataclass
class LinePreview:
    line_id: int
    experiment: str
    item_name: str
    category: str
    requested_quantity: Decimal
    available_quantity: Decimal
    fulfillable: bool
    reason: str = ""
    source: Any = field(default=None, repr=False)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "line_id": self.line_id,
            "experiment": self.experiment,
            "item_name": self.item_name,
            "category": self.category,
            "requested_quantity": str(self.requested_quantity),
            "available_quantity": str(self.available_quantity),
            "fulfillable": self.fulfillable,
            "reason": self.reason,
        }


@dataclass
class FulfillmentOutcome:
    request: ExperimentRequest
    requires_confirmation: bool = False
    fulfillable: List[LinePreview] = field(default_factory=list)
    unfulfillable: List[LinePreview] = field(default_factory=list)
    allocated_line_ids: List[int] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request.pk,
            "status": self.request.status,
            "requires_confirmation": self.requires_confirmation,
            "fulfillable": [p.as_dict() for p in self.fulfillable],
            "unfulfillable": [p.as_dict() for p in self.unfulfillable],
            "allocated_line_ids": self.allocated_line_ids,
        }


def get_request(request_id: int, for_update: bool = False) -> ExperimentRequest:
    qs = ExperimentRequest.objects.all()
    if for_update:
        qs = qs.select_for_update()
    request = qs.filter(pk=request_id).first()
    if request is None:
        raise StockNotFoundError(f"Request {request_id} not found.")
    return request


def create_request(
    faculty: str, lab_id: str, experiments: List[Dict[str, Any]]
) -> ExperimentRequest:
    """Record a faculty request for one or more experiments."""

    if lab_id not in LAB_IDS:
        raise StockValidationError(f"Unknown lab: {lab_id!r}")
    if not experiments:
        raise StockValidationError("A request needs at least one experiment.")
    with transaction.atomic():
        request = ExperimentRequest.objects.create(faculty=faculty, lab_id=lab_id)
        for entry in experiments:
            experiment_date = entry.get("date")
            if isinstance(experiment_date, str):
                experiment_date = parse_date(experiment_date)
            experiment = RequestExperiment.objects.create(
                request=request,
                name=entry.get("name") or "",
                date=experiment_date,
                session=entry.get("session") or "",
            )
            lines = entry.get("lines") or []
            if not lines:
                raise StockValidationError(
                    f"Experiment '{experiment.name}' has no items."
                )
            for raw in lines:
                category = raw.get("category") or CATEGORY_CHEMICAL
                quantity = stock_store.to_quantity(raw.get("quantity", 0))
                if quantity <= 0:
                    raise StockValidationError("Quantity must be greater than zero.")
                get_kind(category).validate_quantity(quantity)
                RequestLine.objects.create(
                    experiment=experiment,
                    category=category,
                    item_name=display_name_for(str(raw.get("item_name") or raw.get("name") or "")),
                    variant=raw.get("variant") or "",
                    quantity=quantity,
                    unit=raw.get("unit") or "",
                    item_tag=raw.get("item_tag"),
                )
    logger.info("Request %s created by %s for %s", request.pk, faculty, lab_id)
    return request


def _open_lines(request: ExperimentRequest) -> List[RequestLine]:
    return list(
        RequestLine.objects.filter(experiment__request=request, is_allocated=False)
        .select_related("experiment")
        .order_by("experiment_id", "id")
    )


def _lab_lot(line: RequestLine, lab_id: str) -> Optional[LiveStock]:
    return (
        stock_store.find_lots(line.item_name, lab_id, line.category, line.variant)
        .filter(is_allocated=True)
        .first()
    )


def _free_units(line: RequestLine, lab_id: str):
    qs = EquipmentUnit.objects.filter(
        location=lab_id, status=EQUIPMENT_ISSUED, assigned_to=""
    )
    if line.item_tag:
        return qs.filter(item_tag=line.item_tag)
    return qs.filter(name=line.item_name, variant=line.variant).order_by(
        "created_at", "unit_id"
    )


def preview_lines(request: ExperimentRequest, lines: List[RequestLine]) -> List[LinePreview]:
    """Classify open lines against lab stock without changing anything.

    Demand is tallied per lot, so two lines for the same chemical are not
    both reported fulfillable when the lot only covers one of them.
    """

    previews = []
    demand: Dict[Any, Decimal] = {}
    for line in lines:
        if line.category == CATEGORY_EQUIPMENT:
            units = list(_free_units(line, request.lab_id))
            key = ("equipment", line.item_tag or (line.item_name, line.variant))
            taken = int(demand.get(key, 0))
            available = Decimal(max(len(units) - taken, 0))
            source = units[taken : taken + int(line.quantity)]
        else:
            lot = _lab_lot(line, request.lab_id)
            key = ("lot", lot.lot_id if lot else None)
            available = (lot.quantity if lot else Decimal("0")) - demand.get(key, Decimal("0"))
            available = max(available, Decimal("0"))
            source = lot
        fulfillable = available >= line.quantity
        if fulfillable:
            demand[key] = demand.get(key, Decimal("0")) + line.quantity
        previews.append(
            LinePreview(
                line_id=line.pk,
                experiment=line.experiment.name,
                item_name=line.item_name,
                category=line.category,
                requested_quantity=line.quantity,
                available_quantity=available,
                fulfillable=fulfillable,
                reason="" if fulfillable else "insufficient lab stock",
                source=source,
            )
        )
    return previews


def _issue_line(
    request: ExperimentRequest, line: RequestLine, preview: LinePreview, actor: str
) -> bool:
    """Issue one line to the faculty; ``False`` if its stock or the line moved meanwhile."""

    movement = {
        "item_name": line.item_name,
        "category": line.category,
        "transaction_type": TX_ISSUE,
        "from_location": request.lab_id,
        "to_location": FACULTY,
        "actor": actor,
        "related_request_id": request.pk,
    }
    if line.category == CATEGORY_EQUIPMENT:
        for unit in preview.source or []:
            if not EquipmentUnit.objects.filter(
                pk=unit.unit_id, location=request.lab_id, assigned_to=""
            ).update(assigned_to=request.faculty):
                return False
            ledger_service.record_transaction(
                quantity=Decimal("1"),
                unit=line.unit or unit.unit,
                item_tag=unit.item_tag,
                **movement,
            )
    else:
        lot = preview.source
        if not stock_store.guarded_decrement(lot.lot_id, line.quantity):
            return False
        ledger_service.record_transaction(
            quantity=line.quantity,
            unit=line.unit or lot.unit,
            lot_ref=lot.lot_id,
            **movement,
        )
    if not RequestLine.objects.filter(pk=line.pk, is_allocated=False).update(
        is_allocated=True, allocated_quantity=line.quantity
    ):
        return False
    LineAllocation.objects.create(line=line, quantity=line.quantity, allocated_by=actor)
    return True


def _fulfill(request: ExperimentRequest, actor: str, force: bool) -> FulfillmentOutcome:
    open_lines = _open_lines(request)
    previews = preview_lines(request, open_lines)
    lines = {line.pk: line for line in open_lines}
    outcome = FulfillmentOutcome(
        request=request,
        fulfillable=[p for p in previews if p.fulfillable],
        unfulfillable=[p for p in previews if not p.fulfillable],
    )
    if outcome.unfulfillable and not force:
        outcome.requires_confirmation = True
        return outcome

    for preview in list(outcome.fulfillable):
        try:
            with transaction.atomic():
                issued = _issue_line(request, lines[preview.line_id], preview, actor)
                if not issued:
                    raise _LineSkipped()
        except _LineSkipped:
            logger.warning(
                "Line %s of request %s lost its stock before issue", preview.line_id, request.pk
            )
            preview.fulfillable = False
            preview.reason = "stock changed concurrently"
            outcome.fulfillable.remove(preview)
            outcome.unfulfillable.append(preview)
            continue
        outcome.allocated_line_ids.append(preview.line_id)

    still_open = RequestLine.objects.filter(
        experiment__request=request, is_allocated=False
    ).exists()
    status = REQUEST_PARTIALLY_FULFILLED if still_open else REQUEST_FULFILLED
    _transition(request, status, actor)
    if outcome.allocated_line_ids:
        invalidate_live_stock()
    return outcome


def _transition(request: ExperimentRequest, status: str, actor: str) -> None:
    allowed = REQUEST_TRANSITIONS.get(request.status, set())
    if status not in allowed:
        raise InvalidTransitionError(
            f"Request {request.pk} cannot go from {request.status} to {status}.",
            details={"from": request.status, "to": status},
        )
    logger.info("Request %s: %s -> %s by %s", request.pk, request.status, status, actor)
    request.status = status
    request.processed_by = actor or ""
    request.save(update_fields=["status", "processed_by", "updated_at"])


def approve_request(
    request_id: int, status: str, actor: str, force: bool = False
) -> FulfillmentOutcome:
    """Approve, reject or fulfil a request.

    For ``fulfilled`` a shortfall without ``force`` returns an outcome with
    ``requires_confirmation`` set and leaves everything untouched.
    """

    if status not in (REQUEST_APPROVED, REQUEST_REJECTED, REQUEST_FULFILLED):
        raise StockValidationError(f"Unsupported request status: {status!r}")
    with transaction.atomic():
        request = get_request(request_id, for_update=True)
        if status != REQUEST_FULFILLED:
            _transition(request, status, actor)
            return FulfillmentOutcome(request=request)
        if request.status not in (REQUEST_PENDING, REQUEST_APPROVED, REQUEST_PARTIALLY_FULFILLED):
            raise InvalidTransitionError(
                f"Request {request.pk} cannot be fulfilled while {request.status}."
            )
        return _fulfill(request, actor, force)


def fulfill_remaining(request_id: int, actor: str) -> FulfillmentOutcome:
    """Issue whatever open lines the lab can now cover."""

    with transaction.atomic():
        request = get_request(request_id, for_update=True)
        if request.status != REQUEST_PARTIALLY_FULFILLED:
            raise InvalidTransitionError("Only partially fulfilled requests can be retried.")
        return _fulfill(request, actor, force=True)
