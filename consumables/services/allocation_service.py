"""FIFO allocation of stock from one location to another.

A call to :func:`allocate` is all-or-nothing: every line runs inside one
unit of work and a single failing line rolls back the whole batch. The
result still reports each line, so the caller can retry with a smaller
request.
"""

import logging
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from ..constants import (
    ALL_LOCATIONS,
    CATEGORY_CHEMICAL,
    CENTRAL_STORE,
    FACULTY,
    LAB_IDS,
    TX_ALLOCATION,
    TX_ISSUE,
    TX_TRANSFER,
)
from ..exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    StockValidationError,
)
from ..models import Indent
from . import ledger_service, stock_store
from .batch_naming import display_name_for
from .item_kinds import get_kind
from .stock_queries import invalidate_live_stock

logger = logging.getLogger(__name__)

LINE_ALLOCATED = "allocated"
LINE_FAILED = "failed"
LINE_ROLLED_BACK = "rolled_back"
LINE_NOT_ATTEMPTED = "not_attempted"

REASON_INSUFFICIENT = "insufficient stock"
REASON_INSUFFICIENT_PARTIAL = "insufficient stock (partial)"
REASON_CONFLICT = "concurrent update"


@dataclass
class LineRequest:
    name: str
    quantity: Decimal
    category: str = CATEGORY_CHEMICAL
    variant: str = ""


@dataclass
class LineResult:
    name: str
    category: str
    variant: str
    requested_quantity: Decimal
    status: str = LINE_ALLOCATED
    allocated_quantity: Decimal = Decimal("0")
    fulfillable_quantity: Decimal = Decimal("0")
    reason: str = ""
    movements: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == LINE_ALLOCATED

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("requested_quantity", "allocated_quantity", "fulfillable_quantity"):
            data[key] = str(data[key])
        for movement in data["movements"]:
            movement["quantity"] = str(movement["quantity"])
            if movement.get("item_tag") is not None:
                movement["item_tag"] = str(movement["item_tag"])
        return data


@dataclass
class AllocationResult:
    source: str
    destination: str
    status: str
    lines: List[LineResult]
    retryable: bool = False

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def raise_for_status(self) -> None:
        """Raise the error matching a failed batch, carrying every line verdict."""

        if self.ok:
            return
        details = self.as_dict()
        if self.retryable:
            raise ConcurrencyConflictError(details=details)
        short = [line for line in self.lines if line.reason.startswith(REASON_INSUFFICIENT)]
        if short:
            line = short[0]
            raise InsufficientStockError(
                f"Insufficient stock of '{line.name}': requested "
                f"{line.requested_quantity}, available {line.fulfillable_quantity}.",
                requested=line.requested_quantity,
                available=line.fulfillable_quantity,
                details=details,
            )
        failed = [line for line in self.lines if line.status == LINE_FAILED]
        message = failed[0].reason if failed else "Allocation failed."
        raise StockValidationError(message, details=details)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "source": self.source,
            "destination": self.destination,
            "retryable": self.retryable,
            "lines": [line.as_dict() for line in self.lines],
        }


class _BatchFailed(Exception):
    """Raised inside the unit of work to roll the batch back."""


def movement_type(source: str, destination: str) -> str:
    if destination == FACULTY:
        return TX_ISSUE
    if source == CENTRAL_STORE:
        return TX_ALLOCATION
    return TX_TRANSFER


def validate_locations(source: str, destination: str) -> None:
    if not source or not destination:
        raise StockValidationError("Source and destination locations are required.")
    if source not in ALL_LOCATIONS:
        raise StockValidationError(f"Unknown source location: {source!r}")
    if destination not in LAB_IDS and destination != FACULTY:
        raise StockValidationError(
            f"Cannot allocate to {destination!r}; stock moves to a lab or to faculty."
        )
    if source == destination:
        raise StockValidationError("Source and destination must differ.")


def parse_line(raw: Union[LineRequest, Dict[str, Any]], category: str) -> LineRequest:
    """Normalise one requested line; raises on malformed input."""

    if isinstance(raw, LineRequest):
        line = raw
    elif isinstance(raw, dict):
        name = raw.get("display_name") or raw.get("name") or ""
        line = LineRequest(
            name=display_name_for(str(name)),
            quantity=stock_store.to_quantity(raw.get("quantity", 0)),
            category=raw.get("category") or category,
            variant=raw.get("variant") or "",
        )
    else:
        raise StockValidationError("Each line must be an object with name and quantity.")
    if not line.name:
        raise StockValidationError("Item name is required.")
    if line.quantity <= 0:
        raise StockValidationError("Quantity must be greater than zero.")
    get_kind(line.category).validate_quantity(line.quantity)
    return line


def _allocate_line(
    line: LineRequest,
    source: str,
    destination: str,
    actor: str,
    related_indent: Optional[Indent],
    recipient: str = "",
) -> LineResult:
    kind = get_kind(line.category)
    result = LineResult(
        name=line.name,
        category=line.category,
        variant=line.variant,
        requested_quantity=line.quantity,
    )
    lots = kind.lookup_lots(line.name, line.variant, source)
    available = sum((kind.quantity_of(lot) for lot in lots), Decimal("0"))
    result.fulfillable_quantity = min(available, line.quantity)
    if available < line.quantity:
        result.status = LINE_FAILED
        result.reason = REASON_INSUFFICIENT_PARTIAL if available else REASON_INSUFFICIENT
        return result

    tx_type = movement_type(source, destination)
    remaining = line.quantity
    for lot in lots:
        if remaining <= 0:
            break
        quantity = min(kind.quantity_of(lot), remaining)
        if not kind.apply_guarded_decrement(lot, quantity, destination, recipient):
            logger.warning(
                "Guarded decrement failed for '%s' (%s) at %s",
                line.name,
                kind.lot_ref(lot),
                source,
            )
            raise ConcurrencyConflictError(
                f"Stock of '{line.name}' changed while allocating.",
                details={"name": line.name, "source": source},
            )
        kind.settle_source(lot)
        dest_ref = kind.upsert_destination(lot, quantity, destination)
        ledger_service.record_transaction(
            item_name=line.name,
            category=line.category,
            transaction_type=tx_type,
            quantity=quantity,
            unit=kind.unit_of(lot),
            from_location=source,
            to_location=destination,
            actor=actor,
            lot_ref=kind.lot_ref(lot),
            dest_lot_ref=dest_ref,
            item_tag=kind.item_tag_of(lot),
            related_indent=related_indent,
        )
        result.movements.append(
            {
                "from_lot": kind.lot_ref(lot),
                "to_lot": dest_ref,
                "item_tag": kind.item_tag_of(lot),
                "quantity": quantity,
            }
        )
        remaining -= quantity

    result.allocated_quantity = line.quantity
    return result


def _rolled_back(results: List[LineResult]) -> List[LineResult]:
    for result in results:
        if result.status == LINE_ALLOCATED:
            result.status = LINE_ROLLED_BACK
            result.fulfillable_quantity = result.allocated_quantity
        result.allocated_quantity = Decimal("0")
        result.movements = []
    return results


def allocate(
    source: str,
    destination: str,
    lines: Iterable[Union[LineRequest, Dict[str, Any]]],
    actor: str = "system",
    category: str = CATEGORY_CHEMICAL,
    related_indent: Optional[Indent] = None,
    timeout: Optional[float] = None,
    recipient: str = "",
) -> AllocationResult:
    """Move the requested lines from ``source`` to ``destination``.

    Lines are processed in the given order and source lots in FIFO order.
    ``status`` is ``"success"`` only when every line was allocated in full;
    otherwise nothing was written and each line explains itself. After a
    concurrency conflict the remaining lines are not attempted and the
    result is marked ``retryable``. Equipment issued to ``FACULTY`` is
    assigned to ``recipient``.
    """

    validate_locations(source, destination)
    if not isinstance(lines, (list, tuple)) or not lines:
        raise StockValidationError("At least one line is required.")

    results: List[LineResult] = []
    conflict = False
    try:
        with stock_store.unit_of_work(timeout) as deadline:
            for raw in lines:
                try:
                    line = parse_line(raw, category)
                    if destination == FACULTY and not recipient:
                        if get_kind(line.category).is_serialized:
                            raise StockValidationError(
                                "Equipment issued to faculty needs a recipient."
                            )
                except StockValidationError as exc:
                    name = raw.get("name", "") if isinstance(raw, dict) else ""
                    results.append(
                        LineResult(
                            name=str(name or ""),
                            category=category,
                            variant="",
                            requested_quantity=Decimal("0"),
                            status=LINE_FAILED,
                            reason=exc.message,
                        )
                    )
                    continue
                if conflict:
                    results.append(
                        LineResult(
                            name=line.name,
                            category=line.category,
                            variant=line.variant,
                            requested_quantity=line.quantity,
                            status=LINE_NOT_ATTEMPTED,
                        )
                    )
                    continue
                deadline.check()
                try:
                    results.append(
                        _allocate_line(
                            line, source, destination, actor, related_indent, recipient
                        )
                    )
                except ConcurrencyConflictError:
                    conflict = True
                    results.append(
                        LineResult(
                            name=line.name,
                            category=line.category,
                            variant=line.variant,
                            requested_quantity=line.quantity,
                            status=LINE_FAILED,
                            reason=REASON_CONFLICT,
                        )
                    )
            if conflict or any(not result.ok for result in results):
                raise _BatchFailed()
            invalidate_live_stock()
    except _BatchFailed:
        failed = [r.name for r in results if r.status == LINE_FAILED]
        logger.warning(
            "Allocation %s -> %s by %s rolled back; failed lines: %s",
            source,
            destination,
            actor,
            ", ".join(failed),
        )
        return AllocationResult(
            source=source,
            destination=destination,
            status="failed",
            lines=_rolled_back(results),
            retryable=conflict,
        )

    logger.info(
        "Allocated %s line(s) %s -> %s by %s",
        len(results),
        source,
        destination,
        actor,
    )
    return AllocationResult(
        source=source, destination=destination, status="success", lines=results
    )
