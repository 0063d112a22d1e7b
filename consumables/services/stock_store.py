"""Persistence primitives for live stock lots.

Every quantity change goes through a single conditional ``UPDATE`` so two
writers can never drive a lot below zero: :func:`guarded_decrement` only
touches the row while ``quantity >= n`` still holds and reports whether it
did. Multi-step sequences run inside :func:`unit_of_work`, a bounded
``transaction.atomic`` block.
"""

import logging
import time
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, OperationalError, connection, transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from ..constants import CATEGORY_CHEMICAL
from ..exceptions import StockValidationError, UnitOfWorkTimeoutError
from ..models import LiveStock

logger = logging.getLogger(__name__)

# Earliest expiry first, undated lots last, then intake order.
FIFO_ORDER = (F("expiry_date").asc(nulls_last=True), "created_at", "lot_id")


def to_quantity(value: Any) -> Decimal:
    """Coerce ``value`` to a Decimal quantity or raise a validation error."""

    try:
        quantity = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise StockValidationError(f"Invalid quantity: {value!r}") from exc
    if not quantity.is_finite():
        raise StockValidationError(f"Invalid quantity: {value!r}")
    return quantity


class Deadline:
    """Wall-clock budget for one unit of work."""

    def __init__(self, seconds: float, clock=time.monotonic):
        self.seconds = seconds
        self._clock = clock
        self._expires_at = clock() + seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def check(self) -> None:
        if self.expired:
            raise UnitOfWorkTimeoutError(
                f"Stock operation exceeded {self.seconds}s and was rolled back."
            )


@contextmanager
def unit_of_work(timeout: Optional[float] = None) -> Iterator[Deadline]:
    """Run the block in one transaction bounded by ``timeout`` seconds.

    The deadline is checked again before commit, so an overrun rolls back
    every write made inside the block.
    """

    if timeout is None:
        timeout = getattr(settings, "ALLOCATION_TIMEOUT_SECONDS", 30)
    deadline = Deadline(timeout)
    try:
        with transaction.atomic():
            if connection.vendor == "postgresql":
                with connection.cursor() as cursor:
                    cursor.execute(
                        f"SET LOCAL statement_timeout = {int(timeout * 1000)}"
                    )
            yield deadline
            deadline.check()
    except OperationalError as exc:
        if deadline.expired or "statement timeout" in str(exc):
            raise UnitOfWorkTimeoutError() from exc
        raise


def find_lots(
    display_name: str,
    location: str,
    category: str = CATEGORY_CHEMICAL,
    variant: str = "",
    positive_only: bool = False,
    exclude_lot_id: Optional[int] = None,
) -> QuerySet:
    """Return the lots of one nominal item at ``location`` in FIFO order."""

    qs = LiveStock.objects.filter(
        display_name=display_name,
        category=category,
        variant=variant or "",
        location=location,
    )
    if positive_only:
        qs = qs.filter(quantity__gt=0)
    if exclude_lot_id is not None:
        qs = qs.exclude(pk=exclude_lot_id)
    return qs.order_by(*FIFO_ORDER)


def guarded_decrement(lot_id: int, quantity: Decimal) -> bool:
    """Decrement ``lot_id`` by ``quantity`` only if enough stock remains.

    Returns ``False`` when the guard failed, i.e. another writer consumed
    the stock first or the lot no longer exists.
    """

    quantity = to_quantity(quantity)
    updated = LiveStock.objects.filter(pk=lot_id, quantity__gte=quantity).update(
        quantity=F("quantity") - quantity, updated_at=timezone.now()
    )
    return bool(updated)


def increment(lot_id: int, quantity: Decimal) -> bool:
    quantity = to_quantity(quantity)
    updated = LiveStock.objects.filter(pk=lot_id).update(
        quantity=F("quantity") + quantity, updated_at=timezone.now()
    )
    return bool(updated)


def is_depleted(lot_id: int) -> bool:
    return LiveStock.objects.filter(pk=lot_id, quantity__lte=0).exists()


def upsert_lot(
    key: Dict[str, Any], delta: Decimal, defaults: Dict[str, Any]
) -> Tuple[LiveStock, bool]:
    """Add ``delta`` to the lot matching ``key``, creating it if missing.

    ``defaults`` seed the row on insert. A concurrent insert of the same key
    is absorbed by retrying as an increment.
    """

    delta = to_quantity(delta)
    now = timezone.now()
    if LiveStock.objects.filter(**key).update(
        quantity=F("quantity") + delta, updated_at=now
    ):
        return LiveStock.objects.get(**key), False
    try:
        with transaction.atomic():
            lot = LiveStock.objects.create(**key, **defaults, quantity=delta)
        return lot, True
    except IntegrityError:
        LiveStock.objects.filter(**key).update(
            quantity=F("quantity") + delta, updated_at=now
        )
        return LiveStock.objects.get(**key), False


def delete_lot(lot_id: int, only_if_empty: bool = False) -> bool:
    """Delete a lot. With ``only_if_empty`` a restocked lot is left alone."""

    qs = LiveStock.objects.filter(pk=lot_id)
    if only_if_empty:
        qs = qs.filter(quantity__lte=0)
    deleted, _ = qs.delete()
    return bool(deleted)
