"""Administrative handling of expired and soon-to-expire lots."""

import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone
from django.utils.dateparse import parse_date

from ..constants import (
    EXPIRED_ACTIONS,
    EXPIRED_DELETE,
    EXPIRED_MERGE,
    EXPIRED_UPDATE_EXPIRY,
    TX_ISSUE,
    TX_TRANSFER,
)
from ..exceptions import StockNotFoundError, StockValidationError
from ..models import ExpiredLotLog, LiveStock
from . import ledger_service, stock_store
from .batch_naming import reindex_after_depletion
from .out_of_stock import after_lot_removed
from .stock_queries import invalidate_live_stock

logger = logging.getLogger(__name__)

# Pseudo-location recorded on the ledger for discarded stock
DISCARDED = "discarded"


def list_expired(location: Optional[str] = None, today: Optional[date] = None) -> QuerySet:
    today = today or timezone.localdate()
    qs = LiveStock.objects.filter(expiry_date__lt=today, quantity__gt=0)
    if location:
        qs = qs.filter(location=location)
    return qs.order_by(*stock_store.FIFO_ORDER)


def list_expiring(
    within_days: Optional[int] = None,
    location: Optional[str] = None,
    today: Optional[date] = None,
) -> QuerySet:
    """Lots with stock that expire between today and ``within_days`` from now."""

    if within_days is None:
        within_days = getattr(settings, "EXPIRY_ALERT_DAYS", 30)
    today = today or timezone.localdate()
    qs = LiveStock.objects.filter(
        expiry_date__gte=today,
        expiry_date__lte=today + timedelta(days=within_days),
        quantity__gt=0,
    )
    if location:
        qs = qs.filter(location=location)
    return qs.order_by(*stock_store.FIFO_ORDER)


def _log_removal(lot: LiveStock, action: str, actor: str, reason: str) -> ExpiredLotLog:
    return ExpiredLotLog.objects.create(
        lot_ref=lot.lot_id,
        master_id=lot.master_id,
        item_name=lot.internal_name,
        display_name=lot.display_name,
        category=lot.category,
        unit=lot.unit,
        quantity=lot.quantity,
        expiry_date=lot.expiry_date,
        location=lot.location,
        action=action,
        reason=reason or "",
        removed_by=actor or "",
    )


def _merge(lot: LiveStock, params: Dict[str, Any], actor: str) -> Dict[str, Any]:
    target_id = params.get("target_lot_id")
    if not target_id:
        raise StockValidationError("target_lot_id is required to merge.")
    target = LiveStock.objects.filter(pk=target_id).first()
    if target is None:
        raise StockNotFoundError(f"Lot {target_id} not found.")
    if target.lot_id == lot.lot_id:
        raise StockValidationError("A lot cannot be merged into itself.")
    if (target.display_name, target.category, target.variant, target.location) != (
        lot.display_name,
        lot.category,
        lot.variant,
        lot.location,
    ):
        raise StockValidationError("Lots can only merge into the same item at the same location.")

    _log_removal(lot, EXPIRED_MERGE, actor, params.get("reason", ""))
    stock_store.increment(target.lot_id, lot.quantity)
    ledger_service.record_transaction(
        item_name=lot.display_name,
        category=lot.category,
        transaction_type=TX_TRANSFER,
        quantity=lot.quantity,
        unit=lot.unit,
        from_location=lot.location,
        to_location=target.location,
        actor=actor,
        lot_ref=lot.lot_id,
        dest_lot_ref=target.lot_id,
    )
    stock_store.delete_lot(lot.lot_id)
    after_lot_removed(lot.display_name, lot.category, lot.variant, lot.unit, lot.location)
    target.refresh_from_db()
    return {
        "action": EXPIRED_MERGE,
        "lot_id": lot.lot_id,
        "target_lot_id": target.lot_id,
        "target_quantity": str(target.quantity),
        "target_name": target.internal_name,
    }


def _delete(lot: LiveStock, params: Dict[str, Any], actor: str) -> Dict[str, Any]:
    _log_removal(lot, EXPIRED_DELETE, actor, params.get("reason", ""))
    if lot.quantity > 0:
        ledger_service.record_transaction(
            item_name=lot.display_name,
            category=lot.category,
            transaction_type=TX_ISSUE,
            quantity=lot.quantity,
            unit=lot.unit,
            from_location=lot.location,
            to_location=DISCARDED,
            actor=actor,
            lot_ref=lot.lot_id,
        )
    stock_store.delete_lot(lot.lot_id)
    outcome = after_lot_removed(
        lot.display_name, lot.category, lot.variant, lot.unit, lot.location
    )
    return {"action": EXPIRED_DELETE, "lot_id": lot.lot_id, "outcome": outcome}


def _update_expiry(lot: LiveStock, params: Dict[str, Any], actor: str) -> Dict[str, Any]:
    expiry = params.get("expiry_date")
    if isinstance(expiry, str):
        expiry = parse_date(expiry)
    if not isinstance(expiry, date):
        raise StockValidationError("A valid expiry_date is required.")
    LiveStock.objects.filter(pk=lot.lot_id).update(
        expiry_date=expiry, updated_at=timezone.now()
    )
    reindex_after_depletion(lot.display_name, lot.location, lot.category, lot.variant)
    lot.refresh_from_db()
    return {
        "action": EXPIRED_UPDATE_EXPIRY,
        "lot_id": lot.lot_id,
        "expiry_date": expiry.isoformat(),
        "internal_name": lot.internal_name,
    }


_HANDLERS = {
    EXPIRED_MERGE: _merge,
    EXPIRED_DELETE: _delete,
    EXPIRED_UPDATE_EXPIRY: _update_expiry,
}


def process_expired_action(
    lot_id: int,
    action: str,
    params: Optional[Dict[str, Any]] = None,
    actor: str = "system",
) -> Dict[str, Any]:
    """Merge, delete or re-date an expired lot.

    ``merge`` needs ``target_lot_id``; ``update_expiry`` needs
    ``expiry_date``. Removals are written to the expired lot log and the
    surviving siblings are renamed.
    """

    if action not in EXPIRED_ACTIONS:
        raise StockValidationError(
            f"Unknown action {action!r}; expected one of {', '.join(EXPIRED_ACTIONS)}."
        )
    params = params or {}
    with transaction.atomic():
        lot = LiveStock.objects.select_for_update().filter(pk=lot_id).first()
        if lot is None:
            raise StockNotFoundError(f"Lot {lot_id} not found.")
        result = _HANDLERS[action](lot, params, actor)
        invalidate_live_stock()
    logger.info("Expired lot %s: %s by %s", lot_id, action, actor)
    return result
