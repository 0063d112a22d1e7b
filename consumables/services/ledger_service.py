import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.db.models import Q, QuerySet

from ..exceptions import StockNotFoundError
from ..models import Indent, LiveStock, StockTransaction

logger = logging.getLogger(__name__)


def record_transaction(
    *,
    item_name: str,
    category: str,
    transaction_type: str,
    quantity: Decimal,
    unit: str = "",
    from_location: str = "",
    to_location: str = "",
    actor: str = "system",
    lot_ref: Optional[int] = None,
    dest_lot_ref: Optional[int] = None,
    item_tag: Optional[Any] = None,
    related_indent: Optional[Indent] = None,
    related_request_id: Optional[int] = None,
) -> StockTransaction:
    """Append one movement to the ledger.

    Callers run this inside the same transaction as the stock change, so a
    failed ledger write rolls the movement back with it.
    """

    tx = StockTransaction.objects.create(
        item_name=item_name,
        category=category,
        transaction_type=transaction_type,
        quantity=quantity,
        unit=unit or "",
        from_location=from_location or "",
        to_location=to_location or "",
        created_by=actor or "",
        lot_ref=lot_ref,
        dest_lot_ref=dest_lot_ref,
        item_tag=item_tag,
        related_indent=related_indent,
        related_request_id=related_request_id,
    )
    logger.debug(
        "Ledger %s: %s %s %s %s -> %s",
        tx.transaction_id,
        transaction_type,
        quantity,
        item_name,
        from_location,
        to_location,
    )
    return tx


def get_transactions(
    lot_ref: Optional[int] = None,
    location: Optional[str] = None,
    transaction_type: Optional[str] = None,
    item_name: Optional[str] = None,
    category: Optional[str] = None,
    related_indent_id: Optional[int] = None,
    related_request_id: Optional[int] = None,
    item_tag: Optional[Any] = None,
    limit: Optional[int] = None,
) -> QuerySet:
    """Return ledger rows, newest first, narrowed by the given filters."""

    qs = StockTransaction.objects.all()
    if lot_ref is not None:
        qs = qs.filter(Q(lot_ref=lot_ref) | Q(dest_lot_ref=lot_ref))
    if location:
        qs = qs.filter(Q(from_location=location) | Q(to_location=location))
    if transaction_type:
        qs = qs.filter(transaction_type=transaction_type)
    if item_name:
        qs = qs.filter(item_name__icontains=item_name)
    if category:
        qs = qs.filter(category=category)
    if related_indent_id is not None:
        qs = qs.filter(related_indent_id=related_indent_id)
    if related_request_id is not None:
        qs = qs.filter(related_request_id=related_request_id)
    if item_tag:
        qs = qs.filter(item_tag=item_tag)
    if limit:
        qs = qs[:limit]
    return qs


def _change_for(tx: StockTransaction, lot: LiveStock) -> Decimal:
    if tx.dest_lot_ref == lot.lot_id:
        return tx.quantity
    if tx.from_location == lot.location:
        return -tx.quantity
    return tx.quantity


def get_lot_history(lot_id: int, limit: int = 30) -> List[Dict[str, Any]]:
    """Return the running balance of a lot over its most recent movements."""

    lot = LiveStock.objects.filter(pk=lot_id).first()
    if lot is None:
        raise StockNotFoundError(f"Lot {lot_id} not found.")

    txs = list(get_transactions(lot_ref=lot_id, limit=limit))[::-1]
    changes = [_change_for(tx, lot) for tx in txs]
    balance = lot.quantity - sum(changes, Decimal("0"))
    history = []
    for tx, change in zip(txs, changes):
        balance += change
        history.append(
            {
                "transaction_id": tx.transaction_id,
                "transaction_type": tx.transaction_type,
                "change": change,
                "balance": balance,
                "transaction_date": tx.transaction_date,
            }
        )
    return history
