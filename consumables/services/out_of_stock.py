"""Out-of-stock registry and what happens when a lot runs dry."""

import logging
from typing import Optional

from django.db.models import QuerySet
from django.utils import timezone

from ..constants import CENTRAL_STORE
from ..models import LiveStock, OutOfStockEntry
from . import stock_store
from .batch_naming import reindex_after_depletion

logger = logging.getLogger(__name__)

DEPLETION_KEPT = "kept"
DEPLETION_CONSOLIDATED = "consolidated"
DEPLETION_REGISTERED = "registered"


def register_out_of_stock(
    display_name: str, category: str, variant: str = "", unit: str = ""
) -> OutOfStockEntry:
    entry, _ = OutOfStockEntry.objects.update_or_create(
        display_name=display_name,
        category=category,
        variant=variant or "",
        defaults={"unit": unit or "", "last_out_of_stock": timezone.now()},
    )
    logger.info("'%s' (%s) is out of stock", display_name, category)
    return entry


def on_restock(display_name: str, category: str, variant: str = "") -> bool:
    """Drop the registry entry for a nominal item that has stock again."""

    deleted, _ = OutOfStockEntry.objects.filter(
        display_name=display_name, category=category, variant=variant or ""
    ).delete()
    if deleted:
        logger.info("'%s' (%s) restocked", display_name, category)
    return bool(deleted)


def after_lot_removed(
    display_name: str,
    category: str,
    variant: str,
    unit: str,
    location: str,
) -> str:
    """Rename the surviving siblings, or register the item when none remain.

    Only the central store keeps a registry; lab stock is just reindexed.
    """

    remaining = stock_store.find_lots(
        display_name, location, category, variant, positive_only=True
    )
    if remaining.exists():
        reindex_after_depletion(display_name, location, category, variant)
        return DEPLETION_CONSOLIDATED
    if location == CENTRAL_STORE:
        register_out_of_stock(display_name, category, variant, unit)
        return DEPLETION_REGISTERED
    return DEPLETION_KEPT


def on_lot_depleted(lot: LiveStock) -> str:
    """Handle a central lot that has just reached zero.

    With siblings left the empty lot is deleted and the siblings are
    renamed; without siblings the display name moves to the registry and
    the lot is deleted too. Lab lots are left at zero.
    """

    if lot.location != CENTRAL_STORE:
        return DEPLETION_KEPT
    if not stock_store.delete_lot(lot.lot_id, only_if_empty=True):
        # Restocked between the decrement and now.
        return DEPLETION_KEPT
    outcome = after_lot_removed(
        lot.display_name, lot.category, lot.variant, lot.unit, lot.location
    )
    logger.info(
        "Lot %s ('%s') depleted at %s: %s",
        lot.lot_id,
        lot.internal_name,
        lot.location,
        outcome,
    )
    return outcome


def list_out_of_stock(category: Optional[str] = None) -> QuerySet:
    qs = OutOfStockEntry.objects.all()
    if category:
        qs = qs.filter(category=category)
    return qs
