"""Display names and suffixed internal names for expiry-dated lots.

All lots of one nominal item at a location share a display name. The
earliest-expiring lot carries the bare name and the rest are suffixed
``" - A"``, ``" - B"``, ... in expiry order, so "Acetone" is always the lot to
use first and "Acetone - A" the next one.
"""

import logging
import re
import string
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from ..constants import CATEGORY_CHEMICAL
from ..exceptions import StockIntegrityError, SuffixCapacityError
from ..models import ItemMaster, LiveStock
from .stock_store import find_lots

logger = logging.getLogger(__name__)

SUFFIX_LETTERS = string.ascii_uppercase
SUFFIX_SEPARATOR = " - "
# The bare name plus one lot per letter.
MAX_LOTS_PER_NAME = len(SUFFIX_LETTERS) + 1

_SUFFIX_RE = re.compile(r"^(?P<base>.+?) - (?P<letter>[A-Z])$")


def split_display_name(name: str) -> Tuple[str, Optional[str]]:
    """Split ``"Acetone - B"`` into ``("Acetone", "B")``."""

    name = (name or "").strip()
    match = _SUFFIX_RE.match(name)
    if not match:
        return name, None
    return match.group("base"), match.group("letter")


def display_name_for(name: str) -> str:
    return split_display_name(name)[0]


def suffix_for(display_name: str, index: int) -> str:
    """Return the internal name of the ``index``-th lot in expiry order."""

    if index < 0:
        raise ValueError("index must be non-negative")
    if index == 0:
        return display_name
    if index > len(SUFFIX_LETTERS):
        raise SuffixCapacityError(
            f"'{display_name}' cannot hold more than {MAX_LOTS_PER_NAME} live lots.",
            details={"display_name": display_name, "limit": MAX_LOTS_PER_NAME},
        )
    return f"{display_name}{SUFFIX_SEPARATOR}{SUFFIX_LETTERS[index - 1]}"


def expiry_sort_key(expiry: Optional[date]) -> Tuple[bool, date]:
    # Undated lots go after every dated one.
    return (expiry is None, expiry or date.max)


def plan_names(display_name: str, count: int) -> List[str]:
    """Names for ``count`` lots already sorted in FIFO order."""

    if count > MAX_LOTS_PER_NAME:
        raise SuffixCapacityError(
            f"'{display_name}' cannot hold more than {MAX_LOTS_PER_NAME} live lots.",
            details={"display_name": display_name, "limit": MAX_LOTS_PER_NAME},
        )
    return [suffix_for(display_name, index) for index in range(count)]


def assign_name_on_intake(
    display_name: str, expiry: Optional[date], existing_lots: Sequence[LiveStock]
) -> str:
    """Internal name for a new lot joining ``existing_lots``.

    The new lot queues behind every existing lot with the same or an earlier
    expiry. A lot that expires before all of them takes the bare name; the
    existing lots then shift one suffix along when the siblings are
    reindexed.
    """

    if len(existing_lots) + 1 > MAX_LOTS_PER_NAME:
        raise SuffixCapacityError(
            f"'{display_name}' already has {len(existing_lots)} live lots.",
            details={"display_name": display_name, "limit": MAX_LOTS_PER_NAME},
        )
    new_key = expiry_sort_key(expiry)
    position = sum(
        1 for lot in existing_lots if expiry_sort_key(lot.expiry_date) <= new_key
    )
    return suffix_for(display_name, position)


def match_replenishment(
    existing_lots: Iterable[LiveStock],
    expiry: Optional[date],
    unit: str,
    vendor: str,
) -> Optional[LiveStock]:
    """Find the lot an intake should top up instead of opening a new one."""

    for lot in existing_lots:
        if (
            lot.expiry_date == expiry
            and lot.unit == unit
            and (lot.master.vendor or "") == (vendor or "")
        ):
            return lot
    return None


def reindex_after_depletion(
    display_name: str,
    location: str,
    category: str = CATEGORY_CHEMICAL,
    variant: str = "",
) -> List[Tuple[int, str]]:
    """Rename every lot of ``display_name`` at ``location`` by expiry order.

    The whole sibling set is walked each time, so running it twice gives the
    same assignment. Returns ``(lot_id, internal_name)`` pairs in FIFO order.
    """

    lots = list(find_lots(display_name, location, category, variant))
    if len(lots) > MAX_LOTS_PER_NAME:
        logger.error(
            "%s lots share '%s' at %s; cannot name them uniquely",
            len(lots),
            display_name,
            location,
        )
        raise StockIntegrityError(
            f"Too many lots share '{display_name}' at {location}.",
            details={"display_name": display_name, "lots": len(lots)},
        )

    bare = [lot.lot_id for lot in lots if lot.internal_name == display_name]
    if len(bare) > 1:
        logger.error(
            "Lots %s all claim the bare name '%s' at %s; renaming by expiry",
            bare,
            display_name,
            location,
        )

    assignment = []
    for lot, name in zip(lots, plan_names(display_name, len(lots))):
        if lot.internal_name != name:
            LiveStock.objects.filter(pk=lot.lot_id).update(internal_name=name)
            if not lot.is_allocated:
                # Lab-held lots borrow a central master; leave its name alone.
                ItemMaster.objects.filter(pk=lot.master_id).update(internal_name=name)
            logger.info("Renamed lot %s '%s' -> '%s'", lot.lot_id, lot.internal_name, name)
        assignment.append((lot.lot_id, name))
    return assignment
