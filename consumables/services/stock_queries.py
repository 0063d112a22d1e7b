"""Read-side listings of live stock and item masters.

Live stock listings are cached in the key-value store. Every quantity
change bumps a version counter, which retires all cached listings at once
without having to know their keys.
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, QuerySet

from core.kvstore import get_kv_store

from ..constants import (
    CATEGORY_EQUIPMENT,
    CENTRAL_STORE,
    EQUIPMENT_AVAILABLE,
    EQUIPMENT_ISSUED,
    LIVE_STOCK_CACHE_PREFIX,
)
from ..models import EquipmentUnit, ItemMaster, LiveStock
from .stock_store import FIFO_ORDER

logger = logging.getLogger(__name__)

_VERSION_KEY = f"{LIVE_STOCK_CACHE_PREFIX}:version"


def _bump_version() -> None:
    get_kv_store().incr(_VERSION_KEY)


def invalidate_live_stock() -> None:
    """Retire cached listings now and again once the transaction commits."""

    _bump_version()
    transaction.on_commit(_bump_version)


def _cache_key(location: str, category: Optional[str]) -> str:
    version = get_kv_store().get(_VERSION_KEY, 0)
    return f"{LIVE_STOCK_CACHE_PREFIX}:{version}:{location}:{category or 'all'}"


def _bulk_listing(location: str, category: Optional[str]) -> List[Dict[str, Any]]:
    qs = LiveStock.objects.filter(location=location).exclude(
        category=CATEGORY_EQUIPMENT
    )
    if category:
        qs = qs.filter(category=category)
    grouped: "OrderedDict[tuple, Dict[str, Any]]" = OrderedDict()
    for lot in qs.order_by("display_name", "category", "variant", *FIFO_ORDER):
        key = (lot.display_name, lot.category, lot.variant)
        row = grouped.setdefault(
            key,
            {
                "display_name": lot.display_name,
                "category": lot.category,
                "variant": lot.variant,
                "unit": lot.unit,
                "location": location,
                "quantity": "0",
                "lots": [],
            },
        )
        row["quantity"] = str(Decimal(row["quantity"]) + lot.quantity)
        row["lots"].append(
            {
                "lot_id": lot.lot_id,
                "internal_name": lot.internal_name,
                "quantity": str(lot.quantity),
                "expiry_date": lot.expiry_date.isoformat() if lot.expiry_date else None,
            }
        )
    return list(grouped.values())


def _equipment_listing(location: str) -> List[Dict[str, Any]]:
    status = EQUIPMENT_AVAILABLE if location == CENTRAL_STORE else EQUIPMENT_ISSUED
    rows = (
        EquipmentUnit.objects.filter(location=location, status=status)
        .values("name", "variant", "unit")
        .annotate(count=Count("unit_id"))
        .order_by("name", "variant")
    )
    return [
        {
            "display_name": row["name"],
            "category": CATEGORY_EQUIPMENT,
            "variant": row["variant"],
            "unit": row["unit"],
            "location": location,
            "quantity": str(row["count"]),
            "lots": [],
        }
        for row in rows
    ]


def get_live_stock(location: str, category: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return stock at ``location`` grouped by display name.

    Each row carries the total quantity and its lots in FIFO order.
    Quantities are strings so the listing can be cached and serialized as-is.
    """

    store = get_kv_store()
    key = _cache_key(location, category)
    cached = store.get(key)
    if cached is not None:
        return cached

    rows: List[Dict[str, Any]] = []
    if category != CATEGORY_EQUIPMENT:
        rows.extend(_bulk_listing(location, category))
    if category in (None, CATEGORY_EQUIPMENT):
        rows.extend(_equipment_listing(location))

    store.set(key, rows, getattr(settings, "LIVE_STOCK_CACHE_SECONDS", 60))
    return rows


def get_central_master(category: Optional[str] = None) -> QuerySet:
    """Item masters, newest first, optionally for one category."""

    qs = ItemMaster.objects.all()
    if category:
        qs = qs.filter(category=category)
    return qs
