"""Receiving stock into the central store."""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from django.db import transaction
from django.utils import timezone

from ..constants import (
    BATCH_PREFIXES,
    CATEGORY_CHEMICAL,
    CENTRAL_STORE,
    TX_ENTRY,
    VENDOR,
)
from ..exceptions import StockValidationError
from ..models import EquipmentUnit, Indent, ItemMaster, LiveStock
from . import ledger_service, stock_store
from .batch_naming import (
    assign_name_on_intake,
    match_replenishment,
    reindex_after_depletion,
    split_display_name,
)
from .item_kinds import get_kind
from .out_of_stock import on_restock
from .stock_queries import invalidate_live_stock

logger = logging.getLogger(__name__)

IntakeResult = Tuple[ItemMaster, Union[LiveStock, List[EquipmentUnit]]]


def generate_batch_id(category: str = CATEGORY_CHEMICAL, today: Optional[date] = None) -> str:
    """Return the next ``PREFIX-YYYYMMDD-NNN`` batch id for ``category``."""

    prefix = BATCH_PREFIXES.get(category)
    if prefix is None:
        raise StockValidationError(f"Unknown category: {category!r}")
    today = today or timezone.localdate()
    stem = f"{prefix}-{today:%Y%m%d}-"
    last = (
        ItemMaster.objects.filter(batch_id__startswith=stem)
        .order_by("-batch_id")
        .values_list("batch_id", flat=True)
        .first()
    )
    sequence = int(last.rsplit("-", 1)[1]) + 1 if last else 1
    return f"{stem}{sequence:03d}"


def last_batch_id(category: str = CATEGORY_CHEMICAL) -> Optional[str]:
    """Batch id of the most recent intake in ``category``, if any."""

    return (
        ItemMaster.objects.filter(category=category)
        .exclude(batch_id="")
        .order_by("-created_at", "-master_id")
        .values_list("batch_id", flat=True)
        .first()
    )


def _validate(display_name: str, quantity: Any, unit: str) -> Tuple[str, Decimal]:
    display_name, _ = split_display_name(display_name)
    if not display_name:
        raise StockValidationError("Item name is required.")
    quantity = stock_store.to_quantity(quantity)
    if quantity <= 0:
        raise StockValidationError("Quantity must be greater than zero.")
    if not unit:
        raise StockValidationError("Unit is required.")
    return display_name, quantity


def _intake_equipment(master: ItemMaster, quantity: Decimal, warranty_until, maintenance_cycle_days):
    return EquipmentUnit.objects.bulk_create(
        [
            EquipmentUnit(
                master=master,
                name=master.display_name,
                variant=master.variant,
                unit=master.unit,
                location=CENTRAL_STORE,
                warranty_until=warranty_until,
                maintenance_cycle_days=maintenance_cycle_days,
            )
            for _ in range(int(quantity))
        ]
    )


def intake(
    display_name: str,
    quantity: Any,
    unit: str,
    expiry_date: Optional[date] = None,
    batch_id: Optional[str] = None,
    vendor: str = "",
    price_per_unit: Optional[Decimal] = None,
    department: str = "",
    actor: str = "system",
    category: str = CATEGORY_CHEMICAL,
    variant: str = "",
    related_indent: Optional[Indent] = None,
    transaction_type: str = TX_ENTRY,
    warranty_until: Optional[date] = None,
    maintenance_cycle_days: Optional[int] = None,
) -> IntakeResult:
    """Receive ``quantity`` of an item into the central store.

    A lot with the same expiry, unit and vendor is topped up; otherwise a
    new lot is opened and all lots of the display name are renamed by
    expiry. Equipment creates one tagged unit per item. Returns the new
    item master and the lot (or units) that received the stock.
    """

    display_name, quantity = _validate(display_name, quantity, unit)
    kind = get_kind(category)
    kind.validate_quantity(quantity)
    variant = variant or ""

    with transaction.atomic():
        master = ItemMaster(
            category=category,
            internal_name=display_name,
            display_name=display_name,
            variant=variant,
            quantity=quantity,
            unit=unit,
            expiry_date=expiry_date,
            batch_id=batch_id or generate_batch_id(category),
            vendor=vendor or "",
            price_per_unit=price_per_unit,
            department=department or "",
            created_by=actor or "",
        )

        received: Union[LiveStock, List[EquipmentUnit]]
        if kind.is_serialized:
            master.save()
            received = _intake_equipment(
                master, quantity, warranty_until, maintenance_cycle_days
            )
            lot_ref = None
        else:
            existing = list(
                stock_store.find_lots(display_name, CENTRAL_STORE, category, variant)
                .select_related("master")
            )
            target = match_replenishment(existing, expiry_date, unit, vendor)
            if target is not None:
                master.internal_name = target.internal_name
                master.save()
                stock_store.increment(target.lot_id, quantity)
                target.refresh_from_db()
                received = target
                logger.info(
                    "Replenished lot %s '%s' with %s %s",
                    target.lot_id,
                    target.internal_name,
                    quantity,
                    unit,
                )
            else:
                master.internal_name = assign_name_on_intake(
                    display_name, expiry_date, existing
                )
                master.save()
                received = LiveStock.objects.create(
                    master=master,
                    category=category,
                    internal_name=master.internal_name,
                    display_name=display_name,
                    variant=variant,
                    unit=unit,
                    location=CENTRAL_STORE,
                    quantity=quantity,
                    original_quantity=quantity,
                    expiry_date=expiry_date,
                )
                reindex_after_depletion(display_name, CENTRAL_STORE, category, variant)
                received.refresh_from_db()
                master.refresh_from_db()
                logger.info(
                    "Received new lot %s '%s' (%s %s, expires %s)",
                    received.lot_id,
                    received.internal_name,
                    quantity,
                    unit,
                    expiry_date,
                )
            lot_ref = received.lot_id

        ledger_service.record_transaction(
            item_name=display_name,
            category=category,
            transaction_type=transaction_type,
            quantity=quantity,
            unit=unit,
            from_location=VENDOR,
            to_location=CENTRAL_STORE,
            actor=actor,
            lot_ref=lot_ref,
            related_indent=related_indent,
        )
        on_restock(display_name, category, variant)
        invalidate_live_stock()

    return master, received


def intake_many(
    items: Sequence[Dict[str, Any]],
    actor: str = "system",
    use_previous_batch_id: bool = False,
    category: Optional[str] = None,
    related_indent: Optional[Indent] = None,
    transaction_type: str = TX_ENTRY,
) -> List[IntakeResult]:
    """Receive a whole invoice atomically under one batch id.

    Each item is a mapping of :func:`intake` keyword arguments. Any failing
    item rolls back the entire invoice.
    """

    if not items:
        raise StockValidationError("No items to receive.")
    batch_category = category or items[0].get("category") or CATEGORY_CHEMICAL

    with transaction.atomic():
        batch_id = None
        if use_previous_batch_id:
            batch_id = last_batch_id(batch_category)
        batch_id = batch_id or generate_batch_id(batch_category)
        results = []
        for item in items:
            params = dict(item)
            params.setdefault("category", batch_category)
            params["batch_id"] = batch_id
            params["actor"] = actor
            params.setdefault("related_indent", related_indent)
            params.setdefault("transaction_type", transaction_type)
            results.append(intake(**params))

    logger.info("Received %s item(s) under batch %s", len(results), batch_id)
    return results

