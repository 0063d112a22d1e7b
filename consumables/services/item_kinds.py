"""How each category of item is looked up, moved and received.

The allocation engine walks source stock the same way for every category;
these classes supply the category-specific parts. Chemicals, glassware and
other products are bulk quantities held in :class:`LiveStock` lots.
Equipment is serialized: every physical unit is its own row and moving one
is a status change rather than a decrement.
"""

import logging
from decimal import Decimal
from typing import Any, List, Optional

from django.db.models import Q

from ..constants import (
    CATEGORY_CHEMICAL,
    CATEGORY_CHOICES,
    CATEGORY_EQUIPMENT,
    CENTRAL_STORE,
    EQUIPMENT_AVAILABLE,
    EQUIPMENT_ISSUED,
    FACULTY,
)
from ..exceptions import StockValidationError
from ..models import EquipmentUnit, LiveStock
from . import stock_store
from .out_of_stock import on_lot_depleted, register_out_of_stock

logger = logging.getLogger(__name__)


class BulkItemKind:
    """Quantity-tracked stock: chemicals, glassware and other products."""

    is_serialized = False

    def __init__(self, category: str = CATEGORY_CHEMICAL):
        self.category = category

    def validate_quantity(self, quantity: Decimal) -> None:
        return None

    def lookup_lots(self, display_name: str, variant: str, location: str) -> List[LiveStock]:
        return list(
            stock_store.find_lots(
                display_name, location, self.category, variant, positive_only=True
            )
        )

    def quantity_of(self, lot: LiveStock) -> Decimal:
        return lot.quantity

    def apply_guarded_decrement(
        self, lot: LiveStock, quantity: Decimal, destination: str, recipient: str = ""
    ) -> bool:
        return stock_store.guarded_decrement(lot.lot_id, quantity)

    def settle_source(self, lot: LiveStock) -> Optional[str]:
        """Run the depletion lifecycle if the lot is now empty."""

        if stock_store.is_depleted(lot.lot_id):
            return on_lot_depleted(lot)
        return None

    def upsert_destination(
        self, lot: LiveStock, quantity: Decimal, destination: str
    ) -> Optional[int]:
        """Add ``quantity`` to the lab record for this nominal item.

        Issues to faculty leave the tracked locations, so nothing is
        upserted for them.
        """

        if destination == FACULTY:
            return None
        dest, created = stock_store.upsert_lot(
            key={
                "display_name": lot.display_name,
                "category": lot.category,
                "variant": lot.variant,
                "location": destination,
                "is_allocated": True,
            },
            delta=quantity,
            defaults={
                "master_id": lot.master_id,
                "internal_name": lot.display_name,
                "unit": lot.unit,
                "expiry_date": lot.expiry_date,
                "original_quantity": quantity,
            },
        )
        if created:
            logger.info(
                "Opened %s record for '%s' (lot %s)",
                destination,
                lot.display_name,
                dest.lot_id,
            )
        return dest.lot_id

    def lot_ref(self, lot: LiveStock) -> int:
        return lot.lot_id

    def item_tag_of(self, lot: LiveStock) -> None:
        return None

    def unit_of(self, lot: LiveStock) -> str:
        return lot.unit


class SerializedItemKind:
    """Equipment: one :class:`EquipmentUnit` per physical item."""

    is_serialized = True
    category = CATEGORY_EQUIPMENT

    def validate_quantity(self, quantity: Decimal) -> None:
        if quantity != quantity.to_integral_value():
            raise StockValidationError("Equipment is allocated in whole units.")

    def lookup_lots(self, display_name: str, variant: str, location: str) -> List[Any]:
        qs = EquipmentUnit.objects.filter(
            name=display_name, variant=variant or "", location=location
        )
        if location == CENTRAL_STORE:
            qs = qs.filter(status=EQUIPMENT_AVAILABLE)
        else:
            # Lab-held units not yet handed to anyone.
            qs = qs.filter(status=EQUIPMENT_ISSUED, assigned_to="")
        return list(qs.order_by("created_at", "unit_id"))

    def quantity_of(self, unit: EquipmentUnit) -> Decimal:
        return Decimal("1")

    def apply_guarded_decrement(
        self, unit: EquipmentUnit, quantity: Decimal, destination: str, recipient: str = ""
    ) -> bool:
        """Move the unit only if nobody else moved it first.

        Units issued to faculty are assigned to ``recipient``.
        """

        guard = Q(pk=unit.unit_id, location=unit.location, status=unit.status)
        guard &= Q(assigned_to=unit.assigned_to)
        updated = EquipmentUnit.objects.filter(guard).update(
            status=EQUIPMENT_ISSUED,
            location=destination,
            assigned_to=recipient if destination == FACULTY else "",
        )
        return bool(updated)

    def settle_source(self, unit: EquipmentUnit) -> Optional[str]:
        if unit.location != CENTRAL_STORE:
            return None
        remaining = EquipmentUnit.objects.filter(
            name=unit.name,
            variant=unit.variant,
            location=CENTRAL_STORE,
            status=EQUIPMENT_AVAILABLE,
        ).exists()
        if remaining:
            return None
        register_out_of_stock(unit.name, CATEGORY_EQUIPMENT, unit.variant, unit.unit)
        return "registered"

    def upsert_destination(
        self, unit: EquipmentUnit, quantity: Decimal, destination: str
    ) -> Optional[int]:
        # The guarded update already moved the unit.
        return None

    def lot_ref(self, unit: EquipmentUnit) -> Optional[int]:
        return None

    def item_tag_of(self, unit: EquipmentUnit):
        return unit.item_tag

    def unit_of(self, unit: EquipmentUnit) -> str:
        return unit.unit


_BULK_CATEGORIES = {value for value, _ in CATEGORY_CHOICES} - {CATEGORY_EQUIPMENT}


def get_kind(category: str):
    """Return the item kind handling ``category``."""

    if category == CATEGORY_EQUIPMENT:
        return SerializedItemKind()
    if category in _BULK_CATEGORIES:
        return BulkItemKind(category)
    raise StockValidationError(f"Unknown category: {category!r}")
