"""Scan-driven moves of single equipment units."""

import logging
from typing import Optional

from django.db import transaction
from django.db.models import QuerySet

from ..constants import (
    CATEGORY_EQUIPMENT,
    CENTRAL_STORE,
    EQUIPMENT_AVAILABLE,
    FACULTY,
    TX_RETURN,
)
from ..exceptions import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    StockNotFoundError,
    StockValidationError,
)
from ..models import EquipmentUnit
from . import ledger_service
from .allocation_service import movement_type, validate_locations
from .item_kinds import SerializedItemKind
from .out_of_stock import on_restock
from .stock_queries import invalidate_live_stock

logger = logging.getLogger(__name__)


def get_unit(item_tag) -> EquipmentUnit:
    unit = EquipmentUnit.objects.filter(item_tag=item_tag).first()
    if unit is None:
        raise StockNotFoundError(f"No equipment with tag {item_tag}.")
    return unit


def list_units(
    location: Optional[str] = None, status: Optional[str] = None, name: Optional[str] = None
) -> QuerySet:
    qs = EquipmentUnit.objects.all()
    if location:
        qs = qs.filter(location=location)
    if status:
        qs = qs.filter(status=status)
    if name:
        qs = qs.filter(name__icontains=name)
    return qs


def allocate_equipment_unit(
    item_tag, destination: str, actor: str = "system", recipient: str = ""
) -> EquipmentUnit:
    """Move the scanned unit from the central store to ``destination``.

    Issuing straight to faculty needs the ``recipient`` the unit is assigned to.
    """

    unit = get_unit(item_tag)
    validate_locations(unit.location, destination)
    if destination == FACULTY and not recipient:
        raise StockValidationError("Equipment issued to faculty needs a recipient.")
    if unit.location != CENTRAL_STORE or unit.status != EQUIPMENT_AVAILABLE:
        raise InvalidTransitionError(
            f"Unit {item_tag} is {unit.status} at {unit.location}, not available centrally."
        )
    kind = SerializedItemKind()
    with transaction.atomic():
        if not kind.apply_guarded_decrement(unit, 1, destination, recipient):
            raise ConcurrencyConflictError(f"Unit {item_tag} was moved by someone else.")
        kind.settle_source(unit)
        ledger_service.record_transaction(
            item_name=unit.name,
            category=CATEGORY_EQUIPMENT,
            transaction_type=movement_type(CENTRAL_STORE, destination),
            quantity=1,
            unit=unit.unit,
            from_location=CENTRAL_STORE,
            to_location=destination,
            actor=actor,
            item_tag=unit.item_tag,
        )
        invalidate_live_stock()
    unit.refresh_from_db()
    logger.info("Unit %s (%s) issued to %s by %s", item_tag, unit.name, destination, actor)
    return unit


def return_equipment_unit(item_tag, actor: str = "system") -> EquipmentUnit:
    """Bring a unit back to the central store as available stock."""

    unit = get_unit(item_tag)
    if unit.location == CENTRAL_STORE and unit.status == EQUIPMENT_AVAILABLE:
        raise InvalidTransitionError(f"Unit {item_tag} is already in the central store.")
    with transaction.atomic():
        updated = EquipmentUnit.objects.filter(
            pk=unit.unit_id, location=unit.location, status=unit.status
        ).update(location=CENTRAL_STORE, status=EQUIPMENT_AVAILABLE, assigned_to="")
        if not updated:
            raise ConcurrencyConflictError(f"Unit {item_tag} was moved by someone else.")
        ledger_service.record_transaction(
            item_name=unit.name,
            category=CATEGORY_EQUIPMENT,
            transaction_type=TX_RETURN,
            quantity=1,
            unit=unit.unit,
            from_location=unit.location,
            to_location=CENTRAL_STORE,
            actor=actor,
            item_tag=unit.item_tag,
        )
        on_restock(unit.name, CATEGORY_EQUIPMENT, unit.variant)
        invalidate_live_stock()
    unit.refresh_from_db()
    logger.info("Unit %s (%s) returned by %s", item_tag, unit.name, actor)
    return unit
