"""Service layer for the consumables app."""

from . import (
    allocation_service,
    batch_naming,
    equipment_service,
    expiry_service,
    indent_service,
    intake_service,
    item_kinds,
    ledger_service,
    out_of_stock,
    request_service,
    stock_queries,
    stock_store,
)

__all__ = [
    "stock_store",
    "batch_naming",
    "ledger_service",
    "out_of_stock",
    "stock_queries",
    "item_kinds",
    "allocation_service",
    "intake_service",
    "equipment_service",
    "expiry_service",
    "indent_service",
    "request_service",
]
