from .api import (
    AllocationView,
    EquipmentUnitViewSet,
    ExperimentRequestViewSet,
    ExpiredLotLogViewSet,
    IndentViewSet,
    IntakeView,
    ItemMasterViewSet,
    LiveStockView,
    LiveStockViewSet,
    OutOfStockView,
    StockTransactionViewSet,
)

__all__ = [
    "AllocationView",
    "EquipmentUnitViewSet",
    "ExperimentRequestViewSet",
    "ExpiredLotLogViewSet",
    "IndentViewSet",
    "IntakeView",
    "ItemMasterViewSet",
    "LiveStockView",
    "LiveStockViewSet",
    "OutOfStockView",
    "StockTransactionViewSet",
]
