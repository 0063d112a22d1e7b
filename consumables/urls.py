"""API routes for the consumables app."""

from django.urls import path
from rest_framework.routers import DefaultRouter

from .views import (
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

router = DefaultRouter()
router.register(r"lots", LiveStockViewSet)
router.register(r"masters", ItemMasterViewSet)
router.register(r"transactions", StockTransactionViewSet)
router.register(r"expired-log", ExpiredLotLogViewSet)
router.register(r"indents", IndentViewSet)
router.register(r"requests", ExperimentRequestViewSet)
router.register(r"equipment", EquipmentUnitViewSet)

urlpatterns = router.urls + [
    path("live-stock/", LiveStockView.as_view(), name="live_stock_api"),
    path("intake/", IntakeView.as_view(), name="intake_api"),
    path("allocate/", AllocationView.as_view(), name="allocate_api"),
    path("out-of-stock/", OutOfStockView.as_view(), name="out_of_stock_api"),
]
