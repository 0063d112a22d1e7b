from django.contrib import admin

from .models import (
    EquipmentUnit,
    ExperimentRequest,
    ExpiredLotLog,
    Indent,
    IndentComment,
    IndentLine,
    ItemMaster,
    LineAllocation,
    LiveStock,
    OutOfStockEntry,
    RequestExperiment,
    RequestLine,
    StockTransaction,
)


for model in [
    ItemMaster,
    LiveStock,
    OutOfStockEntry,
    ExpiredLotLog,
    EquipmentUnit,
    Indent,
    IndentLine,
    IndentComment,
    ExperimentRequest,
    RequestExperiment,
    RequestLine,
    LineAllocation,
]:
    admin.site.register(model)


@admin.register(StockTransaction)
class StockTransactionAdmin(admin.ModelAdmin):
    """Ledger rows are append-only, so the admin only lists them."""

    list_display = [
        "transaction_id",
        "transaction_type",
        "item_name",
        "quantity",
        "from_location",
        "to_location",
        "created_by",
        "transaction_date",
    ]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
