from django.db import models
from django.db.models import Q

from ..constants import CATEGORY_CHEMICAL, CATEGORY_CHOICES
from .fields import QuantityField
from .items import ItemMaster


class LiveStock(models.Model):
    """Authoritative current quantity of one lot at one location."""

    lot_id = models.AutoField(primary_key=True)
    master = models.ForeignKey(
        ItemMaster, models.PROTECT, related_name="lots", db_column="master_id"
    )
    category = models.CharField(
        max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL
    )
    internal_name = models.CharField(max_length=255)
    display_name = models.CharField(max_length=255, db_index=True)
    variant = models.CharField(max_length=100, blank=True, default="")
    unit = models.CharField(max_length=50)
    location = models.CharField(max_length=50, db_index=True)
    quantity = QuantityField()
    original_quantity = QuantityField()
    expiry_date = models.DateField(blank=True, null=True)
    is_allocated = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return f"{self.internal_name} @ {self.location}"

    class Meta:
        db_table = "live_stock"
        constraints = [
            models.UniqueConstraint(
                fields=["master", "location"], name="uniq_lot_master_location"
            ),
            # Lab-held stock is one record per nominal item per lab.
            models.UniqueConstraint(
                fields=["display_name", "category", "variant", "location"],
                condition=Q(is_allocated=True),
                name="uniq_lab_lot_identity",
            ),
            models.CheckConstraint(
                condition=Q(quantity__gte=0), name="lot_quantity_non_negative"
            ),
        ]


class OutOfStockEntry(models.Model):
    """Registry of nominal items with no remaining central stock."""

    display_name = models.CharField(max_length=255)
    category = models.CharField(
        max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL
    )
    variant = models.CharField(max_length=100, blank=True, default="")
    unit = models.CharField(max_length=50, blank=True, default="")
    last_out_of_stock = models.DateTimeField()

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return self.display_name

    class Meta:
        db_table = "out_of_stock"
        ordering = ["-last_out_of_stock"]
        constraints = [
            models.UniqueConstraint(
                fields=["display_name", "category", "variant"],
                name="uniq_out_of_stock_identity",
            )
        ]


class ExpiredLotLog(models.Model):
    """Audit row written when an expired lot is merged away or deleted."""

    log_id = models.AutoField(primary_key=True)
    lot_ref = models.IntegerField()
    master = models.ForeignKey(
        ItemMaster, models.SET_NULL, blank=True, null=True, db_column="master_id"
    )
    item_name = models.CharField(max_length=255)
    display_name = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    unit = models.CharField(max_length=50, blank=True, default="")
    quantity = QuantityField()
    expiry_date = models.DateField(blank=True, null=True)
    location = models.CharField(max_length=50)
    action = models.CharField(max_length=20)
    reason = models.TextField(blank=True, default="")
    removed_by = models.CharField(max_length=150, blank=True, default="")
    removed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "expired_lot_log"
        ordering = ["-removed_at"]
