from decimal import Decimal

from django.db import models

from ..constants import CATEGORY_CHEMICAL, CATEGORY_CHOICES
from .fields import QuantityField


class ItemMaster(models.Model):
    """One nominal purchased lot, written on intake.

    ``quantity`` is what arrived; current stock lives on :class:`LiveStock`.
    """

    master_id = models.AutoField(primary_key=True)
    category = models.CharField(
        max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL
    )
    internal_name = models.CharField(max_length=255)
    display_name = models.CharField(max_length=255, db_index=True)
    variant = models.CharField(max_length=100, blank=True, default="")
    quantity = QuantityField()
    unit = models.CharField(max_length=50)
    expiry_date = models.DateField(blank=True, null=True)
    batch_id = models.CharField(max_length=50, blank=True, default="", db_index=True)
    vendor = models.CharField(max_length=255, blank=True, default="")
    price_per_unit = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    department = models.CharField(max_length=100, blank=True, default="")
    created_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return self.internal_name or f"Master {self.pk}"

    @property
    def total_price(self) -> Decimal:
        return (self.price_per_unit or Decimal("0")) * (self.quantity or Decimal("0"))

    class Meta:
        db_table = "item_masters"
        ordering = ["-created_at", "-master_id"]
