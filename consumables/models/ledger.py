from django.db import models

from ..constants import CATEGORY_CHOICES, TRANSACTION_TYPE_CHOICES
from ..exceptions import StockIntegrityError
from .fields import QuantityField


class LedgerQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise StockIntegrityError("Ledger entries cannot be updated.")

    def delete(self):
        raise StockIntegrityError("Ledger entries cannot be deleted.")


class StockTransaction(models.Model):
    """Append-only record of one stock movement."""

    transaction_id = models.AutoField(primary_key=True)
    # Plain integer: the lot may be consolidated away later.
    lot_ref = models.IntegerField(blank=True, null=True, db_index=True)
    dest_lot_ref = models.IntegerField(blank=True, null=True, db_index=True)
    # Serialized equipment: the unit that moved.
    item_tag = models.UUIDField(blank=True, null=True, db_index=True)
    item_name = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPE_CHOICES)
    quantity = QuantityField()
    unit = models.CharField(max_length=50, blank=True, default="")
    from_location = models.CharField(max_length=50, blank=True, default="")
    to_location = models.CharField(max_length=50, blank=True, default="")
    created_by = models.CharField(max_length=150, blank=True, default="")
    related_indent = models.ForeignKey(
        "consumables.Indent",
        models.PROTECT,
        db_column="related_indent_id",
        blank=True,
        null=True,
        related_name="transactions",
    )
    related_request_id = models.IntegerField(blank=True, null=True)
    transaction_date = models.DateTimeField(auto_now_add=True)

    objects = LedgerQuerySet.as_manager()

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise StockIntegrityError("Ledger entries cannot be updated.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise StockIntegrityError("Ledger entries cannot be deleted.")

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return f"{self.transaction_type} {self.quantity} {self.item_name}"

    class Meta:
        db_table = "stock_transactions"
        ordering = ["-transaction_date", "-transaction_id"]
