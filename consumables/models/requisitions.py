from decimal import Decimal

from django.db import models
from django.db.models import F, Sum

from ..constants import (
    CATEGORY_CHEMICAL,
    CATEGORY_CHOICES,
    CREATOR_ROLE_CHOICES,
    INDENT_PENDING,
    INDENT_STATUS_CHOICES,
    KIND_INDENT,
    REQUISITION_KIND_CHOICES,
)
from .fields import QuantityField


class Indent(models.Model):
    """A lab indent or a central quotation to a vendor."""

    indent_id = models.AutoField(primary_key=True)
    kind = models.CharField(
        max_length=20, choices=REQUISITION_KIND_CHOICES, default=KIND_INDENT
    )
    created_by = models.CharField(max_length=150)
    creator_role = models.CharField(max_length=30, choices=CREATOR_ROLE_CHOICES)
    lab_id = models.CharField(max_length=50, blank=True, null=True)
    vendor_name = models.CharField(max_length=255, blank=True, null=True)
    total_price = models.DecimalField(
        max_digits=14, decimal_places=2, default=Decimal("0")
    )
    status = models.CharField(
        max_length=30, choices=INDENT_STATUS_CHOICES, default=INDENT_PENDING
    )
    processed_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return f"{self.kind.title()} {self.pk} ({self.status})"

    def recompute_total(self) -> Decimal:
        total = self.lines.aggregate(
            total=Sum(F("quantity") * F("price_per_unit"))
        )["total"]
        self.total_price = total or Decimal("0")
        return self.total_price

    class Meta:
        db_table = "indents"
        ordering = ["-created_at", "-indent_id"]


class IndentLine(models.Model):
    indent = models.ForeignKey(Indent, models.CASCADE, related_name="lines")
    category = models.CharField(
        max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL
    )
    item_name = models.CharField(max_length=255)
    variant = models.CharField(max_length=100, blank=True, default="")
    quantity = QuantityField()
    unit = models.CharField(max_length=50)
    price_per_unit = models.DecimalField(
        max_digits=12, decimal_places=2, blank=True, null=True
    )
    remarks = models.TextField(blank=True, default="")
    expiry_date = models.DateField(blank=True, null=True)
    allocated_quantity = QuantityField()
    is_allocated = models.BooleanField(default=False)

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return f"{self.indent_id}: {self.item_name} x {self.quantity}"

    class Meta:
        db_table = "indent_lines"
        ordering = ["id"]


class IndentComment(models.Model):
    indent = models.ForeignKey(Indent, models.CASCADE, related_name="comments")
    text = models.TextField()
    author = models.CharField(max_length=150)
    role = models.CharField(max_length=30, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "indent_comments"
        ordering = ["created_at", "id"]
