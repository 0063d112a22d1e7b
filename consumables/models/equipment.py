import uuid

from django.db import models

from ..constants import EQUIPMENT_AVAILABLE, EQUIPMENT_STATUS_CHOICES
from .items import ItemMaster


class EquipmentUnit(models.Model):
    """A single physical piece of equipment, tracked by its tag."""

    unit_id = models.AutoField(primary_key=True)
    item_tag = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    master = models.ForeignKey(
        ItemMaster, models.PROTECT, related_name="units", db_column="master_id"
    )
    name = models.CharField(max_length=255, db_index=True)
    variant = models.CharField(max_length=100, blank=True, default="")
    unit = models.CharField(max_length=50, blank=True, default="nos")
    location = models.CharField(max_length=50, db_index=True)
    status = models.CharField(
        max_length=20, choices=EQUIPMENT_STATUS_CHOICES, default=EQUIPMENT_AVAILABLE
    )
    assigned_to = models.CharField(max_length=150, blank=True, default="")
    warranty_until = models.DateField(blank=True, null=True)
    maintenance_cycle_days = models.PositiveIntegerField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return f"{self.name} [{self.item_tag}]"

    class Meta:
        db_table = "equipment_units"
        ordering = ["created_at", "unit_id"]
