from django.db import models

from ..constants import (
    CATEGORY_CHEMICAL,
    CATEGORY_CHOICES,
    REQUEST_PENDING,
    REQUEST_STATUS_CHOICES,
    SESSION_CHOICES,
)
from .fields import QuantityField


class ExperimentRequest(models.Model):
    """Faculty request for the consumables of one or more experiments."""

    request_id = models.AutoField(primary_key=True)
    faculty = models.CharField(max_length=150)
    lab_id = models.CharField(max_length=50)
    status = models.CharField(
        max_length=30, choices=REQUEST_STATUS_CHOICES, default=REQUEST_PENDING
    )
    processed_by = models.CharField(max_length=150, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return f"Request {self.pk} for {self.lab_id} ({self.status})"

    class Meta:
        db_table = "experiment_requests"
        ordering = ["-created_at", "-request_id"]


class RequestExperiment(models.Model):
    request = models.ForeignKey(
        ExperimentRequest, models.CASCADE, related_name="experiments"
    )
    name = models.CharField(max_length=255)
    date = models.DateField(blank=True, null=True)
    session = models.CharField(max_length=20, choices=SESSION_CHOICES, blank=True)

    class Meta:
        db_table = "request_experiments"
        ordering = ["id"]


class RequestLine(models.Model):
    experiment = models.ForeignKey(
        RequestExperiment, models.CASCADE, related_name="lines"
    )
    category = models.CharField(
        max_length=20, choices=CATEGORY_CHOICES, default=CATEGORY_CHEMICAL
    )
    item_name = models.CharField(max_length=255)
    variant = models.CharField(max_length=100, blank=True, default="")
    quantity = QuantityField()
    unit = models.CharField(max_length=50, blank=True, default="")
    item_tag = models.UUIDField(blank=True, null=True)
    allocated_quantity = QuantityField()
    is_allocated = models.BooleanField(default=False)

    def __str__(self) -> str:  # pragma: no cover - simple representation
        return f"{self.item_name} x {self.quantity}"

    class Meta:
        db_table = "request_lines"
        ordering = ["id"]


class LineAllocation(models.Model):
    line = models.ForeignKey(RequestLine, models.CASCADE, related_name="history")
    quantity = QuantityField()
    allocated_by = models.CharField(max_length=150, blank=True, default="")
    allocated_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "request_line_allocations"
        ordering = ["allocated_at", "id"]
