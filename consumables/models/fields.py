from decimal import Decimal

from django.db import models


class QuantityField(models.DecimalField):
    """DecimalField for stock quantities; empty values read back as zero."""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("max_digits", 12)
        kwargs.setdefault("decimal_places", 3)
        kwargs.setdefault("default", Decimal("0"))
        super().__init__(*args, **kwargs)

    def to_python(self, value):
        if value in self.empty_values:
            return Decimal("0")
        return super().to_python(value)

    def from_db_value(self, value, expression, connection):
        if value is None:
            return Decimal("0")
        return self.to_python(value)
