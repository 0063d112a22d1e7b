from django.apps import AppConfig


class ConsumablesConfig(AppConfig):
    """Lab consumables: live stock, allocation and requisition workflows."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "consumables"
