import os
import sys
from datetime import date
from decimal import Decimal

import django
import pytest

# Ensure project root is on sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "labinventory.settings")
django.setup()

from consumables.constants import CATEGORY_CHEMICAL, CENTRAL_STORE  # noqa: E402
from consumables.models import ItemMaster, LiveStock  # noqa: E402
from consumables.services import intake_service  # noqa: E402
from core.kvstore import InMemoryKeyValueStore, set_kv_store  # noqa: E402


@pytest.fixture(autouse=True)
def kv_store():
    """Give every test its own empty key-value store."""

    store = InMemoryKeyValueStore()
    set_kv_store(store)
    yield store
    set_kv_store(None)


@pytest.fixture
def lot_factory():
    """Create a master and its lot directly, bypassing intake naming."""

    def create_lot(**kwargs):
        display_name = kwargs.pop("display_name", "Acetone")
        quantity = Decimal(str(kwargs.pop("quantity", 10)))
        defaults = {
            "category": CATEGORY_CHEMICAL,
            "variant": "",
            "unit": "ml",
            "location": CENTRAL_STORE,
            "expiry_date": None,
            "internal_name": display_name,
            "is_allocated": False,
        }
        defaults.update(kwargs)
        master = ItemMaster.objects.create(
            category=defaults["category"],
            internal_name=defaults["internal_name"],
            display_name=display_name,
            variant=defaults["variant"],
            quantity=quantity,
            unit=defaults["unit"],
            expiry_date=defaults["expiry_date"],
            vendor=defaults.pop("vendor", ""),
        )
        return LiveStock.objects.create(
            master=master,
            display_name=display_name,
            quantity=quantity,
            original_quantity=quantity,
            **defaults,
        )

    return create_lot


@pytest.fixture
def receive():
    """Receive stock through the intake service."""

    def _receive(display_name="Acetone", quantity=10, unit="ml", **kwargs):
        return intake_service.intake(display_name, quantity, unit, **kwargs)

    return _receive


@pytest.fixture
def acetone_lots(lot_factory):
    """Two central Acetone lots: the bare-named one expires first."""

    first = lot_factory(quantity=10, expiry_date=date(2025, 1, 1))
    second = lot_factory(
        quantity=10, expiry_date=date(2025, 6, 1), internal_name="Acetone - A"
    )
    return first, second


@pytest.fixture(autouse=True)
def logged_in_client(client, db):
    """Log in the default admin user for tests that require authentication."""

    from django.contrib.auth import get_user_model

    User = get_user_model()
    user, _ = User.objects.get_or_create(username="admin")
    if not user.has_usable_password():
        user.set_password("admin")
        user.save()
    client.force_login(user)
    yield
    client.logout()
