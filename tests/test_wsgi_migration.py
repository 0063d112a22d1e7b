import sys
from unittest.mock import patch

from django.db.utils import OperationalError


def _import_wsgi():
    sys.modules.pop("labinventory.wsgi", None)
    import labinventory.wsgi  # noqa: F401

    return sys.modules["labinventory.wsgi"]


def test_wsgi_runs_migrate():
    with patch("django.core.management.call_command") as call, patch(
        "django.core.wsgi.get_wsgi_application"
    ):
        _import_wsgi()

    call.assert_called_with("migrate", interactive=False)


def test_wsgi_starts_when_database_is_down():
    with patch(
        "django.core.management.call_command", side_effect=OperationalError("down")
    ), patch("django.core.wsgi.get_wsgi_application", return_value="app"):
        module = _import_wsgi()

    assert module.application == "app"
