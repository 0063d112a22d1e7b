"""
WSGI config for the labinventory project.

It exposes the WSGI callable as a module-level variable named ``application``.
"""

import os

from django.core.management import call_command
from django.core.wsgi import get_wsgi_application
from django.db.utils import OperationalError

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "labinventory.settings")

application = get_wsgi_application()

try:
    call_command("migrate", interactive=False)
except OperationalError:
    # Database may be unavailable when the server starts; continue without failing.
    pass
