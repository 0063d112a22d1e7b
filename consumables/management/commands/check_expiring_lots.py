import logging

from django.conf import settings
from django.core.management.base import BaseCommand

from consumables.services import expiry_service

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Report lots that expire soon and lots that already expired."""

    help = "Log lots expiring within EXPIRY_ALERT_DAYS and lots already expired."

    def add_arguments(self, parser):
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Look-ahead window in days (defaults to EXPIRY_ALERT_DAYS).",
        )
        parser.add_argument("--location", default=None, help="Only check one location.")

    def handle(self, *args, **options):
        days = options["days"]
        if days is None:
            days = getattr(settings, "EXPIRY_ALERT_DAYS", 30)
        location = options["location"]

        expiring = list(expiry_service.list_expiring(days, location=location))
        expired = list(expiry_service.list_expired(location=location))
        for lot in expiring:
            logger.warning(
                "Lot %s '%s' at %s expires on %s (%s %s left)",
                lot.lot_id,
                lot.internal_name,
                lot.location,
                lot.expiry_date,
                lot.quantity,
                lot.unit,
            )
        for lot in expired:
            logger.warning(
                "Lot %s '%s' at %s expired on %s",
                lot.lot_id,
                lot.internal_name,
                lot.location,
                lot.expiry_date,
            )
        self.stdout.write(
            self.style.SUCCESS(
                f"{len(expiring)} lot(s) expiring within {days} days, {len(expired)} expired."
            )
        )
