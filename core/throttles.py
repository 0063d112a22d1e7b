"""DRF throttles that keep their counters in the injectable key-value store."""

from rest_framework.throttling import UserRateThrottle

from .kvstore import get_kv_store


class AllocationRateThrottle(UserRateThrottle):
    """Limit allocation requests per user (``allocation`` rate)."""

    scope = "allocation"

    @property
    def cache(self):
        return get_kv_store()
