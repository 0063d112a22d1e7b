import logging
import re

from django.conf import settings
from django.contrib.auth.views import redirect_to_login

logger = logging.getLogger(__name__)


class LoginRequiredMiddleware:
    """Send anonymous browser traffic to the admin login.

    Paths matching ``LOGIN_EXEMPT_URLS`` pass through untouched; the stock
    API authenticates through DRF and answers 401/403 itself.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.exempt_urls = [
            re.compile(expr) for expr in getattr(settings, "LOGIN_EXEMPT_URLS", [])
        ]

    def _is_exempt(self, path: str) -> bool:
        return any(pattern.match(path) for pattern in self.exempt_urls)

    def __call__(self, request):
        if request.user.is_authenticated:
            return self.get_response(request)
        path = request.path_info.lstrip("/")
        if self._is_exempt(path):
            return self.get_response(request)
        logger.debug("Redirecting anonymous request for %s to login", path)
        return redirect_to_login(request.get_full_path(), settings.LOGIN_URL)
