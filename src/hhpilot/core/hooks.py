from __future__ import annotations

import logging
from datetime import date, datetime

import requests

from hhpilot.config import Settings, get_settings
from hhpilot.errors import ExternalApiError

logger = logging.getLogger(__name__)


class DailyHook:
    """Fires an external once-a-day task inside a small local-time window."""

    def __init__(self, settings: Settings | None = None, *, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.http = session or requests.Session()
        self.last_run: date | None = None

    def is_due(self, now: datetime) -> bool:
        in_window = now.hour == self.settings.daily_hook_hour and now.minute < self.settings.daily_hook_window_min
        return in_window and self.last_run != now.date()

    def maybe_run(self, now: datetime) -> bool:
        if not self.is_due(now):
            return False
        # one attempt per date, even when the call fails
        self.last_run = now.date()
        self.run()
        return True

    def run(self) -> None:
        url = self.settings.daily_hook_url
        if not url:
            logger.info("Daily hook has no URL configured; nothing to call")
            return

        logger.info("Calling daily hook %s", url)
        try:
            response = self.http.post(url, timeout=self.settings.hh_timeout_sec)
        except requests.RequestException as exc:
            raise ExternalApiError(f"daily hook failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise ExternalApiError("daily hook rejected", status_code=response.status_code, body=response.text)
