from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from hhpilot.config import Settings, get_settings
from hhpilot.db.base import as_utc, utcnow
from hhpilot.db.repositories import Repository
from hhpilot.errors import ExternalApiError, NotAuthorized
from hhpilot.hh.client import HHClient

logger = logging.getLogger(__name__)


class TokenAuthority:
    """Hands out a usable job-board access token, refreshing it shortly before expiry.

    Refreshed pairs are appended, never updated in place: the newest row is
    the only one consulted, so two racing refreshes both leave a valid state.
    """

    def __init__(
        self,
        session: Session,
        hh: HHClient,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repo = Repository(session)
        self.hh = hh
        self.settings = settings or get_settings()
        self.clock = clock

    def current_access_token(self) -> str:
        token = self.repo.latest_token()
        if token is None:
            raise NotAuthorized("no job board token stored; complete the OAuth flow first")

        now = self.clock()
        margin = timedelta(seconds=self.settings.token_refresh_margin_sec)
        if as_utc(token.expires_at) > now + margin:
            return token.access_token

        logger.info("Refreshing job board token expiring at %s", token.expires_at)
        try:
            grant = self.hh.refresh_token(
                self.settings.hh_client_id,
                self.settings.hh_client_secret,
                token.refresh_token,
            )
        except ExternalApiError as exc:
            raise NotAuthorized(f"token refresh failed: {exc}") from exc

        fresh = self.repo.add_token(grant, now=now)
        return fresh.access_token

    def authorize(self) -> str:
        """Installs the current token on the client and returns it."""
        access = self.current_access_token()
        self.hh.set_token(access)
        return access
