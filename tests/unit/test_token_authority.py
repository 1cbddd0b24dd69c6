from __future__ import annotations

from datetime import timedelta

import pytest

from hhpilot.core.tokens import TokenAuthority
from hhpilot.db.base import utcnow
from hhpilot.db.models import OAuthToken
from hhpilot.db.repositories import Repository
from hhpilot.errors import ExternalApiError, NotAuthorized


def _store(session, *, expires_in: timedelta, access: str = "stored-access") -> None:
    now = utcnow()
    session.add(OAuthToken(access_token=access, refresh_token="stored-refresh", expires_at=now + expires_in, created_at=now))
    session.commit()


def test_no_token_is_not_authorized(session, fake_hh) -> None:
    with pytest.raises(NotAuthorized):
        TokenAuthority(session, fake_hh).current_access_token()


def test_valid_token_is_returned_without_refresh(session, fake_hh) -> None:
    _store(session, expires_in=timedelta(hours=2))
    authority = TokenAuthority(session, fake_hh)

    assert authority.authorize() == "stored-access"
    assert fake_hh.token == "stored-access"
    assert fake_hh.refreshed == []


def test_token_inside_margin_is_refreshed_and_appended(session, fake_hh) -> None:
    _store(session, expires_in=timedelta(minutes=4))

    assert TokenAuthority(session, fake_hh).current_access_token() == "fresh-access"
    assert fake_hh.refreshed == ["stored-refresh"]
    latest = Repository(session).latest_token()
    assert latest.access_token == "fresh-access"
    assert session.query(OAuthToken).count() == 2


def test_only_latest_token_is_consulted(session, fake_hh) -> None:
    _store(session, expires_in=timedelta(minutes=1), access="old")
    _store(session, expires_in=timedelta(hours=1), access="new")

    assert TokenAuthority(session, fake_hh).current_access_token() == "new"
    assert fake_hh.refreshed == []


def test_refresh_failure_is_not_authorized(session, fake_hh) -> None:
    _store(session, expires_in=timedelta(seconds=-10))
    fake_hh.refresh_error = ExternalApiError("invalid_grant", status_code=400)

    with pytest.raises(NotAuthorized, match="refresh failed"):
        TokenAuthority(session, fake_hh).current_access_token()
    assert session.query(OAuthToken).count() == 1
