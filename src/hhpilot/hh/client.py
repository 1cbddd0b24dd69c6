from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

import requests

from hhpilot.config import Settings, get_settings
from hhpilot.errors import ExternalApiError, NotAuthorized
from hhpilot.types import HHMessage, HHNegotiation, HHResume, HHVacancy, TokenGrant

logger = logging.getLogger(__name__)

SEARCH_PAGE_SIZE = 100
APPLY_SUCCESS_CODES = {201, 303}


class HHClient:
    """Thin wrapper over the hh.ru REST API.

    Authenticated calls need a token installed with ``set_token``; the OAuth
    exchange and refresh calls do not.
    """

    def __init__(self, settings: Settings | None = None, *, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.http = session or requests.Session()
        self.access_token: str | None = None

    def set_token(self, token: str) -> None:
        self.access_token = token

    @staticmethod
    def authorize_url(client_id: str, redirect_uri: str, *, base_url: str = "https://hh.ru") -> str:
        query = urlencode(
            {"response_type": "code", "client_id": client_id, "redirect_uri": redirect_uri}
        )
        return f"{base_url.rstrip('/')}/oauth/authorize?{query}"

    def exchange_code(self, client_id: str, client_secret: str, code: str, redirect_uri: str) -> TokenGrant:
        return self._token_request(
            {
                "grant_type": "authorization_code",
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
            }
        )

    def refresh_token(self, client_id: str, client_secret: str, refresh: str) -> TokenGrant:
        return self._token_request(
            {
                "grant_type": "refresh_token",
                "client_id": client_id,
                "client_secret": client_secret,
                "refresh_token": refresh,
            }
        )

    def search_vacancies(
        self,
        query: str,
        *,
        area: str | None = None,
        salary: int | None = None,
        experience: str | None = None,
        schedule: str | None = None,
        employment: str | None = None,
        only_with_salary: bool = False,
    ) -> list[HHVacancy]:
        params: dict[str, Any] = {
            "text": query,
            "per_page": SEARCH_PAGE_SIZE,
            "order_by": "publication_time",
        }
        if area:
            params["area"] = area
        if salary:
            params["salary"] = salary
        if experience:
            params["experience"] = experience
        if schedule:
            params["schedule"] = schedule
        if employment:
            params["employment"] = employment
        if only_with_salary:
            params["only_with_salary"] = "true"

        data = self._json(self._request("GET", "/vacancies", params=params))
        return [HHVacancy.from_api(item) for item in self._items(data) if item.get("id")]

    def get_vacancy(self, vacancy_id: str) -> HHVacancy:
        return HHVacancy.from_api(self._json(self._request("GET", f"/vacancies/{vacancy_id}")))

    def list_resumes(self) -> list[HHResume]:
        data = self._json(self._request("GET", "/resumes/mine"))
        return [HHResume.from_api(item) for item in self._items(data) if item.get("id")]

    def list_negotiations(self) -> list[HHNegotiation]:
        data = self._json(self._request("GET", "/negotiations"))
        return [HHNegotiation.from_api(item) for item in self._items(data) if item.get("id")]

    def apply(self, vacancy_id: str, cover_letter: str, resume_id: str) -> str:
        response = self._request(
            "POST",
            "/negotiations",
            json={"vacancy_id": vacancy_id, "resume_id": resume_id, "message": cover_letter},
            accept={200, 201, 202, 204, 303},
        )

        if response.status_code in APPLY_SUCCESS_CODES:
            location = response.headers.get("Location", "")
            negotiation_id = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
            if negotiation_id:
                return negotiation_id
        else:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            if isinstance(payload, dict) and payload.get("id"):
                return str(payload["id"])

        logger.warning("No negotiation id returned for vacancy=%s; using placeholder", vacancy_id)
        return f"neg_{vacancy_id}"

    def list_messages(self, negotiation_id: str) -> list[HHMessage]:
        data = self._json(self._request("GET", f"/negotiations/{negotiation_id}/messages"))
        return [HHMessage.from_api(item) for item in self._items(data)]

    def send_message(self, negotiation_id: str, text: str) -> None:
        self._request("POST", f"/negotiations/{negotiation_id}/messages", json={"message": text})

    def _headers(self) -> dict[str, str]:
        if not self.access_token:
            raise NotAuthorized("job board token is not set")
        return {
            "Authorization": f"Bearer {self.access_token}",
            "HH-User-Agent": self.settings.hh_user_agent,
            "User-Agent": self.settings.hh_user_agent,
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        accept: set[int] | None = None,
    ) -> requests.Response:
        url = f"{self.settings.hh_api_base_url.rstrip('/')}{path}"
        try:
            response = self.http.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._headers(),
                timeout=self.settings.hh_timeout_sec,
                allow_redirects=False,
            )
        except requests.RequestException as exc:
            raise ExternalApiError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 401:
            raise NotAuthorized(f"job board rejected token on {method} {path}")
        ok = response.status_code in accept if accept is not None else 200 <= response.status_code < 300
        if not ok:
            raise ExternalApiError(
                f"job board error on {method} {path}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ExternalApiError(
                "job board returned a non-JSON body", status_code=response.status_code, body=response.text
            ) from exc
        if not isinstance(data, dict):
            raise ExternalApiError(
                "job board returned an unexpected payload", status_code=response.status_code, body=response.text
            )
        return data

    @staticmethod
    def _items(data: dict[str, Any]) -> list[dict[str, Any]]:
        return [item for item in data.get("items") or [] if isinstance(item, dict)]

    def _token_request(self, form: dict[str, str]) -> TokenGrant:
        url = f"{self.settings.hh_oauth_base_url.rstrip('/')}/oauth/token"
        try:
            response = self.http.post(
                url,
                data=form,
                headers={"User-Agent": self.settings.hh_user_agent},
                timeout=self.settings.hh_timeout_sec,
            )
        except requests.RequestException as exc:
            raise ExternalApiError(f"token request failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise ExternalApiError(
                f"token request rejected grant_type={form['grant_type']}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
            return TokenGrant(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                expires_in=int(data["expires_in"]),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise ExternalApiError("malformed token response", body=response.text) from exc
