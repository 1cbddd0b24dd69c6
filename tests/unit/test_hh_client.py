from __future__ import annotations

from typing import Any

import pytest
import requests

from hhpilot.config import Settings
from hhpilot.errors import ExternalApiError, NotAuthorized
from hhpilot.hh.client import HHClient


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, headers: dict | None = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class FakeSession:
    def __init__(self, *responses: FakeResponse | Exception):
        self.responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def _next(self, **call) -> FakeResponse:
        self.calls.append(call)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method: str, url: str, **kwargs) -> FakeResponse:
        return self._next(method=method, url=url, **kwargs)

    def post(self, url: str, **kwargs) -> FakeResponse:
        return self._next(method="POST", url=url, **kwargs)


def _client(*responses) -> tuple[HHClient, FakeSession]:
    session = FakeSession(*responses)
    settings = Settings(hh_api_base_url="https://api.test", hh_oauth_base_url="https://oauth.test", hh_user_agent="ua/1")
    client = HHClient(settings, session=session)
    client.set_token("access-1")
    return client, session


def test_authorize_url_is_plain_string_construction() -> None:
    url = HHClient.authorize_url("client", "https://me.test/callback", base_url="https://hh.ru/")
    assert url == (
        "https://hh.ru/oauth/authorize?response_type=code&client_id=client"
        "&redirect_uri=https%3A%2F%2Fme.test%2Fcallback"
    )


def test_search_sends_filters_and_identity() -> None:
    client, session = _client(FakeResponse(payload={"items": [{"id": "1", "name": "Dev"}, {"name": "no id"}]}))
    results = client.search_vacancies("python", area="1,2", salary=100000, only_with_salary=True)

    assert [item.id for item in results] == ["1"]
    call = session.calls[0]
    assert call["url"] == "https://api.test/vacancies"
    assert call["params"]["per_page"] == 100
    assert call["params"]["order_by"] == "publication_time"
    assert call["params"]["area"] == "1,2"
    assert call["params"]["only_with_salary"] == "true"
    assert "experience" not in call["params"]
    assert call["headers"]["Authorization"] == "Bearer access-1"
    assert call["headers"]["HH-User-Agent"] == "ua/1"


def test_apply_reads_negotiation_id_from_location() -> None:
    client, session = _client(FakeResponse(201, headers={"Location": "/negotiations/987654"}))
    assert client.apply("55", "letter", "resume-1") == "987654"
    assert session.calls[0]["json"] == {"vacancy_id": "55", "resume_id": "resume-1", "message": "letter"}


def test_apply_treats_see_other_as_success() -> None:
    client, _ = _client(FakeResponse(303, headers={"Location": "https://api.test/negotiations/111/"}))
    assert client.apply("55", "letter", "resume-1") == "111"


def test_apply_falls_back_to_placeholder_id(caplog: pytest.LogCaptureFixture) -> None:
    client, _ = _client(FakeResponse(201))
    with caplog.at_level("WARNING"):
        assert client.apply("55", "letter", "resume-1") == "neg_55"
    assert "placeholder" in caplog.text


def test_unauthorized_maps_to_not_authorized() -> None:
    client, _ = _client(FakeResponse(401, text="bad token"))
    with pytest.raises(NotAuthorized):
        client.list_resumes()


def test_error_status_carries_code_and_body() -> None:
    client, _ = _client(FakeResponse(403, text='{"errors": [{"type": "negotiations"}]}'))
    with pytest.raises(ExternalApiError) as excinfo:
        client.apply("55", "letter", "resume-1")
    assert excinfo.value.status_code == 403
    assert "negotiations" in excinfo.value.body


def test_transport_failure_maps_to_external_error() -> None:
    client, _ = _client(requests.ConnectionError("boom"))
    with pytest.raises(ExternalApiError):
        client.list_negotiations()


def test_calls_without_token_are_not_authorized() -> None:
    client, session = _client()
    client.set_token("")
    with pytest.raises(NotAuthorized):
        client.get_vacancy("1")
    assert session.calls == []


def test_refresh_token_posts_form_and_parses_grant() -> None:
    client, session = _client(
        FakeResponse(payload={"access_token": "a2", "refresh_token": "r2", "expires_in": 1209600})
    )
    grant = client.refresh_token("cid", "secret", "r1")

    assert grant.access_token == "a2"
    assert grant.expires_in == 1209600
    call = session.calls[0]
    assert call["url"] == "https://oauth.test/oauth/token"
    assert call["data"]["grant_type"] == "refresh_token"
    assert call["data"]["refresh_token"] == "r1"


def test_token_endpoint_rejection_is_external_error() -> None:
    client, _ = _client(FakeResponse(400, text="invalid_grant"))
    with pytest.raises(ExternalApiError):
        client.exchange_code("cid", "secret", "code", "https://me.test/callback")


def test_messages_keep_remote_order() -> None:
    payload = {
        "items": [
            {"id": "m1", "text": "first", "author": {"participant_type": "employer"}},
            {"id": "m2", "text": "second", "author": {"participant_type": "applicant"}},
        ]
    }
    client, _ = _client(FakeResponse(payload=payload))
    messages = client.list_messages("n1")
    assert [(m.id, m.author_type) for m in messages] == [("m1", "employer"), ("m2", "applicant")]


def test_non_json_body_is_external_error() -> None:
    client, _ = _client(FakeResponse(200, text="<html>maintenance</html>"))
    with pytest.raises(ExternalApiError) as excinfo:
        client.get_vacancy("1")
    assert excinfo.value.status_code == 200
    assert "maintenance" in excinfo.value.body


def test_non_object_payload_is_external_error() -> None:
    client, _ = _client(FakeResponse(200, payload=["not", "an", "object"], text='["not", "an", "object"]'))
    with pytest.raises(ExternalApiError):
        client.list_messages("n1")


def test_malformed_list_items_are_dropped() -> None:
    client, _ = _client(FakeResponse(payload={"items": ["junk", {"id": "n1", "state": {"id": "response"}}]}))
    assert [item.id for item in client.list_negotiations()] == ["n1"]
