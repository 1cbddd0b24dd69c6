from __future__ import annotations

import os
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="hhpilot-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["DATA_DIR"] = str(_TMP_DIR)
os.environ["APP_ENV"] = "test"
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["DAILY_HOOK_URL"] = ""

from hhpilot.db.base import Base, utcnow  # noqa: E402
from hhpilot.db.models import (  # noqa: E402
    OAuthToken,
    PortfolioAbout,
    PortfolioContact,
    PortfolioExperience,
    PortfolioSkill,
    SearchSettings,
)
from hhpilot.db.session import SessionLocal, engine  # noqa: E402
from hhpilot.errors import ExternalApiError, ParseError  # noqa: E402
from hhpilot.types import (  # noqa: E402
    HHMessage,
    HHNegotiation,
    HHResume,
    HHVacancy,
    MessageAnalysis,
    SearchTags,
    TokenGrant,
    VacancyEvaluation,
)


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def session():
    with SessionLocal() as db:
        yield db


class FakeHH:
    """In-memory job board: records every call the agent makes."""

    def __init__(self) -> None:
        self.token: str | None = None
        self.search_results: dict[str, list[HHVacancy]] = {}
        self.details: dict[str, HHVacancy] = {}
        self.resumes = [HHResume(id="resume-1", title="Backend developer")]
        self.negotiations: list[HHNegotiation] = []
        self.messages: dict[str, list[HHMessage]] = {}
        self.failing_searches: set[str] = set()
        self.failing_applies: set[str] = set()
        self.failing_details: set[str] = set()
        self.apply_errors: dict[str, Exception] = {}
        self.send_error: Exception | None = None
        self.search_calls: list[str] = []
        self.applied: list[tuple[str, str, str]] = []
        self.sent: list[tuple[str, str]] = []
        self.refreshed: list[str] = []
        self.refresh_error: Exception | None = None

    def set_token(self, token: str) -> None:
        self.token = token

    def refresh_token(self, client_id: str, client_secret: str, refresh: str) -> TokenGrant:
        self.refreshed.append(refresh)
        if self.refresh_error:
            raise self.refresh_error
        return TokenGrant(access_token="fresh-access", refresh_token="fresh-refresh", expires_in=3600)

    def add_vacancy(self, query: str, vacancy_id: str, name: str, **fields) -> HHVacancy:
        vacancy = HHVacancy(id=vacancy_id, name=name, employer_name=fields.pop("employer_name", "Acme"), **fields)
        self.search_results.setdefault(query, []).append(vacancy)
        self.details[vacancy_id] = vacancy.model_copy(update={"description": f"{name} description"})
        return vacancy

    def search_vacancies(self, query: str, **filters) -> list[HHVacancy]:
        self.search_calls.append(query)
        if query in self.failing_searches:
            raise ExternalApiError("search failed", status_code=500)
        return list(self.search_results.get(query, []))

    def get_vacancy(self, vacancy_id: str) -> HHVacancy:
        if vacancy_id in self.failing_details:
            raise ExternalApiError(
                "job board returned a non-JSON body", status_code=200, body="<html>maintenance</html>"
            )
        return self.details[vacancy_id]

    def list_resumes(self) -> list[HHResume]:
        return list(self.resumes)

    def list_negotiations(self) -> list[HHNegotiation]:
        return list(self.negotiations)

    def apply(self, vacancy_id: str, cover_letter: str, resume_id: str) -> str:
        if vacancy_id in self.failing_applies:
            raise ExternalApiError("apply failed", status_code=400)
        if vacancy_id in self.apply_errors:
            raise self.apply_errors[vacancy_id]
        self.applied.append((vacancy_id, cover_letter, resume_id))
        return f"neg-{vacancy_id}"

    def list_messages(self, negotiation_id: str) -> list[HHMessage]:
        return list(self.messages.get(negotiation_id, []))

    def send_message(self, negotiation_id: str, text: str) -> None:
        if self.send_error:
            raise self.send_error
        self.sent.append((negotiation_id, text))


class FakeAssistant:
    """Scripted LLM: evaluations keyed by vacancy title, analyses keyed by message text."""

    def __init__(self) -> None:
        self.tags: SearchTags | Exception = SearchTags(suggested_queries=[])
        self.evaluations: dict[str, VacancyEvaluation | Exception] = {}
        self.analyses: dict[str, MessageAnalysis | Exception] = {}
        self.calls: list[str] = []

    def generate_search_tags(self, resume_text: str) -> SearchTags:
        self.calls.append("tags")
        if isinstance(self.tags, Exception):
            raise self.tags
        return self.tags

    def evaluate_vacancy(self, *, title: str, **kwargs) -> VacancyEvaluation:
        self.calls.append("evaluate")
        result = self.evaluations.get(title, ParseError("no evaluation scripted"))
        if isinstance(result, Exception):
            raise result
        return result

    def generate_cover_letter(self, *, title: str, **kwargs) -> str:
        self.calls.append("cover_letter")
        return f"Cover letter for {title}"

    def generate_chat_intro(self, **kwargs) -> str:
        self.calls.append("intro")
        return "Hello, I just applied."

    def analyze_message(self, *, text: str, chat_history: str) -> MessageAnalysis:
        self.calls.append("analyze")
        result = self.analyses.get(text, ParseError("no analysis scripted"))
        if isinstance(result, Exception):
            raise result
        return result

    def generate_chat_response(self, *, text: str, **kwargs) -> str:
        self.calls.append("response")
        return "Thanks for reaching out."

    def generate_telegram_invite(self, **kwargs) -> str:
        self.calls.append("invite")
        return "Let's continue in Telegram: https://t.me/candidate"


@pytest.fixture
def fake_hh() -> FakeHH:
    return FakeHH()


@pytest.fixture
def fake_assistant() -> FakeAssistant:
    return FakeAssistant()


@pytest.fixture
def authorized(session) -> OAuthToken:
    now = utcnow()
    token = OAuthToken(
        access_token="stored-access",
        refresh_token="stored-refresh",
        expires_at=now + timedelta(days=1),
        created_at=now,
    )
    session.add(token)
    session.commit()
    return token


@pytest.fixture
def portfolio(session) -> None:
    session.add(PortfolioAbout(description="Backend engineer with 6 years of Python."))
    session.add(PortfolioExperience(title="Senior Developer", company="Initech", description="Payments API"))
    session.add(PortfolioSkill(name="Python", category="languages"))
    session.add(PortfolioSkill(name="PostgreSQL", category="databases"))
    session.add(PortfolioContact(type="telegram", value="https://t.me/candidate"))
    session.add(PortfolioContact(type="email", value="candidate@example.com"))
    session.commit()


@pytest.fixture
def search_settings(session) -> SearchSettings:
    row = SearchSettings(auto_tags_enabled=True, auto_apply_enabled=True, min_ai_score=50)
    session.add(row)
    session.commit()
    return row
