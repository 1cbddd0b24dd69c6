from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

VacancyStatus = Literal["found", "skipped", "applied", "viewed", "invited", "rejected", "ignored"]
Recommendation = Literal["apply", "consider", "skip"]
AuthorType = Literal["applicant", "employer"]
EventType = Literal["system", "search", "ai", "apply", "response", "chat", "invite", "error"]


class TokenGrant(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int


class HHVacancy(BaseModel):
    id: str
    name: str = "Unknown"
    employer_name: str = "Unknown"
    salary_from: int | None = None
    salary_to: int | None = None
    salary_currency: str | None = None
    alternate_url: str = ""
    description: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "HHVacancy":
        salary = payload.get("salary") or {}
        employer = payload.get("employer") or {}
        return cls(
            id=str(payload["id"]),
            name=payload.get("name") or "Unknown",
            employer_name=employer.get("name") or "Unknown",
            salary_from=salary.get("from"),
            salary_to=salary.get("to"),
            salary_currency=salary.get("currency"),
            alternate_url=payload.get("alternate_url") or "",
            description=payload.get("description") or "",
        )


class HHResume(BaseModel):
    id: str
    title: str = ""

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "HHResume":
        return cls(id=str(payload["id"]), title=payload.get("title") or "")


class HHNegotiation(BaseModel):
    id: str
    state: str = ""
    vacancy_id: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "HHNegotiation":
        state = payload.get("state") or {}
        vacancy = payload.get("vacancy") or {}
        vacancy_id = vacancy.get("id")
        return cls(
            id=str(payload["id"]),
            state=str(state.get("id") or ""),
            vacancy_id=str(vacancy_id) if vacancy_id is not None else None,
        )


class HHMessage(BaseModel):
    id: str | None = None
    text: str = ""
    author_type: AuthorType = "employer"
    created_at: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "HHMessage":
        author = payload.get("author") or {}
        participant = author.get("participant_type") or author.get("type") or ""
        message_id = payload.get("id")
        return cls(
            id=str(message_id) if message_id is not None else None,
            text=payload.get("text") or "",
            author_type="applicant" if participant == "applicant" else "employer",
            created_at=payload.get("created_at"),
        )


class SearchTags(BaseModel):
    primary_tags: list[str] = Field(default_factory=list)
    skill_tags: list[str] = Field(default_factory=list)
    industry_tags: list[str] = Field(default_factory=list)
    suggested_queries: list[str]

    @field_validator("primary_tags", "skill_tags", "industry_tags", "suggested_queries", mode="before")
    @classmethod
    def coerce_strings(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("expected a list of strings")
        return [str(item) for item in value]


class VacancyEvaluation(BaseModel):
    score: int
    recommendation: Recommendation
    priority: int = 0
    match_reasons: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    salary_assessment: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, value: Any) -> int:
        try:
            score = int(float(value))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"score is not a number: {value!r}") from exc
        return max(0, min(100, score))

    @field_validator("recommendation", mode="before")
    @classmethod
    def normalize_recommendation(cls, value: Any) -> str:
        text = str(value).strip().lower()
        if text == "maybe":
            return "consider"
        return text

    @field_validator("priority", mode="before")
    @classmethod
    def coerce_priority(cls, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0

    @field_validator("match_reasons", "concerns", mode="before")
    @classmethod
    def coerce_reasons(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            return [str(value)]
        return [str(item) for item in value]

    @field_validator("salary_assessment", mode="before")
    @classmethod
    def coerce_assessment(cls, value: Any) -> str:
        return "" if value is None else str(value)


class MessageAnalysis(BaseModel):
    is_bot: bool
    should_invite_telegram: bool = False
    sentiment: str | None = None
    intent: str | None = None


class ResumeProjection(BaseModel):
    text: str
    messaging_handle: str
    email: str


class SearchReport(BaseModel):
    queries: list[str] = Field(default_factory=list)
    found: int = 0
    evaluated: int = 0
    applied: int = 0
    skipped_reason: str | None = None


class ChatReport(BaseModel):
    chats_checked: int = 0
    messages_saved: int = 0
    auto_replies: int = 0
    invites: int = 0


class StatusReport(BaseModel):
    negotiations: int = 0
    transitions: int = 0


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)
