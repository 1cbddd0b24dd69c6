from __future__ import annotations

from datetime import date as calendar_date
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SearchSettingsPayload(BaseModel):
    search_text: str = ""
    area_ids: list[str] = Field(default_factory=list)
    salary_from: int | None = Field(default=None, ge=0)
    experience: str | None = None
    schedule: str | None = None
    employment: str | None = None
    only_with_salary: bool = False
    auto_tags_enabled: bool = True
    min_ai_score: int = Field(default=50, ge=0, le=100)
    auto_apply_enabled: bool = True
    search_interval_minutes: int = Field(default=60, ge=1)


class SearchSettingsResponse(SearchSettingsPayload):
    model_config = ConfigDict(from_attributes=True)

    id: int
    updated_at: datetime


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tag_type: str
    value: str
    is_active: bool
    search_count: int
    found_count: int
    applied_count: int


class AgentStatusResponse(BaseModel):
    running: bool
    authorized: bool
    last_search: datetime | None
    next_search_at: datetime | None
    settings: SearchSettingsResponse | None
    active_tags: list[str]


class AgentControlResponse(BaseModel):
    running: bool
    changed: bool


class AuthUrlResponse(BaseModel):
    url: str


class AuthCallbackResponse(BaseModel):
    authorized: bool
    expires_at: datetime


class VacancyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    remote_vacancy_id: str
    title: str
    company: str
    salary_from: int | None
    salary_to: int | None
    salary_currency: str | None
    url: str
    status: str
    found_at: datetime
    applied_at: datetime | None
    ai_score: int | None
    ai_recommendation: str | None
    ai_priority: int | None
    ai_match_reasons: list[str] | None
    ai_concerns: list[str] | None
    ai_salary_assessment: str | None


class VacancyPage(BaseModel):
    items: list[VacancyResponse]
    total: int
    page: int
    per_page: int


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    author_type: str
    text: str
    is_auto_response: bool
    ai_sentiment: str | None
    ai_intent: str | None
    created_at: datetime


class ChatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    remote_chat_id: str
    employer_name: str | None
    is_bot: bool
    is_human_confirmed: bool
    telegram_invited: bool
    last_message_at: datetime | None
    unread_count: int
    messages: list[ChatMessageResponse] = Field(default_factory=list)


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    remote_negotiation_id: str | None
    cover_letter: str
    status: str
    created_at: datetime


class VacancyDetailResponse(VacancyResponse):
    description: str
    applications: list[ApplicationResponse] = Field(default_factory=list)
    chats: list[ChatResponse] = Field(default_factory=list)


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_type: str
    vacancy_id: int | None
    description: str
    metadata_json: dict[str, Any]
    created_at: datetime


class DailyStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: calendar_date
    searches_count: int
    vacancies_found: int
    applications_sent: int
    invitations_received: int
    rejections_received: int
    telegram_invites_sent: int


class StatsResponse(BaseModel):
    total_vacancies: int
    applied: int
    viewed: int
    invited: int
    rejected: int
    skipped: int
    avg_ai_score: float | None
    response_rate: float
    active_chats: int
    telegram_invites: int
    today_applications: int
    week_applications: int


class GeneratedTagsResponse(BaseModel):
    queries: list[str]
    tags: list[TagResponse]
