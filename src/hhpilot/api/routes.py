from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from hhpilot.api.deps import get_agent, get_assistant, get_db, get_hh
from hhpilot.api.schemas import (
    ActivityResponse,
    AgentControlResponse,
    AgentStatusResponse,
    ApplicationResponse,
    AuthCallbackResponse,
    AuthUrlResponse,
    ChatMessageResponse,
    ChatResponse,
    DailyStatsResponse,
    GeneratedTagsResponse,
    SearchSettingsPayload,
    SearchSettingsResponse,
    StatsResponse,
    TagResponse,
    VacancyDetailResponse,
    VacancyPage,
    VacancyResponse,
)
from hhpilot.config import get_settings
from hhpilot.core.resume import ResumeProjector
from hhpilot.core.supervisor import Supervisor
from hhpilot.db.base import as_utc
from hhpilot.db.repositories import Repository
from hhpilot.errors import AgentError, ConfigMissing, ExternalApiError
from hhpilot.hh.client import HHClient
from hhpilot.llm.assistant import JobAssistant

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


# agent control


@router.post("/agent/start", response_model=AgentControlResponse)
def start_agent(agent: Supervisor = Depends(get_agent)) -> AgentControlResponse:
    changed = agent.start()
    return AgentControlResponse(running=agent.is_running(), changed=changed)


@router.post("/agent/stop", response_model=AgentControlResponse)
def stop_agent(agent: Supervisor = Depends(get_agent)) -> AgentControlResponse:
    changed = agent.stop()
    return AgentControlResponse(running=agent.is_running(), changed=changed)


@router.get("/agent/status", response_model=AgentStatusResponse)
def agent_status(db: Session = Depends(get_db), agent: Supervisor = Depends(get_agent)) -> AgentStatusResponse:
    repo = Repository(db)
    search_settings = repo.get_search_settings()
    last_search = repo.latest_found_at()
    next_search_at = None
    if last_search is not None and search_settings is not None:
        next_search_at = last_search + timedelta(minutes=search_settings.search_interval_minutes)

    return AgentStatusResponse(
        running=agent.is_running(),
        authorized=repo.latest_token() is not None,
        last_search=last_search,
        next_search_at=next_search_at,
        settings=SearchSettingsResponse.model_validate(search_settings) if search_settings else None,
        active_tags=repo.active_query_tags(),
    )


# oauth


@router.get("/auth/hh", response_model=AuthUrlResponse)
def hh_authorize_url() -> AuthUrlResponse:
    settings = get_settings()
    if not settings.hh_client_id:
        raise HTTPException(status_code=503, detail="HH_CLIENT_ID is not configured")
    url = HHClient.authorize_url(
        settings.hh_client_id,
        settings.hh_redirect_uri,
        base_url=settings.hh_oauth_base_url,
    )
    return AuthUrlResponse(url=url)


@router.get("/auth/hh/callback", response_model=AuthCallbackResponse)
def hh_callback(
    code: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    hh: HHClient = Depends(get_hh),
) -> AuthCallbackResponse:
    settings = get_settings()
    try:
        grant = hh.exchange_code(settings.hh_client_id, settings.hh_client_secret, code, settings.hh_redirect_uri)
    except ExternalApiError as exc:
        logger.warning("OAuth code exchange failed: %s", exc)
        raise HTTPException(status_code=502, detail="Token exchange failed") from exc

    repo = Repository(db)
    token = repo.add_token(grant)
    repo.log_activity("system", "job board account authorized")
    return AuthCallbackResponse(authorized=True, expires_at=as_utc(token.expires_at))


# settings and tags


@router.get("/settings", response_model=SearchSettingsResponse)
def get_search_settings(db: Session = Depends(get_db)) -> SearchSettingsResponse:
    repo = Repository(db)
    repo.ensure_search_settings()
    return SearchSettingsResponse.model_validate(repo.get_search_settings())


@router.put("/settings", response_model=SearchSettingsResponse)
def put_search_settings(payload: SearchSettingsPayload, db: Session = Depends(get_db)) -> SearchSettingsResponse:
    row = Repository(db).upsert_search_settings(payload.model_dump())
    return SearchSettingsResponse.model_validate(row)


@router.get("/tags", response_model=list[TagResponse])
def list_tags(db: Session = Depends(get_db)) -> list[TagResponse]:
    return [TagResponse.model_validate(tag) for tag in Repository(db).list_tags()]


@router.post("/tags/{tag_id}/toggle", response_model=TagResponse)
def toggle_tag(tag_id: int, db: Session = Depends(get_db)) -> TagResponse:
    tag = Repository(db).toggle_tag(tag_id)
    if tag is None:
        raise HTTPException(status_code=404, detail="Tag not found")
    return TagResponse.model_validate(tag)


@router.post("/tags/generate", response_model=GeneratedTagsResponse)
def generate_tags(
    db: Session = Depends(get_db),
    assistant: JobAssistant = Depends(get_assistant),
) -> GeneratedTagsResponse:
    repo = Repository(db)
    try:
        resume = ResumeProjector(db).require()
    except ConfigMissing as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    try:
        tags = assistant.generate_search_tags(resume.text)
    except AgentError as exc:
        logger.warning("Tag generation failed: %s", exc)
        raise HTTPException(status_code=502, detail="Tag generation failed") from exc

    rows = [repo.upsert_tag(query.strip()) for query in tags.suggested_queries if query.strip()]
    repo.log_activity(
        "ai",
        f"generated {len(tags.suggested_queries)} queries",
        metadata={"queries": tags.suggested_queries},
    )
    return GeneratedTagsResponse(
        queries=tags.suggested_queries,
        tags=[TagResponse.model_validate(row) for row in rows],
    )


# vacancies


@router.get("/vacancies", response_model=VacancyPage)
def list_vacancies(
    status: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> VacancyPage:
    rows, total = Repository(db).list_vacancies(status=status, limit=per_page, offset=(page - 1) * per_page)
    return VacancyPage(
        items=[VacancyResponse.model_validate(row) for row in rows],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/vacancies/{vacancy_id}", response_model=VacancyDetailResponse)
def get_vacancy(vacancy_id: int, db: Session = Depends(get_db)) -> VacancyDetailResponse:
    repo = Repository(db)
    vacancy = repo.get_vacancy(vacancy_id)
    if vacancy is None:
        raise HTTPException(status_code=404, detail="Vacancy not found")

    chats = []
    for chat in repo.chats_for(vacancy.id):
        item = ChatResponse.model_validate(chat)
        item.messages = [ChatMessageResponse.model_validate(msg) for msg in repo.saved_messages(chat.id)]
        chats.append(item)

    base = VacancyResponse.model_validate(vacancy).model_dump()
    return VacancyDetailResponse(
        **base,
        description=vacancy.description,
        applications=[ApplicationResponse.model_validate(app) for app in repo.applications_for(vacancy.id)],
        chats=chats,
    )


@router.post("/vacancies/{vacancy_id}/ignore", response_model=VacancyResponse)
def ignore_vacancy(vacancy_id: int, db: Session = Depends(get_db)) -> VacancyResponse:
    vacancy = Repository(db).ignore_vacancy(vacancy_id)
    if vacancy is None:
        raise HTTPException(status_code=404, detail="Vacancy not found")
    return VacancyResponse.model_validate(vacancy)


# activity and stats


@router.get("/activity", response_model=list[ActivityResponse])
def list_activity(
    limit: int = Query(50, ge=1, le=500),
    event_type: str | None = None,
    db: Session = Depends(get_db),
) -> list[ActivityResponse]:
    rows = Repository(db).list_activity(limit, event_type=event_type)
    return [ActivityResponse.model_validate(row) for row in rows]


@router.get("/stats", response_model=StatsResponse)
def get_stats(db: Session = Depends(get_db)) -> StatsResponse:
    return StatsResponse(**Repository(db).aggregate_stats())


@router.get("/stats/daily", response_model=list[DailyStatsResponse])
def get_daily_stats(days: int = Query(30, ge=1, le=365), db: Session = Depends(get_db)) -> list[DailyStatsResponse]:
    return [DailyStatsResponse.model_validate(row) for row in Repository(db).daily_stats(days)]
