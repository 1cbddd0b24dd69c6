from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hhpilot.db.base import as_utc, utcnow
from hhpilot.db.models import (
    ActivityEvent,
    Application,
    Chat,
    ChatMessage,
    DailyStats,
    OAuthToken,
    PortfolioAbout,
    PortfolioContact,
    PortfolioExperience,
    PortfolioSkill,
    SearchSettings,
    SearchTag,
    Vacancy,
)
from hhpilot.types import HHVacancy, TokenGrant, VacancyEvaluation

ACTIVE_CHAT_STATUSES = ("applied", "viewed", "invited")
APPLIED_FAMILY = ("applied", "viewed", "invited", "rejected")
DAILY_COUNTERS = (
    "searches_count",
    "vacancies_found",
    "applications_sent",
    "invitations_received",
    "rejections_received",
    "telegram_invites_sent",
)
TAG_COUNTERS = {"search": "search_count", "found": "found_count", "applied": "applied_count"}


class Repository:
    def __init__(self, session: Session):
        self.session = session

    # tokens

    def latest_token(self) -> OAuthToken | None:
        return self.session.scalar(select(OAuthToken).order_by(OAuthToken.id.desc()).limit(1))

    def add_token(self, grant: TokenGrant, *, now: datetime | None = None) -> OAuthToken:
        created = now or utcnow()
        token = OAuthToken(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=created + timedelta(seconds=grant.expires_in),
            created_at=created,
        )
        self.session.add(token)
        self.session.commit()
        self.session.refresh(token)
        return token

    # search settings and tags

    def get_search_settings(self) -> SearchSettings | None:
        return self.session.scalar(select(SearchSettings).order_by(SearchSettings.id).limit(1))

    def ensure_search_settings(self) -> bool:
        if self.get_search_settings() is not None:
            return False
        self.session.add(SearchSettings())
        self.session.commit()
        return True

    def upsert_search_settings(self, values: dict[str, Any]) -> SearchSettings:
        existing = self.get_search_settings()
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            obj = existing
        else:
            obj = SearchSettings(**values)
            self.session.add(obj)

        self.session.commit()
        self.session.refresh(obj)
        return obj

    def active_query_tags(self) -> list[str]:
        stmt = (
            select(SearchTag.value)
            .where(SearchTag.tag_type == "query", SearchTag.is_active.is_(True))
            .order_by(SearchTag.id)
        )
        return list(self.session.scalars(stmt).all())

    def upsert_tag(self, value: str, tag_type: str = "query") -> SearchTag:
        existing = self.session.scalar(
            select(SearchTag).where(SearchTag.tag_type == tag_type, SearchTag.value == value)
        )
        if existing:
            existing.is_active = True
            self.session.commit()
            return existing

        tag = SearchTag(tag_type=tag_type, value=value, is_active=True)
        self.session.add(tag)
        try:
            self.session.commit()
        except IntegrityError:
            # another writer inserted the same key first
            self.session.rollback()
            tag = self.session.scalar(
                select(SearchTag).where(SearchTag.tag_type == tag_type, SearchTag.value == value)
            )
            tag.is_active = True
            self.session.commit()
        self.session.refresh(tag)
        return tag

    def bump_tag_counters(self, value: str, **increments: int) -> None:
        columns = {}
        for key, amount in increments.items():
            if key not in TAG_COUNTERS:
                raise ValueError(f"unknown tag counter '{key}'")
            if amount:
                column = getattr(SearchTag, TAG_COUNTERS[key])
                columns[column] = column + amount
        if not columns:
            return
        self.session.execute(
            update(SearchTag)
            .where(SearchTag.tag_type == "query", SearchTag.value == value)
            .values(columns)
        )
        self.session.commit()

    def list_tags(self) -> list[SearchTag]:
        return list(self.session.scalars(select(SearchTag).order_by(SearchTag.id)).all())

    def toggle_tag(self, tag_id: int) -> SearchTag | None:
        tag = self.session.get(SearchTag, tag_id)
        if tag is None:
            return None
        tag.is_active = not tag.is_active
        self.session.commit()
        self.session.refresh(tag)
        return tag

    # vacancies, applications, chats

    def vacancy_exists(self, remote_vacancy_id: str) -> bool:
        stmt = select(Vacancy.id).where(Vacancy.remote_vacancy_id == remote_vacancy_id).limit(1)
        return self.session.scalar(stmt) is not None

    def get_vacancy_by_remote_id(self, remote_vacancy_id: str) -> Vacancy | None:
        return self.session.scalar(select(Vacancy).where(Vacancy.remote_vacancy_id == remote_vacancy_id))

    def create_vacancy(
        self,
        vacancy: HHVacancy,
        *,
        status: str,
        evaluation: VacancyEvaluation | None,
    ) -> Vacancy:
        item = Vacancy(
            remote_vacancy_id=vacancy.id,
            title=vacancy.name,
            company=vacancy.employer_name,
            salary_from=vacancy.salary_from,
            salary_to=vacancy.salary_to,
            salary_currency=vacancy.salary_currency,
            description=vacancy.description,
            url=vacancy.alternate_url,
            status=status,
            found_at=utcnow(),
        )
        if evaluation is not None:
            item.ai_score = evaluation.score
            item.ai_recommendation = evaluation.recommendation
            item.ai_priority = evaluation.priority
            item.ai_match_reasons = evaluation.match_reasons
            item.ai_concerns = evaluation.concerns
            item.ai_salary_assessment = evaluation.salary_assessment
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def mark_applied(self, vacancy: Vacancy) -> Vacancy:
        vacancy.status = "applied"
        vacancy.applied_at = utcnow()
        self.session.commit()
        return vacancy

    def latest_found_at(self) -> datetime | None:
        value = self.session.scalar(select(func.max(Vacancy.found_at)))
        return as_utc(value) if value is not None else None

    def list_vacancies(self, *, status: str | None = None, limit: int = 50, offset: int = 0) -> tuple[list[Vacancy], int]:
        stmt = select(Vacancy)
        count_stmt = select(func.count(Vacancy.id))
        if status:
            stmt = stmt.where(Vacancy.status == status)
            count_stmt = count_stmt.where(Vacancy.status == status)
        stmt = stmt.order_by(Vacancy.found_at.desc(), Vacancy.id.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(stmt).all()), int(self.session.scalar(count_stmt) or 0)

    def get_vacancy(self, vacancy_id: int) -> Vacancy | None:
        return self.session.get(Vacancy, vacancy_id)

    def ignore_vacancy(self, vacancy_id: int) -> Vacancy | None:
        vacancy = self.session.get(Vacancy, vacancy_id)
        if vacancy is None:
            return None
        vacancy.status = "ignored"
        self.session.commit()
        return vacancy

    def create_application(self, *, vacancy_id: int, negotiation_id: str, cover_letter: str) -> Application:
        item = Application(
            vacancy_id=vacancy_id,
            remote_negotiation_id=negotiation_id,
            cover_letter=cover_letter,
            status="sent",
        )
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def applications_for(self, vacancy_id: int) -> list[Application]:
        stmt = select(Application).where(Application.vacancy_id == vacancy_id).order_by(Application.id)
        return list(self.session.scalars(stmt).all())

    def create_chat(self, *, vacancy_id: int, remote_chat_id: str, employer_name: str | None) -> Chat:
        item = Chat(vacancy_id=vacancy_id, remote_chat_id=remote_chat_id, employer_name=employer_name)
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    def chats_for(self, vacancy_id: int) -> list[Chat]:
        stmt = select(Chat).where(Chat.vacancy_id == vacancy_id).order_by(Chat.id)
        return list(self.session.scalars(stmt).all())

    def active_chats(self) -> list[tuple[Chat, Vacancy]]:
        stmt = (
            select(Chat, Vacancy)
            .join(Vacancy, Chat.vacancy_id == Vacancy.id)
            .where(Vacancy.status.in_(ACTIVE_CHAT_STATUSES))
            .order_by(Chat.id)
        )
        return [(chat, vacancy) for chat, vacancy in self.session.execute(stmt).all()]

    def count_active_chats(self) -> int:
        stmt = (
            select(func.count(Chat.id))
            .join(Vacancy, Chat.vacancy_id == Vacancy.id)
            .where(Vacancy.status.in_(ACTIVE_CHAT_STATUSES))
        )
        return int(self.session.scalar(stmt) or 0)

    def record_incoming(self, chat: Chat, *, is_bot: bool) -> None:
        self.session.execute(
            update(Chat)
            .where(Chat.id == chat.id)
            .values(last_message_at=utcnow(), is_bot=is_bot, unread_count=Chat.unread_count + 1)
        )
        self.session.commit()
        self.session.refresh(chat)

    def mark_invited(self, chat: Chat) -> bool:
        result = self.session.execute(
            update(Chat)
            .where(Chat.id == chat.id, Chat.telegram_invited.is_(False))
            .values(telegram_invited=True, is_human_confirmed=True)
        )
        self.session.commit()
        self.session.refresh(chat)
        return result.rowcount > 0

    # chat messages

    def saved_messages(self, chat_id: int) -> list[ChatMessage]:
        stmt = select(ChatMessage).where(ChatMessage.chat_id == chat_id).order_by(ChatMessage.id)
        return list(self.session.scalars(stmt).all())

    def last_remote_message_id(self, chat_id: int) -> str | None:
        stmt = (
            select(ChatMessage.remote_message_id)
            .where(ChatMessage.chat_id == chat_id, ChatMessage.remote_message_id.is_not(None))
            .order_by(ChatMessage.id.desc())
            .limit(1)
        )
        return self.session.scalar(stmt)

    def message_exists(self, remote_message_id: str) -> bool:
        stmt = select(ChatMessage.id).where(ChatMessage.remote_message_id == remote_message_id).limit(1)
        return self.session.scalar(stmt) is not None

    def add_message(
        self,
        chat_id: int,
        *,
        author_type: str,
        text: str,
        remote_message_id: str | None = None,
        is_auto_response: bool = False,
        sentiment: str | None = None,
        intent: str | None = None,
    ) -> ChatMessage:
        item = ChatMessage(
            chat_id=chat_id,
            remote_message_id=remote_message_id,
            author_type=author_type,
            text=text,
            is_auto_response=is_auto_response,
            ai_sentiment=sentiment,
            ai_intent=intent,
        )
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return item

    # status tracking

    def transition_status(self, vacancy_id: int, new_status: str) -> bool:
        result = self.session.execute(
            update(Vacancy)
            .where(Vacancy.id == vacancy_id, Vacancy.status != new_status)
            .values(status=new_status)
        )
        if result.rowcount == 0:
            self.session.rollback()
            return False

        if new_status in APPLIED_FAMILY:
            self.session.execute(
                update(Vacancy)
                .where(Vacancy.id == vacancy_id, Vacancy.applied_at.is_(None))
                .values(applied_at=utcnow())
            )
        self.session.execute(
            update(Application).where(Application.vacancy_id == vacancy_id).values(status=new_status)
        )
        self.session.commit()
        return True

    # activity

    def log_activity(
        self,
        event_type: str,
        description: str,
        *,
        vacancy_id: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityEvent:
        event = ActivityEvent(
            event_type=event_type,
            vacancy_id=vacancy_id,
            description=description,
            metadata_json=metadata or {},
        )
        self.session.add(event)
        self.session.commit()
        self.session.refresh(event)
        return event

    def list_activity(self, limit: int = 50, *, event_type: str | None = None) -> list[ActivityEvent]:
        stmt = select(ActivityEvent)
        if event_type:
            stmt = stmt.where(ActivityEvent.event_type == event_type)
        stmt = stmt.order_by(ActivityEvent.id.desc()).limit(limit)
        return list(self.session.scalars(stmt).all())

    # daily stats

    def bump_daily_stats(self, day: date, **increments: int) -> None:
        columns = {}
        for key, amount in increments.items():
            if key not in DAILY_COUNTERS:
                raise ValueError(f"unknown daily counter '{key}'")
            if amount < 0:
                raise ValueError(f"daily counter '{key}' cannot decrease")
            if amount:
                column = getattr(DailyStats, key)
                columns[column] = column + amount
        if not columns:
            return

        self._ensure_daily_row(day)
        self.session.execute(update(DailyStats).where(DailyStats.date == day).values(columns))
        self.session.commit()

    def _ensure_daily_row(self, day: date) -> None:
        if self.session.scalar(select(DailyStats.id).where(DailyStats.date == day)) is not None:
            return
        self.session.add(DailyStats(date=day))
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()

    def get_daily_stats(self, day: date) -> DailyStats | None:
        return self.session.scalar(select(DailyStats).where(DailyStats.date == day))

    def daily_stats(self, days: int, *, today: date | None = None) -> list[DailyStats]:
        since = (today or date.today()) - timedelta(days=days - 1)
        stmt = select(DailyStats).where(DailyStats.date >= since).order_by(DailyStats.date.desc())
        return list(self.session.scalars(stmt).all())

    def aggregate_stats(self, *, today: date | None = None) -> dict[str, Any]:
        today = today or date.today()
        counts = dict(
            self.session.execute(select(Vacancy.status, func.count(Vacancy.id)).group_by(Vacancy.status)).all()
        )
        applied = sum(counts.get(status, 0) for status in APPLIED_FAMILY)
        responded = sum(counts.get(status, 0) for status in ("viewed", "invited", "rejected"))
        avg_score = self.session.scalar(select(func.avg(Vacancy.ai_score)).where(Vacancy.ai_score.is_not(None)))
        telegram_invites = self.session.scalar(
            select(func.count(Chat.id)).where(Chat.telegram_invited.is_(True))
        )

        week_start = today - timedelta(days=6)
        today_row = self.get_daily_stats(today)
        week_apps = self.session.scalar(
            select(func.coalesce(func.sum(DailyStats.applications_sent), 0)).where(DailyStats.date >= week_start)
        )

        return {
            "total_vacancies": sum(counts.values()),
            "applied": applied,
            "viewed": counts.get("viewed", 0),
            "invited": counts.get("invited", 0),
            "rejected": counts.get("rejected", 0),
            "skipped": counts.get("skipped", 0),
            "avg_ai_score": round(float(avg_score), 1) if avg_score is not None else None,
            "response_rate": round(responded * 100.0 / applied, 1) if applied else 0.0,
            "active_chats": self.count_active_chats(),
            "telegram_invites": int(telegram_invites or 0),
            "today_applications": today_row.applications_sent if today_row else 0,
            "week_applications": int(week_apps or 0),
        }

    # portfolio (read-only)

    def portfolio_about(self) -> list[str]:
        stmt = select(PortfolioAbout.description).order_by(PortfolioAbout.id)
        return [text for text in self.session.scalars(stmt).all() if text and text.strip()]

    def portfolio_experience(self) -> list[PortfolioExperience]:
        stmt = select(PortfolioExperience).order_by(
            PortfolioExperience.date_from.is_(None),
            PortfolioExperience.date_from.desc(),
            PortfolioExperience.id.desc(),
        )
        return list(self.session.scalars(stmt).all())

    def portfolio_skills(self) -> list[str]:
        stmt = select(PortfolioSkill.name).order_by(PortfolioSkill.category, PortfolioSkill.id)
        return list(self.session.scalars(stmt).all())

    def portfolio_contact(self, contact_type: str) -> str | None:
        stmt = (
            select(PortfolioContact.value)
            .where(PortfolioContact.type == contact_type)
            .order_by(PortfolioContact.id)
            .limit(1)
        )
        return self.session.scalar(stmt)
