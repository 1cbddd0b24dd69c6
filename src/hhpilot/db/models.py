from __future__ import annotations

from datetime import date as calendar_date
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from hhpilot.db.base import Base, TimestampMixin, utcnow


class OAuthToken(Base):
    __tablename__ = "hh_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class SearchSettings(TimestampMixin, Base):
    __tablename__ = "job_search_settings"
    __table_args__ = (
        CheckConstraint("min_ai_score >= 0 AND min_ai_score <= 100", name="ck_settings_min_ai_score"),
        CheckConstraint("search_interval_minutes >= 1", name="ck_settings_interval"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    search_text: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    area_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    salary_from: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    experience: Mapped[str | None] = mapped_column(String(60), nullable=True)
    schedule: Mapped[str | None] = mapped_column(String(60), nullable=True)
    employment: Mapped[str | None] = mapped_column(String(60), nullable=True)
    only_with_salary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_tags_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    min_ai_score: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    auto_apply_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    search_interval_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)


class SearchTag(Base):
    __tablename__ = "job_search_tags"
    __table_args__ = (UniqueConstraint("tag_type", "value", name="uq_search_tag"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tag_type: Mapped[str] = mapped_column(String(40), default="query", nullable=False)
    value: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    search_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    found_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    applied_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class Vacancy(TimestampMixin, Base):
    __tablename__ = "job_vacancies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    remote_vacancy_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    company: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    salary_from: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    salary_to: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    salary_currency: Mapped[str | None] = mapped_column(String(10), nullable=True)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    url: Mapped[str] = mapped_column(String(800), default="", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="found", index=True, nullable=False)
    found_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True, nullable=False)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ai_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_recommendation: Mapped[str | None] = mapped_column(String(20), nullable=True)
    ai_priority: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ai_match_reasons: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    ai_concerns: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    ai_salary_assessment: Mapped[str | None] = mapped_column(Text, nullable=True)


class Application(TimestampMixin, Base):
    __tablename__ = "job_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    vacancy_id: Mapped[int] = mapped_column(ForeignKey("job_vacancies.id", ondelete="CASCADE"), index=True)
    remote_negotiation_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    cover_letter: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="sent", nullable=False)


class Chat(TimestampMixin, Base):
    __tablename__ = "job_chats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    vacancy_id: Mapped[int] = mapped_column(ForeignKey("job_vacancies.id", ondelete="CASCADE"), index=True)
    remote_chat_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    employer_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_bot: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_human_confirmed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    telegram_invited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    unread_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class ChatMessage(Base):
    __tablename__ = "job_chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    chat_id: Mapped[int] = mapped_column(ForeignKey("job_chats.id", ondelete="CASCADE"), index=True)
    remote_message_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    author_type: Mapped[str] = mapped_column(String(20), nullable=False)
    text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    is_auto_response: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ai_sentiment: Mapped[str | None] = mapped_column(String(40), nullable=True)
    ai_intent: Mapped[str | None] = mapped_column(String(40), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class ActivityEvent(Base):
    __tablename__ = "job_activity_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_type: Mapped[str] = mapped_column(String(20), index=True, nullable=False)
    vacancy_id: Mapped[int | None] = mapped_column(
        ForeignKey("job_vacancies.id", ondelete="SET NULL"), nullable=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    metadata_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class DailyStats(Base):
    __tablename__ = "job_daily_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[calendar_date] = mapped_column(Date, unique=True, nullable=False)
    searches_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    vacancies_found: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    applications_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    invitations_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    rejections_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    telegram_invites_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


# Portfolio tables are written by the portfolio service; the agent only reads them.


class PortfolioAbout(TimestampMixin, Base):
    __tablename__ = "portfolio_about"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)


class PortfolioExperience(TimestampMixin, Base):
    __tablename__ = "portfolio_experience"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    date_from: Mapped[calendar_date | None] = mapped_column(Date, nullable=True)
    date_to: Mapped[calendar_date | None] = mapped_column(Date, nullable=True)


class PortfolioSkill(TimestampMixin, Base):
    __tablename__ = "portfolio_skills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    category: Mapped[str] = mapped_column(String(120), default="", nullable=False)


class PortfolioContact(TimestampMixin, Base):
    __tablename__ = "portfolio_contacts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[str] = mapped_column(String(40), index=True, nullable=False)
    value: Mapped[str] = mapped_column(String(500), nullable=False)
