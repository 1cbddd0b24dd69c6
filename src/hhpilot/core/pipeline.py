from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hhpilot.config import Settings, get_settings
from hhpilot.core.resume import ResumeProjector
from hhpilot.core.tokens import TokenAuthority
from hhpilot.db.models import SearchSettings, Vacancy
from hhpilot.db.repositories import Repository
from hhpilot.errors import AgentError, ConfigMissing, ExternalApiError, ParseError
from hhpilot.hh.client import HHClient
from hhpilot.llm.assistant import JobAssistant
from hhpilot.types import HHVacancy, ResumeProjection, SearchReport, VacancyEvaluation

logger = logging.getLogger(__name__)


class VacancyPipeline:
    """One search cycle: pick queries, evaluate new vacancies, apply to the good ones."""

    def __init__(
        self,
        session: Session,
        hh: HHClient,
        assistant: JobAssistant,
        tokens: TokenAuthority,
        *,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.repo = Repository(session)
        self.hh = hh
        self.assistant = assistant
        self.tokens = tokens
        self.settings = settings or get_settings()
        self.sleep = sleep
        self.today = today
        self.resumes = ResumeProjector(session)

    def run(self) -> SearchReport:
        try:
            search_settings, resume = self._preconditions()
        except ConfigMissing as exc:
            logger.warning("Search cycle skipped: %s", exc)
            return SearchReport(skipped_reason=str(exc))

        self.tokens.authorize()

        queries = self.build_queries(search_settings, resume)
        if not queries:
            logger.warning("Search cycle skipped: no search queries available")
            return SearchReport(skipped_reason="no search queries")

        resume_id = self._resume_id()
        report = SearchReport(queries=queries[: self.settings.max_queries_per_cycle])
        logger.info("Search cycle started queries=%s", report.queries)

        try:
            for query in report.queries:
                self._run_query(query, search_settings, resume, resume_id, report)
                self.sleep(self.settings.query_delay_sec)
        finally:
            # counts whatever was sent, also when the cycle aborts midway
            self.repo.bump_daily_stats(
                self.today(),
                searches_count=1,
                vacancies_found=report.found,
                applications_sent=report.applied,
            )
        self.repo.log_activity(
            "search",
            f"search finished: {report.found} found, {report.evaluated} new, {report.applied} applied",
            metadata=report.model_dump(exclude={"skipped_reason"}),
        )
        logger.info(
            "Search cycle done found=%s evaluated=%s applied=%s", report.found, report.evaluated, report.applied
        )
        return report

    def _preconditions(self) -> tuple[SearchSettings, ResumeProjection]:
        search_settings = self.repo.get_search_settings()
        if search_settings is None:
            raise ConfigMissing("search settings are not configured")
        return search_settings, self.resumes.require()

    def build_queries(self, search_settings: SearchSettings, resume: ResumeProjection) -> list[str]:
        queries: list[str] = []

        def add(value: str) -> None:
            value = value.strip()
            if value and value not in queries:
                queries.append(value)

        if search_settings.search_text:
            add(search_settings.search_text)
        if search_settings.auto_tags_enabled:
            for tag in self.repo.active_query_tags():
                add(tag)

        if not queries:
            try:
                tags = self.assistant.generate_search_tags(resume.text)
            except AgentError as exc:
                logger.warning("Search tag generation failed: %s", exc)
                return queries
            stored: list[str] = []
            for suggestion in tags.suggested_queries:
                value = suggestion.strip()
                if value and value not in stored:
                    self.repo.upsert_tag(value)
                    stored.append(value)
                    add(value)
            self.repo.log_activity("ai", f"generated {len(stored)} queries", metadata={"queries": stored})
        return queries

    def _resume_id(self) -> str:
        resumes = self.hh.list_resumes()
        if not resumes:
            raise AgentError("no resume found on the job board account")
        return resumes[0].id

    def _run_query(
        self,
        query: str,
        search_settings: SearchSettings,
        resume: ResumeProjection,
        resume_id: str,
        report: SearchReport,
    ) -> None:
        self.repo.bump_tag_counters(query, search=1)
        try:
            results = self.hh.search_vacancies(
                query,
                area=",".join(search_settings.area_ids) if search_settings.area_ids else None,
                salary=search_settings.salary_from,
                experience=search_settings.experience,
                schedule=search_settings.schedule,
                employment=search_settings.employment,
                only_with_salary=search_settings.only_with_salary,
            )
        except ExternalApiError as exc:
            logger.warning("Search failed query=%r: %s", query, exc)
            return

        report.found += len(results)
        self.repo.bump_tag_counters(query, found=len(results))

        for found in results:
            try:
                applied = self._process_vacancy(found, query, search_settings, resume, resume_id, report)
            except SQLAlchemyError:
                self.session.rollback()
                logger.exception("Storage failure on vacancy=%s", found.id)
                continue
            if applied:
                self.sleep(self.settings.apply_delay_sec)

    def _process_vacancy(
        self,
        found: HHVacancy,
        query: str,
        search_settings: SearchSettings,
        resume: ResumeProjection,
        resume_id: str,
        report: SearchReport,
    ) -> bool:
        if self.repo.vacancy_exists(found.id):
            return False

        try:
            detail = self.hh.get_vacancy(found.id)
        except ExternalApiError as exc:
            logger.warning("Vacancy detail failed id=%s: %s", found.id, exc)
            return False

        evaluation = self._evaluate(detail, resume)
        report.evaluated += 1
        should_apply = self._should_apply(search_settings, evaluation)

        vacancy = self.repo.create_vacancy(
            detail,
            status="found" if should_apply else "skipped",
            evaluation=evaluation,
        )
        if not should_apply:
            return False

        try:
            cover_letter = self.assistant.generate_cover_letter(
                title=detail.name,
                description=detail.description,
                resume_text=resume.text,
                messaging_handle=resume.messaging_handle,
                email=resume.email,
            )
        except AgentError as exc:
            logger.warning("Cover letter failed vacancy=%s: %s", detail.id, exc)
            return False

        try:
            negotiation_id = self.hh.apply(detail.id, cover_letter, resume_id)
        except ExternalApiError as exc:
            logger.warning("Apply failed vacancy=%s: %s", detail.id, exc)
            return False

        self._record_application(vacancy, detail, negotiation_id, cover_letter)
        self._send_intro(vacancy, negotiation_id, cover_letter, resume)
        self.repo.bump_tag_counters(query, applied=1)
        report.applied += 1
        return True

    def _evaluate(self, detail: HHVacancy, resume: ResumeProjection) -> VacancyEvaluation | None:
        try:
            return self.assistant.evaluate_vacancy(
                title=detail.name,
                description=detail.description,
                company=detail.employer_name,
                salary_from=detail.salary_from,
                salary_to=detail.salary_to,
                resume_text=resume.text,
            )
        except (ExternalApiError, ParseError) as exc:
            logger.warning("Evaluation unavailable for vacancy=%s: %s", detail.id, exc)
            return None

    @staticmethod
    def _should_apply(search_settings: SearchSettings, evaluation: VacancyEvaluation | None) -> bool:
        # no evaluation means no score, which never clears the threshold
        if evaluation is None:
            return False
        return (
            search_settings.auto_apply_enabled
            and evaluation.score >= search_settings.min_ai_score
            and evaluation.recommendation != "skip"
        )

    def _record_application(
        self, vacancy: Vacancy, detail: HHVacancy, negotiation_id: str, cover_letter: str
    ) -> None:
        self.repo.mark_applied(vacancy)
        self.repo.create_application(vacancy_id=vacancy.id, negotiation_id=negotiation_id, cover_letter=cover_letter)
        self.repo.create_chat(
            vacancy_id=vacancy.id,
            remote_chat_id=negotiation_id,
            employer_name=detail.employer_name,
        )
        self.repo.log_activity(
            "apply",
            f"applied to {detail.name} at {detail.employer_name}",
            vacancy_id=vacancy.id,
            metadata={"negotiation_id": negotiation_id, "score": vacancy.ai_score},
        )

    def _send_intro(self, vacancy: Vacancy, negotiation_id: str, cover_letter: str, resume: ResumeProjection) -> None:
        try:
            intro = self.assistant.generate_chat_intro(
                cover_letter=cover_letter,
                messaging_handle=resume.messaging_handle,
                email=resume.email,
            )
            self.hh.send_message(negotiation_id, intro)
        except AgentError as exc:
            logger.warning("Chat intro not sent negotiation=%s: %s", negotiation_id, exc)
            return

        chat = self.repo.chats_for(vacancy.id)[-1]
        self.repo.add_message(chat.id, author_type="applicant", text=intro, is_auto_response=True)
