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
from hhpilot.db.models import Chat, Vacancy
from hhpilot.db.repositories import Repository
from hhpilot.errors import ExternalApiError, ParseError
from hhpilot.hh.client import HHClient
from hhpilot.llm.assistant import JobAssistant
from hhpilot.types import ChatReport, HHMessage, MessageAnalysis, ResumeProjection

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 50


class ChatMonitor:
    """Reads new recruiter messages and answers bots or hands humans a Telegram contact.

    Every incoming message gets at most one automated reply, and a chat is
    offered the Telegram contact at most once.
    """

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

    def run(self) -> ChatReport:
        report = ChatReport()
        chats = self.repo.active_chats()
        if not chats:
            return report

        self.tokens.authorize()
        resume = ResumeProjector(session=self.session).project()

        for chat, vacancy in chats:
            try:
                self._check_chat(chat, vacancy, resume, report)
            except ExternalApiError as exc:
                logger.warning("Chat skipped chat=%s: %s", chat.remote_chat_id, exc)
            except SQLAlchemyError:
                self.session.rollback()
                logger.exception("Storage failure on chat=%s", chat.remote_chat_id)
            report.chats_checked += 1
            self.sleep(self.settings.chat_delay_sec)

        logger.info(
            "Chat cycle done chats=%s saved=%s replies=%s invites=%s",
            report.chats_checked,
            report.messages_saved,
            report.auto_replies,
            report.invites,
        )
        return report

    def _check_chat(self, chat: Chat, vacancy: Vacancy, resume: ResumeProjection, report: ChatReport) -> None:
        messages = self.hh.list_messages(chat.remote_chat_id)

        history = "".join(f"{item.author_type}: {item.text}\n" for item in self.repo.saved_messages(chat.id))
        last_saved = self.repo.last_remote_message_id(chat.id)

        for message in messages:
            if message.id is None:
                logger.warning("Skipping message without id in chat=%s", chat.remote_chat_id)
                continue
            if message.id == last_saved or self.repo.message_exists(message.id):
                continue

            if message.author_type == "applicant":
                self.repo.add_message(chat.id, author_type="applicant", text=message.text, remote_message_id=message.id)
                report.messages_saved += 1
                history += f"applicant: {message.text}\n"
                continue

            self._handle_incoming(chat, vacancy, message, history, resume, report)
            history += f"employer: {message.text}\n"

    def _handle_incoming(
        self,
        chat: Chat,
        vacancy: Vacancy,
        message: HHMessage,
        history: str,
        resume: ResumeProjection,
        report: ChatReport,
    ) -> None:
        analysis = self._analyze(message.text, history)

        self.repo.add_message(
            chat.id,
            author_type="employer",
            text=message.text,
            remote_message_id=message.id,
            sentiment=analysis.sentiment,
            intent=analysis.intent,
        )
        report.messages_saved += 1
        self.repo.record_incoming(chat, is_bot=analysis.is_bot)
        self.repo.log_activity(
            "chat",
            f"new message: {message.text[:PREVIEW_CHARS]}",
            vacancy_id=vacancy.id,
            metadata={"chat_id": chat.id, "is_bot": analysis.is_bot, "intent": analysis.intent},
        )

        if analysis.is_bot:
            self._reply_to_bot(chat, vacancy, message, resume, report)
        elif analysis.should_invite_telegram and not chat.telegram_invited:
            self._invite_to_telegram(chat, vacancy, message, resume, report)

    def _analyze(self, text: str, history: str) -> MessageAnalysis:
        try:
            return self.assistant.analyze_message(text=text, chat_history=history)
        except (ExternalApiError, ParseError) as exc:
            logger.warning("Message analysis unavailable, using heuristic: %s", exc)
            return MessageAnalysis(is_bot=JobAssistant.is_bot_message(text), should_invite_telegram=False)

    def _reply_to_bot(
        self, chat: Chat, vacancy: Vacancy, message: HHMessage, resume: ResumeProjection, report: ChatReport
    ) -> None:
        try:
            reply = self.assistant.generate_chat_response(
                text=message.text, resume_text=resume.text, vacancy_title=vacancy.title
            )
            self.hh.send_message(chat.remote_chat_id, reply)
        except (ExternalApiError, ParseError) as exc:
            logger.warning("Bot auto-reply failed chat=%s: %s", chat.remote_chat_id, exc)
            return

        self.repo.add_message(chat.id, author_type="applicant", text=reply, is_auto_response=True)
        self.repo.log_activity("chat", "auto-replied to bot", vacancy_id=vacancy.id, metadata={"chat_id": chat.id})
        report.auto_replies += 1

    def _invite_to_telegram(
        self, chat: Chat, vacancy: Vacancy, message: HHMessage, resume: ResumeProjection, report: ChatReport
    ) -> None:
        try:
            invite = self.assistant.generate_telegram_invite(
                text=message.text, messaging_handle=resume.messaging_handle
            )
            response = self.assistant.generate_chat_response(
                text=message.text, resume_text=resume.text, vacancy_title=vacancy.title
            )
            body = f"{response}\n\n{invite}"
            self.hh.send_message(chat.remote_chat_id, body)
        except (ExternalApiError, ParseError) as exc:
            logger.warning("Telegram invite failed chat=%s: %s", chat.remote_chat_id, exc)
            return

        if not self.repo.mark_invited(chat):
            logger.warning("Chat %s was already invited; keeping the first invite", chat.remote_chat_id)
        self.repo.add_message(chat.id, author_type="applicant", text=body, is_auto_response=True)
        self.repo.bump_daily_stats(self.today(), telegram_invites_sent=1)
        self.repo.log_activity(
            "invite",
            f"telegram invite sent to {chat.employer_name or 'employer'}",
            vacancy_id=vacancy.id,
            metadata={"chat_id": chat.id},
        )
        report.invites += 1
