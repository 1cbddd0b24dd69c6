from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from hhpilot.config import Settings, get_settings
from hhpilot.errors import ParseError
from hhpilot.llm.prompts import (
    ANALYZE_MESSAGE_PROMPT,
    CHAT_INTRO_PROMPT,
    CHAT_RESPONSE_PROMPT,
    COVER_LETTER_PROMPT,
    EVALUATE_VACANCY_PROMPT,
    SEARCH_TAGS_PROMPT,
    TELEGRAM_INVITE_PROMPT,
)
from hhpilot.llm.providers import LLMProvider
from hhpilot.types import MessageAnalysis, SearchTags, VacancyEvaluation

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Descriptions and resumes are cut so a single prompt stays well inside the context window.
MAX_DESCRIPTION_CHARS = 8000
MAX_RESUME_CHARS = 6000
MAX_HISTORY_CHARS = 4000

BOT_PATTERNS = (
    "тестовое задание",
    "пройдите тест",
    "заполните анкету",
    "ответьте на вопросы",
    "пожалуйста, выберите",
    "выберите вариант",
    "нажмите кнопку",
    "автоматическое уведомление",
    "ваш отклик просмотрен",
    "благодарим за интерес",
    "оцените качество",
    "пройдите опрос",
    "заполните форму",
    "перейдите по ссылке",
    "нажмите для подтверждения",
    "complete the test",
    "fill in the form",
    "fill out the form",
    "take the survey",
    "automatic notification",
    "your application has been viewed",
    "click the button",
    "follow the link",
)
TEMPLATE_STARTS = (
    "уважаемый кандидат",
    "уважаемый соискатель",
    "добрый день! ваш отклик",
    "здравствуйте! благодарим",
    "спасибо за ваш отклик!",
    "dear candidate",
    "dear applicant",
    "thank you for your application",
)
NOTIFICATION_MARKERS = ("просмотр", "получен", "viewed", "received")


class JobAssistant:
    def __init__(self, settings: Settings | None = None, *, provider: LLMProvider | None = None):
        self.settings = settings or get_settings()
        self.provider = provider or LLMProvider.from_settings(self.settings)

    def generate_search_tags(self, resume_text: str) -> SearchTags:
        prompt = SEARCH_TAGS_PROMPT.format(resume_text=resume_text[:MAX_RESUME_CHARS])
        data = self.provider.complete_json(prompt=prompt, temperature=0.3, max_tokens=600)
        return _validate(SearchTags, data, "search tags")

    def evaluate_vacancy(
        self,
        *,
        title: str,
        description: str,
        company: str,
        salary_from: int | None,
        salary_to: int | None,
        resume_text: str,
    ) -> VacancyEvaluation:
        prompt = EVALUATE_VACANCY_PROMPT.format(
            title=title,
            company=company,
            salary=format_salary(salary_from, salary_to),
            description=description[:MAX_DESCRIPTION_CHARS],
            resume_text=resume_text[:MAX_RESUME_CHARS],
        )
        data = self.provider.complete_json(prompt=prompt, temperature=0.2, max_tokens=700)
        return _validate(VacancyEvaluation, data, "vacancy evaluation")

    def generate_cover_letter(
        self,
        *,
        title: str,
        description: str,
        resume_text: str,
        messaging_handle: str,
        email: str,
    ) -> str:
        prompt = COVER_LETTER_PROMPT.format(
            title=title,
            description=description[:MAX_DESCRIPTION_CHARS],
            resume_text=resume_text[:MAX_RESUME_CHARS],
            messaging_handle=messaging_handle,
            email=email,
        )
        return self._text(prompt, temperature=0.5, max_tokens=700, what="cover letter")

    def generate_chat_intro(self, *, cover_letter: str, messaging_handle: str, email: str) -> str:
        prompt = CHAT_INTRO_PROMPT.format(
            cover_letter=cover_letter,
            messaging_handle=messaging_handle,
            email=email,
        )
        return self._text(prompt, temperature=0.5, max_tokens=300, what="chat intro")

    def analyze_message(self, *, text: str, chat_history: str) -> MessageAnalysis:
        prompt = ANALYZE_MESSAGE_PROMPT.format(
            chat_history=chat_history[-MAX_HISTORY_CHARS:] or "(empty)",
            text=text,
        )
        data = self.provider.complete_json(prompt=prompt, temperature=0.1, max_tokens=300)
        return _validate(MessageAnalysis, data, "message analysis")

    def generate_chat_response(self, *, text: str, resume_text: str, vacancy_title: str) -> str:
        prompt = CHAT_RESPONSE_PROMPT.format(
            vacancy_title=vacancy_title,
            resume_text=resume_text[:MAX_RESUME_CHARS],
            text=text,
        )
        return self._text(prompt, temperature=0.4, max_tokens=400, what="chat response")

    def generate_telegram_invite(self, *, text: str, messaging_handle: str) -> str:
        prompt = TELEGRAM_INVITE_PROMPT.format(text=text, messaging_handle=messaging_handle)
        return self._text(prompt, temperature=0.4, max_tokens=200, what="telegram invite")

    @staticmethod
    def is_bot_message(text: str) -> bool:
        lowered = text.lower().strip()
        if any(pattern in lowered for pattern in BOT_PATTERNS):
            return True
        if any(lowered.startswith(start) for start in TEMPLATE_STARTS):
            return True
        return len(text) < 100 and any(marker in lowered for marker in NOTIFICATION_MARKERS)

    def _text(self, prompt: str, *, temperature: float, max_tokens: int, what: str) -> str:
        response = self.provider.complete_text(prompt=prompt, temperature=temperature, max_tokens=max_tokens)
        text = response.content.strip()
        if not text:
            raise ParseError(f"empty {what} from model")
        return text


def format_salary(salary_from: int | None, salary_to: int | None) -> str:
    if salary_from and salary_to:
        return f"{salary_from} - {salary_to}"
    if salary_from:
        return f"from {salary_from}"
    if salary_to:
        return f"up to {salary_to}"
    return "not specified"


def _validate(model: type[ModelT], data: dict[str, Any], what: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning("Invalid structured %s output: %s", what, exc.error_count())
        raise ParseError(f"invalid {what}: {exc}") from exc
