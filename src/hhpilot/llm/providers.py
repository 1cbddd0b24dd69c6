from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from openai import OpenAI, OpenAIError

from hhpilot.config import Settings
from hhpilot.errors import ExternalApiError, ParseError
from hhpilot.types import ModelResponse

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    model: str
    timeout_sec: int
    headers: dict[str, str] = field(default_factory=dict)


class LLMProvider:
    def __init__(self, config: ProviderConfig):
        self.config = config
        self._client: Any = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMProvider":
        return cls(
            ProviderConfig(
                name="openrouter",
                base_url=settings.openrouter_base_url,
                api_key=settings.openrouter_api_key,
                model=settings.ai_model,
                timeout_sec=settings.ai_timeout_sec,
                headers={"HTTP-Referer": settings.ai_referer, "X-Title": settings.ai_title},
            )
        )

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = OpenAI(
                base_url=self.config.base_url,
                api_key=self.config.api_key,
                timeout=float(self.config.timeout_sec),
                default_headers=self.config.headers,
            )
        return self._client

    @client.setter
    def client(self, value: Any) -> None:
        self._client = value

    def complete_text(self, *, prompt: str, temperature: float, max_tokens: int) -> ModelResponse:
        if not self.config.api_key:
            raise ExternalApiError(f"provider={self.config.name} has no API key configured")

        try:
            response = self.client.chat.completions.create(
                model=self.config.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as exc:
            raise ExternalApiError(
                f"chat completion failed provider={self.config.name}",
                status_code=getattr(exc, "status_code", None),
                body=str(exc),
            ) from exc

        text = self._extract_chat_text(response)
        raw = response.model_dump() if hasattr(response, "model_dump") else {}
        if not isinstance(raw, dict):
            raw = {"raw": raw}
        return ModelResponse(content=text, raw=raw)

    def complete_json(self, *, prompt: str, temperature: float, max_tokens: int) -> dict[str, Any]:
        text_response = self.complete_text(prompt=prompt, temperature=temperature, max_tokens=max_tokens)
        return parse_json(text_response.content)

    @staticmethod
    def _extract_chat_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""

        message = getattr(choices[0], "message", None)
        if message is None:
            return ""

        content = getattr(message, "content", "")
        if isinstance(content, str):
            return content
        if content is None:
            return ""
        return str(content)


def parse_json(content: str) -> dict[str, Any]:
    candidate = content.strip()
    if not candidate:
        raise ParseError("empty model output")

    if "```" in candidate:
        parts = candidate.split("```")
        for part in parts:
            part = part.strip()
            if part.startswith("json"):
                part = part[4:].strip()
            if part.startswith("{") and part.endswith("}"):
                candidate = part
                break

    try:
        value = json.loads(candidate)
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse JSON model output")
        raise ParseError(f"model output is not JSON: {candidate[:200]}") from exc

    if not isinstance(value, dict):
        raise ParseError("model output is not a JSON object")
    return value
