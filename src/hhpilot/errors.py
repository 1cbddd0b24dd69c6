from __future__ import annotations


class AgentError(Exception):
    """Base class for failures the supervisor absorbs and reports as activity."""


class NotAuthorized(AgentError):
    """No usable job-board token: missing, expired without refresh, or rejected with 401."""


class ExternalApiError(AgentError):
    def __init__(self, message: str, *, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is None:
            return base
        if self.body:
            return f"{base} (status={self.status_code}, body={self.body[:300]})"
        return f"{base} (status={self.status_code})"


class ParseError(AgentError):
    """The model reply could not be turned into the expected structure."""


class ConfigMissing(AgentError):
    """Settings or portfolio data the cycle needs are absent."""
