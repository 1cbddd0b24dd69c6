from __future__ import annotations

from collections.abc import Generator

from sqlalchemy.orm import Session

from hhpilot.config import get_settings
from hhpilot.core.runtime import get_supervisor
from hhpilot.core.supervisor import Supervisor
from hhpilot.db.session import get_db_session
from hhpilot.hh.client import HHClient
from hhpilot.llm.assistant import JobAssistant


def get_db() -> Generator[Session, None, None]:
    yield from get_db_session()


def get_agent() -> Supervisor:
    return get_supervisor()


def get_hh() -> HHClient:
    return HHClient(get_settings())


def get_assistant() -> JobAssistant:
    return JobAssistant(get_settings())
