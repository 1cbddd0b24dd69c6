from __future__ import annotations

from hhpilot.config import get_settings
from hhpilot.db.base import Base
from hhpilot.db.session import SessionLocal, engine
from hhpilot.db import models  # noqa: F401
from hhpilot.db.repositories import Repository


def ensure_data_directories() -> None:
    settings = get_settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def init_database() -> dict[str, int]:
    ensure_data_directories()
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as session:
        created = Repository(session).ensure_search_settings()
    return {"tables": len(Base.metadata.tables), "settings_created": int(created)}
