from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

from sqlalchemy.orm import Session, sessionmaker

from hhpilot.config import Settings, get_settings
from hhpilot.core.chats import ChatMonitor
from hhpilot.core.hooks import DailyHook
from hhpilot.core.pipeline import VacancyPipeline
from hhpilot.core.status import StatusTracker
from hhpilot.core.tokens import TokenAuthority
from hhpilot.db.base import utcnow
from hhpilot.db.repositories import Repository
from hhpilot.db.session import SessionLocal
from hhpilot.hh.client import HHClient
from hhpilot.llm.assistant import JobAssistant
from hhpilot.types import ChatReport, SearchReport, StatusReport

logger = logging.getLogger(__name__)

ReportT = TypeVar("ReportT")


class Supervisor:
    """Owns the agent lifecycle and the background loop that drives every cycle.

    The running flag is the only state shared with the control surface; it is
    read and written under a short lock. Long pauses are sliced so that a
    ``stop()`` is observed within one slice.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        session_factory: sessionmaker[Session] | Callable[[], Session] = SessionLocal,
        hh_factory: Callable[[], HHClient] | None = None,
        assistant_factory: Callable[[], JobAssistant] | None = None,
        hook: DailyHook | None = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings or get_settings()
        self.session_factory = session_factory
        self.hh_factory = hh_factory or (lambda: HHClient(self.settings))
        self.assistant_factory = assistant_factory or (lambda: JobAssistant(self.settings))
        self.hook = hook or DailyHook(self.settings)
        self.clock = clock

        self._lock = threading.Lock()
        self._running = False
        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None
        self._searched_on_start = False
        self.sleep = sleep or self._shutdown.wait

    # control surface

    def start(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
        logger.info("Agent started")
        self._log_event("system", "agent started")
        return True

    def stop(self) -> bool:
        with self._lock:
            if not self._running:
                return False
            self._running = False
        logger.info("Agent stopped")
        self._log_event("system", "agent stopped")
        return True

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    # one-shot cycles

    def run_search(self) -> SearchReport:
        with self.session_factory() as session:
            hh = self.hh_factory()
            pipeline = VacancyPipeline(
                session,
                hh,
                self.assistant_factory(),
                TokenAuthority(session, hh, settings=self.settings),
                settings=self.settings,
                sleep=self.sleep,
            )
            return pipeline.run()

    def run_chats(self) -> ChatReport:
        with self.session_factory() as session:
            hh = self.hh_factory()
            monitor = ChatMonitor(
                session,
                hh,
                self.assistant_factory(),
                TokenAuthority(session, hh, settings=self.settings),
                settings=self.settings,
                sleep=self.sleep,
            )
            return monitor.run()

    def run_status(self) -> StatusReport:
        with self.session_factory() as session:
            hh = self.hh_factory()
            return StatusTracker(session, hh, TokenAuthority(session, hh, settings=self.settings)).run()

    def search_due(self) -> bool:
        with self.session_factory() as session:
            repo = Repository(session)
            latest = repo.latest_found_at()
            if latest is None:
                return True
            search_settings = repo.get_search_settings()
            interval = search_settings.search_interval_minutes if search_settings else 60
        return utcnow() - latest >= timedelta(minutes=interval)

    # background loop

    def tick(self) -> None:
        """One iteration of the loop body while running."""
        if not self._searched_on_start:
            self._searched_on_start = True
            self._guarded("search", self.run_search)

        self._guarded("daily hook", lambda: self.hook.maybe_run(self.clock()))
        self._guarded("status", self.run_status)
        self._guarded("chats", self.run_chats)

        if not self.pause():
            return
        if self._guarded("search check", self.search_due):
            self._guarded("search", self.run_search)

    def pause(self) -> bool:
        """Sleeps the inter-cycle pause in slices; False when stopped part-way."""
        for _ in range(self.settings.loop_pause_slices):
            if not self._active():
                return False
            self.sleep(self.settings.loop_slice_sec)
        return self._active()

    def run_forever(self) -> None:
        logger.info("Supervisor loop started")
        while not self._shutdown.is_set():
            if not self.is_running():
                self.sleep(self.settings.idle_poll_sec)
                continue
            self.tick()
        logger.info("Supervisor loop exited")

    def launch(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._shutdown.clear()
        self._thread = threading.Thread(target=self.run_forever, name="hhpilot-supervisor", daemon=True)
        self._thread.start()

    def shutdown(self, timeout: float = 15.0) -> None:
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _active(self) -> bool:
        return self.is_running() and not self._shutdown.is_set()

    def _guarded(self, name: str, fn: Callable[[], ReportT]) -> ReportT | None:
        try:
            return fn()
        except Exception as exc:
            logger.exception("Cycle %s failed", name)
            self._log_event("error", f"{name} failed: {exc}", {"cycle": name, "error_type": type(exc).__name__})
            return None

    def _log_event(self, event_type: str, description: str, metadata: dict[str, Any] | None = None) -> None:
        try:
            with self.session_factory() as session:
                Repository(session).log_activity(event_type, description, metadata=metadata)
        except Exception:
            logger.exception("Could not record %s activity", event_type)
