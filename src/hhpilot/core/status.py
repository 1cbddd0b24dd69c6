from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hhpilot.core.tokens import TokenAuthority
from hhpilot.db.repositories import Repository
from hhpilot.errors import ExternalApiError
from hhpilot.hh.client import HHClient
from hhpilot.types import StatusReport

logger = logging.getLogger(__name__)

REMOTE_STATE_MAP = {
    "invitation": "invited",
    "discard": "rejected",
    "response": "viewed",
}
LOCAL_STATUSES = {"applied", "viewed", "invited", "rejected"}

TRANSITION_EVENTS = {
    "invited": ("interview invitation", "invitations_received"),
    "rejected": ("rejection", "rejections_received"),
    "viewed": ("application viewed", None),
}


def map_negotiation_state(state: str) -> str:
    if state in REMOTE_STATE_MAP:
        return REMOTE_STATE_MAP[state]
    if state in LOCAL_STATUSES:
        return state
    if state:
        logger.warning("Unknown negotiation state %r; treating as applied", state)
    return "applied"


class StatusTracker:
    def __init__(
        self,
        session: Session,
        hh: HHClient,
        tokens: TokenAuthority,
        *,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.repo = Repository(session)
        self.hh = hh
        self.tokens = tokens
        self.today = today

    def run(self) -> StatusReport:
        report = StatusReport()
        self.tokens.authorize()

        try:
            negotiations = self.hh.list_negotiations()
        except ExternalApiError as exc:
            logger.warning("Could not list negotiations: %s", exc)
            return report

        report.negotiations = len(negotiations)
        for negotiation in negotiations:
            if not negotiation.vacancy_id:
                continue
            new_status = map_negotiation_state(negotiation.state)
            try:
                if self._apply(negotiation.vacancy_id, new_status):
                    report.transitions += 1
            except SQLAlchemyError:
                self.session.rollback()
                logger.exception("Status update failed for vacancy=%s", negotiation.vacancy_id)

        logger.info("Status cycle done negotiations=%s transitions=%s", report.negotiations, report.transitions)
        return report

    def _apply(self, remote_vacancy_id: str, new_status: str) -> bool:
        vacancy = self.repo.get_vacancy_by_remote_id(remote_vacancy_id)
        if vacancy is None or vacancy.status == new_status:
            return False

        if not self.repo.transition_status(vacancy.id, new_status):
            return False

        description, counter = TRANSITION_EVENTS.get(new_status, (f"status changed to {new_status}", None))
        self.repo.log_activity(
            "response",
            description,
            vacancy_id=vacancy.id,
            metadata={"status": new_status, "title": vacancy.title},
        )
        if counter:
            self.repo.bump_daily_stats(self.today(), **{counter: 1})
        self.session.refresh(vacancy)
        return True
