from __future__ import annotations

from hhpilot.config import get_settings
from hhpilot.core.hooks import DailyHook
from hhpilot.core.supervisor import Supervisor
from hhpilot.db.models import ActivityEvent, Application, Chat, ChatMessage, Vacancy
from hhpilot.db.session import SessionLocal
from hhpilot.types import HHMessage, HHNegotiation, MessageAnalysis, SearchTags, VacancyEvaluation


def test_search_apply_track_and_chat(session, fake_hh, fake_assistant, authorized, portfolio, search_settings) -> None:
    settings = get_settings()
    supervisor = Supervisor(
        settings=settings,
        session_factory=SessionLocal,
        hh_factory=lambda: fake_hh,
        assistant_factory=lambda: fake_assistant,
        hook=DailyHook(settings),
        sleep=lambda seconds: None,
    )
    fake_assistant.tags = SearchTags(suggested_queries=["python developer"])
    fake_hh.add_vacancy("python developer", "v1", "Python developer", employer_name="Acme")
    fake_hh.add_vacancy("python developer", "v2", "PHP developer", employer_name="Legacy Inc")
    fake_assistant.evaluations["Python developer"] = VacancyEvaluation(score=90, recommendation="apply")
    fake_assistant.evaluations["PHP developer"] = VacancyEvaluation(score=10, recommendation="skip")

    search = supervisor.run_search()

    assert search.found == 2
    assert search.applied == 1
    statuses = dict(session.query(Vacancy.remote_vacancy_id, Vacancy.status).all())
    assert statuses == {"v1": "applied", "v2": "skipped"}

    fake_hh.negotiations = [HHNegotiation(id="neg-v1", state="invitation", vacancy_id="v1")]
    status = supervisor.run_status()
    assert status.transitions == 1

    text = "Hi! Can we schedule a call tomorrow?"
    fake_hh.messages["neg-v1"] = [
        HHMessage(id="m1", text="Cover letter", author_type="applicant"),
        HHMessage(id="m2", text=text, author_type="employer"),
    ]
    fake_assistant.analyses[text] = MessageAnalysis(is_bot=False, should_invite_telegram=True)
    chats = supervisor.run_chats()
    assert chats.chats_checked == 1
    assert chats.invites == 1

    session.expire_all()
    vacancy = session.query(Vacancy).filter_by(remote_vacancy_id="v1").one()
    assert vacancy.status == "invited"
    assert session.query(Application).one().status == "invited"
    chat = session.query(Chat).one()
    assert chat.telegram_invited is True
    assert session.query(ChatMessage).filter_by(chat_id=chat.id).count() == 4

    repeat = supervisor.run_chats()
    assert repeat.invites == 0
    assert len(fake_hh.sent) == 2

    kinds = [event.event_type for event in session.query(ActivityEvent).order_by(ActivityEvent.id).all()]
    assert kinds.count("apply") == 1
    assert kinds.count("invite") == 1
    assert "response" in kinds
