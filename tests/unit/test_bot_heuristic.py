import pytest

from hhpilot.llm.assistant import JobAssistant, format_salary


@pytest.mark.parametrize(
    "text",
    [
        "Пожалуйста, пройдите тест по ссылке ниже, это займет 10 минут и поможет нам.",
        "Уважаемый кандидат, мы получили ваше резюме и рассмотрим его в ближайшее время.",
        "Ваш отклик просмотрен",
        "Dear candidate, thank you for your interest in our company and the open role.",
        "Please complete the test before Friday so the team can review your answers quickly.",
    ],
)
def test_detects_automated_messages(text: str) -> None:
    assert JobAssistant.is_bot_message(text)


@pytest.mark.parametrize(
    "text",
    [
        "Hi! Can we schedule a call tomorrow?",
        "Привет! Расскажите, пожалуйста, о вашем опыте с PostgreSQL и высоконагруженными системами.",
    ],
)
def test_keeps_human_messages(text: str) -> None:
    assert not JobAssistant.is_bot_message(text)


def test_long_message_with_marker_word_is_not_a_notification() -> None:
    text = "We received your CV and the team would love to talk about the architecture of your last project. " * 2
    assert not JobAssistant.is_bot_message(text)


def test_format_salary() -> None:
    assert format_salary(100, 200) == "100 - 200"
    assert format_salary(100, None) == "from 100"
    assert format_salary(None, 200) == "up to 200"
    assert format_salary(None, None) == "not specified"
