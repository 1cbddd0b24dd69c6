from __future__ import annotations

from sqlalchemy.orm import Session

from hhpilot.db.repositories import Repository
from hhpilot.errors import ConfigMissing
from hhpilot.types import ResumeProjection

DEFAULT_MESSAGING_HANDLE = "https://t.me/username"
DEFAULT_EMAIL = "email@example.com"


class ResumeProjector:
    def __init__(self, session: Session):
        self.repo = Repository(session)

    def has_about(self) -> bool:
        return bool(self.repo.portfolio_about())

    def project(self) -> ResumeProjection:
        sections: list[str] = []

        about = self.repo.portfolio_about()
        if about:
            sections.append("About me:\n" + "\n".join(text.strip() for text in about))

        lines = []
        for item in self.repo.portfolio_experience():
            line = f"- {item.title}"
            if item.company:
                line += f" at {item.company}"
            if item.description:
                line += f" ({item.description.strip()})"
            lines.append(line)
        if lines:
            sections.append("Experience:\n" + "\n".join(lines))

        skills = self.repo.portfolio_skills()
        if skills:
            sections.append("Skills: " + ", ".join(skills))

        return ResumeProjection(
            text="\n\n".join(sections),
            messaging_handle=self.repo.portfolio_contact("telegram") or DEFAULT_MESSAGING_HANDLE,
            email=self.repo.portfolio_contact("email") or DEFAULT_EMAIL,
        )

    def require(self) -> ResumeProjection:
        if not self.has_about():
            raise ConfigMissing("portfolio has no 'about' record")
        return self.project()
