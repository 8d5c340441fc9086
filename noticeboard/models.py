"""
Job trigger schema and notice records.

The trigger accepts the caller's camelCase wire names (rollNo, password,
securityAnswers, lastKnownNoticeAt). Secrets stay out of reprs and logs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

_IDENTIFIER_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{2}[0-9]{5}$")
SECURITY_ANSWER_COUNT = 3


class Credentials(BaseModel):
    """Portal login credentials for a single job. Never persisted."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    identifier: str = Field(alias="rollNo")
    password: SecretStr
    security_answers: dict[str, str] = Field(alias="securityAnswers", repr=False)

    @field_validator("identifier")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        value = value.strip().upper()
        if not _IDENTIFIER_PATTERN.match(value):
            raise ValueError("Invalid Roll Number format. Expected format is 21CS10012.")
        return value

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError("Password cannot be empty.")
        return value

    @field_validator("security_answers")
    @classmethod
    def _check_security_answers(cls, value: dict[str, str]) -> dict[str, str]:
        if len(value) != SECURITY_ANSWER_COUNT:
            raise ValueError(
                f"Security answers must contain exactly {SECURITY_ANSWER_COUNT} entries."
            )
        trimmed = {q.strip(): a.strip() for q, a in value.items()}
        if len(trimmed) != SECURITY_ANSWER_COUNT or not all(
            q and a for q, a in trimmed.items()
        ):
            raise ValueError("Security questions and answers cannot be empty.")
        return trimmed


class ScrapeRequest(Credentials):
    """Body of POST /scrape-notices."""

    last_known_notice_at: datetime = Field(alias="lastKnownNoticeAt")

    def credentials(self) -> Credentials:
        return Credentials(
            identifier=self.identifier,
            password=self.password,
            security_answers=self.security_answers,
        )


@dataclass(frozen=True)
class Notice:
    """One row of the notice grid newer than the watermark."""
    type: str
    subject: str
    company: str
    notice_text: str
    notice_at: str
    document_url: str | None = None

    def to_payload(self) -> dict[str, str]:
        """Webhook element shape."""
        return {
            "type": self.type,
            "subject": self.subject,
            "company": self.company,
            "noticeText": self.notice_text,
            "noticeAt": self.notice_at,
            "documentUrl": self.document_url or "",
        }
