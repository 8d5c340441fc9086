"""
Exception taxonomy.

Structural failures (configuration, authentication, grid navigation,
webhook delivery) abort a job. Per-row and per-attachment failures are
absorbed where they happen and never reach the orchestrator.
"""

from __future__ import annotations


class NoticeboardError(Exception):
    """Base exception for all noticeboard errors."""


class ConfigurationError(NoticeboardError):
    """A required endpoint is not configured."""


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class AuthError(NoticeboardError):
    """Login failed. Tagged with the identifier, never with secrets."""

    def __init__(self, identifier: str, message: str):
        super().__init__(f"{message} (identifier={identifier})")
        self.identifier = identifier


class BrowserInitError(AuthError):
    """The automation driver could not start."""


class ChallengeQuestionMissing(AuthError):
    """The security-challenge panel rendered without question text."""


class ChallengeAnswerMissing(AuthError):
    """No answer in the caller's map matches the displayed challenge."""

    def __init__(self, identifier: str, question: str):
        super().__init__(identifier, f"No answer found for security question {question!r}")
        self.question = question


class OTPTimeout(AuthError):
    """OTP polling exhausted all attempts. Cause is the last attempt error."""


class SessionTokenMissing(AuthError):
    """The session cookie is absent after login; the portal refused it."""


class LoginRejected(AuthError):
    """Login was submitted but the liveness probe still fails."""


class LoginError(AuthError):
    """A driver step in the full-login path failed."""


# ---------------------------------------------------------------------------
# OTP service
# ---------------------------------------------------------------------------

class OTPError(NoticeboardError):
    """Base exception for a single OTP lookup attempt."""


class OTPNotReady(OTPError):
    """404: the code has not been issued yet. Retryable."""


class OTPServiceError(OTPError):
    """Non-404 error status, malformed body, or transport failure."""


# ---------------------------------------------------------------------------
# Session storage
# ---------------------------------------------------------------------------

class SessionStoreError(NoticeboardError):
    """The persisted session slot could not be read or written."""


# ---------------------------------------------------------------------------
# Crawl
# ---------------------------------------------------------------------------

class CrawlNavigationError(NoticeboardError):
    """The notice grid never became visible."""


class PanelOptionDisabled(NoticeboardError):
    """A menu option is rendered disabled by the portal."""


class DocumentRecoveryError(NoticeboardError):
    """A protected document could not be recovered or uploaded."""


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------

class WebhookDeliveryError(NoticeboardError):
    """The webhook rejected the batch or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
