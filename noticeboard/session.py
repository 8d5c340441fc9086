"""
Portal session: browser lifecycle and the login state machine.

FLOW (login):
1. Probe liveness (authenticated-only page; a redirect means "not alive").
   Alive -> persist the current token and return. No credentials are sent.
2. Restore the persisted token as the session cookie and probe again.
3. Full login: credentials -> security challenge -> OTP -> submit.
4. Verify: session cookie present (SessionTokenMissing otherwise) and the
   probe succeeds (LoginRejected otherwise). Only then overwrite the stored
   token.

Every step is sequential. Nothing is retried here beyond OTP polling. Errors
carry the identifier, never the password or answers.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Awaitable, Callable

from noticeboard.browser import PlaywrightDriver, PortalDriver
from noticeboard.config import Settings, settings
from noticeboard.dates import utc_now_iso
from noticeboard.errors import (
    AuthError,
    BrowserInitError,
    ChallengeAnswerMissing,
    ChallengeQuestionMissing,
    LoginError,
    LoginRejected,
    SessionTokenMissing,
)
from noticeboard.models import Credentials
from noticeboard.otp_client import OTPClient
from noticeboard.selectors import DEFAULT_SELECTORS, PortalSelectors
from noticeboard.session_store import SessionStore

logger = logging.getLogger(__name__)

DriverFactory = Callable[[], Awaitable[PortalDriver]]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


def _normalise_question(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip().casefold()


def lookup_security_answer(answers: dict[str, str], question: str) -> str | None:
    """Exact trimmed match first, then case- and whitespace-insensitive."""
    question = question.strip()
    if question in answers:
        return answers[question]
    wanted = _normalise_question(question)
    for known, answer in answers.items():
        if _normalise_question(known) == wanted:
            return answer
    return None


class PortalSession:
    """Produces an authenticated browser handle, reusing sessions when it can."""

    def __init__(
        self,
        credentials: Credentials,
        *,
        store: SessionStore,
        otp_client: OTPClient,
        config: Settings | None = None,
        selectors: PortalSelectors = DEFAULT_SELECTORS,
        driver_factory: DriverFactory | None = None,
    ):
        self._credentials = credentials
        self._store = store
        self._otp_client = otp_client
        self._config = config or settings
        self._selectors = selectors
        self._driver_factory = driver_factory or (
            lambda: PlaywrightDriver.launch(self._config)
        )
        self._driver: PortalDriver | None = None
        self.state = SessionState.UNINITIALIZED

    @property
    def identifier(self) -> str:
        return self._credentials.identifier

    @property
    def driver(self) -> PortalDriver:
        if self._driver is None:
            raise RuntimeError("Browser not available. Ensure session is initialized.")
        return self._driver

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """Start a fresh, isolated browser context."""
        logger.info("Initializing browser session for %s", self.identifier)
        try:
            self._driver = await self._driver_factory()
        except Exception as e:
            logger.error("Failed to initialize browser", exc_info=True)
            raise BrowserInitError(self.identifier, f"Browser failed to start: {e}") from e
        self.state = SessionState.INITIALIZED
        logger.info("Browser initialized successfully.")

    async def close(self) -> None:
        """Best-effort teardown. Idempotent; never raises."""
        if self.state is SessionState.CLOSED or self._driver is None:
            self.state = SessionState.CLOSED
            return
        try:
            await self._driver.close()
            logger.info("Browser closed successfully.")
        except Exception:
            logger.error("Error closing the browser", exc_info=True)
        finally:
            self._driver = None
            self.state = SessionState.CLOSED

    # ------------------------------------------------------------------
    # Liveness and token
    # ------------------------------------------------------------------

    async def is_session_alive(self) -> bool:
        """Visit the welcome page; the portal redirects to login when stale."""
        welcome = self._config.portal_welcome_url
        try:
            final_url = await self.driver.navigate(
                welcome, timeout=self._config.navigation_timeout_seconds
            )
        except Exception:
            logger.warning("Liveness probe navigation failed", exc_info=True)
            return False
        return welcome in final_url.split("?")[0]

    async def _session_token(self) -> str | None:
        for cookie in await self.driver.cookies():
            if cookie.get("name") == self._config.session_cookie_name and cookie.get("value"):
                return cookie["value"]
        return None

    async def _persist_token(self) -> None:
        token = await self._session_token()
        if not token:
            raise SessionTokenMissing(self.identifier, "Session token not found in cookies")
        self._store.save(token)

    async def _restore_token(self, token: str) -> bool:
        await self.driver.set_cookie(
            self._config.session_cookie_name,
            token,
            domain=self._config.session_cookie_domain,
        )
        return await self.is_session_alive()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(self) -> None:
        if self._driver is None:
            raise RuntimeError("Browser not initialized. Call init() first.")

        if await self.is_session_alive():
            logger.info("Session is already alive. Skipping login.")
            await self._persist_token()
            self.state = SessionState.AUTHENTICATED
            return

        saved_token = self._store.load()
        if saved_token and await self._restore_token(saved_token):
            logger.info("Using existing session token. Login skipped.")
            await self._persist_token()
            self.state = SessionState.AUTHENTICATED
            return

        logger.info("Starting portal login flow for %s", self.identifier)
        try:
            await self._navigate_to_login_page()
            await self._fill_credentials()
            await self._answer_security_question()
            await self._submit_otp()
        except AuthError:
            logger.error("Login flow failed for %s", self.identifier, exc_info=True)
            raise
        except Exception as e:
            logger.error("Login flow failed for %s", self.identifier, exc_info=True)
            raise LoginError(
                self.identifier, f"Login step failed: {type(e).__name__}: {e}"
            ) from e

        token = await self._session_token()
        if not token:
            raise SessionTokenMissing(
                self.identifier, "Session token not found in cookies after login"
            )
        if not await self.is_session_alive():
            raise LoginRejected(self.identifier, "Portal did not accept the login")

        self._store.save(token)
        self.state = SessionState.AUTHENTICATED
        logger.info("Login flow completed successfully for %s", self.identifier)

    async def _navigate_to_login_page(self) -> None:
        await self.driver.navigate(
            self._config.portal_login_url,
            timeout=self._config.navigation_timeout_seconds,
        )
        await self.driver.wait_for(
            self._selectors.username_input,
            timeout=self._config.selector_timeout_seconds,
        )

    async def _fill_credentials(self) -> None:
        logger.info("Filling user credentials (username and password).")
        await self.driver.fill(self._selectors.username_input, self.identifier)
        await self.driver.fill(
            self._selectors.password_input,
            self._credentials.password.get_secret_value(),
        )

    async def _answer_security_question(self) -> None:
        logger.info("Handling security question.")
        await self.driver.wait_for(
            self._selectors.security_answer_panel,
            timeout=self._config.selector_timeout_seconds,
        )
        question = (await self.driver.read_text(self._selectors.security_question_text) or "").strip()
        if not question:
            raise ChallengeQuestionMissing(
                self.identifier, "Could not extract security question text"
            )

        answer = lookup_security_answer(self._credentials.security_answers, question)
        if answer is None:
            raise ChallengeAnswerMissing(self.identifier, question)

        logger.info("Found matching security answer, filling it in.")
        await self.driver.fill(self._selectors.security_answer_input, answer)

    async def _submit_otp(self) -> None:
        logger.info("Requesting and submitting OTP.")
        requested_at = utc_now_iso()
        await self.driver.click(self._selectors.otp_request_button)

        code = await self._otp_client.fetch_code(self.identifier, requested_at)
        logger.info("Successfully fetched OTP.")

        await self.driver.fill(self._selectors.otp_input, code)
        await self.driver.click(self._selectors.login_submit_button)
        try:
            await self.driver.wait_for(
                self._selectors.otp_input,
                state="hidden",
                timeout=self._config.navigation_timeout_seconds,
            )
        except Exception:
            logger.warning("Login form still visible after submission", exc_info=True)
