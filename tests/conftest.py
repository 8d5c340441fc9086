"""
Shared fixtures for noticeboard tests.

Strategy:
- No real browser: FakePortalDriver implements PortalDriver over dicts of
  selector -> text/attribute/markup, with click handlers for dialogs and
  the login form.
- No real network: OTP service, webhook and storage are mocked.
- Settings are real Settings objects built without env files, with every
  wait shrunk to zero.
"""

from __future__ import annotations

import os

# Set dummy env vars BEFORE any noticeboard module is imported.
os.environ.setdefault("NOTICEBOARD_OTP_API_URL", "https://otp.test/api/otp")
os.environ.setdefault("NOTICEBOARD_NOTICE_WEBHOOK_URL", "https://hooks.test/notices")

from unittest.mock import AsyncMock, MagicMock

import pytest

from noticeboard.config import Settings
from noticeboard.models import Credentials, ScrapeRequest
from noticeboard.session_store import MemorySessionStore

from portal_fakes import SECURITY_ANSWERS, FakePortalDriver


# ── Settings ──────────────────────────────────────────────


@pytest.fixture
def test_settings(tmp_path):
    """Real Settings with test-safe endpoints and zero waits."""
    return Settings(
        _env_file=None,
        otp_api_url="https://otp.test/api/otp",
        notice_webhook_url="https://hooks.test/notices",
        session_token_path=str(tmp_path / "session.txt"),
        crawl_via_menu=False,
        otp_initial_delay_seconds=0,
        otp_retry_delay_seconds=0,
        navigation_timeout_seconds=0.01,
        selector_timeout_seconds=0.01,
        grid_timeout_seconds=0.01,
        dialog_timeout_seconds=0.01,
        document_timeout_seconds=0.01,
        timezone="Asia/Kolkata",
    )


# ── Domain fixtures ───────────────────────────────────────


@pytest.fixture
def credentials():
    return Credentials(
        rollNo="21CS10012",
        password="hunter2",
        securityAnswers=dict(SECURITY_ANSWERS),
    )


@pytest.fixture
def scrape_request():
    return ScrapeRequest(
        rollNo="21CS10012",
        password="hunter2",
        securityAnswers=dict(SECURITY_ANSWERS),
        lastKnownNoticeAt="2023-01-01T00:00",
    )


@pytest.fixture
def fake_driver(test_settings):
    return FakePortalDriver(test_settings)


@pytest.fixture
def memory_store():
    return MemorySessionStore()


@pytest.fixture
def mock_otp_client():
    client = MagicMock()
    client.fetch_code = AsyncMock(return_value="482913")
    client.close = AsyncMock()
    return client


@pytest.fixture
def mock_uploader():
    uploader = MagicMock()
    uploader.upload = AsyncMock(return_value="https://cdn.test/notices/doc.pdf")
    return uploader
