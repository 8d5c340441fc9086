"""Tests for noticeboard.config — Settings and required-endpoint validation."""

from __future__ import annotations

import os

import pytest

from noticeboard.config import Settings, validate_settings
from noticeboard.errors import ConfigurationError


@pytest.fixture
def clean_env(monkeypatch):
    # Clear any NOTICEBOARD_ env vars set by conftest
    for key in list(os.environ):
        if key.startswith("NOTICEBOARD_"):
            monkeypatch.delenv(key)


@pytest.mark.unit
def test_default_values(clean_env):
    s = Settings(_env_file=None)

    assert s.portal_welcome_url == "https://erp.iitkgp.ac.in/IIT_ERP3/welcome.jsp"
    assert s.session_cookie_name == "ssoToken"
    assert s.session_token_path == "session.txt"
    assert s.otp_api_url == ""
    assert s.otp_max_attempts == 4
    assert s.otp_initial_delay_seconds == 10.0
    assert s.otp_retry_delay_seconds == 5.0
    assert s.notice_webhook_url == ""
    assert s.document_strategy == "auto"
    assert s.notice_body_skip_lines == 4
    assert s.timezone == "Asia/Kolkata"
    assert s.port == 9000
    assert s.storage_enabled is False


@pytest.mark.unit
def test_env_prefix_loading(clean_env, monkeypatch):
    monkeypatch.setenv("NOTICEBOARD_OTP_API_URL", "https://otp.example.com/api/otp")
    monkeypatch.setenv("NOTICEBOARD_OTP_MAX_ATTEMPTS", "6")
    monkeypatch.setenv("NOTICEBOARD_BROWSER_HEADLESS", "false")
    monkeypatch.setenv("NOTICEBOARD_DOCUMENT_STRATEGY", "intercept")

    s = Settings(_env_file=None)

    assert s.otp_api_url == "https://otp.example.com/api/otp"
    assert s.otp_max_attempts == 6
    assert s.browser_headless is False
    assert s.document_strategy == "intercept"


@pytest.mark.unit
def test_storage_enabled_requires_url_and_key(clean_env):
    assert Settings(_env_file=None, supabase_url="https://x.supabase.co").storage_enabled is False
    assert Settings(
        _env_file=None,
        supabase_url="https://x.supabase.co",
        supabase_service_role_key="svc",
    ).storage_enabled is True


@pytest.mark.unit
class TestValidateSettings:

    def test_complete_config_passes(self, test_settings):
        validate_settings(test_settings)

    def test_names_missing_otp_url(self, clean_env):
        s = Settings(_env_file=None, notice_webhook_url="https://hooks.test/n")
        with pytest.raises(ConfigurationError, match="NOTICEBOARD_OTP_API_URL"):
            validate_settings(s)

    def test_names_every_missing_endpoint(self, clean_env):
        s = Settings(_env_file=None, otp_api_url="   ")
        with pytest.raises(ConfigurationError) as exc_info:
            validate_settings(s)
        message = str(exc_info.value)
        assert "NOTICEBOARD_OTP_API_URL" in message
        assert "NOTICEBOARD_NOTICE_WEBHOOK_URL" in message
