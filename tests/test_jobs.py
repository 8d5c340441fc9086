"""Tests for noticeboard/jobs.py — end-to-end job orchestration over the fake portal."""

from __future__ import annotations

import pytest
from unittest.mock import AsyncMock, patch

from noticeboard.errors import (
    ChallengeAnswerMissing,
    ConfigurationError,
    CrawlNavigationError,
    WebhookDeliveryError,
)
from noticeboard.jobs import NoticeJobError, scrape_notices
from noticeboard.session_store import MemorySessionStore

from portal_fakes import install_grid, install_login_form, notice_body

ROWS = [
    {"notice_at": "05-01-2023 10:00", "type": "Shortlist", "subject": "Round 2",
     "company": "Acme Corp", "body": notice_body("Report at 9")},
    {"notice_at": "03-01-2023 09:00", "type": "PPT", "subject": "Talk",
     "company": "Globex", "body": notice_body("Nalanda")},
    {"notice_at": "31-12-2022 23:00", "type": "Result", "subject": "Old",
     "company": "Initech", "body": notice_body("Old")},
]


@pytest.fixture
def live_driver(fake_driver):
    """Fake portal with a session that is already alive."""
    fake_driver.cookie_jar = [{"name": "ssoToken", "value": "live"}]
    fake_driver.alive_tokens.add("live")
    return fake_driver


async def _run(request, driver, config, otp_client, store=None, uploader=None):
    return await scrape_notices(
        request,
        config=config,
        store=store or MemorySessionStore(),
        otp_client=otp_client,
        uploader=uploader,
        driver_factory=AsyncMock(return_value=driver),
    )


@pytest.mark.unit
class TestScrapeNotices:

    async def test_delivers_new_notices(self, scrape_request, live_driver, test_settings,
                                        mock_otp_client):
        install_grid(live_driver, ROWS)
        with patch("noticeboard.jobs.post_notices_to_webhook", new_callable=AsyncMock) as post:
            notices = await _run(scrape_request, live_driver, test_settings, mock_otp_client)

        assert [n.company for n in notices] == ["Acme Corp", "Globex"]
        post.assert_awaited_once_with(
            test_settings.notice_webhook_url, notices,
            timeout=test_settings.webhook_timeout_seconds,
        )
        assert live_driver.close_count == 1

    async def test_browser_closed_before_delivery(self, scrape_request, live_driver,
                                                  test_settings, mock_otp_client):
        install_grid(live_driver, ROWS)
        closes_at_post = []

        async def record(*args, **kwargs):
            closes_at_post.append(live_driver.close_count)

        with patch("noticeboard.jobs.post_notices_to_webhook", side_effect=record):
            await _run(scrape_request, live_driver, test_settings, mock_otp_client)

        assert closes_at_post == [1]

    async def test_nothing_new_skips_delivery(self, scrape_request, live_driver,
                                              test_settings, mock_otp_client):
        install_grid(live_driver, ROWS[2:])
        with patch("noticeboard.jobs.post_notices_to_webhook", new_callable=AsyncMock) as post:
            notices = await _run(scrape_request, live_driver, test_settings, mock_otp_client)

        assert notices == []
        post.assert_not_awaited()
        assert live_driver.close_count == 1

    async def test_delivery_failure_is_job_error(self, scrape_request, live_driver,
                                                 test_settings, mock_otp_client):
        install_grid(live_driver, ROWS)
        with patch(
            "noticeboard.jobs.post_notices_to_webhook",
            new_callable=AsyncMock,
            side_effect=WebhookDeliveryError("503", status_code=503),
        ):
            with pytest.raises(NoticeJobError, match="21CS10012") as exc_info:
                await _run(scrape_request, live_driver, test_settings, mock_otp_client)

        assert isinstance(exc_info.value.__cause__, WebhookDeliveryError)
        assert live_driver.close_count == 1

    async def test_login_failure_is_job_error(self, scrape_request, fake_driver,
                                              test_settings, mock_otp_client):
        install_login_form(fake_driver, question="Favourite colour?")
        with patch("noticeboard.jobs.post_notices_to_webhook", new_callable=AsyncMock) as post:
            with pytest.raises(NoticeJobError) as exc_info:
                await _run(scrape_request, fake_driver, test_settings, mock_otp_client)

        assert isinstance(exc_info.value.__cause__, ChallengeAnswerMissing)
        post.assert_not_awaited()
        assert fake_driver.close_count == 1

    async def test_grid_failure_is_job_error(self, scrape_request, live_driver,
                                             test_settings, mock_otp_client):
        with pytest.raises(NoticeJobError) as exc_info:
            await _run(scrape_request, live_driver, test_settings, mock_otp_client)

        assert isinstance(exc_info.value.__cause__, CrawlNavigationError)
        assert live_driver.close_count == 1

    async def test_token_persisted_after_login(self, scrape_request, live_driver,
                                               test_settings, mock_otp_client):
        install_grid(live_driver, [])
        store = MemorySessionStore()

        await _run(scrape_request, live_driver, test_settings, mock_otp_client, store=store)

        assert store.token == "live"

    async def test_missing_configuration_fails_before_browser(self, scrape_request,
                                                              test_settings, mock_otp_client):
        config = test_settings.model_copy(update={"notice_webhook_url": ""})
        factory = AsyncMock()

        with pytest.raises(ConfigurationError, match="NOTICEBOARD_NOTICE_WEBHOOK_URL"):
            await scrape_notices(
                scrape_request, config=config, otp_client=mock_otp_client,
                driver_factory=factory,
            )
        factory.assert_not_awaited()

    async def test_owned_otp_client_is_closed(self, scrape_request, live_driver,
                                              test_settings):
        install_grid(live_driver, [])
        with patch("noticeboard.jobs.OTPClient") as mock_cls:
            mock_cls.return_value.close = AsyncMock()
            await scrape_notices(
                scrape_request,
                config=test_settings,
                store=MemorySessionStore(),
                driver_factory=AsyncMock(return_value=live_driver),
            )

        assert mock_cls.call_args.args == (test_settings.otp_api_url,)
        mock_cls.return_value.close.assert_awaited_once()

    async def test_storage_disabled_means_no_uploader(self, scrape_request, live_driver,
                                                      test_settings, mock_otp_client):
        install_grid(live_driver, [])
        with patch("noticeboard.jobs.DocumentPipeline") as mock_pipeline:
            await _run(scrape_request, live_driver, test_settings, mock_otp_client)

        assert mock_pipeline.call_args.args[1] is None

    async def test_uploader_uses_job_config(self, scrape_request, live_driver,
                                            test_settings, mock_otp_client):
        install_grid(live_driver, [])
        config = test_settings.model_copy(update={
            "supabase_url": "https://job.supabase.co",
            "supabase_service_role_key": "job-key",
        })
        with patch("noticeboard.jobs.SupabaseStorageUploader") as mock_uploader:
            await _run(scrape_request, live_driver, config, mock_otp_client)

        mock_uploader.assert_called_once_with(config.storage_bucket, config=config)
