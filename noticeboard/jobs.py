"""
Notice scrape job.

FLOW:
1. Validate configuration (before any browser work).
2. Start the browser and log in (session reuse first).
3. Scan the grid for notices newer than the watermark.
4. Nothing new -> done, no delivery.
5. Close the browser, then POST the batch to the webhook.

The session is closed exactly once in every outcome; closing is idempotent
so the early close on the delivery path and the ``finally`` close agree.
"""

from __future__ import annotations

import logging

from noticeboard.config import Settings, settings, validate_settings
from noticeboard.crawler import NoticeCrawler
from noticeboard.documents import DocumentPipeline
from noticeboard.errors import NoticeboardError
from noticeboard.models import Notice, ScrapeRequest
from noticeboard.notifier import post_notices_to_webhook
from noticeboard.otp_client import OTPClient
from noticeboard.session import DriverFactory, PortalSession
from noticeboard.session_store import FileSessionStore, SessionStore
from noticeboard.storage import DocumentUploader, SupabaseStorageUploader

logger = logging.getLogger(__name__)


class NoticeJobError(NoticeboardError):
    """Job-level failure. The cause is the structural error that aborted it."""


def _default_uploader(config: Settings) -> DocumentUploader | None:
    if not config.storage_enabled:
        logger.warning("Supabase storage not configured; documents will be skipped.")
        return None
    return SupabaseStorageUploader(config.storage_bucket, config=config)


async def scrape_notices(
    request: ScrapeRequest,
    *,
    config: Settings | None = None,
    store: SessionStore | None = None,
    otp_client: OTPClient | None = None,
    uploader: DocumentUploader | None = None,
    driver_factory: DriverFactory | None = None,
) -> list[Notice]:
    """Run one end-to-end job and return the delivered batch."""
    config = config or settings
    validate_settings(config)

    identifier = request.identifier
    logger.info("Notice scraping job started for %s", identifier)

    owns_otp_client = otp_client is None
    if otp_client is None:
        otp_client = OTPClient(
            config.otp_api_url,
            max_attempts=config.otp_max_attempts,
            initial_delay=config.otp_initial_delay_seconds,
            retry_delay=config.otp_retry_delay_seconds,
            backoff_factor=config.otp_backoff_factor,
            retry_delay_cap=config.otp_retry_delay_cap_seconds,
            timeout=config.otp_request_timeout_seconds,
        )
    if uploader is None:
        uploader = _default_uploader(config)

    session = PortalSession(
        request.credentials(),
        store=store or FileSessionStore(config.session_token_path),
        otp_client=otp_client,
        config=config,
        driver_factory=driver_factory,
    )

    try:
        await session.init()
        await session.login()
        logger.info("Session established for %s", identifier)

        documents = DocumentPipeline(session.driver, uploader, config=config)
        crawler = NoticeCrawler(
            session.driver,
            request.last_known_notice_at,
            documents=documents,
            config=config,
        )
        notices = await crawler.scan()

        if not notices:
            logger.info("No new notices found for %s. Job finished.", identifier)
            return notices

        logger.info("Found %d new notices. Posting to webhook.", len(notices))
        await session.close()
        await post_notices_to_webhook(
            config.notice_webhook_url, notices, timeout=config.webhook_timeout_seconds
        )
        logger.info("Posted notices to webhook. Job finished for %s.", identifier)
        return notices

    except Exception as e:
        logger.error("Notice scraping job failed for %s", identifier, exc_info=True)
        raise NoticeJobError(
            f"Notice scraping failed for roll number {identifier}: {e}"
        ) from e
    finally:
        await session.close()
        if owns_otp_client:
            await otp_client.close()
