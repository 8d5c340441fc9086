"""
Protected document recovery.

A notice attachment is only reachable inside the authenticated session.
Two portal variants exist:

- intercept: open the reference in an auxiliary tab and capture the
  internal PDF viewer's network response.
- fetch: GET the reference directly with the context cookies and
  browser-like headers.

``auto`` probes with a direct fetch on the first attachment. A PDF-looking
2xx answer pins the pipeline to ``fetch``; anything else pins it to
``intercept`` for the rest of the crawl.

Recovery is best-effort: every failure is logged and ends in None.
"""

from __future__ import annotations

import logging

from noticeboard.browser import FetchResult, PortalDriver
from noticeboard.config import Settings, settings
from noticeboard.errors import DocumentRecoveryError
from noticeboard.selectors import DEFAULT_SELECTORS, PortalSelectors
from noticeboard.storage import DocumentUploader, document_filename

logger = logging.getLogger(__name__)

STRATEGY_AUTO = "auto"
STRATEGY_INTERCEPT = "intercept"
STRATEGY_FETCH = "fetch"
_STRATEGIES = {STRATEGY_AUTO, STRATEGY_INTERCEPT, STRATEGY_FETCH}


def _looks_like_pdf(result: FetchResult) -> bool:
    content_type = next(
        (v for k, v in result.headers.items() if k.lower() == "content-type"), ""
    )
    return result.body.startswith(b"%PDF") or "pdf" in content_type.lower()


class DocumentPipeline:
    """Turns a protected document reference into a durable public URL."""

    def __init__(
        self,
        driver: PortalDriver,
        uploader: DocumentUploader | None,
        *,
        config: Settings | None = None,
        selectors: PortalSelectors = DEFAULT_SELECTORS,
        strategy: str | None = None,
    ):
        self._driver = driver
        self._uploader = uploader
        self._config = config or settings
        self._selectors = selectors
        strategy = (strategy or self._config.document_strategy).strip().lower()
        if strategy not in _STRATEGIES:
            raise ValueError(f"Unknown document strategy: {strategy!r}")
        self.strategy = strategy

    def _headers(self) -> dict[str, str]:
        return {
            "User-Agent": self._config.browser_user_agent,
            "Accept": "application/pdf,text/html;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": self._config.portal_notices_url,
        }

    async def _fetch(self, url: str, *, require_pdf: bool) -> bytes:
        try:
            result = await self._driver.fetch(
                url, headers=self._headers(), timeout=self._config.document_timeout_seconds
            )
        except Exception as e:
            raise DocumentRecoveryError(f"Direct fetch failed: {e}") from e
        if not result.ok:
            raise DocumentRecoveryError(f"Direct fetch returned HTTP {result.status}")
        if require_pdf and not _looks_like_pdf(result):
            raise DocumentRecoveryError("Direct fetch did not return a PDF")
        return result.body

    async def _intercept(self, url: str) -> bytes:
        try:
            return await self._driver.capture_response(
                url,
                self._selectors.document_viewer_pattern,
                timeout=self._config.document_timeout_seconds,
            )
        except Exception as e:
            raise DocumentRecoveryError(f"No viewer response captured: {e}") from e

    async def _download(self, url: str) -> bytes:
        if self.strategy == STRATEGY_FETCH:
            return await self._fetch(url, require_pdf=False)
        if self.strategy == STRATEGY_INTERCEPT:
            return await self._intercept(url)

        try:
            data = await self._fetch(url, require_pdf=True)
        except DocumentRecoveryError as e:
            logger.info("Direct fetch unusable (%s); switching to response interception", e)
            self.strategy = STRATEGY_INTERCEPT
            return await self._intercept(url)
        logger.info("Direct fetch returned a document; using it for this crawl")
        self.strategy = STRATEGY_FETCH
        return data

    async def recover(self, reference_url: str, *, company: str, subject: str) -> str | None:
        """Download the protected document and upload it. None on any failure."""
        if self._uploader is None:
            logger.warning("Document storage not configured; skipping %s", reference_url)
            return None

        filename = document_filename(company, subject)
        logger.info("Recovering document %s as %s", reference_url, filename)
        try:
            data = await self._download(reference_url)
            if not data:
                raise DocumentRecoveryError("Empty document body")
            return await self._uploader.upload(data, filename)
        except Exception:
            logger.error(
                "Failed to download or upload the document %s", reference_url, exc_info=True
            )
            return None
