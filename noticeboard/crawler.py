"""
Notice grid crawler.

FLOW PER SCAN:
1. Reach the notice grid (optionally through the portal menu first) and
   wait for it. Any failure here is fatal: CrawlNavigationError.
2. Walk rows top to bottom. The grid is sorted newest-first.
3. Parse the row timestamp (DD-MM-YYYY HH:mm, portal timezone). Blank or
   malformed -> skip the row and keep going.
4. Timestamp <= watermark -> stop. Rows below are never read.
5. Extract fields; a missing cell becomes "N/A".
6. Body comes from the detail dialog (leading boilerplate lines dropped,
   markup stripped). If the dialog fails, fall back to the link title.
7. A "Download" action is resolved through the DocumentPipeline; failures
   leave the notice without a document.
8. Any other per-row failure skips that row only.

Result order is grid order (newest-first). Nothing is re-sorted.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from noticeboard.browser import PortalDriver
from noticeboard.config import Settings, settings
from noticeboard.dates import as_portal_time, parse_notice_at
from noticeboard.documents import DocumentPipeline
from noticeboard.errors import CrawlNavigationError, PanelOptionDisabled
from noticeboard.models import Notice
from noticeboard.selectors import DEFAULT_SELECTORS, PortalSelectors

logger = logging.getLogger(__name__)

MISSING_FIELD = "N/A"
_DIALOG_CLOSE_TIMEOUT_SECONDS = 5.0
_BR_PATTERN = re.compile(r"<br\s*/?>", re.IGNORECASE)


def strip_notice_markup(raw_html: str, skip_lines: int) -> str:
    """Drop the leading boilerplate lines of a notice body and strip tags."""
    lines = _BR_PATTERN.split(raw_html)
    body = "\n".join(lines[skip_lines:])
    return BeautifulSoup(body, "html.parser").get_text().strip()


class NoticeCrawler:
    """Reads notices newer than a watermark from the authenticated grid."""

    def __init__(
        self,
        driver: PortalDriver,
        watermark: datetime,
        *,
        documents: DocumentPipeline | None = None,
        config: Settings | None = None,
        selectors: PortalSelectors = DEFAULT_SELECTORS,
    ):
        self._driver = driver
        self._config = config or settings
        self._selectors = selectors
        self._documents = documents
        self._watermark = as_portal_time(watermark, self._config.timezone)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def _open_panel_option(self, heading: str, option: str) -> None:
        """Expand a menu panel and click one of its options."""
        await self._driver.click(self._selectors.panel_heading(heading))

        option_selector = self._selectors.panel_option(option)
        classes = await self._driver.read_attribute(option_selector, "class") or ""
        if self._selectors.menu_disabled_class in classes.split():
            raise PanelOptionDisabled(
                f'Option "{option}" appears disabled (class="{classes}").'
            )
        await self._driver.click(option_selector)

    async def _navigate_via_menu(self) -> None:
        sel = self._selectors
        await self._driver.navigate(
            self._config.portal_menu_url,
            timeout=self._config.navigation_timeout_seconds,
        )
        logger.info("Navigated to placement menu: %s", self._config.portal_menu_url)

        await self._driver.wait_for(sel.menu_accordion, timeout=self._config.grid_timeout_seconds)
        await self._driver.click(sel.menu_module_link)
        await self._open_panel_option(sel.menu_panel_heading, sel.menu_panel_option)

        await self._driver.wait_for(sel.content_frame, timeout=self._config.grid_timeout_seconds)
        await self._driver.click(sel.notice_menu_link, frame=sel.content_frame)
        logger.info("Waiting for the notices grid to be visible.")
        await self._driver.wait_for(
            sel.grid, timeout=self._config.grid_timeout_seconds, frame=sel.content_frame
        )

    async def _open_grid(self) -> None:
        try:
            if self._config.crawl_via_menu:
                await self._navigate_via_menu()
            await self._driver.navigate(
                self._config.portal_notices_url,
                timeout=self._config.navigation_timeout_seconds,
            )
            await self._driver.wait_for(
                self._selectors.grid,
                state="attached",
                timeout=self._config.grid_timeout_seconds,
            )
        except PanelOptionDisabled as e:
            raise CrawlNavigationError(str(e)) from e
        except Exception as e:
            raise CrawlNavigationError(f"Notice grid did not load: {e}") from e

    # ------------------------------------------------------------------
    # Row extraction
    # ------------------------------------------------------------------

    async def _cell_text(self, index: int, column: str) -> str:
        text = await self._driver.read_text(self._selectors.cell(index, column))
        return (text or "").strip() or MISSING_FIELD

    async def _close_dialog(self) -> None:
        sel = self._selectors
        await self._driver.click(f"{sel.visible_dialog} {sel.dialog_close_button}")
        await self._driver.wait_for(
            sel.visible_dialog, state="hidden", timeout=_DIALOG_CLOSE_TIMEOUT_SECONDS
        )

    async def _dismiss_dialog(self) -> None:
        """Close a dialog left open by a failed read, if there is one."""
        try:
            if await self._driver.count(self._selectors.visible_dialog):
                await self._close_dialog()
        except Exception:
            logger.debug("Could not dismiss notice dialog", exc_info=True)

    async def _extract_notice_text(self, index: int) -> str:
        sel = self._selectors
        link = sel.cell_link(index, sel.column_notice)
        try:
            await self._driver.click(link)
            await self._driver.wait_for(
                sel.visible_dialog, timeout=self._config.dialog_timeout_seconds
            )
            await self._driver.wait_for(
                sel.notice_body,
                timeout=self._config.dialog_timeout_seconds,
                frame=sel.dialog_frame,
            )
            raw_html = await self._driver.read_html(sel.notice_body, frame=sel.dialog_frame)
            text = strip_notice_markup(raw_html, self._config.notice_body_skip_lines)
            await self._close_dialog()
            return text
        except Exception as e:
            logger.warning(
                "Failed to extract full notice text from dialog, falling back to title: %s", e
            )
            await self._dismiss_dialog()
            title = await self._driver.read_attribute(link, "title")
            return (title or "").strip()

    async def _document_reference(self, link: str) -> str | None:
        sel = self._selectors
        try:
            await self._driver.click(link)
            await self._driver.wait_for(
                sel.visible_dialog, timeout=self._config.dialog_timeout_seconds
            )
            src = await self._driver.read_attribute(sel.dialog_frame, "src")
            page_url = await self._driver.current_url()
            await self._close_dialog()
        except Exception as e:
            logger.warning("Could not extract document URL: %s", e)
            await self._dismiss_dialog()
            return None
        return urljoin(page_url, src) if src else None

    async def _extract_document(self, index: int, company: str, subject: str) -> str | None:
        sel = self._selectors
        link = sel.cell_link(index, sel.column_document)
        try:
            if (await self._driver.read_text(link) or "").strip() != sel.document_link_text:
                return None
            if self._documents is None:
                return None
            reference = await self._document_reference(link)
            if not reference:
                return None
            return await self._documents.recover(reference, company=company, subject=subject)
        except Exception:
            logger.error("Attachment resolution failed for row %d", index + 1, exc_info=True)
            return None

    async def _extract_row(self, index: int, notice_at: datetime) -> Notice:
        sel = self._selectors
        notice_type = await self._cell_text(index, sel.column_type)
        subject = await self._cell_text(index, sel.column_subject)
        company = await self._cell_text(index, sel.column_company)
        notice_text = await self._extract_notice_text(index)
        document_url = await self._extract_document(index, company, subject)
        return Notice(
            type=notice_type,
            subject=subject,
            company=company,
            notice_text=notice_text,
            notice_at=notice_at.isoformat(),
            document_url=document_url,
        )

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    async def scan(self, watermark: datetime | None = None) -> list[Notice]:
        """Return notices strictly newer than the watermark, newest-first."""
        if watermark is not None:
            self._watermark = as_portal_time(watermark, self._config.timezone)

        logger.info("Starting notice scan (watermark=%s)", self._watermark.isoformat())
        await self._open_grid()

        total = await self._driver.count(self._selectors.grid_row)
        logger.info("Found %d notice rows to process.", total)

        notices: list[Notice] = []
        for index in range(total):
            try:
                raw_notice_at = await self._driver.read_text(
                    self._selectors.cell(index, self._selectors.column_notice_at)
                )
            except Exception:
                logger.error("Failed to read date of row %d", index + 1, exc_info=True)
                continue

            notice_at = parse_notice_at(raw_notice_at, self._config.timezone)
            if notice_at is None:
                logger.warning(
                    "Skipping row %d due to missing or malformed notice date: %r",
                    index + 1, raw_notice_at,
                )
                continue

            if notice_at <= self._watermark:
                logger.info(
                    "Reached notices at or before %s (row %d). Stopping scan.",
                    self._watermark.isoformat(), index + 1,
                )
                break

            try:
                notice = await self._extract_row(index, notice_at)
            except Exception:
                logger.error("Failed to process row %d", index + 1, exc_info=True)
                continue

            notices.append(notice)
            logger.info("Scraped notice row %d (%s)", index + 1, notice.company)

        logger.info("Scan complete. Found %d new notices.", len(notices))
        return notices
