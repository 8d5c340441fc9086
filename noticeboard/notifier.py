"""
Webhook delivery.

RULES:
1. One POST per job: the whole batch as a JSON array, newest-first.
2. Non-2xx or a transport failure raises WebhookDeliveryError.
3. No retry and no local queue. A failed delivery loses the batch for
   that run.
"""

from __future__ import annotations

import logging

import httpx

from noticeboard.errors import WebhookDeliveryError
from noticeboard.models import Notice

logger = logging.getLogger(__name__)


async def post_notices_to_webhook(
    webhook_url: str, notices: list[Notice], timeout: int = 30
) -> None:
    """POST the batch to the downstream consumer."""
    payload = [notice.to_payload() for notice in notices]
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(webhook_url, json=payload)
    except httpx.HTTPError as e:
        logger.error("Failed to post notices to webhook %s", webhook_url, exc_info=True)
        raise WebhookDeliveryError(f"Webhook request failed: {e}") from e

    if not resp.is_success:
        logger.error(
            "Webhook %s responded with %d: %s",
            webhook_url, resp.status_code, resp.text[:500],
        )
        raise WebhookDeliveryError(
            f"Webhook responded with {resp.status_code} {resp.reason_phrase}. "
            f"Body: {resp.text[:500]}",
            status_code=resp.status_code,
        )

    logger.info("Posted %d notices to webhook %s", len(notices), webhook_url)
