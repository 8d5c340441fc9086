"""
Object-storage upload boundary.

Raw bytes plus a filename in, publicly resolvable URL out. Documents land in
a Supabase Storage bucket under a random key prefix so two notices with the
same company and subject never overwrite each other.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from typing import Protocol

from supabase import Client

from noticeboard.config import Settings
from noticeboard.errors import DocumentRecoveryError
from noticeboard.supabase_client import get_supabase

logger = logging.getLogger(__name__)


class DocumentUploader(Protocol):
    async def upload(self, data: bytes, filename: str) -> str: ...


def sanitize_filename(name: str) -> str:
    name = re.sub(r"[\/\\\:\*\?\"\<\>\|]+", " ", name).strip()
    name = re.sub(r"\s+", " ", name)
    return name[:180]


def document_filename(company: str, subject: str) -> str:
    """``{company}_{subject}.pdf`` made safe for a storage key."""
    stem = sanitize_filename(f"{company}_{subject}") or "notice"
    return f"{stem[:176]}.pdf"


class SupabaseStorageUploader:
    """Uploads to a public Supabase Storage bucket."""

    def __init__(
        self,
        bucket: str,
        client: Client | None = None,
        config: Settings | None = None,
    ):
        self._bucket = bucket
        self._client = client
        self._config = config

    async def upload(self, data: bytes, filename: str) -> str:
        key = f"{uuid.uuid4().hex}/{filename.replace(' ', '_')}"

        def _do_upload() -> str:
            client = self._client or get_supabase(self._config)
            bucket = client.storage.from_(self._bucket)
            bucket.upload(key, data, {"content-type": "application/pdf"})
            return bucket.get_public_url(key)

        try:
            url = await asyncio.to_thread(_do_upload)
        except Exception as e:
            raise DocumentRecoveryError(f"Upload failed for {filename}: {e}") from e
        if not url:
            raise DocumentRecoveryError(f"Upload failed for {filename}: no public URL")

        logger.info("Uploaded %s (%d bytes) to bucket %s", filename, len(data), self._bucket)
        return url.rstrip("?")
