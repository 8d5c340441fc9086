"""
Single-slot session token storage.

One opaque token at a time: ``save`` overwrites, ``load`` returns None when
nothing has been stored. Concurrent jobs share the file slot and the last
writer wins.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import Protocol

from noticeboard.errors import SessionStoreError

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def load(self) -> str | None: ...

    def save(self, token: str) -> None: ...


class FileSessionStore:
    """Token kept as plain text in one well-known file."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> str | None:
        try:
            token = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            logger.info("Session token file %s does not exist.", self._path)
            return None
        except OSError as e:
            raise SessionStoreError(f"Failed to read session token: {e}") from e
        logger.info("Session token read from %s", self._path)
        return token or None

    def save(self, token: str) -> None:
        # One temp file per writer; os.replace swaps it in atomically.
        tmp_path = self._path.with_name(
            f".{self._path.name}.{os.getpid()}.{uuid.uuid4().hex}.tmp"
        )
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(token, encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise SessionStoreError(f"Failed to save session token: {e}") from e
        logger.info("Session token saved to %s", self._path)


class MemorySessionStore:
    """In-process slot, for tests and one-off runs."""

    def __init__(self, token: str | None = None):
        self.token = token
        self.saves = 0

    def load(self) -> str | None:
        return self.token

    def save(self, token: str) -> None:
        self.token = token
        self.saves += 1
