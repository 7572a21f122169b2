"""On-disk store for hosted report downloads (DELIVERY_MODE=link).

Files are named by an unguessable token; the token is the only credential
for the download URL. Expiry is checked against the file mtime.
"""

from __future__ import annotations

import os
import re
import secrets
import time
from pathlib import Path
from typing import Callable

from vinreport.observability.logging import get_logger
from vinreport.observability.redaction import prefix, safe_log_context

logger = get_logger(__name__)

_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]{20,64}$")
_SUFFIX = ".pdf"


class DownloadStore:
    """Save PDFs under random tokens and resolve tokens back to files."""

    def __init__(
        self,
        directory: str | os.PathLike,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(directory)
        self._ttl = ttl_seconds
        self._clock = clock

    def save(self, content: bytes) -> str:
        """Write content and return its token.

        Expired files are swept first, so files nobody downloads do not
        accumulate.
        """
        self._dir.mkdir(parents=True, exist_ok=True)
        removed = self.purge_expired()
        if removed:
            logger.info(
                "expired downloads purged",
                extra={"extra_fields": safe_log_context(removed=removed)},
            )
        token = secrets.token_urlsafe(24)
        path = self._dir / f"{token}{_SUFFIX}"
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(content)
        tmp.replace(path)
        logger.info(
            "report stored for download",
            extra={"extra_fields": safe_log_context(token_prefix=prefix(token, 6), size=len(content))},
        )
        return token

    def resolve(self, token: str) -> Path | None:
        """Return the file for token, or None if unknown or expired.

        Expired files are deleted when observed.
        """
        if not _TOKEN_PATTERN.match(token):
            return None
        path = self._dir / f"{token}{_SUFFIX}"
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return None
        if mtime + self._ttl <= self._clock():
            path.unlink(missing_ok=True)
            return None
        return path

    def purge_expired(self) -> int:
        """Delete every expired file. Returns the number removed."""
        if not self._dir.exists():
            return 0
        removed = 0
        now = self._clock()
        for path in self._dir.glob(f"*{_SUFFIX}"):
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                continue
            if mtime + self._ttl <= now:
                path.unlink(missing_ok=True)
                removed += 1
        return removed

    def discard(self, token: str) -> None:
        """Delete the file for token, if present."""
        if _TOKEN_PATTERN.match(token):
            (self._dir / f"{token}{_SUFFIX}").unlink(missing_ok=True)
