"""
Core types for the temporary storage system.

This module defines:
- Entry: the immutable metadata record of one stored object
- ResolvedEntry: an entry together with its live size and readable stream
- Helper functions for id generation/validation, timestamps and MIME matching
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from types import TracebackType
from typing import BinaryIO

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Canonical lowercase text form of a random (version 4) UUID.
_ID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}"
)


def generate_id() -> str:
    """Generate a fresh 128-bit random object id.

    Uses UUID4, which draws from ``os.urandom``. Time-ordered ids would
    leak creation order and make neighbours guessable.

    Returns:
        The id in canonical text form.
    """
    return str(uuid.uuid4())


def is_valid_id(value: object) -> bool:
    """Check that a value is exactly a canonical object id."""
    return isinstance(value, str) and _ID_PATTERN.fullmatch(value) is not None


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert integer epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def mime_matches(content_type: str, mime_filter: str) -> bool:
    """Check whether a concrete MIME type satisfies a filter.

    Filters may be ``*/*``, ``type/*`` or an exact type. Comparison is
    case-insensitive and ignores parameters such as ``; charset=utf-8``.
    """
    concrete = content_type.split(";", 1)[0].strip().lower()
    wanted = mime_filter.split(";", 1)[0].strip().lower()

    if "/" not in concrete or "/" not in wanted:
        return False

    c_type, c_sub = concrete.split("/", 1)
    w_type, w_sub = wanted.split("/", 1)

    if w_type == "*":
        return w_sub == "*"
    if w_type != c_type:
        return False
    return w_sub == "*" or w_sub == c_sub


@dataclass(frozen=True)
class Entry:
    """Metadata of one stored object.

    The size is not part of the record; it is always read from the backing
    file when needed.
    """

    id: str
    created_at: datetime
    name: str | None = None
    content_type: str | None = None

    @property
    def effective_content_type(self) -> str:
        """Content type, falling back to the default when unset."""
        return self.content_type or DEFAULT_CONTENT_TYPE


@dataclass
class ResolvedEntry:
    """An entry resolved for reading.

    Owns an open binary stream on the backing file. Use as a context
    manager or call close() when done.
    """

    id: str
    name: str | None
    content_type: str
    size_bytes: int
    path: Path
    stream: BinaryIO

    def read(self, size: int = -1) -> bytes:
        """Read from the underlying stream."""
        return self.stream.read(size)

    def close(self) -> None:
        """Close the underlying stream."""
        self.stream.close()

    def __enter__(self) -> ResolvedEntry:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
