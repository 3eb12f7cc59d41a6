"""
Tests for core types and helpers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from tempstore.types import (
    ResolvedEntry,
    from_epoch_ms,
    is_valid_id,
    mime_matches,
    to_epoch_ms,
)


class TestIds:
    """Test id validation."""

    def test_canonical_id_is_valid(self) -> None:
        assert is_valid_id("3f2504e0-4f89-41d3-9a0c-0305e82c3301")

    @pytest.mark.parametrize(
        "value",
        [
            "3F2504E0-4F89-41D3-9A0C-0305E82C3301",
            "{3f2504e0-4f89-41d3-9a0c-0305e82c3301}",
            "3f2504e04f8941d39a0c0305e82c3301",
            "3f2504e0-4f89-41d3-9a0c-0305e82c3301\n",
            None,
            42,
        ],
    )
    def test_non_canonical_ids_are_invalid(self, value: object) -> None:
        assert not is_valid_id(value)


class TestTimestamps:
    """Test epoch millisecond conversion."""

    def test_round_trip(self) -> None:
        moment = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
        assert from_epoch_ms(to_epoch_ms(moment)) == moment

    def test_naive_is_utc(self) -> None:
        naive = datetime(2024, 1, 1)
        assert to_epoch_ms(naive) == to_epoch_ms(naive.replace(tzinfo=timezone.utc))


class TestMimeMatching:
    """Test MIME filter matching."""

    @pytest.mark.parametrize(
        ("content_type", "mime_filter", "expected"),
        [
            ("text/plain", "*/*", True),
            ("text/plain", "text/*", True),
            ("text/plain", "text/plain", True),
            ("text/plain; charset=utf-8", "text/plain", True),
            ("text/plain", "image/*", False),
            ("text/plain", "text/html", False),
            ("text/plain", "*/plain", False),
            ("garbage", "*/*", False),
        ],
    )
    def test_matches(self, content_type: str, mime_filter: str, expected: bool) -> None:
        assert mime_matches(content_type, mime_filter) is expected


class TestResolvedEntry:
    """Test the resolved entry wrapper."""

    def test_context_manager_closes_stream(self, temp_dir: Path) -> None:
        path = temp_dir / "blob"
        path.write_bytes(b"data")
        stream = path.open("rb")

        with ResolvedEntry(
            id="x", name=None, content_type="a/b", size_bytes=4, path=path, stream=stream
        ) as resolved:
            assert resolved.read() == b"data"

        assert stream.closed
