"""
Retention package.

Provides RetentionSweeper for TTL-based expiry and orphan-file compaction.
"""

from tempstore.sweeper.retention import RetentionSweeper

__all__ = ["RetentionSweeper"]
