"""
Result deduplication and history.
"""

from .dedup import ResultDeduplicator, ResultHistory, ScanState

__all__ = ["ResultDeduplicator", "ResultHistory", "ScanState"]
