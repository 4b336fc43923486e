"""Execution outcome collection, refresh and persistence."""

from .aggregator import RefreshUpdate, ResultAggregator
from .store import ResultStore

__all__ = ["RefreshUpdate", "ResultAggregator", "ResultStore"]
