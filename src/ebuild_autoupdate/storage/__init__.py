"""Storage helpers."""

from .analysis_cache import DEFAULT_ANALYSIS_CACHE_TTL, AnalysisCache
from .documents import load_document, save_document
from .pending import PendingLedger, PendingList

__all__ = [
    "DEFAULT_ANALYSIS_CACHE_TTL",
    "AnalysisCache",
    "PendingLedger",
    "PendingList",
    "load_document",
    "save_document",
]
