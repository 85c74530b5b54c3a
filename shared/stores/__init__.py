"""
Store adapters consumed by the gateway and the worker.

Both are injected into the services rather than accessed as globals, which
keeps the absence of any cross-store transaction explicit: a history append
and a cache write are two independent operations.
"""

from .history_store import HistoryStore
from .result_cache import ResultCache

__all__ = ["HistoryStore", "ResultCache"]
