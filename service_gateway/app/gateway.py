"""
Request gateway: validates indices, records them and hands them to the worker.
"""

import re
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from shared.errors import InvalidIndexError, StoreUnavailableError
from shared.logging import get_logger
from shared.models import CacheEntry, IndexRecord

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector
    from shared.stores import HistoryStore, ResultCache


_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


def validate_index(raw: Any, max_index: int) -> int:
    """Coerce a submitted index to int, or raise InvalidIndexError.

    Accepts ints and decimal strings (form posts arrive as text). Booleans,
    floats and anything else are rejected, as are values outside [0, max_index].
    """
    details: Dict[str, Any] = {"max_index": max_index}

    if isinstance(raw, bool):
        raise InvalidIndexError("Index must be an integer", details)
    if isinstance(raw, int):
        index = raw
    elif isinstance(raw, str) and _INTEGER_TEXT.fullmatch(raw.strip()):
        try:
            index = int(raw.strip())
        except ValueError:
            # Longer than the interpreter's int conversion limit
            raise InvalidIndexError("Index too high", details)
    else:
        raise InvalidIndexError("Index must be an integer", details)

    if index < 0:
        raise InvalidIndexError("Index must not be negative", {**details, "index": index})
    if index > max_index:
        raise InvalidIndexError("Index too high", {**details, "index": index})

    return index


class RequestGateway:
    """Accepts indices and exposes read access to history and results."""

    def __init__(
        self,
        history_store: "HistoryStore",
        result_cache: "ResultCache",
        *,
        max_index: int = 40,
        history_page_size: int = 1000,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.history_store = history_store
        self.result_cache = result_cache
        self.max_index = max_index
        self.history_page_size = history_page_size
        self.metrics = metrics
        self.logger = get_logger("gateway.request_gateway")

    def _count(self, metric_name: str, **labels):
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    async def submit(self, raw_index: Any) -> IndexRecord:
        """Accept an index for computation.

        The pending placeholder is written before the notification goes out,
        so a fast worker can never have its result clobbered by a late
        placeholder. Store failures propagate unretried.
        """
        try:
            index = validate_index(raw_index, self.max_index)
        except InvalidIndexError:
            self._count("submissions_total", outcome="invalid")
            raise

        try:
            record = await self.history_store.append(IndexRecord(index))
            placeholder_written = await self.result_cache.set_pending(index)
            receivers = await self.result_cache.publish(index)
        except StoreUnavailableError as e:
            self._count("submissions_total", outcome="store_unavailable")
            self.logger.error("Submission failed", index=index, store=e.store, error=e.message)
            raise

        if receivers == 0:
            # Recovered later by the worker's reconciliation sweep
            self.logger.warning("Notification lost: no active subscriber", index=index)
            self._count("notifications_lost_total")

        self._count("submissions_total", outcome="accepted")
        self.logger.info(
            "Index accepted",
            index=index,
            record_id=record.record_id,
            placeholder_written=placeholder_written,
            receivers=receivers
        )
        return record

    async def list_history(self, limit: Optional[int] = None, offset: int = 0) -> List[IndexRecord]:
        """Requested indices in submission order, one page at a time."""
        if limit is None or limit > self.history_page_size:
            limit = self.history_page_size
        return await self.history_store.list_all(limit=limit, offset=max(0, offset))

    async def list_results(self) -> Dict[int, CacheEntry]:
        """Every cache entry, pending or computed."""
        return await self.result_cache.get_all()

    async def get_result(self, index: int) -> Optional[CacheEntry]:
        """Entry for a single index, or None if it was never requested."""
        return await self.result_cache.get(index)
