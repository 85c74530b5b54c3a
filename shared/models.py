"""
Data models shared by the gateway and the worker.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class EntryState(str, Enum):
    """Lifecycle of a cached result."""
    PENDING = "pending"
    COMPUTED = "computed"


@dataclass(frozen=True)
class IndexRecord:
    """One accepted request, as stored in the history table."""
    index: int
    record_id: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_public(self) -> Dict[str, Any]:
        return {"number": self.index}


@dataclass(frozen=True)
class CacheEntry:
    """Result cache entry: either pending or carrying the computed value."""
    index: int
    state: EntryState
    value: Optional[int] = None
    updated_at: float = field(default_factory=time.time)

    @classmethod
    def pending(cls, index: int, updated_at: Optional[float] = None) -> "CacheEntry":
        return cls(index, EntryState.PENDING, None, updated_at if updated_at is not None else time.time())

    @classmethod
    def computed(cls, index: int, value: int, updated_at: Optional[float] = None) -> "CacheEntry":
        return cls(index, EntryState.COMPUTED, value, updated_at if updated_at is not None else time.time())

    @property
    def is_pending(self) -> bool:
        return self.state is EntryState.PENDING

    def to_json(self) -> str:
        """Serialize for storage; the index is the key, not part of the payload."""
        data: Dict[str, Any] = {"state": self.state.value, "updated_at": self.updated_at}
        if self.state is EntryState.COMPUTED:
            data["value"] = self.value
        return json.dumps(data)

    @classmethod
    def from_json(cls, index: int, raw: Optional[str]) -> "CacheEntry":
        """Decode a stored payload.

        Anything that is not a well-formed computed entry is read back as
        pending with a zero timestamp, so the reconciler will pick it up
        instead of a bogus value ever being served.
        """
        try:
            data = json.loads(raw) if raw is not None else None
        except (TypeError, ValueError):
            data = None

        if not isinstance(data, dict):
            return cls.pending(index, updated_at=0.0)

        updated_at = data.get("updated_at")
        if not isinstance(updated_at, (int, float)) or isinstance(updated_at, bool):
            updated_at = 0.0

        value = data.get("value")
        if data.get("state") == EntryState.COMPUTED.value and isinstance(value, int) and not isinstance(value, bool):
            return cls.computed(index, value, updated_at=float(updated_at))

        return cls.pending(index, updated_at=float(updated_at))


@dataclass(frozen=True)
class Notification:
    """Ephemeral "index requested" message; on the wire it is the bare index."""
    index: int

    def encode(self) -> str:
        return str(self.index)

    @classmethod
    def decode(cls, raw: Any) -> "Notification":
        """Parse a channel payload, raising ValueError if it is not an integer."""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        text = str(raw).strip()
        if not text.lstrip("-").isdigit():
            raise ValueError(f"Malformed notification payload: {raw!r}")
        return cls(int(text))
