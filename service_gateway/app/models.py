"""
Request and response models for the gateway API.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

from shared.models import CacheEntry


class SubmitRequest(BaseModel):
    """Body of POST /values."""
    index: Any = Field(..., description="Non-negative integer index, as a number or decimal string")


class SubmitResponse(BaseModel):
    """Accepted submission."""
    working: bool = Field(True, description="Computation has been scheduled")
    index: int = Field(..., description="Accepted index")


class HistoryItem(BaseModel):
    """One requested index, in the shape the frontend expects."""
    number: int


class ResultResponse(BaseModel):
    """State of a single index."""
    index: int
    state: str
    value: Optional[int] = None

    @classmethod
    def from_entry(cls, entry: CacheEntry) -> "ResultResponse":
        return cls(index=entry.index, state=entry.state.value, value=entry.value)
