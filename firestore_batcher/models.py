"""Pydantic models shared by the batcher and the store adapters."""

import datetime
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator


class Precondition(BaseModel):
    """Expected document state checked by the store before a delete/update.

    Firestore accepts exactly one option per write, so at most one of the
    fields may be set.
    """

    model_config = ConfigDict(frozen=True)

    exists: bool | None = None
    last_update_time: datetime.datetime | None = None

    @model_validator(mode="after")
    def validate_single_option(self):
        if self.exists is not None and self.last_update_time is not None:
            raise ValueError("Precondition accepts either 'exists' or 'last_update_time', not both")
        return self

    @property
    def is_empty(self) -> bool:
        return self.exists is None and self.last_update_time is None

    def as_write_option_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``firestore.AsyncClient.write_option``."""
        if self.exists is not None:
            return {"exists": self.exists}
        if self.last_update_time is not None:
            return {"last_update_time": self.last_update_time}
        return {}


class BatcherStats(BaseModel):
    """Point-in-time snapshot of a batcher's progress."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = Field(..., description="Current attempt size of the controller")
    operations_processed: int = Field(..., description="Operations committed over the batcher's lifetime")
    operations_queued: int = Field(..., description="Operations waiting in the queue")

    def to_dict(self) -> dict[str, int]:
        return self.model_dump()


class BatcherOptions(BaseModel):
    """Optional batcher configuration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # Called synchronously after every successfully committed chunk
    on_batch_committed: Callable[[BatcherStats], None] | None = None
