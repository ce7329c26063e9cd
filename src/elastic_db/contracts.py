"""Typed contracts for retry state, bulk classification and query building."""

import math
import random
from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from elastic_db.config import BackoffConfig

ShardAction = Literal["ok", "retry", "fail"]


class BackoffRange(BaseModel):
    """Mutable jitter window owned by a single logical operation.

    Both bounds only grow, each up to its own cap, and ``floor`` stays below
    ``ceiling``. Create one per top-level call with :meth:`from_config`.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    floor: int = Field(ge=0)
    ceiling: int = Field(ge=1)
    floor_step: int = Field(default=5000, ge=0)
    ceiling_step: int = Field(default=10000, ge=0)
    floor_cap: int = Field(default=30000, ge=0)
    ceiling_cap: int = Field(default=60000, ge=1)

    @model_validator(mode="after")
    def validate_bounds(self) -> "BackoffRange":
        """Ensure the window is not inverted.

        Raises:
            ValueError: If ``floor`` is not strictly below ``ceiling`` or the
                caps/steps would let the window invert while widening.
        """
        if self.floor >= self.ceiling:
            raise ValueError("floor must be lower than ceiling")
        if self.floor_cap >= self.ceiling_cap:
            raise ValueError("floor_cap must be lower than ceiling_cap")
        if self.floor_step > self.ceiling_step:
            raise ValueError("floor_step must not exceed ceiling_step")
        return self

    @classmethod
    def from_config(cls, config: BackoffConfig) -> "BackoffRange":
        """Create a fresh window from configured defaults."""
        return cls(
            floor=config.floor_ms,
            ceiling=config.ceiling_ms,
            floor_step=config.floor_step_ms,
            ceiling_step=config.ceiling_step_ms,
            floor_cap=config.floor_cap_ms,
            ceiling_cap=config.ceiling_cap_ms,
        )

    def consume(self, rng: Callable[[], float] = random.random) -> int:
        """Draw a delay in milliseconds and widen the window.

        The delay is taken from ``[floor, ceiling)`` as it stood before
        widening.

        Args:
            rng: Source of uniform floats in ``[0, 1)``.

        Returns:
            Delay in milliseconds.
        """
        delay = math.floor(rng() * (self.ceiling - self.floor) + self.floor)
        # ceiling first so floor < ceiling holds after each assignment
        if self.ceiling < self.ceiling_cap:
            self.ceiling = min(self.ceiling + self.ceiling_step, self.ceiling_cap)
        if self.floor < self.floor_cap:
            self.floor = min(self.floor + self.floor_step, self.floor_cap)
        return delay


class BulkItemErrorDetail(BaseModel):
    """Error block of a single bulk item."""

    model_config = ConfigDict(extra="ignore")

    type: str | None = None
    reason: str | None = None


class BulkItemResult(BaseModel):
    """Outcome of one action inside a bulk response."""

    model_config = ConfigDict(extra="ignore")

    status: int | None = None
    error: BulkItemErrorDetail | None = None


class ClassifiedBulkResult(BaseModel):
    """Partition of a bulk response into retryable pairs and a fatal reason."""

    model_config = ConfigDict(extra="forbid")

    to_retry: list[Any] = Field(default_factory=list)
    fatal: str | None = None

    @model_validator(mode="after")
    def validate_fatal_short_circuits(self) -> "ClassifiedBulkResult":
        """A fatal result never carries a retry set."""
        if self.fatal is not None and self.to_retry:
            raise ValueError("fatal bulk result must not carry retry items")
        return self

    @property
    def error(self) -> bool:
        """Whether a fatal item was found."""
        return self.fatal is not None


class NormalizedError(BaseModel):
    """Human-readable reason for a raw client error plus its retry class."""

    model_config = ConfigDict(extra="forbid")

    message: str
    is_backpressure: bool = False


class ShardReconciliation(BaseModel):
    """Decision taken on a read response's shard report."""

    model_config = ConfigDict(extra="forbid")

    action: ShardAction
    reasons: list[str] = Field(default_factory=list)

    @property
    def reason(self) -> str:
        """Distinct failure types joined for display."""
        return " | ".join(self.reasons)


class SliceRequest(BaseModel):
    """A reader slice: optional date window, id key prefix and page size."""

    model_config = ConfigDict(extra="ignore")

    count: int | None = Field(default=None, ge=0)
    start: str | None = None
    end: str | None = None
    key: str | None = None


class IndexWindow(BaseModel):
    """Result window configured for one index."""

    model_config = ConfigDict(extra="forbid")

    name: str
    window_size: int


class IndexVerification(BaseModel):
    """Indices matched by the reader's configured index name or pattern."""

    model_config = ConfigDict(extra="forbid")

    found: bool
    index_window_size: list[IndexWindow] = Field(default_factory=list)
