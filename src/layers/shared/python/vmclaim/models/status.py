"""Per-tick outcome and reconciler status snapshot."""

from datetime import datetime
from enum import Enum

from pydantic import Field

from vmclaim.models.base import BaseModel


class TickOutcome(str, Enum):
    """What a single reconciliation tick ended with."""

    NO_OP = "no_op"  # Already at final profile
    DEFERRED = "deferred"  # Instance exists but is not RUNNING yet
    CREATED = "created"  # Created, upgrade not completed
    UPGRADED = "upgraded"
    CAPACITY_EXHAUSTED = "capacity_exhausted"
    TRANSIENT_ERROR = "transient_error"
    FATAL_ERROR = "fatal_error"


class ReconcilerStatus(BaseModel):
    """Read-only view of the reconciler for the status endpoint."""

    attempts: int = 0
    last_check_at: datetime | None = None
    last_outcome: TickOutcome | None = None
    last_error: str | None = None
    consecutive_fatal: int = 0
    next_check_at: datetime | None = None
    halted: bool = False
    instance_id: str | None = Field(None, description="Last observed instance ID")
