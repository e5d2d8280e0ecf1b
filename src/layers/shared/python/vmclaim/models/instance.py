"""Remote compute instance as observed through the gateway."""

from enum import Enum

import structlog
from pydantic import Field

from vmclaim.models.base import BaseModel
from vmclaim.models.capacity import CapacityProfile

logger = structlog.get_logger()


class LifecycleState(str, Enum):
    """Instance lifecycle state."""

    PROVISIONING = "provisioning"
    RUNNING = "running"
    UPGRADING = "upgrading"  # Any transitional state after first boot
    TERMINATING = "terminating"
    TERMINATED = "terminated"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        """Terminating and terminated instances count as absent."""
        return self not in (LifecycleState.TERMINATING, LifecycleState.TERMINATED)

    @classmethod
    def from_provider(cls, raw: str | None) -> "LifecycleState":
        """Map a provider lifecycle string onto a LifecycleState."""
        value = (raw or "").strip().upper()
        state = PROVIDER_STATES.get(value)
        if state is None:
            logger.warning("Unknown provider lifecycle state", raw_state=raw)
            return cls.FAILED
        return state


# OCI Instance.lifecycle_state values
PROVIDER_STATES: dict[str, LifecycleState] = {
    "PROVISIONING": LifecycleState.PROVISIONING,
    "RUNNING": LifecycleState.RUNNING,
    "STARTING": LifecycleState.UPGRADING,
    "STOPPING": LifecycleState.UPGRADING,
    "STOPPED": LifecycleState.UPGRADING,
    "MOVING": LifecycleState.UPGRADING,
    "CREATING_IMAGE": LifecycleState.UPGRADING,
    "TERMINATING": LifecycleState.TERMINATING,
    "TERMINATED": LifecycleState.TERMINATED,
}


class ResourceInstance(BaseModel):
    """Remote instance snapshot, rehydrated from every gateway query."""

    id: str = Field(..., description="Provider instance identifier")
    display_name: str = Field(..., description="Display name used as lookup key")
    lifecycle_state: LifecycleState = Field(..., description="Observed lifecycle state")
    capacity: CapacityProfile | None = Field(None, description="Observed shape and allocation")

    @property
    def is_active(self) -> bool:
        return self.lifecycle_state.is_active

    @property
    def is_running(self) -> bool:
        return self.lifecycle_state == LifecycleState.RUNNING
