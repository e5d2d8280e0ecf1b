"""Data models for vmclaim."""

from vmclaim.models.capacity import CapacityProfile
from vmclaim.models.instance import LifecycleState, ResourceInstance
from vmclaim.models.resource_spec import ResourceSpec
from vmclaim.models.status import ReconcilerStatus, TickOutcome

__all__ = [
    "CapacityProfile",
    "LifecycleState",
    "ResourceInstance",
    "ResourceSpec",
    "ReconcilerStatus",
    "TickOutcome",
]
