"""Resource gateway interface.

The reconciler only ever talks to the provider through this interface, so
the provider SDK stays out of the decision logic and tests can swap in an
in-memory gateway.
"""

from abc import ABC, abstractmethod

from vmclaim.models.capacity import CapacityProfile
from vmclaim.models.instance import ResourceInstance
from vmclaim.models.resource_spec import ResourceSpec


class ResourceGateway(ABC):
    """List/create/update/wait operations on the remote instance.

    Implementations raise on provider rejection; the caller classifies.
    All methods are blocking.
    """

    name: str = "base"

    @abstractmethod
    def list_active(self, display_name: str) -> ResourceInstance | None:
        """Find the instance with this display name, ignoring terminating/terminated ones."""

    @abstractmethod
    def create(self, spec: ResourceSpec) -> ResourceInstance:
        """Request a new instance at spec.initial_profile."""

    @abstractmethod
    def update(self, instance_id: str, target: CapacityProfile) -> None:
        """Request a shape change. Only valid while the instance is RUNNING."""

    @abstractmethod
    def wait_until_running(self, instance_id: str, target: CapacityProfile | None = None) -> ResourceInstance:
        """Block until the instance is RUNNING (and, with a target, at that profile).

        Right after an update the provider may still report RUNNING at the old
        shape, so callers waiting on an upgrade pass the final profile.

        Raises:
            WaitTimeoutError: If the wait ceiling is exceeded.
        """
