"""Resource gateway implementations."""

from vmclaim.providers.base import ResourceGateway

__all__ = ["ResourceGateway"]
