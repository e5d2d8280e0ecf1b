"""Utility functions and helpers."""

from vmclaim.utils.exceptions import (
    ConfigurationError,
    NotificationDeliveryError,
    ProviderConnectionError,
    ProviderError,
    VmClaimError,
    WaitTimeoutError,
)
from vmclaim.utils.logging import configure_logging

__all__ = [
    # Logging
    "configure_logging",
    # Exceptions
    "VmClaimError",
    "ConfigurationError",
    "ProviderError",
    "ProviderConnectionError",
    "WaitTimeoutError",
    "NotificationDeliveryError",
]
