"""Custom exception classes for vmclaim."""


class VmClaimError(Exception):
    """Base exception for all vmclaim errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict | None = None,
    ):
        """Initialize VmClaimError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logs and API responses."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(VmClaimError):
    """Raised when startup configuration is missing or invalid."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        errors: list[dict] | None = None,
    ):
        """Initialize ConfigurationError.

        Args:
            message: Error message.
            errors: List of field errors with field and message.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"errors": self.errors} if self.errors else None,
        )

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ConfigurationError":
        """Create ConfigurationError from a Pydantic ValidationError."""
        errors = []
        if hasattr(exc, "errors"):
            for error in exc.errors():
                errors.append(
                    {
                        "field": ".".join(str(loc) for loc in error.get("loc", [])),
                        "message": error.get("msg", "Invalid value"),
                    }
                )
        fields = ", ".join(e["field"] or e["message"] for e in errors)
        message = f"Invalid configuration: {fields}" if fields else "Invalid configuration"
        return cls(message=message, errors=errors)


class ProviderError(VmClaimError):
    """Raised when the cloud provider rejects or fails a request."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        code: str | None = None,
        operation: str | None = None,
        request_id: str | None = None,
    ):
        """Initialize ProviderError.

        Args:
            message: Provider-reported message.
            status: HTTP status returned by the provider.
            code: Provider error code (e.g. "InternalError", "NotAuthenticated").
            operation: Gateway operation that failed.
            request_id: Provider request ID for support tickets.
        """
        self.status = status
        self.code = code
        self.operation = operation
        self.request_id = request_id
        super().__init__(
            message=message,
            error_code="PROVIDER_ERROR",
            details={
                "status": status,
                "code": code,
                "operation": operation,
                "request_id": request_id,
            },
        )

    def __str__(self) -> str:
        parts = [p for p in (str(self.status) if self.status else None, self.code) if p]
        prefix = f"[{' '.join(parts)}] " if parts else ""
        return f"{prefix}{self.message}"


class WaitTimeoutError(VmClaimError, TimeoutError):
    """Raised when an instance does not reach the target state in time."""

    def __init__(self, instance_id: str, target_state: str, waited_seconds: float | None = None):
        """Initialize WaitTimeoutError."""
        self.instance_id = instance_id
        self.target_state = target_state
        super().__init__(
            message=f"Instance {instance_id} did not reach {target_state} in time",
            error_code="WAIT_TIMEOUT",
            details={
                "instance_id": instance_id,
                "target_state": target_state,
                "waited_seconds": waited_seconds,
            },
        )


class NotificationDeliveryError(VmClaimError):
    """Raised inside a notifier when a transport fails. Never escapes Notifier.send."""

    def __init__(self, transport: str, message: str | None = None):
        """Initialize NotificationDeliveryError."""
        self.transport = transport
        super().__init__(
            message=message or f"Notification transport '{transport}' failed",
            error_code="NOTIFICATION_FAILED",
            details={"transport": transport},
        )


class ProviderConnectionError(VmClaimError, ConnectionError):
    """Raised when the provider endpoint cannot be reached."""

    def __init__(self, operation: str, message: str):
        """Initialize ProviderConnectionError."""
        self.operation = operation
        super().__init__(
            message=message,
            error_code="PROVIDER_UNREACHABLE",
            details={"operation": operation},
        )
