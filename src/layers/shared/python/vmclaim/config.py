"""Configuration management using Pydantic Settings.

All settings come from environment variables (or a local .env file) and are
validated once at startup. Missing identity or placement fields are fatal.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vmclaim.execution.retry_policy import RetryPolicy
from vmclaim.models.capacity import CapacityProfile
from vmclaim.models.resource_spec import ResourceSpec
from vmclaim.utils.exceptions import ConfigurationError

DEFAULT_SHAPE = "VM.Standard.A1.Flex"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # OCI identity
    oci_tenancy_id: str = Field(..., min_length=1)
    oci_user_id: str = Field(..., min_length=1)
    oci_fingerprint: str = Field(..., min_length=1)
    oci_private_key_content: str | None = None
    oci_private_key_path: Path | None = None
    oci_region: str = "ap-mumbai-1"

    # Placement
    compartment_id: str = Field(..., min_length=1)
    availability_domain: str = Field(..., min_length=1)
    subnet_id: str = Field(..., min_length=1)
    image_id: str = Field(..., min_length=1)
    ssh_public_key: str | None = None

    # Target instance
    vm_name: str = "oci-auto-created-vm"
    vm_shape: str = DEFAULT_SHAPE
    initial_ocpus: float = Field(default=1, gt=0)
    initial_memory_gb: float = Field(default=6, gt=0)
    final_ocpus: float = Field(default=4, gt=0)
    final_memory_gb: float = Field(default=24, gt=0)

    # Retry cadence
    retry_interval_ms: int = Field(default=300_000, ge=0)
    jitter_range_ms: int = Field(default=120_000, ge=0)
    startup_jitter_ms: int = Field(default=0, ge=0)
    wait_max_seconds: int = Field(default=1200, gt=0)
    wait_poll_seconds: int = Field(default=30, gt=0)

    # Failure policy
    max_consecutive_fatal: int = Field(default=0, ge=0)
    assume_absent_on_list_error: bool = True

    # Notifications
    mail_transport: Literal["smtp", "ses", "none"] = "smtp"
    mail_host: str | None = None
    mail_port: int = 587
    mail_user: str | None = None
    mail_pass: str | None = None
    mail_to: str | None = None
    mail_from: str | None = None
    ses_region: str | None = None
    ses_from_email: str | None = None

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"
    log_file: Path | None = None
    log_error_file: Path | None = None

    @model_validator(mode="after")
    def _require_private_key(self) -> "Settings":
        if not self.oci_private_key_content and not self.oci_private_key_path:
            raise ValueError("OCI_PRIVATE_KEY_CONTENT or OCI_PRIVATE_KEY_PATH is required")
        return self

    def private_key(self) -> str:
        """PEM key content, with escaped newlines restored."""
        if self.oci_private_key_content:
            return self.oci_private_key_content.replace("\\n", "\n")
        try:
            return self.oci_private_key_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read OCI_PRIVATE_KEY_PATH: {e}",
                errors=[{"field": "oci_private_key_path", "message": str(e)}],
            ) from e

    def oci_config(self) -> dict[str, Any]:
        """OCI SDK config dict."""
        return {
            "tenancy": self.oci_tenancy_id,
            "user": self.oci_user_id,
            "fingerprint": self.oci_fingerprint,
            "key_content": self.private_key(),
            "region": self.oci_region,
        }

    def resource_spec(self) -> ResourceSpec:
        return ResourceSpec(
            display_name=self.vm_name,
            initial_profile=CapacityProfile(
                shape=self.vm_shape,
                ocpus=self.initial_ocpus,
                memory_in_gbs=self.initial_memory_gb,
            ),
            final_profile=CapacityProfile(
                shape=self.vm_shape,
                ocpus=self.final_ocpus,
                memory_in_gbs=self.final_memory_gb,
            ),
            compartment_id=self.compartment_id,
            availability_domain=self.availability_domain,
            image_id=self.image_id,
            subnet_id=self.subnet_id,
            ssh_public_key=self.ssh_public_key,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy.from_milliseconds(
            self.retry_interval_ms,
            self.jitter_range_ms,
            self.startup_jitter_ms,
        )


def load_settings(**overrides: Any) -> Settings:
    """Load and validate settings.

    Raises:
        ConfigurationError: If required fields are missing or invalid.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError.from_pydantic(e) from e
