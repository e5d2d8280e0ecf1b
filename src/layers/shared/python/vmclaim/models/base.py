"""Base Pydantic model shared by the vmclaim data types."""

from datetime import datetime, timezone

from pydantic import BaseModel as PydanticBaseModel, ConfigDict


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


class BaseModel(PydanticBaseModel):
    """Immutable base model.

    Values are built once (from settings or a provider response) and never
    mutated afterwards.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        use_enum_values=False,
    )
