"""Capacity profile model."""

from pydantic import Field

from vmclaim.models.base import BaseModel


class CapacityProfile(BaseModel):
    """A named compute shape plus its numeric allocation."""

    shape: str = Field(..., description="Provider shape name (e.g. VM.Standard.A1.Flex)")
    ocpus: float = Field(..., gt=0, description="Processing units")
    memory_in_gbs: float = Field(..., gt=0, description="Memory in GB")

    def matches(self, other: "CapacityProfile | None") -> bool:
        """Two profiles are equal iff all numeric fields match; the shape name is ignored."""
        if other is None:
            return False
        return self.ocpus == other.ocpus and self.memory_in_gbs == other.memory_in_gbs

    def describe(self) -> str:
        """Render as '4 OCPUs / 24 GB'."""
        return f"{self.ocpus:g} OCPUs / {self.memory_in_gbs:g} GB"
