"""Tests for vmclaim data models."""

import pytest
from pydantic import ValidationError

from vmclaim.models.capacity import CapacityProfile
from vmclaim.models.instance import LifecycleState, ResourceInstance
from vmclaim.models.status import ReconcilerStatus, TickOutcome


class TestCapacityProfile:
    """Tests for CapacityProfile."""

    def test_matches_on_numeric_fields(self, final_profile):
        """Profiles with equal OCPUs and memory match."""
        other = CapacityProfile(shape="VM.Standard.E4.Flex", ocpus=4, memory_in_gbs=24)

        assert final_profile.matches(other) is True

    def test_differs_on_memory(self, final_profile):
        """Any numeric difference breaks the match."""
        other = CapacityProfile(shape=final_profile.shape, ocpus=4, memory_in_gbs=16)

        assert final_profile.matches(other) is False

    def test_unknown_capacity_never_matches(self, final_profile):
        """An instance whose capacity could not be read is not at target."""
        assert final_profile.matches(None) is False

    def test_describe(self, initial_profile, final_profile):
        """Profiles render as OCPUs / GB."""
        assert initial_profile.describe() == "1 OCPUs / 6 GB"
        assert final_profile.describe() == "4 OCPUs / 24 GB"

    @pytest.mark.parametrize("ocpus,memory", [(0, 6), (1, 0), (-1, 6)])
    def test_rejects_non_positive_values(self, ocpus, memory):
        """OCPUs and memory must be positive."""
        with pytest.raises(ValidationError):
            CapacityProfile(shape="VM.Standard.A1.Flex", ocpus=ocpus, memory_in_gbs=memory)

    def test_is_frozen(self, final_profile):
        """Profiles are immutable."""
        with pytest.raises(ValidationError):
            final_profile.ocpus = 8


class TestLifecycleState:
    """Tests for LifecycleState."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("PROVISIONING", LifecycleState.PROVISIONING),
            ("RUNNING", LifecycleState.RUNNING),
            ("running", LifecycleState.RUNNING),
            ("STARTING", LifecycleState.UPGRADING),
            ("STOPPED", LifecycleState.UPGRADING),
            ("TERMINATING", LifecycleState.TERMINATING),
            ("TERMINATED", LifecycleState.TERMINATED),
            ("SOMETHING_NEW", LifecycleState.FAILED),
            (None, LifecycleState.FAILED),
        ],
    )
    def test_from_provider(self, raw, expected):
        """Provider states map onto the local lifecycle."""
        assert LifecycleState.from_provider(raw) == expected

    def test_terminal_states_are_inactive(self):
        """Terminating and terminated instances are treated as absent."""
        assert LifecycleState.TERMINATING.is_active is False
        assert LifecycleState.TERMINATED.is_active is False
        assert LifecycleState.PROVISIONING.is_active is True
        assert LifecycleState.FAILED.is_active is True


class TestResourceInstance:
    """Tests for ResourceInstance."""

    def test_running_flags(self, make_instance):
        """is_running is only true in RUNNING."""
        assert make_instance(LifecycleState.RUNNING).is_running is True
        assert make_instance(LifecycleState.UPGRADING).is_running is False

    def test_capacity_optional(self):
        """Instances without capacity information are valid."""
        instance = ResourceInstance(
            id="ocid1.instance.oc1..x",
            display_name="vm",
            lifecycle_state=LifecycleState.PROVISIONING,
        )

        assert instance.capacity is None
        assert instance.is_active is True


class TestReconcilerStatus:
    """Tests for ReconcilerStatus."""

    def test_json_dump(self):
        """Status serializes enums as their values."""
        status = ReconcilerStatus(attempts=3, last_outcome=TickOutcome.CAPACITY_EXHAUSTED)

        data = status.model_dump(mode="json")

        assert data["attempts"] == 3
        assert data["last_outcome"] == "capacity_exhausted"
        assert data["halted"] is False
        assert data["next_check_at"] is None
