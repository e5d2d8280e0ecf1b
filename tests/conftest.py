"""Pytest configuration and fixtures."""

import os
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

# Keep boto3 and the settings loader away from real credentials
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

from vmclaim.execution.scheduler import RetryScheduler  # noqa: E402
from vmclaim.models.capacity import CapacityProfile  # noqa: E402
from vmclaim.models.instance import LifecycleState, ResourceInstance  # noqa: E402
from vmclaim.models.resource_spec import ResourceSpec  # noqa: E402
from vmclaim.providers.base import ResourceGateway  # noqa: E402
from vmclaim.services.notifier import Notifier  # noqa: E402
from vmclaim.services.reconciler import Reconciler  # noqa: E402

SHAPE = "VM.Standard.A1.Flex"
NEW_INSTANCE_ID = "ocid1.instance.oc1.ap-mumbai-1.new"

OCI_ENV = {
    "OCI_TENANCY_ID": "ocid1.tenancy.oc1..test",
    "OCI_USER_ID": "ocid1.user.oc1..test",
    "OCI_FINGERPRINT": "aa:bb:cc:dd:ee:ff:00:11:22:33:44:55:66:77:88:99",
    "COMPARTMENT_ID": "ocid1.compartment.oc1..test",
    "AVAILABILITY_DOMAIN": "Uocm:AP-MUMBAI-1-AD-1",
    "SUBNET_ID": "ocid1.subnet.oc1..test",
    "IMAGE_ID": "ocid1.image.oc1..test",
}


class FakeGateway(ResourceGateway):
    """In-memory gateway that records every call in order.

    Set errors["create"] (etc.) to make an operation raise.
    """

    name = "fake"

    def __init__(self, instance: ResourceInstance | None = None):
        self.instance = instance
        self.calls: list[tuple] = []
        self.errors: dict[str, BaseException] = {}

    def _record(self, op: str, *args) -> None:
        self.calls.append((op, *args))
        error = self.errors.get(op)
        if error is not None:
            raise error

    @property
    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def list_active(self, display_name):
        self._record("list_active", display_name)
        if self.instance and self.instance.is_active and self.instance.display_name == display_name:
            return self.instance
        return None

    def create(self, spec):
        self._record("create", spec.display_name)
        self.instance = ResourceInstance(
            id=NEW_INSTANCE_ID,
            display_name=spec.display_name,
            lifecycle_state=LifecycleState.PROVISIONING,
            capacity=spec.initial_profile,
        )
        return self.instance

    def update(self, instance_id, target):
        self._record("update", instance_id)
        self.instance = self.instance.model_copy(
            update={"lifecycle_state": LifecycleState.UPGRADING, "capacity": target}
        )

    def wait_until_running(self, instance_id, target=None):
        self._record("wait_until_running", instance_id, target)
        self.instance = self.instance.model_copy(update={"lifecycle_state": LifecycleState.RUNNING})
        return self.instance


class FixedRandom:
    """Random source that always draws the same value."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture(scope="session")
def rsa_private_key():
    """Throwaway RSA key for request signing."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_key_pem(rsa_private_key):
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def oci_env(monkeypatch, rsa_key_pem):
    """Set the required OCI environment variables.

    The key is passed the way container platforms usually carry it: on one
    line with escaped newlines.
    """
    env = {**OCI_ENV, "OCI_PRIVATE_KEY_CONTENT": rsa_key_pem.replace("\n", "\\n")}
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture
def initial_profile():
    return CapacityProfile(shape=SHAPE, ocpus=1, memory_in_gbs=6)


@pytest.fixture
def final_profile():
    return CapacityProfile(shape=SHAPE, ocpus=4, memory_in_gbs=24)


@pytest.fixture
def resource_spec(initial_profile, final_profile):
    """Create a sample resource spec."""
    return ResourceSpec(
        display_name="test-vm",
        initial_profile=initial_profile,
        final_profile=final_profile,
        compartment_id="ocid1.compartment.oc1..test",
        availability_domain="Uocm:AP-MUMBAI-1-AD-1",
        image_id="ocid1.image.oc1..test",
        subnet_id="ocid1.subnet.oc1..test",
        ssh_public_key="ssh-ed25519 AAAA test@example.com",
    )


@pytest.fixture
def make_instance(resource_spec):
    """Build a ResourceInstance for the sample spec."""

    def _make(
        state: LifecycleState = LifecycleState.RUNNING,
        capacity: CapacityProfile | None = None,
        instance_id: str = "ocid1.instance.oc1.ap-mumbai-1.existing",
    ) -> ResourceInstance:
        return ResourceInstance(
            id=instance_id,
            display_name=resource_spec.display_name,
            lifecycle_state=state,
            capacity=capacity,
        )

    return _make


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    """Mock notifier."""
    mock = MagicMock(spec=Notifier)
    mock.send.return_value = True
    return mock


@pytest.fixture
def scheduler():
    """Mock scheduler; only records arming."""
    mock = MagicMock(spec=RetryScheduler)
    mock.next_run_at = None
    return mock


@pytest.fixture
def reconciler(gateway, notifier, resource_spec, scheduler):
    return Reconciler(
        gateway=gateway,
        notifier=notifier,
        spec=resource_spec,
        scheduler=scheduler,
    )


@pytest.fixture
def fixed_random():
    """Factory for a random source with a fixed draw."""
    return FixedRandom


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def ses(aws_credentials):
    """Mocked SES with a verified sender identity."""
    import boto3
    from moto import mock_aws

    with mock_aws():
        client = boto3.client("ses", region_name="us-east-1")
        client.verify_email_identity(EmailAddress="alerts@example.com")
        yield client
