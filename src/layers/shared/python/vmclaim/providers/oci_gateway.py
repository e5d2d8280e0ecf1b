"""Oracle Cloud Infrastructure compute gateway.

Talks to the Core Services REST API with signed httpx requests. Nothing in
here retries on its own: the scheduler owns the retry cadence, and a silently
retried launch would hide capacity errors.
"""

import base64
import hashlib
import time
from email.utils import formatdate
from typing import Any, Callable, Iterator

import httpx
import structlog
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from vmclaim.models.capacity import CapacityProfile
from vmclaim.models.instance import LifecycleState, ResourceInstance
from vmclaim.models.resource_spec import ResourceSpec
from vmclaim.providers.base import ResourceGateway
from vmclaim.utils.exceptions import (
    ConfigurationError,
    ProviderConnectionError,
    ProviderError,
    WaitTimeoutError,
)

logger = structlog.get_logger()

API_VERSION = "20160918"
PAGE_LIMIT = 100

RUNNING = "RUNNING"

# States from which an instance will never become RUNNING on its own;
# FAILED also covers lifecycle states this client does not know
_DEAD_STATES = {
    LifecycleState.TERMINATING,
    LifecycleState.TERMINATED,
    LifecycleState.FAILED,
}

_SIGNED_HEADERS = ["date", "(request-target)", "host"]
_BODY_HEADERS = ["content-length", "content-type", "x-content-sha256"]


class OciRequestSigner(httpx.Auth):
    """httpx auth flow implementing OCI request signing (rsa-sha256).

    Example:
        signer = OciRequestSigner(tenancy, user, fingerprint, key_pem)
        client = httpx.Client(auth=signer)
    """

    requires_request_body = True

    def __init__(self, tenancy: str, user: str, fingerprint: str, private_key: str):
        self.key_id = f"{tenancy}/{user}/{fingerprint}"
        try:
            self.private_key = serialization.load_pem_private_key(private_key.encode("utf-8"), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ConfigurationError(
                f"Invalid OCI private key: {e}",
                errors=[{"field": "oci_private_key", "message": str(e)}],
            ) from e

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "OciRequestSigner":
        return cls(
            tenancy=config["tenancy"],
            user=config["user"],
            fingerprint=config["fingerprint"],
            private_key=config["key_content"],
        )

    def auth_flow(self, request: httpx.Request) -> Iterator[httpx.Request]:
        self.sign(request)
        yield request

    def sign(self, request: httpx.Request) -> None:
        """Add date, body digest and Authorization headers in place."""
        request.headers.setdefault("date", formatdate(usegmt=True))
        signed = list(_SIGNED_HEADERS)

        if request.method in ("POST", "PUT", "PATCH"):
            body = request.content
            request.headers["x-content-sha256"] = base64.b64encode(hashlib.sha256(body).digest()).decode("ascii")
            request.headers["content-length"] = str(len(body))
            request.headers.setdefault("content-type", "application/json")
            signed += _BODY_HEADERS

        signature = self.private_key.sign(
            signing_string(request, signed).encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        request.headers["authorization"] = (
            f'Signature version="1",keyId="{self.key_id}",algorithm="rsa-sha256",'
            f'headers="{" ".join(signed)}",signature="{base64.b64encode(signature).decode("ascii")}"'
        )


def signing_string(request: httpx.Request, headers: list[str]) -> str:
    """Build the newline-joined 'name: value' string that gets signed."""
    lines = []
    for name in headers:
        if name == "(request-target)":
            value = f"{request.method.lower()} {request.url.raw_path.decode('ascii')}"
        elif name == "host":
            value = request.headers.get("host") or request.url.netloc.decode("ascii")
        else:
            value = request.headers[name]
        lines.append(f"{name}: {value}")
    return "\n".join(lines)


def to_resource_instance(data: dict[str, Any]) -> ResourceInstance:
    """Build a ResourceInstance from an OCI Instance JSON document."""
    capacity = None
    shape_config = data.get("shapeConfig") or {}
    if shape_config.get("ocpus") and shape_config.get("memoryInGBs"):
        capacity = CapacityProfile(
            shape=data.get("shape") or "",
            ocpus=shape_config["ocpus"],
            memory_in_gbs=shape_config["memoryInGBs"],
        )

    return ResourceInstance(
        id=data["id"],
        display_name=data.get("displayName") or "",
        lifecycle_state=LifecycleState.from_provider(data.get("lifecycleState")),
        capacity=capacity,
    )


def _provider_error(operation: str, response: httpx.Response) -> ProviderError:
    try:
        payload = response.json()
    except ValueError:
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    return ProviderError(
        message=payload.get("message") or response.text or response.reason_phrase,
        status=response.status_code,
        code=payload.get("code"),
        operation=operation,
        request_id=response.headers.get("opc-request-id"),
    )


class OciComputeGateway(ResourceGateway):
    """ResourceGateway backed by the OCI Compute API.

    Example:
        gateway = OciComputeGateway(
            config={"user": ..., "fingerprint": ..., "tenancy": ..., "region": ..., "key_content": ...},
            compartment_id="ocid1.compartment...",
        )
        instance = gateway.list_active("my-vm")
    """

    name = "oci"

    def __init__(
        self,
        config: dict[str, Any],
        compartment_id: str,
        wait_max_seconds: int = 1200,
        wait_poll_seconds: int = 30,
        timeout: float = 30.0,
        signer: OciRequestSigner | None = None,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the gateway.

        Args:
            config: Identity config (user, fingerprint, tenancy, region, key_content).
            compartment_id: Compartment searched by list_active.
            wait_max_seconds: Ceiling for wait_until_running.
            wait_poll_seconds: Interval between wait polls.
            timeout: Per-request timeout in seconds.
            signer: Pre-built request signer; built from config when omitted.
            client: Pre-built httpx client (tests).
            sleep: Blocking sleep used between wait polls.
            clock: Monotonic clock used for the wait ceiling.
        """
        self.config = config
        self.compartment_id = compartment_id
        self.wait_max_seconds = wait_max_seconds
        self.wait_poll_seconds = wait_poll_seconds
        self.timeout = timeout
        self.endpoint = f"https://iaas.{config['region']}.oraclecloud.com/{API_VERSION}"
        self._signer = signer
        self._client = client
        self._sleep = sleep
        self._clock = clock
        self.logger = logger.bind(service="oci_gateway")

    @property
    def client(self) -> httpx.Client:
        """Get the signed HTTP client (lazy initialization)."""
        if self._client is None:
            if self._signer is None:
                self._signer = OciRequestSigner.from_config(self.config)
            self._client = httpx.Client(
                base_url=self.endpoint,
                auth=self._signer,
                timeout=self.timeout,
                headers={"accept": "application/json"},
            )
        return self._client

    def list_active(self, display_name: str) -> ResourceInstance | None:
        params = {
            "compartmentId": self.compartment_id,
            "displayName": display_name,
            "limit": PAGE_LIMIT,
        }

        while True:
            response = self._request("list_instances", "GET", "/instances", params=params)

            for item in response.json():
                instance = to_resource_instance(item)
                if instance.is_active:
                    self.logger.debug(
                        "Found active instance",
                        instance_id=instance.id,
                        state=instance.lifecycle_state.value,
                    )
                    return instance

            next_page = response.headers.get("opc-next-page")
            if not next_page:
                return None
            params = {**params, "page": next_page}

    def create(self, spec: ResourceSpec) -> ResourceInstance:
        profile = spec.initial_profile
        body: dict[str, Any] = {
            "compartmentId": spec.compartment_id,
            "availabilityDomain": spec.availability_domain,
            "displayName": spec.display_name,
            "shape": profile.shape,
            "shapeConfig": {
                "ocpus": profile.ocpus,
                "memoryInGBs": profile.memory_in_gbs,
            },
            "sourceDetails": {
                "sourceType": "image",
                "imageId": spec.image_id,
            },
            "createVnicDetails": {
                "subnetId": spec.subnet_id,
                "assignPublicIp": spec.assign_public_ip,
            },
        }
        if spec.ssh_public_key:
            body["metadata"] = {"ssh_authorized_keys": spec.ssh_public_key}

        self.logger.info(
            "Launching instance",
            display_name=spec.display_name,
            shape=profile.shape,
            capacity=profile.describe(),
        )

        response = self._request("launch_instance", "POST", "/instances", json=body)
        return to_resource_instance(response.json())

    def update(self, instance_id: str, target: CapacityProfile) -> None:
        body = {
            "shape": target.shape,
            "shapeConfig": {
                "ocpus": target.ocpus,
                "memoryInGBs": target.memory_in_gbs,
            },
        }

        self.logger.info("Updating instance shape", instance_id=instance_id, capacity=target.describe())

        self._request("update_instance", "PUT", f"/instances/{instance_id}", json=body)

    def wait_until_running(self, instance_id: str, target: CapacityProfile | None = None) -> ResourceInstance:
        self.logger.info(
            "Waiting for instance to be RUNNING",
            instance_id=instance_id,
            target=target.describe() if target else None,
            max_wait_seconds=self.wait_max_seconds,
        )
        deadline = self._clock() + self.wait_max_seconds

        while True:
            data = self._get_instance(instance_id)
            instance = to_resource_instance(data)

            if instance.is_running and (target is None or target.matches(instance.capacity)):
                return instance
            if instance.lifecycle_state in _DEAD_STATES:
                raise ProviderError(
                    message=(
                        f"Instance {instance_id} entered {data.get('lifecycleState')} "
                        "while waiting for RUNNING"
                    ),
                    status=409,
                    code="UnexpectedLifecycleState",
                    operation="get_instance",
                )

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise WaitTimeoutError(instance_id, RUNNING, self.wait_max_seconds)

            self.logger.debug(
                "Instance not ready yet",
                instance_id=instance_id,
                state=data.get("lifecycleState"),
                capacity=instance.capacity.describe() if instance.capacity else None,
            )
            self._sleep(min(self.wait_poll_seconds, remaining))

    def _get_instance(self, instance_id: str) -> dict[str, Any]:
        return self._request("get_instance", "GET", f"/instances/{instance_id}").json()

    def _request(self, operation: str, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise ProviderConnectionError(operation, str(e) or type(e).__name__) from e

        if response.is_error:
            raise _provider_error(operation, response)
        return response
