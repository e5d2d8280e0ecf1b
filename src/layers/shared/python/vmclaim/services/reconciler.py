"""Reconciliation loop for the claimed instance.

Each tick compares the desired ResourceSpec with what the provider reports
and takes at most one path:

1. Look up the active instance by display name.
2. Found and already at the final profile: nothing to do.
3. Found and RUNNING below the final profile: upgrade it.
4. Found but not RUNNING yet: wait for a later tick.
5. Not found: create it at the small initial profile, wait for RUNNING,
   then upgrade to the final profile.

Every error is classified. Capacity exhaustion and transient provider
errors are logged and retried silently; fatal errors alert the operator.
Whatever happens, the next tick is armed, unless max_consecutive_fatal is
set and has been reached.

Usage:
    reconciler = Reconciler(gateway, notifier, spec, scheduler)
    scheduler.schedule_first(reconciler.run_check)
"""

import asyncio
import traceback
from datetime import datetime
from typing import Any, Callable, TypeVar

import structlog

from vmclaim.execution.failure_classifier import Classification, FailureKind, classify
from vmclaim.execution.scheduler import RetryScheduler
from vmclaim.models.base import utc_now
from vmclaim.models.instance import ResourceInstance
from vmclaim.models.resource_spec import ResourceSpec
from vmclaim.models.status import ReconcilerStatus, TickOutcome
from vmclaim.providers.base import ResourceGateway
from vmclaim.services.notifier import Notifier

logger = structlog.get_logger()

T = TypeVar("T")

FAILURE_OUTCOMES = {
    FailureKind.CAPACITY_EXHAUSTED: TickOutcome.CAPACITY_EXHAUSTED,
    FailureKind.TRANSIENT_PROVIDER_ERROR: TickOutcome.TRANSIENT_ERROR,
    FailureKind.FATAL: TickOutcome.FATAL_ERROR,
}


class Reconciler:
    """Drives one instance towards its final capacity profile.

    Owns the attempt counter and failure bookkeeping; the scheduler owns the
    timer. Ticks never overlap because the next one is armed only after the
    current one has finished.
    """

    def __init__(
        self,
        gateway: ResourceGateway,
        notifier: Notifier,
        spec: ResourceSpec,
        scheduler: RetryScheduler,
        max_consecutive_fatal: int = 0,
        assume_absent_on_list_error: bool = True,
    ):
        """Initialize the reconciler.

        Args:
            gateway: Provider gateway.
            notifier: Operator notifier.
            spec: Desired instance.
            scheduler: Timer used to arm the next tick.
            max_consecutive_fatal: Stop rescheduling after this many fatal
                ticks in a row; 0 keeps retrying forever.
            assume_absent_on_list_error: Treat a retryable lookup failure as
                "no instance" and go on to create.
        """
        self.gateway = gateway
        self.notifier = notifier
        self.spec = spec
        self.scheduler = scheduler
        self.max_consecutive_fatal = max_consecutive_fatal
        self.assume_absent_on_list_error = assume_absent_on_list_error

        self.attempts = 0
        self.consecutive_fatal = 0
        self.halted = False
        self.last_check_at: datetime | None = None
        self.last_outcome: TickOutcome | None = None
        self.last_error: str | None = None
        self.instance_id: str | None = None

        self.logger = logger.bind(service="reconciler", display_name=spec.display_name)

    async def run_check(self, reschedule: bool = True) -> None:
        """Run one reconciliation tick. Never raises.

        Args:
            reschedule: Arm the next tick when done (False for one-shot runs).
        """
        self.attempts += 1
        self.last_check_at = utc_now()
        self.logger.info("Running instance check", attempt=self.attempts)

        try:
            outcome = await self.reconcile()
            self.consecutive_fatal = 0
            self.last_error = None
        except Exception as e:
            outcome = await self._handle_failure(e)
        finally:
            if reschedule:
                self._arm_next()

        self.last_outcome = outcome
        self.logger.info("Instance check finished", attempt=self.attempts, outcome=outcome.value)

    async def reconcile(self) -> TickOutcome:
        """Apply the decision logic once. Raises whatever the gateway raises."""
        final = self.spec.final_profile
        existing = await self._find_active()

        if existing is not None:
            self.instance_id = existing.id

            if final.matches(existing.capacity):
                self.logger.info(
                    "Instance already at final profile, no action needed",
                    instance_id=existing.id,
                    capacity=final.describe(),
                )
                return TickOutcome.NO_OP

            if not existing.is_running:
                self.logger.warning(
                    "Instance not RUNNING, deferring upgrade",
                    instance_id=existing.id,
                    state=existing.lifecycle_state.value,
                )
                return TickOutcome.DEFERRED

            self.logger.warning(
                "Instance below final profile, upgrading",
                instance_id=existing.id,
                current=existing.capacity.describe() if existing.capacity else None,
                target=final.describe(),
            )
            await self.upgrade(existing.id)
            return TickOutcome.UPGRADED

        instance = await self.create()
        self.instance_id = instance.id

        if final.matches(self.spec.initial_profile):
            return TickOutcome.CREATED

        await self.upgrade(instance.id)
        return TickOutcome.UPGRADED

    async def create(self) -> ResourceInstance:
        """Create the instance at the initial profile and wait for RUNNING."""
        profile = self.spec.initial_profile
        self.logger.info("Attempting to create instance", capacity=profile.describe())

        instance = await self._call(self.gateway.create, self.spec)
        self.logger.info("Instance launch accepted", instance_id=instance.id)

        await self._call(self.gateway.wait_until_running, instance.id)
        self.logger.info("Instance is RUNNING", instance_id=instance.id)

        await self._notify(
            "VM Created (Initial Shape)",
            f"VM {self.spec.display_name} created and RUNNING.\n"
            f"ID: {instance.id}\n"
            f"Capacity: {profile.describe()}",
        )
        return instance

    async def upgrade(self, instance_id: str) -> None:
        """Raise a RUNNING instance to the final profile and wait for RUNNING again."""
        final = self.spec.final_profile
        self.logger.info("Upgrading instance", instance_id=instance_id, target=final.describe())

        await self._call(self.gateway.update, instance_id, final)
        self.logger.info("Upgrade accepted, waiting for RUNNING", instance_id=instance_id)

        # The instance stays RUNNING at the old shape until the provider reboots it
        await self._call(self.gateway.wait_until_running, instance_id, final)
        self.logger.info("Instance upgrade complete", instance_id=instance_id)

        await self._notify(
            "VM Upgraded (Final Shape)",
            f"VM {instance_id} upgraded to {final.describe()}.",
        )

    def status(self) -> ReconcilerStatus:
        return ReconcilerStatus(
            attempts=self.attempts,
            last_check_at=self.last_check_at,
            last_outcome=self.last_outcome,
            last_error=self.last_error,
            consecutive_fatal=self.consecutive_fatal,
            next_check_at=self.scheduler.next_run_at,
            halted=self.halted,
            instance_id=self.instance_id,
        )

    async def _find_active(self) -> ResourceInstance | None:
        self.logger.info("Checking for existing instance")
        try:
            return await self._call(self.gateway.list_active, self.spec.display_name)
        except Exception as e:
            classification = classify(e)
            if not (classification.retryable and self.assume_absent_on_list_error):
                raise
            self.logger.warning(
                "Instance lookup failed, treating as absent",
                reason=classification.reason,
                error=classification.message,
            )
            return None

    async def _handle_failure(self, error: Exception) -> TickOutcome:
        classification = classify(error)
        self.last_error = classification.message

        if classification.kind == FailureKind.CAPACITY_EXHAUSTED:
            self.consecutive_fatal = 0
            self.logger.warning("No capacity available, will retry", error=classification.message)
        elif classification.kind == FailureKind.TRANSIENT_PROVIDER_ERROR:
            self.consecutive_fatal = 0
            self.logger.warning(
                "Transient provider error, will retry",
                reason=classification.reason,
                status=classification.status,
                code=classification.code,
                error=classification.message,
            )
        else:
            self.consecutive_fatal += 1
            self.logger.error(
                "Unexpected error during instance check",
                reason=classification.reason,
                status=classification.status,
                code=classification.code,
                error=classification.message,
                consecutive_fatal=self.consecutive_fatal,
                exc_info=error,
            )
            if self.max_consecutive_fatal and self.consecutive_fatal >= self.max_consecutive_fatal:
                self.halted = True
            await self._notify("VM Job FAILED", self._failure_body(error, classification))

        return FAILURE_OUTCOMES[classification.kind]

    def _failure_body(self, error: Exception, classification: Classification) -> str:
        lines = [
            f"An unexpected error occurred while claiming VM {self.spec.display_name}:",
            "",
            classification.message,
            "",
            f"Reason: {classification.reason}",
        ]
        if classification.status is not None or classification.code:
            lines.append(f"Provider status: {classification.status} {classification.code or ''}".rstrip())
        lines.append(f"Attempt: {self.attempts}")
        if self.halted:
            lines += [
                "",
                f"Retries halted after {self.consecutive_fatal} consecutive fatal errors. "
                "Fix the configuration and restart the service.",
            ]
        lines += ["", "Stack:", "".join(traceback.format_exception(error)).rstrip()]
        return "\n".join(lines)

    def _arm_next(self) -> None:
        if self.halted:
            self.logger.error(
                "Retries halted, no further checks scheduled",
                consecutive_fatal=self.consecutive_fatal,
            )
            return
        self.scheduler.schedule_next(self.run_check)

    async def _call(self, func: Callable[..., T], *args: Any) -> T:
        # Gateway and notifier calls block; keep the event loop (and /health) responsive
        return await asyncio.to_thread(func, *args)

    async def _notify(self, subject: str, body: str) -> None:
        try:
            await self._call(self.notifier.send, subject, body)
        except Exception as e:
            # Notifier.send should not raise; a broken one must not end the tick
            self.logger.error("Notifier raised", subject=subject, error=str(e))
