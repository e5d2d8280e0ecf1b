"""FastAPI application hosting the reconciliation loop."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from vmclaim import __version__
from vmclaim.api.routes import router
from vmclaim.execution.scheduler import RetryScheduler
from vmclaim.services.reconciler import Reconciler

logger = structlog.get_logger()


def create_app(reconciler: Reconciler, scheduler: RetryScheduler, start_loop: bool = True) -> FastAPI:
    """Create the application.

    Args:
        reconciler: Reconciler driven by the scheduler.
        scheduler: Tick timer; cancelled on shutdown.
        start_loop: Arm the first tick on startup (tests disable it).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if start_loop:
            scheduler.schedule_first(reconciler.run_check)
            logger.info(
                "Reconciliation loop started",
                display_name=reconciler.spec.display_name,
                base_interval_seconds=scheduler.policy.base_interval,
                jitter_range_seconds=scheduler.policy.jitter_range,
            )

        yield

        await scheduler.cancel()
        logger.info("Reconciliation loop stopped", attempts=reconciler.attempts)

    app = FastAPI(
        title="vmclaim",
        description="Claims a compute instance and stages it to its final shape",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.reconciler = reconciler
    app.include_router(router)
    return app
