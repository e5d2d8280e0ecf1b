"""Process entry point.

    vmclaim            run the HTTP listener and the reconciliation loop
    vmclaim --once     run a single check and exit

Configuration errors are reported before anything starts and exit with
status 1. SIGINT/SIGTERM cancel the pending check and exit with status 0.
"""

import argparse
import asyncio
import sys

import structlog
import uvicorn

from vmclaim import __version__
from vmclaim.api.app import create_app
from vmclaim.config import Settings, load_settings
from vmclaim.execution.scheduler import RetryScheduler
from vmclaim.providers.oci_gateway import OciComputeGateway, OciRequestSigner
from vmclaim.services.email_service import EmailService
from vmclaim.services.notifier import LogNotifier, Notifier, SesNotifier, SmtpNotifier
from vmclaim.services.reconciler import Reconciler
from vmclaim.utils.exceptions import ConfigurationError
from vmclaim.utils.logging import configure_logging

logger = structlog.get_logger()


def build_notifier(settings: Settings) -> Notifier:
    """Pick the notification transport from settings."""
    if settings.mail_transport == "ses" and settings.mail_to:
        return SesNotifier(
            to_address=settings.mail_to,
            email_service=EmailService(
                region_name=settings.ses_region,
                from_email=settings.ses_from_email or settings.mail_from,
            ),
        )
    if settings.mail_transport == "smtp" and settings.mail_host:
        return SmtpNotifier(
            host=settings.mail_host,
            port=settings.mail_port,
            username=settings.mail_user,
            password=settings.mail_pass,
            to_address=settings.mail_to,
            from_address=settings.mail_from,
        )
    logger.warning("Mail not configured, notifications will only be logged")
    return LogNotifier()


def build_gateway(settings: Settings) -> OciComputeGateway:
    """Build the OCI gateway, loading the signing key up front."""
    config = settings.oci_config()
    signer = OciRequestSigner.from_config(config)

    return OciComputeGateway(
        config=config,
        compartment_id=settings.compartment_id,
        wait_max_seconds=settings.wait_max_seconds,
        wait_poll_seconds=settings.wait_poll_seconds,
        signer=signer,
    )


def build_reconciler(settings: Settings) -> tuple[Reconciler, RetryScheduler]:
    scheduler = RetryScheduler(settings.retry_policy())
    reconciler = Reconciler(
        gateway=build_gateway(settings),
        notifier=build_notifier(settings),
        spec=settings.resource_spec(),
        scheduler=scheduler,
        max_consecutive_fatal=settings.max_consecutive_fatal,
        assume_absent_on_list_error=settings.assume_absent_on_list_error,
    )
    return reconciler, scheduler


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="vmclaim",
        description="Claim a compute instance on a capacity-constrained cloud and stage it to its final shape.",
    )
    parser.add_argument("--once", action="store_true", help="Run a single check and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run vmclaim. Returns the process exit status."""
    args = parse_args(argv)

    try:
        settings = load_settings()
        configure_logging(
            settings.log_level,
            settings.log_format,
            log_file=settings.log_file,
            error_log_file=settings.log_error_file,
        )
        reconciler, scheduler = build_reconciler(settings)
    except ConfigurationError as e:
        configure_logging()
        logger.error("Fatal startup error", **e.to_dict())
        return 1

    if args.once:
        asyncio.run(reconciler.run_check(reschedule=False))
        return 0

    policy = scheduler.policy
    logger.info(
        "vmclaim starting",
        version=__version__,
        display_name=reconciler.spec.display_name,
        health_url=f"http://localhost:{settings.port}/health",
        check_every_seconds=policy.base_interval,
        jitter_seconds=policy.jitter_range,
    )

    app = create_app(reconciler, scheduler)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())
