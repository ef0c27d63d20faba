"""
Job registry initialization.

Registers all scheduled tasks with the global job registry.
"""

import logging

from rideops.config.settings import Settings
from rideops.v1.captures.gateway import PaymentGateway, build_gateway
from rideops.v1.core.registries import JobRegistry, job_registry
from rideops.v1.infra.jobs.handlers import (
    CaptureDrainTask,
    CaptureRetryTask,
    RetentionSweepTask,
)

logger = logging.getLogger(__name__)

RETENTION_SWEEP = "retention_sweep"
CAPTURE_DRAIN = "capture_drain"
CAPTURE_RETRY = "capture_retry"


def register_job_tasks(
    settings: Settings,
    gateway: PaymentGateway | None = None,
    registry: JobRegistry = job_registry,
) -> None:
    """Register all scheduled tasks with the job registry."""

    logger.info("Registering job tasks")

    registry.register(RETENTION_SWEEP, RetentionSweepTask(settings))
    registry.register(
        CAPTURE_DRAIN, CaptureDrainTask(settings, gateway or build_gateway(settings))
    )

    # Opt-in bounded retry of gateway errors
    if settings.capture_auto_retry_enabled:
        registry.register(CAPTURE_RETRY, CaptureRetryTask(settings))
    else:
        registry.unregister(CAPTURE_RETRY)

    logger.info(
        "Job tasks registered", extra={"registered_tasks": registry.list()}
    )
