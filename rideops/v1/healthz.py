from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from rideops.config.settings import Settings, SettingsDep
from rideops.infra.database import get_session
from rideops.v1.captures.models import CaptureTask, CaptureTaskStatus
from rideops.v1.core.exceptions import create_success_response
from rideops.v1.infra.jobs.models import JobRun

router = APIRouter()


class DatabaseHealth(BaseModel):
    """Database health status."""

    connected: bool
    response_time_ms: float | None = None
    error: str | None = None


class CaptureQueueHealth(BaseModel):
    """Capture queue health status."""

    queue_depth: int = 0
    stuck_count: int = 0
    failed_count: int = 0
    last_run_age_seconds: int | None = None


class HealthResponse(BaseModel):
    """Health response with database and capture queue status."""

    ok: bool
    version: str
    environment: str
    timestamp: str
    database: DatabaseHealth
    captures: CaptureQueueHealth | None = None


@router.get("/healthz", response_model=dict)
async def health_check(
    settings: Settings = SettingsDep, session: AsyncSession = Depends(get_session)
):
    """Health check endpoint with database and capture queue status."""

    timestamp = datetime.now(UTC).isoformat()
    overall_ok = True

    db_health = await _check_database_health(session)
    if not db_health.connected:
        overall_ok = False

    # Queue check failure doesn't fail overall health
    captures_health = None
    if db_health.connected:
        try:
            captures_health = await _check_capture_queue_health(session, settings)
        except Exception:
            await session.rollback()
            captures_health = CaptureQueueHealth()

    health_data = HealthResponse(
        ok=overall_ok,
        version=settings.version,
        environment=settings.environment,
        timestamp=timestamp,
        database=db_health,
        captures=captures_health,
    )

    return create_success_response(data=health_data.model_dump())


async def _check_database_health(session: AsyncSession) -> DatabaseHealth:
    """Check database connectivity and response time."""
    start_time = datetime.now(UTC)

    try:
        await session.execute(text("SELECT 1"))

        end_time = datetime.now(UTC)
        response_time_ms = (end_time - start_time).total_seconds() * 1000

        return DatabaseHealth(
            connected=True, response_time_ms=round(response_time_ms, 2)
        )

    except Exception as e:
        return DatabaseHealth(connected=False, error=str(e))


async def _check_capture_queue_health(
    session: AsyncSession, settings: Settings
) -> CaptureQueueHealth:
    """Check capture queue depth, stuck tasks and drain recency."""
    now = datetime.now(UTC)

    queue_depth_result = await session.execute(
        select(func.count(CaptureTask.id)).where(
            CaptureTask.status.in_(
                [CaptureTaskStatus.PENDING.value, CaptureTaskStatus.PROCESSING.value]
            )
        )
    )
    queue_depth = queue_depth_result.scalar() or 0

    stuck_cutoff = now - timedelta(seconds=settings.capture_stuck_after_s)
    stuck_result = await session.execute(
        select(func.count(CaptureTask.id)).where(
            CaptureTask.status == CaptureTaskStatus.PROCESSING.value,
            CaptureTask.last_attempt_at < stuck_cutoff,
        )
    )
    stuck_count = stuck_result.scalar() or 0

    failed_result = await session.execute(
        select(func.count(CaptureTask.id)).where(
            CaptureTask.status == CaptureTaskStatus.FAILED.value
        )
    )
    failed_count = failed_result.scalar() or 0

    last_run_result = await session.execute(
        select(func.max(JobRun.started_at)).where(JobRun.job_name == "capture_drain")
    )
    last_run = last_run_result.scalar()

    last_run_age_seconds = None
    if last_run:
        if last_run.tzinfo is None:
            last_run = last_run.replace(tzinfo=UTC)
        last_run_age_seconds = int((now - last_run).total_seconds())

    return CaptureQueueHealth(
        queue_depth=queue_depth,
        stuck_count=stuck_count,
        failed_count=failed_count,
        last_run_age_seconds=last_run_age_seconds,
    )
