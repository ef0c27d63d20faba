from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from rideops.config.logging import setup_logging
from rideops.config.settings import settings
from rideops.v1.captures.routes import router as captures_router
from rideops.v1.core.exceptions import (
    RequestContextMiddleware,
    RideOpsException,
    general_exception_handler,
    http_exception_handler,
    rideops_exception_handler,
)
from rideops.v1.core.registries import job_registry, payment_gateway_registry
from rideops.v1.healthz import router as health_router
from rideops.v1.infra.jobs.registry_init import register_job_tasks
from rideops.v1.infra.jobs.routes import router as jobs_router
from rideops.v1.rides.routes import router as rides_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description="Ride lifecycle maintenance: conversation retention and payment capture",
        version=settings.version,
        debug=settings.debug,
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )

    app.add_middleware(RequestContextMiddleware)

    # Browser access to the docs in development only
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(RideOpsException, rideops_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(rides_router, prefix="/v1")
    app.include_router(captures_router, prefix="/v1")
    app.include_router(jobs_router, prefix="/v1")

    if not job_registry.is_frozen():
        register_job_tasks(settings)

    # Registries are fixed once the app is built outside development
    if settings.environment != "development":
        job_registry.freeze()
        payment_gateway_registry.freeze()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rideops.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
