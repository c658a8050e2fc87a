"""WorldWiki FastAPI application.

The persistent host: builds the service container in the lifespan, runs the
store maintenance job and serves the generation endpoints.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import logfire
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from worldwiki.api import dependencies
from worldwiki.api.endpoints import core, generate, usage
from worldwiki.api.gateway import GenerationGateway
from worldwiki.api.identity import IdentityVerifier
from worldwiki.core.config import Settings, settings
from worldwiki.core.handlers import install_error_handlers
from worldwiki.core.logging import configure_logfire, get_logger, setup_logging
from worldwiki.infrastructure.credentials import InMemoryCredentialStore
from worldwiki.services.container import ServiceContainer, build_container
from worldwiki.services.maintenance import StoreMaintenance

configure_logfire(settings)
setup_logging(settings)
logger = get_logger(__name__)


def create_app(
    config: Settings = settings,
    container: ServiceContainer | None = None,
    identity_verifier: IdentityVerifier | None = None,
) -> FastAPI:
    """Build the app. A prebuilt container is used as-is and left open on shutdown."""

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
        owned = container is None
        logger.info("Starting WorldWiki application", environment=config.environment)

        services = container or build_container(config)
        credential_store = services.credential_store
        maintenance = StoreMaintenance(
            services.stores,
            credential_store if isinstance(credential_store, InMemoryCredentialStore) else None,
            interval_seconds=config.store_prune_interval_seconds,
        )

        dependencies.container = services
        dependencies.gateway = GenerationGateway(services, identity_verifier)
        dependencies.maintenance = maintenance
        await maintenance.start()
        logger.info("WorldWiki application started", shared_store=services.stores.shared)

        try:
            yield
        finally:
            logger.info("Shutting down WorldWiki...")
            await maintenance.shutdown()
            dependencies.container = None
            dependencies.gateway = None
            dependencies.maintenance = None
            if owned:
                await services.close()
            logger.info("WorldWiki shutdown complete")

    app = FastAPI(
        title="WorldWiki API",
        description="Streaming encyclopedia page generation for invented worlds",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Enable FastAPI instrumentation for request tracing
    logfire.instrument_fastapi(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
            "X-Streaming",
        ],
    )
    install_error_handlers(app)

    app.include_router(core.router)
    app.include_router(generate.router, tags=["generation"])
    app.include_router(usage.router, tags=["usage"])
    return app


app = create_app()


def run() -> None:
    """Development server entry point."""
    logger.info("Starting WorldWiki development server...")
    uvicorn.run("worldwiki.main:app", host="0.0.0.0", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
