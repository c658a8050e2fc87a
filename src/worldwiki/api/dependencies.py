"""API dependencies."""

from fastapi import HTTPException

from worldwiki.services.container import ServiceContainer
from worldwiki.services.maintenance import StoreMaintenance

from .gateway import GenerationGateway

# These will be set by the main.py lifespan
container: ServiceContainer | None = None
gateway: GenerationGateway | None = None
maintenance: StoreMaintenance | None = None


def get_gateway() -> GenerationGateway:
    if gateway is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return gateway


def get_container() -> ServiceContainer:
    if container is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return container
