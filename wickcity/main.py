from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wickcity.api.deps import general_rate_limit, get_services
from wickcity.api.routes import discover, search
from wickcity.config import settings
from wickcity.models.schemas import HealthResponse
from wickcity.services import logger as log_service
from wickcity.services.container import ServiceContainer

VERSION = "2.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    services = ServiceContainer.from_settings(settings)
    services.start()
    app.state.services = services
    log_service.log_event("startup", "Services started", version=VERSION)
    yield
    # Shutdown
    await services.aclose()
    log_service.log_event("shutdown", "Services stopped", uptime=services.uptime_seconds)


app = FastAPI(
    title="Wickcity",
    description="Multi-engine web search with extractive, cited answers",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials="*" not in settings.cors_origin_list,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(search.router, dependencies=[Depends(general_rate_limit)])
app.include_router(discover.router, dependencies=[Depends(general_rate_limit)])


@app.get("/api/health", response_model=HealthResponse, dependencies=[Depends(general_rate_limit)])
async def health(services: ServiceContainer = Depends(get_services)):
    return HealthResponse(
        status="ok",
        service="wickcity",
        uptime=services.uptime_seconds,
        cache={"search": len(services.search_cache), "instant": len(services.instant_cache)},
        version=VERSION,
    )
