"""Main FastAPI application for the campaign site and lesson generator."""

import logging
from contextlib import asynccontextmanager
from typing import Optional
import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from campaign_site.api import (
    activities_router,
    admin_router,
    campaign_router,
    export_router,
    internal_router,
    lessons_router,
    locations_router,
    petition_router,
)
from campaign_site.config import Settings
from campaign_site.services import (
    ActivityService,
    BrevoService,
    CuratedContentLibrary,
    Curriculum,
    Database,
    LessonGenerator,
    LessonModelClient,
    LocationIndex,
    NameRegistry,
    PromptBuilder,
    SessionManager,
    SignatureService,
    TTLCache,
)
from campaign_site.services.rate_limit import limiter, rate_limit_exceeded_handler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "stoppa-marknadshyror"
INVALID_REQUEST = "Ogiltig förfrågan"


def init_services(
    app: FastAPI,
    settings: Settings,
    brevo_transport: Optional[httpx.AsyncBaseTransport] = None,
    model_client: Optional[LessonModelClient] = None,
):
    """Build the shared services and attach them to app.state."""
    cache = TTLCache()
    db = Database(settings.database_url)
    brevo = BrevoService(settings.brevo_api_key, settings.brevo_api_url, transport=brevo_transport)
    names = NameRegistry.from_file(settings.data_dir / "swedish-names.json")

    curriculum = Curriculum(
        settings.prompts_dir / "curriculum",
        settings.enabled_grade_levels,
        settings.enabled_subjects,
    )
    prompts = PromptBuilder(
        settings.prompts_dir,
        curriculum,
        CuratedContentLibrary(settings.curated_content_dir),
    )
    model_client = model_client or LessonModelClient(settings.anthropic_api_key, settings.anthropic_model)

    app.state.settings = settings
    app.state.cache = cache
    app.state.db = db
    app.state.brevo = brevo
    app.state.names = names
    app.state.signature_service = SignatureService(db, cache, brevo, names)
    app.state.activity_service = ActivityService(db, brevo)
    app.state.location_index = LocationIndex.from_file(settings.data_dir / "postnummer.json")
    app.state.curriculum = curriculum
    app.state.lesson_generator = LessonGenerator(model_client, prompts, settings.logs_dir)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown events."""
    # Startup
    logger.info("Starting campaign site...")
    settings = Settings.from_env()
    init_services(app, settings)

    if not settings.brevo_api_key:
        logger.warning("BREVO_API_KEY not configured, CRM calls will fail")

    session_manager = SessionManager(timeout_minutes=60)
    await session_manager.start_cleanup_task()
    app.state.session_manager = session_manager
    logger.info("Session manager initialized")

    yield

    # Shutdown
    logger.info("Shutting down campaign site...")
    await session_manager.stop_cleanup_task()
    await app.state.signature_service.wait_for_background_syncs()
    await app.state.brevo.close()
    app.state.db.dispose()


# Create FastAPI app
app = FastAPI(
    title="Stoppa Marknadshyror",
    description="Campaign site API and AI lesson-plan generator",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return a Swedish 400 for bodies that fail to parse or validate."""
    logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"detail": INVALID_REQUEST})


# Include routers
app.include_router(petition_router)
app.include_router(campaign_router)
app.include_router(activities_router)
app.include_router(admin_router)
app.include_router(export_router)
app.include_router(locations_router)
app.include_router(lessons_router)
app.include_router(internal_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "service": SERVICE_NAME}


def main():
    """Run the application with uvicorn."""
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )


if __name__ == "__main__":
    main()
