"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rethoric import __version__
from rethoric.api.conversations import router as conversations_router
from rethoric.api.health import router as health_router
from rethoric.api.questions import router as questions_router
from rethoric.api.users import router as users_router
from rethoric.api.webhooks import router as webhooks_router
from rethoric.config import settings
from rethoric.conversations.mentor import MentorConfig
from rethoric.db.database import init_db
from rethoric.errors import RethoricError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    logger.info("Database initialized")
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="Critical-thinking prompts with a guided AI mentor",
    version=__version__,
    lifespan=lifespan,
)
app.state.mentor_config = MentorConfig.from_settings(settings)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins for now, restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RethoricError)
async def domain_error_handler(request: Request, exc: RethoricError) -> JSONResponse:
    """Map domain errors to their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# Include routers
app.include_router(health_router)
app.include_router(questions_router)
app.include_router(conversations_router)
app.include_router(users_router)
app.include_router(webhooks_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic application info."""
    return {
        "name": settings.APP_NAME,
        "version": __version__,
        "docs": "/docs",
    }
