"""FastAPI application entry point."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scriptguard import __version__
from scriptguard.core.config import get_settings, llm_available
from scriptguard.core.errors import ScriptGuardError
from scriptguard.core.logging import configure_logging, get_logger
from scriptguard.storage import init_db

from scriptguard.rules.router import router as rules_router
from scriptguard.moderation.router import router as moderation_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    logger.info(
        "app_starting",
        app=settings.app_name,
        llm_enabled=llm_available(),
        model=settings.llm_model,
    )

    init_db()

    yield

    logger.info("app_stopping", app=settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Policy rule engine for short-video scripts",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # CORS middleware - configurable via CORS_ORIGINS env var
    cors_origins_str = os.getenv("CORS_ORIGINS", "*")
    cors_origins = cors_origins_str.split(",") if cors_origins_str != "*" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rules_router)       # /rules
    app.include_router(moderation_router)  # /moderation

    @app.exception_handler(ScriptGuardError)
    async def script_guard_error_handler(request: Request, exc: ScriptGuardError):
        logger.error("unhandled_engine_error", code=exc.code, message=exc.message)
        return JSONResponse(status_code=500, content=exc.to_response().model_dump())

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "endpoints": {
                "rules": "/rules - Rule CRUD, search, import/export, local check, brief",
                "moderation": "/moderation/* - AI-assisted recheck and script rewrite",
            },
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
