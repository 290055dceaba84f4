"""
Recipe Migrator Web API - FastAPI application.

Holds one in-memory queue per process. Nothing is persisted: the queue lives
as long as the server does.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recipe_migrator import __version__
from recipe_migrator.config import configure_logging, settings
from recipe_migrator.llm.prompt_logger import is_enabled
from recipe_migrator.recipe_import import RecipeQueue, ReviewForm
from recipe_migrator.web.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup."""
    configure_logging()
    logger.info("Recipe Migrator starting up...")
    logger.info(f"  Extraction model: {settings.extraction_model}")
    logger.info(f"  OpenAI key configured: {bool(settings.openai_api_key)}")
    logger.info(f"  Tandoor key configured: {bool(settings.tandoor_api_key)}")
    logger.info(f"  Prompt file logging: {is_enabled()}")
    yield


def create_app(queue: RecipeQueue | None = None) -> FastAPI:
    """Build the application around a queue (a fresh one by default)."""
    app = FastAPI(title="Recipe Migrator", version=__version__, lifespan=lifespan)

    app.state.queue = queue or RecipeQueue()
    app.state.review_form = ReviewForm(app.state.queue)

    # CORS middleware for a local frontend dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",  # Vite dev server
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    return app


app = create_app()
