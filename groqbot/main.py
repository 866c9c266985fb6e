"""FastAPI application for the Groq chat relay."""

from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from groqbot import __version__
from groqbot.api import chat, config, models
from groqbot.config import settings
from groqbot.exceptions import GroqBotError
from groqbot.models import ErrorResponse, HealthResponse
from groqbot.tokens import TokenCounter

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: create and close shared resources.

    - One httpx.AsyncClient for all upstream calls (connection pooling)
    - One TokenCounter (encoding loaded on first use)
    """
    logger.info("🚀 Starting Groq Bot relay...")

    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.request_timeout)
    )
    app.state.token_counter = TokenCounter()

    logger.info("🎉 Application startup complete!")
    logger.info(f"   Upstream: {settings.openai_api_host}")
    logger.info(f"   Default model: {settings.default_model}")
    logger.info(f"   Server-side key: {'set' if settings.server_side_api_key_is_set else 'not set'}")

    yield

    logger.info("👋 Shutting down application...")
    await app.state.http_client.aclose()
    logger.info("✅ Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Reborncloud Groq Bot API",
    description="Streaming chat relay for Groq / OpenAI-compatible model APIs",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GroqBotError)
async def groqbot_error_handler(request: Request, exc: GroqBotError) -> JSONResponse:
    """Render GroqBotError as {'detail': '...', 'error_code': '...'}."""
    error = ErrorResponse(detail=exc.message, error_code=exc.error_code)
    return JSONResponse(status_code=exc.status_code, content=error.model_dump(mode="json"))


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint.

    Returns:
        Health status and version
    """
    return HealthResponse()


app.include_router(chat.router)
app.include_router(models.router)
app.include_router(config.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower(),
        timeout_keep_alive=120,  # Long completions stream for a while
    )
