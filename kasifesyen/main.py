"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kasifesyen.api import auth, fashion, receipts
from kasifesyen.config import get_settings
from kasifesyen.errors import KasiFesyenError
from kasifesyen.services.currency import CurrencyConverter
from kasifesyen.services.llm import GeminiService
from kasifesyen.services.storage import build_storage_service

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the external service clients shared by all requests."""
    app.state.gemini = GeminiService(settings)
    if not app.state.gemini.is_configured:
        logger.warning("GEMINI_API_KEY is not set; fashion and receipt endpoints are disabled")
    app.state.storage = build_storage_service(settings)
    app.state.converter = CurrencyConverter(settings)
    yield


app = FastAPI(
    title="KasiFesyen API",
    description="Outfit recommendations and receipt scanning powered by Gemini",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(KasiFesyenError)
async def kasifesyen_error_handler(request: Request, exc: KasiFesyenError) -> JSONResponse:
    """Render pipeline errors as {"error": ..., "status": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "status": exc.status_code},
    )


# Register routers
app.include_router(auth.router)
app.include_router(fashion.router)
app.include_router(receipts.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
