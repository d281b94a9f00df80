"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from samoverlay_backend.config import settings
from samoverlay_backend.dependencies import get_model_loader, get_sam2_service, get_session_store
from samoverlay_backend.routes import segmentations_router, sessions_router
from samoverlay_backend.schemas import HealthResponse
from samoverlay_backend.services import ModelLoader

logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: start model loading in the background, release it on shutdown."""
    if settings.load_model_on_startup:
        get_model_loader().start()
    else:
        logger.info("Model loading on startup disabled")

    yield

    get_session_store().clear()
    get_sam2_service().unload_model()


app = FastAPI(
    title="SAM2 Overlay API",
    description="Interactive SAM2 segmentation sessions with tinted mask overlays",
    version="0.1.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions_router)
app.include_router(segmentations_router)


@app.get("/health", response_model=HealthResponse)
def health_check(loader: ModelLoader = Depends(get_model_loader)) -> HealthResponse:
    """Health check endpoint with model readiness."""
    return HealthResponse(
        status="healthy",
        model_ready=loader.is_ready,
        model_failed=loader.failed,
        initialization_time=loader.initialization_time,
    )
