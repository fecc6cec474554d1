"""Main application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from .api.router import init_router, router
from .clients.backend import BackendClient
from .clients.vision import VisionClient
from .config import AppConfig, get_config_path, load_config
from .reservations.errors import BackendUnavailableError
from .reservations.orchestrator import ReservationOrchestrator
from .state.garage_state import GarageState

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global state
backend_client: BackendClient | None = None
vision_client: VisionClient | None = None
garage_state: GarageState | None = None
orchestrator: ReservationOrchestrator | None = None
config: AppConfig | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global backend_client, vision_client, garage_state, orchestrator, config

    logger.info("Starting Garage Occupancy service...")

    # Load configuration
    config_path = get_config_path()
    if not config_path.exists():
        logger.error(f"Configuration file not found: {config_path}")
        logger.error("Please create config/config.yaml from config/config.example.yaml")
        sys.exit(1)

    config = load_config(config_path)
    logger.info(f"Loaded configuration from {config_path}")

    backend_client = BackendClient(
        base_url=config.backend.base_url,
        api_token=config.backend.api_token,
        timeout_seconds=config.backend.timeout_seconds,
    )
    vision_client = VisionClient(
        detector_url=config.vision.detector_url,
        plate_url=config.vision.plate_url,
        timeout_seconds=config.vision.timeout_seconds,
    )

    garage_state = GarageState(rows=config.garage.rows)
    orchestrator = ReservationOrchestrator(
        backend=backend_client,
        state=garage_state,
        plate_pattern=config.garage.plate_pattern,
        max_workers=config.detection.max_workers,
    )

    # Initial sync; the service still starts if the backend is down
    try:
        orchestrator.refresh()
        logger.info(
            f"Synced reservations: {garage_state.get_occupied_count()} of "
            f"{len(garage_state.spots)} spots occupied"
        )
    except BackendUnavailableError as e:
        logger.error(f"Initial reservation sync failed: {e}")

    init_router(
        state=garage_state,
        orchestrator=orchestrator,
        vision=vision_client,
        get_user_func=backend_client.get_user,
        min_confidence=config.detection.min_confidence,
    )

    logger.info(f"Garage Occupancy service ready on http://{config.api.host}:{config.api.port}")

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down...")

    if vision_client:
        vision_client.close()
    if backend_client:
        backend_client.close()

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Garage Occupancy",
    description="API for garage spot reservations reconciled with camera detections",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")


def main():
    """Run the application."""
    # Load config just to get API settings
    config_path = get_config_path()
    if config_path.exists():
        cfg = load_config(config_path)
        host = cfg.api.host
        port = cfg.api.port
    else:
        host = "0.0.0.0"
        port = 8000

    uvicorn.run(
        "garage_occupancy.main:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
