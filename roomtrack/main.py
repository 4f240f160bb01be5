# =======================================================================================
# roomtrack/main.py - FastAPI Application Entry Point
# =======================================================================================
import logging
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from .config import config
from .api.routes.presence import router as presence_router
from .api.routes.visits import router as visits_router
from .api.routes.combined_groups import router as combined_groups_router
from .api.routes.rooms import router as rooms_router
from .api.routes.devices import router as devices_router
from .database import DatabaseManager, db_manager
from .models.schemas import ErrorResponse, HealthResponse
from .services import Services
from .utils.exceptions import InternalError, RoomTrackError
from .workers import ExpiryWorker

logger = logging.getLogger(__name__)


def create_app(db: Optional[DatabaseManager] = None) -> FastAPI:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Room Occupancy API",
        version="1.0.0",
        description="RFID room occupancy tracking and temporary group merges",
        debug=config.API_DEBUG,
    )
    app.state.db = db or db_manager
    app.state.services = Services()
    app.state.expiry_worker = ExpiryWorker(
        app.state.db, app.state.services.combined_groups, config.EXPIRY_SWEEP_INTERVAL
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(presence_router, prefix=config.API_PREFIX, tags=["presence"])
    app.include_router(visits_router, prefix=config.API_PREFIX, tags=["visits"])
    app.include_router(combined_groups_router, prefix=config.API_PREFIX, tags=["combined groups"])
    app.include_router(rooms_router, prefix=config.API_PREFIX, tags=["rooms"])
    app.include_router(devices_router, prefix=config.API_PREFIX, tags=["devices"])

    @app.exception_handler(RoomTrackError)
    async def roomtrack_error_handler(request: Request, exc: RoomTrackError):
        if isinstance(exc, InternalError):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            detail = None
        else:
            logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc)
            detail = str(exc)
        body = ErrorResponse(status=exc.status_text, error=detail)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        return await roomtrack_error_handler(request, InternalError("database error"))

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    def health():
        try:
            app.state.db.fetch_one("SELECT 1")
            return HealthResponse(status="ok", dataAvailable=True, message=None)
        except SQLAlchemyError as e:
            logger.warning("Health check failed: %s", e)
            return HealthResponse(status="error", dataAvailable=False, message="database unavailable")

    @app.on_event("startup")
    def startup_event():
        if config.DB_AUTO_CREATE:
            app.state.db.create_schema()
        app.state.expiry_worker.interval = config.EXPIRY_SWEEP_INTERVAL
        app.state.expiry_worker.start()
        logger.info("Room Occupancy API started")

    @app.on_event("shutdown")
    def shutdown_event():
        app.state.expiry_worker.stop()

    return app


app = create_app()
