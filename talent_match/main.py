from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from talent_match.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    HealthCheckMiddleware,
    PerformanceMiddleware,
    RequestLoggingMiddleware,
)
from talent_match.models.settings import load_settings
from talent_match.routers import matching, skills
from talent_match.services.db import create_database, init_indexes
from talent_match.services.matching_service import build_matching_service
from talent_match.utils.logging_config import configure_for_environment, get_logger

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the matching service and prepare the database"""
    logger.info("Talent Match API starting up...")
    settings = load_settings()
    database = create_database(settings)

    try:
        await init_indexes(database)
        logger.info("Database indexes initialized successfully")
    except Exception as e:
        logger.warning(f"Database index initialization had issues: {e}")
        logger.info("Application will continue - some operations may be slower without indexes")

    app.state.matching_service = build_matching_service(settings, database)
    logger.info("Talent Match API startup completed")

    yield

    logger.info("Talent Match API shutting down...")
    database.client.close()
    logger.info("Talent Match API shutdown completed")


app = FastAPI(title="Talent Match API", version=VERSION, lifespan=lifespan)

# Middleware is applied LIFO: CORS ends up outermost, the exception handler innermost
app.add_middleware(ExceptionHandlerMiddleware)
app.add_middleware(PerformanceMiddleware, slow_request_threshold=2.0)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(HealthCheckMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    """Root endpoint - handles both GET and HEAD requests"""
    return {"message": "Welcome to the Talent Match API", "version": VERSION, "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


app.include_router(skills.router, prefix="/api/skills", tags=["skills"])
app.include_router(matching.router, prefix="/api/matching", tags=["matching"])

logger.info("Talent Match API initialized successfully")
