"""
FastAPI application entry point with async lifespan.
"""
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from idsyncro.core.config import get_settings
from idsyncro.core.database import init_db, close_db
from idsyncro.core.errors import IDSyncroError
from idsyncro.core.logging import configure_app_logging, get_logger
from idsyncro.routes import health, employees, certificates, offer_letters

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async lifespan manager for startup and shutdown."""
    # Startup
    configure_app_logging()
    await init_db()
    logger.info("%s %s started", settings.app_name, settings.app_version)
    yield
    # Shutdown
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Identity artifact issuance: employee IDs, certificates and offer letters",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IDSyncroError)
async def idsyncro_error_handler(request: Request, error: IDSyncroError):
    if error.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, error)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Register routes
app.include_router(health.router)
app.include_router(employees.router)
app.include_router(employees.public_router)
app.include_router(certificates.router)
app.include_router(offer_letters.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    uvicorn.run(
        app,
        host='0.0.0.0',
        port=settings.port
    )
