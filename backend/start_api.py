"""
HITL Node API Server

Serves the node's health endpoints and the review queue API, and runs the
health reporter loop in-process so the snapshot stays current.
"""

import asyncio
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv

# Load environment variables FIRST before importing config
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.health_endpoints import router as health_router
from api.review_endpoints import router as review_router
from services.health_reporter import health_reporter
from utils.logging import RequestLoggingMiddleware, configure_logging, get_logger
from config import settings

# Configure logging based on settings (after environment is loaded)
configure_logging(
    service_name="node-api",
    log_level=settings.LOG_LEVEL,
    enable_json=settings.LOG_JSON,
)

logger = get_logger("node-api")

AVAILABLE_ENDPOINTS = [
    "GET /health",
    "GET /health-detailed",
    "GET /api/metrics",
    "GET /api/applications",
    "POST /api/applications/{id}/decision",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting HITL Node API...")
    if settings.RUN_REPORTER_IN_API:
        await health_reporter.start()

    yield

    logger.info("Shutting down HITL Node API...")
    if settings.RUN_REPORTER_IN_API:
        await health_reporter.stop()


# Create FastAPI app
app = FastAPI(
    title="HITL Node API",
    description="Node health snapshot and review queue API",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware, service_name="node-api")

app.include_router(health_router)
app.include_router(review_router)


@app.middleware("http")
async def add_instance_headers(request: Request, call_next):
    """Tag every response with the instance that served it."""
    response = await call_next(request)
    identity = health_reporter.identity
    response.headers["X-Instance-ID"] = identity.id
    response.headers["X-Availability-Zone"] = identity.availability_zone
    response.headers["X-Region"] = identity.region
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Unknown paths list the available endpoints; other errors keep their detail."""
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse(
            status_code=404,
            content={
                "error": "Not Found",
                "message": f"Path {request.url.path} not found",
                "available_endpoints": AVAILABLE_ENDPOINTS,
            },
        )
    if exc.status_code == 405:
        return JSONResponse(
            status_code=405,
            content={
                "error": "Method Not Allowed",
                "message": f"Method {request.method} not allowed for path {request.url.path}",
            },
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors, reported as 400."""
    logger.warning("Invalid request body", path=request.url.path, errors=str(exc.errors()))
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "message": str(exc.errors())},
    )


@app.api_route("/", methods=["GET", "HEAD"])
async def root():
    """Root endpoint with service information."""
    return {
        "service": "hitl-node-api",
        "version": "1.0.0",
        "description": "Node health snapshot and review queue API",
        "endpoints": AVAILABLE_ENDPOINTS,
    }


async def main():
    """Run the API server."""
    config = uvicorn.Config(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_config=None  # Use our custom logging
    )
    server = uvicorn.Server(config)

    logger.info("Starting uvicorn server", host=settings.API_HOST, port=settings.API_PORT)

    await server.serve()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
