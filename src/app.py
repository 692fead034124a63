"""
Contact Relay Service - FastAPI server
Main entry point for the portfolio contact form backend

FastAPI is the web framework (defines routes, endpoints, middleware)
Uvicorn is the ASGI server (runs the FastAPI application)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.shared.contact.routes import (
    get_contact_service,
    get_settings,
    router as contact_router,
    verify_transport,
)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the configuration and check the SMTP server once at startup."""
    logging.info("=================================")
    logging.info(f"🚀 Server running on port {settings.port}")
    logging.info(f"🌍 Environment: {settings.environment}")
    logging.info(f"📧 SMTP Email: {settings.smtp_email or 'Not configured'}")
    logging.info(f"🔗 Frontend URL: {settings.frontend_url}")
    logging.info("=================================")

    service = app.dependency_overrides.get(get_contact_service, get_contact_service)()
    await run_in_threadpool(verify_transport, service, settings)
    yield


app = FastAPI(
    title="Contact Relay Service",
    description="Relays portfolio contact form submissions by email",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS to allow the portfolio frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(contact_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Return HTTP errors in the same shape as contact responses."""
    if exc.status_code == 404:
        message = "Route not found"
    else:
        message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all: log the error, never leak it to the client."""
    logging.error(f"Server error: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
