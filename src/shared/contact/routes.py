"""Contact routes for relaying visitor messages by email."""

import logging
from functools import lru_cache
from json import JSONDecodeError
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from src.shared.config.settings import Settings, load_settings
from src.shared.contact.exceptions import TransportError
from src.shared.contact.schemas import ContactResponse
from src.shared.contact.service import HTTP_STATUS, ContactService
from src.shared.rate_limit.rate_limit_utils import get_client_ip

router = APIRouter(prefix="/api", tags=["contact"])


@lru_cache()
def get_settings() -> Settings:
    """Dependency returning the process-wide settings."""
    return load_settings()


@lru_cache()
def get_contact_service() -> ContactService:
    """Dependency returning the process-wide contact pipeline."""
    return ContactService.from_settings(get_settings())


async def read_form_fields(request: Request) -> Dict[str, Any]:
    """Read submitted fields from a JSON or form-encoded body."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            body = await request.json()
        except (JSONDecodeError, UnicodeDecodeError):
            return {}
        return body if isinstance(body, dict) else {}
    if "form" in content_type:
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}
    return {}


@router.get("/health")
async def health(service: ContactService = Depends(get_contact_service)):
    """Health check endpoint"""
    return service.health()


@router.post("/contact", response_model=ContactResponse)
async def submit_contact_form(
    request: Request,
    service: ContactService = Depends(get_contact_service),
    settings: Settings = Depends(get_settings)
):
    """
    Submit a contact form message to the site owner.

    - Rate limiting per client IP (default 5 messages per 15 minutes)
    - Every invalid field is reported at once
    - The email is sent on a worker thread so a slow SMTP server only
      holds up this request
    """
    raw = await read_form_fields(request)
    client_ip = get_client_ip(request, trust_proxy=settings.trust_proxy)

    result = await run_in_threadpool(service.submit, raw, client_ip)

    headers = {}
    if result.retry_after is not None:
        headers["Retry-After"] = str(result.retry_after)
    return JSONResponse(
        status_code=HTTP_STATUS[result.status],
        content=result.response.model_dump(exclude_none=True),
        headers=headers,
    )


def verify_transport(service: ContactService, settings: Settings) -> None:
    """Log whether the configured SMTP server accepts our credentials."""
    transport = service.dispatcher.transport
    if transport is None:
        logging.error("Please set SMTP_EMAIL and SMTP_PASSWORD in your .env file")
        return
    if not settings.smtp_verify_on_startup:
        return
    try:
        transport.verify()
    except TransportError as e:
        logging.error(f"❌ SMTP Configuration Error: {str(e)}")
        logging.error("⚠️  Email sending will not work until SMTP is properly configured")
        return
    logging.info("✅ SMTP Server is ready to send emails")
