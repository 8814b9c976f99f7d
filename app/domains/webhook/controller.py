"""Clerk webhook endpoint.

Failures are answered with a JSON error body instead of raising, so a bad
delivery never surfaces as an unhandled exception.
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PayloadValidationError
from svix.webhooks import WebhookVerificationError

from app.core.config import settings
from app.core.dependencies import get_webhook_service
from app.domains.webhook.service import SVIX_HEADERS, WebhookService, verify_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "message": message})


@router.post("/clerk")
async def clerk_webhook(request: Request, service: WebhookService = Depends(get_webhook_service)):
    secret = settings.clerk_webhook_secret
    if not secret:
        logger.error("CLERK_WEBHOOK_SECRET is not set; cannot verify webhooks")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook secret is not configured")

    missing = [name for name in SVIX_HEADERS if not request.headers.get(name)]
    if missing:
        logger.warning(f"Webhook rejected: missing headers {missing}")
        return _error(status.HTTP_400_BAD_REQUEST, "Error occurred -- no svix headers")

    body = await request.body()
    try:
        payload = verify_signature(secret, body, request.headers)
    except WebhookVerificationError as e:
        logger.warning(f"Webhook signature verification failed: {str(e)}")
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid webhook signature")

    try:
        handled = await service.handle(payload)
    except PayloadValidationError as e:
        logger.error(f"Malformed {payload.get('type')} webhook: {str(e)}")
        return _error(status.HTTP_400_BAD_REQUEST, "Malformed webhook payload")
    except Exception:
        logger.exception(f"❌ Webhook handler for {payload.get('type')} failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Webhook processing failed")

    return {
        "success": True,
        "message": "Webhook received" if handled else "Webhook ignored",
    }
