"""
Shopify webhook endpoint.

The raw body is authenticated before it is parsed. A bad signature is a
401 and touches nothing; a verified webhook is always acknowledged with
200 so Shopify does not retry it, whatever processing did.
"""

import json

from fastapi import APIRouter, Depends, Request

from shopsync.api.dependencies import get_context
from shopsync.bootstrap import AppContext
from shopsync.services.webhooks import verify_webhook_hmac
from shopsync.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

HMAC_HEADER = "X-Shopify-Hmac-Sha256"
SHOP_HEADER = "X-Shopify-Shop-Domain"


@router.post("/webhooks/{topic:path}")
async def receive_webhook(topic: str, request: Request, context: AppContext = Depends(get_context)):
    """Verify, then dispatch by topic (e.g. ``orders/create``)."""
    body = await request.body()

    # SignatureError -> 401 in ErrorHandlerMiddleware
    verify_webhook_hmac(body, request.headers.get(HMAC_HEADER), context.settings.shopify_api_secret)

    try:
        payload = json.loads(body) if body else {}
    except ValueError as e:
        logger.warning(f"Verified webhook {topic} has an invalid JSON body: {e}")
        payload = None

    result = await context.webhooks.process(topic, request.headers.get(SHOP_HEADER), payload)
    return {
        "success": True,
        "processed": result.success,
        "error_kind": result.error_kind,
    }
