"""
Shopify OAuth install routes.
"""

import html
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from shopsync.api.dependencies import get_context
from shopsync.bootstrap import AppContext
from shopsync.utils.exceptions import MalformedSessionError, ShopSyncError, SignatureError
from shopsync.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

STATE_COOKIE = "shopify_oauth_state"
STATE_MAX_AGE = 600


def failure_page(message: str) -> HTMLResponse:
    body = (
        "<!DOCTYPE html><html><head><title>Installation failed</title></head>"
        "<body><h1>Installation failed</h1>"
        f"<p>{html.escape(message)}</p>"
        "<p>Please try installing the app again from your Shopify admin.</p>"
        "</body></html>"
    )
    return HTMLResponse(body, status_code=400)


@router.get("/auth")
async def begin_install(
    shop: Optional[str] = Query(None),
    context: AppContext = Depends(get_context),
):
    """Redirect the merchant to Shopify's authorize page."""
    state = context.oauth.new_state()
    url = context.oauth.get_install_url(shop, state)

    response = RedirectResponse(url, status_code=302)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=context.settings.app_url.startswith("https://"),
    )
    return response


@router.get("/auth/callback")
async def install_callback(request: Request, context: AppContext = Depends(get_context)):
    """
    Finish the install: verify, exchange the code, store the session.

    Any failure renders an HTML page with status 400.
    """
    query = dict(request.query_params)

    try:
        context.oauth.verify_callback(query)

        expected_state = request.cookies.get(STATE_COOKIE)
        if not expected_state or query.get("state") != expected_state:
            raise SignatureError("OAuth state does not match")

        code = query.get("code")
        if not code:
            raise MalformedSessionError("Callback has no authorization code")

        session = await context.oauth.exchange_code_for_token(query.get("shop"), code)
    except ShopSyncError as e:
        logger.warning(f"OAuth callback rejected for {query.get('shop')!r}: {e}")
        return failure_page(e.message)

    result = await context.session_storage.store_session(session)
    if not result:
        return failure_page(result.message or "Could not save the shop session")

    logger.info(f"App installed for {session.shop}")
    response = RedirectResponse(f"/dashboard?{urlencode({'shop': session.shop})}", status_code=302)
    response.delete_cookie(STATE_COOKIE)
    return response
