"""
Shopify OAuth install flow.

Builds the authorize URL, verifies the callback query signature and
exchanges the authorization code for an offline access token.
"""

import hashlib
import hmac
import secrets
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

import httpx

from shopsync.core.models import ShopSession
from shopsync.core.validator import normalize_shop_domain
from shopsync.utils.config import Settings
from shopsync.utils.exceptions import MalformedSessionError, ProviderApiError, SignatureError
from shopsync.utils.logger import get_logger


logger = get_logger(__name__)

CALLBACK_PATH = "/auth/callback"


class ShopifyOAuthService:
    """Handle the Shopify OAuth flow with the app credentials from settings."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    @property
    def redirect_uri(self) -> str:
        return f"{self.settings.app_url}{CALLBACK_PATH}"

    @staticmethod
    def new_state() -> str:
        """Random nonce for the ``state`` parameter."""
        return secrets.token_urlsafe(24)

    def normalize_shop(self, shop: Optional[str]) -> str:
        """
        Raises:
            MalformedSessionError: If ``shop`` is not a valid shop domain
        """
        domain = normalize_shop_domain(shop)
        if domain is None:
            raise MalformedSessionError("Missing or invalid shop parameter", {"shop": shop})
        return domain

    def get_install_url(self, shop: str, state: str) -> str:
        """Authorize URL for an offline token with the configured scopes."""
        self.settings.require_shopify_credentials()
        domain = self.normalize_shop(shop)

        params = {
            "client_id": self.settings.shopify_api_key,
            "scope": ",".join(self.settings.scopes),
            "redirect_uri": self.redirect_uri,
            "state": state,
        }
        logger.info(f"Generated OAuth install URL for {domain}")
        return f"https://{domain}/admin/oauth/authorize?{urlencode(params)}"

    def verify_callback(self, query: Mapping[str, str]) -> None:
        """
        Verify the ``hmac`` parameter of an OAuth callback.

        The message is every other parameter sorted by key and joined as
        ``key=value`` pairs with ``&``.

        Raises:
            SignatureError: If the signature is missing or does not match
        """
        secret = self.settings.shopify_api_secret
        if not secret:
            raise SignatureError("App secret is not configured")

        received = query.get("hmac")
        if not received:
            raise SignatureError("Callback has no hmac parameter")

        message = "&".join(
            f"{key}={value}"
            for key, value in sorted(query.items())
            if key not in ("hmac", "signature")
        )
        expected = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()

        if not hmac.compare_digest(expected, received):
            logger.warning(f"OAuth callback HMAC mismatch for {query.get('shop')}")
            raise SignatureError("Callback signature mismatch")

    async def exchange_code_for_token(self, shop: str, code: str) -> ShopSession:
        """
        Exchange an authorization code for an offline access token.

        Raises:
            ProviderApiError: If Shopify rejects the exchange
        """
        self.settings.require_shopify_credentials()
        domain = self.normalize_shop(shop)
        url = f"https://{domain}/admin/oauth/access_token"

        logger.info(f"Exchanging OAuth code for {domain}")
        try:
            async with httpx.AsyncClient(transport=self.transport,
                                         timeout=self.settings.shopify_api_timeout) as client:
                response = await client.post(url, json={
                    "client_id": self.settings.shopify_api_key,
                    "client_secret": self.settings.shopify_api_secret,
                    "code": code,
                })
        except httpx.HTTPError as e:
            raise ProviderApiError(f"Token exchange failed for {domain}: {e}",
                                   endpoint="oauth/access_token") from e

        if response.status_code != 200:
            raise ProviderApiError(
                f"Token exchange failed for {domain}: HTTP {response.status_code}",
                status_code=response.status_code,
                endpoint="oauth/access_token",
                response_data=response.text[:200],
            )

        try:
            data: Dict[str, Any] = response.json()
        except ValueError as e:
            raise ProviderApiError("Token exchange returned invalid JSON",
                                   endpoint="oauth/access_token") from e

        token = data.get("access_token")
        if not token:
            raise ProviderApiError("Token exchange returned no access token",
                                   endpoint="oauth/access_token")

        logger.info(f"Obtained offline token for {domain}")
        scope = data.get("scope") or ""
        return ShopSession(
            shop=domain,
            access_token=token,
            scope=[s.strip() for s in scope.split(",") if s.strip()],
        )
