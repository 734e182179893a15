"""
Shopify session storage backed by the tenant table.

The OAuth layer hands over sessions in whatever shape its library uses
(camelCase JS-style objects, snake_case dicts, plain objects). They are
normalized into ``ShopSession`` and folded into the tenant row, so the
tenant record is the single place a shop's token lives.

``store_session``, ``load_session`` and ``delete_session`` never raise;
failures are logged and reported through ``OperationResult`` / None.
"""

from collections.abc import Mapping
from typing import Any, Iterable, List, Optional

from shopsync.core.models import OperationResult, ShopSession
from shopsync.core.validator import normalize_shop_domain
from shopsync.database.repository import TenantRepository
from shopsync.utils.exceptions import MalformedSessionError, ShopSyncError
from shopsync.utils.logger import get_logger, mask_token


logger = get_logger(__name__)

SHOP_FIELDS = ("shop", "shopDomain", "shop_domain")
TOKEN_FIELDS = ("accessToken", "access_token")
ONLINE_FIELDS = ("isOnline", "is_online")
OFFLINE_ID_PREFIX = "offline_"


def _first(payload: Any, names: Iterable[str]) -> Any:
    """First non-empty field among ``names`` on a mapping or object."""
    for name in names:
        if isinstance(payload, Mapping):
            value = payload.get(name)
        else:
            value = getattr(payload, name, None)
        if value not in (None, ""):
            return value
    return None


def _parse_scope(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(s).strip() for s in value if str(s).strip()]
    return []


def normalize_session(payload: Any) -> ShopSession:
    """
    Normalize an external session into ``ShopSession``.

    The shop domain is read from ``shop``, ``shopDomain`` or ``shop_domain``,
    falling back to an offline session id (``offline_<shop>``).

    Raises:
        MalformedSessionError: If no shop domain can be resolved
    """
    if isinstance(payload, ShopSession):
        return payload
    if payload is None:
        raise MalformedSessionError("Session is empty")

    raw_domain = _first(payload, SHOP_FIELDS)
    if raw_domain is None:
        session_id = _first(payload, ("id",))
        if isinstance(session_id, str):
            raw_domain = session_id[len(OFFLINE_ID_PREFIX):] if session_id.startswith(OFFLINE_ID_PREFIX) else session_id

    domain = normalize_shop_domain(raw_domain)
    if domain is None:
        raise MalformedSessionError(
            "Session does not identify a shop domain",
            {"value": str(raw_domain)[:100] if raw_domain is not None else None},
        )

    token = _first(payload, TOKEN_FIELDS)
    return ShopSession(
        shop=domain,
        access_token=str(token) if token is not None else None,
        scope=_parse_scope(_first(payload, ("scope",))),
        is_online=bool(_first(payload, ONLINE_FIELDS) or False),
    )


class SessionStorage:
    """Store, load and delete shop sessions through ``TenantRepository``."""

    def __init__(self, repository: TenantRepository):
        self.repository = repository

    async def store_session(self, session: Any) -> OperationResult:
        """
        Upsert the tenant for the session's shop with its access token.

        A session without an access token is rejected so an existing token
        is never overwritten with nothing.
        """
        try:
            shop_session = normalize_session(session)
            if not shop_session.access_token:
                raise MalformedSessionError("Session has no access token", {"shop": shop_session.shop})

            await self.repository.upsert_tenant(
                shop_session.shop,
                shop_session.access_token,
                scope=",".join(shop_session.scope) if shop_session.scope else None,
            )
        except ShopSyncError as e:
            logger.error(f"Failed to store session: {e}")
            return OperationResult.failure(e)

        logger.info(f"Stored session for {shop_session.shop} (token {mask_token(shop_session.access_token)})")
        return OperationResult.ok()

    async def load_session(self, domain: str) -> Optional[ShopSession]:
        """
        Return the offline session for ``domain``.

        None when the tenant is unknown, uninstalled or has no token, or
        when the lookup fails.
        """
        shop = normalize_shop_domain(domain)
        if shop is None:
            logger.warning(f"load_session called with invalid domain {domain!r}")
            return None

        try:
            tenant = await self.repository.find_by_domain(shop)
        except ShopSyncError as e:
            logger.error(f"Failed to load session for {shop}: {e}")
            return None

        if tenant is None or not tenant.is_installed:
            return None

        return ShopSession(
            shop=tenant.domain,
            access_token=tenant.access_token,
            scope=_parse_scope(tenant.scope),
        )

    async def delete_session(self, domain: str) -> OperationResult:
        """Mark the tenant for ``domain`` uninstalled. Unknown domains succeed."""
        shop = normalize_shop_domain(domain)
        if shop is None:
            error = MalformedSessionError("Invalid shop domain", {"value": str(domain)[:100]})
            logger.warning(f"delete_session: {error}")
            return OperationResult.failure(error)

        try:
            updated = await self.repository.mark_uninstalled(shop)
        except ShopSyncError as e:
            logger.error(f"Failed to delete session for {shop}: {e}")
            return OperationResult.failure(e)

        return OperationResult.ok(None if updated else "unknown tenant")
