"""
Manual sync trigger for the authenticated owner's tenant.

Runs across all installed tenants belong to the scheduler and the CLI.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from shopsync.api.dependencies import get_context, require_owner
from shopsync.bootstrap import AppContext
from shopsync.core.models import AuthContext
from shopsync.core.validator import normalize_shop_domain
from shopsync.utils.exceptions import AuthError, ForbiddenError, MalformedSessionError
from shopsync.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.api_route("/sync", methods=["GET", "POST"])
async def trigger_sync(
    shop: Optional[str] = Query(None, description="Shop domain; must be the caller's own tenant"),
    auth: AuthContext = Depends(require_owner),
    context: AppContext = Depends(get_context),
):
    """
    Run a sync of the caller's tenant now and return its report.

    Tenant failures are part of the report, not an error status.
    """
    tenant = await context.tenants.get_by_id(auth.tenant_id)
    if tenant is None:
        raise AuthError("Token tenant no longer exists")

    domain = tenant.domain
    if shop:
        requested = normalize_shop_domain(shop)
        if requested is None:
            raise MalformedSessionError("Invalid shop parameter", {"shop": shop})
        if requested != domain:
            raise ForbiddenError("Cannot sync another tenant", {"shop": requested})

    logger.info(f"Manual sync requested by owner {auth.owner_id} for {domain}")
    report = await context.orchestrator.run_sync(domain)

    if report.success:
        message = f"Synced {report.processed} tenant(s)"
    else:
        message = f"Synced {report.processed} tenant(s), {len(report.failed)} failed"

    return {
        "success": report.success,
        "message": message,
        "processed": report.processed,
        "counts": report.counts,
        "failed": [failure.to_dict() for failure in report.failed],
    }
