"""
Analytics endpoints for the authenticated owner's tenant.
"""

from fastapi import APIRouter, Depends, Query

from shopsync.api.dependencies import get_context, require_owner
from shopsync.bootstrap import AppContext
from shopsync.core.models import AuthContext

router = APIRouter()


@router.get("/summary")
async def summary(auth: AuthContext = Depends(require_owner),
                  context: AppContext = Depends(get_context)):
    return await context.analytics.summary(auth.tenant_id)


@router.get("/orders-by-date")
async def orders_by_date(auth: AuthContext = Depends(require_owner),
                         context: AppContext = Depends(get_context)):
    """Order count and revenue per day."""
    return await context.analytics.orders_by_date(auth.tenant_id)


@router.get("/top-customers")
async def top_customers(limit: int = Query(5, ge=1, le=100),
                        auth: AuthContext = Depends(require_owner),
                        context: AppContext = Depends(get_context)):
    return await context.analytics.top_customers(auth.tenant_id, limit)
