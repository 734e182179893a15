"""
Owner registration and login.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field

from shopsync.api.dependencies import get_context
from shopsync.bootstrap import AppContext
from shopsync.core.validator import normalize_shop_domain
from shopsync.utils.exceptions import AuthError, ValidationError
from shopsync.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


class RegisterRequest(BaseModel):
    """Owner registration request."""
    email: EmailStr
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    store_name: str = Field(..., min_length=1, max_length=255, description="Shop domain")


class LoginRequest(BaseModel):
    """Owner login request."""
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    """Authentication token response."""
    token: str
    token_type: str = "bearer"
    expires_in: int


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, context: AppContext = Depends(get_context)):
    """
    Register an owner for a shop.

    The tenant row is created if the shop has not installed the app yet.
    """
    domain = normalize_shop_domain(data.store_name)
    if domain is None:
        raise ValidationError("store_name must be a shop domain", field="store_name", value=data.store_name)

    if await context.owners.find_by_email(data.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

    tenant = await context.tenants.register_tenant(domain)
    owner = await context.owners.create_owner(
        data.email,
        context.passwords.hash(data.password),
        tenant_id=tenant.id,
    )

    logger.info(f"Registered owner {owner.id} for {domain}")
    return {
        "id": str(owner.id),
        "email": owner.email,
        "tenant_id": str(tenant.id),
        "shop": tenant.domain,
    }


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, context: AppContext = Depends(get_context)):
    """Exchange email and password for an access token."""
    owner = await context.owners.find_by_email(data.email)
    if owner is None or not context.passwords.verify(data.password, owner.password_hash):
        raise AuthError("Invalid email or password")

    if owner.tenant_id is None:
        raise AuthError("Owner is not linked to a shop")

    token = context.jwt_manager.create_access_token(owner.tenant_id, owner.id)
    logger.info(f"Owner {owner.id} logged in")
    return TokenResponse(
        token=token,
        expires_in=context.settings.access_token_expire_minutes * 60,
    )
