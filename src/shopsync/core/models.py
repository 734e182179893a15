"""
Data models for shopsync.

Plain dataclasses passed between the repository, the Shopify client and
the services. None of these are persisted directly.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


ENTITY_TYPES = ("products", "customers", "orders")


class SyncState(Enum):
    """Orchestrator run state."""
    IDLE = "idle"
    FETCHING_TENANTS = "fetching_tenants"
    PER_TENANT_LOOP = "per_tenant_loop"


class SyncTrigger(Enum):
    """Source of sync trigger."""
    MANUAL = "manual"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class ShopSession:
    """
    Offline session issued by Shopify for one shop.

    It only lives long enough to be folded into the tenant row.
    """

    shop: str
    access_token: Optional[str]
    scope: List[str] = field(default_factory=list)
    is_online: bool = False

    @property
    def id(self) -> str:
        """Offline session id as Shopify libraries build it."""
        return f"offline_{self.shop}"

    def __repr__(self) -> str:
        token = f"{self.access_token[:6]}..." if self.access_token else None
        return f"ShopSession(shop={self.shop!r}, access_token={token!r}, is_online={self.is_online})"


@dataclass
class LineItem:
    """One validated order line."""

    product: str
    quantity: int

    def to_dict(self) -> Dict[str, Any]:
        return {"product": self.product, "quantity": self.quantity}


@dataclass
class OperationResult:
    """Success/failure of an operation that must not raise to its caller."""

    success: bool
    error_kind: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, message: Optional[str] = None) -> "OperationResult":
        return cls(success=True, message=message)

    @classmethod
    def failure(cls, exc: Exception) -> "OperationResult":
        return cls(
            success=False,
            error_kind=getattr(exc, "error_kind", "internal"),
            message=getattr(exc, "message", None) or str(exc),
        )

    def __bool__(self) -> bool:
        return self.success


@dataclass
class AuthContext:
    """Claims extracted from a verified owner token."""

    tenant_id: str
    owner_id: str


@dataclass
class ProviderProduct:
    """Product as returned by the Shopify Admin API."""
    external_id: str
    title: Optional[str]
    price: Decimal


@dataclass
class ProviderCustomer:
    """Customer as returned by the Shopify Admin API."""
    external_id: str
    email: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    total_spent: Decimal = Decimal("0")


@dataclass
class ProviderOrder:
    """Order as returned by the Shopify Admin API. ``line_items`` is unvalidated."""
    external_id: str
    created_at: Optional[str]
    total_price: Decimal
    customer_external_id: Optional[str]
    line_items: Any = None


@dataclass
class TenantFailure:
    """One tenant that failed inside a sync run."""

    tenant_domain: str
    error: str
    error_kind: str = "internal"

    def to_dict(self) -> Dict[str, str]:
        return {
            "tenant_domain": self.tenant_domain,
            "error": self.error,
            "error_kind": self.error_kind,
        }


@dataclass
class SyncReport:
    """Outcome of one orchestrator run."""

    processed: int = 0
    failed: List[TenantFailure] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=lambda: {name: 0 for name in ENTITY_TYPES})
    trigger: SyncTrigger = SyncTrigger.MANUAL
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def duration_seconds(self) -> float:
        if not self.started_at or not self.completed_at:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def add_counts(self, counts: Dict[str, int]) -> None:
        for name, value in counts.items():
            self.counts[name] = self.counts.get(name, 0) + value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "failed": [f.to_dict() for f in self.failed],
            "counts": dict(self.counts),
            "trigger": self.trigger.value,
            "duration_seconds": round(self.duration_seconds, 3),
        }
