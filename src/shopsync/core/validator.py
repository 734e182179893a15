"""
Data validation utilities for shopsync.

Inbound Shopify data (webhook bodies, Admin API pages, OAuth query strings)
is coerced here before it reaches the database. Line items are the one
field that never fails loudly: a payload that cannot be validated is stored
as an empty list.
"""

import json
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, List, Optional, Union

from shopsync.core.models import LineItem
from shopsync.utils.exceptions import ValidationError
from shopsync.utils.logger import get_logger


logger = get_logger(__name__)

# Hostname made of dot separated labels, e.g. "example.myshopify.com"
DOMAIN_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9\-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9\-]*[a-z0-9])?)+$")


def normalize_shop_domain(value: Any) -> Optional[str]:
    """
    Normalize a shop domain to a bare lowercase hostname.

    Accepts values like ``https://Example.myshopify.com/`` and returns
    ``example.myshopify.com``. Returns None when the value is not a hostname.
    """
    if not isinstance(value, str):
        return None

    domain = value.strip().lower()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix):]
    domain = domain.split("/", 1)[0]

    if not domain or not DOMAIN_PATTERN.match(domain):
        return None
    return domain


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    """
    Convert a Shopify money value (string or number) to Decimal.

    Raises:
        ValidationError: If the value is not numeric
    """
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be numeric", field=field_name, value=value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"{field_name} must be numeric", field=field_name, value=value)

    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite", field=field_name, value=value)
    return result


CENTS = Decimal("0.01")


def to_money(value: Any, field_name: str = "amount") -> Decimal:
    """``to_decimal`` rounded to whole cents."""
    return to_decimal(value, field_name).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_timestamp(value: Any, field_name: str = "created_at") -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp as sent by Shopify.

    Naive values are taken as UTC. None stays None.

    Raises:
        ValidationError: If the value is not a valid timestamp
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"{field_name} is not an ISO 8601 timestamp",
                                  field=field_name, value=value)
    else:
        raise ValidationError(f"{field_name} must be a string or datetime",
                              field=field_name, value=value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class LineItemValidator:
    """
    Validator for order line items.

    Accepts the stored shape ``{"product": ..., "quantity": ...}`` and the
    Shopify shape ``{"product_id": ..., "title": ..., "quantity": ...}``.
    """

    @staticmethod
    def validate_item(entry: Any) -> LineItem:
        """
        Validate one line item.

        Raises:
            ValidationError: If product or quantity is missing or invalid
        """
        if not isinstance(entry, dict):
            raise ValidationError("Line item must be an object", field="line_items", value=entry)

        product = entry.get("product")
        if product is None:
            product = entry.get("product_id") or entry.get("variant_id") or entry.get("title")
        if product is None or isinstance(product, (bool, dict, list)):
            raise ValidationError("Line item has no product reference", field="product", value=entry)
        product = str(product).strip()
        if not product:
            raise ValidationError("Line item product is empty", field="product", value=entry)

        quantity = entry.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, (int, str)):
            raise ValidationError("Line item quantity must be an integer", field="quantity", value=quantity)
        try:
            quantity = int(quantity)
        except ValueError:
            raise ValidationError("Line item quantity must be an integer", field="quantity", value=quantity)
        if quantity < 0:
            raise ValidationError("Line item quantity cannot be negative", field="quantity", value=quantity)

        return LineItem(product=product, quantity=quantity)

    @classmethod
    def parse(cls, raw: Union[str, bytes, list, None]) -> List[dict]:
        """
        Parse and validate a line item payload.

        Args:
            raw: JSON text, JSON bytes or an already decoded list

        Returns:
            List of ``{"product", "quantity"}`` dicts. Empty when the payload
            is missing or any part of it fails validation.
        """
        if raw is None or raw == "" or raw == b"":
            return []

        if isinstance(raw, (bytes, bytearray)):
            try:
                raw = bytes(raw).decode("utf-8")
            except UnicodeDecodeError as e:
                logger.warning(f"Line items are not valid UTF-8, storing empty list: {e}")
                return []

        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as e:
                logger.warning(f"Line items are not valid JSON, storing empty list: {e}")
                return []

        if not isinstance(raw, list):
            logger.warning(f"Line items must be a list, got {type(raw).__name__}; storing empty list")
            return []

        try:
            return [cls.validate_item(entry).to_dict() for entry in raw]
        except ValidationError as e:
            logger.warning(f"Invalid line items, storing empty list: {e}")
            return []


def parse_line_items(raw: Union[str, bytes, list, None]) -> List[dict]:
    """Shorthand for ``LineItemValidator.parse``."""
    return LineItemValidator.parse(raw)
