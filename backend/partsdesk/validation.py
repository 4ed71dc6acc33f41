from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from partsdesk.errors import ValidationError
from partsdesk.time_utils import normalize_timestamp


# Maximum price: 9,999,999,999.99 fits Numeric(12, 2)
MAX_PRICE = Decimal("9999999999.99")
MIN_TEXT_LENGTH = 2
MAX_TEXT_LENGTH = 255
CENT = Decimal("0.01")
# Integer columns (stock, quantity) are 32-bit signed
MAX_INT = 2_147_483_647


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for create
    """
    writable_fields: frozenset
    required_on_create: frozenset = frozenset()


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "name", "stock", "purchase_price", "selling_price", "compatibility", "last_purchase_date",
    }),
    required_on_create=frozenset({
        "name", "stock", "purchase_price", "selling_price", "compatibility", "last_purchase_date",
    }),
)


def _bounded_int(key: str, value: int) -> int:
    if abs(value) > MAX_INT:
        raise ValidationError(f"{key} cannot exceed {MAX_INT}")
    return value


def coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return _bounded_int(key, value)
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            value = int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
        return _bounded_int(key, value)
    # Integral floats come from JSON clients that send 3.0
    if isinstance(value, float) and value.is_integer():
        return _bounded_int(key, int(value))
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_money(key: str, value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        raise ValidationError(f"{key} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    if abs(amount) > MAX_PRICE:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE}")
    return amount.quantize(CENT)


def coerce_text(key: str, value: Any) -> str:
    if value is None:
        raise ValidationError(f"{key} cannot be null")
    text = str(value).strip()
    if len(text) < MIN_TEXT_LENGTH:
        raise ValidationError(f"{key} must be at least {MIN_TEXT_LENGTH} characters")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(f"{key} exceeds max length {MAX_TEXT_LENGTH}")
    return text


def coerce_timestamp(key: str, value: Any):
    if value is None or value == "":
        raise ValidationError(f"{key} is required")
    try:
        return normalize_timestamp(value)
    except (ValueError, TypeError, OverflowError):
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


_COERCERS = {
    "name": coerce_text,
    "compatibility": coerce_text,
    "stock": coerce_int,
    "purchase_price": coerce_money,
    "selling_price": coerce_money,
    "last_purchase_date": coerce_timestamp,
}


def validate_product_payload(payload: Any, *, partial: bool, policy: ModelValidationPolicy = PRODUCT_POLICY) -> dict:
    """
    Validates + normalizes product input against the policy allowlist and
    the Product invariants. Returns a cleaned patch dict.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")

    patch = {k: _COERCERS[k](k, raw) for k, raw in payload.items()}
    enforce_rules_product(patch)
    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by types alone.
    Keep these small and centralized.
    """
    if "stock" in patch and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")

    for key in ("purchase_price", "selling_price"):
        if key in patch:
            price = patch[key]
            if price < 0:
                raise ValidationError(f"{key} must be >= 0")
            if price > MAX_PRICE:
                raise ValidationError(f"{key} cannot exceed {MAX_PRICE}")
