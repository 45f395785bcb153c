# Overview: Typed partial-update structs for PATCH/PUT payloads.

"""
Partial updates

WHY: A PATCH body may omit a field, set it to a value, or set it to null.
Those are three different intents. Each entity gets an explicit update
struct whose fields default to UNSET ("not provided"); None means an
explicit null and is only accepted for nullable fields.

DESIGN:
- FIELDS declares how each key is coerced (type, nullability, bounds)
- from_payload() rejects unknown keys and wrongly-typed values
- apply() copies only provided fields onto a model instance
- The same struct validates create payloads via `required=`
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Callable, Optional

from .models.auth import VALID_ROLES
from .models.cash import CASH_TYPES
from .validation import (
    ValidationError,
    coerce_bool,
    coerce_choice,
    coerce_datetime,
    coerce_int,
    coerce_str,
    require_object,
)


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class FieldSpec:
    coerce: Callable[[Any, str], Any]
    nullable: bool = False


def _text(max_length: Optional[int] = None, *, nullable: bool = False) -> FieldSpec:
    def _coerce(value, field):
        # Blank optional text is stored as null
        result = coerce_str(value, field, max_length=max_length, allow_blank=nullable)
        return result or None
    return FieldSpec(_coerce, nullable=nullable)


def _integer(minimum: Optional[int] = None, *, nullable: bool = False) -> FieldSpec:
    return FieldSpec(lambda value, field: coerce_int(value, field, minimum=minimum), nullable=nullable)


def _boolean() -> FieldSpec:
    return FieldSpec(coerce_bool)


def _choice(choices) -> FieldSpec:
    return FieldSpec(lambda value, field: coerce_choice(value, field, choices))


def _datetime() -> FieldSpec:
    return FieldSpec(coerce_datetime)


class _UpdateStruct:
    FIELDS: dict[str, FieldSpec] = {}

    @classmethod
    def from_payload(cls, payload: Any, *, required: tuple[str, ...] = ()):
        payload = require_object(payload)

        unknown = sorted(set(payload) - set(cls.FIELDS))
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")

        missing = [name for name in required if payload.get(name) is None]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        values = {}
        for name, raw in payload.items():
            spec = cls.FIELDS[name]
            if raw is None:
                if not spec.nullable:
                    raise ValidationError(f"{name} cannot be null")
                values[name] = None
            else:
                values[name] = spec.coerce(raw, name)
        return cls(**values)

    def provided(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not UNSET
        }

    def is_empty(self) -> bool:
        return not self.provided()

    def apply(self, obj) -> None:
        for name, value in self.provided().items():
            setattr(obj, name, value)


@dataclass(frozen=True)
class ProductUpdate(_UpdateStruct):
    category_id: Any = UNSET
    sku: Any = UNSET
    barcode: Any = UNSET
    name: Any = UNSET
    description: Any = UNSET
    unit: Any = UNSET
    price: Any = UNSET
    cost_price: Any = UNSET
    stock_quantity: Any = UNSET
    is_active: Any = UNSET
    is_online: Any = UNSET

    FIELDS = {
        "category_id": _integer(1, nullable=True),
        "sku": _text(64),
        "barcode": _text(64, nullable=True),
        "name": _text(255),
        "description": _text(nullable=True),
        "unit": _text(32, nullable=True),
        "price": _integer(0),
        "cost_price": _integer(0, nullable=True),
        "stock_quantity": _integer(0),
        "is_active": _boolean(),
        "is_online": _boolean(),
    }


@dataclass(frozen=True)
class CategoryUpdate(_UpdateStruct):
    name: Any = UNSET
    description: Any = UNSET

    FIELDS = {
        "name": _text(128),
        "description": _text(nullable=True),
    }


@dataclass(frozen=True)
class CustomerUpdate(_UpdateStruct):
    name: Any = UNSET
    phone: Any = UNSET
    email: Any = UNSET
    address: Any = UNSET
    notes: Any = UNSET
    credit_limit: Any = UNSET
    is_active: Any = UNSET

    FIELDS = {
        "name": _text(255),
        "phone": _text(32, nullable=True),
        "email": _text(255, nullable=True),
        "address": _text(255, nullable=True),
        "notes": _text(nullable=True),
        "credit_limit": _integer(0),
        "is_active": _boolean(),
    }


@dataclass(frozen=True)
class StoreUpdate(_UpdateStruct):
    name: Any = UNSET
    code: Any = UNSET
    slug: Any = UNSET
    address: Any = UNSET
    phone: Any = UNSET
    is_active: Any = UNSET
    online_enabled: Any = UNSET
    shipping_fee: Any = UNSET

    FIELDS = {
        "name": _text(120),
        "code": _text(32, nullable=True),
        "slug": _text(120),
        "address": _text(255, nullable=True),
        "phone": _text(32, nullable=True),
        "is_active": _boolean(),
        "online_enabled": _boolean(),
        "shipping_fee": _integer(0),
    }


@dataclass(frozen=True)
class UserUpdate(_UpdateStruct):
    email: Any = UNSET
    display_name: Any = UNSET
    role: Any = UNSET
    is_active: Any = UNSET

    FIELDS = {
        "email": _text(255),
        "display_name": _text(128, nullable=True),
        "role": _choice(VALID_ROLES),
        "is_active": _boolean(),
    }


@dataclass(frozen=True)
class CashTransactionUpdate(_UpdateStruct):
    transaction_type: Any = UNSET
    amount: Any = UNSET
    category: Any = UNSET
    reason: Any = UNSET
    related_invoice: Any = UNSET
    transaction_date: Any = UNSET
    customer_id: Any = UNSET

    FIELDS = {
        "transaction_type": _choice(CASH_TYPES),
        "amount": _integer(1),
        "category": _text(64, nullable=True),
        "reason": _text(255),
        "related_invoice": _text(64, nullable=True),
        "transaction_date": _datetime(),
        "customer_id": _integer(1, nullable=True),
    }


@dataclass(frozen=True)
class ShiftCashUpdate(_UpdateStruct):
    starting_cash: Any = UNSET
    notes: Any = UNSET

    FIELDS = {
        "starting_cash": _integer(0),
        "notes": _text(nullable=True),
    }
