# Overview: Structural parsing of order-creation payloads into typed cart lines.

"""
Cart Schema

WHY: Business rules (pricing, modifier groups, stock) should never see a
half-formed payload. The wire body is parsed here into frozen dataclasses;
anything structurally wrong is a ValidationError before a single catalog
row is read.

Wire shape (camelCase, as sent by the register UI):
    {
        "items": [{"itemType": "PRODUCT", "itemId": 1, "clientReference": "a1",
                   "quantity": 1, "notes": null,
                   "modifiers": [{"modifierId": 7, "quantity": 1}]}],
        "orderType": "COUNTER",
        "tableSessionId": null,
        "discountType": "FIXED", "discountValue": "5.00",
        "serviceFeeType": "PERCENT", "serviceFeeValue": "10",
        "orderNotes": null
    }

Adjustment values are decimal strings with at most two places: money for
FIXED, a percentage for PERCENT ("10" or "12.5"). Both are stored as integer
hundredths (cents or basis points).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..errors import ValidationError
from ..validation import parse_amount_cents, parse_positive_int


ITEM_PRODUCT = "PRODUCT"
ITEM_COMBO = "COMBO"
VALID_ITEM_TYPES = (ITEM_PRODUCT, ITEM_COMBO)

ORDER_COUNTER = "COUNTER"
ORDER_TABLE = "TABLE"
VALID_ORDER_TYPES = (ORDER_COUNTER, ORDER_TABLE)

ADJUST_NONE = "NONE"
ADJUST_PERCENT = "PERCENT"
ADJUST_FIXED = "FIXED"
VALID_ADJUSTMENT_TYPES = (ADJUST_NONE, ADJUST_PERCENT, ADJUST_FIXED)

MAX_PERCENT_BPS = 10_000
MAX_REFERENCE_LENGTH = 64
MAX_NOTES_LENGTH = 255


@dataclass(frozen=True)
class ModifierSelection:
    modifier_id: int
    quantity: int = 1


@dataclass(frozen=True)
class CartLine:
    item_type: str
    item_id: int
    client_reference: str
    quantity: int
    modifiers: tuple[ModifierSelection, ...] = ()
    notes: str | None = None

    @property
    def is_combo(self) -> bool:
        return self.item_type == ITEM_COMBO


@dataclass(frozen=True)
class Adjustment:
    """Discount or service fee as entered. value is cents (FIXED) or bps (PERCENT)."""
    type: str = ADJUST_NONE
    value: int = 0


@dataclass(frozen=True)
class CartRequest:
    items: tuple[CartLine, ...]
    order_type: str = ORDER_COUNTER
    table_session_id: int | None = None
    discount: Adjustment = Adjustment()
    service_fee: Adjustment = Adjustment()
    notes: str | None = None

    def product_ids(self) -> set[int]:
        return {line.item_id for line in self.items if line.item_type == ITEM_PRODUCT}

    def combo_ids(self) -> set[int]:
        return {line.item_id for line in self.items if line.item_type == ITEM_COMBO}

    def modifier_ids(self) -> set[int]:
        return {m.modifier_id for line in self.items for m in line.modifiers}


def _optional_text(value: Any, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if len(value) > MAX_NOTES_LENGTH:
        raise ValidationError(f"{field} must be at most {MAX_NOTES_LENGTH} characters")
    return value or None


def _parse_id(value: Any, field: str) -> int:
    return parse_positive_int(value, field)


def _parse_adjustment(type_value: Any, raw_value: Any, field: str, *, percent_cap: int | None = None) -> Adjustment:
    adj_type = (type_value or ADJUST_NONE)
    if not isinstance(adj_type, str) or adj_type.upper() not in VALID_ADJUSTMENT_TYPES:
        raise ValidationError(f"{field}Type must be one of {list(VALID_ADJUSTMENT_TYPES)}")
    adj_type = adj_type.upper()

    if adj_type == ADJUST_NONE:
        return Adjustment()

    value = parse_amount_cents(raw_value if raw_value is not None else "0", f"{field}Value")
    if adj_type == ADJUST_PERCENT and percent_cap is not None and value > percent_cap:
        raise ValidationError(f"{field}Value must be at most {percent_cap // 100} percent")
    return Adjustment(type=adj_type, value=value)


def _parse_modifiers(raw: Any, where: str) -> tuple[ModifierSelection, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValidationError(f"{where}.modifiers must be a list")

    selections = []
    seen: set[int] = set()
    for index, entry in enumerate(raw):
        path = f"{where}.modifiers[{index}]"
        if not isinstance(entry, dict):
            raise ValidationError(f"{path} must be an object")
        modifier_id = _parse_id(entry.get("modifierId"), f"{path}.modifierId")
        if modifier_id in seen:
            raise ValidationError(f"{path}: modifier {modifier_id} selected twice; use quantity instead")
        seen.add(modifier_id)
        quantity = parse_positive_int(entry.get("quantity", 1), f"{path}.quantity")
        selections.append(ModifierSelection(modifier_id=modifier_id, quantity=quantity))
    return tuple(selections)


def _parse_line(raw: Any, index: int, max_quantity: int) -> CartLine:
    where = f"items[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{where} must be an object")

    item_type = raw.get("itemType")
    if not isinstance(item_type, str) or item_type.upper() not in VALID_ITEM_TYPES:
        raise ValidationError(f"{where}.itemType must be one of {list(VALID_ITEM_TYPES)}")

    reference = raw.get("clientReference")
    if not isinstance(reference, str) or not reference.strip():
        raise ValidationError(f"{where}.clientReference is required")
    reference = reference.strip()
    if len(reference) > MAX_REFERENCE_LENGTH:
        raise ValidationError(f"{where}.clientReference must be at most {MAX_REFERENCE_LENGTH} characters")

    return CartLine(
        item_type=item_type.upper(),
        item_id=_parse_id(raw.get("itemId"), f"{where}.itemId"),
        client_reference=reference,
        quantity=parse_positive_int(raw.get("quantity"), f"{where}.quantity", maximum=max_quantity),
        modifiers=_parse_modifiers(raw.get("modifiers"), where),
        notes=_optional_text(raw.get("notes"), f"{where}.notes"),
    )


def parse_cart(payload: Any, *, max_quantity: int = 999) -> CartRequest:
    """
    Parse and structurally validate an order-creation payload.

    Raises:
        ValidationError: on any malformed field, empty cart, duplicate
            clientReference, or TABLE order without tableSessionId
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    lines = [_parse_line(raw, index, max_quantity) for index, raw in enumerate(raw_items)]

    references = [line.client_reference for line in lines]
    duplicates = sorted({ref for ref in references if references.count(ref) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate clientReference: {', '.join(duplicates)}")

    order_type = payload.get("orderType") or ORDER_COUNTER
    if not isinstance(order_type, str) or order_type.upper() not in VALID_ORDER_TYPES:
        raise ValidationError(f"orderType must be one of {list(VALID_ORDER_TYPES)}")
    order_type = order_type.upper()

    table_session_id = None
    if order_type == ORDER_TABLE:
        if payload.get("tableSessionId") is None:
            raise ValidationError("tableSessionId is required for TABLE orders")
        table_session_id = _parse_id(payload.get("tableSessionId"), "tableSessionId")

    return CartRequest(
        items=tuple(lines),
        order_type=order_type,
        table_session_id=table_session_id,
        discount=_parse_adjustment(payload.get("discountType"), payload.get("discountValue"), "discount",
                                   percent_cap=MAX_PERCENT_BPS),
        service_fee=_parse_adjustment(payload.get("serviceFeeType"), payload.get("serviceFeeValue"), "serviceFee"),
        notes=_optional_text(payload.get("orderNotes"), "orderNotes"),
    )
