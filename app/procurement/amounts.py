"""Line and aggregate money figures for requisitions and purchase orders.

Every place that shows or stores a total (requisition creation, requisition
preview, purchase-order preview and the PDF renderer) goes through
``compute_totals`` so the figures cannot drift between contexts.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Tuple


logger = logging.getLogger("app.procurement.amounts")

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
VAT_RATE = Decimal("0.20")


class VatType(str, enum.Enum):
    STANDARD = "VAT 20%"
    ZERO_RATED = "VAT 0%"
    REVERSE_CHARGE_CIS = "20% RC CIS (0%)"

    @classmethod
    def parse(cls, value: Any) -> "VatType | None":
        if isinstance(value, VatType):
            return value
        normalized = str(value or "").strip().lower()
        if not normalized:
            return None
        return _VAT_ALIASES.get(normalized)


_VAT_ALIASES: Dict[str, VatType] = {
    "vat 20%": VatType.STANDARD,
    "standard": VatType.STANDARD,
    "vat 0%": VatType.ZERO_RATED,
    "zero-rated": VatType.ZERO_RATED,
    "zero_rated": VatType.ZERO_RATED,
    "zero": VatType.ZERO_RATED,
    "20% rc cis (0%)": VatType.REVERSE_CHARGE_CIS,
    "reverse-charge-cis": VatType.REVERSE_CHARGE_CIS,
    "reverse_charge_cis": VatType.REVERSE_CHARGE_CIS,
    "rc cis": VatType.REVERSE_CHARGE_CIS,
}


def quantize(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def money(value: Any) -> str:
    """Two-decimal string for storage and JSON payloads."""
    return str(quantize(to_decimal(value)))


def to_decimal(value: Any, *, field: str = "amount") -> Decimal:
    if isinstance(value, Decimal):
        parsed = value
    elif value is None or (isinstance(value, str) and not value.strip()):
        _log_coercion(field, value)
        return ZERO
    elif isinstance(value, bool):
        _log_coercion(field, value)
        return ZERO
    else:
        try:
            parsed = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            _log_coercion(field, value)
            return ZERO
    if not parsed.is_finite():
        _log_coercion(field, value)
        return ZERO
    return parsed


def _log_coercion(field: str, value: Any) -> None:
    logger.warning("amount_field_coerced", extra={"field": field, "raw_value": repr(value)})


def _item_field(item: Any, *names: str) -> Any:
    for name in names:
        if isinstance(item, Mapping):
            if name in item:
                return item[name]
        elif hasattr(item, name):
            return getattr(item, name)
    return None


@dataclass(frozen=True)
class LineAmounts:
    net: Decimal
    vat_type: VatType
    vat_payable: Decimal
    reverse_charge: Decimal

    def to_payload(self) -> Dict[str, str]:
        return {
            "net": str(self.net),
            "vat_type": self.vat_type.value,
            "vat_amount": str(self.vat_payable),
            "reverse_charge": str(self.reverse_charge),
        }


@dataclass(frozen=True)
class AmountSummary:
    subtotal: Decimal
    standard: Decimal
    reverse_charge_out: Decimal
    reverse_charge_in: Decimal
    zero: Decimal
    grand_total: Decimal
    lines: Tuple[LineAmounts, ...] = ()

    @property
    def vat_breakdown(self) -> Dict[str, Decimal]:
        return {
            "standard": self.standard,
            "reverse_charge_out": self.reverse_charge_out,
            "reverse_charge_in": self.reverse_charge_in,
            "zero": self.zero,
        }

    def to_payload(self, *, include_lines: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "subtotal": str(self.subtotal),
            "vat_breakdown": {key: str(value) for key, value in self.vat_breakdown.items()},
            "grand_total": str(self.grand_total),
        }
        if include_lines:
            payload["lines"] = [line.to_payload() for line in self.lines]
        return payload


def compute_line(item: Any) -> LineAmounts:
    quantity = to_decimal(_item_field(item, "quantity"), field="quantity")
    unit_price = to_decimal(_item_field(item, "unit_price", "unitPrice"), field="unit_price")
    raw_vat_type = _item_field(item, "vat_type", "vatType")
    vat_type = VatType.parse(raw_vat_type)
    if vat_type is None:
        if raw_vat_type not in (None, ""):
            logger.warning("vat_type_unknown", extra={"raw_value": repr(raw_vat_type)})
        vat_type = VatType.STANDARD

    net = quantize(quantity * unit_price)
    if vat_type is VatType.STANDARD:
        return LineAmounts(net=net, vat_type=vat_type, vat_payable=quantize(net * VAT_RATE), reverse_charge=ZERO)
    if vat_type is VatType.REVERSE_CHARGE_CIS:
        return LineAmounts(net=net, vat_type=vat_type, vat_payable=ZERO, reverse_charge=quantize(net * VAT_RATE))
    return LineAmounts(net=net, vat_type=vat_type, vat_payable=ZERO, reverse_charge=ZERO)


def compute_totals(items: Iterable[Any]) -> AmountSummary:
    lines: List[LineAmounts] = [compute_line(item) for item in (items or [])]

    subtotal = sum((line.net for line in lines), ZERO)
    standard = sum((line.vat_payable for line in lines), ZERO)
    reverse_charge = sum((line.reverse_charge for line in lines), ZERO)

    # Reverse charge is disclosed as two equal legs that cancel out.
    grand_total = subtotal + standard + reverse_charge - reverse_charge
    return AmountSummary(
        subtotal=quantize(subtotal),
        standard=quantize(standard),
        reverse_charge_out=quantize(reverse_charge),
        reverse_charge_in=quantize(reverse_charge),
        zero=ZERO,
        grand_total=quantize(grand_total),
        lines=tuple(lines),
    )
