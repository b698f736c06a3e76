from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping

from app.domain.contracts import (
    Approve,
    Cancel,
    Decision,
    Reject,
    RequisitionCreateInput,
    RequisitionItemInput,
)
from app.errors import ValidationError
from app.policies import VALID_ROLES
from app.procurement.amounts import VatType, money
from app.procurement.flow_policy import DecisionKind, PurchaseOrderStatus, RequisitionStatus


MAX_ITEMS = 200
MAX_TEXT = 500
MAX_REASON = 1000
DEFAULT_UNIT = "each"


def _field(payload: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in payload:
            return payload[name]
    return None


def _text(value: Any, limit: int = MAX_TEXT) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text[:limit] if text else None


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or value in (None, ""):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite() or parsed != parsed.to_integral_value() or parsed <= 0:
        return None
    return int(parsed)


def _iso_date(value: Any) -> str | None:
    text = _text(value, limit=32)
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return None


def parse_item(raw_item: Any, errors: Dict[str, str], prefix: str) -> RequisitionItemInput | None:
    if not isinstance(raw_item, Mapping):
        errors[prefix] = "item must be an object"
        return None

    description = _text(_field(raw_item, "description"))
    if not description:
        errors[f"{prefix}.description"] = "required"

    quantity = _positive_int(_field(raw_item, "quantity"))
    if quantity is None:
        errors[f"{prefix}.quantity"] = "must be a positive integer"

    raw_price = _field(raw_item, "unit_price", "unitPrice")
    unit_price: Decimal | None = None
    if raw_price in (None, "") or isinstance(raw_price, bool):
        errors[f"{prefix}.unit_price"] = "required"
    else:
        try:
            unit_price = Decimal(str(raw_price).strip())
        except (InvalidOperation, ValueError):
            unit_price = None
        if unit_price is None or not unit_price.is_finite() or unit_price < 0:
            errors[f"{prefix}.unit_price"] = "must be a non-negative amount"
            unit_price = None

    raw_vat = _field(raw_item, "vat_type", "vatType")
    vat_type = VatType.parse(raw_vat)
    if vat_type is None:
        if raw_vat not in (None, ""):
            errors[f"{prefix}.vat_type"] = "unknown VAT type"
        vat_type = VatType.STANDARD

    if not description or quantity is None or unit_price is None:
        return None
    return RequisitionItemInput(
        description=description,
        quantity=quantity,
        unit=_text(_field(raw_item, "unit"), limit=32) or DEFAULT_UNIT,
        unit_price=money(unit_price),
        vat_type=vat_type.value,
    )


def parse_items(raw_items: Any, errors: Dict[str, str] | None = None) -> List[RequisitionItemInput]:
    collected = errors if errors is not None else {}
    if not isinstance(raw_items, list) or not raw_items:
        collected["items"] = "at least one item is required"
        if errors is None:
            raise ValidationError.for_fields(collected, code="items_required")
        return []
    if len(raw_items) > MAX_ITEMS:
        collected["items"] = f"at most {MAX_ITEMS} items"

    items: List[RequisitionItemInput] = []
    for index, raw_item in enumerate(raw_items[:MAX_ITEMS]):
        item = parse_item(raw_item, collected, f"items[{index}]")
        if item is not None:
            items.append(item)

    if errors is None and collected:
        raise ValidationError.for_fields(collected)
    return items


def parse_requisition_input(payload: Any, *, today: date | None = None) -> RequisitionCreateInput:
    if not isinstance(payload, Mapping):
        raise ValidationError.for_fields({"body": "expected a JSON object"})

    errors: Dict[str, str] = {}

    project_id = _positive_int(_field(payload, "project_id", "projectId"))
    if project_id is None:
        errors["project_id"] = "required"
    supplier_id = _positive_int(_field(payload, "supplier_id", "supplierId"))
    if supplier_id is None:
        errors["supplier_id"] = "required"

    raw_request_date = _field(payload, "request_date", "requestDate")
    request_date = _iso_date(raw_request_date)
    if request_date is None:
        if raw_request_date not in (None, ""):
            errors["request_date"] = "expected YYYY-MM-DD"
        request_date = (today or date.today()).isoformat()

    raw_delivery_date = _field(payload, "delivery_date", "deliveryDate")
    delivery_date = _iso_date(raw_delivery_date)
    if delivery_date is None:
        errors["delivery_date"] = "expected YYYY-MM-DD" if raw_delivery_date not in (None, "") else "required"
    elif delivery_date < request_date:
        errors["delivery_date"] = "must not be before the request date"

    delivery_address = _text(_field(payload, "delivery_address", "deliveryAddress"))
    if not delivery_address:
        errors["delivery_address"] = "required"

    items = parse_items(_field(payload, "items"), errors)

    if errors:
        code = "items_required" if set(errors) == {"items"} else None
        raise ValidationError.for_fields(errors, code=code)

    return RequisitionCreateInput(
        project_id=int(project_id),
        supplier_id=int(supplier_id),
        request_date=request_date,
        delivery_date=str(delivery_date),
        delivery_address=str(delivery_address),
        delivery_instructions=_text(_field(payload, "delivery_instructions", "deliveryInstructions")),
        items=items,
    )


def _decision_from_kind(kind: DecisionKind, payload: Mapping[str, Any]) -> Decision:
    reason = _text(_field(payload, "reason", "rejection_reason", "rejectionReason"), limit=MAX_REASON)
    if kind is DecisionKind.APPROVE:
        return Approve(po_number=_text(_field(payload, "po_number", "poNumber"), limit=32))
    if kind is DecisionKind.REJECT:
        return Reject(reason=reason)
    if kind is DecisionKind.CANCEL:
        return Cancel(reason=reason)
    raise ValidationError.for_fields({"decision": "unknown decision"}, code="decision_invalid")


def parse_decision(payload: Any) -> Decision:
    if not isinstance(payload, Mapping):
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    kind = DecisionKind.parse(_field(payload, "decision", "action"))
    if kind is None:
        raise ValidationError.for_fields(
            {"decision": "expected one of approve, reject, cancel"},
            code="decision_invalid",
        )
    return _decision_from_kind(kind, payload)


def parse_status_change(payload: Any) -> Decision:
    """Map the legacy ``{"status": "approved"}`` body onto a decision."""
    if not isinstance(payload, Mapping):
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    status = RequisitionStatus.parse(_field(payload, "status"))
    kind = DecisionKind.for_target_status(status) if status is not None else None
    if kind is None:
        raise ValidationError.for_fields(
            {"status": "expected one of approved, rejected, cancelled"},
            code="status_invalid",
        )
    return _decision_from_kind(kind, payload)


def parse_purchase_order_status(payload: Any) -> PurchaseOrderStatus:
    if not isinstance(payload, Mapping):
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    status = PurchaseOrderStatus.parse(_field(payload, "status"))
    if status is None:
        raise ValidationError.for_fields(
            {"status": "expected one of " + ", ".join(item.value for item in PurchaseOrderStatus)},
            code="status_invalid",
        )
    return status


def parse_requisition_status_filter(value: str | None) -> List[str]:
    statuses: List[str] = []
    for part in str(value or "").split(","):
        status = RequisitionStatus.parse(part)
        if status is not None and status.value not in statuses:
            statuses.append(status.value)
    return statuses


def _required_text(payload: Mapping[str, Any], errors: Dict[str, str], name: str, *aliases: str) -> str | None:
    value = _text(_field(payload, name, *aliases))
    if not value:
        errors[name] = "required"
    return value


def _email(payload: Mapping[str, Any], errors: Dict[str, str], name: str = "email") -> str | None:
    value = _required_text(payload, errors, name)
    if value and ("@" not in value or value.startswith("@") or value.endswith("@")):
        errors[name] = "invalid email address"
        return None
    return value.lower() if value else None


def parse_project_input(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    errors: Dict[str, str] = {}
    name = _required_text(payload, errors, "name")
    contract_number = _required_text(payload, errors, "contract_number", "contractNumber")
    start_date = _iso_date(_field(payload, "start_date", "startDate"))
    if start_date is None:
        errors["start_date"] = "expected YYYY-MM-DD"
    raw_end = _field(payload, "end_date", "endDate")
    end_date = _iso_date(raw_end)
    if raw_end not in (None, "") and end_date is None:
        errors["end_date"] = "expected YYYY-MM-DD"
    elif end_date and start_date and end_date < start_date:
        errors["end_date"] = "must not be before the start date"
    if errors:
        raise ValidationError.for_fields(errors)
    return {
        "name": name,
        "contract_number": contract_number,
        "start_date": start_date,
        "end_date": end_date,
        "status": (_text(_field(payload, "status"), limit=32) or "active").lower(),
    }


def parse_supplier_input(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    errors: Dict[str, str] = {}
    name = _required_text(payload, errors, "name")
    address = _required_text(payload, errors, "address")
    email = _email(payload, errors)
    if errors:
        raise ValidationError.for_fields(errors)
    return {
        "name": name,
        "address": address,
        "email": email,
        "phone": _text(_field(payload, "phone"), limit=64),
        "contact_person": _text(_field(payload, "contact_person", "contactPerson")),
    }


def parse_supplier_item_input(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    errors: Dict[str, str] = {}
    # Catalog entries carry no quantity; reuse the line rules with a quantity of one.
    item = parse_item({**payload, "quantity": 1}, errors, "item")
    if errors or item is None:
        raise ValidationError.for_fields({key.replace("item.", ""): value for key, value in errors.items()})
    return {
        "description": item.description,
        "unit": item.unit,
        "unit_price": item.unit_price,
        "vat_type": item.vat_type,
    }


def parse_user_input(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    errors: Dict[str, str] = {}
    email = _email(payload, errors)
    role = str(_field(payload, "role") or "requester").strip().lower()
    if role not in VALID_ROLES:
        errors["role"] = "expected one of " + ", ".join(sorted(VALID_ROLES))
    if errors:
        raise ValidationError.for_fields(errors)
    return {
        "id": _text(_field(payload, "id"), limit=64),
        "email": email,
        "first_name": _text(_field(payload, "first_name", "firstName"), limit=100),
        "last_name": _text(_field(payload, "last_name", "lastName"), limit=100),
        "role": role,
    }
