from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union


@dataclass(frozen=True)
class ServiceOutput:
    payload: Dict[str, Any]
    status_code: int = 200


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: str
    email: str | None = None
    display_name: str | None = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "role": self.role,
            "email": self.email,
            "display_name": self.display_name,
        }


@dataclass(frozen=True)
class RequisitionItemInput:
    description: str
    quantity: int
    unit: str
    unit_price: str
    vat_type: str


@dataclass(frozen=True)
class RequisitionCreateInput:
    project_id: int
    supplier_id: int
    request_date: str
    delivery_date: str
    delivery_address: str
    delivery_instructions: str | None
    items: List[RequisitionItemInput]


@dataclass(frozen=True)
class Approve:
    po_number: str | None = None


@dataclass(frozen=True)
class Reject:
    reason: str | None = None


@dataclass(frozen=True)
class Cancel:
    reason: str | None = None


Decision = Union[Approve, Reject, Cancel]


@dataclass(frozen=True)
class DeliveryAttempt:
    channel: str
    recipient: str | None
    success: bool
    error: str | None = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "recipient": self.recipient,
            "success": self.success,
            "error": self.error,
        }


@dataclass(frozen=True)
class DeliveryReport:
    attempts: Tuple[DeliveryAttempt, ...] = ()

    @property
    def failures(self) -> Tuple[DeliveryAttempt, ...]:
        return tuple(attempt for attempt in self.attempts if not attempt.success)

    @property
    def delivered(self) -> bool:
        return not self.failures

    def to_payload(self) -> Dict[str, Any]:
        return {
            "attempted": len(self.attempts),
            "delivered": self.delivered,
            "failures": [failure.to_payload() for failure in self.failures],
        }


@dataclass(frozen=True)
class DecisionResult:
    requisition: Dict[str, Any]
    purchase_order: Dict[str, Any] | None = None
    delivery: DeliveryReport = field(default_factory=DeliveryReport)

    @property
    def degraded(self) -> bool:
        return not self.delivery.delivered
