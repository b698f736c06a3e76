from __future__ import annotations

import enum
from typing import Dict, List


class RequisitionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: object) -> "RequisitionStatus | None":
        if isinstance(value, RequisitionStatus):
            return value
        normalized = str(value or "").strip().lower()
        for status in cls:
            if status.value == normalized:
                return status
        return None

    @property
    def is_terminal(self) -> bool:
        return self is not RequisitionStatus.PENDING


class PurchaseOrderStatus(str, enum.Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    RECEIVED = "received"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: object) -> "PurchaseOrderStatus | None":
        if isinstance(value, PurchaseOrderStatus):
            return value
        normalized = str(value or "").strip().lower()
        for status in cls:
            if status.value == normalized:
                return status
        return None


class DecisionKind(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"
    CANCEL = "cancel"

    @classmethod
    def parse(cls, value: object) -> "DecisionKind | None":
        if isinstance(value, DecisionKind):
            return value
        normalized = str(value or "").strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        return None

    @property
    def target_status(self) -> RequisitionStatus:
        if self is DecisionKind.APPROVE:
            return RequisitionStatus.APPROVED
        if self is DecisionKind.REJECT:
            return RequisitionStatus.REJECTED
        if self is DecisionKind.CANCEL:
            return RequisitionStatus.CANCELLED
        raise ValueError(f"unhandled decision kind: {self!r}")

    @classmethod
    def for_target_status(cls, status: RequisitionStatus) -> "DecisionKind | None":
        for kind in cls:
            if kind.target_status is status:
                return kind
        return None


PURCHASE_ORDER_TRANSITIONS: Dict[PurchaseOrderStatus, frozenset] = {
    PurchaseOrderStatus.DRAFT: frozenset({PurchaseOrderStatus.ISSUED, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.ISSUED: frozenset({PurchaseOrderStatus.RECEIVED, PurchaseOrderStatus.CANCELLED}),
    PurchaseOrderStatus.RECEIVED: frozenset(),
    PurchaseOrderStatus.CANCELLED: frozenset(),
}


def purchase_order_transition_allowed(current: PurchaseOrderStatus, target: PurchaseOrderStatus) -> bool:
    return target in PURCHASE_ORDER_TRANSITIONS.get(current, frozenset())


FLOW_POLICY: Dict[str, Dict[str, Dict[str, object]]] = {
    "requisition": {
        "pending": {
            "allowed_actions": ["edit_items", "approve", "reject", "cancel", "download_pdf", "view_history"],
            "primary_action": "approve",
        },
        "approved": {
            "allowed_actions": ["view_order", "download_pdf", "view_history"],
            "primary_action": "view_order",
        },
        "rejected": {
            "allowed_actions": ["download_pdf", "view_history"],
            "primary_action": "view_history",
        },
        "cancelled": {
            "allowed_actions": ["view_history"],
            "primary_action": "view_history",
        },
    },
    "purchase_order": {
        "draft": {
            "allowed_actions": ["mark_issued", "cancel_order", "download_pdf", "view_history"],
            "primary_action": "mark_issued",
        },
        "issued": {
            "allowed_actions": ["mark_received", "cancel_order", "download_pdf", "view_history"],
            "primary_action": "mark_received",
        },
        "received": {
            "allowed_actions": ["download_pdf", "view_history"],
            "primary_action": "view_history",
        },
        "cancelled": {
            "allowed_actions": ["view_history"],
            "primary_action": "view_history",
        },
    },
}


def _fallback_policy() -> Dict[str, object]:
    return {"allowed_actions": [], "primary_action": None}


def _status_key(status: object) -> str:
    if isinstance(status, enum.Enum):
        return str(status.value)
    return str(status or "").strip().lower()


def status_policy(stage: str, status: object) -> Dict[str, object]:
    key = _status_key(status)
    if not key:
        return _fallback_policy()
    return FLOW_POLICY.get(stage, {}).get(key, _fallback_policy())


def allowed_actions(stage: str, status: object) -> List[str]:
    actions = status_policy(stage, status).get("allowed_actions") or []
    if not isinstance(actions, list):
        return []
    return [str(action) for action in actions]


def primary_action(stage: str, status: object) -> str | None:
    action = status_policy(stage, status).get("primary_action")
    if not action:
        return None
    return str(action)


def flow_meta(stage: str, status: object) -> Dict[str, object]:
    return {
        "stage": stage,
        "status": _status_key(status) or None,
        "allowed_actions": allowed_actions(stage, status),
        "primary_action": primary_action(stage, status),
    }
