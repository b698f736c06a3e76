"""Guards for requisition decisions.

``validate_decision`` runs before any write and either returns the decision
kind to apply or raises the matching ``AppError``. The orchestrator still
performs an optimistic ``status = 'pending'`` check when persisting, so a
concurrent decision that slips past these guards ends in the same conflict.
"""

from __future__ import annotations

from typing import Any, Mapping

from app.domain.contracts import Actor, Approve, Cancel, Decision, Reject
from app.errors import ConflictError, ValidationError
from app.policies import APPROVER_ROLES, require_roles
from app.procurement.flow_policy import DecisionKind, RequisitionStatus
from app.procurement.numbering import PURCHASE_ORDER_NUMBERS


def decision_kind(decision: Decision) -> DecisionKind:
    if isinstance(decision, Approve):
        return DecisionKind.APPROVE
    if isinstance(decision, Reject):
        return DecisionKind.REJECT
    if isinstance(decision, Cancel):
        return DecisionKind.CANCEL
    raise ValidationError.for_fields({"decision": "unknown decision"}, code="decision_invalid")


def current_status(requisition: Mapping[str, Any]) -> RequisitionStatus:
    status = RequisitionStatus.parse(requisition.get("status"))
    if status is None:
        # Unreadable status is treated as already decided; nothing may move it.
        raise ConflictError(
            code="requisition_already_decided",
            payload={"status": requisition.get("status")},
        )
    return status


def _is_requester(requisition: Mapping[str, Any], actor: Actor) -> bool:
    requested_by = str(requisition.get("requested_by_id") or "").strip()
    return bool(requested_by) and requested_by == str(actor.user_id or "").strip()


def validate_decision(
    requisition: Mapping[str, Any],
    decision: Decision,
    actor: Actor,
    existing_purchase_order: Mapping[str, Any] | None = None,
) -> DecisionKind:
    kind = decision_kind(decision)

    # Requesters may withdraw their own requisition; everything else is finance/admin.
    if not (kind is DecisionKind.CANCEL and _is_requester(requisition, actor)):
        require_roles(*APPROVER_ROLES, role=actor.role)

    status = current_status(requisition)
    if status.is_terminal:
        raise ConflictError(
            code="requisition_already_decided",
            payload={"status": status.value, "decision": kind.value},
        )

    if kind is DecisionKind.APPROVE:
        if existing_purchase_order is not None:
            raise ConflictError(
                code="purchase_order_exists",
                payload={"po_number": existing_purchase_order.get("po_number")},
            )
        supplied = decision.po_number
        if supplied is not None and not PURCHASE_ORDER_NUMBERS.is_valid(supplied):
            raise ValidationError.for_fields(
                {"po_number": "expected format PO-<year>-#####"},
            )
    return kind
