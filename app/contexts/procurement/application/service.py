from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping

from app.contexts.notifications.application.notifier import ProcurementNotifier
from app.contexts.notifications.domain.gateway import DocumentKind, DocumentRenderer
from app.contexts.procurement.infrastructure.repositories.delivery_log_repository import DeliveryLogRepository
from app.contexts.procurement.infrastructure.repositories.purchase_order_repository import PurchaseOrderRepository
from app.contexts.procurement.infrastructure.repositories.requisition_item_repository import RequisitionItemRepository
from app.contexts.procurement.infrastructure.repositories.requisition_repository import RequisitionRepository
from app.contexts.procurement.infrastructure.repositories.status_event_repository import StatusEventRepository
from app.domain.contracts import (
    Actor,
    Approve,
    Cancel,
    Decision,
    DecisionResult,
    DeliveryAttempt,
    DeliveryReport,
    Reject,
    RequisitionCreateInput,
    RequisitionItemInput,
    ServiceOutput,
)
from app.errors import AppError, ConflictError, NotFoundError, PermissionError, SystemError
from app.infrastructure.repositories.procurement import ReferenceRepository
from app.observability import observe_decision, observe_delivery_failed
from app.policies import APPROVER_ROLES, VALID_ROLES, has_any_role, require_roles
from app.procurement import reports
from app.procurement.amounts import compute_totals, money
from app.procurement.flow_policy import (
    DecisionKind,
    PurchaseOrderStatus,
    RequisitionStatus,
    flow_meta,
    purchase_order_transition_allowed,
)
from app.procurement.numbering import (
    DEFAULT_MAX_ATTEMPTS,
    PURCHASE_ORDER_NUMBERS,
    REQUISITION_NUMBERS,
    allocate_with_retry,
)
from app.procurement.transitions import validate_decision
from app.ui_strings import success_message


logger = logging.getLogger("app.procurement.service")


def _person(row: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
    first = str(row.get(f"{prefix}_first_name") or "").strip()
    last = str(row.get(f"{prefix}_last_name") or "").strip()
    email = row.get(f"{prefix}_email")
    name = " ".join(part for part in (first, last) if part) or email
    return {
        "id": row.get(f"{prefix}_id"),
        "name": name,
        "email": email,
        "role": row.get(f"{prefix}_role"),
    }


def _project(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("project_id"),
        "name": row.get("project_name"),
        "contract_number": row.get("project_contract_number"),
    }


def _supplier(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": row.get("supplier_id"),
        "name": row.get("supplier_name"),
        "address": row.get("supplier_address"),
        "email": row.get("supplier_email"),
        "phone": row.get("supplier_phone"),
        "contact_person": row.get("supplier_contact_person"),
    }


class ProcurementService:
    """Requisition submission, decisions and the purchase orders they produce.

    Decisions are applied in one database transaction (status change, audit
    event and, on approval, the purchase order). Notifications run after the
    commit and can only degrade the result, never undo it.
    """

    def __init__(
        self,
        *,
        notifier: ProcurementNotifier | None = None,
        renderer: DocumentRenderer | None = None,
        requisitions: RequisitionRepository | None = None,
        items: RequisitionItemRepository | None = None,
        purchase_orders: PurchaseOrderRepository | None = None,
        status_events: StatusEventRepository | None = None,
        delivery_log: DeliveryLogRepository | None = None,
        references: ReferenceRepository | None = None,
        numbering_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        today_fn: Callable[[], date] | None = None,
    ) -> None:
        self.notifier = notifier
        self.renderer = renderer or (notifier.renderer if notifier is not None else None)
        self.requisitions = requisitions or RequisitionRepository()
        self.items = items or RequisitionItemRepository()
        self.purchase_orders = purchase_orders or PurchaseOrderRepository()
        self.status_events = status_events or StatusEventRepository()
        self.delivery_log = delivery_log or DeliveryLogRepository()
        self.references = references or ReferenceRepository()
        self.numbering_max_attempts = max(1, int(numbering_max_attempts or DEFAULT_MAX_ATTEMPTS))
        self._today = today_fn or date.today

    # -- reads -------------------------------------------------------------

    def _load_requisition(self, db, requisition_id: int) -> dict:
        requisition = self.requisitions.get_by_id(db, requisition_id)
        if requisition is None:
            raise NotFoundError(code="requisition_not_found", payload={"requisition_id": requisition_id})
        return requisition

    def _load_purchase_order(self, db, purchase_order_id: int) -> dict:
        purchase_order = self.purchase_orders.get_by_id(db, purchase_order_id)
        if purchase_order is None:
            raise NotFoundError(code="purchase_order_not_found", payload={"purchase_order_id": purchase_order_id})
        return purchase_order

    @staticmethod
    def _requisition_summary(row: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "requisition_number": row["requisition_number"],
            "status": row["status"],
            "project": _project(row),
            "supplier": {"id": row.get("supplier_id"), "name": row.get("supplier_name")},
            "requested_by": _person(row, "requested_by"),
            "request_date": row.get("request_date"),
            "delivery_date": row.get("delivery_date"),
            "total_amount": money(row.get("total_amount")),
            "created_at": row.get("created_at"),
            "flow": flow_meta("requisition", row["status"]),
        }

    def _requisition_detail(self, db, row: Mapping[str, Any]) -> Dict[str, Any]:
        items = self.items.list_for_requisition(db, row["id"])
        summary = compute_totals(items)
        purchase_order = self.purchase_orders.get_by_requisition(db, row["id"])
        detail = self._requisition_summary(row)
        detail.update(
            {
                "supplier": _supplier(row),
                "delivery_address": row.get("delivery_address"),
                "delivery_instructions": row.get("delivery_instructions"),
                "rejection_reason": row.get("rejection_reason"),
                "decided_by_id": row.get("decided_by_id"),
                "decided_at": row.get("decided_at"),
                "items": items,
                "totals": summary.to_payload(),
                "purchase_order": self._purchase_order_summary(purchase_order) if purchase_order else None,
            }
        )
        return detail

    @staticmethod
    def _purchase_order_summary(row: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "po_number": row["po_number"],
            "requisition_id": row["requisition_id"],
            "requisition_number": row.get("requisition_number"),
            "status": row["status"],
            "issue_date": row.get("issue_date"),
            "total_amount": money(row.get("total_amount")),
            "project": _project(row),
            "supplier": {"id": row.get("supplier_id"), "name": row.get("supplier_name")},
            "approved_by": _person(row, "approved_by"),
            "flow": flow_meta("purchase_order", row["status"]),
        }

    def _purchase_order_detail(self, db, row: Mapping[str, Any]) -> Dict[str, Any]:
        items = self.items.list_for_requisition(db, row["requisition_id"])
        detail = self._purchase_order_summary(row)
        detail.update(
            {
                "supplier": _supplier(row),
                "requested_by": _person(row, "requested_by"),
                "delivery_address": row.get("delivery_address"),
                "delivery_date": row.get("delivery_date"),
                "delivery_instructions": row.get("delivery_instructions"),
                "items": items,
                "totals": compute_totals(items).to_payload(),
            }
        )
        return detail

    def get_requisition(self, db, requisition_id: int) -> Dict[str, Any]:
        return self._requisition_detail(db, self._load_requisition(db, requisition_id))

    def list_requisitions(
        self,
        db,
        *,
        statuses: Iterable[str] | None = None,
        requested_by_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        rows = self.requisitions.list_filtered(
            db,
            statuses=statuses,
            requested_by_id=requested_by_id,
            limit=limit,
            offset=offset,
        )
        return [self._requisition_summary(row) for row in rows]

    def get_purchase_order(self, db, purchase_order_id: int) -> Dict[str, Any]:
        return self._purchase_order_detail(db, self._load_purchase_order(db, purchase_order_id))

    def list_purchase_orders(
        self,
        db,
        *,
        statuses: Iterable[str] | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        rows = self.purchase_orders.list_filtered(db, statuses=statuses, limit=limit, offset=offset)
        return [self._purchase_order_summary(row) for row in rows]

    @staticmethod
    def preview_amounts(items: Iterable[Any]) -> Dict[str, Any]:
        return compute_totals(items).to_payload(include_lines=True)

    def requisition_history(self, db, requisition_id: int) -> Dict[str, Any]:
        requisition = self._load_requisition(db, requisition_id)
        events = self.status_events.list_for_entity(db, entity="requisition", entity_id=requisition["id"])
        deliveries = self.delivery_log.list_for_entity(db, entity="requisition", entity_id=requisition["id"])
        purchase_order = self.purchase_orders.get_by_requisition(db, requisition["id"])
        if purchase_order is not None:
            events.extend(
                self.status_events.list_for_entity(db, entity="purchase_order", entity_id=purchase_order["id"])
            )
            deliveries.extend(
                self.delivery_log.list_for_entity(db, entity="purchase_order", entity_id=purchase_order["id"])
            )
        events.sort(key=lambda event: (str(event.get("occurred_at") or ""), int(event.get("id") or 0)))
        return {
            "requisition_id": requisition["id"],
            "requisition_number": requisition["requisition_number"],
            "events": events,
            "deliveries": deliveries,
        }

    def build_report(self, db, name: str) -> Dict[str, Any]:
        return reports.build_report(db, name)

    # -- documents ---------------------------------------------------------

    def _requisition_document(self, db, row: Mapping[str, Any]) -> Dict[str, Any]:
        items = self.items.list_for_requisition(db, row["id"])
        return {
            "number": row.get("requisition_number"),
            "status": row.get("status"),
            "date": row.get("request_date"),
            "project": _project(row),
            "supplier": _supplier(row),
            "requested_by": _person(row, "requested_by"),
            "items": items,
            "totals": compute_totals(items).to_payload(),
            "delivery": {
                "address": row.get("delivery_address"),
                "date": row.get("delivery_date"),
                "instructions": row.get("delivery_instructions"),
            },
        }

    def _purchase_order_document(self, db, row: Mapping[str, Any]) -> Dict[str, Any]:
        items = self.items.list_for_requisition(db, row["requisition_id"])
        return {
            "number": row.get("po_number"),
            "status": row.get("status"),
            "date": row.get("issue_date"),
            "requisition_number": row.get("requisition_number"),
            "project": _project(row),
            "supplier": _supplier(row),
            "approved_by": _person(row, "approved_by"),
            "requested_by": _person(row, "requested_by"),
            "items": items,
            "totals": compute_totals(items).to_payload(),
            "delivery": {
                "address": row.get("delivery_address"),
                "date": row.get("delivery_date"),
                "instructions": row.get("delivery_instructions"),
            },
        }

    def purchase_order_preview(self, db, purchase_order_id: int) -> Dict[str, Any]:
        return self._purchase_order_document(db, self._load_purchase_order(db, purchase_order_id))

    def render_document(self, db, kind: DocumentKind, entity_id: int) -> tuple[str, bytes]:
        kind = DocumentKind(kind)
        if kind is DocumentKind.REQUISITION:
            document = self._requisition_document(db, self._load_requisition(db, entity_id))
        else:
            document = self._purchase_order_document(db, self._load_purchase_order(db, entity_id))
        if self.renderer is None:
            raise SystemError(code="document_renderer_unavailable")
        try:
            content = self.renderer.render(kind, document)
        except Exception as exc:
            logger.exception("document_render_failed", extra={"document_kind": kind.value, "entity_id": entity_id})
            raise SystemError(code="document_render_failed", details=str(exc)) from exc
        return f"{document['number']}.pdf", content

    # -- delivery ----------------------------------------------------------

    def _deliver(self, db, *, entity: str, entity_id: int, send_fn: Callable[[], DeliveryReport]) -> DeliveryReport:
        if self.notifier is None:
            return DeliveryReport()
        try:
            report = send_fn()
        except Exception as exc:
            # Documents are assembled from post-commit reads; a failure there only degrades delivery.
            logger.exception("notification_prepare_failed", extra={"entity": entity, "entity_id": entity_id})
            report = DeliveryReport(
                attempts=(
                    DeliveryAttempt(
                        channel="notification",
                        recipient=None,
                        success=False,
                        error=str(exc) or exc.__class__.__name__,
                    ),
                )
            )
        for attempt in report.attempts:
            if not attempt.success:
                logger.warning(
                    "delivery_failed",
                    extra={
                        "entity": entity,
                        "entity_id": entity_id,
                        "channel": attempt.channel,
                        "recipient": attempt.recipient,
                        "error": attempt.error,
                    },
                )
                observe_delivery_failed(attempt.channel)
            try:
                with db.transaction():
                    self.delivery_log.record(
                        db,
                        entity=entity,
                        entity_id=entity_id,
                        channel=attempt.channel,
                        recipient=attempt.recipient,
                        status="sent" if attempt.success else "failed",
                        error=attempt.error,
                    )
            except Exception:
                # The decision is already committed; a missing log row must not fail the request.
                logger.exception("delivery_log_write_failed", extra={"entity": entity, "entity_id": entity_id})
        return report

    # -- submission --------------------------------------------------------

    def create_requisition(self, db, *, create_input: RequisitionCreateInput, actor: Actor) -> ServiceOutput:
        require_roles(*VALID_ROLES, role=actor.role)
        if self.references.get_project(db, create_input.project_id) is None:
            raise NotFoundError(code="project_not_found", payload={"project_id": create_input.project_id})
        if self.references.get_supplier(db, create_input.supplier_id) is None:
            raise NotFoundError(code="supplier_not_found", payload={"supplier_id": create_input.supplier_id})

        summary = compute_totals(create_input.items)
        total_amount = str(summary.grand_total)
        year = self._today().year

        with db.transaction():
            allocation = allocate_with_retry(
                REQUISITION_NUMBERS,
                year,
                lookup_max_fn=lambda scheme, target_year: self.requisitions.max_sequence_for_prefix(
                    db, scheme, target_year
                ),
                insert_fn=lambda number: self.requisitions.try_insert(
                    db,
                    requisition_number=number,
                    project_id=create_input.project_id,
                    supplier_id=create_input.supplier_id,
                    requested_by_id=actor.user_id,
                    request_date=create_input.request_date,
                    delivery_date=create_input.delivery_date,
                    delivery_address=create_input.delivery_address,
                    delivery_instructions=create_input.delivery_instructions,
                    total_amount=total_amount,
                ),
                max_attempts=self.numbering_max_attempts,
            )
            requisition_id = int(allocation.value)
            self.items.create_many(db, requisition_id=requisition_id, items=create_input.items)
            self.status_events.add_event(
                db,
                entity="requisition",
                entity_id=requisition_id,
                from_status=None,
                to_status=RequisitionStatus.PENDING.value,
                reason="requisition_created",
                actor_id=actor.user_id,
            )

        logger.info(
            "requisition_created",
            extra={
                "requisition_id": requisition_id,
                "requisition_number": allocation.number,
                "total_amount": total_amount,
                "numbering_attempts": allocation.attempts,
                "actor_id": actor.user_id,
            },
        )

        row = self._load_requisition(db, requisition_id)
        delivery = self._deliver(
            db,
            entity="requisition",
            entity_id=requisition_id,
            send_fn=lambda: self.notifier.requisition_submitted(self._requisition_document(db, row)),
        )
        return ServiceOutput(
            payload={
                "requisition": self._requisition_detail(db, row),
                "delivery": delivery.to_payload(),
                "degraded": not delivery.delivered,
                "message": success_message("submission_degraded" if not delivery.delivered else "requisition_created"),
            },
            status_code=201,
        )

    def update_requisition_items(
        self,
        db,
        *,
        requisition_id: int,
        items: List[RequisitionItemInput],
        actor: Actor,
    ) -> Dict[str, Any]:
        requisition = self._load_requisition(db, requisition_id)
        is_owner = str(requisition.get("requested_by_id") or "") == str(actor.user_id)
        if not is_owner:
            require_roles(*APPROVER_ROLES, role=actor.role)
        if RequisitionStatus.parse(requisition.get("status")) is not RequisitionStatus.PENDING:
            raise ConflictError(code="requisition_not_editable", payload={"status": requisition.get("status")})

        summary = compute_totals(items)
        with db.transaction():
            if self.requisitions.touch_if_pending(db, requisition_id) == 0:
                raise ConflictError(code="requisition_not_editable")
            self.items.replace_all(db, requisition_id=requisition_id, items=items)
            self.requisitions.set_total_amount(db, requisition_id, str(summary.grand_total))
            self.status_events.add_event(
                db,
                entity="requisition",
                entity_id=requisition_id,
                from_status=RequisitionStatus.PENDING.value,
                to_status=RequisitionStatus.PENDING.value,
                reason="items_updated",
                actor_id=actor.user_id,
            )

        logger.info(
            "requisition_items_updated",
            extra={
                "requisition_id": requisition_id,
                "items": len(items),
                "total_amount": str(summary.grand_total),
                "actor_id": actor.user_id,
            },
        )
        return self.get_requisition(db, requisition_id)

    # -- decisions ---------------------------------------------------------

    def process_decision(self, db, *, requisition_id: int, decision: Decision, actor: Actor) -> DecisionResult:
        kind = None
        try:
            requisition = self._load_requisition(db, requisition_id)
            existing = self.purchase_orders.get_by_requisition(db, requisition_id)
            kind = validate_decision(requisition, decision, actor, existing)
            if isinstance(decision, Approve) and decision.po_number:
                if self.purchase_orders.get_by_number(db, decision.po_number) is not None:
                    raise ConflictError(
                        code="purchase_order_number_taken",
                        payload={"po_number": decision.po_number},
                    )

            with db.transaction():
                purchase_order_id = self._apply_decision(db, requisition, kind, decision, actor)
        except AppError as exc:
            observe_decision(kind.value if kind else "unknown", "conflict" if exc.http_status == 409 else "rejected")
            raise

        observe_decision(kind.value, "committed")
        logger.info(
            "requisition_decided",
            extra={
                "requisition_id": requisition_id,
                "requisition_number": requisition["requisition_number"],
                "decision": kind.value,
                "to_status": kind.target_status.value,
                "purchase_order_id": purchase_order_id,
                "actor_id": actor.user_id,
            },
        )

        row = self._load_requisition(db, requisition_id)
        po_row = self.purchase_orders.get_by_id(db, purchase_order_id) if purchase_order_id else None
        delivery = self._notify_decision(db, row, po_row, decision)
        return DecisionResult(
            requisition=self._requisition_detail(db, row),
            purchase_order=self._purchase_order_detail(db, po_row) if po_row else None,
            delivery=delivery,
        )

    def _apply_decision(
        self,
        db,
        requisition: Mapping[str, Any],
        kind: DecisionKind,
        decision: Decision,
        actor: Actor,
    ) -> int | None:
        requisition_id = int(requisition["id"])
        reason = decision.reason if isinstance(decision, (Reject, Cancel)) else None
        updated = self.requisitions.update_status_if_pending(
            db,
            requisition_id,
            status=kind.target_status.value,
            decided_by_id=actor.user_id,
            rejection_reason=reason,
        )
        if updated == 0:
            # Someone else decided between our read and this write.
            raise ConflictError(code="requisition_already_decided", payload={"decision": kind.value})
        self.status_events.add_event(
            db,
            entity="requisition",
            entity_id=requisition_id,
            from_status=RequisitionStatus.PENDING.value,
            to_status=kind.target_status.value,
            reason=reason or f"requisition_{kind.target_status.value}",
            actor_id=actor.user_id,
        )
        if kind is not DecisionKind.APPROVE:
            return None
        return self._create_purchase_order(db, requisition, decision, actor)

    def _create_purchase_order(
        self,
        db,
        requisition: Mapping[str, Any],
        decision: Approve,
        actor: Actor,
    ) -> int:
        requisition_id = int(requisition["id"])
        summary = compute_totals(self.items.list_for_requisition(db, requisition_id))
        total_amount = str(summary.grand_total)
        if money(requisition.get("total_amount")) != total_amount:
            logger.warning(
                "requisition_total_resynced",
                extra={
                    "requisition_id": requisition_id,
                    "stored_total": requisition.get("total_amount"),
                    "computed_total": total_amount,
                },
            )
            self.requisitions.set_total_amount(db, requisition_id, total_amount)

        today = self._today()
        fields = {
            "requisition_id": requisition_id,
            "approved_by_id": actor.user_id,
            "issue_date": today.isoformat(),
            "total_amount": total_amount,
            "status": PurchaseOrderStatus.ISSUED.value,
        }
        if decision.po_number:
            result = self.purchase_orders.try_create(db, po_number=decision.po_number, **fields)
            if not result.inserted:
                raise ConflictError(code="purchase_order_number_taken", payload={"po_number": decision.po_number})
            po_number, purchase_order_id = decision.po_number, int(result.value)
        else:
            allocation = allocate_with_retry(
                PURCHASE_ORDER_NUMBERS,
                today.year,
                lookup_max_fn=lambda scheme, year: self.purchase_orders.max_sequence_for_prefix(db, scheme, year),
                insert_fn=lambda number: self.purchase_orders.try_create(db, po_number=number, **fields),
                max_attempts=self.numbering_max_attempts,
            )
            po_number, purchase_order_id = allocation.number, int(allocation.value)

        self.status_events.add_event(
            db,
            entity="purchase_order",
            entity_id=purchase_order_id,
            from_status=None,
            to_status=PurchaseOrderStatus.ISSUED.value,
            reason="created_from_requisition",
            actor_id=actor.user_id,
        )
        logger.info(
            "purchase_order_created",
            extra={
                "purchase_order_id": purchase_order_id,
                "po_number": po_number,
                "requisition_id": requisition_id,
                "total_amount": total_amount,
            },
        )
        return purchase_order_id

    def _notify_decision(
        self,
        db,
        row: Mapping[str, Any],
        po_row: Mapping[str, Any] | None,
        decision: Decision,
    ) -> DeliveryReport:
        if isinstance(decision, Approve) and po_row is not None:
            return self._deliver(
                db,
                entity="purchase_order",
                entity_id=int(po_row["id"]),
                send_fn=lambda: self.notifier.requisition_approved(
                    self._requisition_document(db, row),
                    self._purchase_order_document(db, po_row),
                ),
            )
        if isinstance(decision, Reject):
            send_fn = lambda: self.notifier.requisition_rejected(self._requisition_document(db, row), decision.reason)
        else:
            send_fn = lambda: self.notifier.requisition_cancelled(self._requisition_document(db, row), decision.reason)
        return self._deliver(db, entity="requisition", entity_id=int(row["id"]), send_fn=send_fn)

    # -- purchase orders ---------------------------------------------------

    def update_purchase_order_status(
        self,
        db,
        *,
        purchase_order_id: int,
        target: PurchaseOrderStatus,
        actor: Actor,
    ) -> Dict[str, Any]:
        require_roles(*APPROVER_ROLES, role=actor.role)
        purchase_order = self._load_purchase_order(db, purchase_order_id)
        current = PurchaseOrderStatus.parse(purchase_order.get("status"))
        if current is None or not purchase_order_transition_allowed(current, target):
            raise ConflictError(
                code="status_transition_invalid",
                payload={"from_status": purchase_order.get("status"), "to_status": target.value},
            )
        with db.transaction():
            updated = self.purchase_orders.update_status_if(
                db,
                purchase_order_id,
                from_status=current.value,
                to_status=target.value,
            )
            if updated == 0:
                raise ConflictError(
                    code="status_transition_invalid",
                    payload={"from_status": current.value, "to_status": target.value},
                )
            self.status_events.add_event(
                db,
                entity="purchase_order",
                entity_id=purchase_order_id,
                from_status=current.value,
                to_status=target.value,
                reason="purchase_order_status_updated",
                actor_id=actor.user_id,
            )
        logger.info(
            "purchase_order_status_updated",
            extra={
                "purchase_order_id": purchase_order_id,
                "from_status": current.value,
                "to_status": target.value,
                "actor_id": actor.user_id,
            },
        )
        return self.get_purchase_order(db, purchase_order_id)

    @staticmethod
    def can_view_all(actor: Actor) -> bool:
        return has_any_role(actor.role, APPROVER_ROLES)

    def ensure_can_view_requisition(self, requisition: Mapping[str, Any], actor: Actor) -> None:
        if self.can_view_all(actor):
            return
        requested_by = (requisition.get("requested_by") or {}).get("id")
        if str(requested_by or "") != str(actor.user_id):
            raise PermissionError(code="permission_denied")
