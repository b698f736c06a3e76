from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from app.auth import current_actor
from app.contexts.notifications.domain.gateway import DocumentKind
from app.contexts.procurement.application.service import ProcurementService
from app.db import get_db
from app.domain.contracts import Approve, Cancel, Decision, DecisionResult, Reject
from app.errors import ValidationError
from app.policies import APPROVER_ROLES, require_roles
from app.procurement.flow_policy import PurchaseOrderStatus
from app.procurement.validation import (
    parse_decision,
    parse_items,
    parse_purchase_order_status,
    parse_requisition_input,
    parse_requisition_status_filter,
    parse_status_change,
)
from app.ui_strings import error_message, success_message


procurement_bp = Blueprint("procurement", __name__)


def _err(key: str, fallback: str | None = None) -> str:
    return error_message(key, fallback)


def _ok(key: str, fallback: str | None = None) -> str:
    return success_message(key, fallback)


def _service() -> ProcurementService:
    return current_app.extensions["procurement"]["service"]


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    return payload


def _parse_int(value: str | None, default: int, min_value: int, max_value: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return max(min_value, min(parsed, max_value))


def _pdf_response(filename: str, content: bytes) -> Response:
    response = Response(content, mimetype="application/pdf")
    response.headers["Content-Disposition"] = f'inline; filename="{filename}"'
    return response


def _decision_message(decision: Decision, result: DecisionResult) -> str:
    if result.degraded:
        return _ok("delivery_degraded")
    if isinstance(decision, Approve):
        return _ok("requisition_approved")
    if isinstance(decision, Reject):
        return _ok("requisition_rejected")
    if isinstance(decision, Cancel):
        return _ok("requisition_cancelled")
    return _ok("requisition_updated")


def _decide(requisition_id: int, decision: Decision):
    db = get_db()
    result = _service().process_decision(
        db,
        requisition_id=requisition_id,
        decision=decision,
        actor=current_actor(),
    )
    return jsonify(
        {
            "requisition": result.requisition,
            "purchase_order": result.purchase_order,
            "delivery": result.delivery.to_payload(),
            "degraded": result.degraded,
            "message": _decision_message(decision, result),
        }
    )


@procurement_bp.route("/api/requisitions", methods=["GET", "POST"])
def requisitions_api():
    db = get_db()
    actor = current_actor()
    service = _service()

    if request.method == "POST":
        create_input = parse_requisition_input(_json_body())
        result = service.create_requisition(db, create_input=create_input, actor=actor)
        return jsonify(result.payload), result.status_code

    requested_by_id = None
    if request.args.get("mine") == "1" or not service.can_view_all(actor):
        requested_by_id = actor.user_id
    items = service.list_requisitions(
        db,
        statuses=parse_requisition_status_filter(request.args.get("status")),
        requested_by_id=requested_by_id,
        limit=_parse_int(request.args.get("limit"), default=100, min_value=1, max_value=500),
        offset=_parse_int(request.args.get("offset"), default=0, min_value=0, max_value=1_000_000),
    )
    return jsonify({"items": items})


@procurement_bp.route("/api/requisitions/preview", methods=["POST"])
def requisition_preview_api():
    payload = _json_body()
    items = parse_items(payload.get("items") if isinstance(payload, dict) else None)
    return jsonify(_service().preview_amounts(items))


@procurement_bp.route("/api/requisitions/<int:requisition_id>", methods=["GET"])
def requisition_detail_api(requisition_id: int):
    service = _service()
    detail = service.get_requisition(get_db(), requisition_id)
    service.ensure_can_view_requisition(detail, current_actor())
    return jsonify(detail)


@procurement_bp.route("/api/requisitions/<int:requisition_id>/items", methods=["PATCH"])
def requisition_items_api(requisition_id: int):
    payload = _json_body()
    items = parse_items(payload.get("items") if isinstance(payload, dict) else None)
    detail = _service().update_requisition_items(
        get_db(),
        requisition_id=requisition_id,
        items=items,
        actor=current_actor(),
    )
    return jsonify({"requisition": detail, "message": _ok("requisition_updated")})


@procurement_bp.route("/api/requisitions/<int:requisition_id>/decision", methods=["POST"])
def requisition_decision_api(requisition_id: int):
    return _decide(requisition_id, parse_decision(_json_body()))


@procurement_bp.route("/api/requisitions/<int:requisition_id>/status", methods=["PUT"])
def requisition_status_api(requisition_id: int):
    return _decide(requisition_id, parse_status_change(_json_body()))


@procurement_bp.route("/api/requisitions/<int:requisition_id>/history", methods=["GET"])
def requisition_history_api(requisition_id: int):
    service = _service()
    db = get_db()
    service.ensure_can_view_requisition(service.get_requisition(db, requisition_id), current_actor())
    return jsonify(service.requisition_history(db, requisition_id))


@procurement_bp.route("/api/requisitions/<int:requisition_id>/pdf", methods=["GET"])
def requisition_pdf_api(requisition_id: int):
    service = _service()
    db = get_db()
    service.ensure_can_view_requisition(service.get_requisition(db, requisition_id), current_actor())
    filename, content = service.render_document(db, DocumentKind.REQUISITION, requisition_id)
    return _pdf_response(filename, content)


@procurement_bp.route("/api/purchase-orders", methods=["GET"])
def purchase_orders_api():
    require_roles(*APPROVER_ROLES, role=current_actor().role)
    raw_statuses = [part for part in str(request.args.get("status") or "").split(",") if part.strip()]
    statuses = []
    for raw in raw_statuses:
        status = PurchaseOrderStatus.parse(raw)
        if status is None:
            raise ValidationError.for_fields({"status": _err("status_invalid")}, code="status_invalid")
        statuses.append(status.value)
    items = _service().list_purchase_orders(
        get_db(),
        statuses=statuses,
        limit=_parse_int(request.args.get("limit"), default=100, min_value=1, max_value=500),
        offset=_parse_int(request.args.get("offset"), default=0, min_value=0, max_value=1_000_000),
    )
    return jsonify({"items": items})


@procurement_bp.route("/api/purchase-orders/<int:purchase_order_id>", methods=["GET"])
def purchase_order_detail_api(purchase_order_id: int):
    require_roles(*APPROVER_ROLES, role=current_actor().role)
    return jsonify(_service().get_purchase_order(get_db(), purchase_order_id))


@procurement_bp.route("/api/purchase-orders/<int:purchase_order_id>/preview", methods=["GET"])
def purchase_order_preview_api(purchase_order_id: int):
    require_roles(*APPROVER_ROLES, role=current_actor().role)
    return jsonify(_service().purchase_order_preview(get_db(), purchase_order_id))


@procurement_bp.route("/api/purchase-orders/<int:purchase_order_id>/pdf", methods=["GET"])
def purchase_order_pdf_api(purchase_order_id: int):
    require_roles(*APPROVER_ROLES, role=current_actor().role)
    filename, content = _service().render_document(get_db(), DocumentKind.PURCHASE_ORDER, purchase_order_id)
    return _pdf_response(filename, content)


@procurement_bp.route("/api/purchase-orders/<int:purchase_order_id>/status", methods=["PATCH"])
def purchase_order_status_api(purchase_order_id: int):
    target = parse_purchase_order_status(_json_body())
    detail = _service().update_purchase_order_status(
        get_db(),
        purchase_order_id=purchase_order_id,
        target=target,
        actor=current_actor(),
    )
    return jsonify({"purchase_order": detail, "message": _ok("purchase_order_updated")})


@procurement_bp.route("/api/reports/<string:name>", methods=["GET"])
def report_api(name: str):
    require_roles(*APPROVER_ROLES, role=current_actor().role)
    return jsonify(_service().build_report(get_db(), name))
