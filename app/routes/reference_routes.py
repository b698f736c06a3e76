from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.auth import current_actor
from app.db import get_db
from app.errors import NotFoundError, ValidationError
from app.infrastructure.repositories.procurement import ReferenceRepository
from app.policies import APPROVER_ROLES, VALID_ROLES, require_roles
from app.procurement.validation import (
    parse_project_input,
    parse_supplier_input,
    parse_supplier_item_input,
    parse_user_input,
)


reference_bp = Blueprint("reference", __name__)

_REFERENCES = ReferenceRepository()


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError.for_fields({"body": "expected a JSON object"})
    return payload


def _require_approver() -> None:
    require_roles(*APPROVER_ROLES, role=current_actor().role)


@reference_bp.route("/api/projects", methods=["GET", "POST"])
def projects_api():
    db = get_db()
    if request.method == "POST":
        _require_approver()
        project_id = _REFERENCES.create_project(db, parse_project_input(_json_body()))
        return jsonify(_REFERENCES.get_project(db, project_id)), 201

    status = str(request.args.get("status") or "").strip().lower() or None
    return jsonify({"items": _REFERENCES.list_projects(db, status=status)})


@reference_bp.route("/api/projects/<int:project_id>", methods=["GET"])
def project_detail_api(project_id: int):
    project = _REFERENCES.get_project(get_db(), project_id)
    if project is None:
        raise NotFoundError(code="project_not_found", payload={"project_id": project_id})
    return jsonify(project)


@reference_bp.route("/api/suppliers", methods=["GET", "POST"])
def suppliers_api():
    db = get_db()
    if request.method == "POST":
        _require_approver()
        supplier_id = _REFERENCES.create_supplier(db, parse_supplier_input(_json_body()))
        return jsonify(_REFERENCES.get_supplier(db, supplier_id)), 201
    return jsonify({"items": _REFERENCES.list_suppliers(db)})


@reference_bp.route("/api/suppliers/<int:supplier_id>", methods=["GET"])
def supplier_detail_api(supplier_id: int):
    supplier = _REFERENCES.get_supplier(get_db(), supplier_id)
    if supplier is None:
        raise NotFoundError(code="supplier_not_found", payload={"supplier_id": supplier_id})
    return jsonify(supplier)


@reference_bp.route("/api/suppliers/<int:supplier_id>/items", methods=["GET", "POST"])
def supplier_items_api(supplier_id: int):
    db = get_db()
    if _REFERENCES.get_supplier(db, supplier_id) is None:
        raise NotFoundError(code="supplier_not_found", payload={"supplier_id": supplier_id})

    if request.method == "POST":
        _require_approver()
        fields = parse_supplier_item_input(_json_body())
        item_id = _REFERENCES.create_supplier_item(db, supplier_id, fields)
        return jsonify({"id": item_id, "supplier_id": supplier_id, **fields}), 201
    return jsonify({"items": _REFERENCES.list_supplier_items(db, supplier_id)})


@reference_bp.route("/api/users", methods=["GET", "POST"])
def users_api():
    db = get_db()
    _require_approver()
    if request.method == "POST":
        user_id = _REFERENCES.create_user(db, parse_user_input(_json_body()))
        return jsonify(_REFERENCES.get_user(db, user_id)), 201

    role = str(request.args.get("role") or "").strip().lower() or None
    if role is not None and role not in VALID_ROLES:
        raise ValidationError.for_fields({"role": "expected one of " + ", ".join(sorted(VALID_ROLES))})
    return jsonify({"items": _REFERENCES.list_users(db, role=role)})
