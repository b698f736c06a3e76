from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request, session

from app.db import get_db
from app.domain.contracts import Actor
from app.errors import AppError
from app.infrastructure.repositories.procurement import ReferenceRepository
from app.observability import current_request_id
from app.policies import normalize_role


auth_bp = Blueprint("auth", __name__)

USER_HEADER = "X-User-Id"
_PUBLIC_PATHS = {"/health", "/metrics"}
_references = ReferenceRepository()


def register_auth(app) -> None:
    app.register_blueprint(auth_bp)

    @app.before_request
    def _require_actor():
        if not app.config.get("AUTH_ENABLED", True):
            return None

        path = request.path or "/"
        if path in _PUBLIC_PATHS or not path.startswith("/api/"):
            return None

        if _resolve_actor() is not None:
            return None

        error = AppError(code="auth_required", http_status=401, critical=False)
        return jsonify(error.to_response_payload(current_request_id())), 401


def _claimed_user_id() -> str | None:
    user_id = str(session.get("user_id") or "").strip()
    if user_id:
        return user_id
    if current_app.config.get("AUTH_TRUST_USER_HEADER"):
        header = str(request.headers.get(USER_HEADER) or "").strip()
        if header:
            return header
    return None


def _resolve_actor() -> Actor | None:
    if "actor" in g:
        return g.actor

    actor = None
    user_id = _claimed_user_id()
    if user_id:
        # The role is never taken from the caller, only from the users table.
        user = _references.get_user(get_db(), user_id)
        if user is not None:
            first = str(user.get("first_name") or "").strip()
            last = str(user.get("last_name") or "").strip()
            actor = Actor(
                user_id=str(user["id"]),
                role=normalize_role(user.get("role")),
                email=user.get("email"),
                display_name=" ".join(part for part in (first, last) if part) or user.get("email"),
            )
    g.actor = actor
    return actor


def current_actor() -> Actor:
    actor = _resolve_actor()
    if actor is None:
        raise AppError(code="auth_required", http_status=401, critical=False)
    return actor


@auth_bp.route("/api/me", methods=["GET"])
def me():
    return jsonify(current_actor().to_payload())
