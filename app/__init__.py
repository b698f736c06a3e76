import os

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from app.config import Config
from app.db import close_db, get_db, init_db
from app.db_migrations import register_db_cli
from app.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
    prometheus_metrics_text,
)
from app.security import apply_security_headers, enforce_rate_limit


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class() if isinstance(config_class, type) else config_class)
    configure_json_logging(app)

    _ensure_database_dir(app)
    _register_error_handlers(app)
    _register_security(app)
    _register_auth(app)
    _register_gateways(app)
    _register_blueprints(app)
    _register_health(app)
    register_db_cli(app)
    _maybe_init_schema(app)

    app.teardown_appcontext(close_db)
    return app


def _ensure_database_dir(app: Flask) -> None:
    database_dir = app.config.get("DATABASE_DIR")
    if database_dir:
        os.makedirs(database_dir, exist_ok=True)


def _maybe_init_schema(app: Flask) -> None:
    auto_init = bool(app.config.get("DB_AUTO_INIT", False))
    if app.testing:
        # Tests stay self-contained and never depend on an external migration run.
        auto_init = True
    if not auto_init:
        return

    flask_env = (os.environ.get("FLASK_ENV", "development") or "development").strip().lower()
    if not app.testing and flask_env != "development":
        app.logger.warning("DB_AUTO_INIT ignored outside development.")
        return

    with app.app_context():
        init_db()


def _register_gateways(app: Flask) -> None:
    from app.contexts.notifications.application.notifier import ProcurementNotifier
    from app.contexts.notifications.infrastructure.email_gateway import build_email_gateway
    from app.contexts.notifications.infrastructure.pdf_renderer import ReportlabDocumentRenderer
    from app.contexts.procurement.application.service import ProcurementService

    company_name = app.config.get("COMPANY_NAME") or "Civcon Office"
    renderer = ReportlabDocumentRenderer(company_name=company_name)
    email_gateway = build_email_gateway(app.config)
    notifier = ProcurementNotifier(
        renderer,
        email_gateway,
        finance_email=app.config.get("FINANCE_EMAIL") or "",
        company_name=company_name,
    )
    service = ProcurementService(
        notifier=notifier,
        renderer=renderer,
        numbering_max_attempts=int(app.config.get("NUMBERING_MAX_ATTEMPTS") or 3),
    )
    app.extensions["procurement"] = {
        "renderer": renderer,
        "email_gateway": email_gateway,
        "notifier": notifier,
        "service": service,
    }


def _register_blueprints(app: Flask) -> None:
    from app.routes.procurement_routes import procurement_bp
    from app.routes.reference_routes import reference_bp

    app.register_blueprint(procurement_bp)
    app.register_blueprint(reference_bp)


def _register_auth(app: Flask) -> None:
    from app.auth import register_auth

    register_auth(app)


def _register_error_handlers(app: Flask) -> None:
    from app.errors import AppError, SystemError

    @app.before_request
    def _ensure_request_id() -> None:
        ensure_request_id()
        mark_request_start()

    @app.after_request
    def _append_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        response = observe_response(response)
        return apply_security_headers(response)

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
                "http_status": error.http_status,
                "message_key": error.message_key,
                "details": error.details,
                "request_path": request.path,
                "http_method": request.method,
            },
            exc_info=error.critical,
        )

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        _log_error(exc, request_id)
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

    @app.errorhandler(HTTPException)
    def _handle_http_error(exc: HTTPException):
        if not request.path.startswith("/api/"):
            return exc
        request_id = ensure_request_id()
        code = (exc.name or "http_error").strip().lower().replace(" ", "_")
        return (
            jsonify({"error": code, "message": exc.description, "request_id": request_id}),
            exc.code or 500,
        )

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(
            code="unexpected_error",
            message_key="unexpected_error",
            http_status=500,
            critical=True,
            details=str(exc),
        )
        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": request_id,
                "error_code": mapped.code,
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status


def _register_security(app: Flask) -> None:
    @app.before_request
    def _rate_limit_guard():
        return enforce_rate_limit()


def _register_health(app: Flask) -> None:
    @app.route("/health")
    def health():
        db_path = app.config.get("DB_PATH") or "unknown"
        backend = "postgres" if str(db_path).startswith("postgres") else "sqlite"
        payload = {
            "status": "ok",
            "db": backend,
            "email_mode": app.config.get("EMAIL_MODE"),
            "metrics": metrics_snapshot(),
        }
        try:
            get_db().execute("SELECT 1").fetchone()
        except Exception as exc:
            app.logger.warning("health_db_unreachable", extra={"error": str(exc)})
            payload["status"] = "degraded"
        return payload, 200

    @app.route("/metrics")
    def metrics():
        return Response(prometheus_metrics_text(), mimetype="text/plain; version=0.0.4")
