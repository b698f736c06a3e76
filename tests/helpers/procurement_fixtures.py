from __future__ import annotations

from typing import List

from app import create_app
from app.config import Config
from app.contexts.notifications.application.notifier import ProcurementNotifier
from app.contexts.notifications.domain.gateway import DocumentRenderer, EmailGateway, SendResult
from app.db import get_db
from database.seed import seed_demo_data
from tests.helpers.temp_db import TempDbSandbox


REQUESTER_ID = "user-requester"
FINANCE_ID = "user-finance"
ADMIN_ID = "user-admin"

SAMPLE_ITEMS = [
    {"description": "Portland cement 25kg", "quantity": 10, "unit": "bag", "unit_price": "6.80", "vat_type": "VAT 20%"},
    {"description": "Excavation labour", "quantity": 2, "unit": "day", "unit_price": "280.00", "vat_type": "20% RC CIS (0%)"},
    {"description": "Site signage", "quantity": 1, "unit": "each", "unit_price": "45.00", "vat_type": "VAT 0%"},
]


class StubRenderer(DocumentRenderer):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: List[tuple] = []

    def render(self, kind, payload) -> bytes:
        self.calls.append((kind, payload))
        if self.fail:
            raise RuntimeError("renderer unavailable")
        return b"%PDF-1.4 stub"


class RecordingEmailGateway(EmailGateway):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.messages = []

    def send(self, message) -> SendResult:
        self.messages.append(message)
        if self.fail:
            return SendResult(success=False, error="smtp down")
        return SendResult(success=True)


def build_app(sandbox: TempDbSandbox, **overrides):
    attrs = {
        "TESTING": True,
        "PROPAGATE_EXCEPTIONS": False,
        "AUTH_ENABLED": True,
        "AUTH_TRUST_USER_HEADER": True,
        "FINANCE_EMAIL": "finance@civcon.example.com",
    }
    attrs.update(overrides)
    return create_app(sandbox.make_config(Config, **attrs))


def seed_reference_data(app) -> dict:
    with app.app_context():
        db = get_db()
        seed_demo_data(db)
        projects = db.execute("SELECT id FROM projects ORDER BY id").fetchall()
        suppliers = db.execute("SELECT id FROM suppliers ORDER BY id").fetchall()
    return {
        "project_id": int(projects[0]["id"]),
        "supplier_id": int(suppliers[0]["id"]),
        "second_supplier_id": int(suppliers[1]["id"]),
    }


def install_gateways(app, *, renderer=None, email_gateway=None) -> tuple:
    renderer = renderer or StubRenderer()
    email_gateway = email_gateway or RecordingEmailGateway()
    notifier = ProcurementNotifier(
        renderer,
        email_gateway,
        finance_email=app.config["FINANCE_EMAIL"],
        company_name="Civcon Office",
    )
    service = app.extensions["procurement"]["service"]
    service.notifier = notifier
    service.renderer = renderer
    return renderer, email_gateway


def user_headers(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def requisition_payload(ids: dict, **overrides) -> dict:
    payload = {
        "project_id": ids["project_id"],
        "supplier_id": ids["supplier_id"],
        "request_date": "2026-10-01",
        "delivery_date": "2026-10-20",
        "delivery_address": "Riverside Apartments, Plot 4",
        "delivery_instructions": "Deliver before 10am",
        "items": [dict(item) for item in SAMPLE_ITEMS],
    }
    payload.update(overrides)
    return payload
