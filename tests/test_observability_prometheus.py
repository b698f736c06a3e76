import json
import logging
import unittest

from app import create_app
from app.config import Config
from app.db import close_db
from app.observability import (
    JsonLogFormatter,
    observe_decision,
    observe_delivery_failed,
    observe_numbering_retry,
    reset_metrics_for_tests,
    set_log_request_id,
)
from tests.helpers.temp_db import TempDbSandbox


class _MetricsConfig(Config):
    TESTING = False
    DB_AUTO_INIT = False
    AUTH_ENABLED = False


class ObservabilityPrometheusTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="observability_metrics")
        cfg = self._temp_db.make_config(_MetricsConfig)
        self.app = create_app(cfg)
        self.client = self.app.test_client()
        reset_metrics_for_tests()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()
        reset_metrics_for_tests()

    def test_metrics_endpoint_exposes_prometheus_metrics(self) -> None:
        self.client.get("/api/unknown")
        observe_decision("approve", "committed")
        observe_decision("approve", "conflict")
        observe_delivery_failed("email")
        observe_numbering_retry("PO")

        response = self.client.get("/metrics")
        self.assertEqual(response.status_code, 200)
        content_type = response.headers.get("Content-Type") or ""
        self.assertIn("text/plain", content_type)

        payload = response.get_data(as_text=True)
        self.assertIn("http_request_total", payload)
        self.assertIn("http_request_duration_ms_bucket", payload)
        self.assertIn('requisition_decisions_total{decision="approve",outcome="committed"} 1', payload)
        self.assertIn('requisition_decisions_total{decision="approve",outcome="conflict"} 1', payload)
        self.assertIn('notification_delivery_failed_total{channel="email"} 1', payload)
        self.assertIn('document_numbering_retry_total{prefix="PO"} 1', payload)

    def test_log_formatter_includes_request_id_outside_request_context(self) -> None:
        set_log_request_id("worker-req-123")
        formatter = JsonLogFormatter()
        record = logging.LogRecord(
            name="app",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="worker_log",
            args=(),
            exc_info=None,
        )
        parsed = json.loads(formatter.format(record))
        self.assertEqual(parsed.get("request_id"), "worker-req-123")

    def test_log_formatter_keeps_structured_extras(self) -> None:
        formatter = JsonLogFormatter()
        record = logging.LogRecord(
            name="app.procurement.service",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="delivery_failed",
            args=(),
            exc_info=None,
        )
        record.channel = "email"
        record.entity_id = 7
        parsed = json.loads(formatter.format(record))
        self.assertEqual(parsed.get("message"), "delivery_failed")
        self.assertEqual(parsed.get("channel"), "email")
        self.assertEqual(parsed.get("entity_id"), 7)

    def test_health_reports_db_and_metrics(self) -> None:
        self.client.get("/api/unknown")

        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json() or {}

        self.assertEqual(payload.get("status"), "ok")
        self.assertEqual(payload.get("db"), "sqlite")
        self.assertEqual(payload.get("email_mode"), "outbox")
        self.assertGreaterEqual(int(payload["metrics"]["requests_total"]), 1)
        self.assertIn("decisions", payload["metrics"])


if __name__ == "__main__":
    unittest.main()
