import os
import unittest
from unittest.mock import patch

from app import create_app
from app.config import Config
from app.db import close_db
from app.observability import reset_metrics_for_tests
from app.security import reset_rate_limiter_for_tests
from app.ui_strings import error_message
from tests.helpers.temp_db import TempDbSandbox


def _build_temp_config(temp_db: TempDbSandbox, **overrides):
    attrs = {
        "DATABASE_DIR": temp_db.temp_dir,
        "DB_PATH": temp_db.db_path,
        "TESTING": False,
        "DB_AUTO_INIT": False,
        "AUTH_ENABLED": False,
        "RATE_LIMIT_ENABLED": True,
        "RATE_LIMIT_WINDOW_SECONDS": 60,
        "RATE_LIMIT_MAX_REQUESTS": 300,
    }
    attrs.update(overrides)
    return type("TempConfig", (Config,), attrs)


class SecurityHardeningTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="security_hardening")
        temp_config = _build_temp_config(self._temp_db)
        self.app = create_app(temp_config)
        self.client = self.app.test_client()
        reset_rate_limiter_for_tests()
        reset_metrics_for_tests()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        self._temp_db.cleanup()
        reset_rate_limiter_for_tests()
        reset_metrics_for_tests()

    def test_rate_limit_blocks_excessive_api_calls(self) -> None:
        with self.app.app_context():
            self.app.config["RATE_LIMIT_MAX_REQUESTS"] = 2

        first = self.client.get("/api/unknown")
        second = self.client.get("/api/unknown")
        third = self.client.get("/api/unknown")

        self.assertEqual(first.status_code, 404)
        self.assertEqual(second.status_code, 404)
        self.assertEqual(third.status_code, 429)
        payload = third.get_json() or {}
        self.assertEqual(payload.get("error"), "rate_limit_exceeded")
        self.assertEqual(payload.get("message"), error_message("rate_limit_exceeded"))
        self.assertGreaterEqual(int(payload.get("retry_after") or 0), 0)

    def test_rate_limit_ignores_non_api_paths(self) -> None:
        self.app.config["RATE_LIMIT_MAX_REQUESTS"] = 1

        statuses = [self.client.get("/health").status_code for _ in range(3)]

        self.assertEqual(statuses, [200, 200, 200])

    def test_rate_limit_disabled_by_config(self) -> None:
        self.app.config["RATE_LIMIT_MAX_REQUESTS"] = 1
        self.app.config["RATE_LIMIT_ENABLED"] = False

        statuses = [self.client.get("/api/unknown").status_code for _ in range(3)]

        self.assertEqual(statuses, [404, 404, 404])

    def test_security_headers_present(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers.get("X-Content-Type-Options"), "nosniff")
        self.assertEqual(response.headers.get("X-Frame-Options"), "DENY")
        self.assertEqual(response.headers.get("Referrer-Policy"), "strict-origin-when-cross-origin")
        self.assertTrue((response.headers.get("Content-Security-Policy") or "").strip())
        self.assertTrue((response.headers.get("X-Request-Id") or "").strip())
        self.assertTrue((response.headers.get("X-Response-Time-Ms") or "").strip())


class ProductionConfigTest(unittest.TestCase):
    def _production_config(self, **overrides):
        attrs = {
            "DATABASE_URL": "postgresql://procurement@db.internal/procurement",
            "SECRET_KEY": "rotated-production-secret",
            "AUTH_TRUST_USER_HEADER": False,
            "EMAIL_MODE": "smtp",
        }
        attrs.update(overrides)
        return type("ProductionConfig", (Config,), attrs)

    def test_production_refuses_in_memory_outbox(self) -> None:
        with patch.dict(os.environ, {"FLASK_ENV": "production"}):
            with self.assertRaises(RuntimeError) as ctx:
                self._production_config(EMAIL_MODE="outbox")()

        self.assertIn("EMAIL_MODE", str(ctx.exception))

    def test_production_accepts_smtp(self) -> None:
        with patch.dict(os.environ, {"FLASK_ENV": "production"}):
            config = self._production_config()()

        self.assertEqual(config.EMAIL_MODE, "smtp")

    def test_create_app_runs_production_guards(self) -> None:
        with patch.dict(os.environ, {"FLASK_ENV": "production"}):
            with self.assertRaises(RuntimeError):
                create_app(self._production_config(EMAIL_MODE="outbox"))


if __name__ == "__main__":
    unittest.main()
