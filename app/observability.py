from __future__ import annotations

import contextvars
import json
import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Dict

from flask import g, has_request_context, request


_HTTP_DURATION_BUCKETS_MS = (5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)

_LOG_REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("log_request_id", default="")


def _normalize_request_id(value: str | None) -> str:
    return str(value or "").strip() or "n/a"


def set_log_request_id(request_id: str | None) -> None:
    _LOG_REQUEST_ID_CTX.set(_normalize_request_id(request_id))


def _background_request_id(default: str | None = None) -> str:
    request_id = str(_LOG_REQUEST_ID_CTX.get() or "").strip()
    if request_id:
        return request_id
    return default or "n/a"


class JsonLogFormatter(logging.Formatter):
    _base_keys = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, object] = {
            "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if has_request_context():
            payload["request_id"] = current_request_id(default="n/a")
            payload["path"] = request.path
            payload["method"] = request.method
            if request.url_rule is not None:
                payload["route"] = request.url_rule.rule
        else:
            record_request_id = str(getattr(record, "request_id", "") or "").strip()
            payload["request_id"] = record_request_id or _background_request_id(default="n/a")

        for key, value in record.__dict__.items():
            if key in self._base_keys or key.startswith("_"):
                continue
            if key in payload:
                continue
            if callable(value):
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, separators=(",", ":"), default=str)


def configure_json_logging(app) -> None:
    if not bool(app.config.get("LOG_JSON", True)):
        return
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    app.logger.handlers = []
    app.logger.propagate = True


def ensure_request_id() -> str:
    request_id = str(getattr(g, "request_id", "") or "").strip()
    if request_id:
        set_log_request_id(request_id)
        return request_id
    incoming = str(request.headers.get("X-Request-Id") or "").strip()
    request_id = incoming or str(uuid.uuid4())
    g.request_id = request_id
    set_log_request_id(request_id)
    return request_id


def current_request_id(default: str | None = None) -> str:
    if has_request_context():
        request_id = str(getattr(g, "request_id", "") or "").strip()
        if request_id:
            return request_id
    return _background_request_id(default=default)


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reset_state()

    def _reset_state(self) -> None:
        self._requests_total = 0
        self._errors_total = 0
        self._by_route: Dict[str, Dict[str, float]] = {}
        self._http_request_total: Dict[tuple[str, str, str], int] = {}
        self._http_request_duration_ms: Dict[tuple[str, str], dict] = {}
        self._decisions_total: Dict[tuple[str, str], int] = {}
        self._delivery_failed_total: Dict[str, int] = {}
        self._numbering_retry_total: Dict[str, int] = {}

    @staticmethod
    def _bucket_label(limit: float) -> str:
        return f"{limit:g}"

    @classmethod
    def _new_histogram_state(cls, limits: tuple[float, ...]) -> dict:
        return {
            "count": 0,
            "sum": 0.0,
            "buckets": {cls._bucket_label(limit): 0 for limit in limits} | {"+Inf": 0},
        }

    @classmethod
    def _observe_histogram(cls, state: dict, value: float, limits: tuple[float, ...]) -> None:
        duration = max(0.0, float(value))
        state["count"] += 1
        state["sum"] += duration
        for limit in limits:
            if duration <= limit:
                key = cls._bucket_label(limit)
                state["buckets"][key] = int(state["buckets"].get(key, 0)) + 1
        state["buckets"]["+Inf"] = int(state["count"])

    def observe_http(self, method: str, route: str, status_code: int, duration_ms: float) -> None:
        method_key = str(method or "GET").strip().upper() or "GET"
        route_key = str(route or "unknown").strip() or "unknown"
        status_key = str(int(status_code))

        key = f"{method_key} {route_key}"
        with self._lock:
            bucket = self._by_route.setdefault(
                key,
                {
                    "requests": 0.0,
                    "errors": 0.0,
                    "latency_sum_ms": 0.0,
                    "latency_max_ms": 0.0,
                },
            )
            bucket["requests"] += 1
            bucket["latency_sum_ms"] += max(0.0, float(duration_ms))
            bucket["latency_max_ms"] = max(bucket["latency_max_ms"], max(0.0, float(duration_ms)))
            self._requests_total += 1
            if int(status_code) >= 400:
                bucket["errors"] += 1
                self._errors_total += 1

            self._http_request_total[(method_key, route_key, status_key)] = (
                int(self._http_request_total.get((method_key, route_key, status_key), 0)) + 1
            )
            hist_key = (method_key, route_key)
            histogram = self._http_request_duration_ms.setdefault(
                hist_key,
                self._new_histogram_state(_HTTP_DURATION_BUCKETS_MS),
            )
            self._observe_histogram(histogram, duration_ms, _HTTP_DURATION_BUCKETS_MS)

    def observe_decision(self, decision: str, outcome: str) -> None:
        key = (str(decision or "unknown").strip() or "unknown", str(outcome or "unknown").strip() or "unknown")
        with self._lock:
            self._decisions_total[key] = int(self._decisions_total.get(key, 0)) + 1

    def observe_delivery_failed(self, channel: str) -> None:
        key = str(channel or "unknown").strip() or "unknown"
        with self._lock:
            self._delivery_failed_total[key] = int(self._delivery_failed_total.get(key, 0)) + 1

    def observe_numbering_retry(self, prefix: str) -> None:
        key = str(prefix or "unknown").strip() or "unknown"
        with self._lock:
            self._numbering_retry_total[key] = int(self._numbering_retry_total.get(key, 0)) + 1

    def snapshot(self) -> dict:
        with self._lock:
            route_stats = []
            for route, bucket in self._by_route.items():
                requests_count = int(bucket["requests"])
                avg_ms = 0.0
                if requests_count > 0:
                    avg_ms = float(bucket["latency_sum_ms"]) / requests_count
                route_stats.append(
                    {
                        "route": route,
                        "requests": requests_count,
                        "errors": int(bucket["errors"]),
                        "avg_latency_ms": round(avg_ms, 2),
                        "max_latency_ms": round(float(bucket["latency_max_ms"]), 2),
                    }
                )
            route_stats.sort(key=lambda item: item["requests"], reverse=True)
            return {
                "requests_total": int(self._requests_total),
                "errors_total": int(self._errors_total),
                "by_route": route_stats[:40],
                "decisions": {f"{decision}:{outcome}": count for (decision, outcome), count in self._decisions_total.items()},
                "delivery_failed": dict(self._delivery_failed_total),
                "numbering_retries": dict(self._numbering_retry_total),
            }

    def prometheus_snapshot(self) -> dict:
        with self._lock:
            return {
                "http_request_total": [
                    {"method": method, "route": route, "status": status, "value": value}
                    for (method, route, status), value in sorted(self._http_request_total.items())
                ],
                "http_request_duration_ms": [
                    {"method": method, "route": route, **json.loads(json.dumps(state))}
                    for (method, route), state in sorted(self._http_request_duration_ms.items())
                ],
                "decisions_total": dict(self._decisions_total),
                "delivery_failed_total": dict(self._delivery_failed_total),
                "numbering_retry_total": dict(self._numbering_retry_total),
            }

    def reset(self) -> None:
        with self._lock:
            self._reset_state()


_METRICS = MetricsRegistry()


def mark_request_start() -> None:
    g._request_started_at = time.perf_counter()


def observe_response(response):
    started = float(getattr(g, "_request_started_at", 0.0) or 0.0)
    elapsed_ms = 0.0
    if started > 0.0:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
    route = request.url_rule.rule if request.url_rule is not None else request.path
    _METRICS.observe_http(request.method, route, int(response.status_code), elapsed_ms)
    response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
    return response


def metrics_snapshot() -> dict:
    return _METRICS.snapshot()


def observe_decision(decision: str, outcome: str) -> None:
    _METRICS.observe_decision(decision, outcome)


def observe_delivery_failed(channel: str) -> None:
    _METRICS.observe_delivery_failed(channel)


def observe_numbering_retry(prefix: str) -> None:
    _METRICS.observe_numbering_retry(prefix)


def _prom_label(value: object) -> str:
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _prom_line(name: str, value: int | float, labels: dict[str, object] | None = None) -> str:
    if labels:
        labels_blob = ",".join(f'{key}="{_prom_label(val)}"' for key, val in sorted(labels.items()))
        return f"{name}{{{labels_blob}}} {value}"
    return f"{name} {value}"


def prometheus_metrics_text() -> str:
    snapshot = _METRICS.prometheus_snapshot()
    lines: list[str] = []

    lines.append("# HELP http_request_total Total HTTP requests by method, route and status.")
    lines.append("# TYPE http_request_total counter")
    for sample in snapshot["http_request_total"]:
        lines.append(
            _prom_line(
                "http_request_total",
                int(sample["value"]),
                labels={
                    "method": sample["method"],
                    "route": sample["route"],
                    "status": sample["status"],
                },
            )
        )

    lines.append("# HELP http_request_duration_ms HTTP request duration in milliseconds.")
    lines.append("# TYPE http_request_duration_ms histogram")
    for hist in snapshot["http_request_duration_ms"]:
        base_labels = {"method": hist["method"], "route": hist["route"]}
        for le_label, bucket_value in hist["buckets"].items():
            lines.append(
                _prom_line(
                    "http_request_duration_ms_bucket",
                    int(bucket_value),
                    labels=base_labels | {"le": le_label},
                )
            )
        lines.append(_prom_line("http_request_duration_ms_sum", float(hist["sum"]), labels=base_labels))
        lines.append(_prom_line("http_request_duration_ms_count", int(hist["count"]), labels=base_labels))

    lines.append("# HELP requisition_decisions_total Requisition decisions by kind and outcome.")
    lines.append("# TYPE requisition_decisions_total counter")
    for (decision, outcome), value in sorted(snapshot["decisions_total"].items()):
        lines.append(_prom_line("requisition_decisions_total", int(value), labels={"decision": decision, "outcome": outcome}))

    lines.append("# HELP notification_delivery_failed_total Failed PDF/email deliveries by channel.")
    lines.append("# TYPE notification_delivery_failed_total counter")
    for channel, value in sorted(snapshot["delivery_failed_total"].items()):
        lines.append(_prom_line("notification_delivery_failed_total", int(value), labels={"channel": channel}))

    lines.append("# HELP document_numbering_retry_total Number allocation retries after a duplicate.")
    lines.append("# TYPE document_numbering_retry_total counter")
    for prefix, value in sorted(snapshot["numbering_retry_total"].items()):
        lines.append(_prom_line("document_numbering_retry_total", int(value), labels={"prefix": prefix}))

    return "\n".join(lines) + "\n"


def reset_metrics_for_tests() -> None:
    _METRICS.reset()
    set_log_request_id(None)
