"""Spend reports over issued purchase orders and approved requisitions.

Amounts are stored as text on sqlite and NUMERIC on postgres, so rows are
loaded once and summed as ``Decimal`` here instead of with SQL ``SUM``.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Dict, List

from app.errors import NotFoundError
from app.procurement.amounts import ZERO, quantize, to_decimal
from app.procurement.flow_policy import RequisitionStatus


TOP_SUPPLIERS_LIMIT = 5

REPORT_KEYS = (
    "project-expenditures",
    "requisition-status",
    "top-suppliers",
    "monthly-trend",
    "user-expenditures",
)


def _load_order_rows(db) -> List[dict]:
    rows = db.execute(
        """
        SELECT po.id, po.issue_date, po.total_amount, po.status,
               r.project_id, p.name AS project_name,
               r.supplier_id, s.name AS supplier_name
        FROM purchase_orders po
        JOIN requisitions r ON r.id = po.requisition_id
        LEFT JOIN projects p ON p.id = r.project_id
        LEFT JOIN suppliers s ON s.id = r.supplier_id
        WHERE po.status <> 'cancelled'
        """
    ).fetchall()
    return [dict(row) for row in rows]


def _sorted_by_total(groups: Dict[Any, dict]) -> List[dict]:
    ordered = sorted(groups.values(), key=lambda item: (-item["total_amount"], str(item.get("name") or "")))
    for item in ordered:
        item["total_amount"] = str(quantize(item["total_amount"]))
    return ordered


def project_expenditures(db) -> List[dict]:
    groups: Dict[Any, dict] = {}
    for row in _load_order_rows(db):
        group = groups.setdefault(
            row["project_id"],
            {"project_id": row["project_id"], "name": row.get("project_name"), "total_amount": ZERO, "order_count": 0},
        )
        group["total_amount"] += to_decimal(row["total_amount"], field="total_amount")
        group["order_count"] += 1
    return _sorted_by_total(groups)


def requisitions_by_status(db) -> List[dict]:
    counts: "OrderedDict[str, int]" = OrderedDict((status.value, 0) for status in RequisitionStatus)
    rows = db.execute("SELECT status, COUNT(*) AS total FROM requisitions GROUP BY status").fetchall()
    for row in rows:
        status = RequisitionStatus.parse(row["status"])
        if status is not None:
            counts[status.value] += int(row["total"] or 0)
    return [{"status": key, "count": value} for key, value in counts.items()]


def top_suppliers(db, limit: int = TOP_SUPPLIERS_LIMIT) -> List[dict]:
    groups: Dict[Any, dict] = {}
    for row in _load_order_rows(db):
        group = groups.setdefault(
            row["supplier_id"],
            {"supplier_id": row["supplier_id"], "name": row.get("supplier_name"), "total_amount": ZERO, "order_count": 0},
        )
        group["total_amount"] += to_decimal(row["total_amount"], field="total_amount")
        group["order_count"] += 1
    return _sorted_by_total(groups)[: max(1, int(limit))]


def monthly_trend(db) -> List[dict]:
    months: Dict[str, dict] = {}
    for row in _load_order_rows(db):
        month = str(row.get("issue_date") or "")[:7] or "unknown"
        bucket = months.setdefault(month, {"month": month, "total_amount": ZERO, "order_count": 0})
        bucket["total_amount"] += to_decimal(row["total_amount"], field="total_amount")
        bucket["order_count"] += 1
    result = [months[key] for key in sorted(months)]
    for bucket in result:
        bucket["total_amount"] = str(quantize(bucket["total_amount"]))
    return result


def user_expenditures(db) -> List[dict]:
    rows = db.execute(
        """
        SELECT r.requested_by_id, r.total_amount, u.first_name, u.last_name, u.email
        FROM requisitions r
        LEFT JOIN users u ON u.id = r.requested_by_id
        WHERE r.status = 'approved'
        """
    ).fetchall()
    groups: Dict[Any, dict] = {}
    for raw in rows:
        row = dict(raw)
        name = " ".join(part for part in (row.get("first_name"), row.get("last_name")) if part) or row.get("email")
        group = groups.setdefault(
            row["requested_by_id"],
            {"user_id": row["requested_by_id"], "name": name, "total_amount": ZERO, "requisition_count": 0},
        )
        group["total_amount"] += to_decimal(row["total_amount"], field="total_amount")
        group["requisition_count"] += 1
    return _sorted_by_total(groups)


_BUILDERS: Dict[str, Callable[[Any], List[dict]]] = {
    "project-expenditures": project_expenditures,
    "requisition-status": requisitions_by_status,
    "top-suppliers": top_suppliers,
    "monthly-trend": monthly_trend,
    "user-expenditures": user_expenditures,
}


def build_report(db, name: str) -> Dict[str, Any]:
    key = str(name or "").strip().lower().replace("_", "-")
    builder = _BUILDERS.get(key)
    if builder is None:
        raise NotFoundError(
            code="report_not_found",
            payload={"report": name, "available": list(REPORT_KEYS)},
        )
    return {"report": key, "rows": builder(db)}
