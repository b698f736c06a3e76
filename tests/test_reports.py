import unittest
from datetime import date

from app.contexts.procurement.application.service import ProcurementService
from app.db import connect_database, init_db
from app.domain.contracts import Actor, Approve, Reject
from app.errors import NotFoundError
from app.procurement import reports
from app.procurement.validation import parse_requisition_input
from database.seed import seed_demo_data
from tests.helpers.procurement_fixtures import FINANCE_ID, REQUESTER_ID
from tests.helpers.temp_db import TempDbSandbox


class ReportsTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="reports")
        self.db = connect_database(self._temp_db.db_path)
        init_db(self.db)
        seed_demo_data(self.db)
        self.service = ProcurementService(today_fn=lambda: date(2026, 10, 18))
        projects = self.db.execute("SELECT id FROM projects ORDER BY id").fetchall()
        suppliers = self.db.execute("SELECT id FROM suppliers ORDER BY id").fetchall()
        self.project_ids = [int(row["id"]) for row in projects]
        self.supplier_ids = [int(row["id"]) for row in suppliers]
        self.requester = Actor(user_id=REQUESTER_ID, role="requester")
        self.finance = Actor(user_id=FINANCE_ID, role="finance")

    def tearDown(self) -> None:
        self.db.close()
        self._temp_db.cleanup()

    def _requisition(self, project_id: int, supplier_id: int, unit_price: str) -> int:
        output = self.service.create_requisition(
            self.db,
            create_input=parse_requisition_input(
                {
                    "project_id": project_id,
                    "supplier_id": supplier_id,
                    "request_date": "2026-10-01",
                    "delivery_date": "2026-10-20",
                    "delivery_address": "Site",
                    "items": [{"description": "Goods", "quantity": 1, "unit_price": unit_price, "vat_type": "VAT 0%"}],
                }
            ),
            actor=self.requester,
        )
        return int(output.payload["requisition"]["id"])

    def _seed_orders(self) -> None:
        first = self._requisition(self.project_ids[0], self.supplier_ids[0], "100.00")
        second = self._requisition(self.project_ids[1], self.supplier_ids[1], "250.00")
        third = self._requisition(self.project_ids[0], self.supplier_ids[1], "40.00")
        rejected = self._requisition(self.project_ids[1], self.supplier_ids[0], "999.00")
        for requisition_id in (first, second, third):
            self.service.process_decision(self.db, requisition_id=requisition_id, decision=Approve(), actor=self.finance)
        self.service.process_decision(
            self.db,
            requisition_id=rejected,
            decision=Reject(reason="Too expensive"),
            actor=self.finance,
        )
        self._requisition(self.project_ids[0], self.supplier_ids[0], "10.00")

    def test_project_expenditures_sum_orders_per_project(self) -> None:
        self._seed_orders()

        rows = reports.project_expenditures(self.db)

        self.assertEqual(
            [(row["project_id"], row["total_amount"], row["order_count"]) for row in rows],
            [(self.project_ids[1], "250.00", 1), (self.project_ids[0], "140.00", 2)],
        )

    def test_status_counts_include_every_status(self) -> None:
        self._seed_orders()

        rows = reports.requisitions_by_status(self.db)

        self.assertEqual(
            {row["status"]: row["count"] for row in rows},
            {"pending": 1, "approved": 3, "rejected": 1, "cancelled": 0},
        )

    def test_top_suppliers_are_ranked_by_spend(self) -> None:
        self._seed_orders()

        rows = reports.top_suppliers(self.db, limit=1)

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["supplier_id"], self.supplier_ids[1])
        self.assertEqual(rows[0]["total_amount"], "290.00")

    def test_monthly_trend_groups_by_issue_month(self) -> None:
        self._seed_orders()

        rows = reports.monthly_trend(self.db)

        self.assertEqual(rows, [{"month": "2026-10", "total_amount": "390.00", "order_count": 3}])

    def test_user_expenditures_only_count_approved(self) -> None:
        self._seed_orders()

        rows = reports.user_expenditures(self.db)

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["user_id"], REQUESTER_ID)
        self.assertEqual(rows[0]["total_amount"], "390.00")
        self.assertEqual(rows[0]["requisition_count"], 3)

    def test_cancelled_orders_are_excluded(self) -> None:
        self._seed_orders()
        self.db.execute("UPDATE purchase_orders SET status = 'cancelled' WHERE total_amount = '250.00'")
        self.db.commit()

        rows = reports.project_expenditures(self.db)

        self.assertEqual([row["project_id"] for row in rows], [self.project_ids[0]])

    def test_report_names_accept_underscores(self) -> None:
        payload = reports.build_report(self.db, "top_suppliers")

        self.assertEqual(payload, {"report": "top-suppliers", "rows": []})

    def test_unknown_report_lists_available(self) -> None:
        with self.assertRaises(NotFoundError) as ctx:
            reports.build_report(self.db, "margins")

        self.assertEqual(ctx.exception.payload["available"], list(reports.REPORT_KEYS))


if __name__ == "__main__":
    unittest.main()
