import unittest

from app.errors import ConflictError
from app.observability import metrics_snapshot, reset_metrics_for_tests
from app.procurement.numbering import (
    PURCHASE_ORDER_NUMBERS,
    REQUISITION_NUMBERS,
    InsertResult,
    allocate_with_retry,
    max_sequence,
    next_number,
)


class NumberingFormatTest(unittest.TestCase):
    def test_format_pads_per_scheme(self) -> None:
        self.assertEqual(REQUISITION_NUMBERS.format(2026, 1), "REQ-2026-0001")
        self.assertEqual(PURCHASE_ORDER_NUMBERS.format(2026, 42), "PO-2026-00042")

    def test_parse_rejects_other_prefix_and_year(self) -> None:
        self.assertEqual(REQUISITION_NUMBERS.parse("REQ-2026-0012"), 12)
        self.assertIsNone(REQUISITION_NUMBERS.parse("PO-2026-00012"))
        self.assertIsNone(REQUISITION_NUMBERS.parse("REQ-2025-0012", year=2026))
        self.assertFalse(PURCHASE_ORDER_NUMBERS.is_valid("PO-26-1"))

    def test_sequence_must_fill_the_padding_width(self) -> None:
        self.assertFalse(PURCHASE_ORDER_NUMBERS.is_valid("PO-2026-1"))
        self.assertFalse(PURCHASE_ORDER_NUMBERS.is_valid("PO-2026-0042"))
        self.assertTrue(PURCHASE_ORDER_NUMBERS.is_valid("PO-2026-00042"))
        self.assertTrue(PURCHASE_ORDER_NUMBERS.is_valid("PO-2026-100000"))
        self.assertIsNone(REQUISITION_NUMBERS.parse("REQ-2026-12"))

    def test_next_number_follows_numeric_max(self) -> None:
        current = max_sequence(
            REQUISITION_NUMBERS,
            2026,
            ["REQ-2026-0009", "REQ-2026-0010", "REQ-2025-0500", "garbage", None],
        )

        self.assertEqual(current, 10)
        self.assertEqual(next_number(REQUISITION_NUMBERS, 2026, current), "REQ-2026-0011")
        self.assertEqual(next_number(REQUISITION_NUMBERS, 2026, None), "REQ-2026-0001")

    def test_sequence_grows_past_padding_width(self) -> None:
        self.assertEqual(next_number(REQUISITION_NUMBERS, 2026, 9999), "REQ-2026-10000")
        self.assertEqual(REQUISITION_NUMBERS.parse("REQ-2026-10000"), 10000)


class AllocateWithRetryTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()

    def test_first_attempt_wins(self) -> None:
        inserted = []

        allocation = allocate_with_retry(
            PURCHASE_ORDER_NUMBERS,
            2026,
            lookup_max_fn=lambda scheme, year: 4,
            insert_fn=lambda number: inserted.append(number) or InsertResult.ok(99),
        )

        self.assertEqual(allocation.number, "PO-2026-00005")
        self.assertEqual(allocation.attempts, 1)
        self.assertEqual(allocation.value, 99)
        self.assertEqual(inserted, ["PO-2026-00005"])

    def test_duplicate_triggers_fresh_lookup(self) -> None:
        taken = {"REQ-2026-0001"}
        stored = ["REQ-2026-0001"]
        lookups = []

        def lookup(scheme, year):
            lookups.append(year)
            # Another writer commits between our read and insert on the first pass.
            return 0 if len(lookups) == 1 else max_sequence(scheme, year, stored)

        def insert(number):
            if number in taken:
                return InsertResult.duplicate_number()
            taken.add(number)
            return InsertResult.ok(number)

        allocation = allocate_with_retry(REQUISITION_NUMBERS, 2026, lookup_max_fn=lookup, insert_fn=insert)

        self.assertEqual(allocation.number, "REQ-2026-0002")
        self.assertEqual(allocation.attempts, 2)
        self.assertEqual(len(lookups), 2)
        self.assertEqual(metrics_snapshot()["numbering_retries"].get("REQ"), 1)

    def test_exhaustion_raises_conflict(self) -> None:
        with self.assertRaises(ConflictError) as ctx:
            allocate_with_retry(
                REQUISITION_NUMBERS,
                2026,
                lookup_max_fn=lambda scheme, year: None,
                insert_fn=lambda number: InsertResult.duplicate_number(),
                max_attempts=3,
            )

        self.assertEqual(ctx.exception.code, "numbering_conflict")
        self.assertEqual(ctx.exception.http_status, 409)
        self.assertEqual(ctx.exception.payload["attempts"], 3)


if __name__ == "__main__":
    unittest.main()
