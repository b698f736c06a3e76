import unittest
from decimal import Decimal

from app.domain.contracts import RequisitionItemInput
from app.procurement.amounts import VatType, compute_line, compute_totals, money


class AmountEngineTest(unittest.TestCase):
    def test_standard_and_zero_rated_lines(self) -> None:
        summary = compute_totals(
            [
                {"quantity": 10, "unit_price": "5.00", "vat_type": "VAT 20%"},
                {"quantity": 1, "unit_price": "100.00", "vat_type": "VAT 0%"},
            ]
        )

        self.assertEqual(summary.subtotal, Decimal("150.00"))
        self.assertEqual(summary.standard, Decimal("10.00"))
        self.assertEqual(summary.zero, Decimal("0.00"))
        self.assertEqual(summary.grand_total, Decimal("160.00"))
        self.assertEqual(
            summary.to_payload(),
            {
                "subtotal": "150.00",
                "vat_breakdown": {
                    "standard": "10.00",
                    "reverse_charge_out": "0.00",
                    "reverse_charge_in": "0.00",
                    "zero": "0.00",
                },
                "grand_total": "160.00",
            },
        )

    def test_reverse_charge_discloses_both_legs_and_nets_to_zero(self) -> None:
        summary = compute_totals(
            [
                {"quantity": 2, "unit_price": "280.00", "vat_type": "20% RC CIS (0%)"},
                {"quantity": 1, "unit_price": "40.00", "vat_type": "reverse-charge-cis"},
            ]
        )

        self.assertEqual(summary.subtotal, Decimal("600.00"))
        self.assertEqual(summary.reverse_charge_out, Decimal("120.00"))
        self.assertEqual(summary.reverse_charge_in, Decimal("120.00"))
        self.assertEqual(summary.standard, Decimal("0.00"))
        self.assertEqual(summary.grand_total, summary.subtotal)

    def test_zero_rated_only_totals_equal_subtotal(self) -> None:
        summary = compute_totals([{"quantity": 3, "unit_price": "12.50", "vat_type": "zero-rated"}])

        self.assertEqual(summary.grand_total, Decimal("37.50"))
        self.assertEqual(summary.vat_breakdown["zero"], Decimal("0.00"))

    def test_order_does_not_change_totals(self) -> None:
        items = [
            {"quantity": 3, "unit_price": "19.99", "vat_type": "VAT 20%"},
            {"quantity": 7, "unit_price": "0.35", "vat_type": "VAT 20%"},
            {"quantity": 1, "unit_price": "999.99", "vat_type": "20% RC CIS (0%)"},
        ]

        forward = compute_totals(items).to_payload()
        backward = compute_totals(list(reversed(items))).to_payload()

        self.assertEqual(forward, backward)

    def test_same_input_gives_same_output(self) -> None:
        items = [RequisitionItemInput("Blocks", 120, "each", "1.95", "VAT 20%")]

        self.assertEqual(compute_totals(items), compute_totals(items))

    def test_line_rounding_is_half_up(self) -> None:
        line = compute_line({"quantity": 1, "unit_price": "0.125", "vat_type": "VAT 20%"})

        self.assertEqual(line.net, Decimal("0.13"))
        self.assertEqual(line.vat_payable, Decimal("0.03"))

    def test_invalid_numbers_coerce_to_zero_with_warning(self) -> None:
        with self.assertLogs("app.procurement.amounts", level="WARNING") as captured:
            summary = compute_totals(
                [
                    {"quantity": "abc", "unit_price": "10.00", "vat_type": "VAT 20%"},
                    {"quantity": 2, "unit_price": None},
                ]
            )

        self.assertEqual(summary.grand_total, Decimal("0.00"))
        self.assertTrue(any("amount_field_coerced" in line for line in captured.output))

    def test_unknown_vat_type_falls_back_to_standard(self) -> None:
        line = compute_line({"quantity": 1, "unit_price": "10.00", "vat_type": "mystery"})

        self.assertIs(line.vat_type, VatType.STANDARD)
        self.assertEqual(line.vat_payable, Decimal("2.00"))

    def test_empty_list_yields_zero_totals(self) -> None:
        payload = compute_totals([]).to_payload(include_lines=True)

        self.assertEqual(payload["grand_total"], "0.00")
        self.assertEqual(payload["lines"], [])

    def test_money_formats_two_decimals(self) -> None:
        self.assertEqual(money("5"), "5.00")
        self.assertEqual(money(Decimal("2.345")), "2.35")


if __name__ == "__main__":
    unittest.main()
