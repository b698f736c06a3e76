import smtplib
import unittest
from unittest.mock import MagicMock, patch

from app.contexts.notifications.application.notifier import ProcurementNotifier
from app.contexts.notifications.domain.gateway import DocumentKind, EmailAttachment, EmailMessage
from app.contexts.notifications.infrastructure.email_gateway import (
    OutboxEmailGateway,
    SmtpEmailGateway,
    build_email_gateway,
    build_mime_message,
)
from app.contexts.notifications.infrastructure.pdf_renderer import ReportlabDocumentRenderer
from tests.helpers.procurement_fixtures import RecordingEmailGateway, StubRenderer


REQUISITION_DOCUMENT = {
    "number": "REQ-2026-0007",
    "status": "pending",
    "date": "2026-10-01",
    "project": {"id": 1, "name": "Riverside Apartments", "contract_number": "CV-1001"},
    "supplier": {"id": 1, "name": "Builders Merchant Ltd", "email": "orders@buildersmerchant.example.com"},
    "requested_by": {"id": "user-requester", "name": "Sam Reed", "email": "site.manager@civcon.example.com"},
    "items": [
        {"description": "Portland cement 25kg", "quantity": 10, "unit": "bag", "unit_price": "6.80", "vat_type": "VAT 20%"},
    ],
    "totals": {
        "subtotal": "68.00",
        "vat_breakdown": {"standard": "13.60", "reverse_charge_out": "0.00", "reverse_charge_in": "0.00", "zero": "0.00"},
        "grand_total": "81.60",
    },
    "delivery": {"address": "Plot 4", "date": "2026-10-20", "instructions": None},
}

PURCHASE_ORDER_DOCUMENT = dict(
    REQUISITION_DOCUMENT,
    number="PO-2026-00003",
    status="issued",
    requisition_number="REQ-2026-0007",
    approved_by={"id": "user-finance", "name": "Alex Moore", "email": "finance@civcon.example.com"},
)


class PdfRendererTest(unittest.TestCase):
    def test_purchase_order_renders_pdf_bytes(self) -> None:
        content = ReportlabDocumentRenderer().render(DocumentKind.PURCHASE_ORDER, PURCHASE_ORDER_DOCUMENT)

        self.assertTrue(content.startswith(b"%PDF"))

    def test_sparse_payload_still_renders(self) -> None:
        content = ReportlabDocumentRenderer().render(DocumentKind.REQUISITION, {})

        self.assertTrue(content.startswith(b"%PDF"))


class EmailGatewayTest(unittest.TestCase):
    def _message(self) -> EmailMessage:
        return EmailMessage(
            to=("orders@buildersmerchant.example.com",),
            subject="Purchase Order: PO-2026-00003",
            text="See attached.",
            attachments=(EmailAttachment(filename="PO-2026-00003.pdf", content=b"%PDF-1.4 stub"),),
        )

    def test_mime_message_carries_pdf_attachment(self) -> None:
        mime = build_mime_message("Civcon Office <noreply@civcon.example.com>", self._message())

        self.assertEqual(mime["To"], "orders@buildersmerchant.example.com")
        filenames = [part.get_filename() for part in mime.walk() if part.get_filename()]
        self.assertEqual(filenames, ["PO-2026-00003.pdf"])

    def test_outbox_records_messages(self) -> None:
        gateway = OutboxEmailGateway()

        result = gateway.send(self._message())

        self.assertTrue(result.success)
        self.assertEqual(len(gateway.messages), 1)
        gateway.clear()
        self.assertEqual(gateway.messages, [])

    def test_outbox_keeps_only_recent_messages(self) -> None:
        gateway = build_email_gateway({"EMAIL_MODE": "outbox", "EMAIL_OUTBOX_LIMIT": 2})

        for index in range(3):
            gateway.send(EmailMessage(to=("site@civcon.example.com",), subject=f"Notice {index}", text="x"))

        self.assertEqual([message.subject for message in gateway.messages], ["Notice 1", "Notice 2"])

    def test_outbox_refuses_message_without_recipient(self) -> None:
        result = OutboxEmailGateway().send(EmailMessage(to=(), subject="x", text="y"))

        self.assertFalse(result.success)

    def test_smtp_retries_transient_failures(self) -> None:
        server = MagicMock()
        server.sendmail.side_effect = [smtplib.SMTPServerDisconnected("gone"), {}]
        gateway = SmtpEmailGateway(host="smtp.example.com", port=587, retry_delay_seconds=0)

        with patch("app.contexts.notifications.infrastructure.email_gateway.smtplib.SMTP", return_value=server):
            result = gateway.send(self._message())

        self.assertTrue(result.success)
        self.assertEqual(server.sendmail.call_count, 2)

    def test_smtp_does_not_retry_authentication_failure(self) -> None:
        server = MagicMock()
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        gateway = SmtpEmailGateway(
            host="smtp.example.com",
            port=587,
            username="user",
            password="wrong",
            max_retries=3,
            retry_delay_seconds=0,
        )

        with patch("app.contexts.notifications.infrastructure.email_gateway.smtplib.SMTP", return_value=server):
            result = gateway.send(self._message())

        self.assertFalse(result.success)
        self.assertIn("authentication failed", result.error)
        self.assertEqual(server.login.call_count, 1)

    def test_gateway_selection_by_mode(self) -> None:
        self.assertIsInstance(build_email_gateway({"EMAIL_MODE": "outbox"}), OutboxEmailGateway)
        self.assertIsInstance(
            build_email_gateway({"EMAIL_MODE": "smtp", "EMAIL_HOST": "smtp.example.com"}),
            SmtpEmailGateway,
        )
        with self.assertRaises(RuntimeError):
            build_email_gateway({"EMAIL_MODE": "smtp"})
        with self.assertRaises(RuntimeError):
            build_email_gateway({"EMAIL_MODE": "pigeon"})


class NotifierTest(unittest.TestCase):
    def setUp(self) -> None:
        self.renderer = StubRenderer()
        self.email = RecordingEmailGateway()
        self.notifier = ProcurementNotifier(
            self.renderer,
            self.email,
            finance_email="finance@civcon.example.com",
        )

    def test_submission_goes_to_finance_with_pdf(self) -> None:
        report = self.notifier.requisition_submitted(REQUISITION_DOCUMENT)

        self.assertTrue(report.delivered)
        message = self.email.messages[0]
        self.assertEqual(message.to, ("finance@civcon.example.com",))
        self.assertEqual(message.subject, "New Purchase Requisition: REQ-2026-0007")
        self.assertIn("Sam Reed", message.text)
        self.assertEqual(message.attachments[0].filename, "REQ-2026-0007.pdf")

    def test_approval_goes_to_supplier_and_requester(self) -> None:
        report = self.notifier.requisition_approved(REQUISITION_DOCUMENT, PURCHASE_ORDER_DOCUMENT)

        self.assertEqual(len(report.attempts), 3)
        self.assertEqual(
            [message.to[0] for message in self.email.messages],
            ["orders@buildersmerchant.example.com", "site.manager@civcon.example.com"],
        )
        self.assertEqual(self.email.messages[0].subject, "Purchase Order: PO-2026-00003")
        self.assertEqual(self.renderer.calls[0][0], DocumentKind.PURCHASE_ORDER)

    def test_rejection_includes_reason(self) -> None:
        self.notifier.requisition_rejected(REQUISITION_DOCUMENT, "Over budget")

        message = self.email.messages[0]
        self.assertEqual(message.to, ("site.manager@civcon.example.com",))
        self.assertIn("Reason: Over budget", message.text)
        self.assertEqual(message.attachments, ())

    def test_missing_supplier_email_is_failed_attempt(self) -> None:
        order = dict(PURCHASE_ORDER_DOCUMENT, supplier={"name": "No Mail Ltd", "email": ""})

        report = self.notifier.requisition_approved(REQUISITION_DOCUMENT, order)

        self.assertFalse(report.delivered)
        self.assertEqual([failure.error for failure in report.failures], ["no recipient address"])
        self.assertEqual(len(self.email.messages), 1)

    def test_render_failure_is_reported_not_raised(self) -> None:
        notifier = ProcurementNotifier(
            StubRenderer(fail=True),
            self.email,
            finance_email="finance@civcon.example.com",
        )

        report = notifier.requisition_submitted(REQUISITION_DOCUMENT)

        self.assertEqual([failure.channel for failure in report.failures], ["pdf"])
        self.assertEqual(self.email.messages[0].attachments, ())

    def test_gateway_exception_is_reported_not_raised(self) -> None:
        gateway = MagicMock()
        gateway.send.side_effect = ConnectionError("refused")
        notifier = ProcurementNotifier(self.renderer, gateway, finance_email="finance@civcon.example.com")

        report = notifier.requisition_cancelled(REQUISITION_DOCUMENT, None)

        self.assertEqual(report.failures[0].error, "refused")


if __name__ == "__main__":
    unittest.main()
