"""Composes and dispatches the emails that follow a requisition event.

Every method returns a ``DeliveryReport`` and never raises: a rendering or
transport failure becomes a failed attempt in the report so the caller can
record it and answer with a degraded success.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Tuple

from app.contexts.notifications.domain.gateway import (
    DocumentKind,
    DocumentRenderer,
    EmailAttachment,
    EmailGateway,
    EmailMessage,
)
from app.domain.contracts import DeliveryAttempt, DeliveryReport


logger = logging.getLogger("app.notifications.notifier")


def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, Mapping) else {}


def _clean_email(value: Any) -> str | None:
    text = str(value or "").strip()
    return text if "@" in text else None


class ProcurementNotifier:
    def __init__(
        self,
        renderer: DocumentRenderer,
        email_gateway: EmailGateway,
        *,
        finance_email: str,
        company_name: str = "Civcon Office",
    ) -> None:
        self.renderer = renderer
        self.email_gateway = email_gateway
        self.finance_email = finance_email
        self.company_name = company_name

    def _render(self, kind: DocumentKind, document: Mapping[str, Any]) -> Tuple[EmailAttachment | None, DeliveryAttempt]:
        number = str(document.get("number") or kind.value)
        try:
            content = self.renderer.render(kind, document)
        except Exception as exc:
            logger.exception("document_render_failed", extra={"document_kind": kind.value, "number": number})
            return None, DeliveryAttempt(channel="pdf", recipient=None, success=False, error=str(exc) or exc.__class__.__name__)
        attachment = EmailAttachment(filename=f"{number}.pdf", content=content)
        return attachment, DeliveryAttempt(channel="pdf", recipient=None, success=True)

    def _send(
        self,
        recipient: Any,
        subject: str,
        text: str,
        attachment: EmailAttachment | None = None,
    ) -> DeliveryAttempt:
        address = _clean_email(recipient)
        if address is None:
            logger.warning("email_recipient_missing", extra={"subject": subject, "raw_recipient": repr(recipient)})
            return DeliveryAttempt(channel="email", recipient=None, success=False, error="no recipient address")
        message = EmailMessage(
            to=(address,),
            subject=subject,
            text=text,
            attachments=(attachment,) if attachment is not None else (),
        )
        try:
            result = self.email_gateway.send(message)
        except Exception as exc:
            logger.exception("email_gateway_failed", extra={"recipient": address, "subject": subject})
            return DeliveryAttempt(channel="email", recipient=address, success=False, error=str(exc) or exc.__class__.__name__)
        return DeliveryAttempt(channel="email", recipient=address, success=bool(result.success), error=result.error)

    def requisition_submitted(self, requisition: Mapping[str, Any]) -> DeliveryReport:
        attempts: List[DeliveryAttempt] = []
        attachment, rendered = self._render(DocumentKind.REQUISITION, requisition)
        attempts.append(rendered)

        number = requisition.get("number") or "N/A"
        requester = _section(requisition, "requested_by").get("name") or "A requester"
        project = _section(requisition, "project").get("name") or "N/A"
        attempts.append(
            self._send(
                self.finance_email,
                f"New Purchase Requisition: {number}",
                (
                    f"A new purchase requisition ({number}) has been submitted by {requester} "
                    f"for project {project}. Please review and approve."
                ),
                attachment,
            )
        )
        return DeliveryReport(attempts=tuple(attempts))

    def requisition_approved(
        self,
        requisition: Mapping[str, Any],
        purchase_order: Mapping[str, Any],
    ) -> DeliveryReport:
        attempts: List[DeliveryAttempt] = []
        attachment, rendered = self._render(DocumentKind.PURCHASE_ORDER, purchase_order)
        attempts.append(rendered)

        po_number = purchase_order.get("number") or "N/A"
        requisition_number = requisition.get("number") or "N/A"
        project = _section(purchase_order, "project").get("name") or "N/A"
        attempts.append(
            self._send(
                _section(purchase_order, "supplier").get("email"),
                f"Purchase Order: {po_number}",
                (
                    f"A new purchase order ({po_number}) has been issued by {self.company_name} "
                    f"for {project}. Please see the attached PDF for details."
                ),
                attachment,
            )
        )
        attempts.append(
            self._send(
                _section(requisition, "requested_by").get("email"),
                f"Your Requisition {requisition_number} has been approved",
                (
                    f"Your purchase requisition ({requisition_number}) has been approved "
                    f"and Purchase Order {po_number} has been issued."
                ),
                attachment,
            )
        )
        return DeliveryReport(attempts=tuple(attempts))

    def requisition_rejected(self, requisition: Mapping[str, Any], reason: str | None) -> DeliveryReport:
        number = requisition.get("number") or "N/A"
        text = f"Your purchase requisition ({number}) has been rejected."
        if reason:
            text = f"{text}\n\nReason: {reason}"
        attempt = self._send(
            _section(requisition, "requested_by").get("email"),
            f"Your Requisition {number} has been rejected",
            text,
        )
        return DeliveryReport(attempts=(attempt,))

    def requisition_cancelled(self, requisition: Mapping[str, Any], reason: str | None) -> DeliveryReport:
        number = requisition.get("number") or "N/A"
        text = f"Purchase requisition {number} has been cancelled."
        if reason:
            text = f"{text}\n\nReason: {reason}"
        attempt = self._send(
            _section(requisition, "requested_by").get("email"),
            f"Requisition {number} cancelled",
            text,
        )
        return DeliveryReport(attempts=(attempt,))
