from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Any, List, Mapping
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.contexts.notifications.domain.gateway import DocumentKind, DocumentRenderer


FALLBACK_TEXT = "N/A"
CURRENCY_SYMBOL = "£"

TERMS = (
    "All prices quoted must include delivery to the specified location.",
    "The supplier must notify {company} of any anticipated delays immediately.",
    "Payment terms are net 30 days from the date of receipt of goods or services.",
    "All goods delivered must match the specifications outlined in this document.",
    "{company} reserves the right to reject any goods that do not meet the required standards.",
)


def _text(value: Any) -> str:
    if value is None:
        return FALLBACK_TEXT
    text = str(value).strip()
    return escape(text) if text else FALLBACK_TEXT


def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, Mapping) else {}


def _amount(value: Any) -> str:
    if value is None or str(value).strip() == "":
        return FALLBACK_TEXT
    return f"{CURRENCY_SYMBOL}{escape(str(value))}"


class ReportlabDocumentRenderer(DocumentRenderer):
    def __init__(self, company_name: str = "Civcon Office") -> None:
        self.company_name = str(company_name or "").strip() or "Civcon Office"
        self._styles = getSampleStyleSheet()
        self._styles.add(ParagraphStyle(name="RightAligned", parent=self._styles["Normal"], alignment=TA_RIGHT))
        self._styles.add(ParagraphStyle(name="Small", parent=self._styles["Normal"], fontSize=8, leading=10))

    def render(self, kind: DocumentKind, payload: Mapping[str, Any]) -> bytes:
        kind = DocumentKind(kind)
        payload = payload if isinstance(payload, Mapping) else {}
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=40,
            leftMargin=40,
            topMargin=40,
            bottomMargin=50,
            title=f"{kind.title} {payload.get('number') or ''}".strip(),
            author=self.company_name,
        )
        elements: List[Any] = []
        elements.extend(self._header(kind, payload))
        elements.extend(self._supplier_block(payload))
        elements.extend(self._items_table(kind, payload))
        elements.extend(self._totals_block(payload))
        elements.extend(self._delivery_block(payload))
        elements.extend(self._terms_block())
        elements.extend(self._signature_block(kind, payload))

        generated_at = datetime.now().strftime("%b %d, %Y %H:%M")

        def _footer(canvas, document):
            canvas.saveState()
            canvas.setFont("Helvetica", 8)
            canvas.drawString(40, 25, f"Page {document.page}")
            canvas.drawRightString(A4[0] - 40, 25, f"Generated: {generated_at}")
            canvas.restoreState()

        doc.build(elements, onFirstPage=_footer, onLaterPages=_footer)
        return buffer.getvalue()

    def _header(self, kind: DocumentKind, payload: Mapping[str, Any]) -> List[Any]:
        styles = self._styles
        project = _section(payload, "project")
        project_label = _text(project.get("name"))
        if project.get("contract_number"):
            project_label = f"{project_label} ({_text(project.get('contract_number'))})"

        if kind is DocumentKind.REQUISITION:
            person_label, person = "Requested By", _section(payload, "requested_by")
        else:
            person_label, person = "Approved By", _section(payload, "approved_by")

        status = str(payload.get("status") or "").strip()
        header = Table(
            [
                [
                    Paragraph(f"<b>{escape(self.company_name)}</b>", styles["Title"]),
                    Paragraph(
                        f"<b>{kind.title}</b><br/>{_text(payload.get('number'))}",
                        styles["RightAligned"],
                    ),
                ]
            ],
            colWidths=[300, 215],
        )
        details = Table(
            [
                ["Project:", Paragraph(project_label, styles["Normal"])],
                ["Date:", Paragraph(_text(payload.get("date")), styles["Normal"])],
                [f"{person_label}:", Paragraph(_text(person.get("name")), styles["Normal"])],
                ["Status:", Paragraph(_text(status.capitalize() if status else None), styles["Normal"])],
            ],
            colWidths=[100, 415],
        )
        details.setStyle(TableStyle([("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold")]))
        return [header, Spacer(1, 12), details, Spacer(1, 16)]

    def _supplier_block(self, payload: Mapping[str, Any]) -> List[Any]:
        supplier = _section(payload, "supplier")
        rows = [
            ["Supplier", _text(supplier.get("name"))],
            ["Address", _text(supplier.get("address"))],
            ["Email", _text(supplier.get("email"))],
            ["Phone", _text(supplier.get("phone"))],
            ["Contact", _text(supplier.get("contact_person"))],
        ]
        table = Table(
            [[label, Paragraph(value, self._styles["Normal"])] for label, value in rows],
            colWidths=[100, 415],
        )
        table.setStyle(
            TableStyle(
                [
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("BACKGROUND", (0, 0), (0, -1), colors.whitesmoke),
                    ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                    ("TOPPADDING", (0, 0), (-1, -1), 4),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
                ]
            )
        )
        return [Paragraph("<b>Supplier Information</b>", self._styles["Heading3"]), table, Spacer(1, 16)]

    def _items_table(self, kind: DocumentKind, payload: Mapping[str, Any]) -> List[Any]:
        items = payload.get("items") if isinstance(payload.get("items"), list) else []
        data: List[List[Any]] = [["#", "Description", "Qty", "Unit", "Unit price", "VAT", "Total"]]
        for index, item in enumerate(items, start=1):
            item = item if isinstance(item, Mapping) else {}
            data.append(
                [
                    str(item.get("line_no") or index),
                    Paragraph(_text(item.get("description")), self._styles["Small"]),
                    _text(item.get("quantity")),
                    _text(item.get("unit")),
                    _amount(item.get("unit_price")),
                    _text(item.get("vat_type")),
                    _amount(item.get("total_price")),
                ]
            )
        if not items:
            data.append(["", "No items", "", "", "", "", ""])

        table = Table(data, colWidths=[22, 185, 35, 45, 70, 83, 75], repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, -1), 8),
                    ("ALIGN", (2, 1), (2, -1), "RIGHT"),
                    ("ALIGN", (4, 1), (4, -1), "RIGHT"),
                    ("ALIGN", (6, 1), (6, -1), "RIGHT"),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ]
            )
        )
        heading = "Requisition Items" if kind is DocumentKind.REQUISITION else "Purchase Order Items"
        return [Paragraph(f"<b>{heading}</b>", self._styles["Heading3"]), table, Spacer(1, 10)]

    def _totals_block(self, payload: Mapping[str, Any]) -> List[Any]:
        totals = _section(payload, "totals")
        breakdown = _section(totals, "vat_breakdown")
        rows = [
            ["Subtotal", _amount(totals.get("subtotal"))],
            ["VAT (20%)", _amount(breakdown.get("standard"))],
        ]
        reverse_out = breakdown.get("reverse_charge_out")
        if reverse_out not in (None, "", "0.00"):
            rows.append(["Reverse charge VAT (output)", _amount(reverse_out)])
            rows.append(["Reverse charge VAT (input)", f"-{_amount(breakdown.get('reverse_charge_in'))}"])
        rows.append(["No VAT", _amount(breakdown.get("zero"))])
        rows.append(["Total", _amount(totals.get("grand_total"))])

        table = Table(rows, colWidths=[160, 90], hAlign="RIGHT")
        table.setStyle(
            TableStyle(
                [
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                    ("LINEABOVE", (0, -1), (-1, -1), 0.8, colors.black),
                    ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ]
            )
        )
        return [table, Spacer(1, 16)]

    def _delivery_block(self, payload: Mapping[str, Any]) -> List[Any]:
        delivery = _section(payload, "delivery")
        rows = [
            ["Delivery Address:", Paragraph(_text(delivery.get("address")), self._styles["Normal"])],
            ["Required By:", Paragraph(_text(delivery.get("date")), self._styles["Normal"])],
        ]
        if delivery.get("instructions"):
            rows.append(["Delivery Instructions:", Paragraph(_text(delivery.get("instructions")), self._styles["Normal"])])
        table = Table(rows, colWidths=[130, 385])
        table.setStyle(TableStyle([("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"), ("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return [table, Spacer(1, 16)]

    def _terms_block(self) -> List[Any]:
        company = escape(self.company_name)
        elements: List[Any] = [Paragraph("<b>Terms and Conditions</b>", self._styles["Heading3"])]
        for index, term in enumerate(TERMS, start=1):
            elements.append(Paragraph(f"{index}. {term.format(company=company)}", self._styles["Small"]))
        elements.append(Spacer(1, 16))
        return elements

    def _signature_block(self, kind: DocumentKind, payload: Mapping[str, Any]) -> List[Any]:
        styles = self._styles
        if kind is DocumentKind.REQUISITION:
            requester = _section(payload, "requested_by")
            status = str(payload.get("status") or "").strip().lower()
            if status == "approved":
                approval = "Finance Team"
            elif status == "rejected":
                approval = "Rejected"
            elif status == "cancelled":
                approval = "Cancelled"
            else:
                approval = "Pending Approval"
            left = (
                f"<b>Requested By:</b><br/>{_text(requester.get('name'))}<br/>"
                f"{_text(requester.get('role') or 'Requester')}<br/>{_text(payload.get('date'))}"
            )
            right = f"<b>Approved By:</b><br/>{approval}"
        else:
            approver = _section(payload, "approved_by")
            requester = _section(payload, "requested_by")
            left = (
                f"<b>Issued By:</b><br/>{_text(approver.get('name'))}<br/>"
                f"{_text(approver.get('role') or 'Finance Team')}<br/>{_text(payload.get('date'))}"
            )
            right = (
                f"<b>Original Requisition:</b><br/>{_text(payload.get('requisition_number'))}<br/>"
                f"Requested by: {_text(requester.get('name'))}"
            )
        table = Table([[Paragraph(left, styles["Normal"]), Paragraph(right, styles["Normal"])]], colWidths=[257, 258])
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        return [table]
