from __future__ import annotations

from typing import Dict, List


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "Civcon Procurement",
    "requisition": "Purchase requisition",
    "purchase_order": "Purchase order",
    "project": "Project",
    "supplier": "Supplier",
}


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "requisition": [
        {
            "key": "pending",
            "label": "Pending",
            "description": "Submitted and waiting for a finance decision.",
        },
        {
            "key": "approved",
            "label": "Approved",
            "description": "Approved by finance; a purchase order has been issued.",
        },
        {
            "key": "rejected",
            "label": "Rejected",
            "description": "Rejected by finance; see the rejection reason.",
        },
        {
            "key": "cancelled",
            "label": "Cancelled",
            "description": "Withdrawn before a decision was recorded.",
        },
    ],
    "purchase_order": [
        {
            "key": "draft",
            "label": "Draft",
            "description": "Order prepared but not yet sent to the supplier.",
        },
        {
            "key": "issued",
            "label": "Issued",
            "description": "Order issued to the supplier.",
        },
        {
            "key": "received",
            "label": "Received",
            "description": "Goods or services received on site.",
        },
        {
            "key": "cancelled",
            "label": "Cancelled",
            "description": "Order cancelled.",
        },
    ],
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "unexpected_error": "The operation could not be completed.",
        "action_invalid": "This action is not valid.",
        "validation_error": "Some fields are invalid.",
        "auth_required": "Authentication required.",
        "permission_denied": "You do not have permission to perform this action.",
        "requisition_not_found": "Requisition not found.",
        "purchase_order_not_found": "Purchase order not found.",
        "project_not_found": "Project not found.",
        "supplier_not_found": "Supplier not found.",
        "user_not_found": "User not found.",
        "report_not_found": "Report not found.",
        "requisition_already_decided": "This requisition already has a decision recorded.",
        "purchase_order_exists": "This requisition already has a purchase order.",
        "purchase_order_number_taken": "This purchase order number is already in use.",
        "numbering_conflict": "A document number could not be assigned. Please try again.",
        "requisition_not_editable": "Only pending requisitions can be edited.",
        "decision_invalid": "Decision must be approve, reject or cancel.",
        "status_invalid": "Invalid status value.",
        "status_transition_invalid": "This status change is not allowed.",
        "items_required": "At least one item is required.",
        "duplicate_value": "A record with this value already exists.",
        "rate_limit_exceeded": "Too many requests. Please try again shortly.",
        "document_render_failed": "The document could not be generated.",
    },
    "success": {
        "requisition_created": "Requisition submitted.",
        "requisition_updated": "Requisition updated.",
        "requisition_approved": "Requisition approved and purchase order issued.",
        "requisition_rejected": "Requisition rejected.",
        "requisition_cancelled": "Requisition cancelled.",
        "purchase_order_updated": "Purchase order updated.",
        "delivery_degraded": "The decision was saved, but some notifications could not be delivered.",
        "submission_degraded": "Requisition submitted, but finance could not be notified.",
    },
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def status_label(group: str, key: str | None, default: str | None = None) -> str:
    for item in STATUS_GROUPS.get(group, []):
        if item["key"] == key:
            return item["label"]
    if default is not None:
        return default
    return str(key or "")


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)
