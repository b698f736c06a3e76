from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple


class DocumentKind(str, enum.Enum):
    REQUISITION = "requisition"
    PURCHASE_ORDER = "purchase_order"

    @property
    def title(self) -> str:
        if self is DocumentKind.REQUISITION:
            return "Purchase Requisition"
        return "Purchase Order"


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass(frozen=True)
class EmailMessage:
    to: Tuple[str, ...]
    subject: str
    text: str
    html: str | None = None
    attachments: Tuple[EmailAttachment, ...] = ()


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: str | None = None

    def to_payload(self) -> Dict[str, Any]:
        return {"success": self.success, "error": self.error}


class DocumentRenderer(ABC):
    @abstractmethod
    def render(self, kind: DocumentKind, payload: Mapping[str, Any]) -> bytes:
        """Return PDF bytes; missing optional fields render as fallback text."""
        raise NotImplementedError


class EmailGateway(ABC):
    @abstractmethod
    def send(self, message: EmailMessage) -> SendResult:
        raise NotImplementedError
