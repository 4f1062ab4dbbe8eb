"""
FACTURADOR-DIAN — EmailSimulator
Records outgoing e-mails in memory instead of sending them.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    filename: str
    content_type: str
    content: Optional[str] = None


@dataclass
class SimulatedEmail:
    to: str
    subject: str
    body: str
    sender: str
    attachments: list[EmailAttachment] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "sent"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from": self.sender,
            "to": self.to,
            "subject": self.subject,
            "sentAt": self.sent_at.isoformat(),
            "status": self.status,
            "attachments": [
                {"filename": a.filename, "contentType": a.content_type} for a in self.attachments
            ],
        }


class EmailSimulator:

    def __init__(self, sender: str = "Sistema de Facturación Electrónica"):
        self.sender = sender
        self._emails: list[SimulatedEmail] = []

    def send_email(self, to: str, subject: str, body: str,
                   attachments: Optional[list[EmailAttachment]] = None) -> SimulatedEmail:
        email = SimulatedEmail(
            to=to, subject=subject, body=body, sender=self.sender,
            attachments=attachments or [],
        )
        self._emails.append(email)
        logger.info(f"📧 Correo simulado enviado a: {to} | Asunto: {subject}")
        return email

    def send_invoice_email(self, to: str, invoice_number: str, customer_name: str,
                           xml_content: Optional[str] = None) -> SimulatedEmail:
        subject = f"Factura Electrónica {invoice_number}"
        body = (
            f"<p>Estimado(a) <strong>{customer_name}</strong>,</p>"
            f"<p>Adjunto encontrará su factura electrónica {invoice_number} en formato XML, "
            f"de acuerdo con la normativa vigente de la DIAN.</p>"
            f"<p>Este es un correo simulado con fines educativos. "
            f"No se ha enviado ningún correo real.</p>"
        )
        attachments = [
            EmailAttachment(
                filename=f"Factura_{invoice_number}.xml",
                content_type="application/xml",
                content=xml_content,
            ),
        ]
        return self.send_email(to, subject, body, attachments)

    def get_all(self) -> list[SimulatedEmail]:
        return list(self._emails)

    def get_by_id(self, email_id: str) -> Optional[SimulatedEmail]:
        return next((e for e in self._emails if e.id == email_id), None)

    def get_by_recipient(self, to: str) -> list[SimulatedEmail]:
        return [e for e in self._emails if e.to == to]

    def clear(self) -> None:
        self._emails = []
