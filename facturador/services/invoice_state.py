"""
FACTURADOR-DIAN — Invoice lifecycle
Allowed status transitions of an Invoice, as an explicit table.

    DRAFT ──submit──► PENDING ──verdict──► APPROVED (terminal)
      ▲                 │   └───verdict──► REJECTED ──resubmit──► PENDING
      └────abort────────┘                     │
    DRAFT / REJECTED ──cancel──► CANCELLED (terminal)

PENDING → DRAFT only restores a draft whose submission failed internally.
"""

from datetime import datetime, timezone
from typing import Optional

from facturador.core.exceptions import FacturadorError
from facturador.models.invoice import Invoice, InvoiceStatus

TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: frozenset({InvoiceStatus.PENDING, InvoiceStatus.CANCELLED}),
    InvoiceStatus.PENDING: frozenset({InvoiceStatus.APPROVED, InvoiceStatus.REJECTED, InvoiceStatus.DRAFT}),
    InvoiceStatus.REJECTED: frozenset({InvoiceStatus.PENDING, InvoiceStatus.CANCELLED}),
    InvoiceStatus.APPROVED: frozenset(),
    InvoiceStatus.CANCELLED: frozenset(),
}

SUBMITTABLE = frozenset({InvoiceStatus.DRAFT, InvoiceStatus.REJECTED})


class InvalidTransitionError(FacturadorError):
    status_code = 400

    def __init__(self, current: InvoiceStatus, target: InvoiceStatus, message: Optional[str] = None):
        self.current = current
        self.target = target
        super().__init__(
            message or f"Transición de estado inválida: {current.value} → {target.value}",
            code="INVALID_TRANSITION",
        )


def can_transition(current: InvoiceStatus, target: InvoiceStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def can_submit(invoice: Invoice) -> bool:
    return invoice.status in SUBMITTABLE


def ensure_submittable(invoice: Invoice) -> None:
    if not can_submit(invoice):
        raise InvalidTransitionError(
            invoice.status, InvoiceStatus.PENDING,
            f"No se puede enviar una factura con estado {invoice.status.value}",
        )


def transition(invoice: Invoice, target: InvoiceStatus) -> InvoiceStatus:
    """Move `invoice` to `target` in place; returns the previous status."""
    current = invoice.status
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    invoice.status = target
    return current


def submit(invoice: Invoice) -> InvoiceStatus:
    """DRAFT/REJECTED → PENDING, stamping sent_to_dian_at. Returns the prior status."""
    ensure_submittable(invoice)
    previous = transition(invoice, InvoiceStatus.PENDING)
    invoice.sent_to_dian_at = datetime.now(timezone.utc)
    return previous


def abort_submission(invoice: Invoice, previous: InvoiceStatus) -> None:
    """Undo submit() after an internal failure, restoring DRAFT or REJECTED."""
    transition(invoice, previous)
