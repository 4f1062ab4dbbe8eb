"""
FACTURADOR-DIAN — Invoice service
Creates invoices and drives them through submission to the simulated DIAN.

Submission (send_to_dian):
  1. Guard: only DRAFT or REJECTED may be submitted
  2. PENDING + sent_to_dian_at, committed before the slow part
  3. Build the XML, sign it with the company's default unexpired ACTIVE certificate
     (left unsigned when there is none; the simulator then rejects it)
  4. DianSimulator.send_invoice
  5. APPROVED (cufe) or REJECTED, with the raw response stored
On an internal error the invoice goes back to its previous status and the
error propagates.
"""

import json
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from facturador.core.exceptions import BusinessRuleError, ForbiddenError, NotFoundError
from facturador.dian.invoice_builder import InvoiceXmlBuilder
from facturador.models.company import Company
from facturador.models.invoice import Invoice, InvoiceStatus
from facturador.modules.certificate_simulator import CertificateSimulator
from facturador.modules.dian_simulator import DianSimulator
from facturador.modules.email_simulator import EmailSimulator, SimulatedEmail
from facturador.schemas.models import DianSendResult, InvoiceCreateRequest
from facturador.services import invoice_state
from facturador.services.certificate_service import signing_certificate

logger = logging.getLogger(__name__)


class InvoiceService:

    def __init__(
        self,
        db: Session,
        certificates: CertificateSimulator,
        dian: DianSimulator,
        email: EmailSimulator,
    ):
        self.db = db
        self.certificates = certificates
        self.dian = dian
        self.email = email

    # ── CRUD ──

    def create(self, company_id: str, data: InvoiceCreateRequest) -> Invoice:
        if self.db.get(Company, company_id) is None:
            raise NotFoundError("Empresa no encontrada")

        duplicate = (
            self.db.query(Invoice.id)
            .filter(
                Invoice.company_id == company_id,
                Invoice.prefix == data.prefix,
                Invoice.number == data.number,
            )
            .first()
        )
        if duplicate is not None:
            raise BusinessRuleError(f"Ya existe una factura con el número {data.prefix or ''}{data.number}")

        invoice = Invoice(
            number=data.number,
            prefix=data.prefix,
            issue_date=data.issue_date,
            total=data.total,
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            status=InvoiceStatus.DRAFT,
            company_id=company_id,
        )
        self.db.add(invoice)
        self.db.commit()
        self.db.refresh(invoice)
        logger.info(f"Invoice created: {invoice.full_number} (company={company_id})")
        return invoice

    def get(self, invoice_id: str, company_id: str) -> Invoice:
        invoice = self.db.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError("Factura no encontrada")
        if invoice.company_id != company_id:
            raise ForbiddenError()
        return invoice

    # ── DIAN ──

    async def send_to_dian(self, invoice_id: str, company_id: str) -> tuple[Invoice, DianSendResult]:
        invoice = self.get(invoice_id, company_id)
        previous = invoice_state.submit(invoice)
        self.db.commit()
        logger.info(f"Invoice {invoice.full_number}: {previous.value} → pending")

        try:
            xml_content = InvoiceXmlBuilder(invoice.company).build(invoice)
            certificate = signing_certificate(self.db, company_id)
            if certificate is not None:
                xml_content = self.certificates.sign_xml(xml_content, certificate.private_key)
            else:
                logger.warning(f"Company {company_id} has no valid certificate; sending unsigned XML")

            result = await self.dian.send_invoice(xml_content, certificate)
            self._apply_verdict(invoice, result)
            self.db.commit()
        except Exception:
            logger.exception(f"Submission of invoice {invoice.full_number} failed")
            # Back to the committed PENDING row before restoring the prior status
            self.db.rollback()
            invoice_state.abort_submission(invoice, previous)
            self.db.commit()
            raise

        self.db.refresh(invoice)
        return invoice, result

    @staticmethod
    def _apply_verdict(invoice: Invoice, result: DianSendResult) -> None:
        if result.success:
            invoice_state.transition(invoice, InvoiceStatus.APPROVED)
            invoice.cufe = result.cufe
        else:
            invoice_state.transition(invoice, InvoiceStatus.REJECTED)
        invoice.dian_response = json.dumps(result.model_dump(by_alias=True), ensure_ascii=False)
        invoice.dian_response_at = datetime.now(timezone.utc)
        logger.info(f"Invoice {invoice.full_number}: pending → {invoice.status.value}")

    # ── Other transitions ──

    def cancel(self, invoice_id: str, company_id: str) -> Invoice:
        invoice = self.get(invoice_id, company_id)
        invoice_state.transition(invoice, InvoiceStatus.CANCELLED)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice

    def send_by_email(self, invoice_id: str, company_id: str) -> tuple[Invoice, SimulatedEmail]:
        invoice = self.get(invoice_id, company_id)
        if invoice.status != InvoiceStatus.APPROVED:
            raise BusinessRuleError("Solo se pueden enviar por correo facturas aprobadas por la DIAN")
        if not invoice.customer_email:
            raise BusinessRuleError("El cliente no tiene correo electrónico registrado")

        xml_content = InvoiceXmlBuilder(invoice.company).build(invoice)
        email = self.email.send_invoice_email(
            to=invoice.customer_email,
            invoice_number=invoice.full_number,
            customer_name=invoice.customer_name,
            xml_content=xml_content,
        )
        invoice.sent_to_customer_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(invoice)
        return invoice, email
