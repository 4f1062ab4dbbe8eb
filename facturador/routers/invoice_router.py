"""
FACTURADOR-DIAN: Invoice Router
================================
Invoices of the caller's company and their lifecycle:
create (DRAFT) → send-to-dian (PENDING → APPROVED | REJECTED) → send-by-email.
"""

from fastapi import APIRouter, Depends

from facturador.dependencies import get_current_user, get_invoice_service
from facturador.schemas.models import InvoiceCreateRequest
from facturador.services.invoice_service import InvoiceService

router = APIRouter(prefix="/api/invoices", tags=["Facturas"])


@router.post("", status_code=201)
async def create_invoice(
    body: InvoiceCreateRequest,
    user: dict = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.create(user["company_id"], body)
    return {"success": True, "message": "Factura creada", "data": invoice.to_dict()}


@router.get("/{invoice_id}")
async def get_invoice(
    invoice_id: str,
    user: dict = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.get(invoice_id, user["company_id"])
    return {"success": True, "data": invoice.to_dict()}


@router.post("/{invoice_id}/send-to-dian")
async def send_to_dian(
    invoice_id: str,
    user: dict = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    """Envía la factura a la DIAN simulada y espera el veredicto."""
    invoice, result = await service.send_to_dian(invoice_id, user["company_id"])
    return {
        "success": result.success,
        "message": "Factura aprobada por la DIAN" if result.success else "Factura rechazada por la DIAN",
        "data": {
            "invoice": invoice.to_dict(),
            "dianResponse": result.model_dump(by_alias=True),
        },
    }


@router.post("/{invoice_id}/cancel")
async def cancel_invoice(
    invoice_id: str,
    user: dict = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice = service.cancel(invoice_id, user["company_id"])
    return {"success": True, "message": "Factura anulada", "data": invoice.to_dict()}


@router.post("/{invoice_id}/send-by-email")
async def send_by_email(
    invoice_id: str,
    user: dict = Depends(get_current_user),
    service: InvoiceService = Depends(get_invoice_service),
):
    invoice, email = service.send_by_email(invoice_id, user["company_id"])
    return {
        "success": True,
        "message": f"Factura enviada por correo a {email.to}",
        "data": {"invoice": invoice.to_dict(), "email": email.to_dict()},
    }
