"""
FACTURADOR-DIAN: Certificate Router
====================================
Certificados digitales de la empresa del usuario. La emisión vive en
/api/habilitacion/empresa/{id}/certificado; aquí se consultan, se cambian de
estado (revocar, vencer), se elige el predeterminado y se eliminan.
La llave privada nunca sale en las respuestas.
"""

from fastapi import APIRouter, Depends

from facturador.dependencies import get_certificate_service, get_current_user
from facturador.schemas.models import CertificateUpdateRequest
from facturador.services.certificate_service import CertificateService
from facturador.services.role_guard import require_admin, require_company_access

router = APIRouter(
    prefix="/api/certificates",
    tags=["Certificados"],
    dependencies=[Depends(get_current_user)],
)


@router.get("")
async def list_certificates(
    user: dict = Depends(get_current_user),
    service: CertificateService = Depends(get_certificate_service),
):
    certificates = service.list_for_company(user["company_id"])
    return {"success": True, "data": [c.to_public_dict() for c in certificates]}


@router.get("/company/{company_id}")
async def list_company_certificates(
    company_id: str,
    user: dict = Depends(get_current_user),
    service: CertificateService = Depends(get_certificate_service),
):
    require_company_access(user, company_id)
    certificates = service.list_for_company(company_id)
    return {"success": True, "data": [c.to_public_dict() for c in certificates]}


@router.get("/{certificate_id}")
async def get_certificate(
    certificate_id: str,
    user: dict = Depends(get_current_user),
    service: CertificateService = Depends(get_certificate_service),
):
    certificate = service.get(certificate_id, user["company_id"])
    return {"success": True, "data": certificate.to_public_dict()}


@router.put("/{certificate_id}")
async def update_certificate(
    certificate_id: str,
    body: CertificateUpdateRequest,
    admin: dict = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service),
):
    """Renombra, cambia el estado o marca como predeterminado."""
    certificate = service.update(certificate_id, admin["company_id"], body)
    return {
        "success": True,
        "message": "Certificado actualizado exitosamente",
        "data": certificate.to_public_dict(),
    }


@router.delete("/{certificate_id}")
async def delete_certificate(
    certificate_id: str,
    admin: dict = Depends(require_admin),
    service: CertificateService = Depends(get_certificate_service),
):
    service.delete(certificate_id, admin["company_id"])
    return {"success": True, "message": "Certificado eliminado exitosamente"}
