"""
FACTURADOR-DIAN: Habilitación Router
=====================================
Enrollment as electronic biller: registro → resolución → certificado → test.
Mutations are admin-only; every endpoint is scoped to the caller's company.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from facturador.dependencies import get_current_user, get_habilitacion_service
from facturador.models.company import Company
from facturador.schemas.models import (
    HabilitacionTestRequest,
    RegistroRequest,
    ResolucionRequest,
)
from facturador.services.habilitacion_service import HabilitacionService
from facturador.services.role_guard import require_admin, require_company_access

router = APIRouter(
    prefix="/api/habilitacion",
    tags=["Habilitación"],
    dependencies=[Depends(get_current_user)],
)


def _company_for(company_id: str, user: dict, service: HabilitacionService) -> Company:
    company = service.get_company(company_id)
    require_company_access(user, company_id)
    return company


@router.post("/empresa/{company_id}/registro")
async def registrar_facturador(
    company_id: str,
    body: Optional[RegistroRequest] = None,
    admin: dict = Depends(require_admin),
    service: HabilitacionService = Depends(get_habilitacion_service),
):
    """Registra la empresa como facturador electrónico."""
    company = _company_for(company_id, admin, service)
    result = await service.registrar(company, body or RegistroRequest())
    return {
        "success": result.success,
        "message": "Registro como facturador electrónico exitoso" if result.success
        else "Error en el registro como facturador electrónico",
        "data": result.model_dump(by_alias=True),
    }


@router.post("/empresa/{company_id}/resolucion")
async def solicitar_resolucion(
    company_id: str,
    body: ResolucionRequest,
    admin: dict = Depends(require_admin),
    service: HabilitacionService = Depends(get_habilitacion_service),
):
    """Solicita la resolución de numeración de facturación."""
    company = _company_for(company_id, admin, service)
    result = await service.solicitar_resolucion(company, body)
    return {
        "success": result.success,
        "message": "Resolución de facturación obtenida exitosamente" if result.success
        else "Error al solicitar resolución de facturación",
        "data": result.model_dump(by_alias=True),
    }


@router.post("/empresa/{company_id}/certificado", status_code=201)
async def generar_certificado(
    company_id: str,
    admin: dict = Depends(require_admin),
    service: HabilitacionService = Depends(get_habilitacion_service),
):
    """Genera y guarda un certificado digital simulado (queda como predeterminado)."""
    company = _company_for(company_id, admin, service)
    certificate = service.generar_certificado(company)
    return {
        "success": True,
        "message": "Certificado digital generado exitosamente",
        "data": certificate.to_public_dict(),
    }


@router.post("/empresa/{company_id}/test")
async def realizar_test(
    company_id: str,
    body: HabilitacionTestRequest,
    admin: dict = Depends(require_admin),
    service: HabilitacionService = Depends(get_habilitacion_service),
):
    """Ejecuta el test de habilitación; si aprueba, la empresa queda habilitada."""
    company = _company_for(company_id, admin, service)
    result = await service.realizar_test(company, body)
    return {
        "success": result.success,
        "message": "Test de habilitación exitoso. Empresa habilitada como facturador electrónico"
        if result.success else "Error en el test de habilitación",
        "data": result.model_dump(by_alias=True),
    }


@router.get("/empresa/{company_id}/estado")
async def obtener_estado(
    company_id: str,
    user: dict = Depends(get_current_user),
    service: HabilitacionService = Depends(get_habilitacion_service),
):
    company = _company_for(company_id, user, service)
    return {"success": True, "data": service.estado(company)}
