"""
FACTURADOR-DIAN — Habilitación service
Orchestrates the enrollment workflow over DianHabilitacionSimulator and
persists each successful phase on the Company.

Stages are derived from the company row, never stored:

    UNREGISTERED ─registro─► REGISTERED ─resolución─► HAS_RESOLUTION ─test─► HABILITADO

Each guard runs before the simulator is called, so an out-of-order request
costs no simulated latency.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from facturador.core.exceptions import BusinessRuleError, FacturadorError, NotFoundError
from facturador.models.certificate import Certificate, CertificateStatus
from facturador.models.company import Company
from facturador.modules.certificate_simulator import CertificateSimulator
from facturador.modules.habilitacion_simulator import DianHabilitacionSimulator
from facturador.schemas.models import (
    HabilitacionTestRequest,
    HabilitacionTestResult,
    RegistrationResult,
    RegistroRequest,
    ResolucionRequest,
    ResolutionResult,
)
from facturador.services.certificate_service import demote_defaults, expire_outdated

logger = logging.getLogger(__name__)

# Used when the caller does not send its own test invoice
DEFAULT_TEST_INVOICE_XML = "<fe:Invoice>...</fe:Invoice>"


class HabilitacionStage(str, Enum):
    UNREGISTERED = "UNREGISTERED"
    REGISTERED = "REGISTERED"
    HAS_RESOLUTION = "HAS_RESOLUTION"
    HABILITADO = "HABILITADO"


def stage_of(company: Company) -> HabilitacionStage:
    if company.is_authorized:
        return HabilitacionStage.HABILITADO
    if company.authorization_number:
        return HabilitacionStage.HAS_RESOLUTION
    if company.is_registered:
        return HabilitacionStage.REGISTERED
    return HabilitacionStage.UNREGISTERED


class HabilitacionError(FacturadorError):
    """Enrollment step requested from the wrong stage."""
    status_code = 400

    def __init__(self, stage: HabilitacionStage, message: str):
        self.stage = stage
        super().__init__(message, code="HABILITACION_STAGE")


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value)


class HabilitacionService:

    def __init__(
        self,
        db: Session,
        simulator: DianHabilitacionSimulator,
        certificates: CertificateSimulator,
    ):
        self.db = db
        self.simulator = simulator
        self.certificates = certificates

    def get_company(self, company_id: str) -> Company:
        company = self.db.get(Company, company_id)
        if company is None:
            raise NotFoundError("Empresa no encontrada")
        return company

    # ── Phase 1 ──

    async def registrar(self, company: Company, body: RegistroRequest) -> RegistrationResult:
        stage = stage_of(company)
        if stage != HabilitacionStage.UNREGISTERED:
            raise HabilitacionError(stage, "La empresa ya está registrada como facturador electrónico")

        profile = {
            "nit": company.nit,
            "dv": company.dv,
            "economic_activity": company.economic_activity or body.economic_activity,
            "tax_regime": company.tax_regime or body.tax_regime,
        }
        result = await self.simulator.registrar_facturador_electronico(profile)

        if result.success:
            company.economic_activity = profile["economic_activity"]
            company.tax_regime = profile["tax_regime"]
            company.is_registered = True
            company.registration_id = result.registration_data.registration_id
            company.registration_date = _parse_iso(result.registration_data.registration_date)
            self.db.commit()
            logger.info(f"Company {company.nit} registered as electronic biller")
        return result

    # ── Phase 2 ──

    async def solicitar_resolucion(self, company: Company, body: ResolucionRequest) -> ResolutionResult:
        if not body.prefix or not body.range_from or not body.range_to:
            raise BusinessRuleError("Debe especificar prefijo y rango de numeración")

        stage = stage_of(company)
        if stage == HabilitacionStage.UNREGISTERED:
            raise HabilitacionError(
                stage, "La empresa debe registrarse como facturador electrónico antes de solicitar una resolución",
            )
        if stage != HabilitacionStage.REGISTERED:
            raise HabilitacionError(stage, "La empresa ya tiene una resolución de facturación")

        result = await self.simulator.solicitar_resolucion_facturacion(company, {
            "prefix": body.prefix,
            "range_from": body.range_from,
            "range_to": body.range_to,
        })

        if result.success:
            data = result.resolution_data
            company.authorization_number = data.resolution_number
            company.authorization_date = _parse_iso(data.issue_date)
            company.authorization_prefix = data.prefix
            company.authorization_range_from = data.range_from
            company.authorization_range_to = data.range_to
            self.db.commit()
            logger.info(f"Company {company.nit} obtained resolution {data.resolution_number}")
        return result

    # ── Certificate ──

    def generar_certificado(self, company: Company) -> Certificate:
        data = self.certificates.generate_certificate(company.name, company.nit)

        demote_defaults(self.db, company.id)
        certificate = Certificate(company_id=company.id, **data)
        self.db.add(certificate)
        self.db.commit()
        self.db.refresh(certificate)
        logger.info(f"Certificate {certificate.serial_number} stored for company {company.nit}")
        return certificate

    # ── Phase 3 ──

    async def realizar_test(self, company: Company, body: HabilitacionTestRequest) -> HabilitacionTestResult:
        if not body.certificate_id:
            raise BusinessRuleError("Debe especificar un certificado digital")

        stage = stage_of(company)
        if stage == HabilitacionStage.HABILITADO:
            raise HabilitacionError(stage, "La empresa ya está habilitada como facturador electrónico")
        if stage != HabilitacionStage.HAS_RESOLUTION:
            raise HabilitacionError(
                stage, "La empresa debe tener una resolución de facturación antes de realizar el test",
            )

        expire_outdated(self.db, company.id)
        certificate = (
            self.db.query(Certificate)
            .filter(
                Certificate.id == body.certificate_id,
                Certificate.company_id == company.id,
                Certificate.status == CertificateStatus.ACTIVE,
            )
            .first()
        )
        if certificate is None:
            raise NotFoundError("Certificado digital no encontrado o no válido")

        result = await self.simulator.realizar_test_habilitacion(company, {
            "certificate_id": certificate.id,
            "test_invoice_xml": body.test_invoice_xml or DEFAULT_TEST_INVOICE_XML,
        })

        if result.success:
            company.is_authorized = True
            self.db.commit()
            logger.info(f"Company {company.nit} is now enabled for electronic invoicing")
        return result

    # ── Status ──

    def estado(self, company: Company) -> dict[str, Any]:
        certificates = (
            self.db.query(Certificate)
            .filter(Certificate.company_id == company.id)
            .order_by(Certificate.is_default.desc(), Certificate.created_at.desc())
            .all()
        )
        return {
            "etapa": stage_of(company).value,
            "registrado": bool(company.is_registered),
            "tieneResolucion": bool(company.authorization_number),
            "tieneCertificado": len(certificates) > 0,
            "habilitado": bool(company.is_authorized),
            "registro": {
                "id": company.registration_id,
                "fecha": company.registration_date.isoformat() if company.registration_date else None,
            } if company.is_registered else None,
            "resolucion": {
                "numero": company.authorization_number,
                "fecha": company.authorization_date.isoformat() if company.authorization_date else None,
                "prefijo": company.authorization_prefix,
                "rangoDesde": company.authorization_range_from,
                "rangoHasta": company.authorization_range_to,
            } if company.authorization_number else None,
            "certificados": [
                {
                    "id": cert.id,
                    "nombre": cert.name,
                    "fechaEmision": cert.issue_date.isoformat(),
                    "fechaExpiracion": cert.expiry_date.isoformat(),
                    "numeroSerie": cert.serial_number,
                    "emisor": cert.issuer,
                    "estado": cert.status.value,
                    "esPredeterminado": cert.is_default,
                }
                for cert in certificates
            ],
        }
