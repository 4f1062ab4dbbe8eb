"""
FACTURADOR-DIAN — Certificate service
Digital certificates of a company after issuance: listing, status changes,
default selection and removal.

    PENDING ──► ACTIVE ──► EXPIRED ──► REVOKED
       └───────────┴──────────────────► REVOKED

An ACTIVE certificate past its expiry date is moved to EXPIRED whenever the
company's certificates are read for signing or listing.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from facturador.core.exceptions import BusinessRuleError, ForbiddenError, NotFoundError
from facturador.models.certificate import Certificate, CertificateStatus
from facturador.schemas.models import CertificateUpdateRequest

logger = logging.getLogger(__name__)

CERTIFICATE_TRANSITIONS: dict[CertificateStatus, frozenset[CertificateStatus]] = {
    CertificateStatus.PENDING: frozenset({CertificateStatus.ACTIVE, CertificateStatus.REVOKED}),
    CertificateStatus.ACTIVE: frozenset({CertificateStatus.EXPIRED, CertificateStatus.REVOKED}),
    CertificateStatus.EXPIRED: frozenset({CertificateStatus.REVOKED}),
    CertificateStatus.REVOKED: frozenset(),
}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_expired(certificate: Certificate, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return _as_utc(certificate.expiry_date) <= now


def demote_defaults(db: Session, company_id: str, keep_id: Optional[str] = None) -> None:
    """A company has at most one default certificate."""
    query = db.query(Certificate).filter(
        Certificate.company_id == company_id, Certificate.is_default.is_(True),
    )
    if keep_id is not None:
        query = query.filter(Certificate.id != keep_id)
    query.update({Certificate.is_default: False}, synchronize_session="fetch")


def expire_outdated(db: Session, company_id: str, now: Optional[datetime] = None) -> int:
    """Mark the company's ACTIVE certificates past expiry as EXPIRED. Not committed."""
    now = now or datetime.now(timezone.utc)
    active = (
        db.query(Certificate)
        .filter(Certificate.company_id == company_id, Certificate.status == CertificateStatus.ACTIVE)
        .all()
    )
    expired = 0
    for certificate in active:
        if is_expired(certificate, now):
            certificate.status = CertificateStatus.EXPIRED
            certificate.is_default = False
            expired += 1
            logger.info(f"Certificate {certificate.serial_number} expired on {certificate.expiry_date}")
    return expired


def signing_certificate(db: Session, company_id: str) -> Optional[Certificate]:
    """The default ACTIVE certificate, else the newest ACTIVE one."""
    expire_outdated(db, company_id)
    return (
        db.query(Certificate)
        .filter(Certificate.company_id == company_id, Certificate.status == CertificateStatus.ACTIVE)
        .order_by(Certificate.is_default.desc(), Certificate.created_at.desc())
        .first()
    )


class CertificateService:

    def __init__(self, db: Session):
        self.db = db

    def list_for_company(self, company_id: str) -> list[Certificate]:
        if expire_outdated(self.db, company_id):
            self.db.commit()
        return (
            self.db.query(Certificate)
            .filter(Certificate.company_id == company_id)
            .order_by(Certificate.is_default.desc(), Certificate.created_at.desc())
            .all()
        )

    def get(self, certificate_id: str, company_id: str) -> Certificate:
        certificate = self.db.get(Certificate, certificate_id)
        if certificate is None:
            raise NotFoundError("Certificado no encontrado")
        if certificate.company_id != company_id:
            raise ForbiddenError()
        return certificate

    def update(self, certificate_id: str, company_id: str, data: CertificateUpdateRequest) -> Certificate:
        certificate = self.get(certificate_id, company_id)

        if data.name is not None:
            certificate.name = data.name

        if data.status is not None and data.status != certificate.status:
            if data.status not in CERTIFICATE_TRANSITIONS[certificate.status]:
                raise BusinessRuleError(
                    f"Transición de estado inválida para el certificado: "
                    f"{certificate.status.value} → {data.status.value}"
                )
            if data.status == CertificateStatus.ACTIVE and is_expired(certificate):
                raise BusinessRuleError("No se puede activar un certificado vencido")
            certificate.status = data.status
            if data.status != CertificateStatus.ACTIVE:
                certificate.is_default = False
            logger.info(f"Certificate {certificate.serial_number} → {data.status.value}")

        if data.is_default:
            if certificate.status != CertificateStatus.ACTIVE or is_expired(certificate):
                raise BusinessRuleError("Solo un certificado activo puede ser el predeterminado")
            demote_defaults(self.db, company_id, keep_id=certificate.id)
            certificate.is_default = True
        elif data.is_default is False:
            certificate.is_default = False

        self.db.commit()
        self.db.refresh(certificate)
        return certificate

    def delete(self, certificate_id: str, company_id: str) -> None:
        certificate = self.get(certificate_id, company_id)
        self.db.delete(certificate)
        self.db.commit()
        logger.info(f"Certificate {certificate.serial_number} deleted (company={company_id})")
