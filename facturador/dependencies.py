"""
FACTURADOR-DIAN: Dependencias FastAPI
======================================
Raíz de composición: una instancia de cada simulador por proceso, construida
con la configuración explícita. Los tests las reemplazan con
app.dependency_overrides.
"""
from functools import lru_cache

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from facturador.core.config import settings
from facturador.database import get_db
from facturador.modules.certificate_simulator import CertificateSimulator
from facturador.modules.dian_simulator import DianSimulator
from facturador.modules.email_simulator import EmailSimulator
from facturador.modules.habilitacion_simulator import DianHabilitacionSimulator
from facturador.modules.process_store import ProcessStore
from facturador.services.certificate_service import CertificateService
from facturador.services.habilitacion_service import HabilitacionService
from facturador.services.invoice_service import InvoiceService

# ── Security scheme ──
security = HTTPBearer()


# ── Process-wide instances ──

@lru_cache()
def get_certificate_simulator() -> CertificateSimulator:
    return CertificateSimulator()


@lru_cache()
def get_dian_simulator() -> DianSimulator:
    return DianSimulator(settings.simulation_config())


@lru_cache()
def get_habilitacion_simulator() -> DianHabilitacionSimulator:
    return DianHabilitacionSimulator(settings.simulation_config())


@lru_cache()
def get_email_simulator() -> EmailSimulator:
    return EmailSimulator()


@lru_cache()
def get_process_store() -> ProcessStore:
    """trackId → process record store for the fire-and-poll endpoints."""
    return ProcessStore(
        ttl_seconds=settings.process_ttl_seconds,
        max_entries=settings.process_max_entries,
    )


# ── Per-request services ──

def get_invoice_service(
    db: Session = Depends(get_db),
    certificates: CertificateSimulator = Depends(get_certificate_simulator),
    dian: DianSimulator = Depends(get_dian_simulator),
    email: EmailSimulator = Depends(get_email_simulator),
) -> InvoiceService:
    return InvoiceService(db=db, certificates=certificates, dian=dian, email=email)


def get_habilitacion_service(
    db: Session = Depends(get_db),
    simulator: DianHabilitacionSimulator = Depends(get_habilitacion_simulator),
    certificates: CertificateSimulator = Depends(get_certificate_simulator),
) -> HabilitacionService:
    return HabilitacionService(db=db, simulator=simulator, certificates=certificates)


def get_certificate_service(db: Session = Depends(get_db)) -> CertificateService:
    return CertificateService(db=db)


# ── Auth dependency ──

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Valida el JWT (HS256) y retorna {user_id, company_id, role}.
    Usado como Depends() en todos los endpoints protegidos.
    """
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.PyJWTError:
        raise HTTPException(401, "Token inválido o expirado")

    if not payload.get("id"):
        raise HTTPException(401, "Token inválido o expirado")

    return {
        "user_id": payload["id"],
        "company_id": payload.get("company_id"),
        "role": payload.get("role", "viewer"),
    }


def create_access_token(user_id: str, company_id: str, role: str = "admin") -> str:
    """HS256 token with the claims get_current_user expects."""
    return jwt.encode(
        {"id": user_id, "company_id": company_id, "role": role},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
