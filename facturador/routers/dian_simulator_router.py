"""
FACTURADOR-DIAN: DIAN Simulator Router
=======================================
Fire-and-poll endpoints over DianSimulator.

POST /validate-xml and /send-invoice answer 202 with a trackId right away;
the work runs as a background task after a fixed processing delay and its
outcome is read from /status/{trackId} and /logs/{trackId}.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from facturador.core.config import settings
from facturador.core.exceptions import NotFoundError
from facturador.database import get_db
from facturador.dependencies import (
    get_certificate_simulator,
    get_current_user,
    get_dian_simulator,
    get_process_store,
)
from facturador.models.certificate import Certificate
from facturador.modules.certificate_simulator import CertificateSimulator
from facturador.modules.dian_simulator import DianSimulator
from facturador.modules.process_store import ProcessStore
from facturador.schemas.models import AcceptedResponse, SendXmlRequest, ValidateXmlRequest
from facturador.utils.dian_helpers import generate_track_id, log_line

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/dian-simulator",
    tags=["DIAN Simulator"],
    dependencies=[Depends(get_current_user)],
)


def _accepted(track_id: str, message: str) -> AcceptedResponse:
    return AcceptedResponse(
        message=message,
        track_id=track_id,
        status_url=f"{router.prefix}/status/{track_id}",
        logs_url=f"{router.prefix}/logs/{track_id}",
    )


# ─────────────────────────────────────────────────────────────
# BACKGROUND JOBS
# ─────────────────────────────────────────────────────────────

async def run_xml_validation(
    track_id: str, xml_content: str, dian: DianSimulator, store: ProcessStore, delay_ms: int,
):
    try:
        await dian.sleep(delay_ms / 1000)
        logs, verdict = dian.validate_xml(xml_content)
        store.append_logs(track_id, logs)
        store.complete(
            track_id,
            "Validación completada exitosamente" if verdict.valid else "Validación completada con errores",
            verdict.model_dump(by_alias=True),
        )
    except Exception as e:
        logger.exception(f"Error en proceso asíncrono de validación XML ({track_id})")
        store.fail(track_id, "Error interno al procesar la validación", str(e))


async def run_invoice_submission(
    track_id: str,
    xml_content: str,
    certificate: dict,
    dian: DianSimulator,
    certificates: CertificateSimulator,
    store: ProcessStore,
    delay_ms: int,
):
    try:
        await dian.sleep(delay_ms / 1000)
        signed_xml = certificates.sign_xml(xml_content, certificate["private_key"])
        response = await dian.send_invoice(signed_xml, certificate)
        store.append_logs(track_id, response.logs)
        store.complete(
            track_id,
            "Factura procesada exitosamente" if response.success else "Factura rechazada",
            {
                "success": response.success,
                "cufe": response.cufe,
                "errors": [e.model_dump() for e in response.errors],
            },
        )
    except Exception as e:
        logger.exception(f"Error en proceso asíncrono de envío de factura ({track_id})")
        store.fail(track_id, "Error interno al procesar el envío", str(e))


# ─────────────────────────────────────────────────────────────
# ENDPOINTS
# ─────────────────────────────────────────────────────────────

@router.post("/validate-xml", status_code=202, response_model=AcceptedResponse)
async def validate_xml(
    body: ValidateXmlRequest,
    background_tasks: BackgroundTasks,
    dian: DianSimulator = Depends(get_dian_simulator),
    store: ProcessStore = Depends(get_process_store),
):
    """Valida la estructura de un XML (UBL 2.1) de forma asíncrona."""
    if not body.xml_content:
        raise HTTPException(400, "Debe proporcionar el contenido XML a validar")

    track_id = generate_track_id()
    store.start(track_id, log_line("Iniciando validación de estructura XML..."), "Validando estructura XML")
    background_tasks.add_task(
        run_xml_validation, track_id, body.xml_content, dian, store,
        settings.validation_processing_delay_ms,
    )
    return _accepted(track_id, "Validación iniciada")


@router.post("/send-invoice", status_code=202, response_model=AcceptedResponse)
async def send_invoice(
    body: SendXmlRequest,
    background_tasks: BackgroundTasks,
    user: dict = Depends(get_current_user),
    db: Session = Depends(get_db),
    dian: DianSimulator = Depends(get_dian_simulator),
    certificates: CertificateSimulator = Depends(get_certificate_simulator),
    store: ProcessStore = Depends(get_process_store),
):
    """Firma y envía una factura a la DIAN simulada de forma asíncrona."""
    if not body.xml_content or not body.certificate_id:
        raise HTTPException(400, "Debe proporcionar el contenido XML y el ID del certificado")

    certificate = (
        db.query(Certificate)
        .filter(Certificate.id == body.certificate_id, Certificate.company_id == user["company_id"])
        .first()
    )
    if certificate is None:
        raise NotFoundError("Certificado no encontrado")

    # The request session is closed before the background task runs
    key_material = {
        "id": certificate.id,
        "public_key": certificate.public_key,
        "private_key": certificate.private_key,
    }

    track_id = generate_track_id()
    store.start(track_id, log_line("Iniciando envío de factura a la DIAN..."), "Procesando envío de factura")
    background_tasks.add_task(
        run_invoice_submission, track_id, body.xml_content, key_material, dian, certificates, store,
        settings.send_processing_delay_ms,
    )
    return _accepted(track_id, "Envío iniciado")


@router.get("/logs/{track_id}")
async def get_process_logs(track_id: str, store: ProcessStore = Depends(get_process_store)):
    record = store.get(track_id)
    if record is None:
        raise NotFoundError("Proceso no encontrado")
    return {"success": True, "data": record.logs}


@router.get("/status/{track_id}")
async def get_process_status(track_id: str, store: ProcessStore = Depends(get_process_store)):
    record = store.get(track_id)
    if record is None:
        raise NotFoundError("Proceso no encontrado")
    return {"success": True, "data": record.status_dict()}
