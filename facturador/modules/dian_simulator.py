"""
FACTURADOR-DIAN — Module 2: DianSimulator
Simulates submission of a signed invoice to the tax authority.

Flow:
1. Pick a random latency within [delay_min, delay_max]
2. Run the step-by-step validation (structure, certificate, signature,
   issuer, receiver, taxes, CUFE), producing timestamped log lines
3. A structural failure (malformed XML, not an invoice, missing certificate)
   short-circuits the log and rejects deterministically
4. Otherwise a weighted coin (error_rate) decides a business-rule rejection,
   reported with 1-2 entries of the DIAN error catalog
5. Await the latency and return the verdict

The simulator consumes already-signed XML. Signing happens in the caller
(see CertificateSimulator and InvoiceService).
"""

import hashlib
import logging
from typing import Any, Optional
from xml.parsers import expat

from facturador.modules.simulation import BaseSimulator, ValidationLog
from facturador.schemas.models import DianSendResult, SimulatedError, XmlValidationResult
from facturador.utils.dian_helpers import fail, log_line, ok, utc_now_iso

logger = logging.getLogger(__name__)

DIAN_ERROR_CATALOG: tuple[tuple[str, str], ...] = (
    ("DIAN-FAC-001", "El NIT del emisor no está autorizado para facturar electrónicamente"),
    ("DIAN-FAC-002", "La numeración de la factura no corresponde a rangos autorizados"),
    ("DIAN-FAC-003", "Error en los cálculos de impuestos. Valores inconsistentes"),
    ("DIAN-FAC-004", "La fecha de emisión es posterior a la fecha actual"),
    ("DIAN-FAC-005", "El certificado digital ha expirado o no es válido"),
    ("DIAN-FAC-006", "La firma digital no es válida o no corresponde al emisor"),
    ("DIAN-FAC-007", "El XML no cumple con el esquema UBL 2.1 requerido"),
)

INVOICE_MARKERS = ("<fe:Invoice", "<Invoice")
NOT_AN_INVOICE = "El documento no parece ser una factura electrónica válida"

# Step latencies (ms) of the validation narrative
_STEP_DELAYS = {
    "structure": 300,
    "certificate": 200,
    "signature": 400,
    "issuer": 250,
    "receiver": 250,
    "taxes": 300,
    "cufe": 200,
}


def parse_structure(xml_content: Optional[str]) -> None:
    """
    Well-formedness check. Prefixes are treated as plain names, so an
    undeclared `fe:` prefix is accepted. Raises expat.ExpatError.
    """
    parser = expat.ParserCreate()
    parser.Parse(xml_content or "", True)


def is_invoice_document(xml_content: str) -> bool:
    return any(marker in xml_content for marker in INVOICE_MARKERS)


def _public_key_of(certificate: Any) -> Optional[str]:
    if certificate is None:
        return None
    if isinstance(certificate, dict):
        return certificate.get("public_key") or certificate.get("publicKey")
    return getattr(certificate, "public_key", None)


class DianSimulator(BaseSimulator):
    """
    Usage:
        dian = DianSimulator(SimulationConfig(0, 0, 0.05))
        result = await dian.send_invoice(signed_xml, certificate)
        if result.success:
            invoice.cufe = result.cufe
    """

    async def send_invoice(self, xml_content: str, certificate: Any) -> DianSendResult:
        logger.info("🔄 Iniciando simulación de envío a DIAN...")

        delay = self.random_delay_ms()
        logger.info(f"⏱️ Tiempo estimado de respuesta: {delay}ms")

        validation = await self._simulate_validation_process(xml_content, certificate)

        business_rejection = self.is_rejected()

        if not validation.is_valid:
            success = False
            errors = [validation.failure]
        elif business_rejection:
            success = False
            errors = self.pick_errors(DIAN_ERROR_CATALOG)
        else:
            success = True
            errors = []

        result = DianSendResult(
            success=success,
            track_id=self.new_track_id(),
            timestamp=utc_now_iso(),
            logs=validation.lines,
            errors=errors,
            cufe=self.generate_cufe(xml_content) if success else None,
        )

        await self.network_latency(delay)

        if success:
            logger.info(f"✅ Simulación completada. Resultado: APROBADO (cufe={result.cufe})")
        else:
            logger.warning(
                f"Simulación completada. Resultado: RECHAZADO "
                f"({', '.join(e.code for e in errors)})"
            )
        return result

    @staticmethod
    def generate_cufe(xml_content: str) -> str:
        """SHA-256 of the document, first 32 hex chars, uppercase. Deterministic."""
        digest = hashlib.sha256((xml_content or "").encode("utf-8")).hexdigest()
        return digest[:32].upper()

    def validate_xml(self, xml_content: str) -> tuple[list[str], XmlValidationResult]:
        """
        Structure-only validation used by the validate-xml endpoint.
        Returns the log lines and the {valid, errors} verdict.
        """
        logs: list[str] = []
        try:
            parse_structure(xml_content)
        except expat.ExpatError as e:
            message = f"Error en estructura XML: {e}"
            logs.append(fail(message))
            return logs, XmlValidationResult(
                valid=False, errors=[SimulatedError(code="XML-001", message=message)],
            )

        logs.append(ok("Estructura XML válida según UBL 2.1"))

        if not is_invoice_document(xml_content):
            logs.append(fail(NOT_AN_INVOICE))
            return logs, XmlValidationResult(
                valid=False, errors=[SimulatedError(code="UBL-001", message=NOT_AN_INVOICE)],
            )

        logs.append(ok("Documento reconocido como factura electrónica"))
        logs.append(log_line("Verificando elementos obligatorios..."))
        logs.append(ok("Elementos obligatorios presentes"))
        logs.append(log_line("Verificando estructura específica DIAN..."))
        logs.append(ok("Estructura DIAN válida"))
        return logs, XmlValidationResult(valid=True)

    async def _simulate_validation_process(self, xml_content: str, certificate: Any) -> ValidationLog:
        log = self.new_log()

        await log.step("Verificando estructura del documento XML...", _STEP_DELAYS["structure"])
        try:
            parse_structure(xml_content)
        except expat.ExpatError as e:
            log.failed(f"Error en estructura XML: {e}", code="XML-001")
            return log
        log.passed("Estructura XML válida según UBL 2.1")

        if not is_invoice_document(xml_content):
            log.failed(NOT_AN_INVOICE, code="UBL-001")
            return log

        await log.step("Verificando certificado digital...", _STEP_DELAYS["certificate"])
        if not _public_key_of(certificate):
            log.failed("Certificado digital inválido o no proporcionado", code="CERT-001")
            return log
        log.passed("Certificado digital válido")

        await log.step("Verificando firma digital...", _STEP_DELAYS["signature"])
        log.passed("Firma digital válida")

        await log.step("Validando información del emisor...", _STEP_DELAYS["issuer"])
        log.passed("Información del emisor validada")

        await log.step("Validando información del receptor...", _STEP_DELAYS["receiver"])
        log.passed("Información del receptor validada")

        await log.step("Validando cálculos de impuestos...", _STEP_DELAYS["taxes"])
        log.passed("Cálculos de impuestos validados")

        await log.step("Generando CUFE...", _STEP_DELAYS["cufe"])
        log.passed(f"CUFE generado: {self.generate_cufe(xml_content)}")

        return log
