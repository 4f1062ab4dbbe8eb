"""
FACTURADOR-DIAN — Module 3: DianHabilitacionSimulator
Simulates the enrollment ("habilitación") of a company as an electronic biller.

Three phases, semantically ordered but independently callable:
1. registrar_facturador_electronico: NIT/DV, economic activity, tax regime
2. solicitar_resolucion_facturacion: prefix + numbering range → resolution number
3. realizar_test_habilitacion: resolution, certificate, test invoice

Each phase:
- builds an async, step-by-step validation log (300–1000 ms per step)
- waits a network latency of base delay × phase weight (1, 2, 3)
- fails deterministically on a missing required field (structural failure)
- otherwise rejects with probability error_rate using its own error catalog

The simulator never persists anything and never checks phase ordering;
HabilitacionService enforces the stage machine before calling it.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from facturador.modules.simulation import BaseSimulator, ValidationLog
from facturador.schemas.models import (
    HabilitacionTestOutcome,
    HabilitacionTestResult,
    RegistrationData,
    RegistrationResult,
    ResolutionData,
    ResolutionResult,
)
from facturador.utils.dian_helpers import add_years, utc_now_iso

logger = logging.getLogger(__name__)

REGISTRATION_ERRORS: tuple[tuple[str, str], ...] = (
    ("REG-001", "NIT no registrado en el RUT"),
    ("REG-002", "Dígito de verificación incorrecto"),
    ("REG-003", "Actividad económica no compatible con facturación electrónica"),
    ("REG-004", "Régimen tributario no especificado"),
    ("REG-005", "Datos de contacto incompletos"),
)

RESOLUTION_ERRORS: tuple[tuple[str, str], ...] = (
    ("RES-001", "Empresa no registrada como facturador electrónico"),
    ("RES-002", "Prefijo ya utilizado por otro facturador"),
    ("RES-003", "Rango de numeración inválido"),
    ("RES-004", "Solicitud incompleta"),
    ("RES-005", "Excede el límite de resoluciones permitidas"),
)

TEST_ERRORS: tuple[tuple[str, str], ...] = (
    ("TEST-001", "Certificado digital inválido o expirado"),
    ("TEST-002", "Factura de prueba no cumple con el estándar UBL 2.1"),
    ("TEST-003", "Firma digital inválida"),
    ("TEST-004", "CUFE generado incorrectamente"),
    ("TEST-005", "Campos obligatorios faltantes en la factura de prueba"),
    ("TEST-006", "Error en la comunicación con el servicio de validación"),
)

RESOLUTION_NUMBER_PREFIX = "18764"
RESOLUTION_VALIDITY_YEARS = 2

RESOLUTION_DELAY_FACTOR = 2
TEST_DELAY_FACTOR = 3


def _get(data: Any, name: str) -> Any:
    if data is None:
        return None
    if isinstance(data, dict):
        return data.get(name)
    return getattr(data, name, None)


class DianHabilitacionSimulator(BaseSimulator):

    # ══════════════════════════════════════════════════════════
    # PHASE 1: REGISTRO
    # ══════════════════════════════════════════════════════════

    async def registrar_facturador_electronico(self, company: Any) -> RegistrationResult:
        logger.info("🔄 Iniciando simulación de registro como facturador electrónico...")
        delay = self.random_delay_ms()
        logger.info(f"⏱️ Tiempo estimado de respuesta: {delay}ms")

        validation = await self._simulate_registration_process(company)
        success, errors = self._verdict(validation, REGISTRATION_ERRORS)

        result = RegistrationResult(
            success=success,
            track_id=self.new_track_id(),
            timestamp=utc_now_iso(),
            logs=validation.lines,
            errors=errors,
            registration_data=RegistrationData(
                registration_id=self.new_track_id(),
                registration_date=utc_now_iso(),
            ) if success else None,
        )

        await self.network_latency(delay)
        self._log_verdict(success)
        return result

    # ══════════════════════════════════════════════════════════
    # PHASE 2: RESOLUCIÓN DE FACTURACIÓN
    # ══════════════════════════════════════════════════════════

    async def solicitar_resolucion_facturacion(self, company: Any, request_data: Any) -> ResolutionResult:
        logger.info("🔄 Iniciando simulación de solicitud de resolución de facturación...")
        delay = self.random_delay_ms() * RESOLUTION_DELAY_FACTOR
        logger.info(f"⏱️ Tiempo estimado de respuesta: {delay}ms")

        validation = await self._simulate_resolution_request_process(company, request_data)
        success, errors = self._verdict(validation, RESOLUTION_ERRORS)

        resolution_data = None
        if success:
            issue_date = datetime.now(timezone.utc)
            resolution_data = ResolutionData(
                resolution_number=self.generate_resolution_number(),
                prefix=_get(request_data, "prefix"),
                range_from=_get(request_data, "range_from"),
                range_to=_get(request_data, "range_to"),
                issue_date=issue_date.isoformat(),
                expiry_date=add_years(issue_date, RESOLUTION_VALIDITY_YEARS).isoformat(),
            )

        result = ResolutionResult(
            success=success,
            track_id=self.new_track_id(),
            timestamp=utc_now_iso(),
            logs=validation.lines,
            errors=errors,
            resolution_data=resolution_data,
        )

        await self.network_latency(delay)
        self._log_verdict(success)
        return result

    # ══════════════════════════════════════════════════════════
    # PHASE 3: TEST DE HABILITACIÓN
    # ══════════════════════════════════════════════════════════

    async def realizar_test_habilitacion(self, company: Any, test_data: Any) -> HabilitacionTestResult:
        logger.info("🔄 Iniciando simulación de test de habilitación...")
        delay = self.random_delay_ms() * TEST_DELAY_FACTOR
        logger.info(f"⏱️ Tiempo estimado de respuesta: {delay}ms")

        validation = await self._simulate_test_process(company, test_data)
        success, errors = self._verdict(validation, TEST_ERRORS)

        if success:
            outcome = HabilitacionTestOutcome(
                status="APPROVED",
                message="Test de habilitación exitoso",
                details="Todos los criterios de habilitación cumplidos",
                approval_date=utc_now_iso(),
            )
        else:
            outcome = HabilitacionTestOutcome(
                status="FAILED",
                message="Test de habilitación fallido",
                details="Se encontraron errores en el proceso de habilitación",
            )

        result = HabilitacionTestResult(
            success=success,
            track_id=self.new_track_id(),
            timestamp=utc_now_iso(),
            logs=validation.lines,
            errors=errors,
            test_results=outcome,
        )

        await self.network_latency(delay)
        self._log_verdict(success)
        return result

    def generate_resolution_number(self) -> str:
        """Resolution number: 18764 followed by 8 random digits (13 chars)."""
        return f"{RESOLUTION_NUMBER_PREFIX}{self.rng.randrange(100_000_000):08d}"

    # ─────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────

    def _verdict(self, validation: ValidationLog, catalog) -> tuple[bool, list]:
        business_rejection = self.is_rejected()
        if not validation.is_valid:
            return False, [validation.failure]
        if business_rejection:
            return False, self.pick_errors(catalog)
        return True, []

    @staticmethod
    def _log_verdict(success: bool) -> None:
        if success:
            logger.info("✅ Simulación completada. Resultado: APROBADO")
        else:
            logger.warning("Simulación completada. Resultado: RECHAZADO")

    async def _simulate_registration_process(self, company: Any) -> ValidationLog:
        log = self.new_log()

        await log.step("Verificando datos de la empresa...", 500)
        if not _get(company, "nit") or not _get(company, "dv"):
            log.failed("NIT o dígito de verificación inválido", code="REG-VAL-001")
            return log
        log.passed("NIT y dígito de verificación válidos")

        await log.step("Verificando existencia en el RUT...", 700)
        log.passed("Empresa encontrada en el RUT")

        await log.step("Verificando actividad económica...", 600)
        if not _get(company, "economic_activity"):
            log.failed("Actividad económica no especificada", code="REG-VAL-002")
            return log
        log.passed("Actividad económica válida")

        await log.step("Verificando régimen tributario...", 500)
        if not _get(company, "tax_regime"):
            log.failed("Régimen tributario no especificado", code="REG-VAL-003")
            return log
        log.passed("Régimen tributario válido")

        await log.step("Registrando como facturador electrónico...", 800)
        log.passed("Registro completado exitosamente")
        return log

    async def _simulate_resolution_request_process(self, company: Any, request_data: Any) -> ValidationLog:
        log = self.new_log()

        # Prior registration is the caller's guard; this step is narrative
        await log.step("Verificando registro como facturador electrónico...", 600)
        log.passed("Empresa registrada como facturador electrónico")

        await log.step("Verificando datos de la solicitud...", 700)
        prefix = _get(request_data, "prefix")
        if not prefix:
            log.failed("Prefijo no especificado", code="RES-VAL-001")
            return log
        log.passed(f"Prefijo válido: {prefix}")

        await log.step("Verificando rango solicitado...", 500)
        range_from = _get(request_data, "range_from")
        range_to = _get(request_data, "range_to")
        if not range_from or not range_to or range_from >= range_to:
            log.failed("Rango inválido", code="RES-VAL-002")
            return log
        log.passed(f"Rango válido: {range_from} - {range_to}")

        await log.step("Verificando disponibilidad del prefijo...", 800)
        log.passed("Prefijo disponible")

        await log.step("Generando resolución...", 1000)
        log.passed("Resolución generada exitosamente")
        return log

    async def _simulate_test_process(self, company: Any, test_data: Any) -> ValidationLog:
        log = self.new_log()

        await log.step("Verificando resolución de facturación...", 700)
        if not _get(company, "authorization_number"):
            log.failed("Resolución de facturación no encontrada", code="TEST-VAL-001")
            return log
        log.passed("Resolución de facturación válida")

        await log.step("Verificando certificado digital...", 800)
        if not _get(test_data, "certificate_id"):
            log.failed("Certificado digital no proporcionado", code="TEST-VAL-002")
            return log
        log.passed("Certificado digital válido")

        await log.step("Verificando factura de prueba...", 900)
        if not _get(test_data, "test_invoice_xml"):
            log.failed("Factura de prueba no proporcionada", code="TEST-VAL-003")
            return log
        log.passed("Factura de prueba válida")

        # Narrative checks
        await log.step("Verificando firma digital...", 700)
        log.passed("Firma digital válida")

        await log.step("Verificando estructura UBL...", 800)
        log.passed("Estructura UBL válida")

        await log.step("Verificando CUFE...", 600)
        log.passed("CUFE válido")

        await log.step("Procesando habilitación...", 1000)
        log.passed("Habilitación completada exitosamente")
        return log
