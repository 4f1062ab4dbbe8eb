"""
FACTURADOR-DIAN Pydantic Schemas
Request/response models for the API and the simulator results.
JSON field names are camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from facturador.models.certificate import CertificateStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─────────────────────────────────────────────────────────────
# SIMULATOR RESULTS
# ─────────────────────────────────────────────────────────────

class SimulatedError(CamelModel):
    """(code, message) pair from an error catalog or a structural check."""
    code: str
    message: str


class SimulationResult(CamelModel):
    """Common shape of every simulated authority response."""
    success: bool
    track_id: str
    timestamp: str
    logs: list[str] = Field(default_factory=list)
    errors: list[SimulatedError] = Field(default_factory=list)


class DianSendResult(SimulationResult):
    cufe: Optional[str] = Field(None, description="32 hex chars, present iff accepted")


class RegistrationData(CamelModel):
    registration_id: str
    registration_date: str
    status: str = "REGISTERED"
    message: str = "Registro exitoso como facturador electrónico"


class RegistrationResult(SimulationResult):
    registration_data: Optional[RegistrationData] = None


class ResolutionData(CamelModel):
    resolution_number: str
    prefix: str
    range_from: int
    range_to: int
    issue_date: str
    expiry_date: str
    status: str = "APPROVED"


class ResolutionResult(SimulationResult):
    resolution_data: Optional[ResolutionData] = None


class HabilitacionTestOutcome(CamelModel):
    status: str = Field(..., description="APPROVED | FAILED")
    message: str
    details: str
    approval_date: Optional[str] = None


class HabilitacionTestResult(SimulationResult):
    test_results: HabilitacionTestOutcome


class XmlValidationResult(CamelModel):
    valid: bool
    errors: list[SimulatedError] = Field(default_factory=list)


# ─────────────────────────────────────────────────────────────
# REQUESTS
# ─────────────────────────────────────────────────────────────

class ValidateXmlRequest(CamelModel):
    xml_content: Optional[str] = None


class SendXmlRequest(CamelModel):
    xml_content: Optional[str] = None
    certificate_id: Optional[str] = None


class RegistroRequest(CamelModel):
    economic_activity: Optional[str] = None
    tax_regime: Optional[str] = None


class ResolucionRequest(CamelModel):
    prefix: Optional[str] = None
    range_from: Optional[int] = None
    range_to: Optional[int] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"examples": [{"prefix": "SETP", "rangeFrom": 990000000, "rangeTo": 995000000}]},
    )


class HabilitacionTestRequest(CamelModel):
    certificate_id: Optional[str] = None
    test_invoice_xml: Optional[str] = None


class InvoiceCreateRequest(CamelModel):
    number: str = Field(..., min_length=1, max_length=20)
    prefix: Optional[str] = Field(None, max_length=10)
    issue_date: date
    total: float = Field(0.0, ge=0)
    customer_name: str = Field(..., min_length=1, max_length=150)
    customer_email: Optional[str] = None


class CertificateUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[CertificateStatus] = None
    is_default: Optional[bool] = None


# ─────────────────────────────────────────────────────────────
# GENERIC
# ─────────────────────────────────────────────────────────────

class ApiResponse(BaseModel):
    """Response envelope shared by every endpoint."""
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    error: Optional[str] = None


class AcceptedResponse(CamelModel):
    """202 body for fire-and-poll operations."""
    success: bool = True
    message: str
    track_id: str
    status_url: str
    logs_url: str


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    simulation_error_rate: float
    simulation_delay_ms: list[int]
