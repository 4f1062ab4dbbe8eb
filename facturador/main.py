"""
FACTURADOR-DIAN — Main API Application
FastAPI backend for an educational DIAN (Colombia) e-invoicing simulator.

Flow:
  1. POST /api/habilitacion/empresa/{id}/registro     → register as electronic biller
  2. POST /api/habilitacion/empresa/{id}/resolucion   → numbering resolution
  3. POST /api/habilitacion/empresa/{id}/certificado  → simulated signing certificate
  4. POST /api/habilitacion/empresa/{id}/test         → enablement test
  5. POST /api/invoices/{id}/send-to-dian             → sign + submit, get CUFE
  6. POST /api/dian-simulator/{validate-xml,send-invoice} → fire-and-poll by trackId

Architecture:
  - Nothing talks to the real DIAN: every authority response is simulated
    with configurable latency and rejection rate
  - Simulators are built once in facturador.dependencies from Settings
  - trackId process records are in-memory only, with TTL eviction
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from facturador.core.config import settings
from facturador.core.exceptions import FacturadorError
from facturador.database import init_db
from facturador.dependencies import get_process_store
from facturador.routers.certificate_router import router as certificate_router
from facturador.routers.dian_simulator_router import router as dian_simulator_router
from facturador.routers.habilitacion_router import router as habilitacion_router
from facturador.routers.invoice_router import router as invoice_router
from facturador.schemas.models import ApiResponse, HealthResponse

# ─────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("facturador")


# ─────────────────────────────────────────────────────────────
# PROCESS STORE CLEANUP
# ─────────────────────────────────────────────────────────────

async def _purge_expired_processes():
    """Background task: periodically drop expired trackId records."""
    store = get_process_store()
    while True:
        await asyncio.sleep(settings.process_cleanup_interval_seconds)
        store.purge_expired()


# ─────────────────────────────────────────────────────────────
# APP LIFECYCLE
# ─────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"🚀 {settings.app_name} v{settings.app_version} starting...")
    logger.info(f"   Database: {settings.database_url}")
    logger.info(
        f"   Simulation: delay {settings.simulation_delay_min}-{settings.simulation_delay_max}ms, "
        f"error rate {settings.simulation_error_rate:.0%}"
    )
    init_db()
    cleanup_task = asyncio.create_task(_purge_expired_processes())
    yield
    cleanup_task.cancel()
    logger.info(f"{settings.app_name} shutdown complete.")


# ─────────────────────────────────────────────────────────────
# FASTAPI APP
# ─────────────────────────────────────────────────────────────


# --- Rate Limiting ---
import jwt
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address


def _get_rate_limit_key(request):
    """Rate limit by user id if a bearer token is present, else by IP."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        try:
            token = auth_header.split(" ", 1)[1]
            # Unverified decode only to pick the bucket; auth happens in the dependency
            payload = jwt.decode(token, options={"verify_signature": False})
            return str(payload.get("id") or get_remote_address(request))
        except jwt.PyJWTError:
            pass
    return get_remote_address(request)


limiter = Limiter(key_func=_get_rate_limit_key, default_limits=[settings.rate_limit])

app = FastAPI(
    title="FACTURADOR-DIAN API",
    description=(
        "Backend educativo de facturación electrónica para Colombia. "
        "Simula la DIAN, la autoridad de certificación y el proceso de "
        "habilitación como facturador electrónico."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else ["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Rate limiter setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# ─────────────────────────────────────────────────────────────
# GLOBAL EXCEPTION HANDLERS
# ─────────────────────────────────────────────────────────────

def _envelope(status_code: int, message: str, error: str = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(success=False, message=message, error=error).model_dump(exclude_none=True),
    )


@app.exception_handler(FacturadorError)
async def facturador_error_handler(request: Request, exc: FacturadorError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    return _envelope(exc.status_code, exc.message, exc.code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Datos de entrada inválidos", "error": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _envelope(500, "Error interno del servidor", str(exc))


# ═════════════════════════════════════════════════════════════
# ROUTES
# ═════════════════════════════════════════════════════════════

@app.get("/health", response_model=HealthResponse, tags=["Sistema"])
async def health_check():
    """Verificar estado del servicio."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "simulation_error_rate": settings.simulation_error_rate,
        "simulation_delay_ms": [settings.simulation_delay_min, settings.simulation_delay_max],
    }


app.include_router(certificate_router)
app.include_router(dian_simulator_router)
app.include_router(habilitacion_router)
app.include_router(invoice_router)
