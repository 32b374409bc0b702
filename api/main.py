from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.v1.routes.router import api_router
from common.core.config import settings
from common.core.otel_axiom_exporter import _initialize_telemetry, get_logger
from common.db.session import dispose_engine
from common.providers.messaging import get_message_queue
from common.providers.rate_limiter.limiter import limiter

# Telemetry has to be configured before the first logger is handed out
_initialize_telemetry()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.app_name} ({settings.environment})...")
    yield
    logger.info("Shutting down billing API...")
    # Seller notifications are published from request handlers
    await get_message_queue().disconnect()
    await dispose_engine()


_is_local = settings.environment == "local"

app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs" if _is_local else None,
    redoc_url="/redoc" if _is_local else None,
    openapi_url="/openapi.json" if _is_local else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

FastAPIInstrumentor.instrument_app(app)

app.include_router(api_router, prefix="/api/v1")


@app.get("/healthz", include_in_schema=False)
async def healthz():
    """Liveness check; kept off /api/v1 so it never counts against rate limits."""
    return {"status": "ok"}
