import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

from app.config import settings
from app.api.v1 import auth, meters, readings, facilities
from app.core.exceptions import register_exception_handlers
from app.database import AsyncSessionLocal, init_db, close_db
from app.middleware.logging import LoggingMiddleware
from app.middleware.monitoring import MonitoringMiddleware
from app.middleware.request_id import RequestIDMiddleware, RequestIDLogFilter
from app.middleware.security import SecurityHeadersMiddleware
from app.monitoring import metrics
from app.services.health_service import get_detailed_health, run_startup_checks
from app.services.user_service import UserService

# Configure logging
_handler = logging.StreamHandler(sys.stdout)
_handler.addFilter(RequestIDLogFilter())
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s',
    handlers=[_handler],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    async with AsyncSessionLocal() as session:
        await UserService(session).ensure_first_admin(
            settings.FIRST_ADMIN_USERNAME, settings.FIRST_ADMIN_PASSWORD
        )

    if settings.RUN_STARTUP_CHECKS:
        await run_startup_checks()

    yield

    await close_db()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
    **Facility Meter API** - Heat, gas and electricity meter management

    ## Features
		* **JWT Authentication** with role-based access control
		* **Meter registry** grouped by facility
		* **Reading submission** with consumption computed per reading
		* **Gas conversion** from m³ to MWh
		* **Dashboard statistics** and daily consumption trend
		* **Excel Import/Export**

    ## Documentation
		* [Interactive API Docs](/docs)
		* [Health Check](/health)
    """,
    version=settings.APP_VERSION,
    openapi_tags=[
        {"name": "auth", "description": "Authentication operations"},
        {"name": "meters", "description": "Meter management"},
        {"name": "readings", "description": "Reading operations"},
        {"name": "facilities", "description": "Facility management"},
        {"name": "monitoring", "description": "System monitoring"},
    ],
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else "/api/openapi.json",
)

# =====================================
# Configure Middleware Stack
# =====================================

# GZIP Compression (minimum 1KB)
app.add_middleware(GZipMiddleware, minimum_size=1000)

# Trusted Host validation (production only)
if not settings.DEBUG:
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=settings.ALLOWED_HOSTS
    )

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
    max_age=3600,
)

# Custom middleware
app.add_middleware(MonitoringMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(LoggingMiddleware)

register_exception_handlers(app)

# Include routers
app.include_router(auth.router, prefix=f"{settings.API_V1_PREFIX}/auth", tags=["auth"])
app.include_router(meters.router, prefix=f"{settings.API_V1_PREFIX}/meters", tags=["meters"])
app.include_router(readings.router, prefix=f"{settings.API_V1_PREFIX}/readings", tags=["readings"])
app.include_router(facilities.router, prefix=f"{settings.API_V1_PREFIX}/facilities", tags=["facilities"])

# Monitoring endpoints (internal use)
if settings.EXPOSE_METRICS:
    app.include_router(
        metrics.router,
        prefix="/internal",
        tags=["monitoring"]
    )


@app.get("/health", tags=["monitoring"])
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.APP_VERSION
    }


@app.get("/health/detailed", tags=["monitoring"])
async def detailed_health_check():
    return await get_detailed_health()
