# app/services/health_service.py
from typing import Dict, Any
from datetime import datetime, timezone
import psutil
import platform
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from app.config import settings
from app.database import AsyncSessionLocal, check_db_connection, list_tables
from app.models import Facility, Meter, Reading, User
from app.monitoring.metrics import startup_checks_failed
import logging

logger = logging.getLogger(__name__)

REQUIRED_TABLES = {
    "facilities": Facility,
    "meters": Meter,
    "readings": Reading,
    "users": User,
}


async def check_tables() -> Dict[str, Any]:
    """Presence and row count of every table the service relies on"""
    existing = set(await list_tables())
    tables = {}
    async with AsyncSessionLocal() as session:
        for name, model in REQUIRED_TABLES.items():
            if name not in existing:
                tables[name] = {"healthy": False, "status": "missing"}
                continue
            try:
                rows = await session.scalar(select(func.count()).select_from(model))
                tables[name] = {"healthy": True, "status": "present", "rows": rows or 0}
            except SQLAlchemyError as e:
                tables[name] = {"healthy": False, "status": "unreadable", "error": str(e)}
    return tables


def system_info() -> Dict[str, Any]:
    return {
        "cpu_percent": psutil.cpu_percent(interval=0.1),
        "memory_percent": psutil.virtual_memory().percent,
        "disk_percent": psutil.disk_usage("/").percent,
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "uptime_seconds": datetime.now(timezone.utc).timestamp() - psutil.boot_time(),
    }


async def get_detailed_health() -> Dict[str, Any]:
    """Get detailed health status of all services"""
    health_status = {
        "services": {},
        "tables": {},
        "system": {},
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.APP_VERSION,
    }

    # DB
    db_healthy = await check_db_connection()
    health_status["services"]["database"] = {
        "healthy": db_healthy,
        "type": settings.DATABASE_URL.split(":", 1)[0],
        "status": "connected" if db_healthy else "disconnected",
    }

    # Tables
    if db_healthy:
        try:
            health_status["tables"] = await check_tables()
        except SQLAlchemyError as e:
            logger.error(f"Failed to inspect tables: {e}")
            health_status["tables"] = {name: {"healthy": False, "error": str(e)} for name in REQUIRED_TABLES}

    # System
    try:
        health_status["system"] = system_info()
    except (psutil.Error, OSError) as e:
        logger.error(f"Failed to get system metrics: {e}")

    # Overall
    checks = list(health_status["services"].values()) + list(health_status["tables"].values())
    all_healthy = db_healthy and all(c.get("healthy", False) for c in checks)
    health_status["overall_health"] = "healthy" if all_healthy else "degraded"

    return health_status


async def run_startup_checks() -> bool:
    """Log a startup report; returns False when any check failed"""
    health = await get_detailed_health()
    failed = [name for name, s in health["services"].items() if not s.get("healthy")]
    failed += [f"table:{name}" for name, t in health["tables"].items() if not t.get("healthy")]

    logger.info("=" * 50)
    logger.info(f"Startup checks - {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
    for name, service in health["services"].items():
        logger.info(f"  {name}: {service.get('status', 'unknown')}")
    for name, table in health["tables"].items():
        if table.get("healthy"):
            logger.info(f"  table {name}: {table['rows']} row(s)")
        else:
            logger.warning(f"  table {name}: {table.get('status', 'error')}")
    logger.info("=" * 50)

    startup_checks_failed.set(len(failed))
    if failed:
        logger.error(f"Startup checks failed: {', '.join(failed)}")
        return False
    logger.info("All startup checks passed")
    return True
