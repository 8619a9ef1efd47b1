"""
Health endpoints for load balancers and container probes
Response shape follows the draft "Health Check Response Format for HTTP APIs"
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from typing import Any, Callable, Dict, Optional
import time
from datetime import datetime
from enum import Enum
import psutil
import logging

logger = logging.getLogger(__name__)

class HealthStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"

def _now() -> str:
    return datetime.utcnow().isoformat() + "Z"

class ServiceHealth:
    """
    Liveness, readiness and metrics for one service

    The database engine and an optional cache ping are injected so the
    readiness probe checks the same resources the service uses.
    """

    def __init__(
        self,
        service_name: str,
        version: str,
        engine: Engine,
        cache_ping: Optional[Callable[[], bool]] = None
    ):
        self.service_name = service_name
        self.version = version
        self.engine = engine
        self.cache_ping = cache_ping
        self.start_time = time.time()
        self.checks_performed = 0

    def create_health_router(self) -> APIRouter:
        router = APIRouter(tags=["health"])

        @router.get("/health", status_code=status.HTTP_200_OK)
        def health_check() -> Dict[str, Any]:
            """Lightweight liveness check used by load balancers"""
            return {
                "status": HealthStatus.PASS,
                "service": self.service_name,
                "version": self.version,
                "timestamp": _now()
            }

        @router.get("/health/live", status_code=status.HTTP_200_OK)
        def liveness() -> Dict[str, Any]:
            return {"status": "alive"}

        @router.get("/health/ready")
        def readiness() -> JSONResponse:
            checks = self.perform_readiness_checks()
            overall_status = self.calculate_overall_status(checks)
            status_code = status.HTTP_503_SERVICE_UNAVAILABLE if overall_status == HealthStatus.FAIL else status.HTTP_200_OK
            return JSONResponse(status_code=status_code, content={
                "status": overall_status.value,
                "version": self.version,
                "serviceId": self.service_name,
                "checks": checks,
                "timestamp": _now()
            })

        @router.get("/metrics")
        def metrics() -> Dict[str, Any]:
            process = psutil.Process()
            memory = process.memory_info()
            return {
                "service": self.service_name,
                "version": self.version,
                "uptime_seconds": time.time() - self.start_time,
                "checks_performed": self.checks_performed,
                "timestamp": _now(),
                "system": {
                    "memory_rss_bytes": memory.rss,
                    "memory_vms_bytes": memory.vms,
                    "num_threads": process.num_threads()
                }
            }

        return router

    def perform_readiness_checks(self) -> Dict[str, Dict[str, Any]]:
        self.checks_performed += 1
        checks = {"database:connectivity": self._check_database()}
        if self.cache_ping is not None:
            checks["cache:connectivity"] = self._check_cache()
        checks["system:memory"] = self._check_memory()
        return checks

    def _check_database(self) -> Dict[str, Any]:
        try:
            start_time = time.time()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return {
                "status": HealthStatus.PASS.value,
                "componentType": "datastore",
                "observedValue": f"{(time.time() - start_time) * 1000:.2f}",
                "observedUnit": "ms",
                "time": _now()
            }
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": HealthStatus.FAIL.value,
                "componentType": "datastore",
                "output": str(e),
                "time": _now()
            }

    def _check_cache(self) -> Dict[str, Any]:
        # A dead cache degrades rate limiting but does not stop the service
        ok = self.cache_ping()
        return {
            "status": HealthStatus.PASS.value if ok else HealthStatus.WARN.value,
            "componentType": "cache",
            "time": _now()
        }

    def _check_memory(self) -> Dict[str, Any]:
        available_mb = psutil.virtual_memory().available / (1024 ** 2)
        if available_mb < 100:
            status_val = HealthStatus.FAIL
        elif available_mb < 500:
            status_val = HealthStatus.WARN
        else:
            status_val = HealthStatus.PASS
        return {
            "status": status_val.value,
            "componentType": "system",
            "observedValue": f"{available_mb:.2f}",
            "observedUnit": "MB",
            "time": _now()
        }

    @staticmethod
    def calculate_overall_status(checks: Dict[str, Dict[str, Any]]) -> HealthStatus:
        statuses = {check.get("status", HealthStatus.PASS.value) for check in checks.values()}
        if HealthStatus.FAIL.value in statuses:
            return HealthStatus.FAIL
        if HealthStatus.WARN.value in statuses:
            return HealthStatus.WARN
        return HealthStatus.PASS
