import asyncio
import logging
import time
from datetime import datetime, timezone

import psutil
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..schemas import HealthyReport, MemoryUsage, UnhealthyReport

router = APIRouter()
log = logging.getLogger("kwacha_gateway.health")

_MIB = 1024 * 1024


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class HealthReporter:
    """Liveness + readiness: every probe hits the database, nothing is cached."""

    def __init__(self, database, environment: str, timeout_s: float):
        self.database = database
        self.environment = environment
        self.timeout_s = timeout_s
        self._process = psutil.Process()

    def uptime(self) -> float:
        return round(time.time() - self._process.create_time(), 3)

    def memory(self) -> MemoryUsage:
        info = self._process.memory_info()
        return MemoryUsage(used=round(info.rss / _MIB, 2), total=round(info.vms / _MIB, 2))

    async def probe(self) -> tuple[int, dict]:
        try:
            await asyncio.wait_for(self.database.ping(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            log.error("health probe: database ping timed out after %ss", self.timeout_s)
            return 503, UnhealthyReport(timestamp=_iso_now()).model_dump()
        except Exception as exc:
            # driver detail stays in the log
            log.error("health probe: database ping failed: %r", exc)
            return 503, UnhealthyReport(timestamp=_iso_now()).model_dump()
        report = HealthyReport(
            timestamp=_iso_now(),
            environment=self.environment,
            uptime=self.uptime(),
            memory=self.memory(),
        )
        return 200, report.model_dump()


@router.get("/health")
async def health(request: Request):
    status, body = await request.app.state.health.probe()
    return JSONResponse(status_code=status, content=body)
