# Response bodies the gateway produces itself.

from typing import Literal

from pydantic import BaseModel


class MemoryUsage(BaseModel):
    used: float   # MiB, resident
    total: float  # MiB, virtual


class HealthyReport(BaseModel):
    status: Literal["healthy"] = "healthy"
    timestamp: str
    environment: str
    uptime: float
    memory: MemoryUsage
    database: Literal["connected"] = "connected"


class UnhealthyReport(BaseModel):
    status: Literal["unhealthy"] = "unhealthy"
    timestamp: str
    error: str = "Database connection failed"
