import sys
import time
from typing import Optional

from fastapi import APIRouter

from backend import room_store
from logging_config import get_logger
from schemas.rooms import HealthResponse, MemoryStats, StatusResponse

try:
    import resource
except ImportError:  # Windows
    resource = None

logger = get_logger(__name__)

status_router = APIRouter(tags=["status"])

STARTED_AT = time.monotonic()


def peak_rss_kb() -> Optional[int]:
    if resource is None:
        return None
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux kilobytes
    return peak // 1024 if sys.platform == "darwin" else peak


@status_router.get("/", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="ok",
        rooms=room_store.list_active(),
        connections=room_store.connection_count(),
    )


@status_router.get("/api/status", response_model=StatusResponse)
async def status():
    uptime = time.monotonic() - STARTED_AT
    logger.debug(f"Status request, uptime {uptime:.0f}s")
    return StatusResponse(
        status="ok",
        uptime=round(uptime, 3),
        rooms=room_store.list_active(),
        connections=room_store.connection_count(),
        memory=MemoryStats(peak_rss_kb=peak_rss_kb()),
    )
