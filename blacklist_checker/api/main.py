"""
FastAPI application for the IP blacklist checker.

Run with:
    uvicorn blacklist_checker.api.main:app --reload --port 8000
"""
import asyncio
import logging
from dotenv import load_dotenv
load_dotenv()  # Load .env before other imports

from fastapi import FastAPI, HTTPException, Depends, Body, Request
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Any, List

import requests

from ..config import settings
from ..exceptions import KeyManagerError
from ..services.blacklist_service import check_ips, payload_summary, probe_key, run_key_test
from ..services.key_rotator import KeyStatistics
from ..services.mxtoolbox_client import MXToolboxManager, get_mxtoolbox_manager
from .models import (
    ApiTestResponse, BlacklistResultModel, CheckBlacklistResponse, HealthResponse, KeyDetail,
    KeyTestResponse, KeyTestRunModel, KeyTestSummary, SingleKeyTestRequest,
    SingleKeyTestResponse, StatsResponse, StatsSummary,
)

logger = logging.getLogger(__name__)

API_TEST_IP = "8.8.8.8"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared key manager on startup."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    manager = get_mxtoolbox_manager(settings)
    if manager.get_total_keys() == 0:
        logger.warning("No MXToolbox API keys configured; set MXTOOLBOX_API_KEY_1..N in .env")
    app.state.manager = manager
    yield
    logger.info("Shutting down...")
    manager.close()


app = FastAPI(
    title="IP Blacklist Checker",
    description="MXToolbox blacklist lookups with API key rotation",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_manager(request: Request) -> MXToolboxManager:
    """FastAPI dependency: the manager built during startup."""
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Key manager not initialized")
    return manager


def get_check_delay() -> float:
    return settings.check_delay_seconds


def _key_details(stats: List[KeyStatistics]) -> List[KeyDetail]:
    return [
        KeyDetail(
            key_preview=s.key_preview,
            request_count=s.request_count,
            last_used=s.last_used,
            is_blocked=s.is_blocked,
            block_until=s.block_until,
        )
        for s in stats
    ]


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="ok", message="Blacklist checker is running")


@app.post("/api/check-blacklist", response_model=CheckBlacklistResponse)
async def check_blacklist(
    payload: Any = Body(...),
    manager: MXToolboxManager = Depends(get_manager),
    delay: float = Depends(get_check_delay),
):
    """
    Check a list of IPs.

    A lookup failure for one IP yields a result with `error` set; the rest of
    the batch still runs.
    """
    ips = payload.get("ips") if isinstance(payload, dict) else None
    if not ips or not isinstance(ips, list):
        raise HTTPException(status_code=400, detail="Invalid IP list provided")

    try:
        results = await asyncio.to_thread(check_ips, manager, [str(ip) for ip in ips], delay)
    except Exception as e:
        logger.exception("Error checking blacklists")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    return CheckBlacklistResponse(
        results=[
            BlacklistResultModel(
                ip=r.ip,
                is_blacklisted=r.is_blacklisted,
                blacklists=r.blacklists,
                used_key=r.used_key,
                error=r.error,
            )
            for r in results
        ]
    )


@app.get("/api/mxtoolbox-stats", response_model=StatsResponse)
async def mxtoolbox_stats(manager: MXToolboxManager = Depends(get_manager)):
    """Per-key usage and block state."""
    stats = manager.get_statistics()
    total_keys = manager.get_total_keys()
    available_keys = manager.get_available_keys()
    return StatsResponse(
        total_keys=total_keys,
        available_keys=available_keys,
        blocked_keys=total_keys - available_keys,
        key_details=_key_details(stats),
        summary=StatsSummary(
            total_requests=sum(s.request_count for s in stats),
            active_keys=sum(1 for s in stats if not s.is_blocked),
            rate_limited_keys=sum(1 for s in stats if s.is_blocked),
        ),
    )


@app.get("/api/test-all-keys", response_model=KeyTestResponse)
async def test_all_keys(manager: MXToolboxManager = Depends(get_manager)):
    """Run a few lookups through the rotation to see which keys answer."""
    if manager.get_total_keys() == 0:
        raise HTTPException(status_code=500, detail="No MXToolbox API keys configured")

    logger.info(f"Testing all {manager.get_total_keys()} MXToolbox API keys")
    report = await asyncio.to_thread(run_key_test, manager)

    return KeyTestResponse(
        success=True,
        message=report.message,
        total_keys=report.total_keys,
        available_keys=report.available_keys,
        keys_used_in_test=report.keys_used,
        test_results=[
            KeyTestRunModel(ip=r.ip, success=r.success, used_key=r.used_key, has_data=r.has_data, error=r.error)
            for r in report.runs
        ],
        key_statistics=_key_details(report.statistics),
        summary=KeyTestSummary(
            total_requests=sum(s.request_count for s in report.statistics),
            active_keys=sum(1 for s in report.statistics if not s.is_blocked),
            keys_with_usage=sum(1 for s in report.statistics if s.request_count > 0),
        ),
    )


@app.get("/api/test-api", response_model=ApiTestResponse)
async def test_api(manager: MXToolboxManager = Depends(get_manager)):
    """Look up a known-clean IP through the rotation and describe the payload."""
    if manager.get_total_keys() == 0:
        raise HTTPException(status_code=500, detail="No MXToolbox API keys configured")

    try:
        lookup = await asyncio.to_thread(manager.request, API_TEST_IP)
    except (KeyManagerError, requests.RequestException, ValueError) as e:
        logger.error(f"Error testing API: {e}")
        raise HTTPException(status_code=502, detail=f"MXToolbox lookup failed: {str(e)}")

    return ApiTestResponse(
        success=True,
        message="API connection successful",
        api_key_configured=True,
        used_key=lookup.used_key_preview,
        sample_data=payload_summary(lookup.data),
    )


@app.post("/api/test-single-key", response_model=SingleKeyTestResponse, response_model_exclude_none=True)
async def test_single_key(req: SingleKeyTestRequest):
    """Check whether a key works before adding it to the configuration."""
    result = await asyncio.to_thread(probe_key, req.api_key, None, settings.mxtoolbox_request_timeout)
    return SingleKeyTestResponse(
        success=result.success,
        message=result.message or None,
        error=result.error or None,
        key_preview=result.key_preview,
        test_ip=result.test_ip,
        has_data=result.has_data if result.success else None,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "blacklist_checker.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=True,
    )
