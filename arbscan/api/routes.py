"""
Arbitrage scan API routes

Endpoints for triggering scans, reading cached results and tuning the
shared scan configuration.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from arbscan.config import ScanConfig
from arbscan.exceptions import ConfigurationInvalid
from arbscan.models import ScanResult, ScanStatusReport, ScanType
from arbscan.services.scanner import ArbitrageScanService
from arbscan.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/arbitrage", tags=["Arbitrage"])


def get_scan_service(request: Request) -> ArbitrageScanService:
    """Scan service owned by the application (created in the lifespan hook)"""
    return request.app.state.scan_service


# ==================== SCANS ====================


@router.post("/scan/{scan_type}", response_model=None)
async def trigger_scan(
    scan_type: ScanType,
    service: ArbitrageScanService = Depends(get_scan_service),
) -> ScanResult:
    """Run a scan, or join the one already running for this type"""
    logger.info("Scan requested", scan_type=scan_type.value)
    return await service.trigger_scan(scan_type)


@router.get("/result/{scan_type}", response_model=None)
async def get_result(
    scan_type: ScanType,
    service: ArbitrageScanService = Depends(get_scan_service),
) -> ScanResult:
    return service.get_last_result(scan_type)


@router.get("/status/{scan_type}", response_model=ScanStatusReport)
async def get_status(
    scan_type: ScanType,
    service: ArbitrageScanService = Depends(get_scan_service),
):
    return service.get_status(scan_type)


# ==================== CONFIG ====================


@router.get("/config", response_model=ScanConfig)
async def get_config(service: ArbitrageScanService = Depends(get_scan_service)):
    return service.get_config()


@router.post("/config", response_model=ScanConfig)
async def update_config(
    partial: dict[str, Any] = Body(...),
    service: ArbitrageScanService = Depends(get_scan_service),
):
    """Merge a partial update into the scan config; scans already running keep their snapshot"""
    try:
        return service.set_config(partial)
    except ConfigurationInvalid as e:
        logger.warning("Rejected configuration update", errors=e.errors)
        raise HTTPException(
            status_code=400, detail={"message": str(e), "errors": e.errors}
        )
