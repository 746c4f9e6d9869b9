from fastapi import APIRouter, HTTPException
from typing import AsyncIterator
import logging

from ..scanner import CancelToken, DeviceRecord, DeviceStatus, ScanOptions, ScanScheduler
from ..scanner.targets import discover_targets, expand_targets, list_adapters
from .schemas import (
    AdapterResponse,
    DeviceRecordResponse,
    ScanRequest,
    ScanResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def resolve_targets(request: ScanRequest) -> list[str]:
    """Turn a scan request into concrete targets (raises 404 for an unknown adapter)."""
    if request.targets is not None:
        return expand_targets(request.targets)

    if request.adapter_id and request.adapter_id not in {a.id for a in list_adapters()}:
        raise HTTPException(status_code=404, detail="Adapter not found")

    return discover_targets(request.adapter_id)


def stream_scan(
    targets: list[str],
    options: ScanOptions,
    cancel: CancelToken = None,
) -> AsyncIterator[DeviceRecord]:
    """Start the scheduler over targets."""
    return ScanScheduler(options).stream(targets, cancel)


def effective_options(request: ScanRequest) -> ScanOptions:
    """Configured defaults, overridden by the fields the request actually set."""
    if request.options is None:
        return ScanOptions.from_settings()
    return ScanOptions.from_settings(**request.options.model_dump(exclude_unset=True))


def to_response(record: DeviceRecord) -> DeviceRecordResponse:
    return DeviceRecordResponse.model_validate(record)


@router.get("/adapters", response_model=list[AdapterResponse])
async def get_adapters():
    """List adapters eligible for subnet discovery."""
    return [AdapterResponse.model_validate(a) for a in list_adapters()]


@router.get("/options", response_model=ScanOptions)
async def get_options():
    """Get the default scan options."""
    return ScanOptions.from_settings()


@router.post("/scan", response_model=ScanResponse)
async def run_scan(request: ScanRequest):
    """Run a scan to completion and return the records in completion order."""
    targets = resolve_targets(request)
    options = effective_options(request)

    devices = []
    async for record in stream_scan(targets, options):
        if request.hide_offline and record.status == DeviceStatus.OFFLINE:
            continue
        devices.append(to_response(record))

    logger.info(f"Scan request over {len(targets)} targets returned {len(devices)} devices")
    return ScanResponse(count=len(devices), devices=devices)
