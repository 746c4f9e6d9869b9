# Scanner module
from typing import AsyncIterator, Iterable, Optional, Union

from .cancel import CancelToken, ScanCanceled
from .host_probe import HostProbe
from .models import DeviceRecord, DeviceStatus, ScanOptions
from .scheduler import ScanScheduler
from .targets import discover_targets, expand_targets, list_adapters


async def scan_hosts(
    entries: Union[str, Iterable[str]],
    options: Optional[ScanOptions] = None,
    cancel: Optional[CancelToken] = None,
) -> AsyncIterator[DeviceRecord]:
    """Expand host entries and stream their records as they complete."""
    scheduler = ScanScheduler(options)
    async for record in scheduler.stream(expand_targets(entries), cancel):
        yield record


async def discover_devices(
    adapter_id: Optional[str] = None,
    options: Optional[ScanOptions] = None,
    cancel: Optional[CancelToken] = None,
) -> AsyncIterator[DeviceRecord]:
    """Scan every host on the local subnets of one adapter (or all of them)."""
    scheduler = ScanScheduler(options)
    async for record in scheduler.stream(discover_targets(adapter_id), cancel):
        yield record


__all__ = [
    "CancelToken",
    "DeviceRecord",
    "DeviceStatus",
    "HostProbe",
    "ScanCanceled",
    "ScanOptions",
    "ScanScheduler",
    "discover_devices",
    "discover_targets",
    "expand_targets",
    "list_adapters",
    "scan_hosts",
]
