from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional, Union

from ..scanner.models import DeviceStatus, ScanOptions


class DeviceRecordResponse(BaseModel):
    """Device record schema."""
    model_config = ConfigDict(from_attributes=True)

    timestamp: datetime
    target: str
    hostname: str
    status: DeviceStatus
    latency: str
    ttl: Optional[int] = None
    reply_address: str
    open_ports: list[int]
    mac_address: str
    vendor: str
    device_type: str
    error: str = ""


class AdapterResponse(BaseModel):
    """Network adapter schema."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    addresses: list[tuple[str, str]]


class ScanRequest(BaseModel):
    """
    Scan request schema.

    When targets is given (even empty) those entries are scanned; when it is
    absent, the subnets of adapter_id (or of every adapter) are discovered.
    """
    targets: Optional[Union[list[str], str]] = None
    adapter_id: Optional[str] = None
    options: Optional[ScanOptions] = None
    hide_offline: bool = False


class ScanResponse(BaseModel):
    """Completed scan response schema."""
    count: int
    devices: list[DeviceRecordResponse]


class HealthResponse(BaseModel):
    """Health check schema."""
    status: str
    vendors_loaded: int
    vendor_mappings_loaded: int
