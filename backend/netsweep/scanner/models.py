from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.config import settings

NOT_AVAILABLE = "N/A"
UNKNOWN_VENDOR = "Unknown Vendor"
UNKNOWN_DEVICE_TYPE = "Unknown"


class ScanOptions(BaseModel):
    """Tunables for a single scan."""
    model_config = ConfigDict(frozen=True)

    ping_timeout_ms: int = Field(300, ge=1)
    port_timeout_ms: int = Field(300, ge=1)
    max_concurrent_scans: int = Field(20, ge=1)
    arp_retry_count: int = Field(3, ge=1)
    arp_retry_delay_ms: int = Field(100, ge=0)
    ports: List[int] = Field(default_factory=lambda: [21, 22, 23, 80, 443])

    @field_validator("ports")
    @classmethod
    def _check_ports(cls, ports: List[int]) -> List[int]:
        for port in ports:
            if not 1 <= port <= 65535:
                raise ValueError(f"Invalid port: {port}")
        return ports

    @classmethod
    def from_settings(cls, **overrides) -> "ScanOptions":
        """Build options from the configured defaults, applying overrides."""
        values = dict(
            ping_timeout_ms=settings.PING_TIMEOUT_MS,
            port_timeout_ms=settings.PORT_TIMEOUT_MS,
            max_concurrent_scans=settings.MAX_CONCURRENT_SCANS,
            arp_retry_count=settings.ARP_RETRY_COUNT,
            arp_retry_delay_ms=settings.ARP_RETRY_DELAY_MS,
            ports=list(settings.SCAN_PORTS),
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class DeviceStatus(str, Enum):
    ONLINE = "Online"
    OFFLINE = "Offline"
    ERROR = "Error"
    CANCELED = "Canceled"


@dataclass(frozen=True)
class DeviceRecord:
    """Result of probing one target. Never changes once built."""
    timestamp: datetime
    target: str
    status: DeviceStatus
    hostname: str = NOT_AVAILABLE
    latency: str = ""
    ttl: Optional[int] = None
    reply_address: str = ""
    open_ports: Tuple[int, ...] = ()
    mac_address: str = NOT_AVAILABLE
    vendor: str = NOT_AVAILABLE
    device_type: str = UNKNOWN_DEVICE_TYPE
    error: str = ""

    @property
    def is_online(self) -> bool:
        return self.status == DeviceStatus.ONLINE

    @property
    def open_ports_display(self) -> str:
        return ", ".join(str(p) for p in self.open_ports)


@dataclass
class ProbeDraft:
    """Mutable accumulator used while a host is being probed."""
    target: str
    timestamp: datetime = field(default_factory=datetime.now)
    status: DeviceStatus = DeviceStatus.OFFLINE
    hostname: str = NOT_AVAILABLE
    latency: str = ""
    ttl: Optional[int] = None
    reply_address: str = ""
    open_ports: List[int] = field(default_factory=list)
    mac_address: str = NOT_AVAILABLE
    vendor: str = NOT_AVAILABLE
    device_type: str = UNKNOWN_DEVICE_TYPE
    error: str = ""

    def freeze(self) -> DeviceRecord:
        open_ports = tuple(self.open_ports) if self.status == DeviceStatus.ONLINE else ()
        return DeviceRecord(
            timestamp=self.timestamp,
            target=self.target,
            status=self.status,
            hostname=self.hostname,
            latency=self.latency,
            ttl=self.ttl,
            reply_address=self.reply_address,
            open_ports=open_ports,
            mac_address=self.mac_address,
            vendor=self.vendor,
            device_type=self.device_type,
            error=self.error,
        )
