"""
Per-host probe pipeline: ping -> reverse DNS -> TCP port scan -> MAC -> vendor/type.

Each stage only runs if the previous one left the host reachable. Faults are
contained here: whatever happens, run() hands back exactly one DeviceRecord.
"""

import asyncio
import logging
import socket
from typing import List, Optional

from .cancel import CancelToken, ScanCanceled, checkpoint
from .device_types import DeviceClassifier, get_device_classifier
from .mac_resolver import MacResolver, get_mac_resolver
from .models import (
    NOT_AVAILABLE,
    UNKNOWN_DEVICE_TYPE,
    DeviceRecord,
    DeviceStatus,
    ProbeDraft,
    ScanOptions,
)
from .oui_lookup import VendorDatabase, get_vendor_database
from .ping import SystemPinger

logger = logging.getLogger(__name__)


class HostProbe:
    """Probes a single target and builds its DeviceRecord."""

    def __init__(
        self,
        options: Optional[ScanOptions] = None,
        mac_resolver: Optional[MacResolver] = None,
        vendors: Optional[VendorDatabase] = None,
        classifier: Optional[DeviceClassifier] = None,
        pinger=None,
    ):
        self.options = options or ScanOptions.from_settings()
        self.mac_resolver = mac_resolver or get_mac_resolver(self.options)
        self.vendors = vendors or get_vendor_database()
        self.classifier = classifier or get_device_classifier()
        self.pinger = pinger or SystemPinger()

    async def run(self, target: str, cancel: Optional[CancelToken] = None) -> DeviceRecord:
        draft = ProbeDraft(target=target)

        try:
            await self._probe(draft, cancel)
        except ScanCanceled:
            draft.status = DeviceStatus.CANCELED
        except Exception as e:
            logger.warning(f"Probe of {target} failed: {e}")
            draft.status = DeviceStatus.ERROR
            draft.error = str(e) or type(e).__name__
            # Older consumers read the fault from latency
            draft.latency = draft.error

        return draft.freeze()

    async def _probe(self, draft: ProbeDraft, cancel: Optional[CancelToken]) -> None:
        checkpoint(cancel)

        reply = await self.pinger.ping(draft.target, self.options.ping_timeout_ms)
        if reply is None:
            logger.debug(f"{draft.target}: no echo reply")
            return

        draft.status = DeviceStatus.ONLINE
        draft.latency = reply.latency
        draft.ttl = reply.ttl
        draft.reply_address = reply.address
        draft.hostname = await self.resolve_hostname(reply.address)

        draft.open_ports = await self.scan_ports(draft.target, cancel)

        draft.mac_address = await self.resolve_mac(reply.address, cancel)
        if draft.mac_address == NOT_AVAILABLE:
            draft.vendor = NOT_AVAILABLE
            draft.device_type = UNKNOWN_DEVICE_TYPE
        else:
            draft.vendor = self.vendors.vendor_for_mac(draft.mac_address)
            draft.device_type = self.classifier.classify(draft.vendor)

        logger.debug(
            f"{draft.target}: online ({draft.latency}) ports={draft.open_ports} "
            f"mac={draft.mac_address} vendor={draft.vendor}"
        )

    async def resolve_hostname(self, address: str) -> str:
        """Reverse DNS lookup; any failure gives "N/A"."""
        try:
            loop = asyncio.get_running_loop()
            hostname, _, _ = await loop.run_in_executor(
                None, socket.gethostbyaddr, address
            )
            return hostname or NOT_AVAILABLE
        except Exception as e:
            logger.debug(f"DNS resolution error for {address}: {e}")
            return NOT_AVAILABLE

    async def resolve_mac(self, address: str, cancel: Optional[CancelToken] = None) -> str:
        try:
            return await self.mac_resolver.resolve(address, cancel)
        except ScanCanceled:
            raise
        except Exception as e:
            logger.debug(f"MAC resolution error for {address}: {e}")
            return NOT_AVAILABLE

    async def scan_ports(self, host: str, cancel: Optional[CancelToken] = None) -> List[int]:
        """Connect to every configured port in parallel; open ones keep configured order."""
        checkpoint(cancel)
        ports = self.options.ports
        results = await asyncio.gather(*[self.check_port(host, p) for p in ports])
        checkpoint(cancel)
        return [port for port, is_open in zip(ports, results) if is_open]

    async def check_port(self, host: str, port: int) -> bool:
        timeout = self.options.port_timeout_ms / 1000
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout
            )
        except (asyncio.TimeoutError, OSError):
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True
