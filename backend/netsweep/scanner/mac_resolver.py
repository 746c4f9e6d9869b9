"""
Hardware address resolution through the operating system's ARP/neighbor table.

A zero-length UDP datagram is sent to the target first so the kernel issues
(or refreshes) an ARP request; the table is then polled a bounded number of
times. How the table is read is platform specific and lives in subclasses.
"""

import asyncio
import logging
import platform
import re
import socket
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .cancel import CancelToken, checkpoint
from .models import NOT_AVAILABLE, ScanOptions

logger = logging.getLogger(__name__)

PROC_NET_ARP = Path("/proc/net/arp")

_MAC_PATTERN = re.compile(r"([0-9a-fA-F]{1,2}(?:[:-][0-9a-fA-F]{1,2}){5})")
_UNRESOLVED = {"000000000000", "FFFFFFFFFFFF"}


def normalize_mac(raw: Optional[str]) -> Optional[str]:
    """
    Render a MAC address as upper-case colon-separated octets.

    Accepts ':' or '-' separators (single-digit octets are padded, as printed
    by macOS arp) or 12 bare hex digits. All-zero and broadcast addresses count
    as unresolved and give None.
    """
    if not raw:
        return None
    raw = raw.strip()
    parts = re.split(r"[:-]", raw)
    if len(parts) == 6:
        try:
            octets = [f"{int(p, 16):02X}" for p in parts]
        except ValueError:
            return None
    elif re.fullmatch(r"[0-9a-fA-F]{12}", raw):
        octets = [raw[i:i + 2].upper() for i in range(0, 12, 2)]
    else:
        return None

    if "".join(octets) in _UNRESOLVED:
        return None
    return ":".join(octets)


class MacResolver(ABC):
    """Resolves an IPv4 address to a hardware address, or "N/A"."""

    @abstractmethod
    async def resolve(self, address: str, cancel: Optional[CancelToken] = None) -> str:
        ...


class ArpTableResolver(MacResolver):
    """Primes the ARP cache, then polls the neighbor table with retries."""

    def __init__(self, retry_count: int = 3, retry_delay_ms: int = 100):
        self.retry_count = retry_count
        self.retry_delay_ms = retry_delay_ms

    @classmethod
    def from_options(cls, options: ScanOptions) -> "ArpTableResolver":
        return cls(retry_count=options.arp_retry_count, retry_delay_ms=options.arp_retry_delay_ms)

    async def resolve(self, address: str, cancel: Optional[CancelToken] = None) -> str:
        self.force_arp_entry(address)

        for attempt in range(self.retry_count):
            checkpoint(cancel)
            try:
                mac = normalize_mac(await self.lookup(address))
            except (OSError, ValueError) as e:
                logger.debug(f"Neighbor table read failed for {address}: {e}")
                mac = None

            if mac:
                return mac

            if attempt < self.retry_count - 1:
                await asyncio.sleep(self.retry_delay_ms / 1000)

        return NOT_AVAILABLE

    @staticmethod
    def force_arp_entry(address: str) -> None:
        """Send an empty datagram so the kernel resolves the address."""
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.connect((address, 1))
                sock.send(b"")
        except OSError:
            pass

    @abstractmethod
    async def lookup(self, address: str) -> Optional[str]:
        """Return the raw table entry for address, or None."""


class ProcNetArpResolver(ArpTableResolver):
    """Reads the Linux neighbor table from /proc/net/arp."""

    def __init__(self, retry_count: int = 3, retry_delay_ms: int = 100, path: Path = PROC_NET_ARP):
        super().__init__(retry_count, retry_delay_ms)
        self.path = Path(path)

    async def lookup(self, address: str) -> Optional[str]:
        return parse_proc_net_arp(self.path.read_text(), address)


def parse_proc_net_arp(content: str, address: str) -> Optional[str]:
    """
    Find address in /proc/net/arp content.

    Format: IP address, HW type, Flags, HW address, Mask, Device. Entries with
    flags 0x0 are incomplete.
    """
    for line in content.splitlines()[1:]:
        fields = line.split()
        if len(fields) < 4 or fields[0] != address:
            continue
        if int(fields[2], 16) == 0:
            return None
        return fields[3]
    return None


class ArpCommandResolver(ArpTableResolver):
    """Queries the table through the arp command (macOS, BSD, Windows)."""

    def __init__(self, retry_count: int = 3, retry_delay_ms: int = 100, system: str = None):
        super().__init__(retry_count, retry_delay_ms)
        self.system = (system or platform.system()).lower()

    def build_command(self, address: str) -> list:
        if self.system == "windows":
            return ["arp", "-a", address]
        return ["arp", "-n", address]

    async def lookup(self, address: str) -> Optional[str]:
        if address.startswith("-"):
            return None
        process = await asyncio.create_subprocess_exec(
            *self.build_command(address),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL
        )
        stdout, _ = await process.communicate()
        return parse_arp_output(stdout.decode(errors="ignore"), address)


def parse_arp_output(output: str, address: str) -> Optional[str]:
    """
    Extract the hardware address for address from arp output.

    Handles "? (10.0.0.1) at aa:bb:cc:dd:ee:ff on en0" (BSD/macOS),
    "10.0.0.1  ether  aa:bb:cc:dd:ee:ff  C  eth0" (net-tools) and
    "  10.0.0.1   aa-bb-cc-dd-ee-ff   dynamic" (Windows).
    """
    ip_pattern = re.compile(rf"(?<![\d.]){re.escape(address)}(?![\d.])")
    for line in output.splitlines():
        if not ip_pattern.search(line) or "incomplete" in line.lower():
            continue
        match = _MAC_PATTERN.search(line)
        if match:
            return match.group(1)
    return None


def get_mac_resolver(options: ScanOptions) -> MacResolver:
    """Pick the resolver for the running platform."""
    if PROC_NET_ARP.exists():
        return ProcNetArpResolver.from_options(options)
    return ArpCommandResolver.from_options(options)
