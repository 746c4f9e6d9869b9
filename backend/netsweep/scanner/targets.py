"""
Target expansion: host literals, last-octet ranges and local subnet discovery.

Parsing is lenient on purpose: anything that is not a recognizable range is
passed through as a single host and will simply fail at the ping stage.
"""

import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple, Union

import netifaces

logger = logging.getLogger(__name__)

# "192.168.1.5-20" or "192.168.1.5-192.168.1.20"
RANGE_PATTERN = re.compile(
    r"^(?P<base>\d{1,3}\.\d{1,3}\.\d{1,3}\.)(?P<start>\d{1,3})-(?:(?P=base))?(?P<end>\d{1,3})$"
)
_SEPARATORS = re.compile(r"[\s,;]+")


@dataclass
class Adapter:
    """A network interface eligible for subnet discovery."""
    id: str
    name: str
    addresses: List[Tuple[str, str]] = field(default_factory=list)  # (address, netmask)


def expand_entry(entry: str) -> List[str]:
    entry = entry.strip()
    if not entry:
        return []

    match = RANGE_PATTERN.match(entry)
    if match:
        start, end = int(match.group("start")), int(match.group("end"))
        if start <= end <= 255:
            base = match.group("base")
            return [f"{base}{octet}" for octet in range(start, end + 1)]

    return [entry]


def expand_targets(entries: Union[str, Iterable[str]]) -> List[str]:
    """
    Expand user input into a deduplicated list of targets.

    A single string may hold several entries separated by commas, semicolons
    or whitespace. First-seen order is kept.
    """
    if isinstance(entries, str):
        entries = [entries]

    targets = {}
    for chunk in entries:
        for entry in _SEPARATORS.split(chunk or ""):
            for target in expand_entry(entry):
                targets.setdefault(target, None)
    return list(targets)


def list_adapters() -> List[Adapter]:
    """Interfaces with at least one non-loopback IPv4 unicast address and mask."""
    adapters = []
    for iface in netifaces.interfaces():
        addrs = netifaces.ifaddresses(iface).get(netifaces.AF_INET, [])
        pairs = []
        for info in addrs:
            addr = info.get("addr")
            netmask = info.get("netmask")
            if not addr or not netmask:
                continue
            try:
                if ipaddress.IPv4Address(addr).is_loopback:
                    continue
            except ValueError:
                continue
            pairs.append((addr, netmask))

        if pairs:
            adapters.append(Adapter(id=iface, name=iface, addresses=pairs))

    logger.debug(f"Eligible adapters: {[a.id for a in adapters]}")
    return adapters


def subnet_hosts(address: str, netmask: str) -> List[str]:
    """Every address strictly between the network and broadcast addresses."""
    network = ipaddress.IPv4Interface(f"{address}/{netmask}").network
    first = int(network.network_address) + 1
    last = int(network.broadcast_address)
    return [str(ipaddress.IPv4Address(x)) for x in range(first, last)]


def discover_targets(adapter_id: Optional[str] = None) -> List[str]:
    """
    Enumerate the subnets of every eligible adapter, or only of adapter_id.

    An unknown adapter_id gives an empty list.
    """
    targets = {}
    for adapter in list_adapters():
        if adapter_id and adapter.id != adapter_id:
            continue
        for address, netmask in adapter.addresses:
            try:
                hosts = subnet_hosts(address, netmask)
            except ValueError as e:
                logger.warning(f"Skipping {address}/{netmask} on {adapter.id}: {e}")
                continue
            for host in hosts:
                targets.setdefault(host, None)

    logger.info(f"Subnet discovery expanded to {len(targets)} targets")
    return list(targets)
