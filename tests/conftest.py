"""Shared fakes for the scanner tests."""

import asyncio
from typing import Dict, Optional

import pytest

from netsweep.scanner.device_types import DeviceClassifier
from netsweep.scanner.mac_resolver import MacResolver
from netsweep.scanner.models import NOT_AVAILABLE, ScanOptions
from netsweep.scanner.oui_lookup import VendorDatabase
from netsweep.scanner.ping import PingReply


class FakePinger:
    """Answers for the addresses it knows, stays silent for the rest."""

    def __init__(self, replies: Optional[Dict[str, PingReply]] = None, error: Exception = None):
        self.replies = replies or {}
        self.error = error
        self.calls = []

    async def ping(self, host, timeout_ms):
        self.calls.append((host, timeout_ms))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.replies.get(host)


class FakeMacResolver(MacResolver):
    def __init__(self, table: Optional[Dict[str, str]] = None):
        self.table = table or {}
        self.calls = []

    async def resolve(self, address, cancel=None):
        self.calls.append(address)
        if cancel is not None:
            cancel.raise_if_cancelled()
        return self.table.get(address, NOT_AVAILABLE)


@pytest.fixture
def options():
    return ScanOptions(
        ping_timeout_ms=100,
        port_timeout_ms=200,
        max_concurrent_scans=4,
        arp_retry_count=2,
        arp_retry_delay_ms=0,
        ports=[],
    )


@pytest.fixture
def vendors():
    return VendorDatabase.from_rows([
        ["Registry", "Assignment", "Organization Name", "Organization Address"],
        ["MA-L", "B827EB", "Raspberry Pi Foundation", "Cambridge"],
        ["MA-L", "AABBCC", "Example Networks Inc.", "Nowhere"],
        ["MA-L", "000C29", "VMware, Inc.", "Palo Alto"],
    ])


@pytest.fixture
def classifier():
    return DeviceClassifier([
        ("raspberry", "Single-board Computer"),
        ("vmware", "Virtual Machine"),
        ("networks", "Network Equipment"),
    ])
