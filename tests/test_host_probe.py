"""Tests for the per-host probe pipeline."""

import asyncio
import socket
from unittest.mock import patch

import pytest

from netsweep.scanner.cancel import CancelToken, ScanCanceled
from netsweep.scanner.host_probe import HostProbe
from netsweep.scanner.models import DeviceStatus
from netsweep.scanner.ping import PingReply

from .conftest import FakeMacResolver, FakePinger

REPLY = PingReply(address="127.0.0.1", round_trip_ms=2.4, ttl=64)


def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def with_listeners(count, coro_factory):
    """Run coro_factory(ports) while loopback TCP listeners accept on ports."""
    async def handle(reader, writer):
        writer.close()

    servers = [await asyncio.start_server(handle, "127.0.0.1", 0) for _ in range(count)]
    ports = [server.sockets[0].getsockname()[1] for server in servers]
    try:
        return await coro_factory(ports)
    finally:
        for server in servers:
            server.close()
            await server.wait_closed()


@pytest.fixture
def make_probe(options, vendors, classifier):
    def factory(pinger=None, mac_table=None, **option_overrides):
        probe_options = options.model_copy(update=option_overrides)
        return HostProbe(
            probe_options,
            mac_resolver=FakeMacResolver(mac_table or {}),
            vendors=vendors,
            classifier=classifier,
            pinger=pinger or FakePinger({"127.0.0.1": REPLY}),
        )
    return factory


@pytest.fixture(autouse=True)
def no_reverse_dns():
    with patch("netsweep.scanner.host_probe.socket.gethostbyaddr", return_value=("localhost", [], [])) as mock:
        yield mock


class TestPipeline:

    def test_offline_host(self, make_probe):
        probe = make_probe(pinger=FakePinger({}))
        record = asyncio.run(probe.run("10.9.9.9"))

        assert record.status == DeviceStatus.OFFLINE
        assert record.target == "10.9.9.9"
        assert record.hostname == "N/A"
        assert record.latency == ""
        assert record.ttl is None
        assert record.open_ports == ()
        assert record.mac_address == "N/A"
        assert record.device_type == "Unknown"

    def test_online_host(self, make_probe):
        probe = make_probe(mac_table={"127.0.0.1": "B8:27:EB:01:02:03"})
        record = asyncio.run(probe.run("127.0.0.1"))

        assert record.status == DeviceStatus.ONLINE
        assert record.latency == "2 ms"
        assert record.ttl == 64
        assert record.reply_address == "127.0.0.1"
        assert record.hostname == "localhost"
        assert record.mac_address == "B8:27:EB:01:02:03"
        assert record.vendor == "Raspberry Pi Foundation"
        assert record.device_type == "Single-board Computer"
        assert record.error == ""

    def test_unresolved_mac(self, make_probe):
        record = asyncio.run(make_probe().run("127.0.0.1"))
        assert record.status == DeviceStatus.ONLINE
        assert record.mac_address == "N/A"
        assert record.vendor == "N/A"
        assert record.device_type == "Unknown"

    def test_unknown_vendor(self, make_probe):
        probe = make_probe(mac_table={"127.0.0.1": "12:34:56:78:9A:BC"})
        record = asyncio.run(probe.run("127.0.0.1"))
        assert record.vendor == "Unknown Vendor"
        assert record.device_type == "Unknown"

    def test_dns_failure_is_swallowed(self, make_probe, no_reverse_dns):
        no_reverse_dns.side_effect = socket.herror("no name")
        record = asyncio.run(make_probe().run("127.0.0.1"))
        assert record.status == DeviceStatus.ONLINE
        assert record.hostname == "N/A"

    def test_mac_resolver_fault_gives_not_available(self, make_probe):
        probe = make_probe()

        async def broken(address, cancel=None):
            raise RuntimeError("table unreadable")

        probe.mac_resolver.resolve = broken
        record = asyncio.run(probe.run("127.0.0.1"))
        assert record.status == DeviceStatus.ONLINE
        assert record.mac_address == "N/A"

    def test_ping_fault_becomes_error(self, make_probe):
        probe = make_probe(pinger=FakePinger(error=RuntimeError("ping exploded")))
        record = asyncio.run(probe.run("10.0.0.1"))

        assert record.status == DeviceStatus.ERROR
        assert record.error == "ping exploded"
        assert record.latency == "ping exploded"
        assert record.open_ports == ()

    def test_fault_after_ping_clears_ports(self, make_probe):
        probe = make_probe(mac_table={"127.0.0.1": "AA:BB:CC:00:00:01"})

        async def open_ports(host, cancel=None):
            return [22, 80]

        def explode(vendor):
            raise ValueError("bad table")

        probe.scan_ports = open_ports
        probe.classifier.classify = explode
        record = asyncio.run(probe.run("127.0.0.1"))

        assert record.status == DeviceStatus.ERROR
        assert record.open_ports == ()
        assert record.latency == "bad table"

    def test_cancel_before_start(self, make_probe):
        cancel = CancelToken()
        cancel.cancel()
        pinger = FakePinger({"127.0.0.1": REPLY})
        record = asyncio.run(make_probe(pinger=pinger).run("127.0.0.1", cancel))

        assert record.status == DeviceStatus.CANCELED
        assert pinger.calls == []

    def test_cancel_observed_after_ping(self, make_probe):
        cancel = CancelToken()
        probe = make_probe()

        async def cancel_then_ping(host, timeout_ms):
            cancel.cancel()
            return REPLY

        probe.pinger.ping = cancel_then_ping
        record = asyncio.run(probe.run("127.0.0.1", cancel))

        assert record.status == DeviceStatus.CANCELED
        assert record.open_ports == ()

    def test_records_are_immutable(self, make_probe):
        record = asyncio.run(make_probe().run("127.0.0.1"))
        with pytest.raises(AttributeError):
            record.status = DeviceStatus.OFFLINE


class TestPortScan:

    def test_open_ports_keep_configured_order(self, make_probe):
        closed = closed_port()

        async def scenario(ports):
            configured = [max(ports), closed, min(ports)]
            probe = make_probe(ports=configured)
            return await probe.scan_ports("127.0.0.1"), ports

        result, ports = asyncio.run(with_listeners(2, scenario))
        assert result == [max(ports), min(ports)]

    def test_full_record_lists_open_port(self, make_probe):
        closed = closed_port()

        async def scenario(ports):
            probe = make_probe(ports=[closed, ports[0]])
            return await probe.run("127.0.0.1"), ports[0]

        record, open_port = asyncio.run(with_listeners(1, scenario))
        assert record.open_ports == (open_port,)
        assert record.open_ports_display == str(open_port)

    def test_check_port_closed(self, make_probe):
        probe = make_probe()
        assert asyncio.run(probe.check_port("127.0.0.1", closed_port())) is False

    def test_cancel_checked_around_port_scan(self, make_probe):
        cancel = CancelToken()
        cancel.cancel()
        with pytest.raises(ScanCanceled):
            asyncio.run(make_probe(ports=[closed_port()]).scan_ports("127.0.0.1", cancel))
