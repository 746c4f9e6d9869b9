"""
ICMP echo through the system ping utility.

Only one echo is sent; the reply line is parsed for the responder's address,
TTL and round-trip time. Linux, macOS and Windows output formats are handled.
"""

import asyncio
import logging
import math
import platform
import re
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)

_IPV4 = r"\d{1,3}(?:\.\d{1,3}){3}"
# "64 bytes from 10.0.0.1: ...", "64 bytes from host (10.0.0.1): ...", "Reply from 10.0.0.1: ..."
_REPLY_FROM = re.compile(rf"from\s+(?:[^\s(]+\s+\()?({_IPV4})\)?", re.IGNORECASE)
_TTL = re.compile(r"ttl[=:](\d+)", re.IGNORECASE)
_TIME = re.compile(r"time\s*[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


@dataclass(frozen=True)
class PingReply:
    address: str
    round_trip_ms: float
    ttl: Optional[int] = None

    @property
    def latency(self) -> str:
        return f"{self.round_trip_ms:.0f} ms"


def parse_ping_output(output: str) -> Optional[PingReply]:
    """Extract the first echo reply from ping output, or None if there is none."""
    for line in output.splitlines():
        time_match = _TIME.search(line)
        from_match = _REPLY_FROM.search(line)
        if not time_match or not from_match:
            continue
        ttl_match = _TTL.search(line)
        return PingReply(
            address=from_match.group(1),
            round_trip_ms=float(time_match.group(1)),
            ttl=int(ttl_match.group(1)) if ttl_match else None,
        )
    return None


def build_ping_command(host: str, timeout_ms: int, system: str = None) -> List[str]:
    system = (system or platform.system()).lower()
    if system == "windows":
        return ["ping", "-n", "1", "-w", str(timeout_ms), host]
    if system == "darwin":
        return ["ping", "-c", "1", "-W", str(timeout_ms), host]
    # iputils takes whole seconds for -W; the overall deadline is enforced by the caller
    return ["ping", "-c", "1", "-W", str(max(1, math.ceil(timeout_ms / 1000))), host]


class SystemPinger:
    """Sends a single echo request by running the platform's ping command."""

    async def ping(self, host: str, timeout_ms: int) -> Optional[PingReply]:
        """
        Ping a single host.

        Returns None when the host does not answer within timeout_ms. A missing
        ping binary raises FileNotFoundError to the caller.
        """
        if host.startswith("-"):
            # Would be read as a ping option, never as a destination
            logger.debug(f"Not pinging {host!r}: not a valid destination")
            return None

        process = await asyncio.create_subprocess_exec(
            *build_ping_command(host, timeout_ms),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL
        )

        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return None

        if process.returncode != 0:
            return None

        reply = parse_ping_output(stdout.decode(errors="ignore"))
        if reply is None:
            logger.debug(f"Ping for {host} succeeded but no reply line was parsed")
        return reply
