"""
Bounded fan-out / completion-ordered fan-in over a set of targets.

A fixed pool of workers pulls targets from a work queue and pushes finished
records onto a results queue, which stream() drains as an async generator.
The pool size is the admission limit: at most max_concurrent_scans probes run
at once. Once the cancel token is set no worker takes another target; probes
already running finish (usually as Canceled) and are still emitted.
"""

import asyncio
import logging
from typing import AsyncIterator, Iterable, Optional

from .cancel import CancelToken
from .host_probe import HostProbe
from .models import DeviceRecord, ScanOptions

logger = logging.getLogger(__name__)

_WORKER_DONE = object()


class ScanScheduler:
    """Runs a HostProbe over many targets with a global concurrency ceiling."""

    def __init__(self, options: Optional[ScanOptions] = None, probe: Optional[HostProbe] = None):
        self.options = options or ScanOptions.from_settings()
        self.probe = probe or HostProbe(self.options)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        """Number of admitted probes that have not finished yet."""
        return self._in_flight

    async def stream(
        self,
        targets: Iterable[str],
        cancel: Optional[CancelToken] = None,
    ) -> AsyncIterator[DeviceRecord]:
        """
        Yield one DeviceRecord per admitted target, in completion order.

        Closing the generator early (or cancelling the consuming task) cancels
        the workers.
        """
        cancel = cancel or CancelToken()
        work: asyncio.Queue = asyncio.Queue()
        for target in targets:
            work.put_nowait(target)

        total = work.qsize()
        results: asyncio.Queue = asyncio.Queue()
        workers = [
            asyncio.create_task(self._worker(work, results, cancel))
            for _ in range(min(self.options.max_concurrent_scans, total))
        ]
        logger.info(f"Scanning {total} targets with {len(workers)} workers")

        emitted = 0
        remaining = len(workers)
        try:
            while remaining:
                item = await results.get()
                if item is _WORKER_DONE:
                    remaining -= 1
                    continue
                emitted += 1
                yield item
        finally:
            for worker in workers:
                if not worker.done():
                    worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

            if cancel.is_cancelled:
                logger.info(f"Scan canceled after {emitted}/{total} results")
            else:
                logger.info(f"Scan finished: {emitted}/{total} results")

    async def _worker(self, work: asyncio.Queue, results: asyncio.Queue, cancel: CancelToken):
        try:
            while not cancel.is_cancelled:
                try:
                    target = work.get_nowait()
                except asyncio.QueueEmpty:
                    break

                self._in_flight += 1
                try:
                    record = await self.probe.run(target, cancel)
                finally:
                    self._in_flight -= 1
                await results.put(record)
        finally:
            results.put_nowait(_WORKER_DONE)
