import asyncio
from typing import Optional


class ScanCanceled(Exception):
    """Raised at a checkpoint once the scan's cancel token has been set."""


class CancelToken:
    """Cooperative cancellation signal shared by every probe of one scan."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScanCanceled()

    async def wait(self) -> None:
        await self._event.wait()


def checkpoint(cancel: Optional[CancelToken]) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()
