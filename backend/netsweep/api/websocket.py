from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from typing import Dict, Optional
import asyncio
import json
import logging

from ..scanner import CancelToken, DeviceStatus
from . import routes
from .schemas import ScanRequest

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    """Tracks connected WebSocket clients and the scan each one is running."""

    def __init__(self):
        self.active_scans: Dict[WebSocket, CancelToken] = {}

    async def connect(self, websocket: WebSocket):
        """Accept a new WebSocket connection."""
        await websocket.accept()

    def track(self, websocket: WebSocket, cancel: CancelToken):
        """Remember the cancel token of the scan a client just started."""
        self.active_scans[websocket] = cancel

    def disconnect(self, websocket: WebSocket):
        """Forget a WebSocket connection, canceling its scan if one is running."""
        cancel = self.active_scans.pop(websocket, None)
        if cancel is not None:
            cancel.cancel()

    def cancel_all(self) -> int:
        """Cancel every running client scan. Returns how many were running."""
        running = [c for c in self.active_scans.values() if not c.is_cancelled]
        for cancel in running:
            cancel.cancel()
        return len(running)

    async def send_personal(self, websocket: WebSocket, event_type: str, data: dict):
        """Send a message to a specific client."""
        message = json.dumps({
            "type": event_type,
            "data": data
        }, default=str)
        await websocket.send_text(message)


# Global connection manager
manager = ConnectionManager()


async def stream_to_client(
    websocket: WebSocket,
    request: ScanRequest,
    targets: list[str],
    cancel: CancelToken,
):
    """Stream one scan's records to a client as they complete."""
    options = routes.effective_options(request)
    await manager.send_personal(websocket, "scan_started", {"targets": len(targets)})

    count = 0
    async for record in routes.stream_scan(targets, options, cancel):
        if request.hide_offline and record.status == DeviceStatus.OFFLINE:
            continue
        count += 1
        await manager.send_personal(
            websocket, "device", routes.to_response(record).model_dump(mode="json")
        )

    event = "scan_canceled" if cancel.is_cancelled else "scan_completed"
    await manager.send_personal(websocket, event, {"count": count})


def log_scan_failure(task: asyncio.Task):
    """Done-callback for scan tasks: retrieve and log whatever ended them."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Scan stream failed: {error!r}")


@router.websocket("/ws/scan")
async def scan_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for streamed scans.

    Client messages: {"type": "scan", ...ScanRequest fields}, {"type": "cancel"},
    {"type": "ping"}. One scan runs per connection at a time.
    """
    await manager.connect(websocket)
    scan_task: Optional[asyncio.Task] = None
    cancel: Optional[CancelToken] = None

    try:
        await manager.send_personal(websocket, "connected", {
            "message": "Connected to netsweep scan stream"
        })

        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=30.0
                )
            except asyncio.TimeoutError:
                # Keepalive
                await manager.send_personal(websocket, "ping", {})
                continue

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue

            msg_type = message.get("type")

            if msg_type == "ping":
                await manager.send_personal(websocket, "pong", {})

            elif msg_type == "cancel":
                if cancel is not None:
                    cancel.cancel()

            elif msg_type == "scan":
                if scan_task is not None and not scan_task.done():
                    await manager.send_personal(websocket, "error", {"detail": "Scan already running"})
                    continue

                try:
                    request = ScanRequest.model_validate(
                        {k: v for k, v in message.items() if k != "type"}
                    )
                    targets = routes.resolve_targets(request)
                except ValidationError as e:
                    await manager.send_personal(websocket, "error", {"detail": e.errors()})
                    continue
                except HTTPException as e:
                    await manager.send_personal(websocket, "error", {"detail": e.detail})
                    continue

                cancel = CancelToken()
                scan_task = asyncio.create_task(
                    stream_to_client(websocket, request, targets, cancel)
                )
                scan_task.add_done_callback(log_scan_failure)
                manager.track(websocket, cancel)

    except WebSocketDisconnect:
        pass
    finally:
        if cancel is not None:
            cancel.cancel()
        if scan_task is not None and not scan_task.done():
            scan_task.cancel()
            await asyncio.gather(scan_task, return_exceptions=True)
        manager.disconnect(websocket)
