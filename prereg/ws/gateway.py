"""WebSocket gateway for the live registration counter.

On connect the client gets a ``REGISTRATION_SNAPSHOT`` with the current
totals, then one ``REGISTRATION_COUNT`` per new registration on any
instance. The only client message is ``PING`` (or a bare ``ping``).
"""

from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from prereg.logging_config import get_logger
from prereg.services.live_feed import get_registration_feed
from prereg.services.stats import StatsService
from prereg.utils.db import get_db_session
from prereg.utils.json_utils import json_dumps, json_loads
from prereg.ws.events import EventType

router = APIRouter(tags=["WebSocket"])
logger = get_logger(__name__)


def build_message(event_type: EventType, payload: dict[str, Any]) -> str:
    return json_dumps({"type": event_type.value, "payload": payload})


def _is_ping(text: str) -> bool:
    if text.strip().lower() == "ping":
        return True
    try:
        data = json_loads(text)
    except ValueError:
        return False
    return isinstance(data, dict) and data.get("type") == EventType.PING.value


@router.websocket("/ws/registrations")
async def registration_feed(websocket: WebSocket):
    """실시간 사전예약 카운트 스트림"""
    await websocket.accept()

    # Counts published before the snapshot is sent are held back, then the
    # highest one newer than the snapshot is sent right after it
    held: list[int] = []
    snapshot_sent = False

    async def send_count(total: int) -> None:
        await websocket.send_text(
            build_message(EventType.REGISTRATION_COUNT, {"totalRegistrations": total})
        )

    async def push_count(total: int) -> None:
        if not snapshot_sent:
            held.append(total)
            return
        await send_count(total)

    feed = get_registration_feed()
    unsubscribe = feed.subscribe(push_count)
    logger.info("live_feed_connected", subscribers=feed.subscriber_count)

    try:
        async with get_db_session() as db:
            snapshot = await StatsService(db).get_snapshot()
        await websocket.send_text(
            build_message(
                EventType.REGISTRATION_SNAPSHOT,
                {
                    "totalRegistrations": snapshot.total_registrations,
                    "registrationsToday": snapshot.registrations_today,
                },
            )
        )
        snapshot_sent = True
        if held and max(held) > snapshot.total_registrations:
            await send_count(max(held))

        while True:
            text = await websocket.receive_text()
            if _is_ping(text):
                await websocket.send_text(build_message(EventType.PONG, {}))
    except WebSocketDisconnect as e:
        logger.info("live_feed_disconnected", code=e.code)
    finally:
        unsubscribe()
