import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from recipegen.services.tips import get_tip_channel, tip_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cooking"])


async def _pump_requests(websocket: WebSocket) -> None:
    channel = get_tip_channel()
    while True:
        data = await websocket.receive_json()
        if isinstance(data, dict) and data.get("event") == "cooking-assistance":
            channel.publish(tip_for(data))


async def _pump_tips(websocket: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        message = await queue.get()
        await websocket.send_json(message)


@router.websocket("/ws/cooking")
async def cooking_socket(websocket: WebSocket):
    with get_tip_channel().subscribe() as queue:
        await websocket.accept()
        logger.info("Cooking assistant connected")
        tasks = [
            asyncio.create_task(_pump_requests(websocket)),
            asyncio.create_task(_pump_tips(websocket, queue)),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.warning("Cooking socket closed with error: %s", exc)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
    logger.info("Cooking assistant disconnected")
