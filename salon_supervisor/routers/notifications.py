from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])


@router.websocket("/ws")
async def notifications_socket(websocket: WebSocket):
    """Dashboard event stream; clients send {"type": "subscribe"} to get an ack"""
    notifications = websocket.app.state.container.notifications

    await websocket.accept()
    notifications.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await notifications.handle_message(websocket, raw)
    except WebSocketDisconnect:
        logger.info("Supervisor websocket closed")
    finally:
        notifications.disconnect(websocket)
