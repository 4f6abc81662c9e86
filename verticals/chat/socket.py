"""Realtime chat endpoint.

Protocol (JSON text frames):

    client -> {"event": "join_conversation", "conversationId": "<id>"}
    client -> {"event": "leave_conversation", "conversationId": "<id>"}
    server -> {"event": "joined" | "left", "data": {"conversationId": "<id>"}}
    server -> {"event": "new_message" | "message_update" | "message_deleted"
               | "conversation_update", "data": <payload>}

The handshake must carry X-User-ID; without it the socket is closed with
1008 (policy violation) before it is accepted.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from api.middleware import USER_HEADER
from core.logging_setup import get_logger
from core.realtime import Broadcaster

logger = get_logger(__name__)

router = APIRouter()

_ROOM_EVENTS = {"join_conversation", "leave_conversation"}


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    user_id = (websocket.headers.get(USER_HEADER) or "").strip()
    if not user_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    broadcaster: Broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    conn_id = broadcaster.connect(websocket.send_json, user_id=user_id)
    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                broadcaster.send_to(conn_id, "error", {"message": "Frames must be JSON objects"})
                continue
            _handle_frame(broadcaster, conn_id, frame)
    except WebSocketDisconnect:
        logger.debug("Socket closed by client", extra={"extra_data": {"conn_id": conn_id}})
    finally:
        await broadcaster.disconnect(conn_id)


def _handle_frame(broadcaster: Broadcaster, conn_id: str, frame: object) -> None:
    event = frame.get("event") if isinstance(frame, dict) else None
    room = frame.get("conversationId") if isinstance(frame, dict) else None

    if event not in _ROOM_EVENTS:
        broadcaster.send_to(conn_id, "error", {"message": f"Unknown event: {event}"})
        return
    if not isinstance(room, str) or not room:
        broadcaster.send_to(conn_id, "error", {"message": "conversationId is required"})
        return

    if event == "join_conversation":
        broadcaster.join(conn_id, room)
        broadcaster.send_to(conn_id, "joined", {"conversationId": room})
    else:
        broadcaster.leave(conn_id, room)
        broadcaster.send_to(conn_id, "left", {"conversationId": room})
