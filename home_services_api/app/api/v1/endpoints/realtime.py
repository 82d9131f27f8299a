"""
Websocket endpoint for the live admin dashboard.

Clients connect to ``/ws/admin-dashboard?token=<access token>``.  The
token is checked before the handshake is accepted; an invalid or
missing token, or a user who is not an admin, closes the connection with
code 1008.  Once connected the client sends
``{"action": "subscribeToUpdates"}`` and from then on receives every
booking event as ``{"event": ..., "data": ...}``.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from home_services_api.app.core.errors import ConflictError
from home_services_api.app.core.security import ROLE_ADMIN, resolve_token_user
from home_services_api.app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/admin-dashboard")
async def admin_dashboard(websocket: WebSocket, token: Optional[str] = Query(None)) -> None:
    user = resolve_token_user(token)
    if user is None or user["role"] != ROLE_ADMIN:
        logger.warning("Rejected dashboard connection: %s", "invalid token" if user is None else "not an admin")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    channel = NotificationService.channel
    connection_id: Optional[str] = None
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))
            try:
                message = json.loads(frame.get("text") or "")
            except ValueError:
                await websocket.send_json({"event": "error", "data": {"message": "Messages must be JSON text"}})
                continue
            action = message.get("action") if isinstance(message, dict) else None
            if action == "subscribeToUpdates":
                if connection_id is None:
                    try:
                        connection_id = channel.connect(websocket)
                    except ConflictError as e:
                        await websocket.send_json({"event": "error", "data": {"message": str(e)}})
                        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
                        return
                await websocket.send_json(
                    {"event": "subscribed", "data": {"topic": channel.topic, "connection_id": connection_id}}
                )
            elif action == "unsubscribe":
                if connection_id is not None:
                    channel.disconnect(connection_id)
                    connection_id = None
                await websocket.send_json({"event": "unsubscribed", "data": {"topic": channel.topic}})
            else:
                await websocket.send_json({"event": "error", "data": {"message": f"Unknown action: {action}"}})
    except WebSocketDisconnect:
        logger.debug("Dashboard client of user %s disconnected", user["user_id"])
    finally:
        if connection_id is not None:
            channel.disconnect(connection_id)
