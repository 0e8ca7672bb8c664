"""Endpoints and websocket handler for realtime notifications."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from portal.application.realtime import RealtimeService
from portal.domain.entities import Notification, NotificationType, Principal, user_channel_name
from portal.infrastructure.realtime import USER_EVENT, serialize_notification
from portal.infrastructure.security import principal_from_token
from portal.interfaces.api.dependencies import (
    get_current_principal,
    get_realtime_service,
    require_admin,
)
from portal.interfaces.api.schemas import (
    SUBSCRIBABLE_CHANNELS,
    BroadcastRequest,
    ConnectionStatusRead,
    DeliveryRead,
    SendNotificationRequest,
    SubscriptionInfo,
)
from portal.utils import now_in_app_timezone

router = APIRouter(prefix="/api/realtime", tags=["realtime"])
logger = logging.getLogger(__name__)


@router.post("/subscribe/{channel}", response_model=SubscriptionInfo)
async def subscribe_to_notifications(
    channel: str,
    principal: Principal = Depends(get_current_principal),
) -> SubscriptionInfo:
    """Acknowledge interest in one of the notification streams."""

    if channel not in SUBSCRIBABLE_CHANNELS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid channel")
    if channel == "admin-notifications" and not principal.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Insufficient permissions.",
        )
    return SubscriptionInfo(
        user_id=principal.id,
        channel=channel,
        subscribed_at=now_in_app_timezone(),
    )


@router.get("/status", response_model=ConnectionStatusRead, response_model_exclude_none=True)
async def get_connection_status(
    principal: Principal = Depends(get_current_principal),
    service: RealtimeService = Depends(get_realtime_service),
) -> ConnectionStatusRead:
    """Report open channels and the caller's live subscriptions."""

    snapshot = service.connection_status()
    return ConnectionStatusRead(
        user_id=principal.id,
        connected=service.running,
        channels=snapshot.channels,
        last_heartbeat=snapshot.last_heartbeat_at,
        active_subscriptions=snapshot.subscriptions_for(principal.id),
        subscribers=snapshot.subscribers if principal.is_admin() else None,
    )


@router.post("/send-notification", response_model=DeliveryRead)
async def send_notification(
    body: SendNotificationRequest,
    admin: Principal = Depends(require_admin),
    service: RealtimeService = Depends(get_realtime_service),
) -> DeliveryRead:
    """Send a manual notification to one member or to every administrator."""

    data = {
        **(body.data or {}),
        "message": body.message,
        "senderId": admin.id,
        "senderName": admin.name,
        "priority": body.priority,
    }
    notification = Notification(type=body.notification_type, data=data, message=body.message)
    report = await service.send_notification(body.recipient_type, body.recipient_id, notification)
    return DeliveryRead(
        message="Notification sent successfully",
        delivered=report.error is None,
        notification=serialize_notification(notification),
    )


@router.post("/broadcast", response_model=DeliveryRead)
async def broadcast_message(
    body: BroadcastRequest,
    admin: Principal = Depends(require_admin),
    service: RealtimeService = Depends(get_realtime_service),
) -> DeliveryRead:
    """Publish an announcement. Only the administrator audience has a live channel."""

    data = {
        "message": body.message,
        "senderId": admin.id,
        "senderName": admin.name,
        "priority": body.priority,
        "targetAudience": body.target_audience,
    }
    if body.branch:
        data["branch"] = body.branch
    notification = Notification(
        type=NotificationType.ANNOUNCEMENT, data=data, message=body.message
    )

    delivered = body.target_audience == "all_admins"
    if delivered:
        await service.broadcast_to_admins(notification)
    else:
        logger.info("Broadcast audience %s has no live channel", body.target_audience)
    return DeliveryRead(
        message="Broadcast sent successfully",
        delivered=delivered,
        notification=serialize_notification(notification),
    )


@router.websocket("/ws")
async def realtime_websocket(websocket: WebSocket) -> None:
    """Stream personal and, for administrators, admin-wide notifications."""

    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=1008)
        return
    try:
        principal = principal_from_token(token)
    except ValueError:
        await websocket.close(code=1008)
        return

    service: RealtimeService | None = getattr(websocket.app.state, "realtime", None)
    transport = getattr(websocket.app.state, "transport", None)
    if service is None or transport is None:
        await websocket.close(code=1011)
        return

    await websocket.accept()
    personal_channel = user_channel_name(principal.id)
    # Personal notifications arrive through the subscriber callback only.
    if principal.is_admin():
        transport.join(service.registry.admin_channel_name, websocket)

    async def forward(notification: Notification) -> None:
        await websocket.send_json(
            {
                "channel": personal_channel,
                "event": USER_EVENT,
                "payload": serialize_notification(notification),
            }
        )

    subscription = await service.subscribe(principal.id, forward)
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                continue
            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        transport.leave(websocket)
        await subscription.cancel()
