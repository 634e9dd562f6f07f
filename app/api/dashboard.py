"""Dashboard API endpoints"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
import structlog

from app.config import settings
from app.api.auth import identity_from_token, require_access
from app.api.deps import get_data_source
from app.schemas.reservation import DashboardSnapshot
from app.services.access import AccessGate, has_permission
from app.services.dashboard import DashboardController, restaurant_today
from app.services.data_source import DataSource

router = APIRouter()
logger = structlog.get_logger()


@router.get(
    "",
    response_model=DashboardSnapshot,
    dependencies=[Depends(require_access(permission="dashboard.view"))],
)
async def get_dashboard(
    day: Optional[date] = Query(None, alias="date"),
    data_source: DataSource = Depends(get_data_source),
):
    """Stats and latest reservations for one day (today by default)"""
    scope_date = day or restaurant_today(settings.restaurant_timezone)
    controller = DashboardController(
        data_source,
        scope_date,
        recent_limit=settings.recent_reservations_limit,
    )
    try:
        return await controller.set_scope_date(scope_date)
    finally:
        await controller.close()


@router.websocket("/ws")
async def dashboard_websocket(
    websocket: WebSocket,
    data_source: DataSource = Depends(get_data_source),
):
    """
    Live dashboard.

    Pushes a snapshot whenever the selected day's reservations change.
    Clients send {"action": "set_date", "date": "YYYY-MM-DD"},
    {"action": "advance", "direction": -1 | 1}, {"action": "refresh"} or
    {"action": "ping"}. The token goes in the "token" query parameter.
    """
    identity, _ = await identity_from_token(websocket.query_params.get("token"), data_source)
    decision = AccessGate(require_admin=False).resolve(identity)
    if not decision.allowed or not has_permission(identity, "dashboard.view"):
        await websocket.close(code=4003, reason=decision.redirect_to or "Insufficient permissions")
        return

    try:
        scope_date = date.fromisoformat(websocket.query_params["date"])
    except (KeyError, ValueError):
        scope_date = restaurant_today(settings.restaurant_timezone)

    await websocket.accept()
    controller = DashboardController(
        data_source,
        scope_date,
        recent_limit=settings.recent_reservations_limit,
    )

    async def push(snapshot: DashboardSnapshot) -> None:
        await websocket.send_json({"type": "snapshot", "data": snapshot.model_dump(mode="json")})

    controller.add_listener(push)
    logger.info("Dashboard WebSocket connected", date=scope_date.isoformat())

    try:
        await controller.start()
        while True:
            message = await websocket.receive_json()
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "error": "Messages must be JSON objects"})
                continue
            action = message.get("action")

            if action == "ping":
                await websocket.send_json({"type": "pong"})
            elif action == "set_date":
                try:
                    requested = date.fromisoformat(str(message.get("date")))
                except ValueError:
                    await websocket.send_json({"type": "error", "error": "Invalid date format: must be YYYY-MM-DD"})
                    continue
                await controller.set_scope_date(requested)
            elif action == "advance":
                try:
                    await controller.advance_date(int(message.get("direction", 0)))
                except (TypeError, ValueError):
                    await websocket.send_json({"type": "error", "error": "direction must be -1 or 1"})
            elif action == "refresh":
                await controller.refresh()
            else:
                await websocket.send_json({"type": "error", "error": f"Unknown action: {action}"})
    except WebSocketDisconnect:
        logger.info("Dashboard WebSocket disconnected", date=controller.scope_date.isoformat())
    finally:
        await controller.close()
