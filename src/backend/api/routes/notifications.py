"""
Notification API Routes — Routing Engine

Endpoints:
- POST   /send             — Benachrichtigung einspeisen
- GET    /statistics       — Zustellstatistik

Rules:
- GET    /rules            — Regeln auflisten
- POST   /rules            — Regel erstellen
- PATCH  /rules/{id}       — Regel ändern
- DELETE /rules/{id}       — Regel löschen

Do Not Disturb:
- GET    /dnd              — Zeitpläne auflisten
- POST   /dnd              — Zeitplan anlegen
- DELETE /dnd/{id}         — Zeitplan löschen

- GET|PATCH /preferences   — Benutzereinstellungen
- GET    /queue            — Zurückgestellte Benachrichtigungen
- GET    /history          — Zustellverlauf (neueste zuerst)
"""

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from api.routes.notifications_schemas import (
    DNDScheduleListResponse,
    DNDScheduleRequest,
    NotificationListResponse,
    RuleListResponse,
    RuleRequest,
    RuleUpdateRequest,
    SendRequest,
    SendResponse,
    StatisticsResponse,
)
from models.notification import DNDSchedule, NotificationPreferences, NotificationRule
from services.notification_manager import NotificationManager, get_notification_manager
from services.notification_rules import RuleNotFoundError

router = APIRouter()


# ==========================================================================
# Send / Statistics
# ==========================================================================

@router.post("/send", response_model=SendResponse)
async def send_notification(
    body: SendRequest,
    manager: NotificationManager = Depends(get_notification_manager),
):
    """Route a notification through the manager."""
    try:
        result = await manager.send(body.model_dump())
    except Exception as e:
        logger.error(f"❌ Notification send error: {e}")
        raise HTTPException(status_code=500, detail="Internal error processing notification")
    return SendResponse(**result.model_dump())


@router.get("/statistics", response_model=StatisticsResponse)
async def get_statistics(manager: NotificationManager = Depends(get_notification_manager)):
    return StatisticsResponse(**manager.get_statistics())


# ==========================================================================
# Rules
# ==========================================================================

@router.get("/rules", response_model=RuleListResponse)
async def list_rules(manager: NotificationManager = Depends(get_notification_manager)):
    return RuleListResponse(rules=manager.list_rules())


@router.post("/rules", response_model=NotificationRule, status_code=201)
async def create_rule(
    body: RuleRequest,
    manager: NotificationManager = Depends(get_notification_manager),
):
    """Create a rule. Re-using an existing id replaces that rule in place."""
    return await manager.create_rule(NotificationRule(**body.model_dump()))


@router.patch("/rules/{rule_id}", response_model=NotificationRule)
async def update_rule(
    rule_id: str,
    body: RuleUpdateRequest,
    manager: NotificationManager = Depends(get_notification_manager),
):
    try:
        return await manager.update_rule(rule_id, body.model_dump(exclude_unset=True))
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Rule not found")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.delete("/rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    manager: NotificationManager = Depends(get_notification_manager),
):
    if not await manager.delete_rule(rule_id):
        raise HTTPException(status_code=404, detail="Rule not found")
    return {"success": True, "rule_id": rule_id}


# ==========================================================================
# Do Not Disturb
# ==========================================================================

@router.get("/dnd", response_model=DNDScheduleListResponse)
async def list_dnd_schedules(manager: NotificationManager = Depends(get_notification_manager)):
    return DNDScheduleListResponse(
        schedules=manager.list_dnd_schedules(),
        active=manager.is_do_not_disturb(),
    )


@router.post("/dnd", response_model=DNDSchedule, status_code=201)
async def create_dnd_schedule(
    body: DNDScheduleRequest,
    manager: NotificationManager = Depends(get_notification_manager),
):
    try:
        schedule = DNDSchedule(**body.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return await manager.set_dnd_schedule(schedule)


@router.delete("/dnd/{schedule_id}")
async def delete_dnd_schedule(
    schedule_id: str,
    manager: NotificationManager = Depends(get_notification_manager),
):
    if not await manager.delete_dnd_schedule(schedule_id):
        raise HTTPException(status_code=404, detail="Schedule not found")
    return {"success": True, "schedule_id": schedule_id}


# ==========================================================================
# Preferences / Queue / History
# ==========================================================================

@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences(manager: NotificationManager = Depends(get_notification_manager)):
    return manager.get_preferences()


@router.patch("/preferences", response_model=NotificationPreferences)
async def update_preferences(
    body: dict,
    manager: NotificationManager = Depends(get_notification_manager),
):
    """Deep-merge a partial preference document."""
    try:
        return await manager.update_preferences(body)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/queue", response_model=NotificationListResponse)
async def list_queue(manager: NotificationManager = Depends(get_notification_manager)):
    queue = list(manager.queue)
    return NotificationListResponse(notifications=queue, total=len(queue))


@router.get("/history", response_model=NotificationListResponse)
async def list_history(
    limit: int = 50,
    manager: NotificationManager = Depends(get_notification_manager),
):
    """Most recent deliveries first."""
    limit = max(1, min(limit, 200))
    recent = list(reversed(manager.history[-limit:]))
    return NotificationListResponse(notifications=recent, total=len(manager.history))
