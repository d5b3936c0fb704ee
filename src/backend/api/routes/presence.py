"""
Presence API Routes

Arrival/departure reports from geofencing, router or BLE integrations, and
the aggregated home/away status the notification manager reads.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from services.presence_service import PresenceService, get_presence_service

router = APIRouter(prefix="/api/presence")


# --- Schemas ---

class ArrivalRequest(BaseModel):
    name: str | None = Field(default=None, max_length=100)


class PresenceStatusResponse(BaseModel):
    status: str
    home: list[str] = []
    tracked: int = 0


# --- Status ---

@router.get("/status", response_model=PresenceStatusResponse)
async def get_presence_status(
    presence: PresenceService = Depends(get_presence_service),
):
    """Aggregated household status (home / away / unknown)."""
    return PresenceStatusResponse(**presence.get_status())


# --- Reports ---

@router.post("/{member_id}/arrive", response_model=PresenceStatusResponse)
async def report_arrival(
    member_id: str,
    body: ArrivalRequest | None = None,
    presence: PresenceService = Depends(get_presence_service),
):
    """A household member arrived at home."""
    await presence.report_arrival(member_id, name=body.name if body else None)
    return PresenceStatusResponse(**presence.get_status())


@router.post("/{member_id}/leave", response_model=PresenceStatusResponse)
async def report_departure(
    member_id: str,
    presence: PresenceService = Depends(get_presence_service),
):
    """A household member left home."""
    await presence.report_departure(member_id)
    return PresenceStatusResponse(**presence.get_status())
