"""Inventory & rates router — calendar range, staged edits, save and discard."""

import logging
from datetime import date
from decimal import Decimal
from typing import Literal

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ari_sync.services.inventory.calendar import DateRange
from ari_sync.services.inventory.session import InventorySession
from ari_sync.services.inventory.sync import CONFIGURATION_ERROR, PUSH_FAILED
from ari_sync.services.session_registry import SessionRegistry, get_registry

logger = logging.getLogger(__name__)

router = APIRouter()

FieldName = Literal[
    "rate", "availability", "min_stay", "max_stay",
    "closed_to_arrival", "closed_to_departure", "stop_sell",
]


class RangeRequest(BaseModel):
    start_date: date
    end_date: date


class ShiftRequest(BaseModel):
    direction: Literal[-1, 1]


class PresetRequest(BaseModel):
    days: int = Field(ge=1, le=366)


class ValueRequest(BaseModel):
    entity_id: str
    field: FieldName
    value: int | Decimal | bool
    date: date
    end_date: date | None = None


class ToggleDayRequest(BaseModel):
    date: date


class ApplySelectedRequest(BaseModel):
    entity_id: str
    field: FieldName
    value: int | Decimal | bool


def _get_session(tenant_id: str, registry: SessionRegistry) -> InventorySession:
    session = registry.get(tenant_id)
    if not session:
        raise HTTPException(status_code=404, detail="No calendar open for this tenant")
    return session


@router.get("/{tenant_id}")
async def get_calendar(tenant_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Current calendar view with staged values applied."""
    return _get_session(tenant_id, registry).snapshot()


@router.post("/{tenant_id}/range")
async def open_range(
    tenant_id: str,
    req: RangeRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    """Open the calendar on a date range. Restores any unsaved draft for it."""
    try:
        date_range = DateRange(req.start_date, req.end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        session = await registry.open(tenant_id, date_range)
    except httpx.HTTPError as e:
        logger.error(f"Could not open inventory calendar for {tenant_id}: {e}")
        raise HTTPException(status_code=502, detail="Channel manager unavailable")
    return session.snapshot()


@router.post("/{tenant_id}/shift")
async def shift_range(
    tenant_id: str,
    req: ShiftRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = _get_session(tenant_id, registry)
    await session.shift(req.direction)
    return session.snapshot()


@router.post("/{tenant_id}/preset")
async def preset_range(
    tenant_id: str,
    req: PresetRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = _get_session(tenant_id, registry)
    await session.preset(req.days)
    return session.snapshot()


@router.put("/{tenant_id}/values")
async def set_values(
    tenant_id: str,
    req: ValueRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    """Stage a value on one day, or on every day up to end_date."""
    session = _get_session(tenant_id, registry)
    try:
        if req.end_date:
            await session.set_range(req.entity_id, req.date, req.end_date, req.field, req.value)
        else:
            await session.set_value(req.entity_id, req.date, req.field, req.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return session.snapshot()


@router.post("/{tenant_id}/selection/toggle")
async def toggle_day(
    tenant_id: str,
    req: ToggleDayRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = _get_session(tenant_id, registry)
    try:
        selected = await session.toggle_day(req.date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"date": req.date.isoformat(), "selected": selected}


@router.post("/{tenant_id}/selection/apply")
async def apply_to_selected(
    tenant_id: str,
    req: ApplySelectedRequest,
    registry: SessionRegistry = Depends(get_registry),
):
    session = _get_session(tenant_id, registry)
    try:
        count = await session.apply_to_selected(req.entity_id, req.field, req.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"updated": count}


@router.delete("/{tenant_id}/selection")
async def clear_selection(tenant_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = _get_session(tenant_id, registry)
    await session.clear_selection()
    return {"selected_days": []}


@router.post("/{tenant_id}/save")
async def save(tenant_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Push staged edits to the channel manager."""
    session = _get_session(tenant_id, registry)
    result = await session.save()

    if result.status == CONFIGURATION_ERROR:
        raise HTTPException(status_code=409, detail=result.error)
    if result.status == PUSH_FAILED:
        raise HTTPException(status_code=502, detail=result.to_dict())
    return result.to_dict()


@router.post("/{tenant_id}/discard")
async def discard(tenant_id: str, registry: SessionRegistry = Depends(get_registry)):
    """Drop staged edits and reload from the channel manager."""
    session = _get_session(tenant_id, registry)
    await session.discard()
    return session.snapshot()
