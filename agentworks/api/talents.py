"""Talent rebate API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.db import get_db
from agentworks.schemas.rebate import (
    ActivatePendingRequest,
    SyncAgencyRebateRequest,
    TalentRebateUpdate,
)
from agentworks.services.rebate_history import get_rebate_history
from agentworks.services.rebate_resolver import resolve_effective_rate
from agentworks.services.rebate_sync import sync_agency_rebate_to_talent
from agentworks.services.rebate_transition import activate_pending_if_due, apply_rate_change
from agentworks.utils.responses import success_response

router = APIRouter(prefix="/talents/rebate", tags=["Talent Rebate"])


@router.get("")
async def get_talent_rebate(
    one_id: str = Query(..., alias="oneId", min_length=1),
    platform: str = Query(...),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    db: AsyncSession = Depends(get_db),
):
    """Resolve the talent's current and effective rate."""
    resolution = await resolve_effective_rate(db, one_id, platform, customer_id)
    return success_response(resolution)


@router.put("")
async def update_talent_rebate(
    data: TalentRebateUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Change a talent's own rate, immediately or from the next cooperation."""
    result = await apply_rate_change(
        db,
        "talent",
        data.one_id,
        data.platform,
        data.rebate_rate,
        effect_type=data.effect_type,
        effective_date=data.effective_date,
        created_by=data.created_by,
        reason=data.reason,
    )
    await db.commit()
    return success_response(result)


@router.get("/history")
async def get_talent_rebate_history(
    one_id: str = Query(..., alias="oneId", min_length=1),
    platform: str = Query(...),
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Talent's rebate ledger, newest first."""
    page = await get_rebate_history(db, one_id, platform, limit, offset)
    return success_response(page)


@router.post("/sync-agency")
async def sync_talent_with_agency(
    data: SyncAgencyRebateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Switch a talent to sync mode and apply its agency's current rate."""
    result = await sync_agency_rebate_to_talent(
        db,
        data.one_id,
        data.platform,
        created_by=data.created_by,
    )
    await db.commit()
    return success_response(result)


@router.post("/activate-pending")
async def activate_pending_rebate(
    data: ActivatePendingRequest,
    db: AsyncSession = Depends(get_db),
):
    """Promote the newest due pending rate of a talent or agency."""
    config_id = await activate_pending_if_due(
        db,
        data.target_type,
        data.target_id,
        data.platform,
        as_of=data.as_of,
    )
    await db.commit()
    return success_response({"activated": config_id is not None, "configId": config_id})
