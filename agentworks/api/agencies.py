"""Agency rebate API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.db import get_db
from agentworks.schemas.rebate import AgencyRebateUpdate
from agentworks.services.rebate_history import get_rebate_history
from agentworks.services.rebate_resolver import get_agency_current_rebate
from agentworks.services.rebate_sync import update_agency_rebate
from agentworks.utils.responses import success_response

router = APIRouter(prefix="/agencies/rebate", tags=["Agency Rebate"])


@router.put("")
async def update_agency_rebate_config(
    data: AgencyRebateUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Change an agency's rate on one platform, optionally syncing its talents."""
    result = await update_agency_rebate(
        db,
        data.agency_id,
        data.platform,
        data.rebate_config.base_rebate,
        effective_date=data.rebate_config.effective_date,
        updated_by=data.rebate_config.updated_by,
        sync_to_talents=data.sync_to_talents,
    )
    await db.commit()
    return success_response(result)


@router.get("/current")
async def get_current_agency_rebate(
    agency_id: str = Query(..., alias="agencyId", min_length=1),
    platform: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Agency's active rate on a platform."""
    current = await get_agency_current_rebate(db, agency_id, platform)
    return success_response(current)


@router.get("/history")
async def get_agency_rebate_history(
    agency_id: str = Query(..., alias="agencyId", min_length=1),
    platform: str = Query(...),
    limit: Optional[int] = Query(None),
    offset: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Agency's rebate ledger on a platform, newest first."""
    page = await get_rebate_history(
        db, agency_id, platform, limit, offset, target_type="agency",
    )
    return success_response(page)
