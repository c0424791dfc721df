"""Customer-specific rebate API endpoints."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.db import get_db
from agentworks.schemas.rebate import CustomerRebateBatchUpdate, CustomerRebateUpdate
from agentworks.services.customer_rebate import (
    batch_update_customer_rebate,
    get_customer_rebate,
    update_customer_rebate,
)
from agentworks.utils.responses import success_response

router = APIRouter(prefix="/customer-talents/rebate", tags=["Customer Rebate"])


@router.get("")
async def get_customer_talent_rebate(
    customer_id: str = Query(..., alias="customerId", min_length=1),
    one_id: str = Query(..., alias="oneId", min_length=1),
    platform: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Customer override next to the talent's own rate."""
    detail = await get_customer_rebate(db, customer_id, one_id, platform)
    return success_response(detail)


@router.put("")
async def update_customer_talent_rebate(
    data: CustomerRebateUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Enable, change or disable a customer override."""
    detail = await update_customer_rebate(
        db,
        data.customer_id,
        data.one_id,
        data.platform,
        enabled=data.enabled,
        rate=data.rate,
        effective_date=data.effective_date,
        notes=data.notes,
        updated_by=data.updated_by,
    )
    await db.commit()
    return success_response(detail)


@router.post("/batch")
async def batch_update_customer_talent_rebate(
    data: CustomerRebateBatchUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Set overrides for several talents of one customer; items fail independently."""
    result = await batch_update_customer_rebate(
        db,
        data.customer_id,
        data.platform,
        data.items,
        updated_by=data.updated_by,
    )
    await db.commit()
    return success_response(result)
