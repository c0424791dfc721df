"""
Customer-specific rebate overrides.

An override lives on the customer-talent relation and only changes what
that customer pays. The talent's own ledger and cache are never touched.
"""

import logging
from datetime import date
from typing import Any, Iterable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.errors import InvalidFormat, NotFound, RebateError
from agentworks.models import Platform
from agentworks.schemas.rebate import (
    CustomerRebateBatchItem,
    CustomerRebateBatchResult,
    CustomerRebateDetail,
    SyncFailure,
)
from agentworks.services import rebate_ledger as ledger
from agentworks.services.rebate_resolver import (
    apply_customer_override,
    customer_view,
    get_customer_talent,
    resolve_base_rate,
)
from agentworks.services.rebate_rules import today, utcnow, validate_platform, validate_rebate_rate

logger = logging.getLogger(__name__)


async def get_customer_rebate(
    db: AsyncSession,
    customer_id: str,
    one_id: str,
    platform: Union[str, Platform],
) -> CustomerRebateDetail:
    """Override, talent rate and resulting effective rate for one relation."""
    platform = validate_platform(platform)

    relation = await get_customer_talent(db, customer_id, one_id, platform)
    if relation is None:
        raise NotFound(
            f"Customer talent not found: customerId={customer_id}, oneId={one_id}, "
            f"platform={platform.value}"
        )

    talent = await ledger.get_talent(db, one_id, platform)
    if talent is None:
        raise NotFound(f"Talent not found: oneId={one_id}, platform={platform.value}")

    base = await resolve_base_rate(db, talent, platform)

    return CustomerRebateDetail(
        customer_id=customer_id,
        one_id=one_id,
        platform=platform.value,
        customer_rebate=customer_view(relation),
        talent_rebate=base,
        effective_rebate=apply_customer_override(base, relation),
    )


async def update_customer_rebate(
    db: AsyncSession,
    customer_id: str,
    one_id: str,
    platform: Union[str, Platform],
    enabled: bool,
    rate: Any = None,
    effective_date: Optional[date] = None,
    notes: Optional[str] = None,
    updated_by: Optional[str] = None,
) -> CustomerRebateDetail:
    """Enable, change or disable a customer override.

    A rate is required when enabling. Disabling keeps the last rate
    on record so it can be re-enabled later.
    """
    platform = validate_platform(platform)

    validated_rate = None
    if enabled:
        if rate is None:
            raise InvalidFormat("A rebate rate is required when enabling a customer rebate")
        validated_rate = validate_rebate_rate(rate)
    elif rate is not None:
        validated_rate = validate_rebate_rate(rate)

    relation = await get_customer_talent(db, customer_id, one_id, platform)
    if relation is None:
        raise NotFound(
            f"Customer talent not found: customerId={customer_id}, oneId={one_id}, "
            f"platform={platform.value}"
        )

    relation.customer_rebate_enabled = enabled
    if validated_rate is not None:
        relation.customer_rebate_rate = validated_rate
        relation.customer_rebate_effective_date = effective_date or today()
    if notes is not None:
        relation.customer_rebate_notes = notes
    relation.customer_rebate_updated_at = utcnow()
    relation.customer_rebate_updated_by = updated_by or "system"
    await db.flush()

    logger.info(
        f"Customer {customer_id} rebate for talent {one_id} on {platform.value}: "
        f"enabled={enabled}, rate={relation.customer_rebate_rate}"
    )

    return await get_customer_rebate(db, customer_id, one_id, platform)


async def batch_update_customer_rebate(
    db: AsyncSession,
    customer_id: str,
    platform: Union[str, Platform],
    items: Iterable[CustomerRebateBatchItem],
    updated_by: Optional[str] = None,
) -> CustomerRebateBatchResult:
    """Apply several overrides for one customer, each in its own savepoint.

    A bad item (unknown relation, invalid rate) is recorded in the result
    and the rest of the batch still goes through.
    """
    platform = validate_platform(platform)

    total = 0
    updated = 0
    failures: list[SyncFailure] = []

    for item in items:
        total += 1
        try:
            async with db.begin_nested():
                await update_customer_rebate(
                    db,
                    customer_id,
                    item.one_id,
                    platform,
                    enabled=item.enabled,
                    rate=item.rate,
                    effective_date=item.effective_date,
                    notes=item.notes,
                    updated_by=updated_by,
                )
            updated += 1
        except (RebateError, SQLAlchemyError) as e:
            logger.warning(
                f"Customer {customer_id} rebate for talent {item.one_id} on {platform.value} failed: {e}"
            )
            failures.append(SyncFailure(one_id=item.one_id, message=str(e)))

    logger.info(
        f"Customer {customer_id} batch rebate update on {platform.value}: "
        f"{updated}/{total} updated, {len(failures)} failed"
    )

    return CustomerRebateBatchResult(
        customer_id=customer_id,
        platform=platform.value,
        total=total,
        updated=updated,
        failed=len(failures),
        errors=failures,
    )
