"""
Rebate config store.

Low-level reads and writes on the rebate_configs ledger. Only the
transition engine and the sync propagator should call the write helpers.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.errors import ConcurrentModification
from agentworks.models import (
    Agency,
    EffectType,
    Platform,
    RebateConfig,
    RebateStatus,
    TargetType,
    Talent,
)
from agentworks.services.rebate_rules import generate_config_id

logger = logging.getLogger(__name__)


def _key_filter(target_type: TargetType, target_id: str, platform: Platform):
    return and_(
        RebateConfig.target_type == target_type,
        RebateConfig.target_id == target_id,
        RebateConfig.platform == platform,
    )


async def get_active_config(
    db: AsyncSession,
    target_type: TargetType,
    target_id: str,
    platform: Platform,
) -> Optional[RebateConfig]:
    """Current active record for a (target, platform) key, if any."""
    result = await db.execute(
        select(RebateConfig).where(
            _key_filter(target_type, target_id, platform),
            RebateConfig.status == RebateStatus.ACTIVE,
        )
    )
    return result.scalar_one_or_none()


async def get_due_pending_configs(
    db: AsyncSession,
    target_type: TargetType,
    target_id: str,
    platform: Platform,
    as_of: date,
) -> list[RebateConfig]:
    """Pending records whose effective date has arrived, newest first."""
    result = await db.execute(
        select(RebateConfig)
        .where(
            _key_filter(target_type, target_id, platform),
            RebateConfig.status == RebateStatus.PENDING,
            RebateConfig.effective_date <= as_of,
        )
        .order_by(
            RebateConfig.effective_date.desc(),
            RebateConfig.created_at.desc(),
            RebateConfig.id.desc(),
        )
    )
    return list(result.scalars().all())


async def insert_config(
    db: AsyncSession,
    *,
    target_type: TargetType,
    target_id: str,
    platform: Platform,
    rebate_rate: Decimal,
    effect_type: EffectType,
    effective_date: date,
    status: RebateStatus,
    created_by: str,
    now: datetime,
    reason: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> RebateConfig:
    """Append a new record to the ledger and flush it."""
    config = RebateConfig(
        config_id=generate_config_id(),
        target_type=target_type,
        target_id=target_id,
        platform=platform,
        rebate_rate=rebate_rate,
        effect_type=effect_type,
        effective_date=effective_date,
        expiry_date=None,
        status=status,
        reason=reason,
        created_by=created_by,
        created_at=now,
        config_metadata=metadata,
    )
    db.add(config)
    await db.flush()
    return config


async def _compare_and_set_status(
    db: AsyncSession,
    config: RebateConfig,
    new_status: RebateStatus,
    now: datetime,
    **values: Any,
) -> None:
    expected = RebateStatus(config.status)
    # Raises IllegalStatusTransition before touching the database
    expected.transition(new_status)

    result = await db.execute(
        update(RebateConfig)
        .where(
            RebateConfig.id == config.id,
            RebateConfig.status == expected,
        )
        .values(status=new_status, updated_at=now, **values)
    )
    if result.rowcount != 1:
        logger.warning(
            f"Rebate config {config.config_id} is no longer {expected.value}, "
            f"cannot move it to {new_status.value}"
        )
        raise ConcurrentModification(
            f"Rebate config {config.config_id} was modified concurrently, please retry"
        )


async def expire_config(
    db: AsyncSession,
    config: RebateConfig,
    expiry_date: date,
    now: datetime,
) -> None:
    """Flip an active record to expired, only if it is still active."""
    await _compare_and_set_status(
        db, config, RebateStatus.EXPIRED, now, expiry_date=expiry_date,
    )


async def activate_config(
    db: AsyncSession,
    config: RebateConfig,
    now: datetime,
) -> None:
    """Flip a pending record to active, only if it is still pending."""
    await _compare_and_set_status(db, config, RebateStatus.ACTIVE, now)


async def get_talent(db: AsyncSession, one_id: str, platform: Platform) -> Optional[Talent]:
    result = await db.execute(
        select(Talent).where(
            Talent.one_id == one_id,
            Talent.platform == platform.value,
        )
    )
    return result.scalar_one_or_none()


async def get_agency(db: AsyncSession, agency_id: str) -> Optional[Agency]:
    return await db.get(Agency, agency_id)
