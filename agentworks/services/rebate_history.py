"""
Rebate history reader: paginated ledger lineage of one (target, platform).
"""

from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.config import settings
from agentworks.models import Platform, RebateConfig, TargetType
from agentworks.schemas.rebate import RebateConfigRecord, RebateHistoryPage
from agentworks.services.rebate_rules import parse_target_type, validate_platform


def clamp_page(limit: Optional[int], offset: Optional[int]) -> tuple[int, int]:
    """Out-of-range limits fall back to the default page size, negative offsets to 0."""
    if limit is None or limit < 1 or limit > settings.history_max_limit:
        limit = settings.history_default_limit
    if offset is None or offset < 0:
        offset = 0
    return limit, offset


async def get_rebate_history(
    db: AsyncSession,
    target_id: str,
    platform: Union[str, Platform],
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    target_type: Union[str, TargetType] = TargetType.TALENT,
) -> RebateHistoryPage:
    """All ledger records of a target on a platform, newest first.

    Includes pending and expired records. An unknown target simply has
    an empty history.
    """
    target_type = parse_target_type(target_type)
    platform = validate_platform(platform)
    limit, offset = clamp_page(limit, offset)

    query = select(RebateConfig).where(
        RebateConfig.target_type == target_type,
        RebateConfig.target_id == target_id,
        RebateConfig.platform == platform,
    )

    total = await db.scalar(select(func.count()).select_from(query.subquery()))

    query = (
        query
        .order_by(RebateConfig.created_at.desc(), RebateConfig.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(query)
    records = result.scalars().all()

    return RebateHistoryPage(
        total=total or 0,
        limit=limit,
        offset=offset,
        records=[RebateConfigRecord.model_validate(r) for r in records],
    )
