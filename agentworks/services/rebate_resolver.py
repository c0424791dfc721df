"""
Rebate resolution.

Priority, highest first:
1. Customer override (active relation, override enabled)
2. Agency rate, when the talent is in sync mode and the agency has one
3. The talent's own current rate
4. System default

All functions here are read-only.
"""

import logging
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.errors import NotFound
from agentworks.models import (
    CustomerTalent,
    Platform,
    RebateMode,
    RebateSource,
    TargetType,
    Talent,
)
from agentworks.schemas.rebate import (
    AgencyCurrentRebate,
    CustomerRebateView,
    RateView,
    RebateResolution,
)
from agentworks.services import rebate_ledger as ledger
from agentworks.services.rebate_rules import (
    DEFAULT_REBATE_RATE,
    effective_rebate_mode,
    validate_platform,
)

logger = logging.getLogger(__name__)


async def get_customer_talent(
    db: AsyncSession,
    customer_id: str,
    one_id: str,
    platform: Platform,
) -> Optional[CustomerTalent]:
    result = await db.execute(
        select(CustomerTalent).where(
            CustomerTalent.customer_id == customer_id,
            CustomerTalent.one_id == one_id,
            CustomerTalent.platform == platform.value,
        )
    )
    return result.scalar_one_or_none()


def personal_rate(talent: Talent) -> RateView:
    """The talent's own rate from its currentRebate cache, or the default."""
    if talent.current_rebate_rate is None:
        return RateView(rate=DEFAULT_REBATE_RATE, source=RebateSource.DEFAULT)
    source = (
        RebateSource.DEFAULT
        if talent.current_rebate_source == RebateSource.DEFAULT
        else RebateSource.PERSONAL
    )
    return RateView(
        rate=talent.current_rebate_rate,
        source=source,
        effective_date=talent.current_rebate_effective_date,
    )


async def resolve_base_rate(db: AsyncSession, talent: Talent, platform: Platform) -> RateView:
    """Rate of the talent itself, before any customer override."""
    if effective_rebate_mode(talent) == RebateMode.SYNC:
        agency_config = await ledger.get_active_config(
            db, TargetType.AGENCY, talent.agency_id, platform
        )
        if agency_config is not None:
            return RateView(
                rate=agency_config.rebate_rate,
                source=RebateSource.AGENCY,
                effective_date=agency_config.effective_date,
            )
    return personal_rate(talent)


def customer_view(relation: CustomerTalent) -> CustomerRebateView:
    return CustomerRebateView(
        enabled=relation.customer_rebate_enabled,
        rate=relation.customer_rebate_rate,
        effective_date=relation.customer_rebate_effective_date,
        notes=relation.customer_rebate_notes,
    )


def apply_customer_override(base: RateView, relation: Optional[CustomerTalent]) -> RateView:
    if relation is not None and relation.override_applies:
        return RateView(
            rate=relation.customer_rebate_rate,
            source=RebateSource.CUSTOMER,
            effective_date=relation.customer_rebate_effective_date,
        )
    return base


async def resolve_effective_rate(
    db: AsyncSession,
    one_id: str,
    platform: Union[str, Platform],
    customer_id: Optional[str] = None,
) -> RebateResolution:
    """Compute the rate that applies to a talent right now.

    Args:
        db: Database session
        one_id: Talent oneId
        platform: Platform name
        customer_id: Requesting customer, enables the customer override

    Returns:
        RebateResolution with both the talent's own rate (current_rebate)
        and the rate this customer pays (effective_rebate)

    Raises:
        NotFound: talent does not exist
    """
    platform = validate_platform(platform)

    talent = await ledger.get_talent(db, one_id, platform)
    if talent is None:
        raise NotFound(f"Talent not found: oneId={one_id}, platform={platform.value}")

    base = await resolve_base_rate(db, talent, platform)

    relation = None
    if customer_id:
        relation = await get_customer_talent(db, customer_id, one_id, platform)

    effective = apply_customer_override(base, relation)

    return RebateResolution(
        one_id=talent.one_id,
        platform=platform.value,
        name=talent.name,
        agency_id=talent.agency_id,
        rebate_mode=effective_rebate_mode(talent),
        current_rebate=base,
        effective_rebate=effective,
        customer_rebate=customer_view(relation) if relation is not None else None,
    )


async def get_agency_current_rebate(
    db: AsyncSession,
    agency_id: str,
    platform: Union[str, Platform],
) -> AgencyCurrentRebate:
    """Agency's active rate on a platform; rate 0 with has_config=False if none."""
    platform = validate_platform(platform)

    agency = await ledger.get_agency(db, agency_id)
    if agency is None:
        raise NotFound(f"Agency not found: agencyId={agency_id}")

    config = await ledger.get_active_config(db, TargetType.AGENCY, agency_id, platform)
    if config is None:
        return AgencyCurrentRebate(
            agency_id=agency_id,
            agency_name=agency.name,
            platform=platform.value,
            rebate_rate=0,
            has_config=False,
        )

    return AgencyCurrentRebate(
        agency_id=agency_id,
        agency_name=agency.name,
        platform=platform.value,
        rebate_rate=config.rebate_rate,
        effective_date=config.effective_date,
        last_updated_at=config.created_at,
        updated_by=config.created_by,
        has_config=True,
    )
