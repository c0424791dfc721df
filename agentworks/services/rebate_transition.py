"""
Rebate transition engine.

Moves a (target, platform) key from its active rate to a new one:

- immediate: expire the active record (effective the day the new rate
  starts), insert the new active record and refresh the talent/agency
  cache, all inside one savepoint
- next_cooperation: insert a pending record, nothing else changes

The expire step is a compare-and-swap on the record read a moment
earlier, and the uq_rebate_configs_active index rejects a second active
row, so two racing requests on the same key cannot both win. The loser
gets ConcurrentModification and may retry.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.errors import ConcurrentModification, InvalidFormat, NotFound
from agentworks.models import (
    Agency,
    EffectType,
    Platform,
    RebateConfig,
    RebateMode,
    RebateSource,
    RebateStatus,
    TargetType,
    Talent,
)
from agentworks.schemas.rebate import RateChangeResult
from agentworks.services import rebate_ledger as ledger
from agentworks.services.rebate_rules import (
    DEFAULT_REBATE_RATE,
    parse_effect_type,
    parse_target_type,
    rate_to_json,
    today,
    utcnow,
    validate_platform,
    validate_rebate_rate,
)

logger = logging.getLogger(__name__)


@dataclass
class Transition:
    """Outcome of an immediate transition."""

    config: RebateConfig
    previous: Optional[RebateConfig]

    @property
    def previous_rate(self) -> Optional[Decimal]:
        return self.previous.rebate_rate if self.previous else None


def refresh_talent_cache(
    talent: Talent,
    config: RebateConfig,
    source: RebateSource,
    now: datetime,
) -> None:
    """Mirror the talent's new active record into its currentRebate cache."""
    talent.current_rebate_rate = config.rebate_rate
    talent.current_rebate_source = source
    talent.current_rebate_effective_date = config.effective_date
    talent.current_rebate_last_updated = now


def detach_from_agency(talent: Talent) -> None:
    """A manual rate change takes an agency talent out of sync mode."""
    if talent.belongs_to_agency and talent.rebate_mode != RebateMode.INDEPENDENT:
        logger.info(f"Talent {talent.one_id} on {talent.platform} switched to independent rebate mode")
        talent.rebate_mode = RebateMode.INDEPENDENT


def refresh_agency_cache(agency: Agency, config: RebateConfig, now: datetime) -> None:
    """Mirror the agency's new active record into rebateConfig.platforms."""
    agency.set_platform_rebate(
        Platform(config.platform).value,
        {
            "baseRebate": rate_to_json(config.rebate_rate),
            "effectiveDate": config.effective_date.isoformat(),
            "lastUpdatedAt": now.isoformat(),
            "updatedBy": config.created_by,
        },
    )


async def transition_immediately(
    db: AsyncSession,
    *,
    target_type: TargetType,
    target_id: str,
    platform: Platform,
    rate: Decimal,
    effective_date: date,
    created_by: str,
    now: datetime,
    reason: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    pending: Optional[RebateConfig] = None,
) -> Transition:
    """Expire the active record for the key and make a new one active.

    Must run inside a transaction or savepoint owned by the caller, so
    that the expire, the insert and the cache refresh land together.
    When pending is given, that pending record is promoted instead of
    inserting a new one.
    """
    previous = await ledger.get_active_config(db, target_type, target_id, platform)
    if previous is not None and effective_date < previous.effective_date:
        raise InvalidFormat(
            f"Effective date {effective_date.isoformat()} is before the current rate's "
            f"effective date {previous.effective_date.isoformat()}"
        )
    if previous is not None:
        await ledger.expire_config(db, previous, expiry_date=effective_date, now=now)

    if pending is not None:
        await ledger.activate_config(db, pending, now=now)
        config = pending
    else:
        config = await ledger.insert_config(
            db,
            target_type=target_type,
            target_id=target_id,
            platform=platform,
            rebate_rate=rate,
            effect_type=EffectType.IMMEDIATE,
            effective_date=effective_date,
            status=RebateStatus.ACTIVE,
            created_by=created_by,
            now=now,
            reason=reason,
            metadata=metadata,
        )
    return Transition(config=config, previous=previous)


async def load_target(
    db: AsyncSession,
    target_type: TargetType,
    target_id: str,
    platform: Platform,
) -> Union[Talent, Agency]:
    """Fetch the talent or agency a config applies to, or raise NotFound."""
    if target_type == TargetType.TALENT:
        talent = await ledger.get_talent(db, target_id, platform)
        if talent is None:
            raise NotFound(f"Talent not found: oneId={target_id}, platform={platform.value}")
        return talent

    agency = await ledger.get_agency(db, target_id)
    if agency is None:
        raise NotFound(f"Agency not found: agencyId={target_id}")
    return agency


async def apply_rate_change(
    db: AsyncSession,
    target_type: Union[str, TargetType],
    target_id: str,
    platform: Union[str, Platform],
    rate: Any,
    effect_type: Union[str, EffectType, None] = EffectType.IMMEDIATE,
    effective_date: Optional[date] = None,
    created_by: Optional[str] = None,
    reason: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> RateChangeResult:
    """Change the rebate rate of a talent or agency on one platform.

    Args:
        db: Database session (the caller commits)
        target_type: "talent" or "agency"
        target_id: Talent oneId or agency id
        platform: Platform name
        rate: Proposed rate, validated by validate_rebate_rate
        effect_type: "immediate" or "next_cooperation"
        effective_date: Day the rate starts; today when omitted
        created_by: Actor recorded on the ledger entry
        reason: Optional free-text adjustment reason
        metadata: Extra display-only annotations for the ledger entry

    An immediate change on an agency talent also switches it to
    independent mode.

    Returns:
        RateChangeResult with the new config id and the previous rate

    Raises:
        InvalidFormat / OutOfRange / PrecisionExceeded: bad input, nothing written
        InvalidFormat: effective date before the active record's, nothing written
        NotFound: target does not exist, nothing written
        ConcurrentModification: the active record changed underneath us
    """
    validated_rate = validate_rebate_rate(rate)
    target_type = parse_target_type(target_type)
    platform = validate_platform(platform)
    effect_type = parse_effect_type(effect_type)

    if target_type == TargetType.AGENCY and effect_type != EffectType.IMMEDIATE:
        raise InvalidFormat("Agency rebate changes always take effect immediately")

    target = await load_target(db, target_type, target_id, platform)

    now = utcnow()
    effective_date = effective_date or today()
    created_by = created_by or "system"

    if effect_type == EffectType.NEXT_COOPERATION:
        config = await ledger.insert_config(
            db,
            target_type=target_type,
            target_id=target_id,
            platform=platform,
            rebate_rate=validated_rate,
            effect_type=effect_type,
            effective_date=effective_date,
            status=RebateStatus.PENDING,
            created_by=created_by,
            now=now,
            reason=reason,
            metadata=metadata,
        )
        logger.info(
            f"Rebate {config.config_id} for {target_type.value} {target_id} on {platform.value} "
            f"pending at {validated_rate}% from next cooperation"
        )
        return RateChangeResult(
            config_id=config.config_id,
            message="Rebate rate will take effect from the next cooperation",
            new_rate=validated_rate,
            previous_rate=None,
            effect_type=effect_type,
            effective_date=effective_date,
            status=RebateStatus.PENDING,
        )

    try:
        async with db.begin_nested():
            transition = await transition_immediately(
                db,
                target_type=target_type,
                target_id=target_id,
                platform=platform,
                rate=validated_rate,
                effective_date=effective_date,
                created_by=created_by,
                now=now,
                reason=reason,
                metadata=metadata,
            )
            if isinstance(target, Talent):
                detach_from_agency(target)
                refresh_talent_cache(target, transition.config, RebateSource.PERSONAL, now)
            else:
                refresh_agency_cache(target, transition.config, now)
            await db.flush()
    except IntegrityError as e:
        raise ConcurrentModification(
            f"Another rebate change for {target_type.value} {target_id} on {platform.value} "
            f"was applied at the same time, please retry"
        ) from e

    previous_rate = transition.previous_rate
    logger.info(
        f"Rebate {transition.config.config_id} active for {target_type.value} {target_id} "
        f"on {platform.value}: {previous_rate}% -> {validated_rate}%"
    )

    if previous_rate is None:
        message = f"Rebate rate set to {validated_rate}%"
    else:
        message = f"Rebate rate updated from {previous_rate}% to {validated_rate}%"

    return RateChangeResult(
        config_id=transition.config.config_id,
        message=message,
        new_rate=validated_rate,
        previous_rate=previous_rate,
        effect_type=EffectType.IMMEDIATE,
        effective_date=effective_date,
        status=RebateStatus.ACTIVE,
    )


async def activate_pending_if_due(
    db: AsyncSession,
    target_type: Union[str, TargetType],
    target_id: str,
    platform: Union[str, Platform],
    as_of: Optional[date] = None,
) -> Optional[str]:
    """Promote the newest pending record whose effective date has arrived.

    Extension point for whatever marks "next cooperation" as started.
    Older due pending records are left pending as superseded history, and
    so is a pending record dated before the current active one.

    Returns:
        The activated config id, or None if nothing was due
    """
    target_type = parse_target_type(target_type)
    platform = validate_platform(platform)
    as_of = as_of or today()

    target = await load_target(db, target_type, target_id, platform)

    due = await ledger.get_due_pending_configs(db, target_type, target_id, platform, as_of)
    if not due:
        logger.debug(f"No pending rebate due for {target_type.value} {target_id} on {platform.value}")
        return None

    pending = due[0]
    active = await ledger.get_active_config(db, target_type, target_id, platform)
    if active is not None and pending.effective_date < active.effective_date:
        logger.debug(
            f"Pending rebate {pending.config_id} predates active {active.config_id}, leaving it pending"
        )
        return None

    now = utcnow()

    try:
        async with db.begin_nested():
            transition = await transition_immediately(
                db,
                target_type=target_type,
                target_id=target_id,
                platform=platform,
                rate=pending.rebate_rate,
                effective_date=pending.effective_date,
                created_by=pending.created_by,
                now=now,
                pending=pending,
            )
            if isinstance(target, Talent):
                detach_from_agency(target)
                refresh_talent_cache(target, transition.config, RebateSource.PERSONAL, now)
            else:
                refresh_agency_cache(target, transition.config, now)
            await db.flush()
    except IntegrityError as e:
        raise ConcurrentModification(
            f"Another rebate change for {target_type.value} {target_id} on {platform.value} "
            f"was applied at the same time, please retry"
        ) from e

    logger.info(
        f"Pending rebate {pending.config_id} activated for {target_type.value} {target_id} "
        f"on {platform.value} at {pending.rebate_rate}%"
    )
    return pending.config_id


async def backfill_default_rebates(db: AsyncSession) -> int:
    """Give every talent without a cached rate the system default.

    No ledger record is written; the default is implicit until the first
    real change.

    Returns:
        Number of talents updated
    """
    result = await db.execute(
        select(Talent).where(Talent.current_rebate_rate.is_(None))
    )
    talents = result.scalars().all()

    now = utcnow()
    for talent in talents:
        talent.current_rebate_rate = DEFAULT_REBATE_RATE
        talent.current_rebate_source = RebateSource.DEFAULT
        talent.current_rebate_effective_date = now.date()
        talent.current_rebate_last_updated = now

    await db.flush()
    logger.info(f"Backfilled default rebate on {len(talents)} talents")
    return len(talents)
