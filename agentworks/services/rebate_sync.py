"""
Agency -> talent rebate propagation.

Two entry points:
- sync_agency_to_talents: push an agency rate to every talent of that
  agency on the platform whose rebate_mode is sync (or unset)
- sync_agency_rebate_to_talent: pull the agency's active rate onto one
  talent, switching it to sync mode first

The batch is best-effort: every talent runs in its own savepoint, a
failure is recorded in the result and the batch moves on.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from agentworks.errors import ConcurrentModification, NoAgency, NoConfig, NotFound, RebateError
from agentworks.models import (
    Agency,
    Platform,
    RebateMode,
    RebateSource,
    TargetType,
    Talent,
)
from agentworks.schemas.rebate import (
    AgencyRateChangeResult,
    SyncFailure,
    SyncResult,
    TalentSyncResult,
)
from agentworks.services import rebate_ledger as ledger
from agentworks.services.rebate_rules import (
    rate_to_json,
    today,
    utcnow,
    validate_platform,
    validate_rebate_rate,
)
from agentworks.services.rebate_transition import (
    apply_rate_change,
    refresh_talent_cache,
    transition_immediately,
)

logger = logging.getLogger(__name__)


async def _load_agency(db: AsyncSession, agency_id: str) -> Agency:
    agency = await ledger.get_agency(db, agency_id)
    if agency is None:
        raise NotFound(f"Agency not found: agencyId={agency_id}")
    return agency


async def _agency_active_rate(db: AsyncSession, agency: Agency, platform: Platform) -> Decimal:
    config = await ledger.get_active_config(db, TargetType.AGENCY, agency.id, platform)
    if config is None:
        raise NoConfig(f"Agency '{agency.name}' has no rebate rate configured on {platform.value}")
    return config.rebate_rate


async def update_agency_rebate(
    db: AsyncSession,
    agency_id: str,
    platform: Union[str, Platform],
    rate: Any,
    effective_date: Optional[date] = None,
    updated_by: Optional[str] = None,
    sync_to_talents: bool = False,
) -> AgencyRateChangeResult:
    """Change an agency's rate and optionally push it to sync-mode talents.

    The agency change itself is all-or-nothing. Propagation runs after
    it and reports per-talent failures instead of raising.
    """
    platform = validate_platform(platform)
    agency = await _load_agency(db, agency_id)
    previous = await ledger.get_active_config(db, TargetType.AGENCY, agency_id, platform)

    change = await apply_rate_change(
        db,
        TargetType.AGENCY,
        agency_id,
        platform,
        rate,
        effective_date=effective_date,
        created_by=updated_by,
        metadata={
            "agencyName": agency.name,
            "previousRate": rate_to_json(previous.rebate_rate) if previous else 0,
            "syncToTalents": sync_to_talents,
        },
    )

    sync_result = None
    if sync_to_talents:
        sync_result = await sync_agency_to_talents(
            db,
            agency_id,
            platform,
            rate=change.new_rate,
            effective_date=change.effective_date,
            created_by=updated_by,
        )

    message = f"{platform.value} rebate config updated"
    if sync_to_talents:
        message += " and synced to talents"

    return AgencyRateChangeResult(
        **change.model_dump(exclude={"message"}),
        message=message,
        platform=platform.value,
        sync_result=sync_result,
    )


async def sync_agency_to_talents(
    db: AsyncSession,
    agency_id: str,
    platform: Union[str, Platform],
    rate: Any = None,
    effective_date: Optional[date] = None,
    created_by: Optional[str] = None,
) -> SyncResult:
    """Apply an agency rate to every sync-mode talent of the agency.

    Args:
        db: Database session (the caller commits)
        agency_id: Agency whose talents are updated
        platform: Platform to sync
        rate: Rate to push; the agency's active rate when omitted
        effective_date: Day the rate starts; today when omitted
        created_by: Actor recorded on the talent ledger entries

    Returns:
        SyncResult with matched/updated/failed counts and per-talent errors

    Raises:
        NotFound: agency does not exist
        NoConfig: no rate given and the agency has no active rate
    """
    platform = validate_platform(platform)
    agency = await _load_agency(db, agency_id)

    if rate is None:
        validated_rate = await _agency_active_rate(db, agency, platform)
    else:
        validated_rate = validate_rebate_rate(rate)

    effective_date = effective_date or today()
    created_by = created_by or "system"

    result = await db.execute(
        select(Talent)
        .where(
            Talent.agency_id == agency_id,
            Talent.platform == platform.value,
            or_(
                Talent.rebate_mode == RebateMode.SYNC,
                Talent.rebate_mode.is_(None),  # unset means sync for agency talents
            ),
        )
        .order_by(Talent.id)
    )
    talents = result.scalars().all()

    updated = 0
    failures: list[SyncFailure] = []

    for talent in talents:
        one_id = talent.one_id
        now = utcnow()
        try:
            async with db.begin_nested():
                transition = await transition_immediately(
                    db,
                    target_type=TargetType.TALENT,
                    target_id=one_id,
                    platform=platform,
                    rate=validated_rate,
                    effective_date=effective_date,
                    created_by=created_by,
                    now=now,
                    metadata={
                        "syncedFromAgency": True,
                        "agencyId": agency_id,
                        "agencyName": agency.name,
                    },
                )
                refresh_talent_cache(talent, transition.config, RebateSource.AGENCY, now)
                talent.last_rebate_sync_at = now
                await db.flush()
            updated += 1
        except IntegrityError:
            logger.warning(f"Rebate sync for talent {one_id} lost a race on {platform.value}")
            failures.append(SyncFailure(
                one_id=one_id,
                message="Another rebate change was applied at the same time, please retry",
            ))
        except (RebateError, SQLAlchemyError) as e:
            logger.warning(f"Rebate sync failed for talent {one_id} on {platform.value}: {e}")
            failures.append(SyncFailure(one_id=one_id, message=str(e)))

    logger.info(
        f"Agency {agency_id} rebate {validated_rate}% synced on {platform.value}: "
        f"{updated}/{len(talents)} talents updated, {len(failures)} failed"
    )

    return SyncResult(
        platform=platform.value,
        talents_matched=len(talents),
        talents_updated=updated,
        failed=len(failures),
        errors=failures,
        message=f"Synced rebate rate to {updated} {platform.value} talents",
    )


async def sync_agency_rebate_to_talent(
    db: AsyncSession,
    one_id: str,
    platform: Union[str, Platform],
    created_by: Optional[str] = None,
) -> TalentSyncResult:
    """Switch one talent to sync mode and give it the agency's active rate.

    Raises:
        NotFound: talent or its agency does not exist
        NoAgency: talent is independent
        NoConfig: the agency has no active rate on the platform
    """
    platform = validate_platform(platform)

    talent = await ledger.get_talent(db, one_id, platform)
    if talent is None:
        raise NotFound(f"Talent not found: oneId={one_id}, platform={platform.value}")
    if not talent.belongs_to_agency:
        raise NoAgency(f"Talent {one_id} does not belong to an agency, cannot sync agency rebate")

    agency = await _load_agency(db, talent.agency_id)
    agency_rate = await _agency_active_rate(db, agency, platform)

    now = utcnow()
    effective_date = now.date()

    try:
        async with db.begin_nested():
            talent.rebate_mode = RebateMode.SYNC
            transition = await transition_immediately(
                db,
                target_type=TargetType.TALENT,
                target_id=one_id,
                platform=platform,
                rate=agency_rate,
                effective_date=effective_date,
                created_by=created_by or "system",
                now=now,
                metadata={
                    "syncedFromAgency": True,
                    "agencyId": agency.id,
                    "agencyName": agency.name,
                    "talentName": talent.name,
                },
            )
            refresh_talent_cache(talent, transition.config, RebateSource.AGENCY_SYNC, now)
            talent.last_rebate_sync_at = now
            await db.flush()
    except IntegrityError as e:
        raise ConcurrentModification(
            f"Another rebate change for talent {one_id} on {platform.value} "
            f"was applied at the same time, please retry"
        ) from e

    logger.info(
        f"Talent {one_id} synced to agency {agency.id} rebate {agency_rate}% on {platform.value}"
    )

    return TalentSyncResult(
        config_id=transition.config.config_id,
        message=f"Synced {platform.value} rebate rate from agency '{agency.name}'",
        synced_rate=agency_rate,
        previous_rate=transition.previous_rate,
        effective_date=effective_date,
    )
