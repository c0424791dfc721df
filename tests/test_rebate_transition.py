"""
Tests for the rebate transition engine.

Covers:
- Immediate changes: expire previous, insert active, refresh cache
- next_cooperation changes leave the active record and cache alone
- At most one active record per (target, platform)
- Compare-and-swap expiry and the partial unique index
- Pending activation
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from agentworks.errors import (
    ConcurrentModification,
    IllegalStatusTransition,
    InvalidFormat,
    NotFound,
    OutOfRange,
    PrecisionExceeded,
)
from agentworks.models import (
    EffectType,
    Platform,
    RebateConfig,
    RebateSource,
    RebateStatus,
    TargetType,
)
from agentworks.services import rebate_ledger as ledger
from agentworks.services.rebate_history import get_rebate_history
from agentworks.services.rebate_rules import utcnow
from agentworks.services.rebate_transition import (
    activate_pending_if_due,
    apply_rate_change,
    backfill_default_rebates,
)


async def _count_active(db, target_type, target_id, platform="douyin"):
    return await db.scalar(
        select(func.count()).select_from(RebateConfig).where(
            RebateConfig.target_type == target_type,
            RebateConfig.target_id == target_id,
            RebateConfig.platform == Platform(platform),
            RebateConfig.status == RebateStatus.ACTIVE,
        )
    )


async def _count_all(db):
    return await db.scalar(select(func.count()).select_from(RebateConfig))


# ── Immediate changes ─────────────────────────────────────


class TestImmediateChange:
    @pytest.mark.asyncio
    async def test_first_change_creates_active_record(self, db_session, make_talent):
        talent = await make_talent("t1")

        result = await apply_rate_change(db_session, "talent", "t1", "douyin", "12.5")

        assert result.status == RebateStatus.ACTIVE
        assert result.new_rate == Decimal("12.50")
        assert result.previous_rate is None
        assert result.config_id.startswith("rebate_config_")
        assert talent.current_rebate_rate == Decimal("12.50")
        assert talent.current_rebate_source == RebateSource.PERSONAL
        assert await _count_active(db_session, TargetType.TALENT, "t1") == 1

    @pytest.mark.asyncio
    async def test_history_is_contiguous(self, db_session, make_talent):
        """12.50 then 18.00: the first record expires the day the second starts."""
        await make_talent("t1")

        await apply_rate_change(
            db_session, "talent", "t1", "douyin", 12.5, effective_date=date(2025, 1, 1),
        )
        second = await apply_rate_change(
            db_session, "talent", "t1", "douyin", 18, effective_date=date(2025, 3, 1),
        )

        page = await get_rebate_history(db_session, "t1", "douyin")
        assert page.total == 2
        newest, oldest = page.records
        assert newest.config_id == second.config_id
        assert newest.status == RebateStatus.ACTIVE
        assert newest.expiry_date is None
        assert oldest.status == RebateStatus.EXPIRED
        assert oldest.expiry_date == newest.effective_date == date(2025, 3, 1)
        assert oldest.rebate_rate == Decimal("12.50")

    @pytest.mark.asyncio
    async def test_message_includes_previous_rate(self, db_session, make_talent):
        await make_talent("t1")
        await apply_rate_change(db_session, "talent", "t1", "douyin", "12.50")

        result = await apply_rate_change(db_session, "talent", "t1", "douyin", "18")

        assert result.previous_rate == Decimal("12.50")
        assert "12.50" in result.message
        assert "18.00" in result.message

    @pytest.mark.asyncio
    async def test_cache_matches_sole_active_record(self, db_session, make_talent):
        talent = await make_talent("t1")
        for rate in ("5", "7.25", "30"):
            await apply_rate_change(db_session, "talent", "t1", "douyin", rate)
            assert await _count_active(db_session, TargetType.TALENT, "t1") == 1

        active = await ledger.get_active_config(db_session, TargetType.TALENT, "t1", Platform.DOUYIN)
        assert talent.current_rebate_rate == active.rebate_rate == Decimal("30.00")
        assert talent.current_rebate_effective_date == active.effective_date

    @pytest.mark.asyncio
    async def test_platforms_are_independent_keys(self, db_session, make_talent):
        await make_talent("t1", platform="douyin")
        await make_talent("t1", platform="bilibili")

        await apply_rate_change(db_session, "talent", "t1", "douyin", "10")
        await apply_rate_change(db_session, "talent", "t1", "bilibili", "20")

        assert await _count_active(db_session, TargetType.TALENT, "t1", "douyin") == 1
        assert await _count_active(db_session, TargetType.TALENT, "t1", "bilibili") == 1

    @pytest.mark.asyncio
    async def test_agency_change_updates_agency_cache(self, db_session, make_agency):
        agency = await make_agency("agency_a")

        await apply_rate_change(
            db_session, "agency", "agency_a", "douyin", "15", created_by="ops",
            effective_date=date(2025, 11, 16),
        )

        block = agency.platform_rebate("douyin")
        assert block["baseRebate"] == 15.0
        assert block["effectiveDate"] == "2025-11-16"
        assert block["updatedBy"] == "ops"

    @pytest.mark.asyncio
    async def test_metadata_and_reason_recorded(self, db_session, make_talent):
        await make_talent("t1")

        result = await apply_rate_change(
            db_session, "talent", "t1", "douyin", "11",
            reason="Annual review", metadata={"ticket": "R-1"},
        )

        config = await db_session.scalar(
            select(RebateConfig).where(RebateConfig.config_id == result.config_id)
        )
        assert config.reason == "Annual review"
        assert config.config_metadata == {"ticket": "R-1"}
        assert config.created_by == "system"


# ── Failure semantics ─────────────────────────────────────


class TestRejectedChanges:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "rate,error",
        [("abc", InvalidFormat), ("100.001", OutOfRange), ("-0.01", OutOfRange), ("12.345", PrecisionExceeded)],
    )
    async def test_invalid_rate_writes_nothing(self, db_session, make_talent, rate, error):
        talent = await make_talent("t1")

        with pytest.raises(error):
            await apply_rate_change(db_session, "talent", "t1", "douyin", rate)

        assert await _count_all(db_session) == 0
        assert talent.current_rebate_rate is None

    @pytest.mark.asyncio
    async def test_effective_date_before_active_record_rejected(self, db_session, make_talent):
        talent = await make_talent("t1")
        await apply_rate_change(
            db_session, "talent", "t1", "douyin", "12", effective_date=date(2025, 3, 1),
        )

        with pytest.raises(InvalidFormat):
            await apply_rate_change(
                db_session, "talent", "t1", "douyin", "15", effective_date=date(2025, 2, 1),
            )

        assert await _count_all(db_session) == 1
        assert talent.current_rebate_rate == Decimal("12.00")
        active = await ledger.get_active_config(db_session, TargetType.TALENT, "t1", Platform.DOUYIN)
        assert active.expiry_date is None

    @pytest.mark.asyncio
    async def test_same_effective_date_allowed(self, db_session, make_talent):
        await make_talent("t1")
        await apply_rate_change(
            db_session, "talent", "t1", "douyin", "12", effective_date=date(2025, 3, 1),
        )

        result = await apply_rate_change(
            db_session, "talent", "t1", "douyin", "15", effective_date=date(2025, 3, 1),
        )

        assert result.previous_rate == Decimal("12.00")
        assert await _count_active(db_session, TargetType.TALENT, "t1") == 1

    @pytest.mark.asyncio
    async def test_unknown_talent(self, db_session):
        with pytest.raises(NotFound):
            await apply_rate_change(db_session, "talent", "ghost", "douyin", "10")
        assert await _count_all(db_session) == 0

    @pytest.mark.asyncio
    async def test_unknown_agency(self, db_session):
        with pytest.raises(NotFound):
            await apply_rate_change(db_session, "agency", "ghost", "douyin", "10")

    @pytest.mark.asyncio
    async def test_agency_next_cooperation_rejected(self, db_session, make_agency):
        await make_agency("agency_a")
        with pytest.raises(InvalidFormat):
            await apply_rate_change(
                db_session, "agency", "agency_a", "douyin", "10", effect_type="next_cooperation",
            )


# ── next_cooperation ──────────────────────────────────────


class TestNextCooperation:
    @pytest.mark.asyncio
    async def test_pending_leaves_active_and_cache(self, db_session, make_talent):
        talent = await make_talent("t1")
        first = await apply_rate_change(db_session, "talent", "t1", "douyin", "12.5")

        result = await apply_rate_change(
            db_session, "talent", "t1", "douyin", "20",
            effect_type=EffectType.NEXT_COOPERATION, effective_date=date(2030, 1, 1),
        )

        assert result.status == RebateStatus.PENDING
        assert result.previous_rate is None
        assert talent.current_rebate_rate == Decimal("12.50")

        active = await ledger.get_active_config(db_session, TargetType.TALENT, "t1", Platform.DOUYIN)
        assert active.config_id == first.config_id
        assert active.expiry_date is None

    @pytest.mark.asyncio
    async def test_activate_pending_when_due(self, db_session, make_talent):
        talent = await make_talent("t1")
        first = await apply_rate_change(
            db_session, "talent", "t1", "douyin", "12.5", effective_date=date(2025, 1, 1),
        )
        pending = await apply_rate_change(
            db_session, "talent", "t1", "douyin", "20",
            effect_type="next_cooperation", effective_date=date(2025, 6, 1),
        )

        assert await activate_pending_if_due(
            db_session, "talent", "t1", "douyin", as_of=date(2025, 5, 31),
        ) is None

        activated = await activate_pending_if_due(
            db_session, "talent", "t1", "douyin", as_of=date(2025, 6, 1),
        )

        assert activated == pending.config_id
        assert talent.current_rebate_rate == Decimal("20.00")
        page = await get_rebate_history(db_session, "t1", "douyin")
        by_id = {r.config_id: r for r in page.records}
        assert by_id[first.config_id].status == RebateStatus.EXPIRED
        assert by_id[first.config_id].expiry_date == date(2025, 6, 1)
        assert by_id[pending.config_id].status == RebateStatus.ACTIVE
        assert await _count_active(db_session, TargetType.TALENT, "t1") == 1

    @pytest.mark.asyncio
    async def test_newest_due_pending_wins(self, db_session, make_talent):
        await make_talent("t1")
        older = await apply_rate_change(
            db_session, "talent", "t1", "douyin", "14",
            effect_type="next_cooperation", effective_date=date(2025, 2, 1),
        )
        newer = await apply_rate_change(
            db_session, "talent", "t1", "douyin", "16",
            effect_type="next_cooperation", effective_date=date(2025, 3, 1),
        )

        activated = await activate_pending_if_due(
            db_session, "talent", "t1", "douyin", as_of=date(2025, 4, 1),
        )

        assert activated == newer.config_id
        page = await get_rebate_history(db_session, "t1", "douyin")
        statuses = {r.config_id: r.status for r in page.records}
        assert statuses[older.config_id] == RebateStatus.PENDING

    @pytest.mark.asyncio
    async def test_pending_older_than_active_stays_pending(self, db_session, make_talent):
        await make_talent("t1")
        pending = await apply_rate_change(
            db_session, "talent", "t1", "douyin", "14",
            effect_type="next_cooperation", effective_date=date(2025, 2, 1),
        )
        await apply_rate_change(
            db_session, "talent", "t1", "douyin", "16", effective_date=date(2025, 3, 1),
        )

        activated = await activate_pending_if_due(
            db_session, "talent", "t1", "douyin", as_of=date(2025, 4, 1),
        )

        assert activated is None
        active = await ledger.get_active_config(db_session, TargetType.TALENT, "t1", Platform.DOUYIN)
        assert active.rebate_rate == Decimal("16.00")
        page = await get_rebate_history(db_session, "t1", "douyin")
        statuses = {r.config_id: r.status for r in page.records}
        assert statuses[pending.config_id] == RebateStatus.PENDING


# ── Concurrency guards ────────────────────────────────────


class TestConcurrencyGuards:
    @pytest.mark.asyncio
    async def test_stale_expire_raises_concurrent_modification(self, db_session, make_talent):
        await make_talent("t1")
        await apply_rate_change(db_session, "talent", "t1", "douyin", "10")
        active = await ledger.get_active_config(db_session, TargetType.TALENT, "t1", Platform.DOUYIN)

        # Another request expires the record behind this session's back
        await db_session.execute(
            update(RebateConfig)
            .where(RebateConfig.id == active.id)
            .values(status=RebateStatus.EXPIRED)
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(ConcurrentModification):
            await ledger.expire_config(
                db_session, active, expiry_date=date(2025, 1, 1), now=utcnow(),
            )

    @pytest.mark.asyncio
    async def test_second_active_row_rejected_by_index(self, db_session, make_talent):
        await make_talent("t1")
        await apply_rate_change(db_session, "talent", "t1", "douyin", "10")

        with pytest.raises(IntegrityError):
            async with db_session.begin_nested():
                await ledger.insert_config(
                    db_session,
                    target_type=TargetType.TALENT,
                    target_id="t1",
                    platform=Platform.DOUYIN,
                    rebate_rate=Decimal("11.00"),
                    effect_type=EffectType.IMMEDIATE,
                    effective_date=date(2025, 1, 1),
                    status=RebateStatus.ACTIVE,
                    created_by="test",
                    now=utcnow(),
                )

        assert await _count_active(db_session, TargetType.TALENT, "t1") == 1

    @pytest.mark.asyncio
    async def test_expired_row_cannot_be_expired_again(self, db_session, make_talent):
        await make_talent("t1")
        await apply_rate_change(db_session, "talent", "t1", "douyin", "10")
        active = await ledger.get_active_config(db_session, TargetType.TALENT, "t1", Platform.DOUYIN)
        await apply_rate_change(db_session, "talent", "t1", "douyin", "12")

        assert active.status == RebateStatus.EXPIRED
        with pytest.raises(IllegalStatusTransition):
            await ledger.expire_config(db_session, active, expiry_date=date(2025, 1, 1), now=utcnow())


# ── Default backfill ──────────────────────────────────────


class TestBackfillDefaultRebates:
    @pytest.mark.asyncio
    async def test_only_unset_talents_backfilled(self, db_session, make_talent):
        blank = await make_talent("t1")
        configured = await make_talent("t2")
        await apply_rate_change(db_session, "talent", "t2", "douyin", "25")

        updated = await backfill_default_rebates(db_session)

        assert updated == 1
        assert blank.current_rebate_rate == Decimal("10.00")
        assert blank.current_rebate_source == RebateSource.DEFAULT
        assert configured.current_rebate_rate == Decimal("25.00")
        assert await _count_all(db_session) == 1
