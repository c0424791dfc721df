"""
Tests for rebate business rules.

Covers:
- validate_rebate_rate boundaries and error kinds
- Platform / effect type parsing
- Status state machine (pending -> active -> expired only)
- Rebate mode defaults for agency and individual talents
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from agentworks.errors import (
    IllegalStatusTransition,
    InvalidFormat,
    OutOfRange,
    PrecisionExceeded,
    UnsupportedPlatform,
)
from agentworks.models import (
    INDIVIDUAL_AGENCY_ID,
    EffectType,
    Platform,
    RebateMode,
    RebateStatus,
    Talent,
)
from agentworks.services.rebate_rules import (
    DEFAULT_REBATE_RATE,
    effective_rebate_mode,
    generate_config_id,
    parse_effect_type,
    validate_platform,
    validate_rebate_rate,
)


# ── validate_rebate_rate ──────────────────────────────────


class TestValidateRebateRate:
    def test_zero_accepted(self):
        assert validate_rebate_rate(0) == Decimal("0.00")

    def test_hundred_accepted(self):
        assert validate_rebate_rate(100) == Decimal("100.00")

    def test_string_input(self):
        assert validate_rebate_rate("12.5") == Decimal("12.50")

    def test_float_input(self):
        assert validate_rebate_rate(15.75) == Decimal("15.75")

    def test_result_has_two_decimals(self):
        assert validate_rebate_rate("7").as_tuple().exponent == -2

    def test_above_hundred_rejected(self):
        with pytest.raises(OutOfRange):
            validate_rebate_rate("100.001")

    def test_negative_rejected(self):
        with pytest.raises(OutOfRange):
            validate_rebate_rate(-0.01)

    def test_three_decimals_rejected(self):
        with pytest.raises(PrecisionExceeded):
            validate_rebate_rate("12.345")

    def test_three_decimals_float_rejected(self):
        with pytest.raises(PrecisionExceeded):
            validate_rebate_rate(12.345)

    def test_trailing_zeros_count_as_written(self):
        with pytest.raises(PrecisionExceeded):
            validate_rebate_rate("12.500")

    @pytest.mark.parametrize("raw", ["abc", "", "12.5abc", None, True, "nan", "inf"])
    def test_not_a_number(self, raw):
        with pytest.raises(InvalidFormat):
            validate_rebate_rate(raw)

    def test_negative_zero_normalized(self):
        assert str(validate_rebate_rate("-0")) == "0.00"

    def test_range_checked_before_precision(self):
        with pytest.raises(OutOfRange):
            validate_rebate_rate("100.005")

    def test_default_rate(self):
        assert DEFAULT_REBATE_RATE == Decimal("10.00")


# ── Platform / effect type ────────────────────────────────


class TestParsing:
    def test_known_platform(self):
        assert validate_platform("xiaohongshu") == Platform.XIAOHONGSHU

    def test_unknown_platform(self):
        with pytest.raises(UnsupportedPlatform):
            validate_platform("weibo")

    def test_missing_platform(self):
        with pytest.raises(UnsupportedPlatform):
            validate_platform("")

    def test_unsupported_platform_is_input_error(self):
        assert issubclass(UnsupportedPlatform, InvalidFormat)
        assert UnsupportedPlatform.status_code == 400

    def test_effect_type_defaults_to_immediate(self):
        assert parse_effect_type(None) == EffectType.IMMEDIATE

    def test_bad_effect_type(self):
        with pytest.raises(InvalidFormat):
            parse_effect_type("tomorrow")

    def test_config_id_format(self):
        config_id = generate_config_id()
        prefix, ms, suffix = config_id.rsplit("_", 2)
        assert prefix == "rebate_config"
        assert ms.isdigit()
        assert len(suffix) == 9

    def test_config_ids_unique(self):
        assert len({generate_config_id() for _ in range(200)}) == 200


# ── Status state machine ──────────────────────────────────


class TestStatusTransitions:
    def test_pending_to_active(self):
        assert RebateStatus.PENDING.transition(RebateStatus.ACTIVE) == RebateStatus.ACTIVE

    def test_active_to_expired(self):
        assert RebateStatus.ACTIVE.transition(RebateStatus.EXPIRED) == RebateStatus.EXPIRED

    @pytest.mark.parametrize(
        "current,requested",
        [
            (RebateStatus.EXPIRED, RebateStatus.ACTIVE),
            (RebateStatus.EXPIRED, RebateStatus.PENDING),
            (RebateStatus.ACTIVE, RebateStatus.PENDING),
            (RebateStatus.PENDING, RebateStatus.EXPIRED),
            (RebateStatus.ACTIVE, RebateStatus.ACTIVE),
        ],
    )
    def test_illegal_moves(self, current, requested):
        with pytest.raises(IllegalStatusTransition):
            current.transition(requested)


# ── Rebate mode ───────────────────────────────────────────


class TestEffectiveRebateMode:
    def test_no_agency_is_independent(self):
        talent = Talent(one_id="t", platform="douyin", agency_id=None, rebate_mode=RebateMode.SYNC)
        assert effective_rebate_mode(talent) == RebateMode.INDEPENDENT

    def test_individual_sentinel_is_independent(self):
        talent = Talent(one_id="t", platform="douyin", agency_id=INDIVIDUAL_AGENCY_ID)
        assert effective_rebate_mode(talent) == RebateMode.INDEPENDENT

    def test_agency_talent_defaults_to_sync(self):
        talent = Talent(one_id="t", platform="douyin", agency_id="agency_a", rebate_mode=None)
        assert effective_rebate_mode(talent) == RebateMode.SYNC

    def test_agency_talent_keeps_independent(self):
        talent = SimpleNamespace(belongs_to_agency=True, rebate_mode=RebateMode.INDEPENDENT)
        assert effective_rebate_mode(talent) == RebateMode.INDEPENDENT
