"""
Rebate business rules.

Rules:
- A rate is a percentage in [0, 100] with at most 2 fractional digits
- Talents without an agency (or with the 'individual' sentinel) are independent
- Agency talents with no rebate_mode set follow their agency (sync)
- A talent that never had a rate configured reports the system default
"""

import secrets
import string
import time
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Union

from agentworks.config import settings
from agentworks.errors import InvalidFormat, OutOfRange, PrecisionExceeded, UnsupportedPlatform
from agentworks.models import EffectType, Platform, RebateMode, TargetType, Talent

MIN_REBATE_RATE = Decimal("0")
MAX_REBATE_RATE = Decimal("100")
REBATE_PRECISION = 2
RATE_QUANTUM = Decimal("0.01")

# System default for talents that never had a rate configured
DEFAULT_REBATE_RATE = settings.default_rebate_rate

SUPPORTED_PLATFORMS = tuple(p.value for p in Platform)

_CONFIG_ID_ALPHABET = string.digits + string.ascii_lowercase


def validate_rebate_rate(raw: Any) -> Decimal:
    """Validate a proposed rebate rate and normalize it to 2 decimals.

    Precision is checked against the value as provided, so "12.345" and
    12.345 are both rejected rather than silently rounded.

    Args:
        raw: Rate as received from the caller (str, int, float or Decimal)

    Returns:
        Rate as a Decimal quantized to 0.01

    Raises:
        InvalidFormat: value is not a finite number
        OutOfRange: value is outside [0, 100]
        PrecisionExceeded: value has more than 2 fractional digits
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidFormat("Rebate rate must be a number")

    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip()
        try:
            value = Decimal(text)
        except InvalidOperation:
            raise InvalidFormat(f"Rebate rate must be a number, got '{raw}'") from None

    if not value.is_finite():
        raise InvalidFormat(f"Rebate rate must be a number, got '{raw}'")

    if value < MIN_REBATE_RATE or value > MAX_REBATE_RATE:
        raise OutOfRange(
            f"Rebate rate must be between {MIN_REBATE_RATE} and {MAX_REBATE_RATE}, got {raw}"
        )

    if value.as_tuple().exponent < -REBATE_PRECISION:
        raise PrecisionExceeded(
            f"Rebate rate supports at most {REBATE_PRECISION} decimal places, got {raw}"
        )

    if value == 0:
        value = Decimal("0")  # drop the sign of -0
    return value.quantize(RATE_QUANTUM)


def validate_platform(platform: Union[str, Platform, None]) -> Platform:
    """Coerce a platform name into Platform or raise UnsupportedPlatform."""
    if not platform:
        raise UnsupportedPlatform("Platform is required")
    try:
        return Platform(platform)
    except ValueError:
        raise UnsupportedPlatform(
            f"Unsupported platform: {platform}. Supported platforms: {', '.join(SUPPORTED_PLATFORMS)}"
        ) from None


def parse_effect_type(effect_type: Union[str, EffectType, None]) -> EffectType:
    if effect_type is None:
        return EffectType.IMMEDIATE
    try:
        return EffectType(effect_type)
    except ValueError:
        raise InvalidFormat(
            "effectType must be 'immediate' or 'next_cooperation'"
        ) from None


def parse_target_type(target_type: Union[str, TargetType]) -> TargetType:
    try:
        return TargetType(target_type)
    except ValueError:
        raise InvalidFormat("targetType must be 'talent' or 'agency'") from None


def effective_rebate_mode(talent: Talent) -> RebateMode:
    """Rebate mode that actually applies to a talent.

    Independent talents are always independent, whatever is stored.
    Agency talents default to sync when no mode was ever set.
    """
    if not talent.belongs_to_agency:
        return RebateMode.INDEPENDENT
    if talent.rebate_mode is None:
        return RebateMode.SYNC
    return RebateMode(talent.rebate_mode)


def generate_config_id() -> str:
    """Generate an opaque ledger id: rebate_config_<epoch ms>_<9 base36 chars>."""
    suffix = "".join(secrets.choice(_CONFIG_ID_ALPHABET) for _ in range(9))
    return f"rebate_config_{int(time.time() * 1000)}_{suffix}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return utcnow().date()


def rate_to_json(rate: Decimal) -> float:
    """Rates stored inside JSON columns are plain numbers."""
    return float(rate)
