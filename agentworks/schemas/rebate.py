"""
Rebate request and response schemas.

Field names are snake_case in Python and camelCase on the wire
(oneId, rebateRate, effectType, ...) to stay compatible with the
existing AgentWorks frontend.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from agentworks.models import EffectType, Platform, RebateMode, RebateSource, RebateStatus, TargetType

# Rates are Decimals internally and plain JSON numbers on the wire
Rate = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Requests ──────────────────────────────────────────────


class TalentRebateUpdate(CamelModel):
    """Change a talent's own rate."""

    one_id: str = Field(..., min_length=1, max_length=64)
    platform: str = Field(..., min_length=1)
    # Validated by validate_rebate_rate, not pydantic
    rebate_rate: Any = Field(...)
    effect_type: str = Field(..., pattern="^(immediate|next_cooperation)$")
    effective_date: Optional[date] = None
    created_by: Optional[str] = Field(None, max_length=100)
    reason: Optional[str] = Field(None, max_length=1000)


class AgencyRebateConfigIn(CamelModel):
    base_rebate: Any = Field(...)
    effective_date: Optional[date] = None
    updated_by: Optional[str] = Field(None, max_length=100)


class AgencyRebateUpdate(CamelModel):
    """Change an agency's rate, optionally pushing it to sync-mode talents."""

    agency_id: str = Field(..., min_length=1, max_length=64)
    platform: str = Field(..., min_length=1)
    rebate_config: AgencyRebateConfigIn
    sync_to_talents: bool = False


class SyncAgencyRebateRequest(CamelModel):
    """Pull the agency's current rate onto one talent."""

    one_id: str = Field(..., min_length=1, max_length=64)
    platform: str = Field(..., min_length=1)
    created_by: Optional[str] = Field(None, max_length=100)


class ActivatePendingRequest(CamelModel):
    target_type: TargetType = TargetType.TALENT
    target_id: str = Field(..., min_length=1, max_length=64)
    platform: str = Field(..., min_length=1)
    as_of: Optional[date] = None


class CustomerRebateUpdate(CamelModel):
    """Enable, change or disable a customer-specific override."""

    customer_id: str = Field(..., min_length=1, max_length=64)
    one_id: str = Field(..., min_length=1, max_length=64)
    platform: str = Field(..., min_length=1)
    enabled: bool
    rate: Any = None
    effective_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)
    updated_by: Optional[str] = Field(None, max_length=100)


class CustomerRebateBatchItem(CamelModel):
    one_id: str = Field(..., min_length=1, max_length=64)
    enabled: bool
    rate: Any = None
    effective_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=1000)


class CustomerRebateBatchUpdate(CamelModel):
    """Set overrides for several of one customer's talents on a platform."""

    customer_id: str = Field(..., min_length=1, max_length=64)
    platform: str = Field(..., min_length=1)
    items: List[CustomerRebateBatchItem] = Field(..., min_length=1, max_length=200)
    updated_by: Optional[str] = Field(None, max_length=100)


# ── Responses ─────────────────────────────────────────────


class RateChangeResult(CamelModel):
    config_id: str
    message: str
    new_rate: Rate
    previous_rate: Optional[Rate] = None
    effect_type: EffectType
    effective_date: date
    status: RebateStatus


class SyncFailure(CamelModel):
    one_id: str
    message: str


class SyncResult(CamelModel):
    """Outcome of pushing an agency rate to its sync-mode talents."""

    platform: str
    talents_matched: int = 0
    talents_updated: int = 0
    failed: int = 0
    errors: List[SyncFailure] = Field(default_factory=list)
    message: str = ""


class AgencyRateChangeResult(RateChangeResult):
    platform: str
    sync_result: Optional[SyncResult] = None


class TalentSyncResult(CamelModel):
    config_id: str
    message: str
    synced_rate: Rate
    previous_rate: Optional[Rate] = None
    effective_date: date


class RateView(CamelModel):
    """A rate tagged with where it came from."""

    rate: Rate
    source: RebateSource
    effective_date: Optional[date] = None


class CustomerRebateView(CamelModel):
    enabled: bool
    rate: Optional[Rate] = None
    effective_date: Optional[date] = None
    notes: Optional[str] = None


class RebateResolution(CamelModel):
    """What a talent's rate is, and what a given customer actually pays."""

    one_id: str
    platform: str
    name: Optional[str] = None
    agency_id: Optional[str] = None
    rebate_mode: RebateMode
    current_rebate: RateView
    effective_rebate: RateView
    customer_rebate: Optional[CustomerRebateView] = None


class CustomerRebateDetail(CamelModel):
    customer_id: str
    one_id: str
    platform: str
    customer_rebate: CustomerRebateView
    talent_rebate: RateView
    effective_rebate: RateView


class CustomerRebateBatchResult(CamelModel):
    """Outcome of a batch override update. Items fail independently."""

    customer_id: str
    platform: str
    total: int = 0
    updated: int = 0
    failed: int = 0
    errors: List[SyncFailure] = Field(default_factory=list)


class AgencyCurrentRebate(CamelModel):
    agency_id: str
    agency_name: str
    platform: str
    rebate_rate: Rate
    effective_date: Optional[date] = None
    last_updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None
    has_config: bool


class RebateConfigRecord(CamelModel):
    """One ledger entry as shown in the history list."""

    config_id: str
    target_type: TargetType
    target_id: str
    platform: Platform
    rebate_rate: Rate
    effect_type: EffectType
    effective_date: date
    expiry_date: Optional[date] = None
    status: RebateStatus
    reason: Optional[str] = None
    created_by: str
    created_at: datetime
    # RebateConfig.metadata is SQLAlchemy's MetaData, read the mapped attribute instead
    config_metadata: Optional[dict[str, Any]] = Field(
        None,
        validation_alias=AliasChoices("config_metadata", "configMetadata"),
        serialization_alias="metadata",
    )


class RebateHistoryPage(CamelModel):
    total: int
    limit: int
    offset: int
    records: List[RebateConfigRecord]
