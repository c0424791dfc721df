"""
Database models for AgentWorks rebates.

All models are exported here for convenient imports:
    from agentworks.models import RebateConfig, Talent, Agency, etc.
"""

from agentworks.models.agency import Agency
from agentworks.models.base import Base, BaseModel, TimestampMixin
from agentworks.models.customer_talent import CustomerTalent, CustomerTalentStatus
from agentworks.models.rebate import (
    EffectType,
    Platform,
    RebateConfig,
    RebateStatus,
    TargetType,
)
from agentworks.models.talent import (
    INDIVIDUAL_AGENCY_ID,
    RebateMode,
    RebateSource,
    Talent,
)

__all__ = [
    # Base
    "Base",
    "BaseModel",
    "TimestampMixin",
    # Ledger
    "RebateConfig",
    "RebateStatus",
    "EffectType",
    "TargetType",
    "Platform",
    # Talent
    "Talent",
    "RebateMode",
    "RebateSource",
    "INDIVIDUAL_AGENCY_ID",
    # Agency
    "Agency",
    # Customer overlay
    "CustomerTalent",
    "CustomerTalentStatus",
]
