"""
RebateConfig model: the append-only ledger of rebate rates.

Every rate change (manual edit or agency sync) inserts a row here.
Rows are never deleted; the only mutations allowed are the status
flips pending -> active and active -> expired.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import Date, DateTime, Index, JSON, Numeric, String, Text, func, text
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from agentworks.errors import IllegalStatusTransition
from agentworks.models.base import Base


class TargetType(str, Enum):
    """Entity a rebate config applies to."""
    TALENT = "talent"
    AGENCY = "agency"


class Platform(str, Enum):
    """Supported content platforms."""
    DOUYIN = "douyin"
    XIAOHONGSHU = "xiaohongshu"
    BILIBILI = "bilibili"
    KUAISHOU = "kuaishou"


class EffectType(str, Enum):
    """When a new rate takes effect."""
    IMMEDIATE = "immediate"                # Replaces the active rate now
    NEXT_COOPERATION = "next_cooperation"  # Deferred until the next booked collaboration


class RebateStatus(str, Enum):
    """Lifecycle state of a ledger record."""
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"

    def transition(self, new_status: "RebateStatus") -> "RebateStatus":
        """Return new_status if the move is legal, raise otherwise.

        Legal moves are pending -> active and active -> expired. An expired
        record can never come back.
        """
        if (self, new_status) not in _LEGAL_TRANSITIONS:
            raise IllegalStatusTransition(self.value, new_status.value)
        return new_status


_LEGAL_TRANSITIONS = {
    (RebateStatus.PENDING, RebateStatus.ACTIVE),
    (RebateStatus.ACTIVE, RebateStatus.EXPIRED),
}


class RebateConfig(Base):
    """
    One versioned rebate configuration for a (target, platform) pair.

    Invariant: at most one row per (target_type, target_id, platform)
    has status='active'. Enforced by the transition engine and backed
    by the uq_rebate_configs_active partial unique index.
    """

    __tablename__ = "rebate_configs"

    id: Mapped[int] = mapped_column(primary_key=True)
    config_id: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    target_type: Mapped[TargetType] = mapped_column(
        SQLAlchemyEnum(
            TargetType,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    target_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Talent oneId or agency id",
    )
    platform: Mapped[Platform] = mapped_column(
        SQLAlchemyEnum(
            Platform,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    rebate_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
    )
    effect_type: Mapped[EffectType] = mapped_column(
        SQLAlchemyEnum(
            EffectType,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    effective_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    expiry_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Day the next rate started; null while active or pending",
    )
    status: Mapped[RebateStatus] = mapped_column(
        SQLAlchemyEnum(
            RebateStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        index=True,
    )
    reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    created_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="system",
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Display-only annotations, never read by resolution logic
    config_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    __table_args__ = (
        Index("idx_target_platform_created_at", "target_id", "platform", "created_at"),
        Index("idx_target_platform_status", "target_id", "platform", "status"),
        Index(
            "uq_rebate_configs_active",
            "target_type",
            "target_id",
            "platform",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<RebateConfig(config_id='{self.config_id}', target={self.target_type}:{self.target_id}, "
            f"platform={self.platform}, rate={self.rebate_rate}, status={self.status})>"
        )
