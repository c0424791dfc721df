"""
Talent model.

Talents are managed by other parts of AgentWorks; this service only
reads their identity and agency link and writes the rebate fields.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, DateTime, Numeric, String, UniqueConstraint
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from agentworks.models.base import BaseModel

# agency_id value used for talents without an agency
INDIVIDUAL_AGENCY_ID = "individual"


class RebateMode(str, Enum):
    """Whether a talent's rate follows its agency."""
    SYNC = "sync"
    INDEPENDENT = "independent"


class RebateSource(str, Enum):
    """Where a talent's current rate came from."""
    DEFAULT = "default"          # Never configured, system default applies
    PERSONAL = "personal"        # Set on the talent directly
    AGENCY = "agency"            # Pushed by an agency-wide sync
    AGENCY_SYNC = "agency_sync"  # Pulled from the agency for this one talent
    CUSTOMER = "customer"        # Customer-specific override (resolution only)


class Talent(BaseModel):
    """
    A talent (KOL) account on one platform.

    The current_rebate_* columns are a cache of the talent's active
    RebateConfig and are only written by the transition engine.
    """

    __tablename__ = "talents"

    one_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    platform: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    agency_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Owning agency id, null or 'individual' for independent talents",
    )
    rebate_mode: Mapped[Optional[RebateMode]] = mapped_column(
        SQLAlchemyEnum(
            RebateMode,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
        comment="Unset means sync for agency talents",
    )

    # currentRebate cache
    current_rebate_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
    )
    current_rebate_source: Mapped[Optional[RebateSource]] = mapped_column(
        SQLAlchemyEnum(
            RebateSource,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
    )
    current_rebate_effective_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
    )
    current_rebate_last_updated: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    last_rebate_sync_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint("one_id", "platform", name="uq_talents_one_id_platform"),
    )

    @property
    def belongs_to_agency(self) -> bool:
        return bool(self.agency_id) and self.agency_id != INDIVIDUAL_AGENCY_ID

    def __repr__(self) -> str:
        return f"<Talent(one_id='{self.one_id}', platform='{self.platform}', agency_id={self.agency_id})>"
