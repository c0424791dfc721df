"""
CustomerTalent model: a customer's relation to a talent on one platform.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Numeric, String, Text, UniqueConstraint
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.orm import Mapped, mapped_column

from agentworks.models.base import BaseModel


class CustomerTalentStatus(str, Enum):
    """Whether the relation is in use."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class CustomerTalent(BaseModel):
    """
    Customer-specific overlay for a talent.

    customer_rebate_* is an override that only applies when resolving a
    rate for this customer. It never touches the talent's own ledger.
    """

    __tablename__ = "customer_talents"

    customer_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    one_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    platform: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    status: Mapped[CustomerTalentStatus] = mapped_column(
        SQLAlchemyEnum(
            CustomerTalentStatus,
            values_callable=lambda x: [e.value for e in x],
        ),
        default=CustomerTalentStatus.ACTIVE,
        nullable=False,
    )

    customer_rebate_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    customer_rebate_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2),
        nullable=True,
    )
    customer_rebate_effective_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
    )
    customer_rebate_notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    customer_rebate_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    customer_rebate_updated_by: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "customer_id", "one_id", "platform",
            name="uq_customer_talents_customer_talent_platform",
        ),
    )

    @property
    def override_applies(self) -> bool:
        """True when this relation's override wins over the talent's own rate."""
        return (
            self.status == CustomerTalentStatus.ACTIVE
            and self.customer_rebate_enabled
            and self.customer_rebate_rate is not None
        )

    def __repr__(self) -> str:
        return (
            f"<CustomerTalent(customer_id='{self.customer_id}', one_id='{self.one_id}', "
            f"platform='{self.platform}')>"
        )
