"""
Agency model.
"""

from typing import Any, Optional

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from agentworks.models.base import Base, TimestampMixin


class Agency(Base, TimestampMixin):
    """
    An agency owning zero or more talents.

    rebate_config caches the agency's active rate per platform:
        {"platforms": {"douyin": {"baseRebate": 15.0, "effectiveDate": "2025-11-16",
                                  "lastUpdatedAt": "...", "updatedBy": "..."}}}
    It is rewritten by the transition engine and never read for resolution.
    """

    __tablename__ = "agencies"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    rebate_config: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=True,
    )

    def platform_rebate(self, platform: str) -> Optional[dict[str, Any]]:
        """Cached rebate block for one platform, if any."""
        platforms = (self.rebate_config or {}).get("platforms") or {}
        return platforms.get(platform)

    def set_platform_rebate(self, platform: str, block: dict[str, Any]) -> None:
        # Reassign the whole dict so SQLAlchemy notices the JSON change
        config = dict(self.rebate_config or {})
        platforms = dict(config.get("platforms") or {})
        platforms[platform] = block
        config["platforms"] = platforms
        self.rebate_config = config

    def __repr__(self) -> str:
        return f"<Agency(id='{self.id}', name='{self.name}')>"
