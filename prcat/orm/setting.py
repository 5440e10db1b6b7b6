"""Setting model for per-organization key/value settings."""

from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Setting(SqlalchemyBase):
    """Organization-scoped setting (AI provider, model, API keys)."""

    __tablename__ = "settings"
    __table_args__ = (
        Index("idx_settings_org_key", "organization_id", "key", unique=True),
    )

    organization_id: Mapped[str] = mapped_column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    key: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
