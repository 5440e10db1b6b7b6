"""Category model for PR classification."""

from typing import Optional

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Category(SqlalchemyBase):
    """A user-defined PR category. Names are unique within an organization."""

    __tablename__ = "categories"
    __table_args__ = (
        Index("idx_categories_org_name", "organization_id", "name", unique=True),
    )

    organization_id: Mapped[str] = mapped_column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name={self.name}, org={self.organization_id})>"
