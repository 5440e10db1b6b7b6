"""Repository model for GitHub repositories."""

from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Repository(SqlalchemyBase):
    """A GitHub repository. Webhooks are only processed for tracked repositories."""

    __tablename__ = "repositories"
    __table_args__ = (
        Index("idx_repositories_github_id", "github_id", unique=True),
        Index("idx_repositories_full_name", "full_name", unique=True),
        Index("idx_repositories_organization_id", "organization_id"),
    )

    github_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    organization_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    private: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_tracked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]

    @property
    def short_name(self) -> str:
        return self.full_name.split("/", 1)[-1]

    def __repr__(self) -> str:
        return (
            f"<Repository(id={self.id}, full_name={self.full_name}, "
            f"tracked={self.is_tracked})>"
        )
