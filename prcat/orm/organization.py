"""Organization model for GitHub organizations with an app installation."""

from typing import Optional

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Organization(SqlalchemyBase):
    """A GitHub organization mirrored locally.

    ``installation_id`` is NULL whenever no usable GitHub App credential exists
    (never installed, uninstalled, or suspended).
    """

    __tablename__ = "organizations"
    __table_args__ = (Index("idx_organizations_github_id", "github_id", unique=True),)

    github_id: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    avatar_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    installation_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Organization(id={self.id}, name={self.name}, "
            f"github_id={self.github_id}, installation_id={self.installation_id})>"
        )
