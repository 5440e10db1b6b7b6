"""User model for GitHub accounts that author PRs or reviews."""

from typing import Optional

from sqlalchemy import BigInteger, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class User(SqlalchemyBase):
    """GitHub user, keyed by GitHub account id."""

    __tablename__ = "users"
    __table_args__ = (Index("idx_users_github_id", "github_id", unique=True),)

    github_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    login: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
