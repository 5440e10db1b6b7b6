"""PullRequest model mirroring GitHub pull request state."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class PullRequestState(str, Enum):
    """Normalized pull request state."""

    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"


class AiStatus(str, Enum):
    """Categorization state machine.

    NULL -> processing -> completed | error, or NULL -> skipped directly.
    """

    SKIPPED = "skipped"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class PullRequest(SqlalchemyBase):
    """A pull request in a tracked repository."""

    __tablename__ = "pull_requests"
    __table_args__ = (
        UniqueConstraint("repository_id", "number", name="uq_pull_requests_repo_number"),
        Index("idx_pull_requests_github_id", "repository_id", "github_id"),
        Index("idx_pull_requests_category_id", "category_id"),
        Index("idx_pull_requests_ai_status", "ai_status"),
    )

    github_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    repository_id: Mapped[str] = mapped_column(
        String, ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    state: Mapped[str] = mapped_column(String, nullable=False)  # PullRequestState value
    draft: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # GitHub timestamps, stored verbatim
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[str] = mapped_column(String, nullable=False)
    closed_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    merged_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Size metrics
    additions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    deletions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    changed_files: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Categorization
    category_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True
    )
    category_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ai_status: Mapped[Optional[str]] = mapped_column(String, nullable=True)  # AiStatus value
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_lease_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<PullRequest(id={self.id}, number={self.number}, state={self.state}, "
            f"ai_status={self.ai_status}, category_id={self.category_id})>"
        )
