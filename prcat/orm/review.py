"""PullRequestReview model for GitHub PR reviews."""

from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class ReviewState(str, Enum):
    """Internal review state."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    DISMISSED = "dismissed"


class PullRequestReview(SqlalchemyBase):
    """A review on a pull request, keyed by the GitHub review id."""

    __tablename__ = "pr_reviews"
    __table_args__ = (
        Index("idx_pr_reviews_github_id", "github_id", unique=True),
        Index("idx_pr_reviews_pull_request_id", "pull_request_id"),
    )

    github_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    pull_request_id: Mapped[str] = mapped_column(
        String, ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False
    )
    reviewer_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    state: Mapped[str] = mapped_column(String, nullable=False)  # ReviewState value
    submitted_at: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<PullRequestReview(id={self.id}, github_id={self.github_id}, "
            f"state={self.state})>"
        )
