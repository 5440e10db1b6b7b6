"""Service for pull request and review persistence."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy import or_, select, update

from ..orm.pull_request import AiStatus, PullRequest
from ..orm.review import PullRequestReview, ReviewState
from .database import DatabaseService

logger = logging.getLogger(__name__)

# Fields a webhook may overwrite on an existing pull request. Categorization
# columns are owned by the categorization pipeline.
MUTABLE_FIELDS = (
    "github_id",
    "title",
    "description",
    "state",
    "draft",
    "updated_at",
    "closed_at",
    "merged_at",
    "additions",
    "deletions",
    "changed_files",
)

# Size metrics are optional in payloads; absent values keep the stored ones.
OPTIONAL_METRICS = ("additions", "deletions", "changed_files")


class PullRequestService:
    """Repository-style access to pull requests and their reviews."""

    def __init__(self, db_service: DatabaseService):
        self.db = db_service

    async def find_by_id(self, pull_request_id: str) -> Optional[PullRequest]:
        async with self.db.session() as session:
            return await session.get(PullRequest, pull_request_id)

    async def find_by_number(self, repository_id: str, number: int) -> Optional[PullRequest]:
        async with self.db.session() as session:
            result = await session.execute(
                select(PullRequest).where(
                    PullRequest.repository_id == repository_id,
                    PullRequest.number == number,
                )
            )
            return result.scalar_one_or_none()

    async def create(self, **fields: Any) -> PullRequest:
        """Insert a pull request.

        Raises:
            IntegrityError: If (repository_id, number) already exists.
        """
        async with self.db.session() as session:
            pull_request = PullRequest(**fields)
            session.add(pull_request)
            await session.flush()
            return pull_request

    async def update(self, pull_request_id: str, **fields: Any) -> Optional[PullRequest]:
        """Update mutable webhook-owned fields; unknown keys are ignored."""
        async with self.db.session() as session:
            pull_request = await session.get(PullRequest, pull_request_id)
            if pull_request is None:
                return None
            for name in MUTABLE_FIELDS:
                if name not in fields:
                    continue
                if name in OPTIONAL_METRICS and fields[name] is None:
                    continue
                setattr(pull_request, name, fields[name])
            return pull_request

    async def update_category(
        self, pull_request_id: str, category_id: str, confidence: float
    ) -> None:
        """Persist a resolved category and mark categorization completed."""
        async with self.db.session() as session:
            await session.execute(
                update(PullRequest)
                .where(PullRequest.id == pull_request_id)
                .values(
                    category_id=category_id,
                    category_confidence=confidence,
                    ai_status=AiStatus.COMPLETED.value,
                    error_message=None,
                )
            )

    async def set_ai_status(
        self,
        pull_request_id: str,
        status: AiStatus,
        error_message: Optional[str] = None,
    ) -> None:
        async with self.db.session() as session:
            await session.execute(
                update(PullRequest)
                .where(PullRequest.id == pull_request_id)
                .values(ai_status=status.value, error_message=error_message)
            )

    async def claim_categorization(self, pull_request_id: str, lease_seconds: int) -> bool:
        """Atomically take the in-flight categorization lease for a PR.

        Returns:
            True if this caller now holds the lease, False if another run
            holds an unexpired one.
        """
        now = datetime.now(timezone.utc)
        async with self.db.session() as session:
            result = await session.execute(
                update(PullRequest)
                .where(
                    PullRequest.id == pull_request_id,
                    or_(
                        PullRequest.ai_lease_expires_at.is_(None),
                        PullRequest.ai_lease_expires_at < now,
                    ),
                )
                .values(ai_lease_expires_at=now + timedelta(seconds=lease_seconds))
            )
            return result.rowcount == 1

    async def release_categorization(self, pull_request_id: str) -> None:
        async with self.db.session() as session:
            await session.execute(
                update(PullRequest)
                .where(PullRequest.id == pull_request_id)
                .values(ai_lease_expires_at=None)
            )

    async def find_review_by_github_id(self, github_id: int) -> Optional[PullRequestReview]:
        async with self.db.session() as session:
            result = await session.execute(
                select(PullRequestReview).where(PullRequestReview.github_id == github_id)
            )
            return result.scalar_one_or_none()

    async def create_review(
        self,
        github_id: int,
        pull_request_id: str,
        reviewer_id: Optional[str],
        state: ReviewState,
        submitted_at: Optional[str],
    ) -> PullRequestReview:
        """Insert a review.

        Raises:
            IntegrityError: If the GitHub review id already exists.
        """
        async with self.db.session() as session:
            review = PullRequestReview(
                github_id=github_id,
                pull_request_id=pull_request_id,
                reviewer_id=reviewer_id,
                state=state.value,
                submitted_at=submitted_at,
            )
            session.add(review)
            await session.flush()
            return review

    async def update_review_state(self, review_id: str, state: ReviewState) -> None:
        async with self.db.session() as session:
            await session.execute(
                update(PullRequestReview)
                .where(PullRequestReview.id == review_id)
                .values(state=state.value)
            )
