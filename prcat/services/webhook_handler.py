"""GitHub webhook event handler."""

import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

from ..events import (
    InstallationEvent,
    PingEvent,
    PullRequestEvent,
    ReviewEvent,
    parse_event,
)
from ..orm.pull_request import AiStatus
from ..orm.repository import Repository
from .categorization_service import CategorizationService
from .database import DatabaseService
from .installation_service import InstallationService
from .organization_service import OrganizationService
from .pull_request_service import PullRequestService

logger = logging.getLogger(__name__)

CATEGORIZE_ACTIONS = ("opened",)


class WebhookHandler:
    """Routes decoded GitHub webhook events to the reconcilers."""

    def __init__(
        self,
        db_service: DatabaseService,
        categorization_service: CategorizationService,
        installation_service: Optional[InstallationService] = None,
    ):
        """Initialize webhook handler.

        Args:
            db_service: Database service
            categorization_service: Runs AI categorization for opened PRs
            installation_service: Installation reconciler (built from
                db_service when omitted)
        """
        self.organizations = OrganizationService(db_service)
        self.pull_requests = PullRequestService(db_service)
        self.categorization_service = categorization_service
        self.installation_service = installation_service or InstallationService(db_service)

    async def handle_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        delivery_id: str
    ) -> None:
        """Decode and dispatch one webhook delivery.

        Args:
            event_type: X-GitHub-Event header value
            payload: Decoded JSON body
            delivery_id: GitHub delivery ID for logging

        Raises:
            WebhookPayloadError: If a known event's payload is malformed.
        """
        event = parse_event(event_type, payload)
        logger.info(
            f"Processing webhook event: type={event_type}, "
            f"action={getattr(event, 'action', None)}, delivery_id={delivery_id}"
        )

        if isinstance(event, PullRequestEvent):
            await self.handle_pull_request(event)
        elif isinstance(event, ReviewEvent):
            await self.handle_review(event)
        elif isinstance(event, InstallationEvent):
            await self.installation_service.handle(event)
        elif isinstance(event, PingEvent):
            logger.info("Received ping event (webhook configured successfully)")
        else:
            logger.info(f"Ignoring unhandled event type: {event.event_type}")

    async def _tracked_repository(self, full_name: str) -> Optional[Repository]:
        repository = await self.organizations.find_repository_by_full_name(full_name)
        if repository is None or not repository.is_tracked:
            logger.debug(f"Repository {full_name} is not tracked, ignoring")
            return None
        return repository

    async def handle_pull_request(self, event: PullRequestEvent) -> None:
        """Create or update the PR row; categorize newly opened PRs."""
        repository = await self._tracked_repository(event.repository.full_name)
        if repository is None:
            return

        pr = event.pull_request
        fields = {
            "github_id": pr.github_id,
            "title": pr.title,
            "description": pr.body,
            "state": pr.normalized_state.value,
            "draft": pr.draft,
            "updated_at": pr.updated_at,
            "closed_at": pr.closed_at,
            "merged_at": pr.merged_at,
            "additions": pr.additions,
            "deletions": pr.deletions,
            "changed_files": pr.changed_files,
        }

        existing = await self.pull_requests.find_by_number(repository.id, pr.number)
        if existing is not None:
            await self.pull_requests.update(existing.id, **fields)
            pull_request_id = existing.id
            logger.info(f"Updated PR {repository.full_name}#{pr.number} ({event.action})")
        else:
            pull_request_id = await self._create_pull_request(repository, event, fields)

        if event.action not in CATEGORIZE_ACTIONS:
            return
        await self._categorize(repository, event, pull_request_id)

    async def _create_pull_request(
        self, repository: Repository, event: PullRequestEvent, fields: dict[str, Any]
    ) -> str:
        pr = event.pull_request
        author = await self.organizations.find_or_create_user(
            github_id=pr.author.github_id,
            login=pr.author.login,
            avatar_url=pr.author.avatar_url,
        )

        try:
            created = await self.pull_requests.create(
                repository_id=repository.id,
                number=pr.number,
                author_id=author.id,
                created_at=pr.created_at,
                **fields,
            )
            logger.info(f"Created PR {repository.full_name}#{pr.number}")
            return created.id
        except IntegrityError:
            # A concurrent delivery inserted the same (repository, number) first
            existing = await self.pull_requests.find_by_number(repository.id, pr.number)
            if existing is None:
                raise
            logger.info(
                f"PR {repository.full_name}#{pr.number} created concurrently, updating instead"
            )
            await self.pull_requests.update(existing.id, **fields)
            return existing.id

    async def _categorize(
        self, repository: Repository, event: PullRequestEvent, pull_request_id: str
    ) -> None:
        label = f"{repository.full_name}#{event.pull_request.number}"
        if repository.organization_id is None:
            logger.info(f"Skipping categorization of {label}: repository has no organization")
            return

        organization = await self.organizations.find_by_id(repository.organization_id)
        if organization is None or not organization.installation_id:
            logger.info(f"Skipping categorization of {label}: no GitHub App installation")
            return

        try:
            await self.categorization_service.categorize(
                pull_request_id=pull_request_id,
                organization_id=organization.id,
                owner=repository.owner,
                repo=repository.short_name,
                number=event.pull_request.number,
                title=event.pull_request.title,
                body=event.pull_request.body,
                payload_installation_id=event.installation_id,
            )
        except Exception as e:
            logger.error(f"Categorization failed for {label}: {e}", exc_info=True)
            await self.pull_requests.set_ai_status(
                pull_request_id, AiStatus.ERROR, f"Categorization failed: {e}"
            )

    async def handle_review(self, event: ReviewEvent) -> None:
        """Create or update a review keyed by its GitHub id."""
        repository = await self._tracked_repository(event.repository.full_name)
        if repository is None:
            return

        label = f"{repository.full_name}#{event.pull_request_number}"
        pull_request = await self.pull_requests.find_by_number(
            repository.id, event.pull_request_number
        )
        if pull_request is None:
            logger.info(f"Dropping review {event.review.github_id}: PR {label} not mirrored yet")
            return

        review = event.review
        existing = await self.pull_requests.find_review_by_github_id(review.github_id)
        if existing is not None:
            await self.pull_requests.update_review_state(existing.id, review.state)
            logger.info(f"Updated review {review.github_id} on {label}: {review.state.value}")
            return

        reviewer = await self.organizations.find_or_create_user(
            github_id=review.reviewer.github_id,
            login=review.reviewer.login,
            avatar_url=review.reviewer.avatar_url,
        )
        try:
            await self.pull_requests.create_review(
                github_id=review.github_id,
                pull_request_id=pull_request.id,
                reviewer_id=reviewer.id,
                state=review.state,
                submitted_at=review.submitted_at,
            )
            logger.info(f"Created review {review.github_id} on {label}: {review.state.value}")
        except IntegrityError:
            existing = await self.pull_requests.find_review_by_github_id(review.github_id)
            if existing is None:
                raise
            await self.pull_requests.update_review_state(existing.id, review.state)
