"""Typed GitHub webhook events, decoded once at the HTTP boundary."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .orm.pull_request import PullRequestState
from .orm.review import ReviewState


class EventType(Enum):
    """GitHub event types (X-GitHub-Event header values) we act on."""

    PULL_REQUEST = "pull_request"
    PULL_REQUEST_REVIEW = "pull_request_review"
    INSTALLATION = "installation"
    PING = "ping"


class WebhookPayloadError(ValueError):
    """Raised when a known event's payload is missing required fields."""


@dataclass
class GitHubAccount:
    """A GitHub user or organization account."""

    github_id: int
    login: str
    type: str = "User"
    avatar_url: Optional[str] = None


@dataclass
class RepositoryRef:
    """Repository identity as carried by webhook payloads."""

    github_id: int
    name: str
    full_name: str
    private: bool = False

    @property
    def owner(self) -> str:
        return self.full_name.split("/", 1)[0]


@dataclass
class PullRequestData:
    """Pull request fields from a ``pull_request`` payload."""

    github_id: int
    number: int
    title: str
    body: Optional[str]
    state: str
    draft: bool
    created_at: str
    updated_at: str
    closed_at: Optional[str]
    merged_at: Optional[str]
    author: GitHubAccount
    additions: Optional[int] = None
    deletions: Optional[int] = None
    changed_files: Optional[int] = None

    @property
    def normalized_state(self) -> PullRequestState:
        """merged_at wins over state; anything not closed counts as open."""
        if self.merged_at:
            return PullRequestState.MERGED
        if self.state == "closed":
            return PullRequestState.CLOSED
        return PullRequestState.OPEN


@dataclass
class ReviewData:
    """Review fields from a ``pull_request_review`` payload."""

    github_id: int
    reviewer: GitHubAccount
    state: ReviewState
    submitted_at: Optional[str]


@dataclass
class PullRequestEvent:
    action: str
    repository: RepositoryRef
    pull_request: PullRequestData
    installation_id: Optional[int] = None


@dataclass
class ReviewEvent:
    action: str
    repository: RepositoryRef
    pull_request_number: int
    review: ReviewData


@dataclass
class InstallationEvent:
    action: str
    installation_id: int
    account: GitHubAccount
    repository_selection: Optional[str] = None
    repositories: list[RepositoryRef] = field(default_factory=list)


@dataclass
class PingEvent:
    zen: Optional[str] = None
    hook_id: Optional[int] = None


@dataclass
class UnknownEvent:
    event_type: str
    action: Optional[str] = None


WebhookEvent = Union[PullRequestEvent, ReviewEvent, InstallationEvent, PingEvent, UnknownEvent]


def map_review_state(state: Optional[str]) -> ReviewState:
    """Map a GitHub review state string to ReviewState.

    Matching is case-insensitive; unrecognized values map to COMMENTED.

    Examples:
        >>> map_review_state("CHANGES_REQUESTED")
        <ReviewState.CHANGES_REQUESTED: 'changes_requested'>
        >>> map_review_state("pending")
        <ReviewState.COMMENTED: 'commented'>
    """
    try:
        return ReviewState((state or "").lower())
    except ValueError:
        return ReviewState.COMMENTED


def _account(data: dict[str, Any]) -> GitHubAccount:
    return GitHubAccount(
        github_id=int(data["id"]),
        login=data["login"],
        type=data.get("type") or "User",
        avatar_url=data.get("avatar_url"),
    )


def _repository(data: dict[str, Any]) -> RepositoryRef:
    full_name = data["full_name"]
    return RepositoryRef(
        github_id=int(data["id"]),
        name=data.get("name") or full_name.split("/", 1)[-1],
        full_name=full_name,
        private=bool(data.get("private", False)),
    )


def _installation_id(payload: dict[str, Any]) -> Optional[int]:
    installation = payload.get("installation") or (payload.get("repository") or {}).get(
        "installation"
    )
    if installation and installation.get("id") is not None:
        return int(installation["id"])
    return None


def _pull_request(data: dict[str, Any]) -> PullRequestData:
    return PullRequestData(
        github_id=int(data["id"]),
        number=int(data["number"]),
        title=data["title"],
        body=data.get("body"),
        state=data.get("state") or "open",
        draft=bool(data.get("draft", False)),
        created_at=data["created_at"],
        updated_at=data["updated_at"],
        closed_at=data.get("closed_at"),
        merged_at=data.get("merged_at"),
        author=_account(data["user"]),
        additions=data.get("additions"),
        deletions=data.get("deletions"),
        changed_files=data.get("changed_files"),
    )


def _review(data: dict[str, Any]) -> ReviewData:
    return ReviewData(
        github_id=int(data["id"]),
        reviewer=_account(data["user"]),
        state=map_review_state(data.get("state")),
        submitted_at=data.get("submitted_at"),
    )


def parse_event(event_type: str, payload: dict[str, Any]) -> WebhookEvent:
    """Decode a webhook payload into its typed event.

    Args:
        event_type: X-GitHub-Event header value.
        payload: Decoded JSON body.

    Returns:
        One of the WebhookEvent variants. Unrecognized event types become
        UnknownEvent rather than raising.

    Raises:
        WebhookPayloadError: If a recognized event lacks required fields.
    """
    try:
        kind = EventType(event_type)
    except ValueError:
        action = payload.get("action") if isinstance(payload, dict) else None
        return UnknownEvent(event_type=event_type or "unknown", action=action)

    if not isinstance(payload, dict):
        raise WebhookPayloadError("payload must be a JSON object")

    action = payload.get("action")

    try:
        if kind is EventType.PULL_REQUEST:
            return PullRequestEvent(
                action=action or "",
                repository=_repository(payload["repository"]),
                pull_request=_pull_request(payload["pull_request"]),
                installation_id=_installation_id(payload),
            )
        if kind is EventType.PULL_REQUEST_REVIEW:
            return ReviewEvent(
                action=action or "",
                repository=_repository(payload["repository"]),
                pull_request_number=int(payload["pull_request"]["number"]),
                review=_review(payload["review"]),
            )
        if kind is EventType.INSTALLATION:
            installation = payload["installation"]
            return InstallationEvent(
                action=action or "",
                installation_id=int(installation["id"]),
                account=_account(installation["account"]),
                repository_selection=installation.get("repository_selection"),
                repositories=[_repository(r) for r in payload.get("repositories") or []],
            )
        return PingEvent(zen=payload.get("zen"), hook_id=payload.get("hook_id"))
    except (KeyError, TypeError, ValueError) as e:
        raise WebhookPayloadError(f"malformed {event_type} payload: {e!r}") from e
