"""ORM models for database persistence."""

from .base import Base, SqlalchemyBase
from .category import Category
from .organization import Organization
from .pull_request import AiStatus, PullRequest, PullRequestState
from .repository import Repository
from .review import PullRequestReview, ReviewState
from .setting import Setting
from .user import User

__all__ = [
    "Base",
    "SqlalchemyBase",
    "AiStatus",
    "Category",
    "Organization",
    "PullRequest",
    "PullRequestReview",
    "PullRequestState",
    "Repository",
    "ReviewState",
    "Setting",
    "User",
]
