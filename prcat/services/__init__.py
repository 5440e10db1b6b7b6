"""Service layer for business logic and database operations."""

from .categorization_service import CategorizationResult, CategorizationService
from .category_service import CategoryService
from .database import DatabaseService, get_db_service, init_db_service
from .github_service import GitHubAPIError, GitHubAuthError, GitHubService
from .installation_service import InstallationService
from .organization_service import OrganizationService
from .pull_request_service import PullRequestService
from .settings_service import AiSettings, SettingsService
from .tracking_service import TrackingService
from .webhook_handler import WebhookHandler

__all__ = [
    "AiSettings",
    "CategorizationResult",
    "CategorizationService",
    "CategoryService",
    "DatabaseService",
    "GitHubAPIError",
    "GitHubAuthError",
    "GitHubService",
    "InstallationService",
    "OrganizationService",
    "PullRequestService",
    "SettingsService",
    "TrackingService",
    "WebhookHandler",
    "get_db_service",
    "init_db_service",
]
