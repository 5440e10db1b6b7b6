"""Repository tracking: which repositories deliver webhooks to us."""

import logging
from typing import Any, Awaitable, Callable, Optional

from ..config import Config
from ..orm.repository import Repository
from .database import DatabaseService
from .github_service import GitHubService, create_installation_client
from .organization_service import OrganizationService

logger = logging.getLogger(__name__)

InstallationClientFactory = Callable[[int], Awaitable[GitHubService]]


def split_full_name(full_name: str) -> tuple[str, str]:
    owner, _, name = full_name.partition("/")
    if not owner or not name or "/" in name:
        raise ValueError(f"Expected owner/name, got: {full_name!r}")
    return owner, name


class TrackingService:
    """Start and stop tracking repositories of installed organizations."""

    def __init__(
        self,
        db_service: DatabaseService,
        config: Config,
        github_client_factory: Optional[InstallationClientFactory] = None,
    ):
        self.config = config
        self.organizations = OrganizationService(db_service)
        self.github_client_factory = github_client_factory or self._default_github_client

    async def _default_github_client(self, installation_id: int) -> GitHubService:
        if self.config.github is None:
            raise RuntimeError("GitHub App is not configured")
        return await create_installation_client(self.config.github, installation_id)

    @property
    def webhook_url(self) -> Optional[str]:
        return self.config.github.webhook_url if self.config.github else None

    @property
    def webhook_secret(self) -> Optional[str]:
        if self.config.github and self.config.github.webhook_secret:
            return self.config.github.webhook_secret.get_secret_value()
        return None

    async def track_repository(self, full_name: str) -> Repository:
        """Mark a repository tracked and make sure its webhook exists.

        Args:
            full_name: ``owner/name`` of a repository in an installed organization.

        Raises:
            ValueError: If full_name is not ``owner/name``.
            LookupError: If the owner is not an installed organization.
            GitHubAPIError: If GitHub rejects a call.
        """
        owner, name = split_full_name(full_name)
        organization = await self.organizations.find_by_name(owner)
        if organization is None or not organization.installation_id:
            raise LookupError(f"No GitHub App installation for organization {owner}")

        client = await self.github_client_factory(organization.installation_id)
        data = await client.get_repository(owner, name)

        repository = await self.organizations.find_or_create_repository(
            github_id=int(data["id"]),
            name=data.get("name") or name,
            full_name=data.get("full_name") or full_name,
            organization_id=organization.id,
            private=bool(data.get("private", False)),
            is_tracked=True,
        )
        await self._ensure_webhook(client, owner, name)

        logger.info(f"Tracking repository {repository.full_name}")
        return repository

    async def untrack_repository(self, full_name: str) -> Repository:
        """Stop tracking a repository and remove the webhook pointing at us.

        Raises:
            LookupError: If the repository is unknown.
        """
        owner, name = split_full_name(full_name)
        repository = await self.organizations.find_repository_by_full_name(full_name)
        if repository is None:
            raise LookupError(f"Repository {full_name} not found")

        await self.organizations.set_repository_tracking(repository.id, False)
        repository.is_tracked = False

        organization = None
        if repository.organization_id:
            organization = await self.organizations.find_by_id(repository.organization_id)
        if organization is not None and organization.installation_id and self.webhook_url:
            client = await self.github_client_factory(organization.installation_id)
            for hook in await self._our_hooks(client, owner, name):
                await client.delete_repository_webhook(owner, name, hook["id"])
        else:
            logger.warning(f"Not removing webhook for {full_name}: no installation or webhook_url")

        logger.info(f"Stopped tracking repository {full_name}")
        return repository

    async def _our_hooks(self, client: GitHubService, owner: str, name: str) -> list[dict[str, Any]]:
        hooks = await client.list_repository_webhooks(owner, name)
        return [h for h in hooks if (h.get("config") or {}).get("url") == self.webhook_url]

    async def _ensure_webhook(
        self, client: GitHubService, owner: str, name: str
    ) -> Optional[dict[str, Any]]:
        if not self.webhook_url:
            logger.warning(
                f"github.webhook_url is not configured; no webhook registered for {owner}/{name}"
            )
            return None

        existing = await self._our_hooks(client, owner, name)
        if existing:
            logger.debug(f"Webhook already registered for {owner}/{name}")
            return existing[0]

        return await client.create_repository_webhook(
            owner, name, self.webhook_url, secret=self.webhook_secret
        )
