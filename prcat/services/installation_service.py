"""GitHub App installation lifecycle."""

import logging

from ..events import InstallationEvent
from .database import DatabaseService
from .organization_service import OrganizationService

logger = logging.getLogger(__name__)

RESTORE_ACTIONS = ("unsuspend", "new_permissions_accepted")
REVOKE_ACTIONS = ("deleted", "suspend")


class InstallationService:
    """Keeps each organization's installation id in step with GitHub."""

    def __init__(self, db_service: DatabaseService):
        self.organizations = OrganizationService(db_service)

    async def handle(self, event: InstallationEvent) -> None:
        """Apply an ``installation`` webhook.

        Only organization accounts are mirrored; installations on personal
        accounts are ignored.
        """
        account = event.account
        if account.type != "Organization":
            logger.info(
                f"Ignoring installation {event.action} for non-organization account "
                f"{account.login} (type={account.type})"
            )
            return

        if event.action == "created":
            await self._installed(event)
        elif event.action in REVOKE_ACTIONS:
            await self._revoked(event)
        elif event.action in RESTORE_ACTIONS:
            await self._restored(event)
        else:
            logger.info(f"Ignoring installation action: {event.action}")

    async def _installed(self, event: InstallationEvent) -> None:
        account = event.account
        organization = await self.organizations.find_or_create(
            github_id=account.github_id,
            name=account.login,
            avatar_url=account.avatar_url,
            installation_id=event.installation_id,
        )
        await self.organizations.set_installation_id(organization.id, event.installation_id)
        logger.info(
            f"App installed on {account.login} (installation_id={event.installation_id})"
        )

        # With "all" GitHub still lists repositories, but the org picks what to track
        if event.repository_selection == "all" or not event.repositories:
            return

        for repository in event.repositories:
            await self.organizations.find_or_create_repository(
                github_id=repository.github_id,
                name=repository.name,
                full_name=repository.full_name,
                organization_id=organization.id,
                private=repository.private,
                is_tracked=True,
            )
        logger.info(
            f"Backfilled {len(event.repositories)} selected repositories for {account.login}"
        )

    async def _revoked(self, event: InstallationEvent) -> None:
        organization = await self.organizations.find_by_github_id(event.account.github_id)
        if organization is None:
            logger.info(f"Installation {event.action} for unknown organization {event.account.login}")
            return

        await self.organizations.set_installation_id(organization.id, None)
        logger.info(f"Cleared installation id for {organization.name} ({event.action})")

    async def _restored(self, event: InstallationEvent) -> None:
        account = event.account
        organization = await self.organizations.find_or_create(
            github_id=account.github_id,
            name=account.login,
            avatar_url=account.avatar_url,
        )
        await self.organizations.set_installation_id(organization.id, event.installation_id)
        logger.info(
            f"Restored installation id {event.installation_id} for {account.login} ({event.action})"
        )
