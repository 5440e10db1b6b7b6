"""Tests for installation lifecycle handling."""

from sqlalchemy import func, select

from conftest import INSTALLATION_ID, make_installation_payload
from prcat.orm import Organization


def repo_entry(github_id: int, name: str, private: bool = False) -> dict:
    return {"id": github_id, "name": name, "full_name": f"acme/{name}", "private": private}


class TestInstallationLifecycle:
    """Test installation webhooks against organization records."""

    async def test_created_creates_organization(self, webhook_handler, organizations):
        await webhook_handler.handle_event("installation", make_installation_payload(), "d1")

        organization = await organizations.find_by_github_id(100)
        assert organization is not None
        assert organization.name == "acme"
        assert organization.avatar_url == "https://example.com/acme.png"
        assert organization.installation_id == INSTALLATION_ID

    async def test_created_sets_installation_on_existing_organization(
        self, webhook_handler, organizations
    ):
        existing = await organizations.find_or_create(github_id=100, name="acme")
        await webhook_handler.handle_event(
            "installation", make_installation_payload(installation_id=999), "d1"
        )

        organization = await organizations.find_by_id(existing.id)
        assert organization.installation_id == 999

    async def test_selected_repositories_are_backfilled(self, webhook_handler, organizations):
        payload = make_installation_payload(
            repositories=[repo_entry(201, "widgets"), repo_entry(202, "gadgets", private=True)]
        )
        await webhook_handler.handle_event("installation", payload, "d1")

        organization = await organizations.find_by_github_id(100)
        gadgets = await organizations.find_repository_by_full_name("acme/gadgets")
        widgets = await organizations.find_repository_by_full_name("acme/widgets")
        assert gadgets.is_tracked and widgets.is_tracked
        assert gadgets.private is True
        assert gadgets.organization_id == organization.id

    async def test_all_repositories_selection_is_not_backfilled(
        self, webhook_handler, organizations
    ):
        payload = make_installation_payload(
            repositories=[repo_entry(201, "widgets")], repository_selection="all"
        )
        await webhook_handler.handle_event("installation", payload, "d1")

        assert await organizations.find_repository_by_full_name("acme/widgets") is None

    async def test_backfill_tracks_existing_repository(
        self, webhook_handler, organizations, org, repo
    ):
        await organizations.set_repository_tracking(repo.id, False)
        payload = make_installation_payload(repositories=[repo_entry(200, "widgets")])
        await webhook_handler.handle_event("installation", payload, "d1")

        assert (await organizations.find_repository_by_id(repo.id)).is_tracked is True

    async def test_user_account_is_ignored(self, webhook_handler, db_service):
        await webhook_handler.handle_event(
            "installation", make_installation_payload(account_type="User"), "d1"
        )

        async with db_service.session() as session:
            result = await session.execute(select(func.count()).select_from(Organization))
            assert result.scalar_one() == 0

    async def test_suspend_then_unsuspend(self, webhook_handler, organizations, org):
        await webhook_handler.handle_event(
            "installation", make_installation_payload(action="suspend"), "d1"
        )
        assert (await organizations.find_by_id(org.id)).installation_id is None

        await webhook_handler.handle_event(
            "installation", make_installation_payload(action="unsuspend"), "d2"
        )
        assert (await organizations.find_by_id(org.id)).installation_id == INSTALLATION_ID

    async def test_deleted_clears_installation(self, webhook_handler, organizations, org):
        await webhook_handler.handle_event(
            "installation", make_installation_payload(action="deleted"), "d1"
        )
        assert (await organizations.find_by_id(org.id)).installation_id is None

    async def test_new_permissions_accepted_restores(self, webhook_handler, organizations, org):
        await organizations.set_installation_id(org.id, None)
        await webhook_handler.handle_event(
            "installation", make_installation_payload(action="new_permissions_accepted"), "d1"
        )
        assert (await organizations.find_by_id(org.id)).installation_id == INSTALLATION_ID

    async def test_suspend_for_unknown_organization_is_noop(self, webhook_handler, organizations):
        await webhook_handler.handle_event(
            "installation", make_installation_payload(action="suspend"), "d1"
        )
        assert await organizations.find_by_github_id(100) is None

    async def test_unknown_action_is_noop(self, webhook_handler, organizations, org):
        await webhook_handler.handle_event(
            "installation", make_installation_payload(action="renamed", installation_id=1), "d1"
        )
        assert (await organizations.find_by_id(org.id)).installation_id == INSTALLATION_ID
