"""Tests for repository tracking and webhook registration."""

import pytest

from conftest import INSTALLATION_ID
from prcat.services.tracking_service import TrackingService, split_full_name

HOOK_URL = "https://hooks.example.com/webhooks/github"


class FakeRepoClient:
    """Records webhook calls made while tracking."""

    def __init__(self, hooks=None):
        self.hooks = list(hooks or [])
        self.created: list[tuple] = []
        self.deleted: list[int] = []

    async def get_repository(self, owner, repo):
        github_id = 200 if repo == "widgets" else 300
        return {"id": github_id, "name": repo, "full_name": f"{owner}/{repo}", "private": True}

    async def list_repository_webhooks(self, owner, repo):
        return list(self.hooks)

    async def create_repository_webhook(self, owner, repo, webhook_url, secret=None):
        self.created.append((owner, repo, webhook_url, secret))
        hook = {"id": 50 + len(self.created), "config": {"url": webhook_url}}
        self.hooks.append(hook)
        return hook

    async def delete_repository_webhook(self, owner, repo, hook_id):
        self.deleted.append(hook_id)


@pytest.fixture
def repo_client():
    return FakeRepoClient()


@pytest.fixture
def tracking(db_service, config, repo_client):
    installations = []

    async def factory(installation_id):
        installations.append(installation_id)
        return repo_client

    service = TrackingService(db_service, config, github_client_factory=factory)
    service.installations_used = installations
    return service


class TestTrackRepository:
    """Test starting to track a repository."""

    async def test_track_creates_repository_and_webhook(self, tracking, repo_client, org, organizations):
        repository = await tracking.track_repository("acme/gizmos")

        assert repository.is_tracked is True
        assert repository.private is True
        assert repository.organization_id == org.id
        assert (await organizations.find_repository_by_full_name("acme/gizmos")) is not None
        assert repo_client.created == [("acme", "gizmos", HOOK_URL, "test-webhook-secret")]
        assert tracking.installations_used == [INSTALLATION_ID]

    async def test_owner_matched_case_insensitively(self, tracking, org):
        repository = await tracking.track_repository("ACME/gizmos")
        assert repository.organization_id == org.id

    async def test_existing_webhook_not_duplicated(self, db_service, config, org):
        client = FakeRepoClient(hooks=[{"id": 7, "config": {"url": HOOK_URL}}])

        async def factory(installation_id):
            return client

        await TrackingService(db_service, config, factory).track_repository("acme/gizmos")
        assert client.created == []

    async def test_retracking_untracked_repository(self, tracking, organizations, repo):
        await organizations.set_repository_tracking(repo.id, False)
        await tracking.track_repository("acme/widgets")
        assert (await organizations.find_repository_by_full_name("acme/widgets")).is_tracked

    async def test_unknown_organization(self, tracking, org):
        with pytest.raises(LookupError):
            await tracking.track_repository("globex/gizmos")

    async def test_organization_without_installation(self, tracking, organizations, org):
        await organizations.set_installation_id(org.id, None)
        with pytest.raises(LookupError):
            await tracking.track_repository("acme/gizmos")

    @pytest.mark.parametrize("name", ["acme", "acme/", "/gizmos", "a/b/c"])
    def test_invalid_full_name(self, name):
        with pytest.raises(ValueError):
            split_full_name(name)


class TestUntrackRepository:
    """Test stopping tracking."""

    async def test_untrack_removes_our_webhook_only(self, db_service, config, organizations, repo):
        client = FakeRepoClient(
            hooks=[
                {"id": 7, "config": {"url": HOOK_URL}},
                {"id": 8, "config": {"url": "https://ci.example.com/hook"}},
            ]
        )

        async def factory(installation_id):
            return client

        repository = await TrackingService(db_service, config, factory).untrack_repository(
            "acme/widgets"
        )

        assert repository.is_tracked is False
        assert (await organizations.find_repository_by_id(repo.id)).is_tracked is False
        assert client.deleted == [7]

    async def test_untrack_unknown_repository(self, tracking):
        with pytest.raises(LookupError):
            await tracking.untrack_repository("acme/missing")
