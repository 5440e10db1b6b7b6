"""Shared fixtures: a fresh SQLite database per test plus GitHub/LLM fakes."""

from typing import Any, Optional

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from prcat.config import Config, GitHubConfig
from prcat.llm_handler import LLMHandler
from prcat.services.categorization_service import CategorizationService
from prcat.services.category_service import CategoryService
from prcat.services.database import DatabaseService
from prcat.services.organization_service import OrganizationService
from prcat.services.pull_request_service import PullRequestService
from prcat.services.settings_service import SettingsService
from prcat.services.webhook_handler import WebhookHandler

WEBHOOK_SECRET = "test-webhook-secret"
INSTALLATION_ID = 555

SAMPLE_DIFF = """diff --git a/app.py b/app.py
--- a/app.py
+++ b/app.py
@@ -1,2 +1,2 @@
-return None
+return value
"""


class FakeGitHubClient:
    """Stands in for GitHubService; results are returned or raised in order."""

    def __init__(self, results: list):
        self.results = list(results)
        self.diff_calls: list[tuple[str, str, int]] = []

    async def get_pull_request_diff(self, owner: str, repo: str, pr_number: int) -> str:
        self.diff_calls.append((owner, repo, pr_number))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeGitHubFactory:
    """Records ``(installation_id, force_refresh)`` for each client created."""

    def __init__(self, *results: Any):
        self.client = FakeGitHubClient(list(results) or [SAMPLE_DIFF])
        self.calls: list[tuple[int, bool]] = []

    async def __call__(self, installation_id: int, force_refresh: bool) -> FakeGitHubClient:
        self.calls.append((installation_id, force_refresh))
        return self.client


class FakeLLMFactory:
    """Builds LLMHandlers over LangChain's FakeListChatModel."""

    def __init__(self, *responses: str):
        self.responses = list(responses) or ["Category: Bug Fix, Confidence: 0.9"]
        self.calls: list[tuple[str, str, str]] = []
        self.handler: Optional[LLMHandler] = None

    def __call__(self, provider: str, model_id: str, api_key: str) -> LLMHandler:
        self.calls.append((provider, model_id, api_key))
        self.handler = LLMHandler(FakeListChatModel(responses=self.responses))
        return self.handler


@pytest.fixture
def config() -> Config:
    return Config(
        database={"path": "unused.db"},
        github=GitHubConfig(
            app_id="12345",
            private_key="unused",
            webhook_secret=WEBHOOK_SECRET,
            webhook_url="https://hooks.example.com/webhooks/github",
        ),
    )


@pytest.fixture
async def db_service(tmp_path):
    service = DatabaseService(tmp_path / "prcat-test.db")
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
def organizations(db_service) -> OrganizationService:
    return OrganizationService(db_service)


@pytest.fixture
def pull_requests(db_service) -> PullRequestService:
    return PullRequestService(db_service)


@pytest.fixture
def settings(db_service) -> SettingsService:
    return SettingsService(db_service)


@pytest.fixture
async def org(organizations):
    return await organizations.find_or_create(
        github_id=100, name="acme", installation_id=INSTALLATION_ID
    )


@pytest.fixture
async def repo(organizations, org):
    return await organizations.find_or_create_repository(
        github_id=200,
        name="widgets",
        full_name="acme/widgets",
        organization_id=org.id,
        is_tracked=True,
    )


@pytest.fixture
async def categories(db_service, org):
    service = CategoryService(db_service)
    return [
        await service.create(org.id, "Bug Fix"),
        await service.create(org.id, "Feature"),
    ]


@pytest.fixture
async def ai_configured(settings, org):
    return await settings.update_ai_settings(
        org.id, selected_model_id="gpt-4o", api_keys={"openai": "sk-test"}
    )


@pytest.fixture
def github_factory() -> FakeGitHubFactory:
    return FakeGitHubFactory()


@pytest.fixture
def llm_factory() -> FakeLLMFactory:
    return FakeLLMFactory()


@pytest.fixture
def categorization_service(db_service, config, github_factory, llm_factory):
    return CategorizationService(
        db_service,
        config,
        github_client_factory=github_factory,
        llm_factory=llm_factory,
    )


@pytest.fixture
def webhook_handler(db_service, categorization_service) -> WebhookHandler:
    return WebhookHandler(db_service, categorization_service)


def make_pr_payload(
    action: str = "opened",
    number: int = 1,
    title: str = "Fix crash on empty input",
    state: str = "open",
    merged_at: Optional[str] = None,
    full_name: str = "acme/widgets",
    installation_id: Optional[int] = INSTALLATION_ID,
    **pr_overrides: Any,
) -> dict[str, Any]:
    pull_request = {
        "id": 9000 + number,
        "number": number,
        "title": title,
        "body": "Handles empty input without crashing.",
        "state": state,
        "draft": False,
        "created_at": "2024-05-01T10:00:00Z",
        "updated_at": "2024-05-01T11:00:00Z",
        "closed_at": None,
        "merged_at": merged_at,
        "user": {"id": 42, "login": "octocat", "avatar_url": "https://example.com/a.png"},
        "additions": 10,
        "deletions": 2,
        "changed_files": 1,
    }
    pull_request.update(pr_overrides)
    payload = {
        "action": action,
        "pull_request": pull_request,
        "repository": {
            "id": 200,
            "name": full_name.split("/")[1],
            "full_name": full_name,
            "private": False,
        },
    }
    if installation_id is not None:
        payload["installation"] = {"id": installation_id}
    return payload


def make_review_payload(
    review_id: int = 7001,
    state: str = "APPROVED",
    number: int = 1,
    full_name: str = "acme/widgets",
    action: str = "submitted",
) -> dict[str, Any]:
    return {
        "action": action,
        "review": {
            "id": review_id,
            "state": state,
            "submitted_at": "2024-05-02T09:00:00Z",
            "user": {"id": 43, "login": "reviewer"},
        },
        "pull_request": {"number": number},
        "repository": {"id": 200, "name": full_name.split("/")[1], "full_name": full_name},
    }


def make_installation_payload(
    action: str = "created",
    installation_id: int = INSTALLATION_ID,
    account_type: str = "Organization",
    repositories: Optional[list[dict[str, Any]]] = None,
    repository_selection: str = "selected",
) -> dict[str, Any]:
    return {
        "action": action,
        "installation": {
            "id": installation_id,
            "account": {
                "id": 100,
                "login": "acme",
                "type": account_type,
                "avatar_url": "https://example.com/acme.png",
            },
            "repository_selection": repository_selection,
        },
        "repositories": repositories or [],
    }
