"""Service that classifies pull requests into organization categories with an LLM."""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..category_matcher import match_category, parse_category_response
from ..config import Config
from ..llm_handler import LLMHandler, UnsupportedProviderError, sanitize_text
from ..orm.pull_request import AiStatus
from .category_service import CategoryService
from .database import DatabaseService
from .github_service import GitHubService, create_installation_client, is_auth_error
from .organization_service import OrganizationService
from .pull_request_service import PullRequestService
from .settings_service import SettingsService

logger = logging.getLogger(__name__)

GitHubClientFactory = Callable[[int, bool], Awaitable[GitHubService]]
LLMFactory = Callable[[str, str, str], LLMHandler]

SYSTEM_PROMPT_TEMPLATE = """You are an expert at categorizing GitHub pull requests.

Analyze the pull request title, description and diff, then choose the single most
relevant category from this list:

{categories}

Rules:
- Use one of the category names above EXACTLY as written.
- Never invent a category name that is not in the list.
- Give a confidence score between 0.0 and 1.0.

Respond with exactly one line in this format:
Category: <category name>, Confidence: <0.0-1.0>

Example: Category: {example}, Confidence: 0.9"""


class DiffFetchError(Exception):
    """The PR diff could not be fetched, including after a token refresh."""


@dataclass
class CategorizationResult:
    """Outcome of one categorization run.

    ``status`` is None when the run did not execute because another run for
    the same pull request held the lease.
    """

    status: Optional[AiStatus]
    message: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    confidence: Optional[float] = None


def build_system_prompt(category_names: list[str]) -> str:
    numbered = "\n".join(f"{i}. {name}" for i, name in enumerate(category_names, start=1))
    return SYSTEM_PROMPT_TEMPLATE.format(categories=numbered, example=category_names[0])


def build_user_prompt(title: str, body: Optional[str], diff: str, max_diff_chars: int) -> str:
    truncated_diff = diff[:max_diff_chars]
    if len(diff) > max_diff_chars:
        truncated_diff += "\n... (diff truncated)"

    return (
        f"Title: {sanitize_text(title)}\n"
        f"Body: {sanitize_text(body or '')}\n"
        f"Diff:\n{truncated_diff}"
    )


class CategorizationService:
    """Resolve settings, fetch the diff, ask the model, record the category."""

    def __init__(
        self,
        db_service: DatabaseService,
        config: Config,
        github_client_factory: Optional[GitHubClientFactory] = None,
        llm_factory: Optional[LLMFactory] = None,
    ):
        """Initialize categorization service.

        Args:
            db_service: Database service
            config: Application configuration
            github_client_factory: ``(installation_id, force_refresh)`` -> client;
                defaults to GitHub App installation clients
            llm_factory: ``(provider, model_id, api_key)`` -> LLMHandler
        """
        self.config = config
        self.pull_requests = PullRequestService(db_service)
        self.organizations = OrganizationService(db_service)
        self.categories = CategoryService(db_service)
        self.settings = SettingsService(db_service)
        self.github_client_factory = github_client_factory or self._default_github_client
        self.llm_factory = llm_factory or self._default_llm

    async def _default_github_client(
        self, installation_id: int, force_refresh: bool
    ) -> GitHubService:
        if self.config.github is None:
            raise RuntimeError("GitHub App is not configured")
        return await create_installation_client(
            self.config.github, installation_id, force_refresh=force_refresh
        )

    def _default_llm(self, provider: str, model_id: str, api_key: str) -> LLMHandler:
        return LLMHandler.for_provider(provider, model_id, api_key, self.config.categorization)

    async def categorize(
        self,
        pull_request_id: str,
        organization_id: str,
        owner: str,
        repo: str,
        number: int,
        title: str,
        body: Optional[str],
        payload_installation_id: Optional[int] = None,
    ) -> CategorizationResult:
        """Categorize one pull request and persist the outcome.

        Every exit writes ``ai_status`` (and ``error_message``) on the PR;
        nothing is raised to the caller. At most one run per PR executes at a
        time.

        Args:
            pull_request_id: Internal PR id.
            organization_id: Internal id of the owning organization.
            owner: Repository owner login.
            repo: Repository name.
            number: PR number.
            title: PR title.
            body: PR description.
            payload_installation_id: Installation id carried by the webhook,
                used when the organization has none stored.
        """
        lease_seconds = self.config.categorization.lease_seconds
        if not await self.pull_requests.claim_categorization(pull_request_id, lease_seconds):
            logger.info(
                "Categorization already in progress for PR %s/%s#%d, skipping",
                owner, repo, number,
            )
            return CategorizationResult(status=None, message="Categorization already in progress")

        try:
            return await self._run(
                pull_request_id, organization_id, owner, repo, number, title, body,
                payload_installation_id,
            )
        except Exception as e:
            logger.error(
                "Unexpected error categorizing %s/%s#%d: %s", owner, repo, number, e,
                exc_info=True,
            )
            return await self._finish(
                pull_request_id, AiStatus.ERROR, "Unexpected error during categorization"
            )
        finally:
            try:
                await self.pull_requests.release_categorization(pull_request_id)
            except Exception as e:
                logger.error("Failed to release categorization lease for %s: %s", pull_request_id, e)

    async def categorize_pull_request(self, pull_request_id: str) -> CategorizationResult:
        """Re-run categorization for a stored pull request.

        Raises:
            LookupError: If the PR, its repository or organization is missing.
        """
        pull_request = await self.pull_requests.find_by_id(pull_request_id)
        if pull_request is None:
            raise LookupError(f"Pull request {pull_request_id} not found")

        repository = await self.organizations.find_repository_by_id(pull_request.repository_id)
        if repository is None:
            raise LookupError(f"Repository {pull_request.repository_id} not found")
        if repository.organization_id is None:
            raise LookupError(f"Repository {repository.full_name} has no organization")

        return await self.categorize(
            pull_request_id=pull_request.id,
            organization_id=repository.organization_id,
            owner=repository.owner,
            repo=repository.short_name,
            number=pull_request.number,
            title=pull_request.title,
            body=pull_request.description,
        )

    async def _run(
        self,
        pull_request_id: str,
        organization_id: str,
        owner: str,
        repo: str,
        number: int,
        title: str,
        body: Optional[str],
        payload_installation_id: Optional[int],
    ) -> CategorizationResult:
        label = f"{owner}/{repo}#{number}"

        # 1. Organization
        organization = await self.organizations.find_by_id(organization_id)
        if organization is None:
            return await self._finish(pull_request_id, AiStatus.ERROR, "Organization not found")

        # 2. Installation to authenticate as
        installation_id = organization.installation_id or payload_installation_id
        if not installation_id:
            return await self._finish(
                pull_request_id, AiStatus.ERROR, "No GitHub App installation id available"
            )

        # 3. AI settings
        ai_settings = await self.settings.get_ai_settings(organization_id)
        if not ai_settings.model_selected:
            return await self._finish(
                pull_request_id, AiStatus.SKIPPED, "AI categorization disabled (no model selected)"
            )
        provider = ai_settings.provider
        if not provider:
            return await self._finish(pull_request_id, AiStatus.SKIPPED, "No AI provider configured")
        api_key = await self.settings.get_api_key(organization_id, provider)
        if not api_key:
            return await self._finish(
                pull_request_id, AiStatus.SKIPPED, f"No API key configured for {provider}"
            )

        # 4. Model client
        try:
            llm = self.llm_factory(provider, ai_settings.selected_model_id, api_key)
        except UnsupportedProviderError as e:
            return await self._finish(pull_request_id, AiStatus.ERROR, str(e))

        # 5. Diff, with one forced token refresh on auth failure
        try:
            diff = await self._fetch_diff(installation_id, owner, repo, number)
        except DiffFetchError as e:
            return await self._finish(pull_request_id, AiStatus.ERROR, f"Failed to fetch PR diff: {e}")

        # 6.
        if not diff or not diff.strip():
            return await self._finish(pull_request_id, AiStatus.SKIPPED, "Could not fetch PR diff")

        # 7. Categories
        categories = await self.categories.list_for_organization(organization_id)
        if not categories:
            return await self._finish(
                pull_request_id, AiStatus.SKIPPED, "No categories configured"
            )
        category_names = [category.name for category in categories]

        # 8.
        await self.pull_requests.set_ai_status(pull_request_id, AiStatus.PROCESSING)

        # 9-10. Prompt, invoke, parse
        system_prompt = build_system_prompt(category_names)
        user_prompt = build_user_prompt(
            title, body, diff, self.config.categorization.max_diff_chars
        )
        logger.info(
            "Categorizing %s with %s/%s against %d categories",
            label, provider, ai_settings.selected_model_id, len(category_names),
        )
        try:
            response_text = await llm.generate(system_prompt, user_prompt)
        except Exception as e:
            logger.error("AI provider call failed for %s: %s", label, e, exc_info=True)
            return await self._finish(pull_request_id, AiStatus.ERROR, f"AI provider call failed: {e}")

        logger.debug("AI response for %s: %s", label, response_text)
        suggestion = parse_category_response(response_text)
        if suggestion is None:
            return await self._finish(
                pull_request_id, AiStatus.ERROR, "Could not parse AI category response"
            )

        # 11. Exact, then fuzzy
        matched_name = match_category(suggestion.name, category_names)
        if matched_name is None:
            return await self._finish(
                pull_request_id,
                AiStatus.ERROR,
                f"AI suggested category '{suggestion.name}' not found",
            )
        if matched_name != suggestion.name:
            logger.info("Fuzzy-matched suggested category '%s' to '%s'", suggestion.name, matched_name)
        category = categories[category_names.index(matched_name)]

        # 12.
        await self.pull_requests.update_category(pull_request_id, category.id, suggestion.confidence)
        logger.info(
            "Categorized %s as '%s' (confidence %.2f)", label, category.name, suggestion.confidence
        )
        return CategorizationResult(
            status=AiStatus.COMPLETED,
            category_id=category.id,
            category_name=category.name,
            confidence=suggestion.confidence,
        )

    async def _fetch_diff(self, installation_id: int, owner: str, repo: str, number: int) -> str:
        try:
            client = await self.github_client_factory(installation_id, False)
            return await client.get_pull_request_diff(owner, repo, number)
        except Exception as e:
            if not is_auth_error(e):
                logger.error("Failed to fetch diff for %s/%s#%d: %s", owner, repo, number, e)
                raise DiffFetchError(str(e)) from e
            logger.warning(
                "GitHub auth error fetching diff for %s/%s#%d (%s), retrying with a fresh token",
                owner, repo, number, e,
            )

        try:
            client = await self.github_client_factory(installation_id, True)
            return await client.get_pull_request_diff(owner, repo, number)
        except Exception as e:
            logger.error(
                "Failed to fetch diff for %s/%s#%d after token refresh: %s", owner, repo, number, e
            )
            raise DiffFetchError(f"{e} (after token refresh)") from e

    async def _finish(
        self, pull_request_id: str, status: AiStatus, message: Optional[str]
    ) -> CategorizationResult:
        log = logger.warning if status is AiStatus.ERROR else logger.info
        log("Categorization of PR %s ended %s: %s", pull_request_id, status.value, message)
        await self.pull_requests.set_ai_status(pull_request_id, status, message)
        return CategorizationResult(status=status, message=message)
