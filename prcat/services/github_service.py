"""GitHub API service with GitHub App installation authentication."""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
import jwt

from ..config import GitHubConfig

logger = logging.getLogger(__name__)

# Installation tokens shared by every client in this process, keyed by
# installation id: (token, expires_at)
_token_cache: dict[int, tuple[str, datetime]] = {}

# Refresh cached tokens this long before GitHub expires them
TOKEN_REFRESH_BUFFER = timedelta(minutes=5)

API_VERSION = "2022-11-28"

AUTH_ERROR_MARKERS = (
    "bad credentials",
    "token expired",
    "expired",
    "invalid token",
    "requires authentication",
)


class GitHubAPIError(Exception):
    """A GitHub REST call returned a non-success status."""

    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(f"GitHub API error ({status_code}): {message}")
        self.status_code = status_code
        self.message = message


class GitHubAuthError(GitHubAPIError):
    """Authentication failed: expired, invalid or revoked credentials."""


def is_auth_error(error: BaseException) -> bool:
    """Return True for authentication-class failures worth a token refresh."""
    if isinstance(error, GitHubAuthError):
        return True
    if isinstance(error, httpx.HTTPStatusError) and error.response.status_code == 401:
        return True
    message = str(error).lower()
    return any(marker in message for marker in AUTH_ERROR_MARKERS)


def clear_token_cache(installation_id: Optional[int] = None) -> None:
    """Drop one cached installation token, or all of them."""
    if installation_id is None:
        _token_cache.clear()
    else:
        _token_cache.pop(installation_id, None)


class GitHubService:
    """GitHub API interactions scoped to one App installation."""

    def __init__(
        self,
        app_id: str,
        private_key: str,
        installation_id: int,
        api_base: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitHub service with App credentials.

        Args:
            app_id: GitHub App ID.
            private_key: PEM-formatted private key.
            installation_id: Installation the client acts as.
            api_base: REST API root.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        self.app_id = app_id
        self.private_key = private_key
        self.installation_id = installation_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        logger.debug(
            "GitHubService initialized for app_id=%s, installation_id=%s", app_id, installation_id
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base, timeout=self.timeout, transport=self._transport
        )

    def _generate_jwt(self) -> str:
        """
        Generate JWT for GitHub App authentication.

        Returns:
            Signed JWT token.
        """
        now = int(time.time())
        payload = {
            "iat": now - 60,  # Backdated for clock drift
            "exp": now + (10 * 60),  # GitHub's maximum is 10 minutes
            "iss": self.app_id,
        }

        try:
            return jwt.encode(payload, self.private_key, algorithm="RS256")
        except Exception as e:
            logger.error("Failed to generate JWT: %s", e)
            raise

    async def _get_installation_token(self) -> str:
        """
        Get an installation access token, reusing the process-wide cache.

        Raises:
            GitHubAPIError: If the token exchange fails.
        """
        cached = _token_cache.get(self.installation_id)
        if cached:
            token, expires_at = cached
            if expires_at - datetime.now(timezone.utc) > TOKEN_REFRESH_BUFFER:
                logger.debug("Using cached token for installation %s", self.installation_id)
                return token

        logger.debug("Fetching new token for installation %s", self.installation_id)
        headers = {
            "Authorization": f"Bearer {self._generate_jwt()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

        async with self._client() as client:
            response = await client.post(
                f"/app/installations/{self.installation_id}/access_tokens", headers=headers
            )
        self._raise_for_status(response, "fetch installation token")

        data = response.json()
        token = data["token"]
        expires_at = _parse_expiry(data.get("expires_at"))
        _token_cache[self.installation_id] = (token, expires_at)

        logger.info("Fetched new token for installation %s", self.installation_id)
        return token

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return

        try:
            message = response.json().get("message") or response.text
        except ValueError:
            message = response.text

        logger.error(
            "Failed to %s (HTTP %d): %s", operation, response.status_code, message
        )
        lowered = (message or "").lower()
        if response.status_code == 401 or any(m in lowered for m in AUTH_ERROR_MARKERS):
            raise GitHubAuthError(response.status_code, message)
        raise GitHubAPIError(response.status_code, message)

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        accept: str = "application/vnd.github+json",
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        token = await self._get_installation_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": accept,
            "X-GitHub-Api-Version": API_VERSION,
        }
        async with self._client() as client:
            response = await client.request(method, path, headers=headers, json=json)
        self._raise_for_status(response, operation)
        return response

    async def get_pull_request_diff(self, owner: str, repo: str, pr_number: int) -> str:
        """
        Fetch the unified diff of a pull request.

        Args:
            owner: Repository owner login.
            repo: Repository name.
            pr_number: PR number.

        Returns:
            Diff text (may be empty).

        Raises:
            GitHubAuthError: On authentication failures.
            GitHubAPIError: On any other non-success response.
        """
        logger.debug("Fetching diff for %s/%s#%d", owner, repo, pr_number)
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{pr_number}",
            "fetch PR diff",
            accept="application/vnd.github.diff",
        )
        return response.text

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        response = await self._request("GET", f"/repos/{owner}/{repo}", "fetch repository")
        return response.json()

    async def list_repository_webhooks(self, owner: str, repo: str) -> list[dict[str, Any]]:
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/hooks", "list repository webhooks"
        )
        return response.json()

    async def create_repository_webhook(
        self,
        owner: str,
        repo: str,
        webhook_url: str,
        secret: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Register a webhook delivering pull_request and pull_request_review events.

        Returns:
            Hook data dict containing id, config, events.
        """
        config: dict[str, Any] = {"url": webhook_url, "content_type": "json"}
        if secret:
            config["secret"] = secret

        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/hooks",
            "create repository webhook",
            json={
                "name": "web",
                "active": True,
                "config": config,
                "events": ["pull_request", "pull_request_review"],
            },
        )
        hook = response.json()
        logger.info("Created webhook %s for %s/%s", hook.get("id"), owner, repo)
        return hook

    async def delete_repository_webhook(self, owner: str, repo: str, hook_id: int) -> None:
        await self._request(
            "DELETE", f"/repos/{owner}/{repo}/hooks/{hook_id}", "delete repository webhook"
        )
        logger.info("Deleted webhook %s for %s/%s", hook_id, owner, repo)


def _parse_expiry(value: Optional[str]) -> datetime:
    # Installation tokens live one hour when GitHub omits expires_at
    if value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparseable token expiry %r, assuming one hour", value)
    return datetime.now(timezone.utc) + timedelta(hours=1)


async def create_installation_client(
    config: GitHubConfig,
    installation_id: int,
    force_refresh: bool = False,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GitHubService:
    """Build a client for an installation.

    Args:
        config: GitHub App configuration.
        installation_id: Installation to authenticate as.
        force_refresh: Drop any cached token so the next call mints a new one.
        transport: Optional httpx transport.
    """
    if force_refresh:
        logger.info("Forcing token refresh for installation %s", installation_id)
        clear_token_cache(installation_id)

    return GitHubService(
        app_id=config.app_id,
        private_key=config.private_key.get_secret_value(),
        installation_id=installation_id,
        api_base=config.api_base,
        timeout=config.request_timeout,
        transport=transport,
    )
