"""Service for organizations, repositories and users mirrored from GitHub."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..orm.organization import Organization
from ..orm.repository import Repository
from ..orm.user import User
from .database import DatabaseService

logger = logging.getLogger(__name__)


class OrganizationService:
    """Lookups and find-or-create helpers for GitHub identities."""

    def __init__(self, db_service: DatabaseService):
        self.db = db_service

    async def find_by_id(self, organization_id: str) -> Optional[Organization]:
        async with self.db.session() as session:
            return await session.get(Organization, organization_id)

    async def find_by_github_id(self, github_id: int) -> Optional[Organization]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Organization).where(Organization.github_id == github_id)
            )
            return result.scalar_one_or_none()

    async def find_by_name(self, name: str) -> Optional[Organization]:
        """Find an organization by its GitHub login, ignoring case."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Organization).where(func.lower(Organization.name) == name.lower())
            )
            return result.scalars().first()

    async def find_or_create(
        self,
        github_id: int,
        name: str,
        avatar_url: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> Organization:
        """Find an organization by GitHub id, creating it if missing.

        A concurrent create for the same GitHub id resolves to the row that
        won the race.
        """
        existing = await self.find_by_github_id(github_id)
        if existing:
            return existing

        try:
            async with self.db.session() as session:
                organization = Organization(
                    github_id=github_id,
                    name=name,
                    avatar_url=avatar_url,
                    installation_id=installation_id,
                )
                session.add(organization)
            logger.info("Created organization %s (github_id=%d)", name, github_id)
            return organization
        except IntegrityError:
            logger.info("Organization github_id=%d created concurrently, re-reading", github_id)
            existing = await self.find_by_github_id(github_id)
            if existing is None:
                raise
            return existing

    async def set_installation_id(
        self, organization_id: str, installation_id: Optional[int]
    ) -> Optional[Organization]:
        """Set or clear the GitHub App installation id."""
        async with self.db.session() as session:
            organization = await session.get(Organization, organization_id)
            if organization is None:
                return None
            organization.installation_id = installation_id
            return organization

    async def find_repository_by_full_name(self, full_name: str) -> Optional[Repository]:
        async with self.db.session() as session:
            result = await session.execute(
                select(Repository).where(Repository.full_name == full_name)
            )
            return result.scalar_one_or_none()

    async def find_repository_by_id(self, repository_id: str) -> Optional[Repository]:
        async with self.db.session() as session:
            return await session.get(Repository, repository_id)

    async def find_or_create_repository(
        self,
        github_id: int,
        name: str,
        full_name: str,
        organization_id: Optional[str],
        private: bool = False,
        is_tracked: bool = False,
    ) -> Repository:
        """Find a repository by GitHub id, creating it if missing.

        An existing repository is linked to ``organization_id`` and, when
        ``is_tracked`` is set, marked tracked.
        """
        async with self.db.session() as session:
            result = await session.execute(
                select(Repository).where(Repository.github_id == github_id)
            )
            repository = result.scalar_one_or_none()
            if repository is not None:
                repository.full_name = full_name
                repository.name = name
                if organization_id is not None:
                    repository.organization_id = organization_id
                if is_tracked:
                    repository.is_tracked = True
                return repository

        try:
            async with self.db.session() as session:
                repository = Repository(
                    github_id=github_id,
                    name=name,
                    full_name=full_name,
                    organization_id=organization_id,
                    private=private,
                    is_tracked=is_tracked,
                )
                session.add(repository)
            logger.info("Created repository %s (tracked=%s)", full_name, is_tracked)
            return repository
        except IntegrityError:
            logger.info("Repository %s created concurrently, re-reading", full_name)
            repository = await self.find_repository_by_full_name(full_name)
            if repository is None:
                raise
            return repository

    async def set_repository_tracking(
        self, repository_id: str, is_tracked: bool
    ) -> Optional[Repository]:
        async with self.db.session() as session:
            repository = await session.get(Repository, repository_id)
            if repository is None:
                return None
            repository.is_tracked = is_tracked
            return repository

    async def find_or_create_user(
        self,
        github_id: int,
        login: str,
        avatar_url: Optional[str] = None,
    ) -> User:
        """Find a user by GitHub id, creating it if missing (race-safe)."""
        async with self.db.session() as session:
            result = await session.execute(select(User).where(User.github_id == github_id))
            user = result.scalar_one_or_none()
            if user is not None:
                if user.login != login:
                    user.login = login
                return user

        try:
            async with self.db.session() as session:
                user = User(github_id=github_id, login=login, avatar_url=avatar_url)
                session.add(user)
            logger.debug("Created user %s (github_id=%d)", login, github_id)
            return user
        except IntegrityError:
            async with self.db.session() as session:
                result = await session.execute(select(User).where(User.github_id == github_id))
                return result.scalar_one()
