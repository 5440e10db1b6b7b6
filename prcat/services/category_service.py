"""Service for organization PR categories."""

from typing import Optional

from sqlalchemy import select

from ..orm.category import Category
from .database import DatabaseService


class CategoryService:
    """Read access to categories; creation is used for seeding."""

    def __init__(self, db_service: DatabaseService):
        self.db = db_service

    async def list_for_organization(self, organization_id: str) -> list[Category]:
        """Return the organization's categories ordered by name."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Category)
                .where(Category.organization_id == organization_id)
                .order_by(Category.name)
            )
            return list(result.scalars().all())

    async def find_by_name(self, organization_id: str, name: str) -> Optional[Category]:
        """Exact (case-sensitive) name lookup."""
        async with self.db.session() as session:
            result = await session.execute(
                select(Category).where(
                    Category.organization_id == organization_id,
                    Category.name == name,
                )
            )
            return result.scalar_one_or_none()

    async def create(
        self,
        organization_id: str,
        name: str,
        description: Optional[str] = None,
        color: Optional[str] = None,
    ) -> Category:
        async with self.db.session() as session:
            category = Category(
                organization_id=organization_id,
                name=name,
                description=description,
                color=color,
            )
            session.add(category)
            return category
