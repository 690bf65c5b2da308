"""
Base Data Access Object (DAO) class.

WHY: The DAO pattern separates database operations from business logic,
making the codebase more testable and maintainable. DAOs only flush; the
request-scoped session in db/session.py owns commit and rollback.
"""

import logging
from contextlib import asynccontextmanager
from typing import Generic, TypeVar, Type, Optional, List, Any, Tuple, AsyncIterator
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from helpdesk.core.exceptions import ConflictError, ValidationError
from helpdesk.models.base import Base

logger = logging.getLogger(__name__)

# Type variable for model class
ModelType = TypeVar("ModelType", bound=Base)


def page_offset(page: int, page_size: int) -> int:
    """
    Convert a 1-based page number to a row offset.

    Raises:
        ValidationError: If page or page_size is below 1
    """
    if page < 1:
        raise ValidationError(message="page must be 1 or greater", page=page)
    if page_size < 1:
        raise ValidationError(message="pageSize must be 1 or greater", page_size=page_size)
    return (page - 1) * page_size


class BaseDAO(Generic[ModelType]):
    """
    Base Data Access Object providing CRUD operations for all models.

    Type Parameters:
        ModelType: The SQLAlchemy model class this DAO manages
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize DAO with model class and database session.

        Args:
            model: The SQLAlchemy model class
            session: Async database session
        """
        self.model = model
        self.session = session

    async def create(self, **kwargs: Any) -> ModelType:
        """
        Create a new record.

        Args:
            **kwargs: Field values for the new record

        Returns:
            The created model instance with database-generated fields populated

        Raises:
            IntegrityError: If unique constraints are violated
        """
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """
        Retrieve a single record by primary key.

        Returns:
            The model instance if found, None otherwise
        """
        result = await self.session.execute(select(self.model).where(self.model.id == id))
        return result.scalar_one_or_none()

    async def update(self, instance: ModelType, **kwargs: Any) -> ModelType:
        """
        Apply field changes to a loaded instance and flush them.

        WHY: Updating through the instance (not a bulk UPDATE) keeps ORM
        features such as version counters and onupdate timestamps working.

        Args:
            instance: Persistent instance to modify
            **kwargs: Fields to update

        Returns:
            The refreshed instance
        """
        for field, value in kwargs.items():
            setattr(instance, field, value)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    @asynccontextmanager
    async def unique_guard(self, message: str, **context: Any) -> AsyncIterator[None]:
        """
        Run writes in a SAVEPOINT and report a unique-key violation as a conflict.

        The existence checks before an insert or rename can go stale when
        two requests race; the database constraint is the final word.

        Example:
            >>> async with dao.unique_guard("Email already registered", email=email):
            ...     await dao.create(email=email, ...)

        Raises:
            ConflictError: If a statement inside the block violates a
                unique constraint
        """
        try:
            async with self.session.begin_nested():
                yield
        except IntegrityError as e:
            logger.warning(f"Unique constraint on {self.model.__tablename__} rejected a write: {e.orig}")
            raise ConflictError(message=message, **context)

    async def paginate(
        self,
        query: Select,
        page: int,
        page_size: int,
    ) -> Tuple[List[Any], int]:
        """
        Run a select with 1-based pagination.

        The caller supplies ordering; the count is taken over the unordered,
        unpaginated query.

        Returns:
            Tuple of (items on the page, total matching rows)
        """
        offset = page_offset(page, page_size)

        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(query.offset(offset).limit(page_size))
        return list(result.scalars().all()), total
