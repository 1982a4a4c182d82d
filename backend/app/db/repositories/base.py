"""
SolBridge - Base Repository
Abstract repository with common CRUD operations
"""
from contextlib import asynccontextmanager
from typing import TypeVar, Generic, Type, Optional, AsyncIterator, Callable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from db.base import Base

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=Base)
RepositoryType = TypeVar("RepositoryType")


class BaseRepository(Generic[ModelType]):
    """
    Base repository implementing common CRUD operations.
    Inherit from this class for specific model repositories.

    Usage:
        class PositionRepository(BaseRepository[Position]):
            def __init__(self, session: AsyncSession):
                super().__init__(Position, session)
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> Optional[ModelType]:
        """Get single record by ID, always reflecting the stored row"""
        result = await self.session.execute(
            select(self.model)
            .where(self.model.id == id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs) -> ModelType:
        """Create new record"""
        instance = self.model(**kwargs)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance


class RepositoryScope(Generic[RepositoryType]):
    """
    Unit of work for code running outside a request.

    Each `async with scope() as repo:` block gets its own session and is
    committed on exit (rolled back on error), so every block is atomic and
    concurrent workers never share a session.
    """

    def __init__(
        self,
        repository_cls: Callable[[AsyncSession], RepositoryType],
        session_factory: Callable[[], AsyncSession]
    ):
        self.repository_cls = repository_cls
        self.session_factory = session_factory

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator[RepositoryType]:
        async with self.session_factory() as session:
            try:
                yield self.repository_cls(session)
                await session.commit()
            except BaseException:
                await session.rollback()
                raise
