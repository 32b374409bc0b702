from contextlib import asynccontextmanager
from typing import AsyncGenerator, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType")
CreateModelType = TypeVar("CreateModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Maps one table to its pydantic domain model.

    Without ``db_session`` every call runs through get_session(), so inside a
    transaction() the calls share its connection and any row locks taken with
    ``for_update=True`` hold until that transaction commits. Passing
    ``db_session`` pins the repository to a session the caller owns.
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
        db_session: Optional[AsyncSession] = None,
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class
        self.db_session = db_session

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self.db_session is not None:
            yield self.db_session
            return
        async with get_session() as session:
            yield session

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        return self.domain_class.model_validate(entity)

    def _entities_to_domain(self, entities: List[EntityType]) -> List[DomainModelType]:
        return [self._entity_to_domain(entity) for entity in entities]

    @trace_span
    async def get(self, id: int) -> Optional[DomainModelType]:
        async with self._get_session() as session:
            entity = await session.get(self.entity_class, id, populate_existing=True)
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def create(self, create_model: CreateModelType) -> DomainModelType:
        """Insert a row from a create model; unset optional fields keep their defaults."""
        entity = self.entity_class(**create_model.model_dump(exclude_none=True))
        async with self._get_session() as session:
            session.add(entity)
            await session.flush()
            await session.refresh(entity)
            return self._entity_to_domain(entity)

    @trace_span
    async def update(
        self, id: int, update_model: UpdateModelType
    ) -> Optional[DomainModelType]:
        """Write the fields set on ``update_model``.

        Explicitly set ``None`` values are written, which is how a grace
        period or a scheduled downgrade gets cleared.
        """
        values = update_model.model_dump(exclude_unset=True)
        if not values:
            return await self.get(id)

        async with self._get_session() as session:
            await session.execute(
                update(self.entity_class)
                .where(self.entity_class.id == id)
                .values(values)
                .execution_options(synchronize_session=False)
            )
            await session.flush()
            entity = await session.get(self.entity_class, id, populate_existing=True)
            return self._entity_to_domain(entity) if entity else None
