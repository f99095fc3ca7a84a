from typing import Generic, TypeVar, Type, Optional, List
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from isodoc.models.base import Base, Counter

ModelType = TypeVar("ModelType", bound=Base)

async def next_sequence(session: AsyncSession, name: str) -> int:
    """Atomically increment and return the counter for an entity name."""
    result = await session.execute(
        update(Counter)
        .where(Counter.name == name)
        .values(seq=Counter.seq + 1)
        .returning(Counter.seq)
        .execution_options(synchronize_session=False)
    )
    value = result.scalar_one_or_none()
    if value is not None:
        return value
    session.add(Counter(name=name, seq=1))
    await session.flush()
    return 1

class BaseRepository(Generic[ModelType]):
    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get(self, id: int) -> Optional[ModelType]:
        result = await self.session.execute(
            select(self.model).filter(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def list(self) -> List[ModelType]:
        result = await self.session.execute(select(self.model).order_by(self.model.id))
        return list(result.scalars().all())

    async def create(self, obj_in: dict, commit: bool = True) -> ModelType:
        db_obj = self.model(**obj_in)
        if db_obj.id is None:
            db_obj.id = await next_sequence(self.session, self.model.__tablename__)
        self.session.add(db_obj)
        if commit:
            await self.session.commit()
        else:
            await self.session.flush()
        return db_obj

    async def update(self, db_obj: ModelType, obj_in: dict) -> ModelType:
        for field, value in obj_in.items():
            setattr(db_obj, field, value)
        await self.session.commit()
        return db_obj

    async def delete(self, db_obj: ModelType) -> None:
        await self.session.delete(db_obj)
        await self.session.commit()
