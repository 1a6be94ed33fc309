from typing import Any, Generic, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.models.base import Base

SQLModelType = TypeVar("SQLModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class CRUDBase(Generic[SQLModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, sql_model: Type[SQLModelType]):
        """
        CRUD object with default methods to Create, Read, Update (CRUD).
        **Parameters**
        * `sql_model`: A SQLAlchemy model class
        """
        self.sql_model = sql_model

    async def exists(self, db: AsyncSession, *, id: UUID) -> bool:
        """Check if an object exists."""
        stmt = select(self.sql_model.id).where(self.sql_model.id == id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get(self, db: AsyncSession, *, id: UUID) -> Optional[SQLModelType]:
        """Get a single object by ID."""
        stmt = select(self.sql_model).where(self.sql_model.id == id)
        result = await db.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def get_multi(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> list[SQLModelType]:
        """Get multiple objects.

        Args:
            db: Database session
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            list[SQLModelType]: List of model objects
        """
        stmt = select(self.sql_model).order_by(self.sql_model.created_at).offset(skip).limit(limit)
        result = await db.execute(stmt)
        return list(result.unique().scalars().all())

    async def create(self, db: AsyncSession, *, obj_in: CreateSchemaType) -> SQLModelType:
        """Create a new object."""
        obj_in_data = self._to_columns(obj_in.model_dump())
        db_obj = self.sql_model(**obj_in_data)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: SQLModelType, obj_in: UpdateSchemaType
    ) -> SQLModelType:
        """Update an object with the fields the caller sent."""
        update_data = self._to_columns(obj_in.model_dump(exclude_unset=True))
        for field in update_data:
            setattr(db_obj, field, update_data[field])
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    def _to_columns(self, data: dict[str, Any]) -> dict[str, Any]:
        """Hook for subclasses to map schema data onto column values."""
        return data
