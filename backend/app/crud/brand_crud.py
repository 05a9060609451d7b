# backend/app/crud/brand_crud.py
"""
Operaciones CRUD para el modelo Brand.
"""

from typing import Any, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.brand_model import Brand


async def get_brand(db: AsyncSession, brand_id: int) -> Optional[Brand]:
    result = await db.execute(select(Brand).filter(Brand.brand_id == brand_id))
    return result.scalars().first()


async def name_exists(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    """Comprueba duplicados de nombre sin distinguir mayúsculas."""
    query = select(Brand.brand_id).filter(func.lower(Brand.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Brand.brand_id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def create_brand(db: AsyncSession, **fields: Any) -> Brand:
    db_brand = Brand(**fields)
    db.add(db_brand)
    await db.flush()
    return db_brand


async def delete_brand(db: AsyncSession, db_brand: Brand) -> None:
    await db.delete(db_brand)
    await db.flush()
