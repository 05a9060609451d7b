# backend/app/crud/inventory_crud.py
"""
Operaciones CRUD para el modelo Inventory.

Cada producto nace con una fila de inventario (variant_id NULL); las variantes
pueden tener la suya propia.
"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from app.db.models.inventory_model import Inventory

async def get_inventory_by_product(db: AsyncSession, product_id: int) -> List[Inventory]:
    """
    Obtiene las filas de inventario de un producto (producto base y variantes).
    """
    query = select(Inventory).filter(Inventory.product_id == product_id).order_by(Inventory.inventory_id)
    result = await db.execute(query)
    return list(result.scalars().all())

async def get_total_stock(db: AsyncSession, product_id: int) -> int:
    """
    Calcula el stock total de un producto sumando todas sus filas de inventario.
    """
    query = select(func.sum(Inventory.stock)).filter(Inventory.product_id == product_id)
    total_stock = await db.scalar(query)

    return total_stock or 0

async def create_inventory(
    db: AsyncSession,
    product_id: int,
    stock: int = 0,
    min_stock: int = 0,
    max_stock: Optional[int] = None,
    variant_id: Optional[int] = None,
) -> Inventory:
    """
    Crea la fila inicial de inventario. PRECONDICIÓN: el producto ya tiene ID (flush previo).
    """
    db_inventory = Inventory(
        product_id=product_id,
        variant_id=variant_id,
        stock=stock,
        min_stock=min_stock,
        max_stock=max_stock,
        reserved_stock=0,
    )
    db.add(db_inventory)
    await db.flush()
    return db_inventory

async def reset_stock(db: AsyncSession, product_id: int) -> int:
    """
    Deja a cero el stock de todas las filas de un producto. Devuelve las unidades retiradas.
    """
    entries = await get_inventory_by_product(db, product_id)
    removed = 0
    for entry in entries:
        removed += entry.stock
        entry.stock = 0
        entry.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return removed
