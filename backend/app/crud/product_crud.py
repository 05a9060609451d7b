# backend/app/crud/product_crud.py

"""
Operaciones CRUD para el modelo Product.

Acceso a datos de productos y variantes. Las imágenes tienen su propio módulo
(product_image_crud) porque su invariante de imagen principal la mantiene un
servicio dedicado.

Funcionalidades principales:
- Consultas por ID, SKU y slug
- Filtrado por categoría (opcionalmente con subcategorías), marca, precio y nombre
- Paginación con total para la interfaz de administración
- Escrituras sin commit: la transacción la controla la capa de servicio
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.product_model import Product, ProductVariant

import logging

logger = logging.getLogger(__name__)

# ========================================
# OPERACIONES DE LECTURA (READ)
# ========================================

async def get_product(db: AsyncSession, product_id: int) -> Optional[Product]:
    result = await db.execute(select(Product).filter(Product.product_id == product_id))
    return result.scalars().first()


async def get_product_by_sku(db: AsyncSession, sku: str) -> Optional[Product]:
    """Obtiene un producto por su SKU de forma asíncrona."""
    result = await db.execute(select(Product).filter(Product.sku == sku))
    return result.scalars().first()


async def product_exists(db: AsyncSession, product_id: int) -> bool:
    result = await db.execute(select(Product.product_id).filter(Product.product_id == product_id))
    return result.first() is not None


async def sku_exists(db: AsyncSession, sku: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Product.product_id).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.product_id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def slug_exists(db: AsyncSession, slug: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Product.product_id).filter(Product.slug == slug)
    if exclude_id is not None:
        query = query.filter(Product.product_id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def get_products(
    db: AsyncSession,
    skip: int = 0,
    limit: int = 20,
    category_ids: Optional[Sequence[int]] = None,
    brand_id: Optional[int] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    name_like: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> Tuple[List[Product], int]:
    """
    Obtiene una página de productos con filtros combinables y el total sin paginar.

    category_ids admite el conjunto ya expandido con subcategorías.
    """
    query = select(Product)

    if category_ids is not None:
        query = query.filter(Product.category_id.in_(list(category_ids)))
    if brand_id is not None:
        query = query.filter(Product.brand_id == brand_id)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if name_like:
        query = query.filter(func.lower(Product.name).contains(name_like.strip().lower()))
    if is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.order_by(Product.name.asc(), Product.product_id.asc()).offset(skip).limit(limit))
    return list(result.scalars().all()), int(total or 0)


async def count_products_by_brand(db: AsyncSession, brand_id: int, active_only: bool = True) -> int:
    query = select(func.count(Product.product_id)).filter(Product.brand_id == brand_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return int(await db.scalar(query) or 0)


async def get_variant(db: AsyncSession, variant_id: int) -> Optional[ProductVariant]:
    result = await db.execute(select(ProductVariant).filter(ProductVariant.variant_id == variant_id))
    return result.scalars().first()


# ========================================
# OPERACIONES DE ESCRITURA (CREATE, UPDATE)
# ========================================

async def create_product(db: AsyncSession, **fields: Any) -> Product:
    """Inserta un producto y hace flush para disponer de su ID."""
    db_product = Product(**fields)
    db.add(db_product)
    await db.flush()
    return db_product


async def update_product(db: AsyncSession, db_product: Product, fields: Dict[str, Any]) -> Product:
    """Aplica los campos indicados a un producto existente."""
    for key, value in fields.items():
        setattr(db_product, key, value)
    await db.flush()
    return db_product


async def create_variant(db: AsyncSession, product_id: int, sku: str, name: str) -> ProductVariant:
    db_variant = ProductVariant(product_id=product_id, sku=sku, name=name, is_active=True)
    db.add(db_variant)
    await db.flush()
    return db_variant

