# backend/app/crud/product_image_crud.py

"""
Operaciones CRUD para el modelo ProductImage.

Todas las consultas de grupo se expresan sobre el par (product_id, variant_id),
donde variant_id NULL es un grupo propio. El orden canónico dentro de un grupo
es (display_order, image_id) ascendente.

Como el resto de la capa CRUD, nada de lo que hay aquí confirma transacciones.
"""

from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.product_model import ProductImage

IMAGE_ORDER = (ProductImage.display_order.asc(), ProductImage.image_id.asc())


def _group_filter(product_id: int, variant_id: Optional[int]):
    if variant_id is None:
        return and_(ProductImage.product_id == product_id, ProductImage.variant_id.is_(None))
    return and_(ProductImage.product_id == product_id, ProductImage.variant_id == variant_id)

# ========================================
# OPERACIONES DE LECTURA (READ)
# ========================================

async def get_image(db: AsyncSession, image_id: int) -> Optional[ProductImage]:
    result = await db.execute(select(ProductImage).filter(ProductImage.image_id == image_id))
    return result.scalars().first()


async def get_images_by_ids(db: AsyncSession, image_ids: Iterable[int]) -> Dict[int, ProductImage]:
    ids = list(set(image_ids))
    if not ids:
        return {}
    result = await db.execute(select(ProductImage).filter(ProductImage.image_id.in_(ids)))
    return {image.image_id: image for image in result.scalars().all()}


async def get_images_by_product(
    db: AsyncSession,
    product_id: int,
    active_only: bool = False,
    for_update: bool = False,
) -> List[ProductImage]:
    """
    Imágenes de un producto (todas sus variantes) en orden canónico.

    for_update bloquea las filas mientras dure la transacción (PostgreSQL);
    se usa antes de reparar el invariante de imagen principal.
    """
    query = select(ProductImage).filter(ProductImage.product_id == product_id)
    if active_only:
        query = query.filter(ProductImage.is_active.is_(True))
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.order_by(*IMAGE_ORDER))
    return list(result.scalars().all())


async def get_images_by_variant(db: AsyncSession, variant_id: int, active_only: bool = False) -> List[ProductImage]:
    query = select(ProductImage).filter(ProductImage.variant_id == variant_id)
    if active_only:
        query = query.filter(ProductImage.is_active.is_(True))
    result = await db.execute(query.order_by(*IMAGE_ORDER))
    return list(result.scalars().all())


async def get_group_images(
    db: AsyncSession,
    product_id: int,
    variant_id: Optional[int],
    for_update: bool = False,
) -> List[ProductImage]:
    query = select(ProductImage).filter(_group_filter(product_id, variant_id))
    if for_update:
        query = query.with_for_update()
    result = await db.execute(query.order_by(*IMAGE_ORDER))
    return list(result.scalars().all())


async def url_exists(db: AsyncSession, url: str, exclude_id: Optional[int] = None) -> bool:
    """La URL es única en toda la tabla, sin importar producto ni estado."""
    query = select(ProductImage.image_id).filter(ProductImage.url == url)
    if exclude_id is not None:
        query = query.filter(ProductImage.image_id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def get_existing_urls(db: AsyncSession, urls: Iterable[str]) -> Set[str]:
    """Subconjunto de las URLs indicadas que ya están almacenadas."""
    candidates = list(set(urls))
    if not candidates:
        return set()
    result = await db.execute(select(ProductImage.url).filter(ProductImage.url.in_(candidates)))
    return {row[0] for row in result.all()}


async def count_images(db: AsyncSession, product_id: int, active_only: bool = False) -> int:
    query = select(func.count(ProductImage.image_id)).filter(ProductImage.product_id == product_id)
    if active_only:
        query = query.filter(ProductImage.is_active.is_(True))
    return int(await db.scalar(query) or 0)


async def get_max_display_order(db: AsyncSession, product_id: int) -> int:
    query = select(func.max(ProductImage.display_order)).filter(ProductImage.product_id == product_id)
    return int(await db.scalar(query) or 0)


async def get_flagged_principal(
    db: AsyncSession, product_id: int, variant_id: Optional[int] = None
) -> Optional[ProductImage]:
    """Imagen activa marcada como principal en el grupo indicado."""
    result = await db.execute(
        select(ProductImage)
        .filter(_group_filter(product_id, variant_id))
        .filter(ProductImage.is_principal.is_(True), ProductImage.is_active.is_(True))
        .order_by(*IMAGE_ORDER)
        .limit(1)
    )
    return result.scalars().first()


async def get_first_active(
    db: AsyncSession,
    product_id: int,
    variant_id: Optional[int] = None,
    exclude_id: Optional[int] = None,
    whole_product: bool = False,
) -> Optional[ProductImage]:
    """
    Primera imagen activa por (display_order, image_id).

    Con whole_product=True ignora la variante y busca en todo el producto.
    """
    if whole_product:
        query = select(ProductImage).filter(ProductImage.product_id == product_id)
    else:
        query = select(ProductImage).filter(_group_filter(product_id, variant_id))
    query = query.filter(ProductImage.is_active.is_(True))
    if exclude_id is not None:
        query = query.filter(ProductImage.image_id != exclude_id)
    result = await db.execute(query.order_by(*IMAGE_ORDER).limit(1))
    return result.scalars().first()


async def get_status_counts(db: AsyncSession, product_id: int) -> Dict[str, int]:
    result = await db.execute(
        select(
            func.count(ProductImage.image_id),
            func.count(ProductImage.image_id).filter(ProductImage.is_active.is_(True)),
            func.count(ProductImage.image_id).filter(ProductImage.is_principal.is_(True)),
            func.count(ProductImage.variant_id),
        ).filter(ProductImage.product_id == product_id)
    )
    total, active, principal, with_variant = result.one()
    return {
        "total": int(total or 0),
        "active": int(active or 0),
        "principal": int(principal or 0),
        "with_variant": int(with_variant or 0),
    }


# ========================================
# OPERACIONES DE ESCRITURA (CREATE, UPDATE, DELETE)
# ========================================

async def clear_principal(
    db: AsyncSession,
    product_id: int,
    variant_id: Optional[int],
    exclude_id: Optional[int] = None,
) -> int:
    """Quita la marca de principal a todas las imágenes del grupo (salvo exclude_id)."""
    statement = (
        update(ProductImage)
        .where(_group_filter(product_id, variant_id))
        .where(ProductImage.is_principal.is_(True))
    )
    if exclude_id is not None:
        statement = statement.where(ProductImage.image_id != exclude_id)
    result = await db.execute(
        statement.values(is_principal=False).execution_options(synchronize_session="fetch")
    )
    await db.flush()
    return result.rowcount or 0


async def create_image(db: AsyncSession, **fields: Any) -> ProductImage:
    db_image = ProductImage(**fields)
    db.add(db_image)
    await db.flush()
    return db_image


async def update_image(db: AsyncSession, db_image: ProductImage, fields: Dict[str, Any]) -> ProductImage:
    for key, value in fields.items():
        setattr(db_image, key, value)
    await db.flush()
    return db_image


async def delete_image(db: AsyncSession, db_image: ProductImage) -> None:
    await db.delete(db_image)
    await db.flush()


async def deactivate_by_product(db: AsyncSession, product_id: int) -> int:
    """Desactiva todas las imágenes de un producto y les quita la marca de principal."""
    result = await db.execute(
        update(ProductImage)
        .where(ProductImage.product_id == product_id)
        .values(is_active=False, is_principal=False)
        .execution_options(synchronize_session="fetch")
    )
    await db.flush()
    return result.rowcount or 0


async def delete_by_product(db: AsyncSession, product_id: int) -> int:
    result = await db.execute(
        delete(ProductImage)
        .where(ProductImage.product_id == product_id)
        .execution_options(synchronize_session="fetch")
    )
    await db.flush()
    return result.rowcount or 0
