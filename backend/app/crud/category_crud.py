# backend/app/crud/category_crud.py

"""
Operaciones CRUD para el modelo Category.

Este módulo implementa el acceso a datos del árbol de categorías y sirve de
capa de persistencia para el servicio de jerarquía:
- Lecturas puntuales por ID y slug
- Hijos directos de un nodo y conjunto completo de descendientes (CTE recursiva)
- Comprobaciones de duplicados (nombre, slug)
- Conteos de productos por categoría
- Escrituras que nunca confirman: la transacción la gestiona el servicio

Ninguna función hace commit; todas hacen flush cuando modifican datos para que
lecturas posteriores dentro de la misma unidad de trabajo vean el cambio.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.category_model import Category
from app.db.models.product_model import Product

# Orden estable entre hermanos: display_order ascendente, desempate por nombre
SIBLING_ORDER = (Category.display_order.asc(), Category.name.asc())

# ========================================
# OPERACIONES DE LECTURA (READ)
# ========================================

async def get_category(db: AsyncSession, category_id: int) -> Optional[Category]:
    """
    Obtiene una categoría por su ID.

    Consulta simple por clave primaria, la operación más eficiente en la base de datos.
    """
    result = await db.execute(select(Category).filter(Category.category_id == category_id))
    return result.scalars().first()


async def get_category_by_slug(db: AsyncSession, slug: str) -> Optional[Category]:
    result = await db.execute(select(Category).filter(Category.slug == slug))
    return result.scalars().first()


async def get_categories_by_ids(db: AsyncSession, category_ids: Iterable[int]) -> Dict[int, Category]:
    """Carga varias categorías de una vez, indexadas por ID."""
    ids = list(set(category_ids))
    if not ids:
        return {}
    result = await db.execute(select(Category).filter(Category.category_id.in_(ids)))
    return {category.category_id: category for category in result.scalars().all()}


async def get_categories(
    db: AsyncSession,
    *,
    name: Optional[str] = None,
    parent_id: Optional[int] = None,
    roots_only: bool = False,
    is_active: Optional[bool] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[Category], int]:
    """
    Obtiene una página de categorías filtradas y el total sin paginar.

    Args:
        db: Sesión de SQLAlchemy
        name: Fragmento del nombre (búsqueda sin distinguir mayúsculas)
        parent_id: Solo hijos directos de esta categoría
        roots_only: Solo categorías sin padre
        is_active: Filtrar por estado
        skip: Número de registros a omitir (paginación)
        limit: Número máximo de registros a devolver

    Returns:
        Tupla (categorías de la página, total de registros que cumplen el filtro)
    """
    query = select(Category)
    if name:
        query = query.filter(func.lower(Category.name).contains(name.strip().lower()))
    if roots_only:
        query = query.filter(Category.parent_id.is_(None))
    elif parent_id is not None:
        query = query.filter(Category.parent_id == parent_id)
    if is_active is not None:
        query = query.filter(Category.is_active.is_(is_active))

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(query.order_by(*SIBLING_ORDER).offset(skip).limit(limit))
    return list(result.scalars().all()), int(total or 0)


async def get_all_categories(db: AsyncSession, active_only: bool = False) -> List[Category]:
    """
    Carga todas las categorías en una sola consulta, ordenadas como hermanos.

    Base de la reconstrucción del árbol en memoria: evita una consulta por nodo.
    """
    query = select(Category)
    if active_only:
        query = query.filter(Category.is_active.is_(True))
    result = await db.execute(query.order_by(*SIBLING_ORDER))
    return list(result.scalars().all())


async def get_root_categories(db: AsyncSession, active_only: bool = True) -> List[Category]:
    """
    Obtiene las categorías principales (aquellas sin un padre) de forma asíncrona.
    """
    query = select(Category).filter(Category.parent_id.is_(None))
    if active_only:
        query = query.filter(Category.is_active.is_(True))
    result = await db.execute(query.order_by(*SIBLING_ORDER))
    return list(result.scalars().all())


async def get_subcategories(db: AsyncSession, parent_id: int, active_only: bool = True) -> List[Category]:
    """
    Obtiene las subcategorías directas de una categoría padre.
    """
    query = select(Category).filter(Category.parent_id == parent_id)
    if active_only:
        query = query.filter(Category.is_active.is_(True))
    result = await db.execute(query.order_by(*SIBLING_ORDER))
    return list(result.scalars().all())


async def get_category_and_all_children_ids(db: AsyncSession, category_id: int) -> List[int]:
    """
    Obtiene el ID de una categoría y los IDs de todas sus subcategorías descendientes.
    Utiliza una consulta recursiva (CTE) para recorrer la jerarquía.

    Se usa UNION (no UNION ALL) para que la recursión termine aunque la tabla
    contenga un ciclo corrupto.
    """
    category_cte = select(Category.category_id).filter(Category.category_id == category_id).cte(name='category_cte', recursive=True)

    recursive_part = select(Category.category_id).join(category_cte, Category.parent_id == category_cte.c.category_id)

    full_cte = category_cte.union(recursive_part)

    result = await db.execute(select(full_cte.c.category_id))
    return [row[0] for row in result.all()]


async def get_descendant_ids(db: AsyncSession, category_id: int) -> Set[int]:
    """Conjunto de descendientes (hijos, nietos, ...) sin incluir la propia categoría."""
    ids = set(await get_category_and_all_children_ids(db, category_id))
    ids.discard(category_id)
    return ids


async def get_parent_id(db: AsyncSession, category_id: int) -> Tuple[bool, Optional[int]]:
    """Devuelve (existe, parent_id) leyendo solo la columna necesaria."""
    result = await db.execute(
        select(Category.parent_id).filter(Category.category_id == category_id)
    )
    row = result.first()
    if row is None:
        return False, None
    return True, row[0]


async def name_exists(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    """
    Indica si ya existe una categoría activa con ese nombre (sin distinguir mayúsculas).

    La unicidad del nombre es global, no por padre.
    """
    query = select(Category.category_id).filter(
        func.lower(Category.name) == name.strip().lower(),
        Category.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(Category.category_id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def slug_exists(db: AsyncSession, slug: str, exclude_id: Optional[int] = None) -> bool:
    """Indica si el slug ya está ocupado por cualquier categoría, activa o no."""
    query = select(Category.category_id).filter(Category.slug == slug)
    if exclude_id is not None:
        query = query.filter(Category.category_id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


async def has_active_children(db: AsyncSession, category_id: int) -> bool:
    result = await db.execute(
        select(Category.category_id)
        .filter(Category.parent_id == category_id, Category.is_active.is_(True))
        .limit(1)
    )
    return result.first() is not None


async def count_products(db: AsyncSession, category_ids: Sequence[int], active_only: bool = True) -> int:
    """Cuenta los productos asignados a cualquiera de las categorías indicadas."""
    if not category_ids:
        return 0
    query = select(func.count(Product.product_id)).filter(Product.category_id.in_(list(category_ids)))
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    return int(await db.scalar(query) or 0)


async def get_active_product_counts(db: AsyncSession) -> Dict[int, int]:
    """Número de productos activos por categoría, en una sola consulta agrupada."""
    result = await db.execute(
        select(Product.category_id, func.count(Product.product_id))
        .filter(Product.is_active.is_(True))
        .group_by(Product.category_id)
    )
    return {category_id: count for category_id, count in result.all()}


# ========================================
# OPERACIONES DE ESCRITURA (CREATE / UPDATE / DELETE)
# ========================================

async def create_category(db: AsyncSession, **fields: Any) -> Category:
    """
    Inserta una nueva categoría y hace flush para obtener su ID.

    Los campos ya vienen validados y normalizados por el servicio.
    """
    db_category = Category(**fields)
    db.add(db_category)
    await db.flush()
    return db_category


async def update_category(db: AsyncSession, db_category: Category, fields: Dict[str, Any]) -> Category:
    for field, value in fields.items():
        setattr(db_category, field, value)
    await db.flush()
    return db_category


async def set_active(db: AsyncSession, category_ids: Sequence[int], is_active: bool) -> int:
    """Cambia el estado de varias categorías en una sentencia. Devuelve las filas afectadas."""
    if not category_ids:
        return 0
    result = await db.execute(
        update(Category)
        .where(Category.category_id.in_(list(category_ids)))
        .values(is_active=is_active)
        .execution_options(synchronize_session="fetch")
    )
    await db.flush()
    return result.rowcount or 0


async def delete_category(db: AsyncSession, db_category: Category) -> None:
    """
    Borra físicamente una categoría.

    Los hijos que aún la referencian (necesariamente inactivos) quedan como
    raíces; se hace explícitamente porque no todos los motores aplican ON DELETE SET NULL.
    """
    await db.execute(
        update(Category)
        .where(Category.parent_id == db_category.category_id)
        .values(parent_id=None)
        .execution_options(synchronize_session="fetch")
    )
    await db.delete(db_category)
    await db.flush()
