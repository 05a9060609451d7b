# backend/app/api/v1/endpoints/categories.py
"""
Endpoints REST para la jerarquía de categorías.

Los errores de dominio (NotFoundError, ValidationError, InvalidMoveError...)
no se capturan aquí: los traduce el manejador registrado en main.py.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import InvalidMoveError, NotFoundError
from app.schemas import category_schema
from app.schemas.common_schema import ApiResponse, BulkResult, PagedResult
from app.services.category_service import category_service
from app.services.lifecycle import RetireOutcome

router = APIRouter()

# ========================================
# CONSULTAS
# ========================================

@router.get("/", response_model=ApiResponse[PagedResult[category_schema.CategoryResponse]])
async def read_categories(
    db: AsyncSession = Depends(deps.get_db),
    name: Optional[str] = None,
    parent_id: Optional[int] = None,
    roots_only: bool = False,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
):
    """Lista paginada de categorías con filtros."""
    result = await category_service.list_categories(
        db,
        name=name,
        parent_id=parent_id,
        roots_only=roots_only,
        is_active=is_active,
        page=page,
        page_size=page_size,
    )
    return ApiResponse.ok(result)


@router.get("/tree", response_model=ApiResponse[List[category_schema.CategoryNode]])
async def read_category_tree(db: AsyncSession = Depends(deps.get_db), active_only: bool = True):
    """Árbol completo de categorías con nivel y productos activos por nodo."""
    return ApiResponse.ok(await category_service.get_tree(db, active_only=active_only))


@router.get("/roots", response_model=ApiResponse[List[category_schema.CategoryResponse]])
async def read_root_categories(db: AsyncSession = Depends(deps.get_db), active_only: bool = True):
    categories = await category_service.get_root_categories(db, active_only=active_only)
    return ApiResponse.ok([category_schema.CategoryResponse.model_validate(c) for c in categories])


@router.get("/stats", response_model=ApiResponse[category_schema.CategoryStats])
async def read_category_stats(db: AsyncSession = Depends(deps.get_db)):
    return ApiResponse.ok(await category_service.get_stats(db))


@router.get("/product-counts", response_model=ApiResponse[List[category_schema.CategoryProductCount]])
async def read_category_product_counts(
    db: AsyncSession = Depends(deps.get_db), include_subcategories: bool = True
):
    return ApiResponse.ok(
        await category_service.get_categories_with_product_count(db, include_subcategories=include_subcategories)
    )


@router.get("/slug/{slug}", response_model=ApiResponse[category_schema.CategoryResponse])
async def read_category_by_slug(slug: str, db: AsyncSession = Depends(deps.get_db)):
    category = await category_service.get_category_by_slug(db, slug)
    return ApiResponse.ok(category_schema.CategoryResponse.model_validate(category))


@router.get("/{category_id}", response_model=ApiResponse[category_schema.CategoryResponse])
async def read_category(category_id: int, db: AsyncSession = Depends(deps.get_db)):
    """Obtiene los detalles de una categoría específica por su ID."""
    category = await category_service.get_category(db, category_id)
    return ApiResponse.ok(category_schema.CategoryResponse.model_validate(category))


@router.get("/{category_id}/breadcrumb", response_model=ApiResponse[List[category_schema.BreadcrumbItem]])
async def read_breadcrumb(category_id: int, db: AsyncSession = Depends(deps.get_db)):
    """Ruta de ancestros desde la raíz hasta la categoría."""
    return ApiResponse.ok(await category_service.get_breadcrumb(db, category_id))


@router.get("/{category_id}/subcategories", response_model=ApiResponse[List[category_schema.CategoryResponse]])
async def read_subcategories(category_id: int, db: AsyncSession = Depends(deps.get_db), active_only: bool = True):
    categories = await category_service.get_subcategories(db, category_id, active_only=active_only)
    return ApiResponse.ok([category_schema.CategoryResponse.model_validate(c) for c in categories])


@router.get("/{category_id}/has-products", response_model=ApiResponse[bool])
async def read_has_products(
    category_id: int, db: AsyncSession = Depends(deps.get_db), include_subcategories: bool = True
):
    return ApiResponse.ok(
        await category_service.has_products(db, category_id, include_subcategories=include_subcategories)
    )


@router.get("/{category_id}/level", response_model=ApiResponse[int])
async def read_level(category_id: int, db: AsyncSession = Depends(deps.get_db)):
    return ApiResponse.ok(await category_service.get_level(db, category_id))


# ========================================
# ESCRITURA
# ========================================

@router.post("/", response_model=ApiResponse[category_schema.CategoryResponse], status_code=status.HTTP_201_CREATED)
async def create_category(
    category_in: category_schema.CategoryCreate,
    db: AsyncSession = Depends(deps.get_db),
):
    """Crea una nueva categoría en el sistema."""
    category = await category_service.create_category(db, category_in)
    return ApiResponse.ok(category_schema.CategoryResponse.model_validate(category), "Categoría creada")


@router.put("/{category_id}", response_model=ApiResponse[category_schema.CategoryResponse])
async def update_category(
    category_id: int,
    category_in: category_schema.CategoryUpdate,
    db: AsyncSession = Depends(deps.get_db),
):
    """Actualiza una categoría existente."""
    category = await category_service.update_category(db, category_id, category_in)
    return ApiResponse.ok(category_schema.CategoryResponse.model_validate(category), "Categoría actualizada")


@router.delete("/{category_id}", response_model=ApiResponse[None])
async def delete_category(category_id: int, db: AsyncSession = Depends(deps.get_db)):
    """
    Elimina una categoría.

    Si tiene subcategorías activas o productos se desactiva en lugar de
    borrarse; el mensaje indica cuál de las dos cosas ocurrió.
    """
    outcome = await category_service.retire_category(db, category_id)
    if outcome is None:
        raise NotFoundError("Categoría", category_id)
    if outcome is RetireOutcome.DEACTIVATED:
        return ApiResponse.ok(message="Categoría desactivada: tiene subcategorías o productos asociados")
    return ApiResponse.ok(message="Categoría eliminada")


@router.patch("/{category_id}/move", response_model=ApiResponse[category_schema.CategoryResponse])
async def move_category(
    category_id: int,
    move_in: category_schema.CategoryMove,
    db: AsyncSession = Depends(deps.get_db),
):
    moved = await category_service.move_category(db, category_id, move_in.new_parent_id, move_in.display_order)
    if not moved:
        raise InvalidMoveError(category_id, move_in.new_parent_id)
    category = await category_service.get_category(db, category_id)
    return ApiResponse.ok(category_schema.CategoryResponse.model_validate(category), "Categoría movida")


@router.patch("/{category_id}/toggle-status", response_model=ApiResponse[bool])
async def toggle_category_status(category_id: int, db: AsyncSession = Depends(deps.get_db)):
    is_active = await category_service.toggle_status(db, category_id)
    return ApiResponse.ok(is_active, "Categoría activada" if is_active else "Categoría desactivada")


@router.patch("/bulk/status", response_model=ApiResponse[BulkResult])
async def bulk_toggle_status(bulk_in: category_schema.CategoryBulkStatus, db: AsyncSession = Depends(deps.get_db)):
    count = await category_service.bulk_toggle_status(db, bulk_in.category_ids, bulk_in.is_active)
    return ApiResponse.ok(BulkResult(affected=count))


@router.post("/bulk/delete", response_model=ApiResponse[BulkResult])
async def bulk_delete(bulk_in: category_schema.CategoryBulkDelete, db: AsyncSession = Depends(deps.get_db)):
    count = await category_service.bulk_delete(db, bulk_in.category_ids)
    return ApiResponse.ok(BulkResult(affected=count))


@router.patch("/reorder", response_model=ApiResponse[BulkResult])
async def reorder_categories(reorder_in: category_schema.CategoryReorder, db: AsyncSession = Depends(deps.get_db)):
    count = await category_service.reorder(db, reorder_in.ordered_ids)
    return ApiResponse.ok(BulkResult(affected=count))
