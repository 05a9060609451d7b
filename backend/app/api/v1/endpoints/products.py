# backend/app/api/v1/endpoints/products.py

"""
Endpoints REST para productos y sus imágenes.

Todo borrado de imágenes pasa por CatalogService para que se aplique siempre
la regla de que un producto conserva al menos una imagen.
"""

from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import NotFoundError
from app.schemas import image_schema, product_schema
from app.schemas.common_schema import ApiResponse, BulkResult, PagedResult
from app.services.catalog_service import ImageUpload, catalog_service
from app.services.image_store import ImageStore
from app.services.product_image_service import product_image_service

logger = logging.getLogger(__name__)
router = APIRouter()

# ========================================
# PRODUCTOS
# ========================================

@router.post("/", response_model=ApiResponse[product_schema.ProductDetailResponse], status_code=status.HTTP_201_CREATED)
async def create_product(
    product_in: product_schema.ProductCreate,
    db: AsyncSession = Depends(deps.get_db),
):
    """Crea un producto con su inventario inicial y su lote de imágenes."""
    logger.info(f"Creando producto con SKU '{product_in.sku}'")
    product = await catalog_service.create_product(db, product_in)
    detail = await catalog_service.get_product_detail(db, product.product_id)
    return ApiResponse.ok(detail, "Producto creado")


@router.get("/", response_model=ApiResponse[PagedResult[product_schema.ProductResponse]])
async def read_products(
    db: AsyncSession = Depends(deps.get_db),
    category_id: Optional[int] = None,
    include_subcategories: bool = True,
    brand_id: Optional[int] = None,
    name: Optional[str] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
):
    """Lista paginada de productos con filtros."""
    result = await catalog_service.list_products(
        db,
        category_id=category_id,
        include_subcategories=include_subcategories,
        brand_id=brand_id,
        name=name,
        is_active=is_active,
        page=page,
        page_size=page_size,
    )
    return ApiResponse.ok(result)


@router.get("/{product_id}", response_model=ApiResponse[product_schema.ProductDetailResponse])
async def read_product(product_id: int, db: AsyncSession = Depends(deps.get_db)):
    return ApiResponse.ok(await catalog_service.get_product_detail(db, product_id))


@router.put("/{product_id}", response_model=ApiResponse[product_schema.ProductDetailResponse])
async def update_product(
    product_id: int,
    product_in: product_schema.ProductUpdate,
    db: AsyncSession = Depends(deps.get_db),
):
    """Actualiza un producto existente y, opcionalmente, su lote de imágenes."""
    await catalog_service.update_product(db, product_id, product_in)
    return ApiResponse.ok(await catalog_service.get_product_detail(db, product_id), "Producto actualizado")


@router.delete("/{product_id}", response_model=ApiResponse[None])
async def delete_product(product_id: int, db: AsyncSession = Depends(deps.get_db)):
    """Borrado lógico: el producto y sus imágenes quedan inactivos."""
    if not await catalog_service.delete_product(db, product_id):
        raise NotFoundError("Producto", product_id)
    return ApiResponse.ok(message="Producto desactivado")


# ========================================
# IMÁGENES DEL PRODUCTO
# ========================================

@router.get("/{product_id}/images", response_model=ApiResponse[List[image_schema.ProductImageResponse]])
async def read_product_images(product_id: int, db: AsyncSession = Depends(deps.get_db), active_only: bool = False):
    images = await product_image_service.list_by_product(db, product_id, active_only=active_only)
    return ApiResponse.ok([image_schema.ProductImageResponse.model_validate(i) for i in images])


@router.get("/{product_id}/images/principal", response_model=ApiResponse[image_schema.ProductImageResponse])
async def read_principal_image(
    product_id: int, db: AsyncSession = Depends(deps.get_db), variant_id: Optional[int] = None
):
    """Imagen principal para mostrar (con fallback a la primera activa)."""
    await catalog_service.get_product(db, product_id)
    image = await product_image_service.get_principal(db, product_id, variant_id)
    if image is None:
        return ApiResponse.ok(message="El producto no tiene imágenes activas")
    return ApiResponse.ok(image_schema.ProductImageResponse.model_validate(image))


@router.get("/{product_id}/images/stats", response_model=ApiResponse[image_schema.ProductImageStats])
async def read_image_stats(product_id: int, db: AsyncSession = Depends(deps.get_db)):
    return ApiResponse.ok(await product_image_service.get_stats(db, product_id))


@router.post(
    "/{product_id}/images",
    response_model=ApiResponse[List[image_schema.ProductImageResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def add_product_images(
    product_id: int,
    files: Optional[List[UploadFile]] = File(None),
    urls: Optional[List[str]] = Form(None),
    alt_text: Optional[str] = Form(None),
    db: AsyncSession = Depends(deps.get_db),
    image_store: ImageStore = Depends(deps.get_image_store),
):
    """Añade imágenes subiendo ficheros (multipart) y/o registrando URLs externas."""
    uploads = [
        ImageUpload(filename=upload.filename, content=await upload.read(), content_type=upload.content_type)
        for upload in files or []
    ]
    created = await catalog_service.add_images(
        db, product_id, image_store, files=uploads, urls=urls or [], alt_text=alt_text
    )
    return ApiResponse.ok(
        [image_schema.ProductImageResponse.model_validate(i) for i in created],
        f"{len(created)} imágenes añadidas",
    )


@router.post(
    "/{product_id}/images/batch",
    response_model=ApiResponse[List[image_schema.ProductImageResponse]],
    status_code=status.HTTP_201_CREATED,
)
async def create_product_images(
    product_id: int,
    batch_in: image_schema.ProductImageBatchCreate,
    db: AsyncSession = Depends(deps.get_db),
):
    created = await product_image_service.create_multiple(db, product_id, batch_in.images)
    return ApiResponse.ok([image_schema.ProductImageResponse.model_validate(i) for i in created])


@router.put("/{product_id}/images/batch", response_model=ApiResponse[List[image_schema.ProductImageResponse]])
async def update_product_images(
    product_id: int,
    batch_in: image_schema.ProductImageBatchUpdate,
    db: AsyncSession = Depends(deps.get_db),
):
    """Lote mixto de altas, modificaciones y bajas de imágenes."""
    images = await catalog_service.update_product_images(db, product_id, batch_in.images)
    return ApiResponse.ok([image_schema.ProductImageResponse.model_validate(i) for i in images])


@router.patch("/{product_id}/images/order", response_model=ApiResponse[BulkResult])
async def update_image_order(
    product_id: int,
    order_in: image_schema.ImageOrderUpdate,
    db: AsyncSession = Depends(deps.get_db),
):
    await catalog_service.get_product(db, product_id)
    count = await product_image_service.update_order(db, product_id, order_in.items)
    return ApiResponse.ok(BulkResult(affected=count))


@router.patch("/{product_id}/images/{image_id}/principal", response_model=ApiResponse[image_schema.ProductImageResponse])
async def set_principal_image(product_id: int, image_id: int, db: AsyncSession = Depends(deps.get_db)):
    await catalog_service.get_product(db, product_id)
    if not await product_image_service.set_principal(db, product_id, image_id):
        raise NotFoundError("Imagen", image_id)
    image = await product_image_service.get_image(db, image_id)
    return ApiResponse.ok(image_schema.ProductImageResponse.model_validate(image), "Imagen principal actualizada")


@router.delete("/{product_id}/images/{image_id}", response_model=ApiResponse[None])
async def delete_product_image(
    product_id: int,
    image_id: int,
    db: AsyncSession = Depends(deps.get_db),
    image_store: ImageStore = Depends(deps.get_image_store),
):
    """Elimina una imagen; la última imagen de un producto no se puede eliminar."""
    await catalog_service.delete_product_image(db, product_id, image_id, image_store=image_store)
    return ApiResponse.ok(message="Imagen eliminada")
