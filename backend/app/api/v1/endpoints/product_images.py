# backend/app/api/v1/endpoints/product_images.py
"""
Endpoints REST para imágenes sueltas, identificadas por su propio ID.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import NotFoundError
from app.schemas import image_schema
from app.schemas.common_schema import ApiResponse
from app.services.catalog_service import catalog_service
from app.services.image_store import ImageStore
from app.services.product_image_service import product_image_service

router = APIRouter()


@router.get("/{image_id}", response_model=ApiResponse[image_schema.ProductImageResponse])
async def read_image(image_id: int, db: AsyncSession = Depends(deps.get_db)):
    image = await product_image_service.get_image(db, image_id)
    return ApiResponse.ok(image_schema.ProductImageResponse.model_validate(image))


@router.post("/", response_model=ApiResponse[image_schema.ProductImageResponse], status_code=status.HTTP_201_CREATED)
async def create_image(image_in: image_schema.ProductImageCreate, db: AsyncSession = Depends(deps.get_db)):
    image = await product_image_service.create_image(db, image_in)
    return ApiResponse.ok(image_schema.ProductImageResponse.model_validate(image), "Imagen creada")


@router.put("/{image_id}", response_model=ApiResponse[image_schema.ProductImageResponse])
async def update_image(
    image_id: int,
    image_in: image_schema.ProductImageUpdate,
    db: AsyncSession = Depends(deps.get_db),
):
    image = await product_image_service.update_image(db, image_id, image_in)
    return ApiResponse.ok(image_schema.ProductImageResponse.model_validate(image), "Imagen actualizada")


@router.delete("/{image_id}", response_model=ApiResponse[None])
async def delete_image(
    image_id: int,
    db: AsyncSession = Depends(deps.get_db),
    image_store: ImageStore = Depends(deps.get_image_store),
):
    """Elimina la imagen aplicando la regla de la última imagen del producto."""
    image = await product_image_service.get_image(db, image_id)
    await catalog_service.delete_product_image(db, image.product_id, image_id, image_store=image_store)
    return ApiResponse.ok(message="Imagen eliminada")


@router.patch("/{image_id}/toggle-status", response_model=ApiResponse[image_schema.ProductImageResponse])
async def toggle_image_status(image_id: int, db: AsyncSession = Depends(deps.get_db)):
    if not await product_image_service.toggle_active(db, image_id):
        raise NotFoundError("Imagen", image_id)
    image = await product_image_service.get_image(db, image_id)
    return ApiResponse.ok(image_schema.ProductImageResponse.model_validate(image))
