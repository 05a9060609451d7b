# backend/app/api/v1/endpoints/brands.py
"""
Endpoints REST para marcas.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.exceptions import NotFoundError
from app.schemas import brand_schema
from app.schemas.common_schema import ApiResponse
from app.services.brand_service import brand_service
from app.services.lifecycle import RetireOutcome

router = APIRouter()


@router.post("/", response_model=ApiResponse[brand_schema.BrandResponse], status_code=status.HTTP_201_CREATED)
async def create_brand(brand_in: brand_schema.BrandCreate, db: AsyncSession = Depends(deps.get_db)):
    brand = await brand_service.create_brand(db, brand_in)
    return ApiResponse.ok(brand_schema.BrandResponse.model_validate(brand), "Marca creada")


@router.get("/{brand_id}", response_model=ApiResponse[brand_schema.BrandResponse])
async def read_brand(brand_id: int, db: AsyncSession = Depends(deps.get_db)):
    brand = await brand_service.get_brand(db, brand_id)
    return ApiResponse.ok(brand_schema.BrandResponse.model_validate(brand))


@router.delete("/{brand_id}", response_model=ApiResponse[None])
async def delete_brand(brand_id: int, db: AsyncSession = Depends(deps.get_db)):
    """Elimina la marca, o la desactiva si tiene productos."""
    outcome = await brand_service.delete_brand(db, brand_id)
    if outcome is None:
        raise NotFoundError("Marca", brand_id)
    if outcome is RetireOutcome.DEACTIVATED:
        return ApiResponse.ok(message="Marca desactivada: tiene productos asociados")
    return ApiResponse.ok(message="Marca eliminada")


@router.patch("/{brand_id}/toggle-status", response_model=ApiResponse[bool])
async def toggle_brand_status(brand_id: int, db: AsyncSession = Depends(deps.get_db)):
    is_active = await brand_service.toggle_status(db, brand_id)
    return ApiResponse.ok(is_active)
