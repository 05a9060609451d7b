# backend/app/services/brand_service.py
"""
Servicio de marcas.

Solo cubre lo que el catálogo necesita: todo producto pertenece a una marca,
y una marca con productos nunca se borra físicamente.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.crud import brand_crud, product_crud
from app.db.database import transaction
from app.db.models.brand_model import Brand
from app.schemas import brand_schema
from app.services.lifecycle import RetireOutcome, retire

logger = logging.getLogger(__name__)


class BrandService:

    async def get_brand(self, db: AsyncSession, brand_id: int) -> Brand:
        brand = await brand_crud.get_brand(db, brand_id)
        if brand is None:
            raise NotFoundError("Marca", brand_id)
        return brand

    async def create_brand(self, db: AsyncSession, brand_in: brand_schema.BrandCreate) -> Brand:
        """
        Crea una marca. El nombre es único sin distinguir mayúsculas.

        Raises:
            ValidationError: nombre duplicado
        """
        async with transaction(db):
            if await brand_crud.name_exists(db, brand_in.name):
                raise ValidationError(f"Ya existe una marca con el nombre '{brand_in.name}'")
            brand = await brand_crud.create_brand(db, **brand_in.model_dump(), is_active=True)
        logger.info(f"Marca {brand.brand_id} creada: {brand.name}")
        return brand

    async def delete_brand(self, db: AsyncSession, brand_id: int) -> Optional[RetireOutcome]:
        """
        Borra una marca: se desactiva si tiene productos, se elimina si no.

        Devuelve None si la marca no existe.
        """
        async with transaction(db):
            brand = await brand_crud.get_brand(db, brand_id)
            if brand is None:
                return None

            async def has_dependents() -> bool:
                return await product_crud.count_products_by_brand(db, brand_id, active_only=False) > 0

            async def deactivate() -> None:
                brand.is_active = False
                await db.flush()

            async def hard_delete() -> None:
                await brand_crud.delete_brand(db, brand)

            return await retire(f"Marca {brand_id}", has_dependents, deactivate, hard_delete)

    async def toggle_status(self, db: AsyncSession, brand_id: int) -> bool:
        """Invierte el estado de la marca y devuelve el nuevo estado."""
        async with transaction(db):
            brand = await self.get_brand(db, brand_id)
            brand.is_active = not brand.is_active
            await db.flush()
        return brand.is_active


brand_service = BrandService()
