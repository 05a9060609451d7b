# backend/tests/factories.py
"""
Fábricas de datos de catálogo para los tests.

Pasan por los servicios (salvo make_bare_product) para que los datos de
partida cumplan las mismas reglas que los creados por la API.
"""

from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import StorageError
from app.crud import product_crud
from app.db.database import transaction
from app.schemas import brand_schema, category_schema, image_schema, product_schema
from app.services.brand_service import brand_service
from app.services.catalog_service import catalog_service
from app.services.category_service import category_service
from app.services.image_store import ImageStore


class InMemoryImageStore(ImageStore):
    """ImageStore de pruebas: guarda los ficheros en un diccionario."""

    base_url = "https://cdn.test/media"

    def __init__(self, fail_on: Optional[int] = None):
        self.files: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.uploads = 0
        self.fail_on = fail_on  # número de subida (desde 1) que falla

    async def upload(self, content: bytes, path: str, content_type: Optional[str] = None) -> str:
        self.uploads += 1
        if self.fail_on is not None and self.uploads == self.fail_on:
            raise StorageError(f"Subida rechazada: {path}")
        self.files[path] = content
        return self.get_public_url(path)

    async def delete(self, path: str) -> bool:
        self.deleted.append(path)
        return self.files.pop(path, None) is not None

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def path_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.base_url}/"
        return url[len(prefix):] if url.startswith(prefix) else None


async def make_category(db: AsyncSession, name: str, parent_id: Optional[int] = None, **fields):
    return await category_service.create_category(
        db, category_schema.CategoryCreate(name=name, parent_id=parent_id, **fields)
    )


async def make_brand(db: AsyncSession, name: str = "Acme"):
    return await brand_service.create_brand(db, brand_schema.BrandCreate(name=name))


async def make_bare_product(db: AsyncSession, category_id: int, brand_id: int, sku: str = "SKU-1"):
    """Producto sin imágenes, para probar el motor de imágenes de forma aislada."""
    async with transaction(db):
        product = await product_crud.create_product(
            db,
            sku=sku,
            name=f"Producto {sku}",
            slug=sku.lower(),
            price=Decimal("10.00"),
            category_id=category_id,
            brand_id=brand_id,
            is_active=True,
        )
    return product


def product_payload(category_id: int, brand_id: int, sku: str = "SKU-1", urls: Optional[List[str]] = None, **fields):
    urls = urls or [f"https://img.test/{sku.lower()}-1.jpg"]
    return product_schema.ProductCreate(
        sku=sku,
        name=fields.pop("name", f"Producto {sku}"),
        price=Decimal("19.99"),
        category_id=category_id,
        brand_id=brand_id,
        images=[image_schema.ProductImageBase(url=url) for url in urls],
        **fields,
    )


async def make_product(db: AsyncSession, category_id: int, brand_id: int, sku: str = "SKU-1", **fields):
    return await catalog_service.create_product(db, product_payload(category_id, brand_id, sku, **fields))
