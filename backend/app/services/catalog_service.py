# backend/app/services/catalog_service.py

"""
Capa de composición del catálogo.

Orquesta las operaciones de producto que involucran varias entidades y
aplica las reglas que ninguno de los motores puede garantizar por sí solo:

- Un producto nunca se queda sin imágenes: borrar la última se rechaza con
  BusinessRuleError antes de delegar en el motor de imágenes.
- La creación de un producto es una única transacción que abarca el
  producto, su fila de inventario inicial y el lote de imágenes; si el lote
  falla, el producto no llega a existir.
- El flujo "añadir imágenes" combina ficheros subidos al ImageStore con URLs
  externas y, si la base de datos rechaza el lote, borra los ficheros que
  acaba de subir.

Los ficheros del ImageStore se borran solo después de confirmar la
transacción y de forma best-effort: un fallo del almacén se registra pero no
deshace el borrado de la fila.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    BusinessRuleError,
    NotFoundError,
    StorageError,
    ValidationError,
    DuplicateUrlError,
)
from app.core.slug import generate_slug, ensure_unique_slug
from app.crud import brand_crud, category_crud, inventory_crud, product_crud, product_image_crud
from app.db.database import transaction
from app.db.models.product_model import Product, ProductImage
from app.schemas import image_schema, product_schema
from app.schemas.common_schema import PagedResult
from app.services.image_store import ImageStore
from app.services.product_image_service import ProductImageService, product_image_service

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    """Fichero recibido en una petición multipart, ya leído en memoria."""
    filename: Optional[str]
    content: bytes
    content_type: Optional[str] = None


class CatalogService:
    """
    Servicio de productos del catálogo.

    Recibe el motor de imágenes por constructor para poder sustituirlo en tests;
    la instancia de módulo usa el singleton de la aplicación.
    """

    def __init__(self, images: Optional[ProductImageService] = None):
        self.images = images or product_image_service

    # ========================================
    # OPERACIONES DE CONSULTA
    # ========================================

    async def get_product(self, db: AsyncSession, product_id: int) -> Product:
        product = await product_crud.get_product(db, product_id)
        if product is None:
            raise NotFoundError("Producto", product_id)
        return product

    async def get_product_detail(self, db: AsyncSession, product_id: int) -> product_schema.ProductDetailResponse:
        """Producto con imágenes, URL de la imagen principal y stock total."""
        product = await self.get_product(db, product_id)
        images = await product_image_crud.get_images_by_product(db, product_id)
        principal = await self.images.get_principal(db, product_id)
        total_stock = await inventory_crud.get_total_stock(db, product_id)

        base = product_schema.ProductResponse.model_validate(product)
        return product_schema.ProductDetailResponse(
            **base.model_dump(),
            images=[image_schema.ProductImageResponse.model_validate(image) for image in images],
            principal_image_url=principal.url if principal else None,
            total_stock=int(total_stock),
        )

    async def list_products(
        self,
        db: AsyncSession,
        category_id: Optional[int] = None,
        include_subcategories: bool = True,
        brand_id: Optional[int] = None,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> PagedResult[product_schema.ProductResponse]:
        """
        Lista paginada de productos.

        Con category_id e include_subcategories se incluyen los productos de
        todo el subárbol de la categoría.
        """
        page = max(page, 1)
        page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)

        category_ids = None
        if category_id is not None:
            if include_subcategories:
                category_ids = await category_crud.get_category_and_all_children_ids(db, category_id)
            else:
                category_ids = [category_id]

        items, total = await product_crud.get_products(
            db,
            skip=(page - 1) * page_size,
            limit=page_size,
            category_ids=category_ids,
            brand_id=brand_id,
            name_like=name,
            is_active=is_active,
        )
        return PagedResult.build(
            [product_schema.ProductResponse.model_validate(p) for p in items],
            total=total,
            page=page,
            page_size=page_size,
        )

    # ========================================
    # CREACIÓN Y ACTUALIZACIÓN DE PRODUCTOS
    # ========================================

    async def create_product(self, db: AsyncSession, product_in: product_schema.ProductCreate) -> Product:
        """
        Crea un producto con su inventario inicial y su lote de imágenes.

        Todo ocurre en una única transacción: si cualquier paso falla (SKU
        repetido, categoría o marca inexistente, lote de imágenes inválido),
        no queda nada escrito.

        Raises:
            ValidationError: SKU duplicado, relación inexistente o lote inválido
            DuplicateUrlError: alguna URL del lote ya existe
        """
        async with transaction(db):
            if await product_crud.sku_exists(db, product_in.sku):
                raise ValidationError(f"Ya existe un producto con el SKU '{product_in.sku}'")
            await self._check_relations(db, product_in.category_id, product_in.brand_id)

            slug = await ensure_unique_slug(
                generate_slug(product_in.name),
                lambda candidate: product_crud.slug_exists(db, candidate),
            )
            product = await product_crud.create_product(
                db,
                sku=product_in.sku,
                name=product_in.name,
                slug=slug,
                short_description=product_in.short_description,
                description=product_in.description,
                price=product_in.price,
                category_id=product_in.category_id,
                brand_id=product_in.brand_id,
                is_active=True,
            )

            await inventory_crud.create_inventory(
                db,
                product_id=product.product_id,
                stock=product_in.initial_stock,
                min_stock=product_in.min_stock,
                max_stock=product_in.max_stock,
            )

            items = [
                item.model_copy(update={"alt_text": item.alt_text or f"{product.name} - Imagen {position}"})
                for position, item in enumerate(product_in.images, start=1)
            ]
            await self.images.create_multiple(db, product.product_id, items)

        logger.info(f"Producto {product.product_id} creado (sku={product.sku}) con {len(items)} imágenes")
        return product

    async def update_product(
        self, db: AsyncSession, product_id: int, product_in: product_schema.ProductUpdate
    ) -> Product:
        """
        Actualiza los campos enviados y, si viene, aplica el lote de imágenes.

        Raises:
            NotFoundError: el producto no existe
            ValidationError: categoría o marca inexistente
            BusinessRuleError: el lote dejaría el producto sin imágenes
        """
        update_data = product_in.model_dump(exclude_unset=True, exclude={"images"})
        update_data = {key: value for key, value in update_data.items() if value is not None}

        async with transaction(db):
            product = await self.get_product(db, product_id)
            await self._check_relations(db, update_data.get("category_id"), update_data.get("brand_id"))

            if "name" in update_data and update_data["name"] != product.name:
                base_slug = generate_slug(update_data["name"])
                if base_slug != product.slug:
                    update_data["slug"] = await ensure_unique_slug(
                        base_slug,
                        lambda candidate: product_crud.slug_exists(db, candidate, exclude_id=product_id),
                    )

            update_data["updated_at"] = datetime.now(timezone.utc)
            await product_crud.update_product(db, product, update_data)

            if product_in.images:
                await self._apply_image_batch(db, product_id, product_in.images)

        logger.info(f"Producto {product_id} actualizado: campos {sorted(update_data)}")
        return product

    async def update_product_images(
        self, db: AsyncSession, product_id: int, items: Sequence[image_schema.ProductImageBatchItem]
    ) -> List[ProductImage]:
        """Lote mixto de imágenes con la regla de que el producto conserve al menos una."""
        async with transaction(db):
            await self.get_product(db, product_id)
            return await self._apply_image_batch(db, product_id, items)

    async def delete_product(self, db: AsyncSession, product_id: int) -> bool:
        """
        Borrado lógico de un producto. Devuelve False si no existe.

        El producto y sus imágenes quedan inactivos (sin imagen principal) y su
        stock a cero. Las filas se conservan para pedidos e históricos.
        """
        async with transaction(db):
            product = await product_crud.get_product(db, product_id)
            if product is None:
                return False
            await product_crud.update_product(
                db, product, {"is_active": False, "updated_at": datetime.now(timezone.utc)}
            )
            images = await product_image_crud.deactivate_by_product(db, product_id)
            removed_stock = await inventory_crud.reset_stock(db, product_id)

        logger.info(
            f"Producto {product_id} desactivado: {images} imágenes desactivadas, {removed_stock} unidades retiradas"
        )
        return True

    # ========================================
    # IMÁGENES CON REGLAS DE CATÁLOGO
    # ========================================

    async def delete_product_image(
        self,
        db: AsyncSession,
        product_id: int,
        image_id: int,
        image_store: Optional[ImageStore] = None,
    ) -> bool:
        """
        Elimina una imagen de un producto sin dejarlo nunca sin imágenes.

        La regla de la última imagen se comprueba antes de delegar en el motor
        de imágenes, que se encarga de promocionar una nueva principal. Tras
        confirmar, si la URL pertenece al ImageStore, se borra el fichero.

        Raises:
            NotFoundError: el producto o la imagen no existen
            BusinessRuleError: es la única imagen del producto
        """
        async with transaction(db):
            await self.get_product(db, product_id)
            image = await product_image_crud.get_image(db, image_id)
            if image is None or image.product_id != product_id:
                raise NotFoundError("Imagen", image_id)

            if await product_image_crud.count_images(db, product_id) <= 1:
                raise BusinessRuleError(
                    "No se puede eliminar la última imagen del producto. "
                    "Un producto debe tener al menos una imagen."
                )

            url = image.url
            await self.images.delete_image(db, image_id)

        if image_store is not None:
            await self._discard_files(image_store, [url])
        return True

    async def add_images(
        self,
        db: AsyncSession,
        product_id: int,
        image_store: ImageStore,
        files: Sequence[ImageUpload] = (),
        urls: Sequence[str] = (),
        alt_text: Optional[str] = None,
    ) -> List[ProductImage]:
        """
        Añade imágenes a un producto mezclando ficheros nuevos y URLs externas.

        Orden asignado: imágenes existentes + posición en el lote (desde 1).
        Solo la primera del lote es principal, y solo si el producto no tenía
        imágenes. Si la base de datos rechaza el lote, los ficheros recién
        subidos se borran del almacén antes de relanzar el error.

        Raises:
            NotFoundError: el producto no existe
            ValidationError: lote vacío, URL repetida o fichero no válido
            StorageError: el almacén rechazó una subida
        """
        urls = [url.strip() for url in urls if url and url.strip()]
        if not files and not urls:
            raise ValidationError("Debe enviar al menos un fichero o una URL")

        product = await self.get_product(db, product_id)
        for upload in files:
            image_store.validate_image(upload.filename, len(upload.content))
        if len(set(urls)) != len(urls):
            raise ValidationError("Hay URLs repetidas en la petición")
        existing_urls = await product_image_crud.get_existing_urls(db, urls)
        if existing_urls:
            raise DuplicateUrlError(sorted(existing_urls)[0])

        uploaded: List[str] = []
        try:
            for upload in files:
                uploaded.append(
                    await image_store.upload_image(
                        upload.content, upload.filename, f"{product_id}", upload.content_type
                    )
                )
        except StorageError:
            await self._discard_files(image_store, uploaded)
            raise

        try:
            async with transaction(db):
                existing_count = await product_image_crud.count_images(db, product_id)
                items = [
                    image_schema.ProductImageBase(
                        url=url,
                        alt_text=alt_text or f"{product.name} - Imagen {existing_count + position}",
                        display_order=existing_count + position,
                        is_principal=existing_count == 0 and position == 1,
                        is_active=True,
                    )
                    for position, url in enumerate(uploaded + urls, start=1)
                ]
                created = await self.images.create_multiple(db, product_id, items)
        except Exception:
            logger.error(
                f"Fallo al registrar imágenes del producto {product_id}; se borran {len(uploaded)} ficheros subidos"
            )
            await self._discard_files(image_store, uploaded)
            raise

        logger.info(f"Añadidas {len(created)} imágenes al producto {product_id} ({len(uploaded)} subidas)")
        return created

    # ========================================
    # MÉTODOS AUXILIARES
    # ========================================

    async def _check_relations(self, db: AsyncSession, category_id: Optional[int], brand_id: Optional[int]) -> None:
        if category_id is not None and await category_crud.get_category(db, category_id) is None:
            raise ValidationError(f"La categoría {category_id} no existe")
        if brand_id is not None and await brand_crud.get_brand(db, brand_id) is None:
            raise ValidationError(f"La marca {brand_id} no existe")

    async def _apply_image_batch(
        self, db: AsyncSession, product_id: int, items: Sequence[image_schema.ProductImageBatchItem]
    ) -> List[ProductImage]:
        """Comprueba que el lote deja al menos una imagen y lo delega en el motor."""
        current = await product_image_crud.count_images(db, product_id)
        removed = sum(1 for item in items if item.delete)
        added = sum(1 for item in items if item.image_id is None)
        if current - removed + added < 1:
            raise BusinessRuleError("El lote dejaría el producto sin imágenes")
        return await self.images.update_multiple(db, product_id, items)

    async def _discard_files(self, image_store: ImageStore, urls: Sequence[str]) -> None:
        """Borrado best-effort de ficheros del almacén; los fallos solo se registran."""
        for url in urls:
            try:
                await image_store.delete_by_url(url)
            except StorageError as e:
                logger.warning(f"No se pudo borrar el fichero de {url}: {e.message}")


catalog_service = CatalogService()
