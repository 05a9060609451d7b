# backend/app/services/product_image_service.py
"""
Servicio de consistencia de imágenes de producto.

Gestiona el CRUD de imágenes agrupadas por (product_id, variant_id) y mantiene
el invariante de imagen principal:

- En cada grupo hay como mucho una imagen con is_principal = True.
- Si el grupo tiene imágenes activas, una de ellas es la principal: la primera
  imagen activa que entra en un grupo sin principal la recibe, y al borrar o
  desmarcar la principal se promociona la siguiente (menor display_order,
  desempate por menor image_id).
- Una imagen inactiva nunca es principal.

Las secuencias que tocan varias filas (desmarcar y marcar, borrar y promocionar)
se ejecutan en una sola transacción: o se aplican enteras o no se aplica nada.

Este servicio opera sobre cualquier grupo de forma genérica; la regla de que un
producto no puede quedarse sin imágenes vive en CatalogService.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError, DuplicateUrlError
from app.crud import product_crud, product_image_crud
from app.db.database import transaction
from app.db.models.product_model import ProductImage
from app.schemas import image_schema

logger = logging.getLogger(__name__)


class ProductImageService:
    """
    Motor de imágenes de producto.

    Todas las operaciones reciben la sesión explícitamente y abren su propia
    unidad de trabajo, que se integra en la del llamador si ya existe una.
    """

    # ========================================
    # OPERACIONES DE CONSULTA
    # ========================================

    async def get_image(self, db: AsyncSession, image_id: int) -> ProductImage:
        image = await product_image_crud.get_image(db, image_id)
        if image is None:
            raise NotFoundError("Imagen", image_id)
        return image

    async def list_by_product(self, db: AsyncSession, product_id: int, active_only: bool = False) -> List[ProductImage]:
        """Imágenes del producto en orden de visualización."""
        await self._check_product(db, product_id)
        return await product_image_crud.get_images_by_product(db, product_id, active_only=active_only)

    async def list_by_variant(self, db: AsyncSession, variant_id: int, active_only: bool = False) -> List[ProductImage]:
        return await product_image_crud.get_images_by_variant(db, variant_id, active_only=active_only)

    async def exists_by_url(self, db: AsyncSession, url: str, exclude_id: Optional[int] = None) -> bool:
        return await product_image_crud.url_exists(db, url.strip(), exclude_id=exclude_id)

    async def product_has_images(self, db: AsyncSession, product_id: int) -> bool:
        return await product_image_crud.count_images(db, product_id) > 0

    async def get_principal(
        self, db: AsyncSession, product_id: int, variant_id: Optional[int] = None
    ) -> Optional[ProductImage]:
        """
        Imagen principal para mostrar.

        Prefiere la imagen marcada como principal en el grupo. Si ninguna lo
        está, recurre a la primera imagen activa del grupo y, para el grupo sin
        variante, a la primera imagen activa del producto. El resultado es la
        imagen que debe mostrarse aunque el grupo esté transitoriamente sin marca.
        """
        principal = await product_image_crud.get_flagged_principal(db, product_id, variant_id)
        if principal is not None:
            return principal

        fallback = await product_image_crud.get_first_active(db, product_id, variant_id)
        if fallback is None and variant_id is None:
            fallback = await product_image_crud.get_first_active(db, product_id, whole_product=True)
        if fallback is not None:
            logger.warning(
                f"Producto {product_id} (variante {variant_id}) sin imagen principal marcada; "
                f"se usa la imagen {fallback.image_id}"
            )
        return fallback

    async def get_stats(self, db: AsyncSession, product_id: int) -> image_schema.ProductImageStats:
        await self._check_product(db, product_id)
        counts = await product_image_crud.get_status_counts(db, product_id)
        return image_schema.ProductImageStats(
            product_id=product_id,
            total=counts["total"],
            active=counts["active"],
            inactive=counts["total"] - counts["active"],
            principal=counts["principal"],
            with_variant=counts["with_variant"],
            has_principal=counts["principal"] > 0,
        )

    # ========================================
    # OPERACIONES DE ESCRITURA SOBRE UNA IMAGEN
    # ========================================

    async def create_image(self, db: AsyncSession, image_in: image_schema.ProductImageCreate) -> ProductImage:
        """
        Crea una imagen manteniendo el invariante del grupo.

        - La URL debe ser única en toda la tabla.
        - display_order <= 0 la coloca al final del producto.
        - Si se pide como principal, se desmarca antes el resto del grupo.
        - Si el grupo no tiene principal y la imagen es activa, pasa a serlo.

        Raises:
            NotFoundError: el producto no existe
            ValidationError: la variante no existe o es de otro producto
            DuplicateUrlError: la URL ya está almacenada
        """
        async with transaction(db):
            await self._check_product(db, image_in.product_id)
            await self._check_variant(db, image_in.product_id, image_in.variant_id)
            if await product_image_crud.url_exists(db, image_in.url):
                raise DuplicateUrlError(image_in.url)
            image = await self._insert(db, image_in.product_id, image_in)

        logger.info(
            f"Imagen {image.image_id} creada para producto {image.product_id} "
            f"(orden={image.display_order}, principal={image.is_principal})"
        )
        return image

    async def update_image(
        self, db: AsyncSession, image_id: int, image_in: image_schema.ProductImageUpdate
    ) -> ProductImage:
        """
        Actualiza los campos enviados de una imagen.

        Marcarla como principal desmarca al resto del grupo y la activa.
        Desactivarla le quita la marca de principal. Si tras el cambio el grupo
        tiene imágenes activas pero ninguna principal (también al reactivar
        una imagen), se promociona la primera activa.

        Raises:
            NotFoundError: la imagen no existe
            DuplicateUrlError: la nueva URL ya pertenece a otra imagen
        """
        update_data = {key: value for key, value in image_in.model_dump(exclude_unset=True).items() if value is not None}

        async with transaction(db):
            image = await self.get_image(db, image_id)
            await self._apply_update(db, image, update_data)

        logger.info(f"Imagen {image_id} actualizada: campos {sorted(update_data)}")
        return image

    async def delete_image(self, db: AsyncSession, image_id: int) -> bool:
        """
        Elimina una imagen. Devuelve False si no existe.

        Si era la principal, se promociona la imagen activa del mismo grupo con
        menor display_order (desempate por ID). Si no queda ninguna, el grupo
        queda vacío sin promoción.
        """
        async with transaction(db):
            image = await product_image_crud.get_image(db, image_id)
            if image is None:
                return False
            await self._remove(db, image)
        return True

    async def set_principal(self, db: AsyncSession, product_id: int, image_id: int) -> bool:
        """
        Marca una imagen como principal de su grupo y la activa.

        Devuelve False si la imagen no existe o no pertenece al producto.
        """
        async with transaction(db):
            image = await product_image_crud.get_image(db, image_id)
            if image is None or image.product_id != product_id:
                logger.warning(f"set_principal: la imagen {image_id} no pertenece al producto {product_id}")
                return False
            await product_image_crud.get_group_images(db, product_id, image.variant_id, for_update=True)
            await product_image_crud.clear_principal(db, product_id, image.variant_id, exclude_id=image_id)
            await product_image_crud.update_image(db, image, {"is_principal": True, "is_active": True})

        logger.info(f"Imagen {image_id} establecida como principal del producto {product_id}")
        return True

    async def toggle_active(self, db: AsyncSession, image_id: int) -> bool:
        """
        Invierte el estado activo de la imagen. Devuelve False si no existe.

        Al desactivar la principal se le quita la marca, sin promocionar otra:
        la promoción solo ocurre al borrar o al desmarcar explícitamente.
        Reactivar una imagen en un grupo sin principal sí lo repara.
        """
        async with transaction(db):
            image = await product_image_crud.get_image(db, image_id)
            if image is None:
                return False
            fields: Dict[str, Any] = {"is_active": not image.is_active}
            if image.is_active and image.is_principal:
                fields["is_principal"] = False
            await product_image_crud.update_image(db, image, fields)
            if image.is_active:
                await self._promote_replacement(db, image.product_id, image.variant_id)

        logger.info(f"Imagen {image_id} {'activada' if image.is_active else 'desactivada'}")
        return True

    # ========================================
    # OPERACIONES POR LOTES
    # ========================================

    async def create_multiple(
        self, db: AsyncSession, product_id: int, items: Sequence[image_schema.ProductImageBase]
    ) -> List[ProductImage]:
        """
        Crea un lote de imágenes en una sola transacción.

        Se valida todo antes de escribir: más de una imagen pedida como
        principal, URLs repetidas dentro del lote o ya existentes y variantes
        ajenas rechazan el lote completo sin insertar nada.
        """
        items = list(items)
        if sum(1 for item in items if item.is_principal) > 1:
            raise ValidationError("Solo puede haber una imagen principal en el lote")
        self._check_batch_urls([item.url for item in items])

        async with transaction(db):
            await self._check_product(db, product_id)
            for variant_id in {item.variant_id for item in items if item.variant_id is not None}:
                await self._check_variant(db, product_id, variant_id)
            existing = await product_image_crud.get_existing_urls(db, [item.url for item in items])
            if existing:
                raise DuplicateUrlError(sorted(existing)[0])

            created = [await self._insert(db, product_id, item) for item in items]

        logger.info(f"Creadas {len(created)} imágenes para el producto {product_id}")
        return created

    async def update_multiple(
        self, db: AsyncSession, product_id: int, items: Sequence[image_schema.ProductImageBatchItem]
    ) -> List[ProductImage]:
        """
        Aplica un lote mixto de altas, modificaciones y bajas en el orden recibido.

        - Sin image_id: alta.
        - Con image_id: modificación de los campos enviados.
        - Con image_id y delete=True: baja (con promoción si era la principal).

        Solo cuentan como principales los elementos que no se eliminan; más de
        uno rechaza el lote. Devuelve las imágenes creadas o modificadas.
        """
        items = list(items)
        if sum(1 for item in items if item.is_principal and not item.delete) > 1:
            raise ValidationError("Solo puede haber una imagen principal en el lote")
        self._check_batch_urls([item.url for item in items if item.url and not item.delete])
        image_ids = [item.image_id for item in items if item.image_id is not None]
        if len(image_ids) != len(set(image_ids)):
            raise ValidationError("Una misma imagen aparece varias veces en el lote")

        result: List[ProductImage] = []
        async with transaction(db):
            await self._check_product(db, product_id)
            referenced = await product_image_crud.get_images_by_ids(
                db, [item.image_id for item in items if item.image_id is not None]
            )
            for item in items:
                if item.image_id is None:
                    continue
                image = referenced.get(item.image_id)
                if image is None or image.product_id != product_id:
                    raise ValidationError(f"La imagen {item.image_id} no pertenece al producto {product_id}")

            for item in items:
                if item.image_id is None:
                    await self._check_variant(db, product_id, item.variant_id)
                    if await product_image_crud.url_exists(db, item.url):
                        raise DuplicateUrlError(item.url)
                    new_item = image_schema.ProductImageBase(
                        url=item.url,
                        alt_text=item.alt_text,
                        display_order=item.display_order or 0,
                        is_principal=bool(item.is_principal),
                        is_active=True if item.is_active is None else item.is_active,
                        variant_id=item.variant_id,
                    )
                    result.append(await self._insert(db, product_id, new_item))
                elif item.delete:
                    await self._remove(db, referenced[item.image_id])
                else:
                    fields = item.model_dump(exclude_unset=True, exclude={"image_id", "delete", "variant_id"})
                    fields = {key: value for key, value in fields.items() if value is not None}
                    image = referenced[item.image_id]
                    await self._apply_update(db, image, fields)
                    result.append(image)

        logger.info(f"Procesado lote de {len(items)} imágenes para el producto {product_id}")
        return result

    async def update_order(
        self, db: AsyncSession, product_id: int, ordered_pairs: Sequence[image_schema.ImageOrderItem]
    ) -> int:
        """
        Aplica pares {image_id, display_order}.

        Los IDs que no existen o no pertenecen al producto se omiten con un
        aviso en el log, para tolerar estado desfasado del cliente. Devuelve
        cuántas imágenes se reordenaron.
        """
        count = 0
        async with transaction(db):
            images = await product_image_crud.get_images_by_ids(db, [pair.image_id for pair in ordered_pairs])
            for pair in ordered_pairs:
                image = images.get(pair.image_id)
                if image is None or image.product_id != product_id:
                    logger.warning(f"Reordenación: la imagen {pair.image_id} no pertenece al producto {product_id}, se omite")
                    continue
                image.display_order = pair.display_order
                count += 1
            await db.flush()
        logger.info(f"Reordenadas {count} imágenes del producto {product_id}")
        return count

    async def delete_all_by_product(self, db: AsyncSession, product_id: int) -> int:
        async with transaction(db):
            count = await product_image_crud.delete_by_product(db, product_id)
        logger.info(f"Eliminadas {count} imágenes del producto {product_id}")
        return count

    # ========================================
    # MÉTODOS AUXILIARES
    # ========================================

    async def _check_product(self, db: AsyncSession, product_id: int) -> None:
        if not await product_crud.product_exists(db, product_id):
            raise NotFoundError("Producto", product_id)

    async def _check_variant(self, db: AsyncSession, product_id: int, variant_id: Optional[int]) -> None:
        if variant_id is None:
            return
        variant = await product_crud.get_variant(db, variant_id)
        if variant is None or variant.product_id != product_id:
            raise ValidationError(f"La variante {variant_id} no existe para el producto {product_id}")

    @staticmethod
    def _check_batch_urls(urls: List[str]) -> None:
        seen = set()
        for url in urls:
            if url in seen:
                raise ValidationError(f"La URL '{url}' aparece repetida en el lote")
            seen.add(url)

    async def _insert(self, db: AsyncSession, product_id: int, item: image_schema.ProductImageBase) -> ProductImage:
        """Inserta una imagen ya validada aplicando orden y marca de principal."""
        display_order = item.display_order
        if display_order <= 0:
            display_order = await product_image_crud.get_max_display_order(db, product_id) + 1

        await product_image_crud.get_group_images(db, product_id, item.variant_id, for_update=True)
        is_principal = item.is_principal
        if is_principal:
            await product_image_crud.clear_principal(db, product_id, item.variant_id)
        elif item.is_active:
            current = await product_image_crud.get_flagged_principal(db, product_id, item.variant_id)
            is_principal = current is None

        return await product_image_crud.create_image(
            db,
            product_id=product_id,
            variant_id=item.variant_id,
            url=item.url,
            alt_text=item.alt_text,
            display_order=display_order,
            is_principal=is_principal,
            is_active=True if is_principal else item.is_active,
        )

    async def _apply_update(self, db: AsyncSession, image: ProductImage, fields: Dict[str, Any]) -> None:
        """Aplica cambios a una imagen y repara la marca de principal de su grupo."""
        if "url" in fields and fields["url"] != image.url:
            if await product_image_crud.url_exists(db, fields["url"], exclude_id=image.image_id):
                raise DuplicateUrlError(fields["url"])
        if "display_order" in fields and fields["display_order"] <= 0:
            fields["display_order"] = await product_image_crud.get_max_display_order(db, image.product_id) + 1

        explicitly_unset = fields.get("is_principal") is False
        if fields.get("is_principal"):
            await product_image_crud.get_group_images(db, image.product_id, image.variant_id, for_update=True)
            await product_image_crud.clear_principal(db, image.product_id, image.variant_id, exclude_id=image.image_id)
            fields["is_active"] = True
        elif fields.get("is_active") is False:
            fields["is_principal"] = False

        was_principal = image.is_principal
        await product_image_crud.update_image(db, image, fields)

        if was_principal and not image.is_principal:
            exclude = image.image_id if explicitly_unset or not image.is_active else None
            await self._promote_replacement(db, image.product_id, image.variant_id, exclude_id=exclude)
        if image.is_active and not image.is_principal:
            # Un grupo con imágenes activas siempre tiene principal
            await self._promote_replacement(db, image.product_id, image.variant_id)

    async def _remove(self, db: AsyncSession, image: ProductImage) -> None:
        image_id, product_id, variant_id = image.image_id, image.product_id, image.variant_id
        was_principal = image.is_principal
        await product_image_crud.delete_image(db, image)
        logger.info(f"Imagen {image_id} eliminada del producto {product_id}")
        if was_principal:
            await self._promote_replacement(db, product_id, variant_id)

    async def _promote_replacement(
        self, db: AsyncSession, product_id: int, variant_id: Optional[int], exclude_id: Optional[int] = None
    ) -> Optional[ProductImage]:
        """Promociona la primera imagen activa del grupo si el grupo no tiene principal."""
        if await product_image_crud.get_flagged_principal(db, product_id, variant_id) is not None:
            return None
        replacement = await product_image_crud.get_first_active(db, product_id, variant_id, exclude_id=exclude_id)
        if replacement is None:
            logger.warning(f"Producto {product_id} (variante {variant_id}) sin imágenes activas para promocionar")
            return None
        await product_image_crud.update_image(db, replacement, {"is_principal": True})
        logger.info(f"Imagen {replacement.image_id} promocionada a principal del producto {product_id}")
        return replacement


product_image_service = ProductImageService()
