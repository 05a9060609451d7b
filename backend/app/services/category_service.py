# backend/app/services/category_service.py
"""
Servicio para operaciones de negocio relacionadas con categorías.

Este servicio es el motor de la jerarquía de categorías: mantiene los
invariantes estructurales del bosque de categorías frente a ediciones
concurrentes.

Invariantes que garantiza:
- El grafo de padres es acíclico: una categoría nunca puede colgar de sí misma
  ni de uno de sus descendientes.
- Los slugs son únicos en toda la tabla (activas e inactivas).
- Los nombres son únicos entre las categorías activas (sin distinguir mayúsculas).
- Una categoría con hijos activos o productos nunca se borra físicamente;
  el borrado se degrada a desactivación.

Cada operación de escritura se ejecuta dentro de `transaction(db)`; si el
llamador ya tiene una unidad de trabajo abierta, la operación se integra en ella.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError, InvalidMoveError
from app.core.slug import generate_slug, ensure_unique_slug
from app.crud import category_crud
from app.db.database import transaction
from app.db.models.category_model import Category
from app.schemas import category_schema
from app.schemas.common_schema import PagedResult
from app.services.lifecycle import RetireOutcome, retire

logger = logging.getLogger(__name__)


class CategoryService:
    """
    Servicio para operaciones de negocio relacionadas con categorías.

    Las consultas jerárquicas siguen dos estrategias:
    - Descendientes y breadcrumb: consultas puntuales (CTE recursiva o recorrido
      de padres), proporcionales al subárbol o a la profundidad.
    - Árbol completo y estadísticas: una única carga plana agrupada en memoria
      por parent_id, sin una consulta por nodo.
    """

    # ========================================
    # OPERACIONES DE CONSULTA
    # ========================================

    async def get_category(self, db: AsyncSession, category_id: int) -> Category:
        """
        Obtiene una categoría por su ID.

        Raises:
            NotFoundError: si no existe
        """
        category = await category_crud.get_category(db, category_id=category_id)
        if category is None:
            raise NotFoundError("Categoría", category_id)
        return category

    async def get_category_by_slug(self, db: AsyncSession, slug: str) -> Category:
        category = await category_crud.get_category_by_slug(db, slug=slug)
        if category is None:
            raise NotFoundError("Categoría", slug)
        return category

    async def list_categories(
        self,
        db: AsyncSession,
        name: Optional[str] = None,
        parent_id: Optional[int] = None,
        roots_only: bool = False,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> PagedResult[category_schema.CategoryResponse]:
        """
        Lista paginada de categorías con filtros, ordenada por (display_order, name).

        Args:
            db: Sesión de SQLAlchemy
            name: Fragmento de nombre a buscar
            parent_id: Solo hijos directos de esta categoría
            roots_only: Solo categorías raíz (incompatible con parent_id)
            is_active: Filtrar por estado
            page: Página (desde 1)
            page_size: Tamaño de página, limitado por MAX_PAGE_SIZE
        """
        if roots_only and parent_id is not None:
            raise ValidationError("No se pueden combinar los filtros 'parent_id' y 'roots_only'")

        page = max(page, 1)
        page_size = min(page_size or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
        items, total = await category_crud.get_categories(
            db,
            name=name,
            parent_id=parent_id,
            roots_only=roots_only,
            is_active=is_active,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        return PagedResult.build(
            [category_schema.CategoryResponse.model_validate(c) for c in items],
            total=total,
            page=page,
            page_size=page_size,
        )

    async def get_root_categories(self, db: AsyncSession, active_only: bool = True) -> List[Category]:
        """Categorías sin padre, para construir menús de navegación."""
        return await category_crud.get_root_categories(db, active_only=active_only)

    async def get_subcategories(self, db: AsyncSession, parent_id: int, active_only: bool = True) -> List[Category]:
        """
        Hijos directos de una categoría.

        Raises:
            NotFoundError: si la categoría padre no existe
        """
        await self.get_category(db, parent_id)
        return await category_crud.get_subcategories(db, parent_id=parent_id, active_only=active_only)

    async def get_tree(self, db: AsyncSession, active_only: bool = True) -> List[category_schema.CategoryNode]:
        """
        Reconstruye el bosque completo de categorías.

        Carga todas las filas en una consulta (ya ordenadas por display_order y
        nombre), las agrupa por parent_id y anida recursivamente los hijos de
        cada nodo, anotando su nivel y sus productos activos. Con active_only,
        los subárboles colgados de una categoría inactiva quedan fuera.
        """
        categories = await category_crud.get_all_categories(db, active_only=active_only)
        product_counts = await category_crud.get_active_product_counts(db)

        children_by_parent: Dict[Optional[int], List[Category]] = defaultdict(list)
        for category in categories:
            children_by_parent[category.parent_id].append(category)

        visited = set()

        def build(category: Category, level: int) -> category_schema.CategoryNode:
            visited.add(category.category_id)
            children = [
                build(child, level + 1)
                for child in children_by_parent.get(category.category_id, [])
                if child.category_id not in visited
            ]
            return category_schema.CategoryNode(
                category_id=category.category_id,
                name=category.name,
                slug=category.slug,
                description=category.description,
                image_url=category.image_url,
                icon=category.icon,
                display_order=category.display_order,
                is_active=category.is_active,
                parent_id=category.parent_id,
                level=level,
                active_product_count=product_counts.get(category.category_id, 0),
                children=children,
            )

        return [build(root, 0) for root in children_by_parent.get(None, [])]

    async def get_breadcrumb(self, db: AsyncSession, category_id: int) -> List[category_schema.BreadcrumbItem]:
        """
        Devuelve la cadena de ancestros desde la raíz hasta la categoría indicada.

        Recorre las referencias a padre con lecturas puntuales (O(profundidad)).
        Un padre inexistente o un ciclo corrupto cortan el recorrido con un aviso
        en el log en lugar de fallar.

        Raises:
            NotFoundError: si la categoría no existe
        """
        category = await self.get_category(db, category_id)
        path: List[category_schema.BreadcrumbItem] = []
        seen = set()

        while category is not None:
            if category.category_id in seen:
                logger.warning(f"Ciclo detectado en la jerarquía al recorrer la categoría {category_id}")
                break
            seen.add(category.category_id)
            path.insert(0, category_schema.BreadcrumbItem.model_validate(category))

            if category.parent_id is None:
                break
            parent_id = category.parent_id
            category = await category_crud.get_category(db, parent_id)
            if category is None:
                logger.warning(f"La categoría padre {parent_id} no existe (referencia huérfana)")

        return path

    async def get_level(self, db: AsyncSession, category_id: int) -> int:
        """Nivel de la categoría: 0 para las raíces, número de ancestros en general."""
        return len(await self.get_breadcrumb(db, category_id)) - 1

    async def is_valid_parent(self, db: AsyncSession, category_id: int, candidate_parent_id: Optional[int]) -> bool:
        """
        Indica si candidate_parent_id puede ser padre de category_id sin crear un ciclo.

        Es válido si es None (pasar a raíz) o si no es la propia categoría ni
        ninguno de sus descendientes. No comprueba que el candidato exista.
        """
        if candidate_parent_id is None:
            return True
        if candidate_parent_id == category_id:
            return False
        descendants = await category_crud.get_descendant_ids(db, category_id)
        return candidate_parent_id not in descendants

    async def has_products(self, db: AsyncSession, category_id: int, include_subcategories: bool = True) -> bool:
        """Indica si la categoría (y opcionalmente su subárbol) tiene productos activos."""
        await self.get_category(db, category_id)
        if include_subcategories:
            ids = await category_crud.get_category_and_all_children_ids(db, category_id)
        else:
            ids = [category_id]
        return await category_crud.count_products(db, ids, active_only=True) > 0

    async def get_categories_with_product_count(
        self, db: AsyncSession, include_subcategories: bool = True
    ) -> List[category_schema.CategoryProductCount]:
        """
        Productos activos por categoría activa, ordenado por nombre.

        Con include_subcategories se suman los productos de todo el subárbol,
        calculado en memoria a partir de una sola carga plana.
        """
        categories = await category_crud.get_all_categories(db)
        direct_counts = await category_crud.get_active_product_counts(db)
        totals = self._subtree_totals(categories, direct_counts) if include_subcategories else {}

        result = []
        for category in categories:
            if not category.is_active:
                continue
            direct = direct_counts.get(category.category_id, 0)
            from_children = totals.get(category.category_id, direct) - direct if include_subcategories else 0
            result.append(
                category_schema.CategoryProductCount(
                    category_id=category.category_id,
                    name=category.name,
                    direct_products=direct,
                    subcategory_products=from_children,
                    total_products=direct + from_children,
                )
            )
        return sorted(result, key=lambda item: item.name.lower())

    async def get_stats(self, db: AsyncSession) -> category_schema.CategoryStats:
        """Estadísticas agregadas del árbol, calculadas con una carga plana."""
        categories = await category_crud.get_all_categories(db)
        product_counts = await category_crud.get_active_product_counts(db)

        ids = {c.category_id for c in categories}
        active_parent_ids = {c.parent_id for c in categories if c.is_active and c.parent_id is not None}
        with_products = sum(1 for c in categories if product_counts.get(c.category_id, 0) > 0)

        children_by_parent: Dict[Optional[int], List[int]] = defaultdict(list)
        for category in categories:
            parent = category.parent_id if category.parent_id in ids else None
            children_by_parent[parent].append(category.category_id)

        max_depth = 0
        stack = [(root_id, 0) for root_id in children_by_parent.get(None, [])]
        visited = set()
        while stack:
            node_id, depth = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)
            max_depth = max(max_depth, depth)
            stack.extend((child, depth + 1) for child in children_by_parent.get(node_id, []))

        top = [
            category_schema.CategoryProductCount(
                category_id=c.category_id,
                name=c.name,
                direct_products=product_counts.get(c.category_id, 0),
                total_products=product_counts.get(c.category_id, 0),
            )
            for c in categories
            if c.is_active
        ]
        top.sort(key=lambda item: (-item.total_products, item.name.lower()))

        return category_schema.CategoryStats(
            total=len(categories),
            active=sum(1 for c in categories if c.is_active),
            inactive=sum(1 for c in categories if not c.is_active),
            roots=sum(1 for c in categories if c.parent_id is None),
            with_children=sum(1 for c in categories if c.category_id in active_parent_ids),
            with_products=with_products,
            without_products=len(categories) - with_products,
            max_depth=max_depth,
            last_created_at=max((c.created_at for c in categories if c.created_at), default=None),
            top_by_products=top[:10],
        )

    @staticmethod
    def _subtree_totals(categories: List[Category], direct_counts: Dict[int, int]) -> Dict[int, int]:
        """Suma de productos de cada nodo más todo su subárbol."""
        children_by_parent: Dict[Optional[int], List[int]] = defaultdict(list)
        for category in categories:
            children_by_parent[category.parent_id].append(category.category_id)

        totals: Dict[int, int] = {}

        def total_for(node_id: int, path: frozenset) -> int:
            if node_id in totals:
                return totals[node_id]
            value = direct_counts.get(node_id, 0)
            for child in children_by_parent.get(node_id, []):
                if child not in path:
                    value += total_for(child, path | {child})
            totals[node_id] = value
            return value

        for category in categories:
            total_for(category.category_id, frozenset({category.category_id}))
        return totals

    # ========================================
    # OPERACIONES DE ESCRITURA CON LÓGICA DE NEGOCIO
    # ========================================

    async def create_category(self, db: AsyncSession, category_in: category_schema.CategoryCreate) -> Category:
        """
        Crea una nueva categoría con validaciones completas de negocio.

        - El padre, si se indica, debe existir.
        - El nombre no puede repetirse entre categorías activas.
        - El slug se deriva de la sugerencia o del nombre y se deduplica con -1, -2, ...

        Raises:
            ValidationError: padre inexistente o nombre duplicado
        """
        async with transaction(db):
            if category_in.parent_id is not None:
                parent = await category_crud.get_category(db, category_in.parent_id)
                if parent is None:
                    raise ValidationError(f"La categoría padre {category_in.parent_id} no existe")

            if await category_crud.name_exists(db, category_in.name):
                raise ValidationError(f"Ya existe una categoría activa con el nombre '{category_in.name}'")

            slug = await self._unique_slug(db, category_in.slug or category_in.name)

            category = await category_crud.create_category(
                db,
                name=category_in.name,
                description=category_in.description,
                image_url=category_in.image_url,
                icon=category_in.icon,
                slug=slug,
                display_order=category_in.display_order,
                is_active=True,
                parent_id=category_in.parent_id,
            )

        logger.info(f"Categoría {category.category_id} creada (slug='{category.slug}', padre={category.parent_id})")
        return category

    async def update_category(
        self, db: AsyncSession, category_id: int, category_in: category_schema.CategoryUpdate
    ) -> Category:
        """
        Actualiza una categoría aplicando solo los campos enviados.

        Antes de cambiar el padre se valida que no se forme un ciclo. El slug
        solo se regenera (y deduplica) si el resultado difiere del almacenado.

        Raises:
            NotFoundError: la categoría no existe
            ValidationError: nombre duplicado o padre inexistente
            InvalidMoveError: el nuevo padre es la propia categoría o un descendiente
        """
        update_data = category_in.model_dump(exclude_unset=True)

        async with transaction(db):
            category = await self.get_category(db, category_id)

            if "parent_id" in update_data and update_data["parent_id"] != category.parent_id:
                await self._check_parent(db, category_id, update_data["parent_id"])

            new_name = update_data.get("name")
            if new_name is not None and new_name.lower() != category.name.lower():
                if await category_crud.name_exists(db, new_name, exclude_id=category_id):
                    raise ValidationError(f"Ya existe una categoría activa con el nombre '{new_name}'")
            elif new_name is None:
                update_data.pop("name", None)

            if update_data.get("is_active") and not category.is_active:
                await self._check_name_available(db, new_name or category.name, category_id)

            slug_hint = update_data.pop("slug", None)
            if slug_hint or new_name:
                base_slug = generate_slug(slug_hint or new_name)
                if base_slug != category.slug:
                    update_data["slug"] = await self._unique_slug(db, base_slug, exclude_id=category_id)

            for field in ("display_order", "is_active"):
                if field in update_data and update_data[field] is None:
                    update_data.pop(field)

            category = await category_crud.update_category(db, category, update_data)

        logger.info(f"Categoría {category_id} actualizada: campos {sorted(update_data)}")
        return category

    async def move_category(
        self, db: AsyncSession, category_id: int, new_parent_id: Optional[int], new_order: int
    ) -> bool:
        """
        Mueve una categoría bajo otro padre (o a raíz) con un nuevo orden.

        Usa la misma validación que update_category pero la comunica con un
        booleano: devuelve False si el destino no existe o crearía un ciclo.

        Raises:
            NotFoundError: la categoría a mover no existe
        """
        async with transaction(db):
            category = await self.get_category(db, category_id)
            try:
                await self._check_parent(db, category_id, new_parent_id)
            except ValidationError as exc:
                logger.info(f"Movimiento rechazado de la categoría {category_id} a {new_parent_id}: {exc.message}")
                return False

            await category_crud.update_category(
                db, category, {"parent_id": new_parent_id, "display_order": new_order}
            )

        logger.info(f"Categoría {category_id} movida bajo {new_parent_id} con orden {new_order}")
        return True

    async def retire_category(self, db: AsyncSession, category_id: int) -> Optional[RetireOutcome]:
        """
        Borra una categoría: lógico si tiene hijos activos o productos, físico si no.

        Devuelve el resultado aplicado o None si la categoría no existe.
        """
        async with transaction(db):
            category = await category_crud.get_category(db, category_id)
            if category is None:
                return None
            return await self._retire(db, category)

    async def delete_category(self, db: AsyncSession, category_id: int) -> bool:
        """
        Elimina una categoría. Devuelve False solo si no existe.

        El borrado lógico cuenta como éxito: el llamador no distingue entre
        desactivada y eliminada (ver retire_category si lo necesita).
        """
        return await self.retire_category(db, category_id) is not None

    async def toggle_status(self, db: AsyncSession, category_id: int) -> bool:
        """Invierte el estado activo de la categoría y devuelve el nuevo estado."""
        async with transaction(db):
            category = await self.get_category(db, category_id)
            if not category.is_active:
                await self._check_name_available(db, category.name, category_id)
            await category_crud.update_category(db, category, {"is_active": not category.is_active})
        logger.info(f"Categoría {category_id} {'activada' if category.is_active else 'desactivada'}")
        return category.is_active

    async def bulk_toggle_status(self, db: AsyncSession, category_ids: Sequence[int], is_active: bool) -> int:
        """
        Activa o desactiva varias categorías. Devuelve cuántas existían.

        Al activar se mantiene la unicidad de nombres entre las activas: si
        alguna chocaría con otra activa, o dos del lote comparten nombre, se
        rechaza el lote entero.

        Raises:
            ValidationError: la activación duplicaría un nombre
        """
        async with transaction(db):
            existing = await category_crud.get_categories_by_ids(db, category_ids)
            if is_active:
                await self._check_names_for_activation(db, list(existing.values()))
            count = await category_crud.set_active(db, list(existing), is_active)
        logger.info(f"Cambio de estado masivo a {is_active}: {count} categorías")
        return count

    async def bulk_delete(self, db: AsyncSession, category_ids: Sequence[int]) -> int:
        """
        Aplica la regla de borrado de delete_category a cada ID, en el orden recibido.

        El orden importa: borrar primero un hijo permite borrar físicamente
        después a su padre. Todo ocurre en una sola transacción. Devuelve
        cuántas categorías existían y fueron retiradas (de una u otra forma).
        """
        count = 0
        async with transaction(db):
            for category_id in dict.fromkeys(category_ids):
                category = await category_crud.get_category(db, category_id)
                if category is None:
                    logger.warning(f"Borrado masivo: la categoría {category_id} no existe, se omite")
                    continue
                await self._retire(db, category)
                count += 1
        return count

    async def reorder(self, db: AsyncSession, ordered_ids: Sequence[int]) -> int:
        """
        Asigna a cada categoría su posición en la lista como display_order.

        Los IDs inexistentes se omiten. Es idempotente: repetir la misma lista
        produce la misma asignación.
        """
        count = 0
        async with transaction(db):
            existing = await category_crud.get_categories_by_ids(db, ordered_ids)
            for position, category_id in enumerate(ordered_ids):
                category = existing.get(category_id)
                if category is None:
                    continue
                category.display_order = position
                count += 1
            await db.flush()
        logger.info(f"Reordenadas {count} categorías")
        return count

    # ========================================
    # MÉTODOS AUXILIARES
    # ========================================

    async def _check_parent(self, db: AsyncSession, category_id: int, parent_id: Optional[int]) -> None:
        """Valida que parent_id exista y no cree un ciclo. Lanza ValidationError o InvalidMoveError."""
        if parent_id is None:
            return
        if not await self.is_valid_parent(db, category_id, parent_id):
            raise InvalidMoveError(category_id, parent_id)
        exists, _ = await category_crud.get_parent_id(db, parent_id)
        if not exists:
            raise ValidationError(f"La categoría padre {parent_id} no existe")

    async def _check_name_available(self, db: AsyncSession, name: str, category_id: int) -> None:
        """Reactivar una categoría no puede duplicar el nombre de otra activa."""
        if await category_crud.name_exists(db, name, exclude_id=category_id):
            raise ValidationError(f"Ya existe una categoría activa con el nombre '{name}'")

    async def _check_names_for_activation(self, db: AsyncSession, categories: Sequence[Category]) -> None:
        seen = set()
        for category in categories:
            key = category.name.lower()
            if key in seen:
                raise ValidationError(f"El lote activaría dos categorías con el nombre '{category.name}'")
            seen.add(key)
            if not category.is_active:
                await self._check_name_available(db, category.name, category.category_id)

    async def _unique_slug(self, db: AsyncSession, text: str, exclude_id: Optional[int] = None) -> str:
        return await ensure_unique_slug(
            generate_slug(text),
            lambda candidate: category_crud.slug_exists(db, candidate, exclude_id=exclude_id),
        )

    async def _retire(self, db: AsyncSession, category: Category) -> RetireOutcome:
        category_id = category.category_id

        async def has_dependents() -> bool:
            # Los productos inactivos también bloquean el borrado físico: siguen referenciando la fila
            return (
                await category_crud.has_active_children(db, category_id)
                or await category_crud.count_products(db, [category_id], active_only=False) > 0
            )

        async def deactivate() -> None:
            await category_crud.update_category(db, category, {"is_active": False})

        async def hard_delete() -> None:
            await category_crud.delete_category(db, category)

        return await retire(f"Categoría {category_id}", has_dependents, deactivate, hard_delete)


category_service = CategoryService()
