# backend/tests/test_category_service.py
"""
Tests del motor de jerarquía de categorías: acíclicidad, slugs, borrado
lógico frente a físico y operaciones masivas.
"""

import random

import pytest

from app.core.exceptions import InvalidMoveError, NotFoundError, ValidationError
from app.schemas import category_schema
from app.services.category_service import category_service
from app.services.lifecycle import RetireOutcome

from .factories import make_brand, make_category, make_product


async def _parent_map(db):
    categories = await category_service.list_categories(db, page_size=100)
    return {c.category_id: c.parent_id for c in categories.items}


def _assert_forest(parents):
    for start in parents:
        seen = set()
        node = start
        while node is not None:
            assert node not in seen, f"ciclo alcanzable desde {start}"
            seen.add(node)
            node = parents.get(node)


# ========================================
# CREACIÓN Y SLUGS
# ========================================

async def test_create_category_generates_slug(db):
    category = await make_category(db, "Herramientas Eléctricas")
    assert category.slug == "herramientas-electricas"
    assert category.is_active is True
    assert category.parent_id is None


async def test_slug_deduplicated_with_numeric_suffix(db):
    first = await make_category(db, "Phones")
    first_id = first.category_id
    await category_service.toggle_status(db, first_id)

    second = await make_category(db, "Phones")
    assert second.slug == "phones-1"

    third = await make_category(db, "Mobile", slug="Phones")
    assert third.slug == "phones-2"


async def test_create_rejects_duplicate_active_name_case_insensitive(db):
    await make_category(db, "Phones")
    with pytest.raises(ValidationError):
        await make_category(db, "PHONES")


async def test_create_rejects_missing_parent(db):
    with pytest.raises(ValidationError):
        await make_category(db, "Huérfana", parent_id=999)


async def test_update_regenerates_slug_only_when_name_changes(db):
    category = await make_category(db, "Tools")
    category_id = category.category_id

    updated = await category_service.update_category(
        db, category_id, category_schema.CategoryUpdate(description="Todo tipo de herramientas")
    )
    assert updated.slug == "tools"

    updated = await category_service.update_category(
        db, category_id, category_schema.CategoryUpdate(name="Hand Tools")
    )
    assert updated.slug == "hand-tools"


async def test_reactivation_rejects_duplicate_name(db):
    old = await make_category(db, "Garden")
    old_id = old.category_id
    await category_service.toggle_status(db, old_id)
    await make_category(db, "Garden")

    with pytest.raises(ValidationError):
        await category_service.toggle_status(db, old_id)


# ========================================
# ACICLICIDAD: UPDATE Y MOVE
# ========================================

async def test_update_rejects_self_and_descendant_as_parent(db):
    a = await make_category(db, "A")
    b = await make_category(db, "B", parent_id=a.category_id)
    c = await make_category(db, "C", parent_id=b.category_id)
    a_id, c_id = a.category_id, c.category_id

    with pytest.raises(InvalidMoveError):
        await category_service.update_category(db, a_id, category_schema.CategoryUpdate(parent_id=a_id))
    with pytest.raises(InvalidMoveError):
        await category_service.update_category(db, a_id, category_schema.CategoryUpdate(parent_id=c_id))

    assert (await category_service.get_category(db, a_id)).parent_id is None


async def test_update_with_null_parent_makes_root(db):
    a = await make_category(db, "A")
    b = await make_category(db, "B", parent_id=a.category_id)
    b_id = b.category_id

    updated = await category_service.update_category(db, b_id, category_schema.CategoryUpdate(parent_id=None))
    assert updated.parent_id is None


async def test_move_under_descendant_returns_false_and_keeps_graph(db):
    a = await make_category(db, "A")
    b = await make_category(db, "B", parent_id=a.category_id)
    a_id, b_id = a.category_id, b.category_id
    before = await _parent_map(db)

    assert await category_service.move_category(db, a_id, b_id, 0) is False
    assert await category_service.move_category(db, a_id, 999, 0) is False
    assert await _parent_map(db) == before


async def test_move_missing_category_raises_not_found(db):
    with pytest.raises(NotFoundError):
        await category_service.move_category(db, 999, None, 0)


async def test_move_sets_parent_and_order(db):
    a = await make_category(db, "A")
    b = await make_category(db, "B")
    b_id = b.category_id

    assert await category_service.move_category(db, b_id, a.category_id, 7) is True
    moved = await category_service.get_category(db, b_id)
    assert moved.parent_id == a.category_id
    assert moved.display_order == 7


async def test_random_moves_never_create_cycles(db):
    ids = []
    for index in range(8):
        parent = ids[index // 2] if index else None
        category = await make_category(db, f"Nodo {index}", parent_id=parent)
        ids.append(category.category_id)

    rng = random.Random(1234)
    for _ in range(60):
        category_id = rng.choice(ids)
        parent_id = rng.choice(ids + [None])
        await category_service.move_category(db, category_id, parent_id, 0)
        _assert_forest(await _parent_map(db))


async def test_is_valid_parent(db):
    a = await make_category(db, "A")
    b = await make_category(db, "B", parent_id=a.category_id)

    assert await category_service.is_valid_parent(db, a.category_id, None) is True
    assert await category_service.is_valid_parent(db, a.category_id, a.category_id) is False
    assert await category_service.is_valid_parent(db, a.category_id, b.category_id) is False
    assert await category_service.is_valid_parent(db, b.category_id, a.category_id) is True


# ========================================
# LECTURAS JERÁRQUICAS
# ========================================

async def test_breadcrumb_goes_from_root_to_leaf(db):
    a = await make_category(db, "Hogar")
    b = await make_category(db, "Cocina", parent_id=a.category_id)
    c = await make_category(db, "Sartenes", parent_id=b.category_id)

    breadcrumb = await category_service.get_breadcrumb(db, c.category_id)
    assert [item.name for item in breadcrumb] == ["Hogar", "Cocina", "Sartenes"]
    assert await category_service.get_level(db, c.category_id) == 2
    assert await category_service.get_level(db, a.category_id) == 0


async def test_tree_nests_orders_and_counts_products(db):
    root = await make_category(db, "Root")
    second = await make_category(db, "Zeta", parent_id=root.category_id, display_order=0)
    first = await make_category(db, "Alfa", parent_id=root.category_id, display_order=0)
    leaf = await make_category(db, "Hoja", parent_id=first.category_id)
    brand = await make_brand(db)
    await make_product(db, leaf.category_id, brand.brand_id, sku="P-1")
    await make_product(db, leaf.category_id, brand.brand_id, sku="P-2")

    tree = await category_service.get_tree(db)
    assert [node.name for node in tree] == ["Root"]
    assert tree[0].level == 0
    assert [child.name for child in tree[0].children] == ["Alfa", "Zeta"]
    alfa = tree[0].children[0]
    assert alfa.children[0].category_id == leaf.category_id
    assert alfa.children[0].level == 2
    assert alfa.children[0].active_product_count == 2
    assert tree[0].children[1].category_id == second.category_id


async def test_tree_active_only_hides_inactive_subtrees(db):
    root = await make_category(db, "Root")
    hidden = await make_category(db, "Oculta", parent_id=root.category_id)
    await make_category(db, "Nieta", parent_id=hidden.category_id)
    await category_service.toggle_status(db, hidden.category_id)

    tree = await category_service.get_tree(db, active_only=True)
    assert tree[0].children == []

    full = await category_service.get_tree(db, active_only=False)
    assert full[0].children[0].children[0].name == "Nieta"


async def test_has_products_includes_subcategories(db):
    parent = await make_category(db, "Padre")
    child = await make_category(db, "Hijo", parent_id=parent.category_id)
    brand = await make_brand(db)
    await make_product(db, child.category_id, brand.brand_id)

    assert await category_service.has_products(db, parent.category_id) is True
    assert await category_service.has_products(db, parent.category_id, include_subcategories=False) is False


async def test_list_rejects_roots_only_with_parent(db):
    with pytest.raises(ValidationError):
        await category_service.list_categories(db, parent_id=1, roots_only=True)


# ========================================
# BORRADO Y OPERACIONES MASIVAS
# ========================================

async def test_delete_with_active_child_is_soft(db):
    parent = await make_category(db, "Padre")
    child = await make_category(db, "Hijo", parent_id=parent.category_id)
    parent_id, child_id = parent.category_id, child.category_id

    assert await category_service.retire_category(db, parent_id) is RetireOutcome.DEACTIVATED
    assert (await category_service.get_category(db, parent_id)).is_active is False
    child = await category_service.get_category(db, child_id)
    assert child.is_active is True
    assert child.parent_id == parent_id


async def test_delete_with_products_is_soft(db):
    category = await make_category(db, "Con productos")
    brand = await make_brand(db)
    await make_product(db, category.category_id, brand.brand_id)

    assert await category_service.retire_category(db, category.category_id) is RetireOutcome.DEACTIVATED


async def test_delete_without_dependents_removes_row(db):
    category = await make_category(db, "Vacía")
    category_id = category.category_id

    assert await category_service.delete_category(db, category_id) is True
    with pytest.raises(NotFoundError):
        await category_service.get_category(db, category_id)
    assert await category_service.delete_category(db, category_id) is False


async def test_bulk_delete_respects_given_order(db):
    parent = await make_category(db, "Padre")
    child = await make_category(db, "Hijo", parent_id=parent.category_id)
    parent_id, child_id = parent.category_id, child.category_id

    assert await category_service.bulk_delete(db, [child_id, child_id, parent_id, 999]) == 2
    remaining = await _parent_map(db)
    assert parent_id not in remaining
    assert child_id not in remaining


async def test_bulk_toggle_status_counts_existing(db):
    a = await make_category(db, "A")
    b = await make_category(db, "B")

    assert await category_service.bulk_toggle_status(db, [a.category_id, b.category_id, 999], False) == 2
    assert (await category_service.get_category(db, a.category_id)).is_active is False


async def test_bulk_activation_rejects_name_taken_by_active_category(db):
    first = await make_category(db, "Phones")
    first_id = first.category_id
    await category_service.toggle_status(db, first_id)
    await make_category(db, "phones")

    with pytest.raises(ValidationError):
        await category_service.bulk_toggle_status(db, [first_id], True)

    active = await category_service.list_categories(db, is_active=True, page_size=100)
    assert [c.name.lower() for c in active.items] == ["phones"]


async def test_bulk_activation_rejects_duplicate_names_within_batch(db):
    ids = []
    for name in ("Tablets", "tablets"):
        category = await make_category(db, name)
        ids.append(category.category_id)
        await category_service.toggle_status(db, category.category_id)

    with pytest.raises(ValidationError):
        await category_service.bulk_toggle_status(db, ids, True)

    for category_id in ids:
        assert (await category_service.get_category(db, category_id)).is_active is False


async def test_reorder_assigns_positions_and_is_idempotent(db):
    ids = [(await make_category(db, name)).category_id for name in ("Uno", "Dos", "Tres")]
    ordered = [ids[2], ids[0], ids[1]]

    assert await category_service.reorder(db, ordered + [999]) == 3
    first = {cid: (await category_service.get_category(db, cid)).display_order for cid in ids}
    await category_service.reorder(db, ordered)
    second = {cid: (await category_service.get_category(db, cid)).display_order for cid in ids}

    assert first == second == {ids[2]: 0, ids[0]: 1, ids[1]: 2}


async def test_stats(db):
    root = await make_category(db, "Root")
    child = await make_category(db, "Child", parent_id=root.category_id)
    brand = await make_brand(db)
    await make_product(db, child.category_id, brand.brand_id)

    stats = await category_service.get_stats(db)
    assert stats.total == 2
    assert stats.roots == 1
    assert stats.with_children == 1
    assert stats.with_products == 1
    assert stats.without_products == 1
    assert stats.max_depth == 1
    assert stats.top_by_products[0].category_id == child.category_id
