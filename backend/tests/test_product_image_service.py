# backend/tests/test_product_image_service.py
"""
Tests del motor de imágenes: una única principal por grupo (producto,
variante), promoción al borrar y lotes todo-o-nada.
"""

import pydantic
import pytest

from app.core.exceptions import DuplicateUrlError, NotFoundError, ValidationError
from app.crud import product_crud
from app.db.database import transaction
from app.schemas import image_schema
from app.services.product_image_service import product_image_service

from .factories import make_bare_product


@pytest.fixture
async def product_id(db, catalog_refs):
    category_id, brand_id = catalog_refs
    product = await make_bare_product(db, category_id, brand_id)
    return product.product_id


async def _add(db, product_id, url, **fields):
    return await product_image_service.create_image(
        db, image_schema.ProductImageCreate(product_id=product_id, url=url, **fields)
    )


async def _principals(db, product_id, variant_id=None):
    images = await product_image_service.list_by_product(db, product_id)
    return [i.image_id for i in images if i.is_principal and i.variant_id == variant_id]


# ========================================
# ALTAS
# ========================================

async def test_first_active_image_becomes_principal(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    second = await _add(db, product_id, "https://img.test/2.jpg")

    assert first.is_principal is True
    assert second.is_principal is False
    assert (first.display_order, second.display_order) == (1, 2)


async def test_inactive_first_image_is_not_principal(db, product_id):
    image = await _add(db, product_id, "https://img.test/1.jpg", is_active=False)
    assert image.is_principal is False


async def test_create_as_principal_clears_previous(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    second = await _add(db, product_id, "https://img.test/2.jpg", is_principal=True)

    assert await _principals(db, product_id) == [second.image_id]
    assert first.is_principal is False


async def test_principal_request_forces_active(db, product_id):
    image = await _add(db, product_id, "https://img.test/1.jpg", is_principal=True, is_active=False)
    assert image.is_principal is True
    assert image.is_active is True


async def test_create_rejects_duplicate_url(db, product_id):
    await _add(db, product_id, "https://img.test/1.jpg")
    with pytest.raises(DuplicateUrlError):
        await _add(db, product_id, "https://img.test/1.jpg")


async def test_create_for_missing_product_raises_not_found(db):
    with pytest.raises(NotFoundError):
        await _add(db, 999, "https://img.test/x.jpg")


async def test_variant_groups_are_independent(db, product_id):
    async with transaction(db):
        variant = await product_crud.create_variant(db, product_id, "SKU-1-RED", "Rojo")
    variant_id = variant.variant_id

    base = await _add(db, product_id, "https://img.test/base.jpg")
    red = await _add(db, product_id, "https://img.test/red.jpg", variant_id=variant_id)

    assert base.is_principal is True
    assert red.is_principal is True
    assert await _principals(db, product_id) == [base.image_id]
    assert await _principals(db, product_id, variant_id) == [red.image_id]


async def test_variant_of_other_product_is_rejected(db, catalog_refs, product_id):
    category_id, brand_id = catalog_refs
    other = await make_bare_product(db, category_id, brand_id, sku="SKU-2")
    other_id = other.product_id
    async with transaction(db):
        variant = await product_crud.create_variant(db, other_id, "SKU-2-BLUE", "Azul")
    variant_id = variant.variant_id

    with pytest.raises(ValidationError):
        await _add(db, product_id, "https://img.test/blue.jpg", variant_id=variant_id)


# ========================================
# BAJAS Y PROMOCIÓN
# ========================================

async def test_delete_principal_promotes_lowest_order(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    await _add(db, product_id, "https://img.test/3.jpg", display_order=3)
    second = await _add(db, product_id, "https://img.test/2.jpg", display_order=2)
    first_id = first.image_id

    assert await product_image_service.delete_image(db, first_id) is True
    assert await _principals(db, product_id) == [second.image_id]
    assert await product_image_service.delete_image(db, first_id) is False


async def test_delete_last_image_leaves_group_empty(db, product_id):
    image = await _add(db, product_id, "https://img.test/1.jpg")

    assert await product_image_service.delete_image(db, image.image_id) is True
    assert await product_image_service.get_principal(db, product_id) is None


# ========================================
# PRINCIPAL Y ESTADO
# ========================================

async def test_set_principal_switches_and_activates(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    hidden = await _add(db, product_id, "https://img.test/2.jpg", is_active=False)

    assert await product_image_service.set_principal(db, product_id, hidden.image_id) is True
    assert await _principals(db, product_id) == [hidden.image_id]
    assert hidden.is_active is True
    assert first.is_principal is False


async def test_set_principal_rejects_foreign_image(db, catalog_refs, product_id):
    category_id, brand_id = catalog_refs
    other = await make_bare_product(db, category_id, brand_id, sku="SKU-2")
    foreign = await _add(db, other.product_id, "https://img.test/foreign.jpg")

    assert await product_image_service.set_principal(db, product_id, foreign.image_id) is False
    assert await product_image_service.set_principal(db, product_id, 999) is False


async def test_toggle_principal_clears_flag_without_promotion(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    second = await _add(db, product_id, "https://img.test/2.jpg")

    assert await product_image_service.toggle_active(db, first.image_id) is True
    assert first.is_active is False
    assert first.is_principal is False
    assert await _principals(db, product_id) == []

    # La lectura recurre a la primera imagen activa
    principal = await product_image_service.get_principal(db, product_id)
    assert principal.image_id == second.image_id
    assert await product_image_service.toggle_active(db, 999) is False


async def test_toggle_reactivation_restores_principal(db, product_id):
    image = await _add(db, product_id, "https://img.test/1.jpg", is_active=False)

    await product_image_service.toggle_active(db, image.image_id)
    assert await _principals(db, product_id) == [image.image_id]


async def test_get_principal_falls_back_to_whole_product(db, product_id):
    async with transaction(db):
        variant = await product_crud.create_variant(db, product_id, "SKU-1-RED", "Rojo")
    red = await _add(db, product_id, "https://img.test/red.jpg", variant_id=variant.variant_id)

    principal = await product_image_service.get_principal(db, product_id)
    assert principal.image_id == red.image_id


async def test_update_unsetting_principal_promotes_another(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    second = await _add(db, product_id, "https://img.test/2.jpg")

    await product_image_service.update_image(
        db, first.image_id, image_schema.ProductImageUpdate(is_principal=False)
    )
    assert await _principals(db, product_id) == [second.image_id]


async def test_update_deactivating_principal_promotes_another(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    second = await _add(db, product_id, "https://img.test/2.jpg")

    updated = await product_image_service.update_image(
        db, first.image_id, image_schema.ProductImageUpdate(is_active=False)
    )
    assert updated.is_principal is False
    assert await _principals(db, product_id) == [second.image_id]


async def test_update_reactivating_only_image_makes_it_principal(db, product_id):
    image = await _add(db, product_id, "https://img.test/1.jpg", is_active=False)

    updated = await product_image_service.update_image(
        db, image.image_id, image_schema.ProductImageUpdate(is_active=True)
    )
    assert updated.is_principal is True
    assert await _principals(db, product_id) == [image.image_id]


async def test_update_multiple_reactivation_makes_image_principal(db, product_id):
    image = await _add(db, product_id, "https://img.test/1.jpg", is_active=False)
    image_id = image.image_id

    await product_image_service.update_multiple(
        db, product_id, [image_schema.ProductImageBatchItem(image_id=image_id, is_active=True)]
    )
    assert await _principals(db, product_id) == [image_id]


async def _assert_single_principal(db, product_id):
    groups = {}
    for image in await product_image_service.list_by_product(db, product_id):
        groups.setdefault(image.variant_id, []).append(image)
    for images in groups.values():
        principals = [i for i in images if i.is_principal]
        assert all(i.is_active for i in principals)
        if any(i.is_active for i in images):
            assert len(principals) == 1
        else:
            assert principals == []


async def test_mixed_write_sequence_keeps_single_principal(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg", is_active=False)
    first_id = first.image_id
    await _assert_single_principal(db, product_id)

    await product_image_service.update_image(db, first_id, image_schema.ProductImageUpdate(is_active=True))
    await _assert_single_principal(db, product_id)

    second = await _add(db, product_id, "https://img.test/2.jpg")
    second_id = second.image_id
    await _assert_single_principal(db, product_id)

    await product_image_service.toggle_active(db, second_id)
    await _assert_single_principal(db, product_id)
    await product_image_service.toggle_active(db, second_id)
    await _assert_single_principal(db, product_id)

    await product_image_service.set_principal(db, product_id, second_id)
    await _assert_single_principal(db, product_id)
    assert await _principals(db, product_id) == [second_id]

    await product_image_service.delete_image(db, second_id)
    await _assert_single_principal(db, product_id)
    assert await _principals(db, product_id) == [first_id]

    await product_image_service.update_multiple(
        db,
        product_id,
        [
            image_schema.ProductImageBatchItem(image_id=first_id, is_active=False),
            image_schema.ProductImageBatchItem(url="https://img.test/3.jpg"),
        ],
    )
    await _assert_single_principal(db, product_id)
    assert len(await _principals(db, product_id)) == 1


async def test_unsetting_only_active_principal_keeps_it(db, product_id):
    image = await _add(db, product_id, "https://img.test/1.jpg")

    await product_image_service.update_image(
        db, image.image_id, image_schema.ProductImageUpdate(is_principal=False)
    )
    assert await _principals(db, product_id) == [image.image_id]


async def test_update_rejects_url_of_other_image(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    await _add(db, product_id, "https://img.test/2.jpg")

    with pytest.raises(DuplicateUrlError):
        await product_image_service.update_image(
            db, first.image_id, image_schema.ProductImageUpdate(url="https://img.test/2.jpg")
        )


# ========================================
# LOTES
# ========================================

async def test_create_multiple_rejects_two_principals_without_writing(db, product_id):
    items = [
        image_schema.ProductImageBase(url="https://img.test/a.jpg", is_principal=True),
        image_schema.ProductImageBase(url="https://img.test/b.jpg", is_principal=True),
    ]
    with pytest.raises(ValidationError):
        await product_image_service.create_multiple(db, product_id, items)
    assert await product_image_service.product_has_images(db, product_id) is False


async def test_create_multiple_rejects_existing_url_without_writing(db, product_id):
    await _add(db, product_id, "https://img.test/a.jpg")
    items = [
        image_schema.ProductImageBase(url="https://img.test/b.jpg"),
        image_schema.ProductImageBase(url="https://img.test/a.jpg"),
    ]
    with pytest.raises(DuplicateUrlError):
        await product_image_service.create_multiple(db, product_id, items)
    assert len(await product_image_service.list_by_product(db, product_id)) == 1


async def test_create_multiple_keeps_single_principal(db, product_id):
    items = [
        image_schema.ProductImageBase(url="https://img.test/a.jpg"),
        image_schema.ProductImageBase(url="https://img.test/b.jpg", is_principal=True),
        image_schema.ProductImageBase(url="https://img.test/c.jpg"),
    ]
    created = await product_image_service.create_multiple(db, product_id, items)

    assert await _principals(db, product_id) == [created[1].image_id]
    assert [image.display_order for image in created] == [1, 2, 3]


async def test_update_multiple_mixed_batch(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    second = await _add(db, product_id, "https://img.test/2.jpg")
    first_id, second_id = first.image_id, second.image_id

    result = await product_image_service.update_multiple(
        db,
        product_id,
        [
            image_schema.ProductImageBatchItem(image_id=first_id, delete=True),
            image_schema.ProductImageBatchItem(image_id=second_id, alt_text="Vista lateral"),
            image_schema.ProductImageBatchItem(url="https://img.test/3.jpg"),
        ],
    )

    assert [image.url for image in result] == ["https://img.test/2.jpg", "https://img.test/3.jpg"]
    assert result[0].alt_text == "Vista lateral"
    assert await _principals(db, product_id) == [second_id]


async def test_update_multiple_counts_only_surviving_principals(db, product_id):
    first = await _add(db, product_id, "https://img.test/1.jpg")
    second = await _add(db, product_id, "https://img.test/2.jpg")
    first_id, second_id = first.image_id, second.image_id

    await product_image_service.update_multiple(
        db,
        product_id,
        [
            image_schema.ProductImageBatchItem(image_id=first_id, is_principal=True, delete=True),
            image_schema.ProductImageBatchItem(image_id=second_id, is_principal=True),
        ],
    )
    assert await _principals(db, product_id) == [second_id]

    with pytest.raises(ValidationError):
        await product_image_service.update_multiple(
            db,
            product_id,
            [
                image_schema.ProductImageBatchItem(image_id=second_id, is_principal=True),
                image_schema.ProductImageBatchItem(url="https://img.test/9.jpg", is_principal=True),
            ],
        )


async def test_update_multiple_rejects_foreign_image_without_writing(db, catalog_refs, product_id):
    category_id, brand_id = catalog_refs
    other = await make_bare_product(db, category_id, brand_id, sku="SKU-2")
    foreign = await _add(db, other.product_id, "https://img.test/foreign.jpg")
    foreign_id = foreign.image_id

    with pytest.raises(ValidationError):
        await product_image_service.update_multiple(
            db,
            product_id,
            [
                image_schema.ProductImageBatchItem(url="https://img.test/new.jpg"),
                image_schema.ProductImageBatchItem(image_id=foreign_id, delete=True),
            ],
        )
    assert await product_image_service.product_has_images(db, product_id) is False
    assert await product_image_service.exists_by_url(db, "https://img.test/foreign.jpg") is True


async def test_update_order_skips_foreign_ids(db, catalog_refs, product_id):
    category_id, brand_id = catalog_refs
    first = await _add(db, product_id, "https://img.test/1.jpg")
    second = await _add(db, product_id, "https://img.test/2.jpg")
    other = await make_bare_product(db, category_id, brand_id, sku="SKU-2")
    foreign = await _add(db, other.product_id, "https://img.test/foreign.jpg")

    count = await product_image_service.update_order(
        db,
        product_id,
        [
            image_schema.ImageOrderItem(image_id=first.image_id, display_order=20),
            image_schema.ImageOrderItem(image_id=second.image_id, display_order=10),
            image_schema.ImageOrderItem(image_id=foreign.image_id, display_order=5),
            image_schema.ImageOrderItem(image_id=999, display_order=1),
        ],
    )

    assert count == 2
    images = await product_image_service.list_by_product(db, product_id)
    assert [image.image_id for image in images] == [second.image_id, first.image_id]
    assert foreign.display_order == 1


@pytest.mark.parametrize("position", [0, -5])
def test_order_item_requires_positive_position(position):
    with pytest.raises(pydantic.ValidationError):
        image_schema.ImageOrderItem(image_id=1, display_order=position)


async def test_stats(db, product_id):
    await _add(db, product_id, "https://img.test/1.jpg")
    await _add(db, product_id, "https://img.test/2.jpg", is_active=False)

    stats = await product_image_service.get_stats(db, product_id)
    assert stats.total == 2
    assert stats.active == 1
    assert stats.inactive == 1
    assert stats.principal == 1
    assert stats.has_principal is True


async def test_list_by_variant_and_delete_all(db, product_id):
    async with transaction(db):
        variant = await product_crud.create_variant(db, product_id, "SKU-1-RED", "Rojo")
    variant_id = variant.variant_id
    await _add(db, product_id, "https://img.test/base.jpg")
    red = await _add(db, product_id, "https://img.test/red.jpg", variant_id=variant_id)

    assert [image.image_id for image in await product_image_service.list_by_variant(db, variant_id)] == [red.image_id]
    assert await product_image_service.delete_all_by_product(db, product_id) == 2
    assert await product_image_service.product_has_images(db, product_id) is False
