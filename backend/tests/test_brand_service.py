# backend/tests/test_brand_service.py

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.services.brand_service import brand_service
from app.services.catalog_service import catalog_service
from app.services.lifecycle import RetireOutcome

from .factories import make_brand, make_category, make_product


async def test_brand_name_is_unique_case_insensitive(db):
    await make_brand(db, "Bosch")
    with pytest.raises(ValidationError):
        await make_brand(db, "BOSCH")


async def test_brand_with_products_is_deactivated(db):
    category = await make_category(db, "General")
    brand = await make_brand(db)
    brand_id = brand.brand_id
    product = await make_product(db, category.category_id, brand_id)

    # Un producto inactivo también impide el borrado físico
    await catalog_service.delete_product(db, product.product_id)

    assert await brand_service.delete_brand(db, brand_id) is RetireOutcome.DEACTIVATED
    assert (await brand_service.get_brand(db, brand_id)).is_active is False


async def test_brand_without_products_is_deleted(db):
    brand = await make_brand(db)
    brand_id = brand.brand_id

    assert await brand_service.delete_brand(db, brand_id) is RetireOutcome.DELETED
    assert await brand_service.delete_brand(db, brand_id) is None
    with pytest.raises(NotFoundError):
        await brand_service.get_brand(db, brand_id)
