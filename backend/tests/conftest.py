# backend/tests/conftest.py
"""
Fixtures comunes: base de datos SQLite en memoria por test, almacén de
imágenes en memoria y cliente HTTP contra la aplicación.
"""

import os

os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOG_FILE_PATH", "")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api import deps
from app.db.database import Base
from app.db import models  # noqa: F401  registra todos los modelos en Base.metadata
from app.main import app

from .factories import InMemoryImageStore, make_brand, make_category


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def image_store():
    return InMemoryImageStore()


@pytest.fixture
async def catalog_refs(db):
    """IDs de una categoría y una marca mínimas que todo producto necesita."""
    category = await make_category(db, "General")
    brand = await make_brand(db)
    return category.category_id, brand.brand_id


@pytest.fixture
async def client(session_factory, image_store):
    """Cliente HTTP contra la app con la base de datos y el almacén de test."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_image_store] = lambda: image_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client
    app.dependency_overrides.clear()
