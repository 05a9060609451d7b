# backend/app/db/models/category_model.py
"""
Se encarga de definir el modelo de categoría para la aplicación.

Las categorías forman un bosque: parent_id es una referencia débil a otra
categoría (nullable, sin propiedad) y varias raíces son posibles.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(Base):
    __tablename__ = "categories"

    category_id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    icon = Column(String(100), nullable=True)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    parent_id = Column(Integer, ForeignKey("categories.category_id", ondelete="SET NULL"), nullable=True, index=True)

    # passive_deletes: el borrado físico nunca carga hijos ni productos;
    # el servicio ya ha comprobado dependientes antes de borrar.
    children = relationship("Category", back_populates="parent", passive_deletes=True)
    parent = relationship("Category", remote_side=[category_id], back_populates="children")
    products = relationship("Product", back_populates="category", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Category id={self.category_id} slug={self.slug!r} parent={self.parent_id}>"
