# backend/app/db/models/product_model.py
"""
Modelos de producto, variante e imagen de producto.

Las imágenes pertenecen en exclusiva a su producto y se agrupan por
(product_id, variant_id); variant_id NULL forma su propio grupo. Dentro de
cada grupo como mucho una imagen tiene is_principal = True.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, ForeignKey, Text, Numeric, Boolean, DateTime, Index
from sqlalchemy.orm import relationship

from app.db.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"

    product_id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(50), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(280), nullable=False, unique=True, index=True)
    short_description = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    category_id = Column(Integer, ForeignKey("categories.category_id", ondelete="RESTRICT"), nullable=False, index=True)
    brand_id = Column(Integer, ForeignKey("brands.brand_id", ondelete="RESTRICT"), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    category = relationship("Category", back_populates="products")
    brand = relationship("Brand", back_populates="products")
    variants = relationship("ProductVariant", back_populates="product", passive_deletes=True)
    images = relationship("ProductImage", back_populates="product", passive_deletes=True)
    inventory = relationship("Inventory", back_populates="product", passive_deletes=True)


class ProductVariant(Base):
    __tablename__ = "product_variants"

    variant_id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False, index=True)
    sku = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    product = relationship("Product", back_populates="variants")


class ProductImage(Base):
    __tablename__ = "product_images"

    image_id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.product_id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.variant_id", ondelete="SET NULL"), nullable=True)
    url = Column(String(500), nullable=False, unique=True, index=True)
    alt_text = Column(String(255), nullable=True)
    display_order = Column(Integer, nullable=False, default=1)
    is_principal = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    product = relationship("Product", back_populates="images")

    __table_args__ = (
        Index("ix_product_images_group", "product_id", "variant_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProductImage id={self.image_id} product={self.product_id} variant={self.variant_id} "
            f"order={self.display_order} principal={self.is_principal} active={self.is_active}>"
        )
