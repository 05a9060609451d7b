# backend/app/schemas/product_schema.py
"""
Esquemas Pydantic para el modelo Product.

Un producto se crea siempre con al menos una imagen: el catálogo nunca deja un
producto sin imagen.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .image_schema import ProductImageBase, ProductImageBatchItem, ProductImageResponse

# ========================================
# ESQUEMA BASE
# ========================================

class ProductBase(BaseModel):
    """Propiedades comunes compartidas entre esquemas de producto."""
    name: str = Field(..., min_length=1, max_length=255)
    short_description: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    category_id: int
    brand_id: int


# ========================================
# ESQUEMAS PARA OPERACIONES
# ========================================

class ProductCreate(ProductBase):
    """Esquema para crear un nuevo producto con su lote inicial de imágenes e inventario."""
    sku: str = Field(..., min_length=1, max_length=50)
    images: List[ProductImageBase] = Field(..., min_length=1)
    initial_stock: int = Field(0, ge=0)
    min_stock: int = Field(0, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("El SKU no puede estar vacío")
        return value


class ProductUpdate(BaseModel):
    """Esquema para actualizar un producto. Todos los campos son opcionales."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    short_description: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    is_active: Optional[bool] = None
    images: Optional[List[ProductImageBatchItem]] = None


# ========================================
# ESQUEMAS DE RESPUESTA
# ========================================

class ProductResponse(ProductBase):
    """Esquema para las respuestas de la API al leer productos."""
    product_id: int
    sku: str
    slug: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProductDetailResponse(ProductResponse):
    """Producto con sus imágenes, la URL principal resuelta y el stock total."""
    images: List[ProductImageResponse] = Field(default_factory=list)
    principal_image_url: Optional[str] = None
    total_stock: int = 0
