# backend/app/schemas/image_schema.py
"""
Se encarga de definir los esquemas Pydantic para el modelo ProductImage.

display_order <= 0 significa "añadir al final": el servicio asigna
max(display_order del producto) + 1.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ========================================
# ESQUEMA BASE
# ========================================

def _clean_url(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("La URL no puede estar vacía")
    return value


class ProductImageBase(BaseModel):
    """Propiedades comunes compartidas entre esquemas de imagen."""
    url: str = Field(..., max_length=500)
    alt_text: Optional[str] = Field(None, max_length=255)  # Texto alternativo para accesibilidad
    display_order: int = 0
    is_principal: bool = False
    is_active: bool = True
    variant_id: Optional[int] = None

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, value: str) -> str:
        return _clean_url(value)


# ========================================
# ESQUEMAS PARA OPERACIONES
# ========================================

class ProductImageCreate(ProductImageBase):
    """Esquema para crear una imagen suelta de un producto."""
    product_id: int


class ProductImageUpdate(BaseModel):
    """Esquema para actualizar una imagen. Todos los campos son opcionales."""
    url: Optional[str] = Field(None, max_length=500)
    alt_text: Optional[str] = Field(None, max_length=255)
    display_order: Optional[int] = None
    is_principal: Optional[bool] = None
    is_active: Optional[bool] = None

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, value: Optional[str]) -> Optional[str]:
        return _clean_url(value)


class ProductImageBatchItem(BaseModel):
    """
    Elemento de un lote de actualización de imágenes.

    - Sin image_id: se crea una imagen nueva (url obligatoria).
    - Con image_id y delete=False: se actualizan los campos enviados.
    - Con image_id y delete=True: se elimina la imagen.
    """
    image_id: Optional[int] = None
    url: Optional[str] = Field(None, max_length=500)
    alt_text: Optional[str] = Field(None, max_length=255)
    display_order: Optional[int] = None
    is_principal: Optional[bool] = None
    is_active: Optional[bool] = None
    variant_id: Optional[int] = None
    delete: bool = False

    @field_validator("url")
    @classmethod
    def url_not_blank(cls, value: Optional[str]) -> Optional[str]:
        return _clean_url(value)

    @model_validator(mode="after")
    def check_consistency(self) -> "ProductImageBatchItem":
        if self.image_id is None and self.delete:
            raise ValueError("No se puede eliminar una imagen sin image_id")
        if self.image_id is None and not self.url:
            raise ValueError("Las imágenes nuevas requieren url")
        return self


class ImageOrderItem(BaseModel):
    image_id: int
    display_order: int = Field(..., gt=0)  # Posición explícita; aquí no hay "añadir al final"


class ImageOrderUpdate(BaseModel):
    items: List[ImageOrderItem] = Field(..., min_length=1)


class ProductImageBatchCreate(BaseModel):
    images: List[ProductImageBase] = Field(..., min_length=1)


class ProductImageBatchUpdate(BaseModel):
    images: List[ProductImageBatchItem] = Field(..., min_length=1)


# ========================================
# ESQUEMAS DE RESPUESTA
# ========================================

class ProductImageResponse(ProductImageBase):
    """Esquema para las respuestas de la API al leer imágenes."""
    image_id: int  # ID único de la imagen (viene de la base de datos)
    product_id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)  # Permite que Pydantic lea datos directamente desde modelos SQLAlchemy


class ProductImageStats(BaseModel):
    product_id: int
    total: int
    active: int
    inactive: int
    principal: int
    with_variant: int
    has_principal: bool
