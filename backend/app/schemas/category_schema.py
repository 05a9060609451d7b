# backend/app/schemas/category_schema.py

"""
Esquemas Pydantic para el modelo Category.

Los esquemas definen la estructura de datos que fluye a través de la API:
- Validación automática de tipos de datos
- Serialización/deserialización JSON
- Documentación automática en OpenAPI/Swagger
- Separación entre modelo de base de datos y API

Patrón de esquemas utilizado:
- CategoryBase: Propiedades comunes compartidas
- CategoryCreate: Para crear nuevas categorías (POST)
- CategoryUpdate: Para actualizar categorías existentes (PUT/PATCH)
- CategoryResponse: Para respuestas de la API (GET)
- CategoryNode / BreadcrumbItem: Vistas jerárquicas
- Comandos de movimiento, reordenación y operaciones masivas
"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

# ========================================
# ESQUEMA BASE
# ========================================

class CategoryBase(BaseModel):
    """Propiedades comunes compartidas entre esquemas de categoría."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=100)
    display_order: int = 0

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("El nombre no puede estar vacío")
        return value


# ========================================
# ESQUEMAS PARA OPERACIONES
# ========================================

class CategoryCreate(CategoryBase):
    """Esquema para crear una nueva categoría. El ID lo asigna la base de datos."""
    parent_id: Optional[int] = None
    slug: Optional[str] = Field(None, max_length=120)  # Sugerencia; se normaliza y deduplica


class CategoryUpdate(BaseModel):
    """
    Esquema para actualizar una categoría. Todos los campos son opcionales.

    Solo se aplican los campos enviados (exclude_unset), de modo que
    `"parent_id": null` convierte la categoría en raíz y omitirlo no la mueve.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    image_url: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=100)
    slug: Optional[str] = Field(None, max_length=120)
    parent_id: Optional[int] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("El nombre no puede estar vacío")
        return value


class CategoryMove(BaseModel):
    """Mueve una categoría bajo otro padre (null = raíz) con un nuevo orden."""
    new_parent_id: Optional[int] = None
    display_order: int = 0


class CategoryBulkStatus(BaseModel):
    category_ids: List[int] = Field(..., min_length=1)
    is_active: bool


class CategoryBulkDelete(BaseModel):
    category_ids: List[int] = Field(..., min_length=1)


class CategoryReorder(BaseModel):
    """IDs en el orden deseado; cada uno recibe su posición como display_order."""
    ordered_ids: List[int] = Field(..., min_length=1)


# ========================================
# ESQUEMAS DE RESPUESTA
# ========================================

class CategoryResponse(CategoryBase):
    """Esquema para las respuestas de la API al leer categorías."""
    category_id: int
    slug: str
    parent_id: Optional[int] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryNode(BaseModel):
    """Nodo del árbol de categorías con su nivel y el número de productos activos."""
    category_id: int
    name: str
    slug: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    icon: Optional[str] = None
    display_order: int
    is_active: bool
    parent_id: Optional[int] = None
    level: int
    active_product_count: int = 0
    children: List["CategoryNode"] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class BreadcrumbItem(BaseModel):
    category_id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class CategoryProductCount(BaseModel):
    """Productos activos de una categoría: propios y de sus subcategorías."""
    category_id: int
    name: str
    direct_products: int
    subcategory_products: int = 0
    total_products: int


class CategoryStats(BaseModel):
    total: int
    active: int
    inactive: int
    roots: int
    with_children: int
    with_products: int
    without_products: int
    max_depth: int
    last_created_at: Optional[datetime] = None
    top_by_products: List[CategoryProductCount] = Field(default_factory=list)


# ========================================
# RESOLUCIÓN DE REFERENCIAS FUTURAS
# ========================================

# Necesario para la recursividad de children en CategoryNode
CategoryNode.model_rebuild()
