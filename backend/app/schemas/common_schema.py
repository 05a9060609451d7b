# backend/app/schemas/common_schema.py

"""
Esquemas genéricos compartidos por todos los endpoints.

Todas las respuestas de la API usan el mismo sobre:
    {"success": true, "data": ..., "message": "...", "errors": []}
"""

import math
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Sobre estándar de respuesta."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    errors: List[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, data: Optional[T] = None, message: Optional[str] = None) -> "ApiResponse[T]":
        return cls(success=True, data=data, message=message)


class PagedResult(BaseModel, Generic[T]):
    """Página de resultados con los metadatos necesarios para paginar en la interfaz."""
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int

    @classmethod
    def build(cls, items: List[T], total: int, page: int, page_size: int) -> "PagedResult[T]":
        total_pages = math.ceil(total / page_size) if page_size else 0
        return cls(items=items, total=total, page=page, page_size=page_size, total_pages=total_pages)


class BulkResult(BaseModel):
    """Resultado de una operación masiva: número de elementos afectados."""
    affected: int
