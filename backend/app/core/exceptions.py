# backend/app/core/exceptions.py
"""
Excepciones de dominio del catálogo.

Los servicios lanzan estas excepciones en lugar de HTTPException para que la
lógica de negocio no dependa de la capa web. main.py registra un manejador que
traduce cada una al sobre de respuesta estándar con su código HTTP.

Jerarquía:
- CatalogError
    - NotFoundError          (404)
    - ValidationError        (400)
        - DuplicateUrlError  (409)
        - InvalidMoveError   (400)
    - BusinessRuleError      (409)
    - TransactionFailure     (500)
    - StorageError           (502)
"""

from typing import Any, Dict, List, Optional


class CatalogError(Exception):
    """Error base de todas las excepciones de dominio."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "data": None,
            "message": self.message,
            "errors": self.details,
        }


class NotFoundError(CatalogError):
    """El identificador referenciado no existe."""

    status_code = 404

    def __init__(self, entity: str, identifier: Any):
        super().__init__(f"{entity} con ID {identifier} no encontrado")
        self.entity = entity
        self.identifier = identifier


class ValidationError(CatalogError):
    """Datos duplicados, lote malformado o relación requerida inexistente."""

    status_code = 400


class DuplicateUrlError(ValidationError):
    """La URL de imagen ya existe en otra fila."""

    status_code = 409

    def __init__(self, url: str):
        super().__init__(f"Ya existe una imagen con la URL '{url}'")
        self.url = url


class InvalidMoveError(ValidationError):
    """La asignación de padre crearía un ciclo en el árbol de categorías."""

    def __init__(self, category_id: int, parent_id: Optional[int]):
        super().__init__(
            f"La categoría {parent_id} no puede ser padre de la categoría {category_id} "
            "(es ella misma o uno de sus descendientes)"
        )
        self.category_id = category_id
        self.parent_id = parent_id


class BusinessRuleError(CatalogError):
    """Operación válida en forma pero prohibida por una regla de negocio."""

    status_code = 409


class TransactionFailure(CatalogError):
    """Fallo de la base de datos dentro de una unidad de trabajo. Siempre implica rollback."""

    status_code = 500


class StorageError(CatalogError):
    """El almacenamiento de objetos rechazó una subida o un borrado."""

    status_code = 502
