# backend/app/services/lifecycle.py
"""
Retirada de entidades: borrado lógico o físico según existan dependientes.

Categorías y marcas comparten la misma regla: si algo activo sigue
dependiendo de la entidad, se desactiva (borrado lógico); si no, se borra la
fila. Centralizarlo aquí garantiza que ningún servicio deje dependientes
activos colgando de una fila borrada.
"""

import enum
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class RetireOutcome(str, enum.Enum):
    DEACTIVATED = "deactivated"
    DELETED = "deleted"


async def retire(
    label: str,
    has_dependents: Callable[[], Awaitable[bool]],
    deactivate: Callable[[], Awaitable[None]],
    hard_delete: Callable[[], Awaitable[None]],
) -> RetireOutcome:
    """
    Ejecuta el borrado lógico o físico y devuelve cuál se aplicó.

    Args:
        label: Descripción de la entidad para el log ("categoría 5")
        has_dependents: Corrutina que indica si hay dependientes que impiden el borrado físico
        deactivate: Corrutina que marca la entidad como inactiva
        hard_delete: Corrutina que elimina la fila

    El llamador es responsable de ejecutar esto dentro de una transacción.
    """
    if await has_dependents():
        await deactivate()
        logger.info(f"{label}: tiene dependientes, se aplica borrado lógico")
        return RetireOutcome.DEACTIVATED

    await hard_delete()
    logger.info(f"{label}: sin dependientes, eliminada físicamente")
    return RetireOutcome.DELETED
