# backend/app/db/database.py

"""
Configuración principal de la base de datos para la aplicación.

Este módulo establece la conexión con PostgreSQL usando SQLAlchemy y define
los componentes básicos que serán utilizados por toda la aplicación:
- Motor de base de datos (engine)
- Fábrica de sesiones (AsyncSessionLocal)
- Clase base para modelos (Base)
- Unidad de trabajo explícita (transaction)

La función get_db() vive en app/api/deps.py para mantener las dependencias
de FastAPI separadas de la configuración.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base

from app.core.config import settings # Importamos nuestra configuración
from app.core.exceptions import TransactionFailure

logger = logging.getLogger(__name__)

# Crear el motor de base de datos asíncrono
engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True, echo=settings.DATABASE_ECHO)

# Crear un sessionmaker asíncrono
# expire_on_commit=False es importante para que los objetos sigan siendo utilizables
# después de que la transacción se haya confirmado.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Clase base declarativa para todos los modelos ORM
# Todos los modelos en app/db/models heredarán de esta clase
Base = declarative_base()

# ========================================
# UNIDAD DE TRABAJO
# ========================================

_DEPTH_KEY = "uow_depth"


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Delimita una unidad de trabajo sobre la sesión recibida.

    La llamada más externa confirma al salir y hace rollback ante cualquier
    excepción. Las llamadas anidadas (un servicio que usa otro servicio dentro
    de su propia transacción) solo participan: ni confirman ni revierten, de
    modo que el conjunto se aplica o se descarta entero.

    Los errores de SQLAlchemy se relanzan como TransactionFailure.

    Uso:
        async with transaction(db):
            db.add(category)
            await db.flush()
    """
    depth = db.info.get(_DEPTH_KEY, 0)
    db.info[_DEPTH_KEY] = depth + 1
    try:
        yield db
        if depth == 0:
            await db.commit()
    except SQLAlchemyError as exc:
        if depth > 0:
            raise
        await db.rollback()
        logger.error(f"Rollback de la transacción por error de base de datos: {exc}", exc_info=True)
        raise TransactionFailure("Error de base de datos; la operación se ha revertido por completo") from exc
    except Exception:
        if depth == 0:
            await db.rollback()
            logger.info("Rollback de la transacción por error de negocio")
        raise
    finally:
        db.info[_DEPTH_KEY] = depth
