# backend/app/core/logging_config.py
"""
Configuración centralizada del logging de la aplicación.

Cada módulo obtiene su propio logger con logging.getLogger(__name__); aquí solo
se configuran los handlers del logger raíz a partir de settings.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from app.core.config import settings

_configured = False


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configura el logger raíz con salida por consola y, opcionalmente, a fichero.

    Es idempotente: llamadas sucesivas no duplican handlers.
    """
    global _configured
    if _configured:
        return

    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())
    formatter = logging.Formatter(settings.LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if settings.LOG_FILE_PATH:
        log_path = Path(settings.LOG_FILE_PATH)
        if not log_path.is_absolute():
            log_path = settings.BASE_DIR / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=settings.LOG_FILE_MAX_BYTES,
            backupCount=settings.LOG_FILE_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # SQLAlchemy es muy verboso en INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    _configured = True
    logging.getLogger(__name__).info(f"Logging configurado en nivel {root.level}")
