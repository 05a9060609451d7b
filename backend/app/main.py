# backend/app/main.py
"""
Punto de entrada principal de la aplicación FastAPI.

Este módulo configura y inicializa la aplicación FastAPI completa,
incluyendo la configuración de rutas, el manejo centralizado de errores de
dominio, documentación automática y eventos del ciclo de vida.

Características principales:
- Configuración centralizada de la aplicación
- Registro de routers de la API con prefijos
- Traducción de excepciones de dominio a respuestas HTTP con el sobre estándar
- Documentación automática (OpenAPI/Swagger)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings  # Configuración centralizada de la aplicación
from app.core.exceptions import CatalogError
from app.core.logging_config import setup_logging
from app.api.v1.api_router import api_router_v1  # Router principal de la API v1

logger = logging.getLogger(__name__)

# ========================================
# CONFIGURACIÓN DE LA APLICACIÓN FASTAPI
# ========================================

app = FastAPI(
    title=settings.PROJECT_NAME,  # Nombre del proyecto desde configuración
    openapi_url=f"{settings.API_V1_STR}/openapi.json",  # URL del schema OpenAPI personalizada
    version=settings.PROJECT_VERSION,  # Versión del proyecto desde configuración
    description="API de administración del catálogo: categorías, marcas, productos e imágenes"
)

# ========================================
# MANEJO DE ERRORES DE DOMINIO
# ========================================

# Los servicios lanzan excepciones de dominio; aquí se traducen a HTTP:
# NotFoundError -> 404, ValidationError -> 400, DuplicateUrlError y
# BusinessRuleError -> 409, TransactionFailure -> 500, StorageError -> 502
@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# ========================================
# REGISTRO DE ROUTERS DE LA API
# ========================================

# El prefijo se obtiene de settings (típicamente "/api/v1")
app.include_router(api_router_v1, prefix=settings.API_V1_STR)


# ========================================
# ENDPOINTS RAÍZ Y VERIFICACIÓN DE ESTADO
# ========================================

@app.get("/", tags=["Root"])
async def read_root():
    """
    Endpoint raíz para verificación básica del estado de la API.

    **Propósito:**
    - Health check básico para monitoreo
    - Información de bienvenida con nombre y versión
    """
    return {"message": f"Bienvenido a {settings.PROJECT_NAME} v{settings.PROJECT_VERSION}"}

# ========================================
# EVENTOS DEL CICLO DE VIDA DE LA APLICACIÓN
# ========================================

@app.on_event("startup")
async def startup_event():
    """
    Evento ejecutado al iniciar la aplicación.

    Configura el logging a partir de settings (nivel, formato y fichero).
    """
    setup_logging()
    logger.info(f"{settings.PROJECT_NAME} v{settings.PROJECT_VERSION} iniciado ({settings.APP_ENVIRONMENT})")
