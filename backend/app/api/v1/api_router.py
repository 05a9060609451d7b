# backend/app/api/v1/api_router.py
"""
Este archivo contiene el router principal para la API versión 1.

Se encarga de registrar y configurar todos los routers de la versión 1 de la API.
"""

from fastapi import APIRouter

# Importación de routers especializados por dominio de negocio
from app.api.v1.endpoints import (
    categories,
    brands,
    products,
    product_images,
)

# ========================================
# CONFIGURACIÓN DEL ROUTER PRINCIPAL V1
# ========================================

# Contenedor de todos los sub-routers de la v1
api_router_v1 = APIRouter()

# ========================================
# REGISTRO DE ROUTERS POR DOMINIO DE NEGOCIO
# ========================================

# ROUTER DE CATEGORÍAS
# Árbol jerárquico: CRUD, movimiento, breadcrumb, reordenación y operaciones masivas
api_router_v1.include_router(
    categories.router,              # Router con endpoints de categorías
    prefix="/categories",           # Prefijo: /api/v1/categories
    tags=["Categories"]             # Tag para documentación OpenAPI/Swagger
)

# ROUTER DE MARCAS
api_router_v1.include_router(
    brands.router,
    prefix="/brands",
    tags=["Brands"]
)

# ROUTER DE PRODUCTOS
# Productos y gestión de sus imágenes (subida, lotes, principal, orden)
api_router_v1.include_router(
    products.router,
    prefix="/products",
    tags=["Products"]
)

# ROUTER DE IMÁGENES
# Operaciones sobre una imagen concreta por su ID
api_router_v1.include_router(
    product_images.router,
    prefix="/product-images",
    tags=["Product Images"]
)
