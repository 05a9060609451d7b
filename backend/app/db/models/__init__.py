# Importar todos los modelos para que queden registrados en Base.metadata
from app.db.models.category_model import Category
from app.db.models.brand_model import Brand
from app.db.models.product_model import Product, ProductVariant, ProductImage
from app.db.models.inventory_model import Inventory

__all__ = ["Category", "Brand", "Product", "ProductVariant", "ProductImage", "Inventory"]
