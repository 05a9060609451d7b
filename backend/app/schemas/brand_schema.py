# backend/app/schemas/brand_schema.py
"""
Esquemas Pydantic para el modelo Brand.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class BrandBase(BaseModel):
    """Propiedades comunes compartidas entre esquemas de marca."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    logo_url: Optional[str] = Field(None, max_length=500)
    website: Optional[str] = Field(None, max_length=255)


class BrandCreate(BrandBase):
    pass


class BrandResponse(BrandBase):
    brand_id: int
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
