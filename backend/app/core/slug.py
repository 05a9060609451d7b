# backend/app/core/slug.py
"""
Generación de slugs URL-safe y deduplicación por sufijo numérico.
"""

import re
import unicodedata
import uuid
from typing import Awaitable, Callable, Optional

from app.core.config import settings

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_DASHES = re.compile(r"-+")


def _random_token() -> str:
    return uuid.uuid4().hex[:8]


def generate_slug(text: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Convierte un texto en slug: minúsculas, sin acentos, solo [a-z0-9-].

    "Herramientas Eléctricas" -> "herramientas-electricas"

    Si el resultado queda vacío se devuelve un token aleatorio de 8 caracteres
    hexadecimales para que la fila siga siendo direccionable.
    """
    max_length = max_length or settings.SLUG_MAX_LENGTH
    if not text or not text.strip():
        return _random_token()

    slug = unicodedata.normalize("NFD", text.strip().lower())
    slug = "".join(ch for ch in slug if unicodedata.category(ch) != "Mn")
    slug = _INVALID_CHARS.sub("", slug)
    slug = _WHITESPACE.sub("-", slug)
    slug = _DASHES.sub("-", slug).strip("-")

    if len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")

    return slug or _random_token()


async def ensure_unique_slug(
    base_slug: str,
    exists: Callable[[str], Awaitable[bool]],
    max_attempts: Optional[int] = None,
) -> str:
    """
    Devuelve base_slug o la primera variante base-1, base-2, ... que no exista.

    `exists` es una corrutina que indica si el slug ya está ocupado (normalmente
    excluyendo la propia fila en actualizaciones). Tras max_attempts intentos se
    añade un token aleatorio.
    """
    max_attempts = max_attempts or settings.SLUG_MAX_ATTEMPTS
    if not await exists(base_slug):
        return base_slug

    for counter in range(1, max_attempts + 1):
        candidate = f"{base_slug}-{counter}"
        if not await exists(candidate):
            return candidate

    return f"{base_slug}-{_random_token()}"
