# backend/app/services/image_store.py
"""
Almacenamiento de ficheros de imagen.

El catálogo solo persiste la URL que devuelve el almacén; nunca inspecciona
el contenido de los ficheros. Hay dos implementaciones:

- SupabaseImageStore: API REST de Supabase Storage a través de httpx.
- LocalImageStore: sistema de ficheros bajo MEDIA_ROOT, servido desde MEDIA_BASE_URL.

get_image_store() devuelve la instancia configurada en STORAGE_BACKEND.
"""

import abc
import asyncio
import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional

import httpx

from app.core.config import settings
from app.core.exceptions import StorageError, ValidationError

logger = logging.getLogger(__name__)


class ImageStore(abc.ABC):
    """Contrato del almacén de objetos: subir bytes, borrar por ruta y resolver URLs."""

    @abc.abstractmethod
    async def upload(self, content: bytes, path: str, content_type: Optional[str] = None) -> str:
        """Guarda el contenido en `path` y devuelve su URL pública."""

    @abc.abstractmethod
    async def delete(self, path: str) -> bool:
        """Borra el fichero. Devuelve False si no existía."""

    @abc.abstractmethod
    def get_public_url(self, path: str) -> str:
        """URL pública de una ruta del almacén."""

    @abc.abstractmethod
    def path_from_url(self, url: str) -> Optional[str]:
        """Ruta interna a partir de una URL pública, o None si la URL no es de este almacén."""

    # ========================================
    # UTILIDADES COMUNES
    # ========================================

    def validate_image(self, filename: Optional[str], size: int) -> str:
        """
        Comprueba extensión y tamaño. Devuelve la extensión normalizada (".jpg").

        Raises:
            ValidationError: fichero vacío, demasiado grande o con extensión no permitida
        """
        extension = PurePosixPath(filename or "").suffix.lower()
        if extension not in settings.ALLOWED_IMAGE_EXTENSIONS:
            raise ValidationError(
                f"Extensión de imagen no permitida: '{extension or filename}'",
                details=[f"Permitidas: {', '.join(settings.ALLOWED_IMAGE_EXTENSIONS)}"],
            )
        if size <= 0:
            raise ValidationError(f"El fichero '{filename}' está vacío")
        if size > settings.max_image_size_bytes:
            raise ValidationError(
                f"El fichero '{filename}' supera el tamaño máximo de {settings.MAX_IMAGE_SIZE_MB} MB"
            )
        return extension

    def build_path(self, path_hint: str, extension: str) -> str:
        """Ruta única: <STORAGE_FOLDER>/<path_hint>/<uuid>.<ext>"""
        hint = path_hint.strip("/")
        name = f"{uuid.uuid4().hex}{extension}"
        parts = [settings.STORAGE_FOLDER.strip("/"), hint, name]
        return "/".join(part for part in parts if part)

    async def upload_image(
        self, content: bytes, filename: Optional[str], path_hint: str, content_type: Optional[str] = None
    ) -> str:
        """Valida y sube una imagen con nombre único. Devuelve la URL pública."""
        extension = self.validate_image(filename, len(content))
        path = self.build_path(path_hint, extension)
        url = await self.upload(content, path, content_type)
        logger.info(f"Imagen '{filename}' subida como {path}")
        return url

    async def delete_by_url(self, url: str) -> bool:
        """Borra el fichero de una URL si pertenece a este almacén; las URLs externas se ignoran."""
        path = self.path_from_url(url)
        if path is None:
            return False
        return await self.delete(path)


class SupabaseImageStore(ImageStore):
    """Cliente mínimo de la API REST de Supabase Storage."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        bucket: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.SUPABASE_URL or "").rstrip("/")
        self.service_key = service_key or settings.SUPABASE_SERVICE_KEY
        self.bucket = bucket or settings.SUPABASE_BUCKET
        self.timeout = timeout or settings.STORAGE_TIMEOUT_SECONDS
        if not self.base_url or not self.service_key:
            logger.warning("Supabase Storage no configurado (SUPABASE_URL / SUPABASE_SERVICE_KEY)")

    def _headers(self, content_type: Optional[str] = None) -> dict:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key or "",
        }
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    def _ensure_configured(self) -> None:
        if not self.base_url or not self.service_key:
            raise StorageError("Supabase Storage no está configurado")

    async def upload(self, content: bytes, path: str, content_type: Optional[str] = None) -> str:
        self._ensure_configured()
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{path}"
        headers = self._headers(content_type or "application/octet-stream")
        headers["x-upsert"] = "false"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, content=content, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Error HTTP subiendo {path} a Supabase: {e.response.status_code} - {e.response.text}")
            raise StorageError(f"El almacenamiento rechazó la subida de {path}") from e
        except httpx.HTTPError as e:
            logger.error(f"Error de red subiendo {path} a Supabase: {e}")
            raise StorageError(f"No se pudo contactar con el almacenamiento para subir {path}") from e
        return self.get_public_url(path)

    async def delete(self, path: str) -> bool:
        self._ensure_configured()
        url = f"{self.base_url}/storage/v1/object/{self.bucket}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    "DELETE", url, json={"prefixes": [path]}, headers=self._headers("application/json")
                )
                response.raise_for_status()
                deleted = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Error HTTP borrando {path} de Supabase: {e.response.status_code} - {e.response.text}")
            raise StorageError(f"El almacenamiento rechazó el borrado de {path}") from e
        except httpx.HTTPError as e:
            logger.error(f"Error de red borrando {path} de Supabase: {e}")
            raise StorageError(f"No se pudo contactar con el almacenamiento para borrar {path}") from e
        return bool(deleted)

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    def path_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.base_url}/storage/v1/object/public/{self.bucket}/"
        if self.base_url and url.startswith(prefix):
            return url[len(prefix):]
        return None


class LocalImageStore(ImageStore):
    """Almacén en disco para desarrollo y despliegues sin object storage."""

    def __init__(self, root: Optional[Path] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.MEDIA_ROOT)
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise ValidationError(f"Ruta fuera del almacén: {path}")
        return target

    async def upload(self, content: bytes, path: str, content_type: Optional[str] = None) -> str:
        target = self._resolve(path)

        def write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)

        try:
            await asyncio.to_thread(write)
        except OSError as e:
            logger.error(f"Error escribiendo {target}: {e}", exc_info=True)
            raise StorageError(f"No se pudo guardar la imagen {path}") from e
        return self.get_public_url(path)

    async def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.exists():
            return False
        try:
            await asyncio.to_thread(target.unlink)
        except OSError as e:
            logger.error(f"Error borrando {target}: {e}", exc_info=True)
            raise StorageError(f"No se pudo borrar la imagen {path}") from e
        return True

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def path_from_url(self, url: str) -> Optional[str]:
        prefix = f"{self.base_url}/"
        if url.startswith(prefix):
            return url[len(prefix):]
        return None


_image_store: Optional[ImageStore] = None


def get_image_store() -> ImageStore:
    """Instancia única del almacén configurado en STORAGE_BACKEND."""
    global _image_store
    if _image_store is None:
        backend = settings.STORAGE_BACKEND.lower()
        if backend == "supabase":
            _image_store = SupabaseImageStore()
        elif backend == "local":
            _image_store = LocalImageStore()
        else:
            raise ValueError(f"STORAGE_BACKEND desconocido: {settings.STORAGE_BACKEND}")
        logger.info(f"Almacén de imágenes: {type(_image_store).__name__}")
    return _image_store
