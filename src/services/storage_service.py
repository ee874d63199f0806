"""Delivery file storage in the Supabase design-files bucket."""

import logging
import re
from uuid import UUID

from src.api.middleware.error_handler import StorageError
from src.core.config import get_settings
from src.core.supabase import get_supabase_client

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w.\- ]+")


def delivery_file_path(order_id: UUID | str, delivery_id: UUID | str, file_name: str) -> str:
    """Object path of a delivery file: {order_id}/{delivery_id}/{file_name}."""
    safe_name = _UNSAFE_CHARS.sub("_", file_name.rsplit("/", 1)[-1]).strip() or "arquivo"
    return f"{order_id}/{delivery_id}/{safe_name}"


class StorageService:
    """Upload delivery files and hand out short-lived download links."""

    def __init__(self) -> None:
        settings = get_settings()
        self.client = get_supabase_client()
        self.bucket = settings.design_files_bucket
        self.expires_in = settings.signed_url_expires_in

    async def upload(self, path: str, content: bytes, content_type: str | None) -> str:
        """Upload bytes to the bucket.

        Returns:
            str: The storage path, as stored in design_delivery_files.file_url.

        Raises:
            StorageError: If the upload fails.
        """
        try:
            self.client.storage.from_(self.bucket).upload(
                path=path,
                file=content,
                file_options={"content-type": content_type or "application/octet-stream"},
            )
        except Exception as e:
            logger.error("Error uploading %s: %s", path, e)
            raise StorageError("Erro ao enviar arquivo") from e
        return path

    async def remove(self, paths: list[str]) -> None:
        """Delete uploaded objects that no delivery row points to.

        Failures are logged and not raised, so the error that triggered the
        cleanup is the one the caller sees.
        """
        if not paths:
            return
        try:
            self.client.storage.from_(self.bucket).remove(paths)
        except Exception as e:
            logger.warning("Failed to remove orphaned files %s: %s", paths, e)

    async def create_signed_url(self, path: str) -> str:
        """Sign a download URL for a stored file.

        The URL is valid for signed_url_expires_in seconds (one hour by
        default) and is never stored.

        Raises:
            StorageError: If storage refuses to sign the path.
        """
        try:
            response = self.client.storage.from_(self.bucket).create_signed_url(
                path=path,
                expires_in=self.expires_in,
            )
        except Exception as e:
            logger.error("Error downloading file %s: %s", path, e)
            raise StorageError("Erro ao baixar arquivo") from e

        signed_url = response.get("signedURL") or response.get("signedUrl")
        if not signed_url:
            logger.error("Storage returned no signed URL for %s", path)
            raise StorageError("Erro ao baixar arquivo")
        return signed_url
