from __future__ import annotations

import asyncio
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Optional, Protocol

from aura.libs.schemas.report import MediaFile
from aura.libs.schemas.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

MEDIA_SCHEME = "media://"


class MediaStagingService(Protocol):
    async def stage(self, file: MediaFile, user_id: str) -> str:
        ...

    async def fetch(self, ref: str) -> Optional[MediaFile]:
        ...


class LocalMediaStaging:
    """Stages uploads on local disk under ``<media_dir>/<user_id>/``.

    References look like ``media://<user_id>/<name>`` and stay valid across restarts.
    """

    def __init__(self, root: str | Path | None = None, settings: AppSettings | None = None) -> None:
        settings = settings or get_settings()
        self._root = Path(root or settings.media_dir)

    async def stage(self, file: MediaFile, user_id: str) -> str:
        suffix = Path(file.filename).suffix or mimetypes.guess_extension(file.content_type) or ".bin"
        relative = Path(user_id) / f"{uuid.uuid4().hex}{suffix}"
        target = self._contained(relative)
        await asyncio.to_thread(self._write, target, file.data)
        logger.debug("[Media] staged %s bytes at %s", len(file.data), relative)
        return f"{MEDIA_SCHEME}{relative.as_posix()}"

    async def fetch(self, ref: str) -> Optional[MediaFile]:
        if not ref.startswith(MEDIA_SCHEME):
            return None
        path = self._contained(ref[len(MEDIA_SCHEME):])
        if not path.exists():
            logger.warning("[Media] staged file missing for %s", ref)
            return None
        data = await asyncio.to_thread(path.read_bytes)
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return MediaFile(data=data, filename=path.name, content_type=content_type)

    def _contained(self, relative: str | Path) -> Path:
        path = (self._root / relative).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError(f"media path escapes staging root: {relative}")
        return path

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


__all__ = ["LocalMediaStaging", "MEDIA_SCHEME", "MediaStagingService"]
