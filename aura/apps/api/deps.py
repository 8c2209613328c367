from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, UploadFile
from pydantic import BaseModel

from aura.apps.api.services.store import Store
from aura.libs.schemas.report import MediaFile


def get_store(request: Request) -> Store:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Store not initialised")
    return store


def dump(value: Any) -> Any:
    """JSON-ready form of models, sequences of models and plain values."""

    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [dump(item) for item in value]
    return value


def ok(data: Any) -> dict[str, Any]:
    return {"status": "ok", "data": dump(data)}


async def read_upload(upload: UploadFile | None) -> MediaFile | None:
    if upload is None:
        return None
    data = await upload.read()
    if not data:
        return None
    return MediaFile(
        data=data,
        filename=upload.filename or "upload.bin",
        content_type=upload.content_type or "application/octet-stream",
    )
