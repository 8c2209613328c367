from __future__ import annotations

from fastapi import APIRouter, Depends

from aura.apps.api.deps import get_store, ok
from aura.apps.api.services.store import Store

router = APIRouter(prefix="/v1", tags=["companion"])


@router.get("/companion")
async def companion(store: Store = Depends(get_store)):
    return ok(await store.refresh_companion())


__all__ = ["router"]
