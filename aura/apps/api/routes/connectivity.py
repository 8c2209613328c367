from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from aura.apps.api.deps import get_store, ok
from aura.apps.api.services.store import Store

router = APIRouter(prefix="/v1", tags=["connectivity"])


class ConnectivityRequest(BaseModel):
    online: bool


@router.put("/connectivity")
async def set_connectivity(body: ConnectivityRequest, store: Store = Depends(get_store)):
    snapshot = await store.set_online(body.online)
    return ok({"online": snapshot.online, "pending": len(snapshot.pending)})


__all__ = ["router"]
