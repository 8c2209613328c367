from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from aura.apps.api.deps import dump, get_store, ok, read_upload
from aura.apps.api.services.store import Store

router = APIRouter(prefix="/v1", tags=["stats"])


@router.get("/stats")
async def stats(store: Store = Depends(get_store)):
    snapshot = store.snapshot()
    return ok(
        {
            "level": dump(snapshot.level),
            "achievements": dump(snapshot.achievements),
            "streak": snapshot.streak,
            "total_entries": len(snapshot.history),
            "pending": len(snapshot.pending),
        }
    )


@router.get("/forecast")
async def forecast(store: Store = Depends(get_store)):
    return ok(store.snapshot().forecast)


@router.get("/weekly")
async def weekly(store: Store = Depends(get_store)):
    return ok(store.snapshot().weekly_digest)


@router.get("/missions")
async def missions(store: Store = Depends(get_store)):
    return ok(store.current_missions())


@router.post("/missions/{mission_id}/complete")
async def complete_mission(
    mission_id: str,
    evidence: str | None = Form(None),
    photo: UploadFile | None = File(None),
    store: Store = Depends(get_store),
):
    proof = await read_upload(photo) or evidence
    try:
        verified = await store.complete_mission(mission_id, proof)
    except KeyError:
        raise HTTPException(status_code=404, detail="Mission not found")
    return ok({"verified": verified, "missions": dump(store.current_missions())})


__all__ = ["router"]
