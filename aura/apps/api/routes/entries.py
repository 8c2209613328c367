from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel

from aura.apps.api.deps import get_store, ok, read_upload
from aura.apps.api.services.store import Store
from aura.libs.schemas.report import LocationInfo

router = APIRouter(prefix="/v1", tags=["entries"])


class SceneRequest(BaseModel):
    style: str = "cinematic"


@router.post("/entries")
async def create_entry(
    text: str = Form(""),
    lat: float | None = Form(None),
    lng: float | None = Form(None),
    city: str | None = Form(None),
    photo: UploadFile | None = File(None),
    audio: UploadFile | None = File(None),
    store: Store = Depends(get_store),
):
    location = LocationInfo(lat=lat, lng=lng, city=city) if lat is not None and lng is not None else None
    report = await store.submit_entry(
        text,
        photo=await read_upload(photo),
        audio=await read_upload(audio),
        location=location,
    )
    return ok(report)


@router.get("/entries")
async def list_entries(store: Store = Depends(get_store)):
    return ok(store.snapshot().history)


@router.post("/entries/reconcile")
async def reconcile_pending(store: Store = Depends(get_store)):
    return ok(await store.reconcile_pending())


@router.post("/entries/{report_id}/reanalyze")
async def reanalyze_entry(report_id: str, store: Store = Depends(get_store)):
    try:
        return ok(await store.reconcile(report_id))
    except KeyError:
        raise HTTPException(status_code=404, detail="Report not found")


@router.patch("/entries/{report_id}/checklist/{task_id}")
async def toggle_checklist(report_id: str, task_id: str, store: Store = Depends(get_store)):
    try:
        return ok(await store.toggle_checklist_item(report_id, task_id))
    except KeyError:
        raise HTTPException(status_code=404, detail="Report or task not found")


@router.post("/entries/{report_id}/night-ritual")
async def night_ritual(report_id: str, store: Store = Depends(get_store)):
    try:
        report = await store.create_night_ritual(report_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Report not found")
    if report is None:
        raise HTTPException(status_code=404, detail="Report was removed")
    return ok(report)


@router.post("/entries/{report_id}/scene")
async def scene(report_id: str, body: SceneRequest, store: Store = Depends(get_store)):
    try:
        return ok(await store.generate_scene(report_id, body.style))
    except KeyError:
        raise HTTPException(status_code=404, detail="Report not found")


__all__ = ["router"]
