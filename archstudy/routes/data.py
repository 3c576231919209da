from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import JSONResponse
from typing import Any, Dict

from archstudy.errors import SnapshotFormatError
from archstudy.services.snapshot import backup_filename, export_snapshot, import_snapshot
from archstudy.utils.auth_utils import get_context

router = APIRouter()

@router.get("/export")
async def export_data(context=Depends(get_context)):
    """Download every question and history entry as one JSON file"""
    snapshot = await export_snapshot(context.local)
    return JSONResponse(
        content=snapshot.to_record(),
        headers={"Content-Disposition": f'attachment; filename="{backup_filename()}"'},
    )

@router.post("/import")
async def import_data(payload: Dict[str, Any] = Body(...), context=Depends(get_context)):
    """Load a previously exported file into the local store"""
    try:
        return await import_snapshot(context.local, payload)
    except SnapshotFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/")
async def delete_all_data(context=Depends(get_context)):
    """Wipe everything stored on this device; cloud data is left alone.

    The next sync reloads the question bank and, when signed in, downloads
    the user's history again.
    """
    await context.local.delete_all()
    return {"message": "All local data deleted"}
