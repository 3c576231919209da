from fastapi import APIRouter, Depends

from archstudy.utils.auth_utils import get_context

router = APIRouter()

@router.get("/status")
async def sync_status(context=Depends(get_context)):
    return context.session.status()

@router.post("/run")
async def run_sync(context=Depends(get_context)):
    """Sync now and wait for the result"""
    await context.session.retry()
    return context.session.status()
