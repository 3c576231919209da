from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional
import logging

from archstudy.errors import RemoteStoreError
from archstudy.services import stats as study_stats
from archstudy.utils.auth_utils import get_context
from archstudy.utils.time_utils import get_jst_time

router = APIRouter()

@router.get("/")
async def list_history(limit: int = Query(50, ge=1, le=1000), context=Depends(get_context)):
    """Most recent answers, newest first"""
    questions = await context.local.get_all_questions()
    history = await context.local.get_all_history()
    return {"history": study_stats.recent_history(questions, history, limit)}

@router.get("/calendar")
async def study_calendar(
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    context=Depends(get_context),
):
    """Days of a month with at least one answer"""
    today = get_jst_time()
    year = year or today.year
    month = month or today.month
    history = await context.local.get_all_history()
    return {"year": year, "month": month, "days": study_stats.study_days(history, year, month)}

@router.delete("/")
async def clear_history(context=Depends(get_context)):
    """Delete all history, in the cloud too when signed in"""
    try:
        await context.engine.clear_history()
        return {"message": "History cleared"}
    except RemoteStoreError as e:
        logging.error(f"Clear history failed: {e}")
        raise HTTPException(status_code=502, detail="Could not delete cloud history; local history kept")
