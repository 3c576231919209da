from fastapi import APIRouter, Depends, HTTPException, Query

from archstudy.services import stats as study_stats
from archstudy.utils.auth_utils import get_context
from archstudy.utils.field_definitions import SUBJECT_NAMES

router = APIRouter()

async def _load(context):
    questions = await context.local.get_all_questions()
    history = study_stats.known_history(questions, await context.local.get_all_history())
    return questions, history

@router.get("/summary")
async def get_summary(context=Depends(get_context)):
    questions, history = await _load(context)
    return study_stats.overall_summary(questions, history)

@router.get("/subjects")
async def get_subject_stats(context=Depends(get_context)):
    questions, history = await _load(context)
    rows = study_stats.subject_stats(questions, history)
    return {"subjects": list(rows.values())}

@router.get("/fields/{subject}")
async def get_field_stats(subject: int, context=Depends(get_context)):
    if subject not in SUBJECT_NAMES:
        raise HTTPException(status_code=404, detail="Unknown subject")
    questions, history = await _load(context)
    return {"subject": subject, "fields": study_stats.field_stats(subject, questions, history)}

@router.get("/years")
async def get_year_stats(context=Depends(get_context)):
    questions, history = await _load(context)
    return {"years": study_stats.year_accuracy(questions, history)}

@router.get("/mastery")
async def get_mastery(context=Depends(get_context)):
    questions, history = await _load(context)
    return {"years": study_stats.mastery_grid(questions, history)}

@router.get("/progress")
async def get_progress(days: int = Query(30, ge=1, le=365), context=Depends(get_context)):
    _, history = await _load(context)
    return {"days": study_stats.daily_progress(history, days)}

@router.get("/wrong")
async def get_wrong_questions(context=Depends(get_context)):
    _, history = await _load(context)
    return {"question_ids": study_stats.wrong_question_ids(history)}
