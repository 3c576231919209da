from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from archstudy.services.study import bank_order
from archstudy.utils.auth_utils import get_context
from archstudy.utils.field_definitions import (
    all_fields_list, get_category_name, get_field_name, get_subject_name, matches_field,
)
from archstudy.utils.time_utils import to_japanese_year

router = APIRouter()

def _present(question) -> dict:
    return {
        **question.to_record(),
        "yearLabel": to_japanese_year(question.year),
        "subjectName": get_subject_name(question.subject),
        "fieldName": get_field_name(question.field) if question.field else None,
        "categoryName": get_category_name(question.field) if question.field else None,
    }

@router.get("/")
async def list_questions(
    subject: Optional[int] = None,
    year: Optional[int] = None,
    field: Optional[str] = None,
    context=Depends(get_context),
):
    """Questions in the local store, in bank order"""
    try:
        local = context.local
        if subject and year:
            questions = await local.get_questions_by_year_and_subject(year, subject)
        elif subject:
            questions = await local.get_questions_by_subject(subject)
        elif year:
            questions = await local.get_questions_by_year(year)
        else:
            questions = await local.get_all_questions()
        if field:
            questions = [q for q in questions if matches_field(q.field, field)]
        return {"total": len(questions), "questions": [_present(q) for q in bank_order(questions)]}
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Failed to list questions: {str(e)}")

@router.get("/fields/{subject}")
async def list_fields(subject: int):
    fields = all_fields_list(subject)
    if not fields:
        raise HTTPException(status_code=404, detail="Unknown subject")
    return {"subject": subject, "name": get_subject_name(subject), "fields": fields}

@router.get("/{question_id}")
async def get_question(question_id: str, context=Depends(get_context)):
    question = await context.local.get_question(question_id)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found")
    return _present(question)
