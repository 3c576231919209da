from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from typing import List, Optional

from archstudy.models import Memo
from archstudy.services.study import StudyMode
from archstudy.utils.auth_utils import get_context

router = APIRouter()

class StartRequest(BaseModel):
    mode: StudyMode = StudyMode.ALL
    subject: Optional[int] = Field(default=None, ge=1, le=5)
    year: Optional[int] = None
    field: Optional[str] = None
    shuffle: bool = True

class AnswerRequest(BaseModel):
    question_id: str
    selected_answer: int = Field(ge=1, le=4)

class ResultRequest(BaseModel):
    question_ids: List[str]

class MemoRequest(BaseModel):
    content: str = ""

@router.post("/start")
async def start_study(request: StartRequest, context=Depends(get_context)):
    """Pick the questions for a practice run"""
    questions = await context.study.select_questions(
        request.mode, request.subject, request.year, request.field, request.shuffle
    )
    if not questions:
        raise HTTPException(status_code=404, detail="No matching questions")
    return {
        "mode": request.mode.value,
        "total": len(questions),
        "questions": [q.to_record() for q in questions],
    }

@router.post("/answer")
async def answer_question(request: AnswerRequest, context=Depends(get_context)):
    """Record an answer; the entry is pushed to the cloud when signed in"""
    entry = await context.study.record_answer(request.question_id, request.selected_answer)
    if entry is None:
        raise HTTPException(status_code=404, detail="Question not found")
    question = await context.local.get_question(request.question_id)
    return {
        "entry": entry.to_record(),
        "isCorrect": entry.is_correct,
        "correctAnswer": question.correct_answer,
        "explanation": question.explanation,
        "explanationImages": question.explanation_images,
    }

@router.post("/result")
async def study_result(request: ResultRequest, context=Depends(get_context)):
    if not request.question_ids:
        raise HTTPException(status_code=400, detail="question_ids must not be empty")
    return await context.study.run_result(request.question_ids)

@router.get("/memos/{question_id}")
async def get_memo(question_id: str, context=Depends(get_context)):
    return Memo(question_id=question_id, content=await context.study.get_memo(question_id)).to_record()

@router.put("/memos/{question_id}")
async def save_memo(question_id: str, request: MemoRequest, context=Depends(get_context)):
    """Save a memo; empty content deletes it"""
    synced = await context.study.save_memo(question_id, request.content)
    return {"questionId": question_id, "content": request.content, "synced": synced}
