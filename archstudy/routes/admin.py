from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
import logging

from archstudy.errors import QuestionValidationError
from archstudy.models import Question
from archstudy.services.csv_import import import_questions_csv
from archstudy.utils.auth_utils import CurrentUser, get_context, require_admin

router = APIRouter()

@router.put("/questions/{question_id}")
async def save_question(
    question_id: str,
    question: Question,
    admin_user: CurrentUser = Depends(require_admin),
    context=Depends(get_context),
):
    """Create or update a question in the shared bank"""
    if question.id != question_id:
        raise HTTPException(status_code=400, detail="Question id does not match the URL")
    if not await context.admin.save_question(question):
        raise HTTPException(status_code=502, detail="Failed to save question")
    saved = await context.local.get_question(question_id)
    return {"message": "Question saved", "question": saved.to_record() if saved else None}

@router.delete("/questions/{question_id}")
async def delete_question(
    question_id: str,
    admin_user: CurrentUser = Depends(require_admin),
    context=Depends(get_context),
):
    """Remove a question from the shared bank; the local mirror may already lack it"""
    if not await context.admin.delete_question(question_id):
        raise HTTPException(status_code=502, detail="Failed to delete question")
    return {"message": "Question deleted"}

@router.post("/import-csv")
async def import_csv(
    file: UploadFile = File(...),
    admin_user: CurrentUser = Depends(require_admin),
    context=Depends(get_context),
):
    """Import questions from an exam CSV; existing ids are skipped"""
    try:
        data = await file.read()
        return await import_questions_csv(context.admin, data)
    except QuestionValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UnicodeDecodeError as e:
        logging.error(f"CSV decode error: {e}")
        raise HTTPException(status_code=400, detail="Could not read the CSV file")

@router.post("/upload-builtin")
async def upload_builtin(
    admin_user: CurrentUser = Depends(require_admin),
    context=Depends(get_context),
):
    """Copy the bundled question set into the shared bank"""
    builtin = context.engine.builtin_questions()
    if not builtin:
        raise HTTPException(status_code=404, detail="No builtin questions bundled")
    result = await context.admin.upload_builtin_questions(builtin.values())
    if result.saved == 0:
        raise HTTPException(status_code=502, detail="Failed to upload builtin questions")
    return {"uploaded": result.saved, "failed": result.failed}
