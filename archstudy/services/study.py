from enum import Enum
from typing import List, Optional, Sequence
import logging
import random

from archstudy.database import LocalStore
from archstudy.models import Question, HistoryEntry
from archstudy.services.stats import accuracy, newest_first, wrong_question_ids
from archstudy.services.sync_engine import SyncEngine
from archstudy.utils.field_definitions import matches_field

logger = logging.getLogger(__name__)

class StudyMode(str, Enum):
    ALL = "all"
    SUBJECT = "subject"
    YEAR = "year"
    FIELD = "field"
    WRONG = "wrong"

def bank_order(questions: Sequence[Question]) -> List[Question]:
    """Newest year first, then subject, then question number"""
    return sorted(questions, key=lambda q: (-q.year, q.subject, q.question_number))

def session_result(question_ids: Sequence[str], history: Sequence[HistoryEntry]) -> dict:
    """Score of a practice run from the latest answer to each of its questions"""
    run = set(question_ids)
    latest = {}
    for entry in newest_first(h for h in history if h.question_id in run):
        latest.setdefault(entry.question_id, entry)
    correct = sum(1 for entry in latest.values() if entry.is_correct)
    total = len(run)
    return {
        "total": total,
        "answered": len(latest),
        "correct": correct,
        "accuracy": accuracy(correct, total),
    }

class StudyService:
    def __init__(self, local: LocalStore, engine: SyncEngine):
        self.local = local
        self.engine = engine

    async def select_questions(
        self,
        mode: StudyMode = StudyMode.ALL,
        subject: Optional[int] = None,
        year: Optional[int] = None,
        field: Optional[str] = None,
        shuffle: bool = True,
    ) -> List[Question]:
        """Questions for a practice run; a mode missing its filter falls back to all"""
        if mode == StudyMode.WRONG:
            wrong = set(wrong_question_ids(await self.local.get_all_history()))
            questions = [q for q in await self.local.get_all_questions() if q.id in wrong]
        elif mode == StudyMode.SUBJECT and subject:
            if year:
                questions = await self.local.get_questions_by_year_and_subject(year, subject)
            else:
                questions = await self.local.get_questions_by_subject(subject)
        elif mode == StudyMode.YEAR and year:
            questions = await self.local.get_questions_by_year(year)
        elif mode == StudyMode.FIELD and field:
            questions = [q for q in await self.local.get_all_questions() if matches_field(q.field, field)]
        else:
            questions = await self.local.get_all_questions()

        if shuffle:
            questions = list(questions)
            random.shuffle(questions)
            return questions
        return bank_order(questions)

    async def record_answer(self, question_id: str, selected_answer: int) -> Optional[HistoryEntry]:
        """Store an answer locally and push it in the background. None if the question is unknown."""
        question = await self.local.get_question(question_id)
        if question is None:
            return None
        entry = HistoryEntry.for_answer(question, selected_answer)
        await self.local.add_history(entry)
        self.engine.schedule_history_push(entry)
        return entry

    async def run_result(self, question_ids: Sequence[str]) -> dict:
        history = await self.local.get_all_history()
        return session_result(question_ids, history)

    async def get_memo(self, question_id: str) -> str:
        return (await self.local.get_memos()).get(question_id, "")

    async def save_memo(self, question_id: str, content: Optional[str]) -> bool:
        """Returns whether the memo also reached the remote store"""
        return await self.engine.save_memo(question_id, content)
