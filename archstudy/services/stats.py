"""
Read-only summaries over questions and history.

Every function takes plain lists and never mutates them. Functions given
both questions and history ignore entries whose question is missing.
"""
from collections import defaultdict
from datetime import timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from archstudy.models import Question, HistoryEntry
from archstudy.utils.field_definitions import (
    SUBJECT_NAMES, SUBJECT_SHORT_NAMES, all_fields_list, matches_field,
)
from archstudy.utils.time_utils import (
    JST, convert_to_jst, format_time_for_display, get_jst_time, parse_iso, to_japanese_year,
)

class Mastery(str, Enum):
    GOLD = "gold"           # last two correct
    SILVER = "silver"       # latest correct
    BLACK = "black"         # last two wrong
    BRONZE = "bronze"       # latest wrong
    UNANSWERED = "unanswered"

def accuracy(correct: int, total: int) -> int:
    """Percentage rounded half up; 0 when nothing was answered"""
    if total <= 0:
        return 0
    return (correct * 200 + total) // (2 * total)

def newest_first(history: Iterable[HistoryEntry]) -> List[HistoryEntry]:
    return sorted(history, key=lambda h: parse_iso(h.answered_at), reverse=True)

def known_history(questions: Sequence[Question], history: Iterable[HistoryEntry]) -> List[HistoryEntry]:
    ids = {q.id for q in questions}
    return [h for h in history if h.question_id in ids]

def classify_mastery(question_id: str, history: Iterable[HistoryEntry]) -> Mastery:
    attempts = newest_first(h for h in history if h.question_id == question_id)[:2]
    if not attempts:
        return Mastery.UNANSWERED
    latest = attempts[0].is_correct
    if len(attempts) == 2:
        previous = attempts[1].is_correct
        if latest and previous:
            return Mastery.GOLD
        if not latest and not previous:
            return Mastery.BLACK
    return Mastery.SILVER if latest else Mastery.BRONZE

def latest_by_question(history: Iterable[HistoryEntry]) -> Dict[str, HistoryEntry]:
    latest = {}
    for entry in newest_first(history):
        latest.setdefault(entry.question_id, entry)
    return latest

def wrong_question_ids(history: Iterable[HistoryEntry]) -> List[str]:
    """Questions whose most recent attempt was wrong"""
    return [qid for qid, entry in latest_by_question(history).items() if not entry.is_correct]

def _tally(entries: Iterable[HistoryEntry]) -> dict:
    answered = correct = 0
    for entry in entries:
        answered += 1
        correct += entry.is_correct
    return {"total_answered": answered, "correct_count": correct, "accuracy": accuracy(correct, answered)}

def subject_stats(questions: Sequence[Question], history: Iterable[HistoryEntry]) -> Dict[int, dict]:
    subject_of = {q.id: q.subject for q in questions}
    stats = {
        subject: {
            "subject": subject,
            "name": SUBJECT_NAMES[subject],
            "total_questions": 0,
            "total_answered": 0,
            "correct_count": 0,
            "accuracy": 0,
        }
        for subject in SUBJECT_NAMES
    }
    for question in questions:
        stats[question.subject]["total_questions"] += 1
    for entry in history:
        subject = subject_of.get(entry.question_id)
        if subject is None:
            continue
        stats[subject]["total_answered"] += 1
        stats[subject]["correct_count"] += entry.is_correct
    for row in stats.values():
        row["accuracy"] = accuracy(row["correct_count"], row["total_answered"])
    return stats

def overall_summary(questions: Sequence[Question], history: Iterable[HistoryEntry]) -> dict:
    history = known_history(questions, history)
    totals = _tally(history)
    return {
        "total_questions": len(questions),
        "answered_questions": len({h.question_id for h in history}),
        "wrong_questions": len(wrong_question_ids(history)),
        **totals,
    }

def field_stats(subject: int, questions: Sequence[Question], history: Iterable[HistoryEntry]) -> List[dict]:
    """Per category and per field counts for one subject"""
    subject_questions = [q for q in questions if q.subject == subject]
    history = known_history(subject_questions, history)
    by_question = defaultdict(list)
    for entry in history:
        by_question[entry.question_id].append(entry)

    rows = []
    for entry in all_fields_list(subject):
        tagged = [q for q in subject_questions if matches_field(q.field, entry["id"])]
        row = _tally(h for q in tagged for h in by_question[q.id])
        rows.append({**entry, "total_questions": len(tagged), **row})
    untagged = [q for q in subject_questions if not q.field]
    if untagged:
        row = _tally(h for q in untagged for h in by_question[q.id])
        rows.append({
            "id": None, "name": "未分類", "type": "category", "subject": subject,
            "total_questions": len(untagged), **row,
        })
    return rows

def year_accuracy(questions: Sequence[Question], history: Iterable[HistoryEntry]) -> List[dict]:
    year_of = {q.id: q.year for q in questions}
    by_year = defaultdict(list)
    for entry in history:
        if entry.question_id in year_of:
            by_year[year_of[entry.question_id]].append(entry)
    return [
        {"year": year, "label": to_japanese_year(year), **_tally(by_year[year])}
        for year in sorted(set(year_of.values()))
    ]

def mastery_grid(questions: Sequence[Question], history: Iterable[HistoryEntry]) -> List[dict]:
    """Years newest first, subjects in order, questions by number"""
    history = list(history)
    grid = []
    for year in sorted({q.year for q in questions}, reverse=True):
        subjects = []
        for subject in SUBJECT_NAMES:
            cell = sorted(
                (q for q in questions if q.year == year and q.subject == subject),
                key=lambda q: q.question_number,
            )
            if not cell:
                continue
            subjects.append({
                "subject": subject,
                "label": SUBJECT_SHORT_NAMES[subject],
                "questions": [
                    {"id": q.id, "number": q.question_number, "mastery": classify_mastery(q.id, history).value}
                    for q in cell
                ],
            })
        grid.append({"year": year, "label": to_japanese_year(year), "subjects": subjects})
    return grid

def daily_progress(history: Iterable[HistoryEntry], days: int = 30, today=None) -> List[dict]:
    """Answered and correct counts per JST calendar day, oldest first"""
    today = today or get_jst_time().date()
    counts = defaultdict(lambda: [0, 0])
    for entry in history:
        day = convert_to_jst(parse_iso(entry.answered_at)).date()
        counts[day][0] += 1
        counts[day][1] += entry.is_correct
    progress = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        total, correct = counts.get(day, (0, 0))
        progress.append({"date": day.isoformat(), "total": total, "correct": correct})
    return progress

def study_days(history: Iterable[HistoryEntry], year: int, month: int) -> List[int]:
    """Days of the month (JST) with at least one answer"""
    days = set()
    for entry in history:
        answered = parse_iso(entry.answered_at).astimezone(JST)
        if answered.year == year and answered.month == month:
            days.add(answered.day)
    return sorted(days)

def recent_history(
    questions: Sequence[Question], history: Iterable[HistoryEntry], limit: Optional[int] = 50
) -> List[dict]:
    question_by_id = {q.id: q for q in questions}
    rows = []
    for entry in newest_first(known_history(questions, history))[:limit]:
        question = question_by_id[entry.question_id]
        rows.append({
            **entry.to_record(),
            "year": question.year,
            "subject": question.subject,
            "questionNumber": question.question_number,
            "label": f"{to_japanese_year(question.year)} {SUBJECT_SHORT_NAMES[question.subject]} 問{question.question_number}",
            "answeredAtLabel": format_time_for_display(convert_to_jst(parse_iso(entry.answered_at))),
        })
    return rows
