"""
Exam CSV import.

Columns: year, subject, number, figure note, question text, choice 1..4,
correct answer. The first row is a header. Years may be era codes (H28,
R2), bare Heisei numbers (28) or Gregorian years.
"""
from dataclasses import dataclass, field
from typing import List, Optional
import csv
import io
import logging
import re

from pydantic import ValidationError

from archstudy.errors import QuestionValidationError
from archstudy.models import Question
from archstudy.services.admin_writer import AdminWriter, BatchWriteResult
from archstudy.utils.ids import generate_question_id
from archstudy.utils.time_utils import now_iso

logger = logging.getLogger(__name__)

ERA_YEAR = re.compile(r"^([HR])(\d+)$", re.IGNORECASE)
ERA_OFFSETS = {"H": 1988, "R": 2018}
SUBJECT_KEYWORDS = [
    (1, ("計画",)),
    (2, ("環境", "設備")),
    (3, ("法規",)),
    (4, ("構造",)),
    (5, ("施工",)),
]
FIGURE_NOTE = "図あり"
MIN_COLUMNS = 10

def parse_year(value: str) -> Optional[int]:
    value = (value or "").strip()
    if not value:
        return None
    match = ERA_YEAR.match(value)
    if match:
        return ERA_OFFSETS[match.group(1).upper()] + int(match.group(2))
    digits = re.match(r"^\d+", value)
    if not digits:
        return None
    number = int(digits.group())
    if number > 2000:
        return number
    if 0 < number <= 99:
        return ERA_OFFSETS["H"] + number
    return None

def parse_subject(value: str) -> Optional[int]:
    value = (value or "").strip()
    for subject, keywords in SUBJECT_KEYWORDS:
        if any(keyword in value for keyword in keywords):
            return subject
    return None

def _to_int(value: str) -> Optional[int]:
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        return None

def decode_csv(data: bytes) -> str:
    """UTF-8 (with or without BOM), falling back to Shift-JIS"""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("CSV is not UTF-8, reading as Shift-JIS")
        return data.decode("cp932")

@dataclass
class CsvParseResult:
    questions: List[Question] = field(default_factory=list)
    skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def skip(self, line: int, reason: str):
        self.skipped += 1
        self.errors.append(f"line {line}: {reason}")

def parse_questions_csv(text: str) -> CsvParseResult:
    result = CsvParseResult()
    rows = csv.reader(io.StringIO(text))
    next(rows, None)

    for line, row in enumerate(rows, start=2):
        cols = [col.strip() for col in row]
        if not any(cols):
            continue
        if len(cols) < MIN_COLUMNS:
            result.skip(line, f"expected {MIN_COLUMNS} columns, got {len(cols)}")
            continue

        year_str, subject_str, number_str, figure, text, c1, c2, c3, c4, correct_str = cols[:MIN_COLUMNS]
        year = parse_year(year_str)
        subject = parse_subject(subject_str)
        number = _to_int(number_str)
        correct = _to_int(correct_str)
        if not (year and subject and number and correct):
            result.skip(line, f"invalid year/subject/number/answer ({year_str}, {subject_str}, {number_str}, {correct_str})")
            continue

        timestamp = now_iso()
        try:
            question = Question(
                id=generate_question_id(year, subject, number),
                year=year,
                subject=subject,
                question_number=number,
                question_text=text,
                choices=[c1, c2, c3, c4],
                correct_answer=correct,
                has_image_note=figure == FIGURE_NOTE,
                created_at=timestamp,
                updated_at=timestamp,
            )
        except ValidationError as e:
            result.skip(line, f"{e.error_count()} validation errors")
            continue
        result.questions.append(question)

    logger.info(f"Parsed {len(result.questions)} questions from CSV ({result.skipped} rows skipped)")
    return result

async def import_questions_csv(writer: AdminWriter, data: bytes) -> dict:
    """Parse a CSV upload and write new questions through the admin path"""
    parsed = parse_questions_csv(decode_csv(data))
    if not parsed.questions:
        raise QuestionValidationError("No importable questions in CSV")

    written: BatchWriteResult = await writer.save_questions_batch(parsed.questions, skip_existing=True)
    return {
        "imported": written.saved,
        "skipped": written.skipped + parsed.skipped,
        "failed": written.failed,
        "denied": written.denied,
        "errors": parsed.errors,
    }
