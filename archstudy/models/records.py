from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional

from archstudy.utils.ids import generate_id
from archstudy.utils.time_utils import now_iso

SNAPSHOT_VERSION = 1

class Record(BaseModel):
    """Base for records that travel between stores in camelCase form"""

    class Config:
        populate_by_name = True

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_record(cls, data: Dict[str, Any]):
        return cls.model_validate(data)

class Question(Record):
    id: str
    year: int
    subject: int = Field(ge=1, le=5)
    question_number: int = Field(alias="questionNumber", ge=1)
    question_text: str = Field(default="", alias="questionText")
    choices: List[str]
    correct_answer: int = Field(alias="correctAnswer", ge=1, le=4)
    explanation: str = ""
    question_images: List[str] = Field(default_factory=list, alias="questionImages")
    explanation_images: List[str] = Field(default_factory=list, alias="explanationImages")
    choice_images: List[Optional[str]] = Field(default_factory=list, alias="choiceImages")
    field: Optional[str] = None
    has_image_note: bool = Field(default=False, alias="hasImageNote")
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

    @field_validator("choices")
    @classmethod
    def four_choices(cls, value):
        if len(value) != 4:
            raise ValueError("A question must have exactly 4 choices")
        return value

    def is_correct(self, selected_answer: int) -> bool:
        return selected_answer == self.correct_answer

class HistoryEntry(Record):
    """One answer attempt. Immutable once created."""

    id: str
    question_id: str = Field(alias="questionId")
    answered_at: str = Field(alias="answeredAt")
    selected_answer: int = Field(alias="selectedAnswer", ge=1, le=4)
    is_correct: bool = Field(alias="isCorrect")

    class Config:
        populate_by_name = True
        frozen = True

    @classmethod
    def for_answer(cls, question: Question, selected_answer: int) -> "HistoryEntry":
        return cls(
            id=generate_id(),
            question_id=question.id,
            answered_at=now_iso(),
            selected_answer=selected_answer,
            is_correct=question.is_correct(selected_answer),
        )

class Memo(Record):
    question_id: str = Field(alias="questionId")
    content: str = ""
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")

class Snapshot(Record):
    """Full local database export"""

    version: int = SNAPSHOT_VERSION
    exported_at: str = Field(default_factory=now_iso, alias="exportedAt")
    questions: List[Question] = Field(default_factory=list)
    history: List[HistoryEntry] = Field(default_factory=list)
