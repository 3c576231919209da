from sqlalchemy import Column, Integer, String, Boolean
from archstudy.models.base import Base
from archstudy.models.records import HistoryEntry

class HistoryRow(Base):
    __tablename__ = "history"

    id = Column(String, primary_key=True)
    question_id = Column(String, nullable=False, index=True)  # not a foreign key, dangling ids are tolerated
    answered_at = Column(String, nullable=False, index=True)
    selected_answer = Column(Integer, nullable=False)
    is_correct = Column(Boolean, nullable=False, index=True)

    @classmethod
    def from_model(cls, entry: HistoryEntry) -> "HistoryRow":
        return cls(**entry.model_dump())

    def to_model(self) -> HistoryEntry:
        return HistoryEntry(
            id=self.id,
            question_id=self.question_id,
            answered_at=self.answered_at,
            selected_answer=self.selected_answer,
            is_correct=bool(self.is_correct),
        )

    def __repr__(self):
        return f"<HistoryRow(id={self.id}, question_id={self.question_id}, correct={self.is_correct})>"
