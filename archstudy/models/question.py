from sqlalchemy import Column, Integer, String, Boolean, Text, JSON, Index
from archstudy.models.base import Base
from archstudy.models.records import Question

class QuestionRow(Base):
    __tablename__ = "questions"

    id = Column(String, primary_key=True)  # YYYY-SS-NNN
    year = Column(Integer, nullable=False, index=True)
    subject = Column(Integer, nullable=False, index=True)
    question_number = Column(Integer, nullable=False)
    question_text = Column(Text, nullable=False, default="")
    choices = Column(JSON, nullable=False)
    correct_answer = Column(Integer, nullable=False)
    explanation = Column(Text, nullable=False, default="")
    question_images = Column(JSON, nullable=False, default=list)
    explanation_images = Column(JSON, nullable=False, default=list)
    choice_images = Column(JSON, nullable=False, default=list)
    field = Column(String, nullable=True)
    has_image_note = Column(Boolean, default=False)
    created_at = Column(String, nullable=True)
    updated_at = Column(String, nullable=True)

    __table_args__ = (
        Index("ix_questions_subject_year", "subject", "year"),
    )

    @classmethod
    def from_model(cls, question: Question) -> "QuestionRow":
        return cls(**question.model_dump())

    def to_model(self) -> Question:
        return Question(
            id=self.id,
            year=self.year,
            subject=self.subject,
            question_number=self.question_number,
            question_text=self.question_text,
            choices=list(self.choices),
            correct_answer=self.correct_answer,
            explanation=self.explanation,
            question_images=list(self.question_images or []),
            explanation_images=list(self.explanation_images or []),
            choice_images=list(self.choice_images or []),
            field=self.field,
            has_image_note=bool(self.has_image_note),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self):
        return f"<QuestionRow(id={self.id}, year={self.year}, subject={self.subject}, number={self.question_number})>"
