from sqlalchemy import Column, String, Text
from archstudy.models.base import Base

class MemoRow(Base):
    __tablename__ = "memos"

    question_id = Column(String, primary_key=True)
    content = Column(Text, nullable=False)
    updated_at = Column(String, nullable=True)

    def __repr__(self):
        return f"<MemoRow(question_id={self.question_id})>"
