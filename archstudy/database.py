"""
On-device record store.

SQLite through SQLAlchemy holds the Questions and HistoryEntries the UI
reads, the per-question memos and a small string cache for sync markers.
Every operation is a single short transaction run on a worker thread;
the lock serialises them since in-memory databases share one connection.
"""
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional
import asyncio
import logging
import threading

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from archstudy.models import (
    Base, Question, HistoryEntry, QuestionRow, HistoryRow, MemoRow, CacheEntry,
)
from archstudy.utils.time_utils import now_iso

logger = logging.getLogger(__name__)

def create_local_engine(url: str):
    """SQLAlchemy engine for the local store; in-memory URLs share one connection"""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)

class LocalStore:
    """Local persistence for questions, history, memos and the sync cache"""

    def __init__(self, url: str = "sqlite:///archstudy.db"):
        self.url = url
        self.engine = create_local_engine(url)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self._lock = threading.Lock()

    @contextmanager
    def _transaction(self, label: str):
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Local store error in {label}: {e}")
            raise e
        finally:
            session.close()

    def _run_sync(self, label: str, work):
        with self._lock, self._transaction(label) as session:
            return work(session)

    async def _run(self, label: str, work):
        """Run work(session) in one transaction on a worker thread"""
        return await asyncio.to_thread(self._run_sync, label, work)

    async def init(self):
        """Create tables if needed"""
        await asyncio.to_thread(Base.metadata.create_all, self.engine)
        logger.info(f"Local store ready at {self.url}")

    def close(self):
        self.engine.dispose()

    # ----- questions -----

    async def get_all_questions(self) -> List[Question]:
        return await self._run("get_all_questions", lambda session: [
            row.to_model() for row in session.scalars(select(QuestionRow)).all()
        ])

    async def get_question(self, question_id: str) -> Optional[Question]:
        def work(session):
            row = session.get(QuestionRow, question_id)
            return row.to_model() if row else None
        return await self._run("get_question", work)

    async def get_questions_by_subject(self, subject: int) -> List[Question]:
        query = select(QuestionRow).where(QuestionRow.subject == subject)
        return await self._run("get_questions_by_subject", lambda session: [
            row.to_model() for row in session.scalars(query).all()
        ])

    async def get_questions_by_year(self, year: int) -> List[Question]:
        query = select(QuestionRow).where(QuestionRow.year == year)
        return await self._run("get_questions_by_year", lambda session: [
            row.to_model() for row in session.scalars(query).all()
        ])

    async def get_questions_by_year_and_subject(self, year: int, subject: int) -> List[Question]:
        query = select(QuestionRow).where(QuestionRow.subject == subject, QuestionRow.year == year)
        return await self._run("get_questions_by_year_and_subject", lambda session: [
            row.to_model() for row in session.scalars(query).all()
        ])

    async def put_question(self, question: Question):
        await self._run("put_question", lambda session: session.merge(QuestionRow.from_model(question)))

    async def put_questions_batch(self, questions: Iterable[Question]):
        rows = [QuestionRow.from_model(q) for q in questions]
        def work(session):
            for row in rows:
                session.merge(row)
        await self._run("put_questions_batch", work)

    async def clear_questions(self):
        await self._run("clear_questions", lambda session: session.execute(delete(QuestionRow)))

    async def replace_questions(self, questions: Iterable[Question]):
        """Clear the question collection and insert the given set in one transaction"""
        rows = [QuestionRow.from_model(q) for q in questions]
        def work(session):
            session.execute(delete(QuestionRow))
            session.add_all(rows)
        await self._run("replace_questions", work)

    async def delete_question(self, question_id: str):
        await self._run("delete_question", lambda session: session.execute(
            delete(QuestionRow).where(QuestionRow.id == question_id)
        ))

    # ----- history -----

    async def add_history(self, entry: HistoryEntry):
        await self._run("add_history", lambda session: session.add(HistoryRow.from_model(entry)))

    async def get_all_history(self) -> List[HistoryEntry]:
        return await self._run("get_all_history", lambda session: [
            row.to_model() for row in session.scalars(select(HistoryRow)).all()
        ])

    async def get_history_by_question(self, question_id: str) -> List[HistoryEntry]:
        query = select(HistoryRow).where(HistoryRow.question_id == question_id)
        return await self._run("get_history_by_question", lambda session: [
            row.to_model() for row in session.scalars(query).all()
        ])

    async def put_history_batch(self, entries: Iterable[HistoryEntry]):
        """Insert-or-overwrite by id"""
        rows = [HistoryRow.from_model(entry) for entry in entries]
        def work(session):
            for row in rows:
                session.merge(row)
        await self._run("put_history_batch", work)

    async def clear_history(self):
        await self._run("clear_history", lambda session: session.execute(delete(HistoryRow)))

    # ----- memos -----

    async def get_memos(self) -> Dict[str, str]:
        return await self._run("get_memos", lambda session: {
            row.question_id: row.content for row in session.scalars(select(MemoRow)).all()
        })

    async def set_memo(self, question_id: str, content: Optional[str]):
        """Store a memo; empty content deletes it"""
        def work(session):
            if content and content.strip():
                session.merge(MemoRow(question_id=question_id, content=content, updated_at=now_iso()))
            else:
                session.execute(delete(MemoRow).where(MemoRow.question_id == question_id))
        await self._run("set_memo", work)

    async def put_memos(self, memos: Dict[str, str]):
        """Replace the whole memo map"""
        def work(session):
            session.execute(delete(MemoRow))
            timestamp = now_iso()
            session.add_all([
                MemoRow(question_id=qid, content=content, updated_at=timestamp)
                for qid, content in memos.items() if content
            ])
        await self._run("put_memos", work)

    # ----- string cache -----

    async def get_cache(self, key: str) -> Optional[str]:
        def work(session):
            entry = session.get(CacheEntry, key)
            return entry.value if entry else None
        return await self._run("get_cache", work)

    async def set_cache(self, key: str, value: str):
        await self._run("set_cache", lambda session: session.merge(CacheEntry(key=key, value=value)))

    async def delete_cache(self, key: str):
        await self._run("delete_cache", lambda session: session.execute(
            delete(CacheEntry).where(CacheEntry.key == key)
        ))

    # ----- everything -----

    async def delete_all(self):
        """Wipe questions, history, memos and the sync cache in one transaction.

        Dropping the cache also drops the question fingerprint, so the next
        reconcile reloads the bank instead of skipping it.
        """
        def work(session):
            for table in (QuestionRow, HistoryRow, MemoRow, CacheEntry):
                session.execute(delete(table))
        await self._run("delete_all", work)
        logger.info("All local data deleted")
