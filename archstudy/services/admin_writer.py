"""
Admin-gated writes to the shared question bank.

The remote bank is authoritative, so every write goes to the remote store
first and is mirrored locally only after the remote accepted it. A caller
without admin rights gets False back and nothing is written anywhere.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional
import logging

from archstudy.database import LocalStore
from archstudy.errors import RemoteStoreError
from archstudy.models import Question
from archstudy.remote import RemoteStore, QUESTIONS_PATH
from archstudy.services.sync_engine import FINGERPRINT_KEY, chunked
from archstudy.utils.auth_utils import IdentityProvider
from archstudy.utils.time_utils import now_iso

logger = logging.getLogger(__name__)

@dataclass
class BatchWriteResult:
    saved: int = 0
    skipped: int = 0
    failed: int = 0
    denied: bool = False

    @property
    def ok(self) -> bool:
        return not self.denied and self.failed == 0

class AdminWriter:
    def __init__(
        self,
        local: LocalStore,
        remote: Optional[RemoteStore],
        identity: IdentityProvider,
        batch_size: int = 500,
    ):
        self.local = local
        self.remote = remote
        self.identity = identity
        self.batch_size = batch_size

    def _permitted(self, action: str) -> bool:
        if not self.identity.is_admin():
            logger.warning(f"Permission denied: {action} requires admin")
            return False
        if self.remote is None:
            logger.error(f"Cannot {action}: remote store not configured")
            return False
        return True

    def _stamp(self, question: Question) -> Question:
        timestamp = now_iso()
        return question.model_copy(update={
            "created_at": question.created_at or timestamp,
            "updated_at": timestamp,
        })

    async def _mirror_failed(self, action: str, error: Exception):
        # The remote write landed, so the next question sync must not be skipped
        logger.error(f"Local mirror of {action} failed: {error}")
        try:
            await self.local.delete_cache(FINGERPRINT_KEY)
        except Exception as e:
            logger.error(f"Could not reset question fingerprint: {e}")

    async def save_question(self, question: Question) -> bool:
        """Create or update a question on the remote bank, then locally"""
        if not self._permitted("save question"):
            return False

        question = self._stamp(question)
        try:
            await self.remote.set(QUESTIONS_PATH, question.id, question.to_record())
        except RemoteStoreError as e:
            logger.error(f"Saving question {question.id} failed: {e}")
            return False

        try:
            await self.local.put_question(question)
        except Exception as e:
            await self._mirror_failed(f"save {question.id}", e)
            return False

        logger.info(f"Question {question.id} saved")
        return True

    async def delete_question(self, question_id: str) -> bool:
        """Delete a question from the remote bank, then locally"""
        if not self._permitted("delete question"):
            return False

        try:
            await self.remote.remove(QUESTIONS_PATH, question_id)
        except RemoteStoreError as e:
            logger.error(f"Deleting question {question_id} failed: {e}")
            return False

        try:
            await self.local.delete_question(question_id)
        except Exception as e:
            await self._mirror_failed(f"delete {question_id}", e)
            return False

        logger.info(f"Question {question_id} deleted")
        return True

    async def save_questions_batch(
        self, questions: Iterable[Question], skip_existing: bool = True
    ) -> BatchWriteResult:
        """Write many questions in remote batches, mirroring each accepted batch"""
        questions = list(questions)
        if not self._permitted("save questions"):
            return BatchWriteResult(denied=True, failed=len(questions))

        result = BatchWriteResult()
        pending: List[Question] = []
        if skip_existing:
            existing = {q.id for q in await self.local.get_all_questions()}
            for question in questions:
                if question.id in existing:
                    result.skipped += 1
                else:
                    pending.append(question)
        else:
            pending = questions

        pending = [self._stamp(q) for q in pending]
        for batch in chunked(pending, self.batch_size):
            try:
                await self.remote.update(QUESTIONS_PATH, {q.id: q.to_record() for q in batch})
            except RemoteStoreError as e:
                logger.error(f"Question batch of {len(batch)} failed: {e}")
                result.failed += len(batch)
                continue
            try:
                await self.local.put_questions_batch(batch)
            except Exception as e:
                await self._mirror_failed(f"batch of {len(batch)}", e)
                result.failed += len(batch)
                continue
            result.saved += len(batch)

        logger.info(f"Question batch write: {result.saved} saved, {result.skipped} skipped, {result.failed} failed")
        return result

    async def upload_builtin_questions(self, builtin: Iterable[dict]) -> BatchWriteResult:
        """Push the bundled seed collection to the remote bank as-is"""
        records = {record["id"]: record for record in builtin}
        if not self._permitted("upload builtin questions"):
            return BatchWriteResult(denied=True, failed=len(records))

        result = BatchWriteResult()
        for batch in chunked(list(records.items()), self.batch_size):
            try:
                await self.remote.update(QUESTIONS_PATH, dict(batch))
            except RemoteStoreError as e:
                logger.error(f"Builtin upload batch failed: {e}")
                result.failed += len(batch)
                continue
            result.saved += len(batch)
            logger.info(f"Uploaded {result.saved}/{len(records)} builtin questions")
        return result
