"""
Reconciliation between the local store and the remote store.

Questions:  the remote bank (or the bundled seed when the remote is empty)
            replaces the local collection wholesale, unless its fingerprint
            matches the last applied one.
History:    grow-only set union by entry id. Entries missing remotely are
            uploaded without overwriting, entries missing locally are
            downloaded, nothing present on both sides is touched.
Memos:      union with remote precedence on conflicting keys; local-only
            keys are pushed up.

Sync failures are logged and reported in the result objects; they never
raise to the caller. Only explicit user actions (clear history) raise.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple
import asyncio
import hashlib
import json
import logging

from pydantic import ValidationError

from archstudy.database import LocalStore
from archstudy.errors import RemoteStoreError
from archstudy.models import Question, HistoryEntry
from archstudy.remote import RemoteStore, QUESTIONS_PATH, history_path, memos_path
from archstudy.utils.auth_utils import IdentityProvider
from archstudy.utils.time_utils import now_iso

logger = logging.getLogger(__name__)

FINGERPRINT_KEY = "questions.fingerprint"
SOURCE_KEY = "questions.source"

class QuestionSource(str, Enum):
    REMOTE = "remote"
    BUILTIN = "builtin"

class QuestionSyncOutcome(str, Enum):
    REPLACED = "replaced"
    SKIPPED = "skipped"
    EMPTY = "empty"
    UNAVAILABLE = "unavailable"
    FAILED = "failed"

@dataclass
class QuestionSyncResult:
    outcome: QuestionSyncOutcome
    source: Optional[QuestionSource] = None
    count: int = 0
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome not in (QuestionSyncOutcome.UNAVAILABLE, QuestionSyncOutcome.FAILED)

    @property
    def changed(self) -> bool:
        return self.outcome == QuestionSyncOutcome.REPLACED

@dataclass
class HistorySyncResult:
    uploaded: int = 0
    downloaded: int = 0
    skipped: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def changed(self) -> bool:
        return self.downloaded > 0

@dataclass
class MemoSyncResult:
    pulled: int = 0
    pushed: int = 0
    skipped: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def changed(self) -> bool:
        return self.pulled > 0

def compute_fingerprint(records: Mapping[str, Mapping[str, Any]]) -> str:
    """Digest over the id list and updatedAt list of a question collection.

    Changes whenever a record is added or removed or any updatedAt moves.
    """
    pairs = sorted((str(key), str(value.get("updatedAt") or "")) for key, value in records.items())
    ids = "\n".join(key for key, _ in pairs)
    stamps = "\n".join(stamp for _, stamp in pairs)
    payload = f"{len(pairs)}\x00{ids}\x00{stamps}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()

def load_builtin_questions(path: str) -> Dict[str, Dict[str, Any]]:
    """Bundled seed collection keyed by question id"""
    seed_file = Path(path)
    if not seed_file.exists():
        logger.warning(f"Builtin question file not found: {path}")
        return {}
    with seed_file.open(encoding="utf-8") as f:
        data = json.load(f)
    return {record["id"]: record for record in data}

def chunked(items: List[Any], size: int) -> Iterable[List[Any]]:
    size = max(size, 1)
    for start in range(0, len(items), size):
        yield items[start:start + size]

class SyncEngine:
    def __init__(
        self,
        local: LocalStore,
        remote: Optional[RemoteStore],
        identity: IdentityProvider,
        builtin_questions_path: Optional[str] = None,
        batch_size: int = 500,
        public_question_bank: bool = True,
    ):
        self.local = local
        self.remote = remote
        self.identity = identity
        self.builtin_questions_path = builtin_questions_path
        self.batch_size = batch_size
        self.public_question_bank = public_question_bank
        self._builtin: Optional[Dict[str, Dict[str, Any]]] = None
        self._pending_pushes: Set[asyncio.Task] = set()

    def builtin_questions(self) -> Dict[str, Dict[str, Any]]:
        if self._builtin is None:
            self._builtin = (
                load_builtin_questions(self.builtin_questions_path)
                if self.builtin_questions_path else {}
            )
        return self._builtin

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    async def reconcile_questions(self) -> QuestionSyncResult:
        """Replace the local question bank with the remote one when it changed"""
        if self.remote is None:
            records, source = {}, QuestionSource.REMOTE
        else:
            if not self.public_question_bank and self.identity.current_user() is None:
                return QuestionSyncResult(QuestionSyncOutcome.UNAVAILABLE, error="sign-in required")
            try:
                records = await self.remote.fetch(QUESTIONS_PATH)
            except RemoteStoreError as e:
                logger.warning(f"Question bank unavailable, keeping local data: {e}")
                return QuestionSyncResult(QuestionSyncOutcome.UNAVAILABLE, error=str(e))
            source = QuestionSource.REMOTE

        if not records:
            source = QuestionSource.BUILTIN
            try:
                records = self.builtin_questions()
            except Exception as e:
                logger.error(f"Loading builtin questions failed: {e}")
                return QuestionSyncResult(QuestionSyncOutcome.FAILED, source, error=str(e))
            if not records:
                logger.info("No remote or builtin questions to apply")
                return QuestionSyncResult(QuestionSyncOutcome.EMPTY)

        try:
            fingerprint = compute_fingerprint(records)
            cached_fingerprint = await self.local.get_cache(FINGERPRINT_KEY)
            cached_source = await self.local.get_cache(SOURCE_KEY)
            if cached_fingerprint == fingerprint and cached_source == source.value:
                logger.debug(f"Question bank unchanged ({source.value}), skipping")
                return QuestionSyncResult(QuestionSyncOutcome.SKIPPED, source, len(records))

            questions = self._parse_questions(records)
            await self.local.replace_questions(questions)
            await self.local.set_cache(FINGERPRINT_KEY, fingerprint)
            await self.local.set_cache(SOURCE_KEY, source.value)
        except Exception as e:
            logger.error(f"Applying {source.value} question bank failed: {e}")
            return QuestionSyncResult(QuestionSyncOutcome.FAILED, source, error=str(e))

        logger.info(f"Loaded {len(questions)} questions from {source.value}")
        return QuestionSyncResult(QuestionSyncOutcome.REPLACED, source, len(questions))

    def _parse_questions(self, records: Mapping[str, Mapping[str, Any]]) -> List[Question]:
        questions = []
        for key, data in records.items():
            try:
                questions.append(Question.from_record({**data, "id": key}))
            except ValidationError as e:
                logger.warning(f"Skipping malformed question {key}: {e.error_count()} errors")
        return questions

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def reconcile_history(self) -> HistorySyncResult:
        """Union local and remote history by entry id"""
        user = self.identity.current_user()
        if user is None or self.remote is None:
            return HistorySyncResult(skipped=True)

        path = history_path(user.id)
        try:
            remote_records = await self.remote.fetch(path)
        except RemoteStoreError as e:
            logger.warning(f"History sync skipped, remote unavailable: {e}")
            return HistorySyncResult(errors=[str(e)])

        result = HistorySyncResult()
        try:
            local_entries = await self.local.get_all_history()
        except Exception as e:
            result.errors.append(str(e))
            return result
        local_ids = {entry.id for entry in local_entries}

        to_upload = [entry for entry in local_entries if entry.id not in remote_records]
        to_download = []
        for key, data in remote_records.items():
            if key in local_ids:
                continue
            try:
                to_download.append(HistoryEntry.from_record({**data, "id": key}))
            except ValidationError as e:
                logger.warning(f"Skipping malformed remote history entry {key}: {e.error_count()} errors")

        (uploaded, upload_error), (downloaded, download_error) = await asyncio.gather(
            self._upload_history(path, to_upload),
            self._download_history(to_download),
        )
        result.uploaded = uploaded
        result.downloaded = downloaded
        result.errors.extend(err for err in (upload_error, download_error) if err)

        if uploaded:
            logger.info(f"Uploaded {uploaded} history items to remote")
        if downloaded:
            logger.info(f"Downloaded {downloaded} history items from remote")
        return result

    async def _upload_history(self, path: str, entries: List[HistoryEntry]) -> Tuple[int, Optional[str]]:
        uploaded = 0
        for batch in chunked(entries, self.batch_size):
            try:
                await self.remote.update(
                    path, {entry.id: entry.to_record() for entry in batch}, overwrite=False
                )
            except RemoteStoreError as e:
                return uploaded, str(e)
            uploaded += len(batch)
        return uploaded, None

    async def _download_history(self, entries: List[HistoryEntry]) -> Tuple[int, Optional[str]]:
        if not entries:
            return 0, None
        try:
            await self.local.put_history_batch(entries)
        except Exception as e:
            logger.error(f"Storing downloaded history failed: {e}")
            return 0, str(e)
        return len(entries), None

    async def push_history_entry(self, entry: HistoryEntry) -> bool:
        """Best-effort upload of a single new answer"""
        user = self.identity.current_user()
        if user is None or self.remote is None:
            return False
        try:
            await self.remote.update(history_path(user.id), {entry.id: entry.to_record()}, overwrite=False)
            return True
        except RemoteStoreError as e:
            logger.warning(f"History entry {entry.id} stays local until next sync: {e}")
            return False

    def schedule_history_push(self, entry: HistoryEntry) -> Optional[asyncio.Task]:
        """Push a new answer in the background; the caller never waits on the remote"""
        if self.identity.current_user() is None or self.remote is None:
            return None
        task = asyncio.create_task(self.push_history_entry(entry))
        self._pending_pushes.add(task)
        task.add_done_callback(self._push_done)
        return task

    def _push_done(self, task: asyncio.Task):
        self._pending_pushes.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background history push failed: {task.exception()}")

    async def wait_for_pushes(self):
        """Wait until every scheduled history push has finished"""
        if self._pending_pushes:
            await asyncio.gather(*list(self._pending_pushes), return_exceptions=True)

    async def clear_history(self):
        """Delete the signed-in user's history on both sides.

        The remote copy goes first; if it cannot be removed the local copy is
        kept, otherwise the next sync would download it all again. Pending
        pushes are awaited first so none lands after the remote delete.
        """
        await self.wait_for_pushes()
        user = self.identity.current_user()
        if user is not None and self.remote is not None:
            await self.remote.remove(history_path(user.id))
        await self.local.clear_history()
        logger.info("History cleared")

    # ------------------------------------------------------------------
    # Memos
    # ------------------------------------------------------------------

    async def sync_memos(self) -> MemoSyncResult:
        """Merge memos, remote wins on conflicting keys (last full value wins)"""
        user = self.identity.current_user()
        if user is None or self.remote is None:
            return MemoSyncResult(skipped=True)

        path = memos_path(user.id)
        result = MemoSyncResult()
        try:
            local_memos = await self.local.get_memos()
            remote_memos = _memo_contents(await self.remote.fetch(path))
        except Exception as e:
            logger.warning(f"Memo sync skipped: {e}")
            result.errors.append(str(e))
            return result

        merged = {**local_memos, **remote_memos}
        result.pulled = sum(1 for qid, memo in remote_memos.items() if local_memos.get(qid) != memo)
        try:
            await self.local.put_memos(merged)
        except Exception as e:
            result.errors.append(str(e))
            return result

        timestamp = now_iso()
        to_push = [
            (qid, {"content": memo, "updatedAt": timestamp})
            for qid, memo in local_memos.items()
            if memo and not remote_memos.get(qid)
        ]
        for batch in chunked(to_push, self.batch_size):
            try:
                await self.remote.update(path, dict(batch))
            except RemoteStoreError as e:
                result.errors.append(str(e))
                break
            result.pushed += len(batch)

        logger.info(f"Memos synced (pulled {result.pulled}, pushed {result.pushed})")
        return result

    async def save_memo(self, question_id: str, content: Optional[str]) -> bool:
        """Store a memo locally, then best effort remotely. Empty content deletes."""
        await self.local.set_memo(question_id, content)
        user = self.identity.current_user()
        if user is None or self.remote is None:
            return False
        path = memos_path(user.id)
        try:
            if content and content.strip():
                await self.remote.set(path, question_id, {"content": content, "updatedAt": now_iso()})
            else:
                await self.remote.remove(path, question_id)
            return True
        except RemoteStoreError as e:
            logger.warning(f"Memo {question_id} stays local until next sync: {e}")
            return False

def _memo_contents(records: Mapping[str, Any]) -> Dict[str, str]:
    memos = {}
    for qid, value in records.items():
        content = value.get("content") if isinstance(value, dict) else value
        if content:
            memos[qid] = content
    return memos
