import copy
import json
from collections import defaultdict

import pytest
from httpx import AsyncClient, ASGITransport

from archstudy.config import Settings
from archstudy.context import build_context
from archstudy.database import LocalStore
from archstudy.errors import RemoteStoreError
from archstudy.models import Question, HistoryEntry
from archstudy.remote import RemoteStore
from archstudy.services.sync_engine import SyncEngine
from archstudy.services.admin_writer import AdminWriter
from archstudy.utils.auth_utils import AdminPolicy, IdentityProvider

ADMIN_UID = "admin-uid"
USER_UID = "user-uid"

class InMemoryRemoteStore(RemoteStore):
    """Remote store double that keeps data in dicts and records every write"""

    def __init__(self):
        self.data = defaultdict(dict)
        self.writes = []
        self.fetches = []
        self.available = True
        self.fail_writes = False

    def _check(self, path, write=False):
        if not self.available:
            raise RemoteStoreError(path, "offline")
        if write and self.fail_writes:
            raise RemoteStoreError(path, "write rejected")

    async def fetch(self, path):
        self._check(path)
        self.fetches.append(path)
        return copy.deepcopy(dict(self.data[path]))

    async def update(self, path, mapping, overwrite=True):
        if not mapping:
            return
        self._check(path, write=True)
        self.writes.append(("update", path, sorted(mapping)))
        for key, value in mapping.items():
            if overwrite or key not in self.data[path]:
                self.data[path][key] = copy.deepcopy(value)

    async def set(self, path, key, value):
        self._check(path, write=True)
        self.writes.append(("set", path, key))
        self.data[path][key] = copy.deepcopy(value)

    async def remove(self, path, key=None):
        self._check(path, write=True)
        self.writes.append(("remove", path, key))
        if key is None:
            self.data.pop(path, None)
        else:
            self.data[path].pop(key, None)

@pytest.fixture
def remote():
    return InMemoryRemoteStore()

@pytest.fixture
async def local():
    store = LocalStore("sqlite://")
    await store.init()
    yield store
    store.close()

@pytest.fixture
def identity():
    return IdentityProvider(AdminPolicy(user_ids=[ADMIN_UID]))

@pytest.fixture
def builtin_file(tmp_path, make_question):
    """Seed file with two questions"""
    path = tmp_path / "builtin_questions.json"
    records = [
        make_question("2020-01-001", year=2020, updated_at="2020-01-01T00:00:00.000Z").to_record(),
        make_question("2020-01-002", year=2020, number=2, updated_at="2020-01-01T00:00:00.000Z").to_record(),
    ]
    path.write_text(json.dumps(records, ensure_ascii=False), encoding="utf-8")
    return path

@pytest.fixture
def engine(local, remote, identity, builtin_file):
    return SyncEngine(local, remote, identity, builtin_questions_path=str(builtin_file), batch_size=2)

@pytest.fixture
def admin_writer(local, remote, identity):
    return AdminWriter(local, remote, identity, batch_size=2)

@pytest.fixture
def make_question():
    """Factory for valid questions"""
    def _make_question(question_id="2024-01-001", year=2024, subject=1, number=1,
                       updated_at="2024-01-01T00:00:00.000Z", **overrides):
        data = {
            "id": question_id,
            "year": year,
            "subject": subject,
            "question_number": number,
            "question_text": f"Question {question_id}",
            "choices": ["A", "B", "C", "D"],
            "correct_answer": 2,
            "explanation": "B is correct",
            "created_at": "2024-01-01T00:00:00.000Z",
            "updated_at": updated_at,
        }
        data.update(overrides)
        return Question(**data)
    return _make_question

@pytest.fixture
def make_entry():
    """Factory for history entries"""
    def _make_entry(entry_id, question_id="2024-01-001", answered_at="2024-05-01T10:00:00.000Z",
                    is_correct=True, selected=2):
        return HistoryEntry(
            id=entry_id,
            question_id=question_id,
            answered_at=answered_at,
            selected_answer=selected,
            is_correct=is_correct,
        )
    return _make_entry

@pytest.fixture
def sign_in(identity):
    """Sign the identity provider in as a user or the admin"""
    async def _sign_in(user_id=USER_UID, email=None):
        user = identity.make_user(user_id, email)
        await identity.sign_in(user)
        return user
    return _sign_in

@pytest.fixture
def test_settings(builtin_file):
    return Settings(
        supabase_url="",
        local_db_url="sqlite://",
        builtin_questions_path=str(builtin_file),
        admin_user_ids=ADMIN_UID,
        remote_batch_size=2,
    )

@pytest.fixture
async def app_context(test_settings, remote):
    context = build_context(test_settings, remote=remote)
    await context.session.open()
    await context.session.wait()
    yield context
    await context.engine.wait_for_pushes()
    await context.session.stop()
    context.local.close()

@pytest.fixture
async def client(app_context):
    """API client bound to a test context; the app lifespan is not run"""
    from archstudy.main import app
    app.state.context = app_context
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
