"""
Unit tests for the admin-gated question write path
"""
import copy

import pytest
from unittest.mock import AsyncMock, patch

from archstudy.remote import QUESTIONS_PATH
from archstudy.services.admin_writer import AdminWriter
from archstudy.services.sync_engine import FINGERPRINT_KEY

ADMIN_UID = "admin-uid"

async def _snapshot_stores(local, remote):
    questions = sorted((q.to_record() for q in await local.get_all_questions()), key=lambda r: r["id"])
    return questions, copy.deepcopy(dict(remote.data))

class TestAdminGate:
    """Non-admin callers must not change anything"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("signed_in", [True, False])
    async def test_non_admin_writes_nothing(self, admin_writer, local, remote, make_question, sign_in, signed_in):
        existing = make_question("2024-01-001")
        await local.put_question(existing)
        remote.data[QUESTIONS_PATH] = {existing.id: existing.to_record()}
        if signed_in:
            await sign_in("regular-user", "user@example.com")
        before = await _snapshot_stores(local, remote)

        saved = await admin_writer.save_question(make_question("2024-01-001", question_text="Changed"))
        added = await admin_writer.save_question(make_question("2024-01-009", number=9))
        deleted = await admin_writer.delete_question("2024-01-001")
        batch = await admin_writer.save_questions_batch([make_question("2024-01-010", number=10)])

        assert (saved, added, deleted) == (False, False, False)
        assert batch.denied and not batch.ok
        assert await _snapshot_stores(local, remote) == before
        assert remote.writes == []

    @pytest.mark.asyncio
    async def test_admin_by_email(self, local, remote, identity, make_question):
        identity.policy.emails.add("admin@example.com")
        user = identity.make_user("someone", "Admin@Example.com")
        await identity.sign_in(user)
        writer = AdminWriter(local, remote, identity)

        assert user.is_admin
        assert await writer.save_question(make_question()) is True

    @pytest.mark.asyncio
    async def test_no_remote_means_no_write(self, local, identity, make_question, sign_in):
        await sign_in(ADMIN_UID)
        writer = AdminWriter(local, None, identity)

        assert await writer.save_question(make_question()) is False
        assert await local.get_all_questions() == []

class TestAdminWrites:
    """Remote first, then the local mirror"""

    @pytest.mark.asyncio
    async def test_save_question_writes_both(self, admin_writer, local, remote, make_question, sign_in):
        await sign_in(ADMIN_UID)

        assert await admin_writer.save_question(make_question("2024-01-001", updated_at=None)) is True

        record = remote.data[QUESTIONS_PATH]["2024-01-001"]
        stored = await local.get_question("2024-01-001")
        assert record["updatedAt"] is not None
        assert stored.updated_at == record["updatedAt"]
        assert stored.created_at == "2024-01-01T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_remote_failure_leaves_local_unchanged(self, admin_writer, local, remote, make_question, sign_in):
        await sign_in(ADMIN_UID)
        remote.fail_writes = True

        assert await admin_writer.save_question(make_question()) is False
        assert await local.get_all_questions() == []

    @pytest.mark.asyncio
    async def test_delete_question_removes_both(self, admin_writer, local, remote, make_question, sign_in):
        question = make_question()
        await local.put_question(question)
        remote.data[QUESTIONS_PATH] = {question.id: question.to_record()}
        await sign_in(ADMIN_UID)

        assert await admin_writer.delete_question(question.id) is True
        assert await local.get_question(question.id) is None
        assert question.id not in remote.data[QUESTIONS_PATH]

    @pytest.mark.asyncio
    async def test_delete_remote_failure_keeps_local(self, admin_writer, local, remote, make_question, sign_in):
        question = make_question()
        await local.put_question(question)
        await sign_in(ADMIN_UID)
        remote.available = False

        assert await admin_writer.delete_question(question.id) is False
        assert await local.get_question(question.id) is not None

    @pytest.mark.asyncio
    async def test_local_mirror_failure_resets_fingerprint(self, admin_writer, local, remote, make_question, sign_in):
        await sign_in(ADMIN_UID)
        await local.set_cache(FINGERPRINT_KEY, "stale")

        with patch.object(local, "delete_question", new=AsyncMock(side_effect=Exception("locked"))):
            assert await admin_writer.delete_question("2024-01-001") is False

        assert await local.get_cache(FINGERPRINT_KEY) is None

    @pytest.mark.asyncio
    async def test_batch_skips_existing_and_chunks(self, admin_writer, local, remote, make_question, sign_in):
        await local.put_question(make_question("2024-01-001"))
        await sign_in(ADMIN_UID)
        questions = [make_question(f"2024-01-00{n}", number=n) for n in range(1, 6)]

        result = await admin_writer.save_questions_batch(questions)

        assert (result.saved, result.skipped, result.failed) == (4, 1, 0)
        assert [len(w[2]) for w in remote.writes] == [2, 2]
        assert len(await local.get_all_questions()) == 5

    @pytest.mark.asyncio
    async def test_upload_builtin_questions(self, admin_writer, remote, engine, sign_in):
        await sign_in(ADMIN_UID)

        result = await admin_writer.upload_builtin_questions(engine.builtin_questions().values())

        assert result.saved == 2
        assert set(remote.data[QUESTIONS_PATH]) == {"2020-01-001", "2020-01-002"}
