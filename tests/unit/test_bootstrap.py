"""
Unit tests for the session bootstrap state machine
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from archstudy.remote import history_path
from archstudy.services.bootstrap import SessionBootstrap, SessionState

@pytest.fixture
def session(local, engine, identity):
    return SessionBootstrap(local, engine, identity, public_question_bank=True)

class TestSessionBootstrap:

    def test_starts_uninitialized(self, session):
        assert session.state == SessionState.UNINITIALIZED
        with pytest.raises(RuntimeError):
            session.start_background_sync()

    @pytest.mark.asyncio
    async def test_open_serves_local_data_before_sync_finishes(self, session, local, engine, make_question):
        await local.init()
        await local.put_question(make_question("already-here"))
        gate = asyncio.Event()

        async def slow_reconcile():
            await gate.wait()
            return await engine.__class__.reconcile_questions(engine)

        with patch.object(engine, "reconcile_questions", new=slow_reconcile):
            await session.open()

            assert session.state == SessionState.SYNCING
            assert [q.id for q in await local.get_all_questions()] == ["already-here"]

            gate.set()
            await session.wait()

        assert session.state == SessionState.SYNCED

    @pytest.mark.asyncio
    async def test_public_bank_syncs_without_sign_in(self, session, local):
        await session.open()
        await session.wait()

        assert session.state == SessionState.SYNCED
        assert set(session.last_results) == {"questions"}
        assert len(await local.get_all_questions()) == 2

    @pytest.mark.asyncio
    async def test_private_bank_waits_for_sign_in(self, local, engine, identity, sign_in):
        session = SessionBootstrap(local, engine, identity, public_question_bank=False)

        await session.open()
        assert session.state == SessionState.LOCAL_READY

        await sign_in()
        await session.wait()

        assert session.state == SessionState.SYNCED
        assert set(session.last_results) == {"questions", "history", "memos"}

    @pytest.mark.asyncio
    async def test_sign_in_runs_history_sync(self, session, local, remote, make_entry, sign_in):
        remote.data[history_path("user-uid")] = {"r1": make_entry("r1").to_record()}
        await session.open()
        await session.wait()

        await sign_in()
        await session.wait()

        assert [h.id for h in await local.get_all_history()] == ["r1"]
        assert session.state == SessionState.SYNCED

    @pytest.mark.asyncio
    async def test_unreachable_remote_is_recoverable(self, session, remote):
        remote.available = False
        await session.open()
        await session.wait()

        assert session.state == SessionState.SYNC_FAILED

        remote.available = True
        assert await session.retry() == SessionState.SYNCED

    @pytest.mark.asyncio
    async def test_unexpected_error_marks_failed(self, session, engine):
        with patch.object(engine, "reconcile_questions", new=AsyncMock(side_effect=Exception("boom"))):
            await session.open()
            await session.wait()

        assert session.state == SessionState.SYNC_FAILED
        assert session.status()["results"]["questions"]["ok"] is False

    @pytest.mark.asyncio
    async def test_sign_out_cancels_running_sync(self, session, engine, identity, sign_in):
        started = asyncio.Event()

        async def never_finishes():
            started.set()
            await asyncio.Event().wait()

        await sign_in()
        with patch.object(engine, "reconcile_history", new=never_finishes):
            await session.open()
            await started.wait()

            await identity.sign_out()

        assert session.state == SessionState.LOCAL_READY
        assert session._task is None

    @pytest.mark.asyncio
    async def test_listeners_notified_when_data_changed(self, session):
        listener = AsyncMock()
        session.on_synced(listener)

        await session.open()
        await session.wait()
        listener.assert_awaited_once()

        # Second run finds nothing new
        await session.retry()
        listener.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_status_shape(self, session):
        await session.open()
        await session.wait()

        status = session.status()

        assert status["state"] == "synced"
        assert status["signed_in"] is False
        assert status["results"]["questions"]["outcome"] == "replaced"
        assert status["last_synced_at"] is not None
