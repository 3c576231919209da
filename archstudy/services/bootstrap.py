"""
Session bootstrap: open the local store, then sync in the background.

    UNINITIALIZED -> LOCAL_READY -> SYNCING -> SYNCED | SYNC_FAILED

Data already in the local store is served as soon as the state reaches
LOCAL_READY. Signing in starts a sync run; signing out cancels it.
"""
from enum import Enum
from typing import Awaitable, Callable, List, Optional
import asyncio
import logging

from archstudy.database import LocalStore
from archstudy.services.sync_engine import SyncEngine
from archstudy.utils.auth_utils import CurrentUser, IdentityProvider
from archstudy.utils.time_utils import now_iso

logger = logging.getLogger(__name__)

class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOCAL_READY = "local_ready"
    SYNCING = "syncing"
    SYNCED = "synced"
    SYNC_FAILED = "sync_failed"

SyncListener = Callable[[], Awaitable[None]]

class SessionBootstrap:
    def __init__(
        self,
        local: LocalStore,
        engine: SyncEngine,
        identity: IdentityProvider,
        public_question_bank: bool = True,
    ):
        self.local = local
        self.engine = engine
        self.identity = identity
        self.public_question_bank = public_question_bank
        self.state = SessionState.UNINITIALIZED
        self.last_results: dict = {}
        self.last_synced_at: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[SyncListener] = []
        identity.on_change(self._on_identity_change)

    def on_synced(self, listener: SyncListener):
        """Called after a sync run that changed local data"""
        self._listeners.append(listener)

    async def open(self):
        await self.local.init()
        self.state = SessionState.LOCAL_READY
        if self.public_question_bank or self.identity.current_user() is not None:
            self.start_background_sync()

    def start_background_sync(self) -> asyncio.Task:
        if self.state == SessionState.UNINITIALIZED:
            raise RuntimeError("Local store is not open")
        if self._task is not None and not self._task.done():
            return self._task
        self.state = SessionState.SYNCING
        self._task = asyncio.create_task(self._run())
        return self._task

    async def retry(self) -> SessionState:
        """Run a sync now and wait for it"""
        await self.stop()
        await self.start_background_sync()
        return self.state

    async def wait(self):
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def stop(self):
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.state = SessionState.LOCAL_READY
        logger.info("Background sync cancelled")

    async def _run(self):
        jobs = {"questions": self.engine.reconcile_questions()}
        if self.identity.current_user() is not None:
            jobs["history"] = self.engine.reconcile_history()
            jobs["memos"] = self.engine.sync_memos()

        logger.info(f"Background sync started ({', '.join(jobs)})")
        outcomes = await asyncio.gather(*jobs.values(), return_exceptions=True)
        results = dict(zip(jobs, outcomes))

        failed = []
        for name, outcome in results.items():
            if isinstance(outcome, Exception):
                logger.error(f"{name} sync raised: {outcome}")
                failed.append(name)
            elif not outcome.ok:
                failed.append(name)

        self.last_results = results
        self.last_synced_at = now_iso()
        self.state = SessionState.SYNC_FAILED if failed else SessionState.SYNCED
        if failed:
            logger.warning(f"Sync finished with failures: {', '.join(failed)}")
        else:
            logger.info("Sync finished")

        if any(getattr(outcome, "changed", False) for outcome in results.values()):
            await self._notify()

    async def _notify(self):
        for listener in list(self._listeners):
            try:
                await listener()
            except Exception as e:
                logger.error(f"Sync listener failed: {e}")

    async def _on_identity_change(self, user: Optional[CurrentUser]):
        if self.state == SessionState.UNINITIALIZED:
            return
        await self.stop()
        if user is not None:
            self.start_background_sync()
        else:
            self.state = SessionState.LOCAL_READY

    def status(self) -> dict:
        results = {}
        for name, outcome in self.last_results.items():
            if isinstance(outcome, Exception):
                results[name] = {"ok": False, "error": str(outcome)}
            else:
                results[name] = {"ok": outcome.ok, **{
                    k: (v.value if isinstance(v, Enum) else v) for k, v in vars(outcome).items()
                }}
        return {
            "state": self.state.value,
            "last_synced_at": self.last_synced_at,
            "signed_in": self.identity.current_user() is not None,
            "results": results,
        }
