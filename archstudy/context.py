from dataclasses import dataclass
from typing import Optional

from archstudy.config import Settings
from archstudy.database import LocalStore
from archstudy.remote import RemoteStore, create_remote_store
from archstudy.services.admin_writer import AdminWriter
from archstudy.services.bootstrap import SessionBootstrap
from archstudy.services.study import StudyService
from archstudy.services.sync_engine import SyncEngine
from archstudy.utils.auth_utils import AdminPolicy, IdentityProvider, SupabaseAuth

@dataclass
class AppContext:
    """Service objects shared by the HTTP routes"""
    settings: Settings
    local: LocalStore
    remote: Optional[RemoteStore]
    identity: IdentityProvider
    engine: SyncEngine
    admin: AdminWriter
    study: StudyService
    session: SessionBootstrap
    auth: Optional[SupabaseAuth] = None

def build_context(
    settings: Settings,
    remote: Optional[RemoteStore] = None,
    local: Optional[LocalStore] = None,
    supabase_client=None,
) -> AppContext:
    """Wire up the services; pass remote/local to substitute either store"""
    local = local or LocalStore(settings.local_db_url)
    if remote is None:
        remote = create_remote_store(settings, client=supabase_client)
        if remote is not None:
            supabase_client = remote.client

    identity = IdentityProvider(AdminPolicy.from_settings(settings))
    engine = SyncEngine(
        local,
        remote,
        identity,
        builtin_questions_path=settings.builtin_questions_path,
        batch_size=settings.remote_batch_size,
        public_question_bank=settings.public_question_bank,
    )
    auth = SupabaseAuth(supabase_client, identity) if supabase_client is not None else None

    return AppContext(
        settings=settings,
        local=local,
        remote=remote,
        identity=identity,
        engine=engine,
        admin=AdminWriter(local, remote, identity, batch_size=settings.remote_batch_size),
        study=StudyService(local, engine),
        session=SessionBootstrap(local, engine, identity, settings.public_question_bank),
        auth=auth,
    )
