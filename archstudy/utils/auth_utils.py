from fastapi import HTTPException, Depends, Request, status
from pydantic import BaseModel
from typing import Awaitable, Callable, Iterable, List, Optional
import logging

from archstudy.config import Settings

logger = logging.getLogger(__name__)

class CurrentUser(BaseModel):
    id: str
    email: Optional[str] = None
    is_admin: bool = False

class AdminPolicy:
    """Decides which identities may write the shared question bank"""

    def __init__(self, user_ids: Iterable[str] = (), emails: Iterable[str] = ()):
        self.user_ids = set(user_ids)
        self.emails = {email.lower() for email in emails}

    @classmethod
    def from_settings(cls, settings: Settings) -> "AdminPolicy":
        return cls(settings.admin_user_id_list, settings.admin_email_list)

    def __call__(self, user_id: str, email: Optional[str] = None) -> bool:
        if user_id in self.user_ids:
            return True
        return bool(email) and email.lower() in self.emails

ChangeListener = Callable[[Optional[CurrentUser]], Awaitable[None]]

class IdentityProvider:
    """Holds the signed-in user and notifies listeners on sign-in/sign-out"""

    def __init__(self, policy: AdminPolicy):
        self.policy = policy
        self._user: Optional[CurrentUser] = None
        self._listeners: List[ChangeListener] = []

    def current_user(self) -> Optional[CurrentUser]:
        return self._user

    def is_admin(self) -> bool:
        return self._user is not None and self._user.is_admin

    def on_change(self, listener: ChangeListener):
        self._listeners.append(listener)

    def make_user(self, user_id: str, email: Optional[str] = None) -> CurrentUser:
        return CurrentUser(id=user_id, email=email, is_admin=self.policy(user_id, email))

    async def sign_in(self, user: CurrentUser):
        self._user = user
        logger.info(f"Signed in as {user.id} (admin={user.is_admin})")
        await self._notify()

    async def sign_out(self):
        if self._user is None:
            return
        logger.info(f"Signed out {self._user.id}")
        self._user = None
        await self._notify()

    async def _notify(self):
        for listener in list(self._listeners):
            try:
                await listener(self._user)
            except Exception as e:
                logger.error(f"Identity change listener failed: {e}")

class SupabaseAuth:
    """Email/password sign-in through Supabase Auth"""

    def __init__(self, client, identity: IdentityProvider):
        self.client = client
        self.identity = identity

    async def sign_in(self, email: str, password: str) -> CurrentUser:
        response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        if not response or not response.user:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
        user = self.identity.make_user(response.user.id, response.user.email)
        await self.identity.sign_in(user)
        return user

    async def sign_out(self):
        try:
            self.client.auth.sign_out()
        except Exception as e:
            logger.warning(f"Supabase sign out failed: {e}")
        await self.identity.sign_out()

def get_context(request: Request):
    """Application context built at startup"""
    return request.app.state.context

async def get_current_user(context=Depends(get_context)) -> CurrentUser:
    """Signed-in user, or 401"""
    user = context.identity.current_user()
    if user:
        return user

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Sign in required"
    )

async def require_admin(current_user: CurrentUser = Depends(get_current_user)):
    """Require admin privileges"""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user
