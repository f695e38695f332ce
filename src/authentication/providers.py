"""In-process authentication provider backed by the ``User`` model and ``TokenService``."""

import logging
from typing import Callable, List, Optional

from asgiref.sync import sync_to_async
from django.contrib.auth import get_user_model
from rest_framework.exceptions import AuthenticationFailed

from .events import AuthEvent, AuthIdentity, AuthSession
from .services import (
    TokenService,
    authenticate_credentials,
    record_login,
    register_user,
)

logger = logging.getLogger(__name__)


class LocalAuthProvider:
    """Signs users in against the local database and notifies subscribers.

    Holds at most one session, like a single client would.
    """

    def __init__(self):
        self._session: Optional[AuthSession] = None
        self._subscribers: List[Callable] = []

    def subscribe(self, callback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def _emit(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        for callback in list(self._subscribers):
            await callback(event, session)

    async def get_current_session(self) -> Optional[AuthSession]:
        return self._session

    async def sign_up(self, email: str, password: str, full_name: str) -> AuthSession:
        user = await sync_to_async(register_user)(email, password, full_name)
        session = await sync_to_async(self._open_session)(user)
        await self._emit(AuthEvent.SIGNED_UP, session)
        return session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        user = await sync_to_async(authenticate_credentials)(email, password)
        await sync_to_async(record_login)(user)
        session = await sync_to_async(self._open_session)(user)
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def refresh_session(self) -> AuthSession:
        if self._session is None:
            raise AuthenticationFailed("No active session")
        payload = TokenService.decode_token(self._session.refresh_token, expected_type="refresh")
        user = await sync_to_async(self._active_user)(payload.get("sub"))
        if user is None or payload.get("ver") != user.token_version:
            raise AuthenticationFailed("Invalid or revoked refresh token")
        session = await sync_to_async(self._open_session)(user)
        await self._emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_out(self) -> None:
        session, self._session = self._session, None
        if session is not None and session.access_token:
            payload = TokenService.decode_token(session.access_token, expected_type="access")
            await sync_to_async(TokenService.block_token)(payload["jti"], payload["exp"])
        await self._emit(AuthEvent.SIGNED_OUT, None)

    def _open_session(self, user) -> AuthSession:
        access, refresh = TokenService.generate_tokens(user)
        self._session = AuthSession(identity=AuthIdentity.from_user(user), access_token=access, refresh_token=refresh)
        return self._session

    @staticmethod
    def _active_user(user_id):
        User = get_user_model()
        return User.objects.filter(id=user_id, is_active=True).first()


__all__ = ["LocalAuthProvider"]
