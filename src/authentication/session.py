"""
Session manager.

Holds the authorization state of one client session (identity, session,
resolved profile, loading flag) and keeps it in step with the events emitted
by an authentication provider.

Usage:
    manager = SessionManager(provider, ProfileResolver(store))
    await manager.start()          # restore session, subscribe to events
    ...
    manager.can_access(Role.EDITOR)
    ...
    manager.dispose()

Every incoming event bumps a generation counter. A profile resolution started
for an older generation is dropped when it completes, so a sign-out that
arrives while a slow fetch is still running always wins.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Set

from access_control.permissions import can_access, can_transition
from .events import AuthEvent, AuthIdentity, AuthResult, AuthSession
from .profiles import ProfileStoreError, ResolvedProfile
from .resolver import ProfileResolver

logger = logging.getLogger(__name__)

AuthCallback = Callable[[AuthEvent, Optional[AuthSession]], Awaitable[None]]


class AuthProvider(Protocol):
    """Authentication backend the session manager listens to."""

    async def sign_up(self, email: str, password: str, full_name: str) -> AuthSession:
        ...

    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    async def sign_out(self) -> None:
        ...

    async def get_current_session(self) -> Optional[AuthSession]:
        ...

    def subscribe(self, callback: AuthCallback) -> Callable[[], None]:
        ...


class SessionManager:
    """Owns the active profile of a session; consumers only read from it."""

    def __init__(self, provider: AuthProvider, resolver: ProfileResolver):
        self.provider = provider
        self.resolver = resolver
        self._identity: Optional[AuthIdentity] = None
        self._session: Optional[AuthSession] = None
        self._profile: Optional[ResolvedProfile] = None
        self._loading = False
        self._generation = 0
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._tasks: Set[asyncio.Task] = set()

    # Read-only state
    @property
    def profile(self) -> Optional[ResolvedProfile]:
        return self._profile

    @property
    def identity(self) -> Optional[AuthIdentity]:
        return self._identity

    @property
    def session(self) -> Optional[AuthSession]:
        return self._session

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def generation(self) -> int:
        return self._generation

    # Lifecycle
    async def start(self) -> None:
        """Subscribe to provider events and restore any existing session."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self.provider.subscribe(self._on_provider_event)
        self._loading = True
        try:
            session = await self.provider.get_current_session()
        except Exception:
            logger.exception("Could not read the current session")
            self._loading = False
            return
        if session is None:
            self._loading = False
            return
        await self.on_auth_event(AuthEvent.SESSION_RESTORED, session)

    def dispose(self) -> None:
        """Stop listening and drop pending event handling."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        self._generation += 1

    async def _on_provider_event(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        # Providers must not wait on profile resolution; handle each event in its own task.
        task = asyncio.ensure_future(self.on_auth_event(event, session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until every event handed over by the provider has been processed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def on_auth_event(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        self._generation += 1
        generation = self._generation
        logger.debug("Auth event %s (generation %s)", event.value, generation)

        if event is AuthEvent.SIGNED_OUT or session is None:
            self._clear()
            return

        if event is AuthEvent.TOKEN_REFRESHED and self._profile is not None \
                and self._identity == session.identity:
            self._session = session
            return

        await self._establish(session, generation)

    async def _establish(self, session: AuthSession, generation: int) -> None:
        self._session = session
        self._identity = session.identity
        self._loading = True
        profile = await self.resolver.resolve(session.identity)
        if generation != self._generation:
            logger.info(
                "Discarding stale profile for %s (generation %s, current %s)",
                session.identity.id,
                generation,
                self._generation,
            )
            return
        self._profile = profile
        self._loading = False

    def _clear(self) -> None:
        self._profile = None
        self._identity = None
        self._session = None
        self._loading = False

    # Permission predicates
    def can_access(self, required_role: Any) -> bool:
        return can_access(self._profile, required_role)

    def can_transition(self, article: Any, target_status: Any) -> bool:
        return can_transition(self._profile, article, target_status)

    # User-initiated operations
    async def sign_up(self, email: str, password: str, full_name: str) -> AuthResult:
        return await self._authenticate(self.provider.sign_up(email, password, full_name))

    async def sign_in(self, email: str, password: str) -> AuthResult:
        return await self._authenticate(self.provider.sign_in(email, password))

    async def _authenticate(self, call: Awaitable[AuthSession]) -> AuthResult:
        self._loading = True
        try:
            session = await call
            await self.wait_idle()
        except Exception as exc:
            return AuthResult(success=False, error=_error_message(exc))
        finally:
            self._loading = False
        return AuthResult(success=True, session=session)

    async def sign_out(self) -> AuthResult:
        try:
            await self.provider.sign_out()
        except Exception as exc:
            logger.exception("Sign out failed")
            result = AuthResult(success=False, error=_error_message(exc))
        else:
            result = AuthResult(success=True)
        await self.on_auth_event(AuthEvent.SIGNED_OUT, None)
        return result

    async def update_profile(self, fields: Mapping[str, Any]) -> AuthResult:
        if self._identity is None:
            return AuthResult(success=False, error="No user logged in")
        generation = self._generation
        try:
            profile = await self.resolver.store.update_profile(self._identity.id, fields)
        except ProfileStoreError as exc:
            return AuthResult(success=False, error=str(exc))
        if generation == self._generation:
            self._profile = profile
        return AuthResult(success=True)


def _error_message(exc: Exception) -> str:
    detail = getattr(exc, "detail", None)
    if detail is not None:
        return str(detail)
    return str(exc) or exc.__class__.__name__


__all__ = ["SessionManager", "AuthProvider", "AuthCallback"]
