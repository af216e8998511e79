"""Session controller: the single owner of the client's SessionState.

Every transition is applied through `_commit`, which swaps the whole state
object and notifies subscribers before returning. A caller that reads
`controller.state` on the line after an operation therefore always sees the
new state; nothing is deferred to a later loop turn.

Failure policy for authenticated gateway calls:

* HTTP 401 (`CredentialInvalidError`) proves the credential is dead: the
  store is cleared and the session drops to "anonymous".
* Anything else (`TransientGatewayError`) keeps the session exactly as it was;
  only a pending "loading" phase is settled.

Writes coming back from the network are tagged with the session epoch they
started in. Login, logout and invalidation bump the epoch, so a late response
from an older session can neither clear a newer credential nor resurrect a
cleared one.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from infrastructure.session_gateway import CredentialInvalidError, GatewayError, TransientGatewayError
from use_cases.renewal import RenewalScheduler
from use_cases.session_models import (
    Credential,
    Identity,
    SessionState,
    Tenant,
    derive_needs_onboarding,
    is_authenticated,
)

log = logging.getLogger(__name__)

# 85% of the server's default 24h token lifetime
DEFAULT_RENEWAL_INTERVAL = 24 * 60 * 60 * 0.85

Listener = Callable[[SessionState], None]


class SessionLogicError(RuntimeError):
    """An operation was called in a phase where it has no meaning."""


@dataclass(frozen=True)
class CallOutcome:
    value: Any = None
    error: Optional[GatewayError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class OnboardingOutcome:
    tenant: Optional[Tenant] = None
    phone_number: Optional[Dict[str, Any]] = None
    error: Optional[GatewayError] = None


class SessionController:
    """Orchestrates the credential store and the session gateway.

    `store` needs `get()`/`set()`; `gateway` needs the awaitable methods of
    `HttpSessionGateway`. Both are owned by the controller once passed in.
    """

    def __init__(self, store, gateway, renewal_interval: float = DEFAULT_RENEWAL_INTERVAL):
        self._store = store
        self._gateway = gateway
        self._state = SessionState.loading()
        self._listeners: List[Listener] = []
        self._background: Set[asyncio.Task] = set()
        self._epoch = 0
        self._renewal = RenewalScheduler(self.renew_credential, renewal_interval)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def renewal_active(self) -> bool:
        return self._renewal.running

    @property
    def has_credential(self) -> bool:
        """True when a stored credential can still be retried after a failed restore."""
        return self._store.get() is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, new_state: SessionState) -> None:
        previous = self._state
        self._state = new_state

        if new_state.phase != previous.phase:
            if is_authenticated(new_state):
                self._renewal.start()
            else:
                self._renewal.stop()
            log.info(f"Session phase {previous.phase} -> {new_state.phase}")

        if new_state == previous:
            return
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                log.exception("Session listener failed")

    def _require_authenticated(self, operation: str) -> None:
        if not is_authenticated(self._state):
            raise SessionLogicError(f"{operation}() requires an authenticated session (phase={self._state.phase})")

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _invalidate(self, credential: Credential, epoch: int) -> None:
        if epoch != self._epoch or self._store.get() != credential:
            log.debug("Ignoring 401 for a credential that is no longer current")
            return
        log.info("Credential rejected by server, ending session")
        self._store.set(None)
        self._epoch += 1
        self._commit(SessionState.anonymous(self._state.onboarding_in_progress))

    def _settle(self) -> None:
        # no identity is known while loading, so the settled phase is anonymous;
        # the stored credential is kept for the next refresh
        if self._state.phase == "loading":
            self._commit(self._state.with_changes(phase="anonymous"))

    async def initialize(self) -> Optional[GatewayError]:
        """Startup protocol: restore the session from the stored credential."""
        self._commit(SessionState.loading().with_changes(onboarding_in_progress=self._state.onboarding_in_progress))
        return await self._load_identity()

    async def refresh_user(self) -> Optional[GatewayError]:
        return await self._load_identity()

    async def _load_identity(self) -> Optional[GatewayError]:
        if self._store.get() is None:
            self._commit(SessionState.anonymous(self._state.onboarding_in_progress))
            return None

        epoch = self._epoch
        outcome = await self.authenticated_call(self._gateway.fetch_me)
        if outcome.error is not None:
            return outcome.error
        if epoch != self._epoch:
            log.debug("Discarding identity lookup from a previous session")
            return None

        me = outcome.value
        in_progress = self._state.onboarding_in_progress
        self._commit(
            SessionState(
                phase="authenticated",
                identity=me.identity,
                tenant=me.tenant,
                needs_onboarding=derive_needs_onboarding(me.tenant is None, in_progress),
                onboarding_in_progress=in_progress,
                is_privileged=me.is_admin,
            )
        )
        return None

    async def authenticated_call(self, operation: Callable[[str], Awaitable[Any]]) -> CallOutcome:
        """Run `operation(token)` and classify its failure."""
        credential = self._store.get()
        if credential is None:
            return CallOutcome(error=CredentialInvalidError("No credential stored"))

        epoch = self._epoch
        try:
            value = await operation(credential.token)
        except CredentialInvalidError as e:
            self._invalidate(credential, epoch)
            return CallOutcome(error=e)
        except TransientGatewayError as e:
            log.warning(f"Transient gateway failure, session kept: {e}")
            self._settle()
            return CallOutcome(error=e)
        return CallOutcome(value=value)

    def login(self, credential: Union[Credential, str], identity: Identity) -> bool:
        """Adopt a freshly issued credential and publish the interim session.

        Returns `needs_onboarding` so the caller can navigate immediately,
        without waiting for the background refresh.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError as e:
            raise SessionLogicError("login() must be called from the event loop") from e

        if isinstance(credential, str):
            credential = Credential(token=credential)

        self._store.set(credential)
        self._epoch += 1
        in_progress = self._state.onboarding_in_progress
        needs_onboarding = derive_needs_onboarding(identity.tenant_id is None, in_progress)
        self._commit(
            SessionState(
                phase="authenticated",
                identity=identity,
                tenant=None,
                needs_onboarding=needs_onboarding,
                onboarding_in_progress=in_progress,
                # elevated capability is only ever granted by the server
                is_privileged=False,
            )
        )
        self._spawn(self.refresh_user())
        return needs_onboarding

    async def logout(self) -> None:
        credential = self._store.get()
        if credential is not None:
            try:
                await self._gateway.logout(credential.token)
            except GatewayError as e:
                log.info(f"Logout notification failed, clearing session anyway: {e}")
        self._store.set(None)
        self._epoch += 1
        self._commit(SessionState.anonymous())

    def set_tenant(self, tenant: Tenant) -> None:
        self._require_authenticated("set_tenant")
        self._commit(self._state.with_changes(tenant=tenant, needs_onboarding=False))

    def start_onboarding(self) -> None:
        self._require_authenticated("start_onboarding")
        self._commit(self._state.with_changes(onboarding_in_progress=True, needs_onboarding=False))

    async def finish_onboarding(self) -> Optional[GatewayError]:
        self._require_authenticated("finish_onboarding")
        # flag first: a refresh that still sees no tenant must not reopen the wizard
        self._commit(self._state.with_changes(onboarding_in_progress=False))
        return await self.refresh_user()

    async def complete_onboarding(self, name: str, greeting_text: Optional[str] = None) -> OnboardingOutcome:
        self._require_authenticated("complete_onboarding")
        epoch = self._epoch
        outcome = await self.authenticated_call(
            lambda token: self._gateway.complete_onboarding(token, name, greeting_text)
        )
        if outcome.error is not None:
            return OnboardingOutcome(error=outcome.error)

        response = outcome.value
        if epoch == self._epoch and is_authenticated(self._state):
            if response.credential is not None:
                # the server re-issues the token with the new tenant claim
                self._store.set(response.credential)
            self.set_tenant(response.tenant)
        return OnboardingOutcome(tenant=response.tenant, phone_number=response.phone_number)

    async def renew_credential(self) -> bool:
        """One renewal tick. Failures are silent; the next real call classifies them."""
        credential = self._store.get()
        if credential is None:
            return False
        try:
            response = await self._gateway.refresh(credential.token)
        except GatewayError as e:
            log.debug(f"Credential renewal failed, keeping current token: {e}")
            return False
        if self._store.get() != credential:
            log.debug("Credential changed while renewing, dropping renewed token")
            return False
        self._store.set(response.credential)
        return True

    async def close(self) -> None:
        self._renewal.stop()
        pending = list(self._background)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
