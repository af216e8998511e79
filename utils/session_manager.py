import concurrent.futures
import logging
import time

import streamlit as st

from infrastructure.credential_store import SQLiteCredentialStore
from infrastructure.session_gateway import HttpSessionGateway, TransientGatewayError
from use_cases import route_guard
from use_cases.route_guard import View
from use_cases.session_controller import SessionController
from utils.async_runner import BackgroundLoop
from utils.settings import ClientSettings, load_settings

"""
SESSION STATE CONTRACT

Binds the session controller to a Streamlit browser session.

Keys in st.session_state:

session_controller: SessionController | None
    the only writer of SessionState; one per process, shared by every browser session
    default: None
    owner: session_manager

session_gateway: HttpSessionGateway | None
    remote session API client shared by the login and onboarding flows (one per process)
    default: None
    owner: session_manager

requested_view: View
    the screen the user asked for; the route guard decides whether it renders
    default: View.APP
    owner: session_manager

login_phone: str | None
    normalized phone number waiting for its SMS code
    default: None
    owner: login_view

onboarding_step: int
    current wizard screen
    default: 0
    owner: onboarding_view

onboarding_phone_number: dict | None
    number assigned to the tenant during onboarding
    default: None
    owner: onboarding_view
"""

log = logging.getLogger(__name__)

# headroom over the HTTP timeout for the hop through the loop thread
_LOOP_GRACE_SECONDS = 5
# how often a loading session reruns the script to pick up the settled state
_SETTLE_POLL_SECONDS = 0.3


@st.cache_resource
def get_background_loop() -> BackgroundLoop:
    return BackgroundLoop()


@st.cache_resource
def get_settings() -> ClientSettings:
    return load_settings()


@st.cache_resource
def _build_gateway() -> HttpSessionGateway:
    settings = get_settings()
    return HttpSessionGateway(settings.api_base_url, timeout=settings.api_timeout_seconds)


@st.cache_resource
def _build_controller() -> SessionController:
    # one controller per process: it owns the only credential store and renewal timer
    settings = get_settings()
    controller = SessionController(
        SQLiteCredentialStore(settings.credential_db),
        get_gateway(),
        renewal_interval=settings.renewal_interval,
    )
    # the script thread never waits on startup; it polls while the phase is loading
    get_background_loop().submit(controller.initialize())
    return controller


def init_session_state():
    if "session_controller" not in st.session_state:
        st.session_state.session_controller = None
    if "session_gateway" not in st.session_state:
        st.session_state.session_gateway = None
    if "requested_view" not in st.session_state:
        st.session_state.requested_view = View.APP
    if "login_phone" not in st.session_state:
        st.session_state.login_phone = None
    if "onboarding_step" not in st.session_state:
        st.session_state.onboarding_step = 0
    if "onboarding_phone_number" not in st.session_state:
        st.session_state.onboarding_phone_number = None


def run(coro):
    """Run a coroutine on the session loop and wait for its result.

    A wait that outlives the HTTP timeout is reported as a transient gateway
    failure; the coroutine itself keeps running on the loop.
    """
    timeout = get_settings().api_timeout_seconds + _LOOP_GRACE_SECONDS
    try:
        return get_background_loop().run(coro, timeout=timeout)
    except concurrent.futures.TimeoutError as e:
        log.warning(f"Session loop did not answer within {timeout}s")
        raise TransientGatewayError(f"Timed out after {timeout}s") from e


def call(fn, *args):
    """Invoke a synchronous controller operation on the loop thread."""
    async def _invoke():
        return fn(*args)

    return run(_invoke())


def get_gateway() -> HttpSessionGateway:
    if st.session_state.get("session_gateway") is None:
        st.session_state.session_gateway = _build_gateway()
    return st.session_state.session_gateway


def get_controller() -> SessionController:
    if st.session_state.get("session_controller") is None:
        st.session_state.session_controller = _build_controller()
    return st.session_state.session_controller


def guard(requested: View) -> bool:
    """Apply the route guard to the requested view; redirects rerun the script."""
    decision = route_guard.resolve_route(get_controller().state, requested)
    if decision.render:
        return True
    if decision.redirect_to is not None:
        navigate(decision.redirect_to)
    return False


def wait_for_session():
    """Called while the session is loading: pause briefly, then rerun to re-route."""
    time.sleep(_SETTLE_POLL_SECONDS)
    st.rerun()


def navigate(view: View):
    st.session_state.requested_view = view
    st.rerun()


def retry_restore() -> bool:
    """Retry the stored credential after a transient startup failure."""
    controller = get_controller()
    if not controller.has_credential:
        return False
    try:
        error = run(controller.refresh_user())
    except TransientGatewayError as e:
        error = e
    return error is None and controller.state.phase == "authenticated"


def logout():
    try:
        run(get_controller().logout())
    except TransientGatewayError:
        # the logout keeps running on the loop and clears the store when it lands
        log.info("Logout still in flight, leaving the screen anyway")
    st.session_state.login_phone = None
    st.session_state.onboarding_step = 0
    st.session_state.onboarding_phone_number = None
    navigate(View.LOGIN)
