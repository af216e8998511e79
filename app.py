import streamlit as st

from infrastructure.observability import setup_observability
setup_observability()

import sentry_sdk

from use_cases.route_guard import View
from utils import session_manager
from views import inbox_view, login_view, onboarding_view

st.set_page_config(page_title="Call screening", layout="centered")

# --- SESSION ---
session_manager.init_session_state()
controller = session_manager.get_controller()
requested_view = st.session_state.requested_view

# Loading renders nothing; redirects rerun the script from the top.
if not session_manager.guard(requested_view):
    st.caption("Loading your session…")
    session_manager.wait_for_session()

if controller.state.identity is not None:
    sentry_sdk.set_user({"id": controller.state.identity.id})

# --- SCREENS ---
if requested_view is View.LOGIN:
    login_view.render_auth_screen()
elif requested_view is View.ONBOARDING:
    onboarding_view.render_onboarding()
else:
    inbox_view.render_inbox()
