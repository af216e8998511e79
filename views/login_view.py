import streamlit as st

from infrastructure.session_gateway import TransientGatewayError
from use_cases import auth_flow
from use_cases.route_guard import View
from utils import session_manager

NETWORK_ERROR = "Could not reach the server. Try again."


def _render_restore_retry():
    # a stored credential survived a transient startup failure
    st.warning("We could not restore your previous session.")
    if st.button("Retry", key="retry_restore_btn"):
        if session_manager.retry_restore():
            st.rerun()
        st.error(NETWORK_ERROR)


def _render_phone_step(prefix: str):
    with st.form("phone_form", clear_on_submit=False):
        raw_phone = st.text_input("Phone number", placeholder="+420 777 123 456")
        submitted = st.form_submit_button("Send code")
    if not submitted:
        return

    try:
        result = session_manager.run(
            auth_flow.request_code(session_manager.get_gateway(), raw_phone, default_prefix=prefix)
        )
    except auth_flow.ValidationError as e:
        st.error(str(e))
        return
    except TransientGatewayError:
        st.error(NETWORK_ERROR)
        return

    if result.status == "CONTINUE":
        st.session_state.login_phone = auth_flow.normalize_phone(raw_phone, prefix)
        st.rerun()
    st.error("Could not send the code. Check the number and try again.")


def _render_code_step(phone: str, prefix: str):
    st.caption(f"We sent a 6-digit code to {phone}")
    with st.form("code_form", clear_on_submit=True):
        code = st.text_input("Verification code", max_chars=6)
        submitted = st.form_submit_button("Sign in")

    if st.button("Use a different number", type="secondary"):
        st.session_state.login_phone = None
        st.rerun()

    if not submitted:
        return

    try:
        result = session_manager.run(
            auth_flow.verify_and_login(
                session_manager.get_controller(),
                session_manager.get_gateway(),
                phone,
                code,
                default_prefix=prefix,
            )
        )
    except auth_flow.ValidationError as e:
        st.error(str(e))
        return
    except TransientGatewayError:
        st.error(NETWORK_ERROR)
        return

    if result.status == "CONTINUE":
        st.session_state.login_phone = None
        # decided from login()'s return value, not from a later state read
        session_manager.navigate(View.ONBOARDING if result.needs_onboarding else View.APP)
    elif result.reason == "invalid_code":
        st.error("Invalid code. Try again.")
    else:
        st.error(NETWORK_ERROR)


def render_auth_screen():
    st.title("📞 Sign in")
    if session_manager.get_controller().has_credential:
        _render_restore_retry()
    prefix = session_manager.get_settings().default_country_prefix
    phone = st.session_state.login_phone
    if phone is None:
        _render_phone_step(prefix)
    else:
        _render_code_step(phone, prefix)
