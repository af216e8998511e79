import streamlit as st

from infrastructure.session_gateway import CredentialInvalidError, TransientGatewayError
from use_cases import onboarding_flow
from use_cases.auth_flow import ValidationError
from use_cases.route_guard import View
from utils import session_manager


def _render_profile_step(controller):
    st.subheader("1. Your profile")
    with st.form("onboarding_profile"):
        name = st.text_input("Your name *")
        greeting = st.text_area("Greeting callers hear (optional)")
        submitted = st.form_submit_button("Create my assistant")
    if not submitted:
        return

    try:
        outcome = session_manager.run(onboarding_flow.submit_profile(controller, name, greeting))
    except ValidationError as e:
        st.error(str(e))
        return
    except TransientGatewayError:
        st.error("Could not save your profile. Try again.")
        return

    if isinstance(outcome.error, CredentialInvalidError):
        # session already ended by the controller, the guard will send us to login
        st.rerun()
    if outcome.error is not None:
        st.error("Could not save your profile. Try again.")
        return

    st.session_state.onboarding_phone_number = outcome.phone_number
    st.session_state.onboarding_step = 1
    st.rerun()


def _render_finish_step(controller):
    st.subheader("2. Forward your calls")
    number = st.session_state.onboarding_phone_number
    if number:
        st.success(f"Your screening number: {number.get('twilio_number', '')}")
        st.caption("Set call forwarding on your phone to this number.")
    else:
        st.info("A screening number will be assigned to you shortly.")

    if st.button("Finish", type="primary"):
        try:
            session_manager.run(onboarding_flow.finish(controller))
        except TransientGatewayError:
            st.error("Could not reach the server. Try again.")
            return
        st.session_state.onboarding_step = 0
        st.session_state.onboarding_phone_number = None
        session_manager.navigate(View.APP)


def render_onboarding():
    controller = session_manager.get_controller()
    if not controller.state.onboarding_in_progress:
        session_manager.call(onboarding_flow.begin, controller)

    st.title("👋 Welcome")
    if st.session_state.onboarding_step == 0:
        _render_profile_step(controller)
    else:
        _render_finish_step(controller)
