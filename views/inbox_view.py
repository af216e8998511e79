import streamlit as st

from infrastructure.session_gateway import TransientGatewayError
from utils import session_manager


def render_inbox():
    controller = session_manager.get_controller()
    state = controller.state

    with st.sidebar:
        st.caption(state.identity.display_name or state.identity.phone)
        if state.is_privileged:
            st.caption("🛡️ Administrator")
        if st.button("Refresh", key="refresh_btn", type="secondary"):
            try:
                session_manager.run(controller.refresh_user())
            except TransientGatewayError:
                st.warning("Could not refresh right now.")
            else:
                st.rerun()
        if st.button("Log out", key="logout_btn", type="secondary"):
            session_manager.logout()

    tenant_name = state.tenant.name if state.tenant else "your account"
    st.title(f"📥 Calls for {tenant_name}")
    if state.tenant is None:
        st.info("Your account is still being set up. Refresh in a moment.")
