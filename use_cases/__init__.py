"""Application layer contracts for orchestrating high-level flows.

Only dependency-free contracts are re-exported here; the flows and the
session controller are imported from their modules.
"""

from .route_guard import RouteDecision, View, home_view, resolve_route
from .session_models import Credential, Identity, Phase, SessionState, Tenant, is_authenticated, is_loading

__all__ = [
    "Credential",
    "Identity",
    "Phase",
    "RouteDecision",
    "SessionState",
    "Tenant",
    "View",
    "home_view",
    "is_authenticated",
    "is_loading",
    "resolve_route",
]
