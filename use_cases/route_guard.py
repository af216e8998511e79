"""Route guard decisions over SessionState."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from use_cases.session_models import SessionState


class View(str, Enum):
    LOGIN = "login"
    ONBOARDING = "onboarding"
    APP = "app"


@dataclass(frozen=True)
class RouteDecision:
    render: bool
    redirect_to: Optional[View] = None


HOLD = RouteDecision(render=False)
RENDER = RouteDecision(render=True)


def home_view(state: SessionState) -> Optional[View]:
    """Where the user belongs right now; None while the session is loading."""
    if state.phase == "loading":
        return None
    if state.phase == "anonymous":
        return View.LOGIN
    if state.needs_onboarding or state.onboarding_in_progress:
        return View.ONBOARDING
    return View.APP


def resolve_route(state: SessionState, requested: View) -> RouteDecision:
    if state.phase == "loading":
        return HOLD

    if state.phase == "anonymous":
        return RENDER if requested is View.LOGIN else RouteDecision(render=False, redirect_to=View.LOGIN)

    if state.needs_onboarding:
        return RENDER if requested is View.ONBOARDING else RouteDecision(render=False, redirect_to=View.ONBOARDING)

    if requested is View.APP:
        return RENDER
    # a wizard that is already running keeps its screen even if a refresh lands mid-flow
    if requested is View.ONBOARDING and state.onboarding_in_progress:
        return RENDER
    return RouteDecision(render=False, redirect_to=home_view(state))
