"""Onboarding wizard orchestration."""

from typing import Optional

from use_cases.auth_flow import ValidationError
from use_cases.session_controller import OnboardingOutcome


def begin(controller) -> None:
    """Mark the wizard as running; call before its first screen renders."""
    controller.start_onboarding()


async def submit_profile(controller, name: str, greeting_text: Optional[str] = None) -> OnboardingOutcome:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    greeting_text = (greeting_text or "").strip() or None
    return await controller.complete_onboarding(name, greeting_text)


async def finish(controller):
    return await controller.finish_onboarding()
