"""Phone + SMS code login orchestration (application layer)."""

import logging
import re
from dataclasses import dataclass
from typing import Literal, Optional

from infrastructure.session_gateway import CredentialInvalidError, GatewayError, TransientGatewayError

log = logging.getLogger(__name__)

AuthFlowStatus = Literal["CONTINUE", "RETRY"]

DEFAULT_COUNTRY_PREFIX = "+420"
E164_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")
CODE_PATTERN = re.compile(r"^\d{6}$")


class ValidationError(ValueError):
    """Input rejected locally, before any network call."""


@dataclass(frozen=True)
class AuthFlowResult:
    """Result contract for the login screens."""

    status: AuthFlowStatus
    reason: str
    needs_onboarding: Optional[bool] = None
    error: Optional[GatewayError] = None


def normalize_phone(raw: str, default_prefix: str = DEFAULT_COUNTRY_PREFIX) -> str:
    """Strip formatting and make sure the number carries a country prefix."""
    cleaned = "".join(ch for ch in (raw or "") if ch.isdigit() or ch == "+")
    if not cleaned or cleaned.startswith("+"):
        return cleaned
    prefix_digits = default_prefix.lstrip("+")
    if cleaned.startswith(prefix_digits):
        return "+" + cleaned
    return default_prefix + cleaned


def validate_phone(phone: str) -> str:
    if not E164_PATTERN.match(phone or ""):
        raise ValidationError("Enter a valid phone number, e.g. +420777123456")
    return phone


def validate_code(code: str) -> str:
    code = (code or "").strip()
    if not CODE_PATTERN.match(code):
        raise ValidationError("The verification code has 6 digits")
    return code


async def request_code(gateway, raw_phone: str, default_prefix: str = DEFAULT_COUNTRY_PREFIX) -> AuthFlowResult:
    phone = validate_phone(normalize_phone(raw_phone, default_prefix))
    try:
        sent = await gateway.send_code(phone)
    except GatewayError as e:
        log.warning(f"Sending verification code failed: {e}")
        return AuthFlowResult(status="RETRY", reason="send_failed", error=e)
    if not sent:
        return AuthFlowResult(status="RETRY", reason="send_failed")
    return AuthFlowResult(status="CONTINUE", reason="code_sent")


async def verify_and_login(
    controller,
    gateway,
    raw_phone: str,
    code: str,
    default_prefix: str = DEFAULT_COUNTRY_PREFIX,
) -> AuthFlowResult:
    """Verify the SMS code and hand the issued credential to the controller.

    The returned `needs_onboarding` is computed synchronously by
    `controller.login`, so navigation can be decided right away.
    """
    phone = validate_phone(normalize_phone(raw_phone, default_prefix))
    code = validate_code(code)

    try:
        response = await gateway.verify_code(phone, code)
    except CredentialInvalidError as e:
        return AuthFlowResult(status="RETRY", reason="invalid_code", error=e)
    except TransientGatewayError as e:
        reason = "invalid_code" if e.status_code == 400 else "network"
        log.warning(f"Code verification failed ({reason}): {e}")
        return AuthFlowResult(status="RETRY", reason=reason, error=e)

    needs_onboarding = controller.login(response.credential, response.identity)
    return AuthFlowResult(status="CONTINUE", reason="authenticated", needs_onboarding=needs_onboarding)
