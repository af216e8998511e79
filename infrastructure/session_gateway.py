import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import requests

from use_cases.session_models import Credential, Identity, Tenant

log = logging.getLogger(__name__)


class GatewayError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialInvalidError(GatewayError):
    """The server explicitly rejected the credential (HTTP 401)."""


class TransientGatewayError(GatewayError):
    """Any other failure: network, timeout, 5xx, malformed payload."""


@dataclass(frozen=True)
class MeResponse:
    identity: Identity
    tenant: Optional[Tenant]
    is_admin: bool


@dataclass(frozen=True)
class AuthResponse:
    credential: Credential
    identity: Identity


@dataclass(frozen=True)
class OnboardingResponse:
    tenant: Tenant
    credential: Optional[Credential]
    phone_number: Optional[Dict[str, Any]] = None


def parse_expiry(raw: Optional[str]) -> Optional[datetime]:
    """Parse the RFC3339 `expires_at` sent by the server."""
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        log.warning(f"Ignoring unparseable expires_at value: {raw!r}")
        return None


def _parse(path: str, builder: Callable[[], Any]) -> Any:
    try:
        return builder()
    except (KeyError, TypeError, AttributeError) as e:
        raise TransientGatewayError(f"Malformed response from {path}: {e!r}") from e


def _auth_response(data: Dict[str, Any]) -> AuthResponse:
    return AuthResponse(
        credential=Credential(token=data["token"], expires_at=parse_expiry(data.get("expires_at"))),
        identity=Identity.from_payload(data["user"]),
    )


class HttpSessionGateway:
    """Remote session API client.

    Blocking `requests` calls run on a worker thread so every public method is
    awaitable from the session controller's event loop.
    """

    def __init__(self, base_url: str, timeout: float = 10, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            resp = self._http.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.warning(f"Network error on {method} {path}: {e}")
            raise TransientGatewayError(f"Network error on {path}: {e}") from e

        if resp.status_code == 401:
            log.info(f"{method} {path} rejected with 401")
            raise CredentialInvalidError(f"Unauthorized: {path}", status_code=401)
        if not 200 <= resp.status_code < 300:
            log.warning(f"{method} {path} failed: HTTP {resp.status_code}")
            raise TransientGatewayError(
                f"HTTP {resp.status_code} on {path}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise TransientGatewayError(f"Malformed JSON from {path}", status_code=resp.status_code) from e
        if not isinstance(data, dict):
            raise TransientGatewayError(f"Unexpected payload type from {path}", status_code=resp.status_code)
        return data

    async def _call(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    async def fetch_me(self, token: str) -> MeResponse:
        data = await self._call("GET", "/api/me", token=token)

        def build():
            tenant_payload = data.get("tenant")
            return MeResponse(
                identity=Identity.from_payload(data["user"]),
                tenant=Tenant.from_payload(tenant_payload) if tenant_payload else None,
                is_admin=bool(data.get("is_admin", False)),
            )

        return _parse("/api/me", build)

    async def send_code(self, phone: str) -> bool:
        data = await self._call("POST", "/auth/send-code", payload={"phone": phone})
        return bool(data.get("success", False))

    async def verify_code(self, phone: str, code: str) -> AuthResponse:
        data = await self._call("POST", "/auth/verify-code", payload={"phone": phone, "code": code})
        return _parse("/auth/verify-code", lambda: _auth_response(data))

    async def refresh(self, token: str) -> AuthResponse:
        # the server reads the (possibly expired) token from the body
        data = await self._call("POST", "/auth/refresh", token=token, payload={"token": token})
        return _parse("/auth/refresh", lambda: _auth_response(data))

    async def logout(self, token: str) -> None:
        await self._call("POST", "/auth/logout", token=token)

    async def complete_onboarding(
        self, token: str, name: str, greeting_text: Optional[str] = None
    ) -> OnboardingResponse:
        payload = {"name": name}
        if greeting_text:
            payload["greeting_text"] = greeting_text
        data = await self._call("POST", "/api/onboarding/complete", token=token, payload=payload)

        def build():
            new_token = data.get("token")
            credential = None
            if new_token:
                credential = Credential(token=new_token, expires_at=parse_expiry(data.get("expires_at")))
            return OnboardingResponse(
                tenant=Tenant.from_payload(data["tenant"]),
                credential=credential,
                phone_number=data.get("phone_number"),
            )

        return _parse("/api/onboarding/complete", build)
