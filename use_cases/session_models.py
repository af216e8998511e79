"""Session DTOs shared across application layers."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Literal, Optional

Phase = Literal["loading", "anonymous", "authenticated"]


@dataclass(frozen=True)
class Credential:
    """Opaque bearer token with the server-declared expiry."""

    token: str
    expires_at: Optional[datetime] = None

    def __repr__(self) -> str:
        # never print the token itself
        return f"Credential(expires_at={self.expires_at!r})"


@dataclass(frozen=True)
class Identity:
    id: str
    phone: str
    display_name: Optional[str] = None
    tenant_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Identity":
        return cls(
            id=str(payload["id"]),
            phone=payload["phone"],
            display_name=payload.get("name") or payload.get("display_name"),
            tenant_id=payload.get("tenant_id") or payload.get("tenantId"),
        )


@dataclass(frozen=True)
class Tenant:
    id: str
    name: str
    configuration: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Tenant":
        configuration = {k: v for k, v in payload.items() if k not in ("id", "name")}
        return cls(id=str(payload["id"]), name=payload.get("name", ""), configuration=configuration)


@dataclass(frozen=True)
class SessionState:
    """Single source of truth read by route guards and screens.

    Instances are never mutated; the controller publishes a new one for
    every transition.
    """

    phase: Phase
    identity: Optional[Identity] = None
    tenant: Optional[Tenant] = None
    needs_onboarding: bool = False
    onboarding_in_progress: bool = False
    is_privileged: bool = False

    @classmethod
    def loading(cls) -> "SessionState":
        return cls(phase="loading")

    @classmethod
    def anonymous(cls, onboarding_in_progress: bool = False) -> "SessionState":
        return cls(phase="anonymous", onboarding_in_progress=onboarding_in_progress)

    def with_changes(self, **changes: Any) -> "SessionState":
        return replace(self, **changes)


def derive_needs_onboarding(tenant_missing: bool, onboarding_in_progress: bool) -> bool:
    return tenant_missing and not onboarding_in_progress


def is_authenticated(state: SessionState) -> bool:
    return state.phase == "authenticated"


def is_loading(state: SessionState) -> bool:
    return state.phase == "loading"
