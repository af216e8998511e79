import asyncio

import pytest

from infrastructure.credential_store import MemoryCredentialStore
from infrastructure.session_gateway import AuthResponse, CredentialInvalidError, MeResponse, OnboardingResponse
from use_cases.session_controller import SessionController
from use_cases.session_models import Credential, Identity, Tenant

PHONE = "+420123456789"


class FakeGateway:
    """In-process stand-in for the remote session API.

    Each endpoint returns its configured response or raises its configured
    error. Setting `me_gate` to an asyncio.Event holds identity lookups until
    the test releases them.
    """

    def __init__(self):
        self.calls = []
        self.me_response = MeResponse(identity=Identity(id="1", phone=PHONE), tenant=None, is_admin=False)
        self.me_error = None
        self.me_gate = None
        self.rejected_tokens = set()
        self.send_code_result = True
        self.send_code_error = None
        self.verify_response = None
        self.verify_error = None
        self.refresh_response = None
        self.refresh_error = None
        self.logout_error = None
        self.onboarding_response = None
        self.onboarding_error = None

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)

    async def fetch_me(self, token):
        self.calls.append(("fetch_me", token))
        if self.me_gate is not None:
            await self.me_gate.wait()
        if token in self.rejected_tokens:
            raise CredentialInvalidError("Unauthorized: /api/me", status_code=401)
        if self.me_error is not None:
            raise self.me_error
        return self.me_response

    async def send_code(self, phone):
        self.calls.append(("send_code", phone))
        if self.send_code_error is not None:
            raise self.send_code_error
        return self.send_code_result

    async def verify_code(self, phone, code):
        self.calls.append(("verify_code", phone, code))
        if self.verify_error is not None:
            raise self.verify_error
        return self.verify_response

    async def refresh(self, token):
        self.calls.append(("refresh", token))
        if self.refresh_error is not None:
            raise self.refresh_error
        return self.refresh_response

    async def logout(self, token):
        self.calls.append(("logout", token))
        if self.logout_error is not None:
            raise self.logout_error

    async def complete_onboarding(self, token, name, greeting_text=None):
        self.calls.append(("complete_onboarding", token, name, greeting_text))
        if self.onboarding_error is not None:
            raise self.onboarding_error
        return self.onboarding_response


class CountingStore(MemoryCredentialStore):
    def __init__(self, credential=None):
        super().__init__(credential)
        self.clears = 0

    def set(self, credential):
        if credential is None:
            self.clears += 1
        super().set(credential)


def make_tenant(tenant_id="t1", name="Test Tenant"):
    return Tenant(id=tenant_id, name=name, configuration={"language": "cs", "plan": "trial"})


def auth_response(token="fresh-token", tenant_id=None):
    return AuthResponse(
        credential=Credential(token=token),
        identity=Identity(id="1", phone=PHONE, tenant_id=tenant_id),
    )


def onboarding_response(token="onboarded-token"):
    return OnboardingResponse(
        tenant=make_tenant(),
        credential=Credential(token=token),
        phone_number={"id": "pn1", "twilio_number": "+420222000111", "is_primary": True},
    )


async def drain():
    """Let background tasks spawned by the controller run to completion."""
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store():
    return CountingStore(Credential(token="stored-token"))


@pytest.fixture
def empty_store():
    return CountingStore()


@pytest.fixture
def make_controller(gateway):
    def factory(store, renewal_interval=3600):
        return SessionController(store, gateway, renewal_interval=renewal_interval)

    return factory
