import os
from dataclasses import dataclass
from typing import Optional

import streamlit as st


def get_secret(key):
    try:
        return st.secrets.get(key)
    except FileNotFoundError:
        return None


def _setting(key: str, default: Optional[str] = None) -> Optional[str]:
    value = get_secret(key) or os.getenv(key)
    return str(value) if value not in (None, "") else default


@dataclass(frozen=True)
class ClientSettings:
    api_base_url: str = "http://localhost:8080"
    api_timeout_seconds: float = 10.0
    credential_db: str = "credentials.db"
    token_lifetime_seconds: float = 24 * 60 * 60
    renewal_fraction: float = 0.85
    default_country_prefix: str = "+420"

    @property
    def renewal_interval(self) -> float:
        # renew well inside the validity window, never after expiry
        return self.token_lifetime_seconds * self.renewal_fraction


def load_settings() -> ClientSettings:
    defaults = ClientSettings()
    fraction = float(_setting("RENEWAL_FRACTION", str(defaults.renewal_fraction)))
    if not 0 < fraction < 1:
        raise ValueError(f"RENEWAL_FRACTION must be between 0 and 1, got {fraction}")
    return ClientSettings(
        api_base_url=_setting("API_BASE_URL", defaults.api_base_url),
        api_timeout_seconds=float(_setting("API_TIMEOUT_SECONDS", str(defaults.api_timeout_seconds))),
        credential_db=_setting("CREDENTIAL_DB", defaults.credential_db),
        token_lifetime_seconds=float(_setting("TOKEN_LIFETIME_SECONDS", str(defaults.token_lifetime_seconds))),
        renewal_fraction=fraction,
        default_country_prefix=_setting("DEFAULT_COUNTRY_PREFIX", defaults.default_country_prefix),
    )
