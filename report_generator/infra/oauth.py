"""Generation-service authentication: API key mode or OAuth2 client credentials."""

from __future__ import annotations

import logging
import time
from typing import NamedTuple

import requests

from report_generator.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

OFFICIAL_OPENAI_BASE_URL = "https://api.openai.com/v1"

API_KEY_MODE = "api_key"
OAUTH_MODE = "oauth"


class ServiceCredentials(NamedTuple):
    token: str
    base_url: str
    mode: str


def fetch_oauth_access_token(
    oauth_url: str,
    client_id: str,
    client_secret: str,
    *,
    attempts: int = 3,
    timeout_seconds: int = 60,
    backoff_seconds: float = 2.0,
) -> str:
    """Fetch an OAuth2 access token using the client credentials flow."""
    payload = {
        "grant_type": "client_credentials",
        "client_id": client_id,
        "client_secret": client_secret,
    }

    with requests.Session() as session:
        for attempt_num in range(1, attempts + 1):
            try:
                response = session.post(oauth_url, data=payload, timeout=timeout_seconds)
                response.raise_for_status()
                token = response.json().get("access_token")
                if not token:
                    raise ValueError("OAuth response missing access_token")
                logger.info("OAuth token acquired (client_id=%s)", client_id)
                return str(token)
            except (requests.exceptions.RequestException, ValueError) as exc:
                logger.warning("OAuth attempt %d/%d failed: %s", attempt_num, attempts, exc)
                if attempt_num == attempts:
                    raise RuntimeError("OAuth token fetch failed") from exc
                time.sleep(backoff_seconds)

    raise RuntimeError("OAuth token fetch failed")


def detect_auth_mode(settings: Settings | None = None) -> str:
    """Decide between API key and OAuth modes from configuration."""
    settings = settings or get_settings()

    if settings.OPENAI_API_KEY.strip():
        return API_KEY_MODE

    oauth_fields = {
        "OAUTH_URL": settings.OAUTH_URL.strip(),
        "CLIENT_ID": settings.CLIENT_ID.strip(),
        "CLIENT_SECRET": settings.CLIENT_SECRET.strip(),
        "AZURE_BASE_URL": settings.AZURE_BASE_URL.strip(),
    }
    if all(oauth_fields.values()):
        return OAUTH_MODE

    if any(oauth_fields.values()):
        missing = [name for name, value in oauth_fields.items() if not value]
        raise ValueError("Incomplete OAuth configuration. Missing: " + ", ".join(missing))

    raise ValueError(
        "No generation service auth configured. Set OPENAI_API_KEY, or set "
        "OAUTH_URL, CLIENT_ID, CLIENT_SECRET, and AZURE_BASE_URL."
    )


def resolve_service_credentials(settings: Settings | None = None) -> ServiceCredentials:
    """Resolve the token and endpoint the generation client should use."""
    settings = settings or get_settings()
    mode = detect_auth_mode(settings)

    if mode == API_KEY_MODE:
        return ServiceCredentials(settings.OPENAI_API_KEY.strip(), OFFICIAL_OPENAI_BASE_URL, mode)

    token = fetch_oauth_access_token(
        oauth_url=settings.OAUTH_URL.strip(),
        client_id=settings.CLIENT_ID.strip(),
        client_secret=settings.CLIENT_SECRET.strip(),
    )
    return ServiceCredentials(token, settings.AZURE_BASE_URL.strip(), mode)
