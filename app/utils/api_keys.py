"""
Project API keys: generation and extraction from incoming requests.
"""
import uuid
from typing import Optional
from app.core.trial_defaults import API_KEY_PREFIX, API_KEY_LENGTH

# Header documented in the integration snippets; Authorization: Bearer is also accepted
API_KEY_HEADER = "x-trialrescue-api-key"


def generate_api_key() -> str:
    return API_KEY_PREFIX + uuid.uuid4().hex[:API_KEY_LENGTH]


def extract_api_key(api_key_header: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """
    Pull the project API key out of the request headers.

    The dedicated header wins when both are present. Returns None when no
    usable key was supplied.
    """
    if api_key_header and api_key_header.strip():
        return api_key_header.strip()

    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
        # Frontends sometimes serialise a missing key as a literal string
        if token and token.lower() not in ("null", "undefined", "none"):
            return token

    return None
