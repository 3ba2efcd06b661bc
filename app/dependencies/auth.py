from fastapi import Header, HTTPException, status
import jwt  # PyJWT
import logging
import os
import requests
import time
from typing import NamedTuple, Optional

logger = logging.getLogger(__name__)

# Cache for JWKS (Public Keys)
JWKS_CACHE = None
JWKS_CACHE_TIMESTAMP = None
JWKS_CACHE_TTL = 3600  # Cache for 1 hour
JWKS_STALE_LIMIT = 86400  # Serve a stale cache for up to a day if Supabase is unreachable


class DashboardOwner(NamedTuple):
    """The founder signed in to the dashboard, from their Supabase token."""
    user_id: str
    email: Optional[str]


def get_jwks(supabase_url: str, force_refresh: bool = False):
    """
    Fetch JWKS from Supabase with caching and retry logic.
    Only caches successful fetches - failures are not cached to allow retries.
    """
    global JWKS_CACHE, JWKS_CACHE_TIMESTAMP

    if JWKS_CACHE and not force_refresh and JWKS_CACHE_TIMESTAMP:
        if time.time() - JWKS_CACHE_TIMESTAMP < JWKS_CACHE_TTL:
            return JWKS_CACHE

    max_retries = 3
    last_error = None
    jwks_url = f"{supabase_url}/auth/v1/.well-known/jwks.json"

    for attempt in range(max_retries):
        try:
            r = requests.get(jwks_url, timeout=10)
            r.raise_for_status()
            JWKS_CACHE = r.json()
            JWKS_CACHE_TIMESTAMP = time.time()
            logger.info("[AUTH] Fetched JWKS with %s keys", len(JWKS_CACHE.get("keys", [])))
            return JWKS_CACHE
        except requests.exceptions.RequestException as e:
            last_error = str(e)
            logger.warning("[AUTH] JWKS fetch failed (attempt %s/%s): %s", attempt + 1, max_retries, last_error)
            if attempt < max_retries - 1:
                time.sleep(1)

    logger.error("[AUTH] Failed to fetch JWKS after %s attempts: %s", max_retries, last_error)
    return None


def _signing_key_from_jwks(token: str, jwks: dict):
    kid = jwt.get_unverified_header(token).get("kid")
    for key in jwks.get("keys", []):
        if kid is None or key.get("kid") == kid:
            return jwt.PyJWK(key).key
    raise jwt.InvalidKeyError(f"No JWKS key matches kid {kid}")


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header"
        )
    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid header format. Expected 'Bearer <token>'"
        )
    token = authorization[len("Bearer "):].strip()
    if not token or token.lower() in ("null", "undefined", "none"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token"
        )
    if len(token.split(".")) != 3:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format"
        )
    return token


def verify_supabase_token(authorization: Optional[str] = Header(None)) -> dict:
    """
    Verify a Supabase access token and return its claims.

    HS256 tokens (legacy projects) are checked against SUPABASE_JWT_SECRET;
    ES256/RS256 tokens against the project's JWKS.
    """
    token = _bearer_token(authorization)

    try:
        algo = jwt.get_unverified_header(token).get("alg")
    except jwt.DecodeError as e:
        logger.info("[AUTH] Failed to decode token header: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token header"
        )

    if algo == "HS256":
        secret = os.getenv("SUPABASE_JWT_SECRET")
        if not secret:
            logger.error("[AUTH] SUPABASE_JWT_SECRET is missing in environment variables")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server misconfiguration: SUPABASE_JWT_SECRET not set"
            )
        key = secret
    elif algo in ("ES256", "RS256"):
        supabase_url = os.getenv("SUPABASE_URL")
        if not supabase_url:
            logger.error("[AUTH] SUPABASE_URL is missing for %s verification", algo)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Server misconfiguration: SUPABASE_URL not set"
            )
        jwks = get_jwks(supabase_url)
        if not jwks and JWKS_CACHE and JWKS_CACHE_TIMESTAMP:
            if time.time() - JWKS_CACHE_TIMESTAMP < JWKS_STALE_LIMIT:
                logger.warning("[AUTH] Using stale JWKS cache as fallback")
                jwks = JWKS_CACHE
        if not jwks:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service temporarily unavailable. Please try again in a moment."
            )
        try:
            key = _signing_key_from_jwks(token, jwks)
        except jwt.PyJWTError as e:
            logger.info("[AUTH] No usable JWKS key: %s", e)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token signature"
            )
    else:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unsupported token algorithm: {algo}"
        )

    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=[algo],
            audience="authenticated",
            options={"verify_aud": True}
        )
    except jwt.PyJWTError as e:
        logger.info("[AUTH] %s verification failed: %s", algo, e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token signature"
        )

    return payload


def get_current_owner(authorization: Optional[str] = Header(None)) -> DashboardOwner:
    """
    FastAPI dependency for dashboard routes: verifies the Supabase token and
    returns the founder's auth user id and email.
    """
    payload = verify_supabase_token(authorization)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token missing user ID claim"
        )
    return DashboardOwner(user_id=str(user_id), email=payload.get("email"))
