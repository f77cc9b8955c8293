"""Auth service: access tokens and the passwordless sign-in link handed out after verification."""
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

import jwt

from smshub.config import get_settings
from smshub.models.identity import Identity

SIGN_IN_PURPOSE = "sign_in_link"


def _encode(payload: dict) -> str:
    settings = get_settings()
    raw = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return raw if isinstance(raw, str) else raw.decode("utf-8")


def create_access_token(identity: Identity) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    # PyJWT expects "sub" to be a string
    payload = {
        "sub": str(identity.id),
        "email": identity.email,
        "hub_id": identity.hub_id,
        "role": identity.role,
        "exp": expire,
    }
    return _encode(payload)


def create_sign_in_link(identity: Identity, redirect_path: str = "/dashboard") -> str:
    """Single-use sign-in URL for the freshly verified identity (jti identifies the use)."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.sign_in_link_expire_minutes)
    token = _encode({
        "sub": str(identity.id),
        "purpose": SIGN_IN_PURPOSE,
        "jti": secrets.token_urlsafe(16),
        "exp": expire,
    })
    base = settings.public_site_url.rstrip("/")
    return f"{base}/auth/callback?{urlencode({'token': token, 'redirect': redirect_path})}"


def decode_token(token: str) -> dict | None:
    payload, _ = decode_token_with_error(token)
    return payload


def decode_token_with_error(token: str) -> tuple[dict | None, str | None]:
    """Decode JWT; returns (payload, error_message)."""
    if not token or not isinstance(token, str):
        return None, "empty token"
    settings = get_settings()
    try:
        payload = jwt.decode(
            token.strip(),
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload, None
    except jwt.PyJWTError as e:
        return None, str(e)
