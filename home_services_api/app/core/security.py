"""
Security helpers: password hashing, access tokens and role checks.

Access tokens are compact JWTs (``header.payload.signature``) signed with
HMAC-SHA256 over base64url segments.  The payload carries the user id in
``sub`` and an ``exp`` UNIX timestamp.  Passwords are stored as
PBKDF2-HMAC-SHA256 digests with a per-user random salt.

The FastAPI dependencies in this module form the access-control gate:
``get_current_user`` maps a bearer token to the stored user and
``require_roles`` restricts a route to one or more roles.  The websocket
endpoint uses ``resolve_token_user`` because it cannot rely on the HTTP
bearer scheme.
"""

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import get_connection

ROLE_CUSTOMER = "customer"
ROLE_PROVIDER = "service_provider"
ROLE_ADMIN = "admin"
ROLES = (ROLE_CUSTOMER, ROLE_PROVIDER, ROLE_ADMIN)

PBKDF2_ITERATIONS = 100_000


def _b64_url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _encode_segment(obj: Dict[str, Any]) -> str:
    return _b64_url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


def _sign(message: bytes) -> bytes:
    return hmac.new(settings.secret_key.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(user_id: int, expires_delta: Optional[int] = None) -> str:
    """Issue a signed token for ``user_id``.

    ``expires_delta`` is the lifetime in seconds and defaults to
    ``settings.access_token_expire_minutes``.
    """
    lifetime = expires_delta or settings.access_token_expire_minutes * 60
    payload = {"sub": str(user_id), "exp": int(time.time()) + lifetime}
    header = {"alg": settings.algorithm, "typ": "JWT"}
    signing_input = f"{_encode_segment(header)}.{_encode_segment(payload)}"
    signature = _b64_url_encode(_sign(signing_input.encode("utf-8")))
    return f"{signing_input}.{signature}"


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token payload if the signature and expiry check out, else ``None``."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    try:
        expected = _sign(f"{header_b64}.{payload_b64}".encode("utf-8"))
        if not hmac.compare_digest(expected, _b64_url_decode(signature_b64)):
            return None
        payload = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict) or "sub" not in payload:
        return None
    if int(payload.get("exp") or 0) < int(time.time()):
        return None
    return payload


def resolve_token_user(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """Map a raw token to the stored, active user it was issued for.

    Returns a dict with ``user_id``, ``role``, ``name`` and ``email`` or
    ``None`` when the token is invalid, expired or the account is gone or
    deactivated.
    """
    if not token:
        return None
    payload = decode_access_token(token)
    if not payload:
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT id, name, email, role, is_active FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
    finally:
        conn.close()
    if not row or not row["is_active"]:
        return None
    return {
        "sub": payload["sub"],
        "user_id": row["id"],
        "role": row["role"],
        "name": row["name"],
        "email": row["email"],
    }


security = HTTPBearer(auto_error=False)


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict[str, Any]:
    """Dependency returning the authenticated user or raising 401."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = resolve_token_user(credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_roles(*roles: str) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """Dependency factory allowing only users whose role is in ``roles``.

    Use as ``Depends(require_roles(ROLE_ADMIN))``.  Unauthenticated
    callers get 401 from ``get_current_user``; authenticated callers with
    another role get 403.
    """

    def _role_dependency(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if current_user.get("role") not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _role_dependency


def hash_password(password: str) -> str:
    """Hash ``password`` as ``<salt hex>$<digest hex>``."""
    salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${digest.hex()}"


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Constant-time check of ``plain_password`` against a stored hash."""
    if not hashed_password or "$" not in hashed_password:
        return False
    salt_hex, hash_hex = hashed_password.split("$", 1)
    try:
        salt = bytes.fromhex(salt_hex)
        stored = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(digest, stored)
