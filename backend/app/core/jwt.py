"""
JWT token utilities for authentication.

Tokens are issued by the gym's identity service; this module decodes them
and can mint them for seeding and tests.
"""

from datetime import timedelta
from typing import Optional, Dict, Any, Iterable
from jose import JWTError, jwt
from backend.app.core.clock import utc_now
from backend.app.core.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Example payload:
        {
            "sub": "frontdesk",
            "user_id": 7,
            "role": "staff",
            "permissions": ["bill_create", "payment_create"],
            "exp": 1234567890
        }
    """
    to_encode = data.copy()
    expire = utc_now() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def staff_token(user_id: int, username: str, role: str, permissions: Iterable[str] = ()) -> str:
    """Token with the claims the ledger guards read."""
    return create_access_token({
        "sub": username,
        "user_id": user_id,
        "role": role,
        "permissions": list(permissions),
    })


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Returns:
        Decoded payload if the signature and expiry are valid, None otherwise
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
