"""
Security utilities.

Bearer token signing/verification for the HTTP API and masking helpers for
logging. Tokens are HS256 JWTs issued by the authentication service with the
shared SECRET_KEY; `sub` carries the account id.
"""

from datetime import datetime, timedelta, timezone

import jwt


JWT_ALGORITHM = "HS256"


def sign_token(account_id: int, secret_key: str, ttl_seconds: int = 3600) -> str:
    """
    Create a bearer token for an account.

    Args:
        account_id: Account the token identifies
        secret_key: Shared signing secret
        ttl_seconds: Token lifetime

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(account_id),
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds),
    }
    return jwt.encode(payload, secret_key, algorithm=JWT_ALGORITHM)


def verify_token(token: str | None, secret_key: str) -> int | None:
    """
    Verify a bearer token.

    Args:
        token: Encoded JWT
        secret_key: Shared signing secret

    Returns:
        Account ID, or None if the token is malformed, forged or expired
    """
    if not token:
        return None

    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.InvalidTokenError:
        return None

    subject = payload["sub"]
    if not isinstance(subject, str) or not subject.isdigit():
        return None
    return int(subject)


def mask_sensitive(value: str | None, show_chars: int = 4) -> str:
    """
    Mask sensitive string (tokens, keys).

    Args:
        value: Sensitive value to mask
        show_chars: Number of characters to show at start and end

    Returns:
        Masked value or '***' if too short

    Examples:
        >>> mask_sensitive("my_secret_key_1234567890", show_chars=4)
        'my_s...7890'
        >>> mask_sensitive("short")
        '***'
    """
    if not value or len(value) <= show_chars * 2:
        return "***"
    return f"{value[:show_chars]}...{value[-show_chars:]}"
