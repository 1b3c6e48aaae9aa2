"""
JWT token verification.

Tokens are issued by the storefront auth service and shared here through the
secret key. They arrive in the httpOnly "access_token" cookie (browser
dashboards) or an Authorization: Bearer header (checkout service).
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from src.config import settings

# JWT configuration
ALGORITHM = "HS256"
TOKEN_TYPE = "access"
VALID_ROLES = ("admin", "supplier", "service")


def create_access_token(
    user_id: int,
    role: str,
    supplier_id: Optional[int] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Used by service tooling and tests; end-user tokens come from the
    auth service with the same claims.

    Args:
        user_id: Actor's ID in the auth service
        role: admin, supplier or service
        supplier_id: Supplier the actor acts for (supplier role only)
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.jwt_expire_hours)

    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": expire,
        "type": TOKEN_TYPE,
        "iat": datetime.now(timezone.utc),
    }
    if supplier_id is not None:
        payload["supplier_id"] = supplier_id

    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """
    Verify and decode a JWT token.

    Args:
        token: JWT token string

    Returns:
        Dict with 'user_id', 'role' and 'supplier_id',
        or None if token is invalid/expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[ALGORITHM],
        )

        if payload.get("type") != TOKEN_TYPE:
            return None

        user_id = payload.get("sub")
        role = payload.get("role")

        if not user_id or role not in VALID_ROLES:
            return None

        supplier_id = payload.get("supplier_id")
        if role == "supplier" and supplier_id is None:
            return None

        return {
            "user_id": int(user_id),
            "role": role,
            "supplier_id": int(supplier_id) if supplier_id is not None else None,
        }

    except (JWTError, ValueError):
        return None


def get_token_from_request(request) -> Optional[str]:
    """
    Extract JWT token from the Authorization header or the httpOnly cookie.

    Args:
        request: FastAPI Request object

    Returns:
        Token string or None
    """
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        if token:
            return token
    return request.cookies.get("access_token")
