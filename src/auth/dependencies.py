"""
FastAPI dependencies for authentication.
"""

from fastapi import Depends, HTTPException, Request, status

from src.auth.jwt import get_token_from_request, verify_token
from src.schemas.auth import ActorRole, TokenPayload


async def get_current_actor(request: Request) -> TokenPayload:
    """
    Get the calling actor from the access token.

    Raises 401 if no valid token is present.
    """
    token = get_token_from_request(request)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    payload = verify_token(token)
    if not payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    return TokenPayload(**payload)


async def require_admin(
    actor: TokenPayload = Depends(get_current_actor),
) -> TokenPayload:
    """
    Require the caller to be a marketplace administrator.

    Raises 403 otherwise.
    """
    if actor.role != ActorRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return actor


async def require_supplier(
    actor: TokenPayload = Depends(get_current_actor),
) -> TokenPayload:
    """
    Require a supplier-scoped actor.

    Unlike require_admin, the token must carry a supplier_id; supplier panel
    routes act on that supplier only.
    """
    if actor.role != ActorRole.SUPPLIER or actor.supplier_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Supplier access required",
        )
    return actor


async def require_settlement_client(
    actor: TokenPayload = Depends(get_current_actor),
) -> TokenPayload:
    """
    Require the checkout service (or an admin) for settlement calls.
    """
    if actor.role not in (ActorRole.SERVICE, ActorRole.ADMIN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Settlement access denied",
        )
    return actor
