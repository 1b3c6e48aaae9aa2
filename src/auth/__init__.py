"""Authentication module."""

from src.auth.dependencies import (
    get_current_actor,
    require_admin,
    require_settlement_client,
    require_supplier,
)
from src.auth.jwt import create_access_token, verify_token

__all__ = [
    "create_access_token",
    "verify_token",
    "get_current_actor",
    "require_admin",
    "require_supplier",
    "require_settlement_client",
]
