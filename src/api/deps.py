"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthenticationError, AuthorizationError
from src.core.config import get_settings
from src.schemas.auth import UserContext
from src.services.order_service import OrderService


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        AuthenticationError: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise AuthenticationError("Access denied. No token provided.")

    # Extract the token from "Bearer <token>" format
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid authorization header format. Expected: Bearer <token>")

    try:
        payload = decode_jwt(parts[1])
    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise AuthenticationError("Token expired.") from e
        raise AuthenticationError(e.message) from e

    return payload.to_user_context()


def is_admin(user: UserContext) -> bool:
    """Check whether the user carries the configured admin role."""
    return user.role == get_settings().admin_role


async def get_admin_user(user: Annotated[UserContext, Depends(get_current_user)]) -> UserContext:
    """Require an authenticated admin.

    Raises:
        AuthorizationError: 403 if the user is not an admin.
    """
    if not is_admin(user):
        raise AuthorizationError("Access denied. Admin privileges required.")
    return user


def get_order_service() -> OrderService:
    """Provide an OrderService bound to the configured store."""
    return OrderService()


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[UserContext, Depends(get_current_user)]
AdminUser = Annotated[UserContext, Depends(get_admin_user)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
