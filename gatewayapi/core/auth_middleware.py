from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from gatewayapi.core.exceptions import AuthenticationError, AuthorizationError
from gatewayapi.core.security import decode_access_token
from gatewayapi.database.session import get_db
from gatewayapi.repositories.user_repository import UserRepository
from gatewayapi.schemas.user import CurrentUser

# JWT Bearer token scheme
security = HTTPBearer(auto_error=False)


class CurrentUserResolver(ABC):
    """Turns an incoming request into the authenticated caller.

    Session storage lives behind this interface; handlers only ever see the
    resolved CurrentUser.
    """

    @abstractmethod
    def resolve(
        self, credentials: Optional[HTTPAuthorizationCredentials], db: Session
    ) -> Optional[CurrentUser]:
        """Return the caller, or None when the request is anonymous/invalid"""


class BearerTokenUserResolver(CurrentUserResolver):
    """Resolves `Authorization: Bearer <jwt>` where `sub` is the user id."""

    def resolve(
        self, credentials: Optional[HTTPAuthorizationCredentials], db: Session
    ) -> Optional[CurrentUser]:
        if not credentials or not credentials.credentials:
            return None

        claims = decode_access_token(credentials.credentials)
        if not claims or not claims.get("sub"):
            return None

        return UserRepository(db).get_current_user(claims["sub"])


def get_user_resolver(request: Request) -> CurrentUserResolver:
    return request.app.container.user_resolver()


def get_current_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    resolver: CurrentUserResolver = Depends(get_user_resolver),
) -> Optional[CurrentUser]:
    """Optional authentication - None when the token is missing or invalid"""
    return resolver.resolve(credentials, db)


def get_current_user(
    current_user: Optional[CurrentUser] = Depends(get_current_user_optional),
) -> CurrentUser:
    """Required authentication"""
    if current_user is None:
        raise AuthenticationError()
    return current_user


def get_current_active_user(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Only active users"""
    if not current_user.is_active:
        raise AuthenticationError("Inactive user account")
    return current_user


def require_admin(
    current_user: CurrentUser = Depends(get_current_active_user),
) -> CurrentUser:
    """Dependency for admin-only endpoints"""
    if not current_user.is_admin:
        raise AuthorizationError("Admin access required")
    return current_user
