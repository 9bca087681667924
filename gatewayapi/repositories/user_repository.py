from typing import Optional
from sqlalchemy.orm import Session

from gatewayapi.models.user import User as UserModel
from gatewayapi.schemas.user import CurrentUser
from gatewayapi.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserModel, CurrentUser]):
    def __init__(self, db: Session):
        super().__init__(UserModel, CurrentUser, db)

    def get_current_user(self, user_id: str) -> Optional[CurrentUser]:
        """User behind a token subject; None for unknown or inactive users"""
        user = self.get_by_id(user_id)
        if user is None or not user.is_active:
            return None
        return user

    def create_user(
        self, email: str, name: str = "", is_admin: bool = False, commit: bool = True
    ) -> Optional[CurrentUser]:
        return self.create(
            commit=commit, email=email, name=name, is_active=True, is_admin=is_admin
        )
