# Repository layer - Data access with Pydantic responses

from .base import BaseRepository
from .user_repository import UserRepository
from .statement_repository import StatementRepository
from .transaction_repository import TransactionRepository
from .checkout_repository import CheckoutRepository
from .gamification_repository import GamificationRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "StatementRepository",
    "TransactionRepository",
    "CheckoutRepository",
    "GamificationRepository",
]
