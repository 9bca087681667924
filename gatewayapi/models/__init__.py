from .base import Base
from .user import User
from .transaction import Transaction, TransactionSplit
from .statement import Statement
from .checkout import Checkout, CheckoutVariant
from .gamification import (
    AchievementDefinition,
    LevelDefinition,
    LevelProgress,
    RewardDefinition,
    UserAchievement,
    UserReward,
)

__all__ = [
    "Base",
    "User",
    "Transaction",
    "TransactionSplit",
    "Statement",
    "Checkout",
    "CheckoutVariant",
    "LevelDefinition",
    "LevelProgress",
    "RewardDefinition",
    "UserReward",
    "AchievementDefinition",
    "UserAchievement",
]
