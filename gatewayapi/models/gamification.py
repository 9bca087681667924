"""
Gamification models.

Levels are ordered tiers reached by accumulating points. Reaching a level
grants its default rewards as UserReward rows; the correlation id of each
grant is unique per user so that a level-up can be evaluated any number of
times without granting twice.
"""

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gatewayapi.models.base import Base, BaseModel, JSONType, generate_uuid


class UserRewardStatus(str, enum.Enum):
    CLAIMABLE = "CLAIMABLE"
    CLAIMED = "CLAIMED"
    EXPIRED = "EXPIRED"


level_default_rewards = Table(
    "level_default_rewards",
    Base.metadata,
    Column("level_id", String(36), ForeignKey("level_definitions.id"), primary_key=True),
    Column("reward_id", String(36), ForeignKey("reward_definitions.id"), primary_key=True),
)


class RewardDefinition(BaseModel):
    __tablename__ = "reward_definitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    data: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    expires_after_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class LevelDefinition(BaseModel):
    __tablename__ = "level_definitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    # Non-decreasing with order by convention only
    threshold: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    icon_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    rules: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)

    default_rewards: Mapped[List[RewardDefinition]] = relationship(
        secondary=level_default_rewards, lazy="selectin"
    )


class LevelProgress(BaseModel):
    __tablename__ = "level_progress"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), unique=True, nullable=False
    )
    points: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    current_level_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("level_definitions.id"), nullable=True
    )

    current_level: Mapped[Optional[LevelDefinition]] = relationship(lazy="selectin")


class UserReward(BaseModel):
    __tablename__ = "user_rewards"
    __table_args__ = (
        UniqueConstraint("user_id", "correlation_id", name="uq_user_rewards_correlation"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    reward_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reward_definitions.id"), nullable=False
    )
    status: Mapped[UserRewardStatus] = mapped_column(
        Enum(UserRewardStatus), nullable=False, default=UserRewardStatus.CLAIMABLE
    )
    correlation_id: Mapped[str] = mapped_column(String(200), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    reward: Mapped[RewardDefinition] = relationship(lazy="selectin")


class AchievementDefinition(BaseModel):
    __tablename__ = "achievement_definitions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    code: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    # {"minPoints": int, "minLevelOrder": int}; every key present must hold
    criteria: Mapped[dict] = mapped_column(JSONType, nullable=False)
    reward_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("reward_definitions.id"), nullable=True
    )

    reward: Mapped[Optional[RewardDefinition]] = relationship(lazy="selectin")


class UserAchievement(BaseModel):
    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_user_achievements"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    achievement_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("achievement_definitions.id"), nullable=False
    )
    unlocked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    achievement: Mapped[AchievementDefinition] = relationship(lazy="selectin")
