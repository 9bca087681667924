"""
Gamification repository - levels, reward definitions, progress and grants.

Point increments are single UPDATE statements. Reward grants are guarded by
the (user_id, correlation_id) unique constraint; a duplicate insert is
rolled back to a savepoint and reported as "not granted".
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple

from sqlalchemy import asc, desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gatewayapi.models.gamification import (
    AchievementDefinition as AchievementDefinitionModel,
    LevelDefinition as LevelDefinitionModel,
    LevelProgress as LevelProgressModel,
    RewardDefinition as RewardDefinitionModel,
    UserAchievement as UserAchievementModel,
    UserReward as UserRewardModel,
    UserRewardStatus,
)
from gatewayapi.models.user import User as UserModel
from gatewayapi.repositories.base import BaseRepository
from gatewayapi.schemas.gamification import UserRewardResponse

logger = logging.getLogger(__name__)


class GamificationRepository(BaseRepository[UserRewardModel, UserRewardResponse]):
    def __init__(self, db: Session):
        super().__init__(UserRewardModel, UserRewardResponse, db)

    # Level definitions

    def list_levels(self) -> List[LevelDefinitionModel]:
        self._ensure_clean_session()
        return (
            self.db.query(LevelDefinitionModel)
            .order_by(LevelDefinitionModel.order)
            .all()
        )

    def lowest_level(self) -> Optional[LevelDefinitionModel]:
        self._ensure_clean_session()
        return (
            self.db.query(LevelDefinitionModel)
            .order_by(LevelDefinitionModel.order)
            .first()
        )

    def level_conflicts(self, code: str, order: int) -> bool:
        """True when a level already uses this code or order"""
        return (
            self.db.query(LevelDefinitionModel)
            .filter(
                (LevelDefinitionModel.code == code)
                | (LevelDefinitionModel.order == order)
            )
            .first()
            is not None
        )

    def create_level(
        self, default_rewards: Iterable[RewardDefinitionModel] = (), **kwargs
    ) -> LevelDefinitionModel:
        level = LevelDefinitionModel(**kwargs)
        level.default_rewards = list(default_rewards)
        self.db.add(level)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(level)
        return level

    # Reward definitions

    def list_reward_definitions(self) -> List[RewardDefinitionModel]:
        self._ensure_clean_session()
        return (
            self.db.query(RewardDefinitionModel)
            .order_by(RewardDefinitionModel.code)
            .all()
        )

    def get_rewards_by_codes(self, codes: List[str]) -> List[RewardDefinitionModel]:
        if not codes:
            return []
        return (
            self.db.query(RewardDefinitionModel)
            .filter(RewardDefinitionModel.code.in_(codes))
            .all()
        )

    def create_reward_definition(self, **kwargs) -> RewardDefinitionModel:
        reward = RewardDefinitionModel(**kwargs)
        self.db.add(reward)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(reward)
        return reward

    # Progress

    def get_progress(self, user_id: str) -> Optional[LevelProgressModel]:
        self._ensure_clean_session()
        return (
            self.db.query(LevelProgressModel)
            .filter(LevelProgressModel.user_id == user_id)
            .first()
        )

    def lock_progress(self, user_id: str) -> Optional[LevelProgressModel]:
        """SELECT ... FOR UPDATE on the user's progress row"""
        self._ensure_clean_session()
        return (
            self.db.query(LevelProgressModel)
            .filter(LevelProgressModel.user_id == user_id)
            .populate_existing()
            .with_for_update()
            .first()
        )

    def create_progress(
        self, user_id: str, points: int = 0, level_id: Optional[str] = None
    ) -> bool:
        """Insert the progress row; False when another request created it first"""
        savepoint = self.db.begin_nested()
        try:
            self.db.add(
                LevelProgressModel(
                    user_id=user_id, points=points, current_level_id=level_id
                )
            )
            self.db.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.info(f"Progress row for user {user_id} already exists")
            return False
        savepoint.commit()
        return True

    def increment_points(self, user_id: str, amount: int) -> int:
        """points = points + amount in a single statement; returns rows touched"""
        result = self.db.execute(
            update(LevelProgressModel)
            .where(LevelProgressModel.user_id == user_id)
            .values(points=LevelProgressModel.points + amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def add_points(self, user_id: str, amount: int) -> None:
        """Atomically add points, creating a zero-point row without a level if absent"""
        if self.increment_points(user_id, amount):
            return
        if self.create_progress(user_id, points=amount):
            return
        # Lost the insert race; the row exists now
        self.increment_points(user_id, amount)

    # Achievements

    def list_achievements(self) -> List[AchievementDefinitionModel]:
        self._ensure_clean_session()
        return (
            self.db.query(AchievementDefinitionModel)
            .order_by(AchievementDefinitionModel.code)
            .all()
        )

    def achievement_code_exists(self, code: str) -> bool:
        return (
            self.db.query(AchievementDefinitionModel.id)
            .filter(AchievementDefinitionModel.code == code)
            .first()
            is not None
        )

    def create_achievement(self, **kwargs) -> AchievementDefinitionModel:
        achievement = AchievementDefinitionModel(**kwargs)
        self.db.add(achievement)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(achievement)
        return achievement

    def unlocked_achievement_ids(self, user_id: str) -> Set[str]:
        rows = (
            self.db.query(UserAchievementModel.achievement_id)
            .filter(UserAchievementModel.user_id == user_id)
            .all()
        )
        return {row[0] for row in rows}

    def unlock_achievement(
        self, user_id: str, achievement_id: str, unlocked_at: datetime
    ) -> Optional[UserAchievementModel]:
        """Insert the unlock; None when the user already has it"""
        savepoint = self.db.begin_nested()
        unlock = UserAchievementModel(
            user_id=user_id, achievement_id=achievement_id, unlocked_at=unlocked_at
        )
        try:
            self.db.add(unlock)
            self.db.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.info(f"Achievement {achievement_id} already unlocked for user {user_id}")
            return None
        savepoint.commit()
        return unlock

    def list_user_achievements(self, user_id: str) -> List[UserAchievementModel]:
        self._ensure_clean_session()
        return (
            self.db.query(UserAchievementModel)
            .filter(UserAchievementModel.user_id == user_id)
            .order_by(desc(UserAchievementModel.unlocked_at), desc(UserAchievementModel.id))
            .all()
        )

    # Ranking

    def ranking(self, limit: int = 50) -> List[Tuple[LevelProgressModel, str]]:
        """(progress, user name) by points, earliest to reach them first"""
        self._ensure_clean_session()
        rows = (
            self.db.query(LevelProgressModel, UserModel.name)
            .join(UserModel, UserModel.id == LevelProgressModel.user_id)
            .order_by(
                desc(LevelProgressModel.points),
                asc(LevelProgressModel.updated_at),
                asc(LevelProgressModel.user_id),
            )
            .limit(limit)
            .all()
        )
        return [(row[0], row[1]) for row in rows]

    # User rewards

    def existing_correlation_ids(self, user_id: str, correlation_ids: List[str]) -> Set[str]:
        if not correlation_ids:
            return set()
        rows = (
            self.db.query(UserRewardModel.correlation_id)
            .filter(
                UserRewardModel.user_id == user_id,
                UserRewardModel.correlation_id.in_(correlation_ids),
            )
            .all()
        )
        return {row[0] for row in rows}

    def grant_reward(
        self,
        user_id: str,
        reward_id: str,
        correlation_id: str,
        granted_at: datetime,
        expires_at: Optional[datetime] = None,
    ) -> Optional[UserRewardModel]:
        """Insert a CLAIMABLE grant; None when the correlation id is already used"""
        savepoint = self.db.begin_nested()
        user_reward = UserRewardModel(
            user_id=user_id,
            reward_id=reward_id,
            status=UserRewardStatus.CLAIMABLE,
            correlation_id=correlation_id,
            granted_at=granted_at,
            expires_at=expires_at,
        )
        try:
            self.db.add(user_reward)
            self.db.flush()
        except IntegrityError:
            savepoint.rollback()
            logger.info(
                f"Reward grant {correlation_id} already exists for user {user_id}"
            )
            return None
        savepoint.commit()
        return user_reward

    def lock_user_reward(self, user_id: str, user_reward_id: str) -> Optional[UserRewardModel]:
        """The caller's grant, row-locked for a status transition"""
        self._ensure_clean_session()
        return (
            self.db.query(UserRewardModel)
            .filter(
                UserRewardModel.id == user_reward_id,
                UserRewardModel.user_id == user_id,
            )
            .with_for_update()
            .first()
        )

    def list_user_rewards(
        self,
        user_id: str,
        status: Optional[UserRewardStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[UserRewardResponse], int]:
        self._ensure_clean_session()
        query = self.db.query(UserRewardModel).filter(UserRewardModel.user_id == user_id)
        if status is not None:
            query = query.filter(UserRewardModel.status == status)

        total = query.count()
        rewards = (
            query.order_by(desc(UserRewardModel.granted_at), desc(UserRewardModel.id))
            .offset(offset)
            .limit(limit)
            .all()
        )
        return self._to_schemas(rewards), total
