"""
Gamification - points, level progression and reward claims.

Levels only move forward. Reaching a level grants each of its default
rewards once: the grant's correlation id names the level and the reward,
and (user_id, correlation_id) is unique, so evaluating the same crossing
again is a no-op.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from gatewayapi.config import settings
from gatewayapi.core.exceptions import (
    ConflictError,
    NotFoundError,
    RewardExpiredError,
    RewardNotClaimableError,
    ValidationError,
)
from gatewayapi.models.gamification import (
    LevelDefinition,
    LevelProgress,
    RewardDefinition,
    UserAchievement,
    UserReward,
    UserRewardStatus,
)
from gatewayapi.repositories.gamification_repository import GamificationRepository
from gatewayapi.schemas.gamification import (
    AchievementCreateRequest,
    AchievementListResponse,
    AchievementResponse,
    AddPointsResponse,
    ClaimRewardResponse,
    LevelCreateRequest,
    LevelListResponse,
    LevelResponse,
    ProgressResponse,
    RankingEntry,
    RankingLevel,
    RankingResponse,
    RewardDefinitionCreateRequest,
    RewardDefinitionListResponse,
    RewardDefinitionResponse,
    UserAchievementListResponse,
    UserAchievementResponse,
    UserRewardListResponse,
    UserRewardResponse,
)
from gatewayapi.schemas.pagination import PaginationMeta
from gatewayapi.utils.timezone_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def find_level_up(
    levels: Sequence[LevelDefinition], current_order: Optional[int], points: int
) -> Optional[LevelDefinition]:
    """Highest level reachable with `points` above the current order.

    With no current level every level is a candidate. Returns None when
    the user stays where they are.
    """
    candidates = [
        level
        for level in levels
        if level.threshold <= points
        and (current_order is None or level.order > current_order)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda level: level.order)


def level_up_correlation_id(level_id: str, reward_id: str) -> str:
    return f"{settings.LEVEL_UP_CORRELATION_PREFIX}:{level_id}:{reward_id}"


def achievement_correlation_id(achievement_id: str, reward_id: str) -> str:
    return f"achievement:{achievement_id}:{reward_id}"


ACHIEVEMENT_CRITERIA = ("minPoints", "minLevelOrder")


def achievement_unlocked(
    criteria: Dict[str, Any], points: int, level_order: Optional[int]
) -> bool:
    """True when every known criterion holds; criteria without any never unlock"""
    known = {key: criteria[key] for key in ACHIEVEMENT_CRITERIA if key in criteria}
    if not known:
        return False
    if "minPoints" in known and points < known["minPoints"]:
        return False
    if "minLevelOrder" in known and (
        level_order is None or level_order < known["minLevelOrder"]
    ):
        return False
    return True


class GamificationService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = GamificationRepository(db)

    # Points and progression

    def add_points(
        self, user_id: str, amount: int, reason: Optional[str] = None
    ) -> AddPointsResponse:
        """Atomically add points; level changes happen on the next evaluation"""
        if amount is None or amount <= 0:
            raise ValidationError("Points must be positive", details={"points": amount})

        try:
            self.repo.add_points(user_id, amount)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to add {amount} points for user {user_id}: {str(e)}")
            raise

        progress = self.repo.get_progress(user_id)
        self.db.refresh(progress)
        logger.info(f"Added {amount} points to user {user_id} (reason: {reason})")

        message = f"{amount} points added"
        if reason:
            message += f" for: {reason}"
        return AddPointsResponse(user_id=user_id, points=progress.points, message=message)

    def get_progress(
        self, user_id: str, now: Optional[datetime] = None
    ) -> ProgressResponse:
        """Current progress, evaluating and applying any pending level-up"""
        now = ensure_utc(now) or utc_now()

        if self.repo.get_progress(user_id) is None:
            lowest = self.repo.lowest_level()
            self.repo.create_progress(
                user_id, points=0, level_id=lowest.id if lowest else None
            )
            logger.info(f"Initialized level progress for user {user_id}")

        granted: List[UserReward] = []
        unlocked: List[UserAchievement] = []
        try:
            progress = self.repo.lock_progress(user_id)
            levels = self.repo.list_levels()
            current = progress.current_level
            target = find_level_up(
                levels, current.order if current else None, progress.points
            )
            if target is not None:
                progress.current_level_id = target.id
                progress.current_level = target
                granted = self._grant_level_rewards(user_id, target, now)
                logger.info(
                    f"User {user_id} reached level {target.code} (order {target.order}) "
                    f"with {progress.points} points; {len(granted)} rewards granted"
                )
            unlocked, achievement_rewards = self._unlock_achievements(progress, now)
            granted.extend(achievement_rewards)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return self._build_progress(progress, levels, granted, unlocked)

    def _grant(
        self, user_id: str, reward: RewardDefinition, correlation_id: str, now: datetime
    ) -> Optional[UserReward]:
        expires_at = (
            now + timedelta(days=reward.expires_after_days)
            if reward.expires_after_days
            else None
        )
        return self.repo.grant_reward(
            user_id=user_id,
            reward_id=reward.id,
            correlation_id=correlation_id,
            granted_at=now,
            expires_at=expires_at,
        )

    def _grant_level_rewards(
        self, user_id: str, level: LevelDefinition, now: datetime
    ) -> List[UserReward]:
        by_correlation = {
            level_up_correlation_id(level.id, reward.id): reward
            for reward in level.default_rewards
        }
        existing = self.repo.existing_correlation_ids(user_id, list(by_correlation))

        granted = []
        for correlation_id, reward in by_correlation.items():
            if correlation_id in existing:
                continue
            user_reward = self._grant(user_id, reward, correlation_id, now)
            if user_reward is not None:
                granted.append(user_reward)
        return granted

    def _unlock_achievements(self, progress: LevelProgress, now: datetime):
        """Unlock newly satisfied achievements and grant their rewards.

        Runs under the progress row lock, like the level-up.
        """
        user_id = progress.user_id
        level_order = progress.current_level.order if progress.current_level else None
        already = self.repo.unlocked_achievement_ids(user_id)

        unlocked: List[UserAchievement] = []
        granted: List[UserReward] = []
        for achievement in self.repo.list_achievements():
            if achievement.id in already:
                continue
            if not achievement_unlocked(achievement.criteria, progress.points, level_order):
                continue
            unlock = self.repo.unlock_achievement(user_id, achievement.id, now)
            if unlock is None:
                continue
            unlocked.append(unlock)
            logger.info(f"User {user_id} unlocked achievement {achievement.code}")
            if achievement.reward is not None:
                user_reward = self._grant(
                    user_id,
                    achievement.reward,
                    achievement_correlation_id(achievement.id, achievement.reward.id),
                    now,
                )
                if user_reward is not None:
                    granted.append(user_reward)
        return unlocked, granted

    def _build_progress(
        self,
        progress: LevelProgress,
        levels: Sequence[LevelDefinition],
        granted: Sequence[UserReward],
        unlocked: Sequence[UserAchievement] = (),
    ) -> ProgressResponse:
        current = progress.current_level
        current_order = current.order if current else None
        next_level = next(
            (
                level
                for level in levels
                if current_order is None or level.order > current_order
            ),
            None,
        )
        return ProgressResponse(
            user_id=progress.user_id,
            points=progress.points,
            current_level=LevelResponse.model_validate(current) if current else None,
            next_level=LevelResponse.model_validate(next_level) if next_level else None,
            points_to_next_level=(
                max(0, next_level.threshold - progress.points) if next_level else None
            ),
            granted_rewards=[UserRewardResponse.model_validate(r) for r in granted],
            unlocked_achievements=[
                UserAchievementResponse.model_validate(a) for a in unlocked
            ],
        )

    # Definitions

    def list_levels(self) -> LevelListResponse:
        return LevelListResponse(
            levels=[LevelResponse.model_validate(level) for level in self.repo.list_levels()]
        )

    def create_level(self, request: LevelCreateRequest) -> LevelResponse:
        if self.repo.level_conflicts(request.code, request.order):
            raise ConflictError(
                "A level with this code or order already exists",
                details={"code": request.code, "order": request.order},
            )

        codes = list(dict.fromkeys(request.default_reward_codes))
        rewards = self.repo.get_rewards_by_codes(codes)
        missing = sorted(set(codes) - {reward.code for reward in rewards})
        if missing:
            raise ValidationError(
                "Unknown reward definitions", details={"defaultRewardCodes": missing}
            )

        level = self.repo.create_level(
            default_rewards=rewards,
            **request.model_dump(exclude={"default_reward_codes"}),
        )
        logger.info(f"Created level {level.code} (order {level.order})")
        return LevelResponse.model_validate(level)

    def list_reward_definitions(self) -> RewardDefinitionListResponse:
        return RewardDefinitionListResponse(
            rewards=[
                RewardDefinitionResponse.model_validate(r)
                for r in self.repo.list_reward_definitions()
            ]
        )

    def create_reward_definition(
        self, request: RewardDefinitionCreateRequest
    ) -> RewardDefinitionResponse:
        if self.repo.get_rewards_by_codes([request.code]):
            raise ConflictError(
                "A reward with this code already exists", details={"code": request.code}
            )
        reward = self.repo.create_reward_definition(**request.model_dump())
        logger.info(f"Created reward definition {reward.code}")
        return RewardDefinitionResponse.model_validate(reward)

    # Achievements

    def list_achievements(self) -> AchievementListResponse:
        return AchievementListResponse(
            achievements=[
                AchievementResponse.model_validate(a) for a in self.repo.list_achievements()
            ]
        )

    def create_achievement(self, request: AchievementCreateRequest) -> AchievementResponse:
        if self.repo.achievement_code_exists(request.code):
            raise ConflictError(
                "An achievement with this code already exists",
                details={"code": request.code},
            )

        criteria = {
            key: request.criteria[key]
            for key in ACHIEVEMENT_CRITERIA
            if key in request.criteria
        }
        invalid = [
            key
            for key, value in criteria.items()
            if isinstance(value, bool) or not isinstance(value, int) or value < 0
        ]
        if not criteria or invalid:
            raise ValidationError(
                "Criteria need minPoints and/or minLevelOrder as non-negative integers",
                details={"criteria": request.criteria},
            )

        reward_id = None
        if request.reward_code:
            rewards = self.repo.get_rewards_by_codes([request.reward_code])
            if not rewards:
                raise ValidationError(
                    "Unknown reward definition", details={"rewardCode": request.reward_code}
                )
            reward_id = rewards[0].id

        achievement = self.repo.create_achievement(
            reward_id=reward_id,
            **request.model_dump(exclude={"reward_code"}),
        )
        logger.info(f"Created achievement {achievement.code}")
        return AchievementResponse.model_validate(achievement)

    def list_user_achievements(self, user_id: str) -> UserAchievementListResponse:
        return UserAchievementListResponse(
            achievements=[
                UserAchievementResponse.model_validate(a)
                for a in self.repo.list_user_achievements(user_id)
            ]
        )

    # Ranking

    def get_ranking(self, limit: int = 50) -> RankingResponse:
        """Users by points; ties go to whoever got there first"""
        entries = []
        for position, (progress, name) in enumerate(self.repo.ranking(limit), start=1):
            level = progress.current_level
            entries.append(
                RankingEntry(
                    position=position,
                    user_id=progress.user_id,
                    name=name,
                    points=progress.points,
                    level=RankingLevel.model_validate(level) if level else None,
                    updated_at=progress.updated_at,
                )
            )
        return RankingResponse(ranking=entries)

    # User rewards

    def list_user_rewards(
        self,
        user_id: str,
        status: Optional[UserRewardStatus] = None,
        page: int = 1,
        limit: int = 20,
    ) -> UserRewardListResponse:
        rewards, total = self.repo.list_user_rewards(
            user_id, status=status, limit=limit, offset=(page - 1) * limit
        )
        return UserRewardListResponse(
            rewards=rewards,
            pagination=PaginationMeta.build(page=page, limit=limit, total=total),
        )

    def claim_reward(
        self, user_id: str, user_reward_id: str, now: Optional[datetime] = None
    ) -> ClaimRewardResponse:
        """CLAIMABLE -> CLAIMED, or -> EXPIRED when past its expiry.

        The expiry transition is persisted before the failure is reported.
        """
        now = ensure_utc(now) or utc_now()

        user_reward = self.repo.lock_user_reward(user_id, user_reward_id)
        if user_reward is None:
            self.db.rollback()
            raise NotFoundError(f"Reward not found: {user_reward_id}")

        if user_reward.status != UserRewardStatus.CLAIMABLE:
            self.db.rollback()
            raise RewardNotClaimableError(
                details={"status": user_reward.status.value}
            )

        expires_at = ensure_utc(user_reward.expires_at)
        if expires_at is not None and expires_at < now:
            user_reward.status = UserRewardStatus.EXPIRED
            self.db.commit()
            logger.info(f"Reward {user_reward_id} of user {user_id} expired at {expires_at}")
            raise RewardExpiredError(details={"expiresAt": expires_at.isoformat()})

        user_reward.status = UserRewardStatus.CLAIMED
        user_reward.claimed_at = now
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"User {user_id} claimed reward {user_reward_id}")
        return ClaimRewardResponse(
            reward=UserRewardResponse.model_validate(user_reward),
            message="Reward claimed successfully",
        )
