from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from gatewayapi.models.gamification import UserRewardStatus
from gatewayapi.schemas.common import APIModel
from gatewayapi.schemas.pagination import PaginationMeta


class RewardDefinitionCreateRequest(APIModel):
    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    type: str = Field(..., min_length=1, max_length=50)
    data: Optional[Dict[str, Any]] = None
    expires_after_days: Optional[int] = Field(None, gt=0)


class RewardDefinitionResponse(APIModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    type: str
    data: Optional[Dict[str, Any]] = None
    expires_after_days: Optional[int] = None


class RewardDefinitionListResponse(APIModel):
    rewards: List[RewardDefinitionResponse]


class LevelCreateRequest(APIModel):
    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    order: int = Field(..., gt=0)
    threshold: int = Field(..., ge=0)
    icon_url: Optional[str] = None
    color: Optional[str] = None
    rules: Optional[Dict[str, Any]] = None
    default_reward_codes: List[str] = Field(
        default_factory=list, description="Reward definitions granted on reaching the level"
    )


class LevelResponse(APIModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    order: int
    threshold: int
    icon_url: Optional[str] = None
    color: Optional[str] = None
    rules: Optional[Dict[str, Any]] = None
    default_rewards: List[RewardDefinitionResponse] = Field(default_factory=list)


class LevelListResponse(APIModel):
    levels: List[LevelResponse]


class AddPointsRequest(APIModel):
    points: int = Field(..., gt=0)
    reason: Optional[str] = Field(None, max_length=255)


class ProgressResponse(APIModel):
    user_id: str
    points: int
    current_level: Optional[LevelResponse] = None
    next_level: Optional[LevelResponse] = None
    points_to_next_level: Optional[int] = None
    granted_rewards: List["UserRewardResponse"] = Field(
        default_factory=list, description="Rewards granted by this evaluation"
    )
    unlocked_achievements: List["UserAchievementResponse"] = Field(
        default_factory=list, description="Achievements unlocked by this evaluation"
    )


class AddPointsResponse(APIModel):
    user_id: str
    points: int
    message: str


class UserRewardResponse(APIModel):
    id: str
    reward_id: str
    status: UserRewardStatus
    correlation_id: str
    granted_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    reward: Optional[RewardDefinitionResponse] = None


class UserRewardListResponse(APIModel):
    rewards: List[UserRewardResponse]
    pagination: PaginationMeta


class ClaimRewardResponse(APIModel):
    reward: UserRewardResponse
    message: str


class AchievementCreateRequest(APIModel):
    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    icon_url: Optional[str] = None
    color: Optional[str] = None
    criteria: Dict[str, Any] = Field(
        ..., description="minPoints and/or minLevelOrder; all given must hold"
    )
    reward_code: Optional[str] = Field(None, description="Reward granted on unlock")


class AchievementResponse(APIModel):
    id: str
    code: str
    name: str
    description: Optional[str] = None
    icon_url: Optional[str] = None
    color: Optional[str] = None
    criteria: Dict[str, Any]
    reward: Optional[RewardDefinitionResponse] = None


class AchievementListResponse(APIModel):
    achievements: List[AchievementResponse]


class UserAchievementResponse(APIModel):
    id: str
    achievement_id: str
    unlocked_at: Optional[datetime] = None
    achievement: Optional[AchievementResponse] = None


class UserAchievementListResponse(APIModel):
    achievements: List[UserAchievementResponse]


class RankingLevel(APIModel):
    id: str
    code: str
    name: str
    icon_url: Optional[str] = None
    color: Optional[str] = None


class RankingEntry(APIModel):
    position: int
    user_id: str
    name: str
    points: int
    level: Optional[RankingLevel] = None
    updated_at: Optional[datetime] = None


class RankingResponse(APIModel):
    ranking: List[RankingEntry]


ProgressResponse.model_rebuild()
