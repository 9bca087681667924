"""
Gamification API router

User endpoints:
- GET/POST /gamification/user/progress: evaluate progress / add points
- GET /gamification/user/rewards: granted rewards
- GET /gamification/user/achievements: unlocked achievements
- POST /gamification/user/rewards/{id}/claim: claim a reward

Definitions (creation is admin-only):
- GET/POST /gamification/levels
- GET/POST /gamification/rewards
- GET/POST /gamification/achievements

GET /gamification/ranking lists users by points.
"""

import logging
from typing import Optional

from dependency_injector.wiring import inject
from fastapi import APIRouter, Depends, Path, Query, status

from gatewayapi.core.auth_middleware import get_current_active_user, require_admin
from gatewayapi.deps import get_gamification_service
from gatewayapi.models.gamification import UserRewardStatus
from gatewayapi.schemas.gamification import (
    AchievementCreateRequest,
    AchievementListResponse,
    AchievementResponse,
    AddPointsRequest,
    AddPointsResponse,
    ClaimRewardResponse,
    LevelCreateRequest,
    LevelListResponse,
    LevelResponse,
    ProgressResponse,
    RankingResponse,
    RewardDefinitionCreateRequest,
    RewardDefinitionListResponse,
    RewardDefinitionResponse,
    UserAchievementListResponse,
    UserRewardListResponse,
)
from gatewayapi.schemas.pagination import PaginationLimits
from gatewayapi.schemas.user import CurrentUser
from gatewayapi.services.gamification_service import GamificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gamification", tags=["gamification"])


@router.get("/levels", response_model=LevelListResponse)
@inject
def list_levels(
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> LevelListResponse:
    return gamification_service.list_levels()


@router.post(
    "/levels", response_model=LevelResponse, status_code=status.HTTP_201_CREATED
)
@inject
def create_level(
    request: LevelCreateRequest,
    current_user: CurrentUser = Depends(require_admin),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> LevelResponse:
    return gamification_service.create_level(request)


@router.get("/rewards", response_model=RewardDefinitionListResponse)
@inject
def list_reward_definitions(
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> RewardDefinitionListResponse:
    return gamification_service.list_reward_definitions()


@router.post(
    "/rewards",
    response_model=RewardDefinitionResponse,
    status_code=status.HTTP_201_CREATED,
)
@inject
def create_reward_definition(
    request: RewardDefinitionCreateRequest,
    current_user: CurrentUser = Depends(require_admin),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> RewardDefinitionResponse:
    return gamification_service.create_reward_definition(request)


@router.get("/achievements", response_model=AchievementListResponse)
@inject
def list_achievements(
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> AchievementListResponse:
    return gamification_service.list_achievements()


@router.post(
    "/achievements",
    response_model=AchievementResponse,
    status_code=status.HTTP_201_CREATED,
)
@inject
def create_achievement(
    request: AchievementCreateRequest,
    current_user: CurrentUser = Depends(require_admin),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> AchievementResponse:
    return gamification_service.create_achievement(request)


@router.get("/ranking", response_model=RankingResponse)
@inject
def get_ranking(
    limit: int = Query(
        PaginationLimits.RANKING["default"],
        ge=PaginationLimits.RANKING["min"],
        le=PaginationLimits.RANKING["max"],
    ),
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> RankingResponse:
    return gamification_service.get_ranking(limit=limit)


@router.get("/user/achievements", response_model=UserAchievementListResponse)
@inject
def list_user_achievements(
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> UserAchievementListResponse:
    return gamification_service.list_user_achievements(current_user.id)


@router.get("/user/progress", response_model=ProgressResponse)
@inject
def get_progress(
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> ProgressResponse:
    """Current level and points; applies a pending level-up and grants its rewards"""
    return gamification_service.get_progress(current_user.id)


@router.post("/user/progress", response_model=AddPointsResponse)
@inject
def add_points(
    request: AddPointsRequest,
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> AddPointsResponse:
    return gamification_service.add_points(
        current_user.id, request.points, reason=request.reason
    )


@router.get("/user/rewards", response_model=UserRewardListResponse)
@inject
def list_user_rewards(
    reward_status: Optional[UserRewardStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(
        PaginationLimits.USER_REWARDS["default"],
        ge=PaginationLimits.USER_REWARDS["min"],
        le=PaginationLimits.USER_REWARDS["max"],
    ),
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> UserRewardListResponse:
    return gamification_service.list_user_rewards(
        current_user.id, status=reward_status, page=page, limit=limit
    )


@router.post("/user/rewards/{user_reward_id}/claim", response_model=ClaimRewardResponse)
@inject
def claim_reward(
    user_reward_id: str = Path(..., description="Granted reward id"),
    current_user: CurrentUser = Depends(get_current_active_user),
    gamification_service: GamificationService = Depends(get_gamification_service),
) -> ClaimRewardResponse:
    return gamification_service.claim_reward(current_user.id, user_reward_id)
