"""
Seed the default level ladder, its rewards and a few achievements.

Existing definitions (by code) are left untouched, so the script can be
run repeatedly.
"""

import sys
import os

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gatewayapi.database.session import get_db_context
from gatewayapi.models.gamification import (
    AchievementDefinition,
    LevelDefinition,
    RewardDefinition,
)


DEFAULT_REWARDS = [
    {
        "code": "FEE_DISCOUNT_10",
        "name": "10% fee discount",
        "type": "FEE_DISCOUNT",
        "data": {"percent": 10},
        "expires_after_days": 30,
    },
    {
        "code": "FEE_DISCOUNT_25",
        "name": "25% fee discount",
        "type": "FEE_DISCOUNT",
        "data": {"percent": 25},
        "expires_after_days": 30,
    },
    {
        "code": "PRIORITY_SUPPORT",
        "name": "Priority support",
        "type": "BADGE",
        "data": None,
        "expires_after_days": None,
    },
]

# (code, name, order, threshold, reward codes)
DEFAULT_LEVELS = [
    ("BRONZE", "Bronze", 1, 0, []),
    ("SILVER", "Silver", 2, 10_000, ["FEE_DISCOUNT_10"]),
    ("GOLD", "Gold", 3, 100_000, ["FEE_DISCOUNT_25", "PRIORITY_SUPPORT"]),
]

# (code, name, criteria, reward code)
DEFAULT_ACHIEVEMENTS = [
    ("FIRST_1K", "First thousand", {"minPoints": 1_000}, None),
    ("GOLD_MERCHANT", "Gold merchant", {"minLevelOrder": 3}, "PRIORITY_SUPPORT"),
]


def seed_gamification_data():
    with get_db_context() as db:
        rewards = {
            reward.code: reward for reward in db.query(RewardDefinition).all()
        }
        for data in DEFAULT_REWARDS:
            if data["code"] not in rewards:
                reward = RewardDefinition(**data)
                db.add(reward)
                rewards[reward.code] = reward

        existing_levels = {code for (code,) in db.query(LevelDefinition.code).all()}
        created = 0
        for code, name, order, threshold, reward_codes in DEFAULT_LEVELS:
            if code in existing_levels:
                continue
            level = LevelDefinition(code=code, name=name, order=order, threshold=threshold)
            level.default_rewards = [rewards[c] for c in reward_codes]
            db.add(level)
            created += 1

        existing_achievements = {
            code for (code,) in db.query(AchievementDefinition.code).all()
        }
        for code, name, criteria, reward_code in DEFAULT_ACHIEVEMENTS:
            if code in existing_achievements:
                continue
            db.add(
                AchievementDefinition(
                    code=code,
                    name=name,
                    criteria=criteria,
                    reward=rewards[reward_code] if reward_code else None,
                )
            )

    print(
        f"Seeded {created} levels, {len(DEFAULT_REWARDS)} reward definitions "
        f"and {len(DEFAULT_ACHIEVEMENTS)} achievements"
    )


if __name__ == "__main__":
    seed_gamification_data()
