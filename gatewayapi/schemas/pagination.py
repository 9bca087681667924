import math

from pydantic import BaseModel, Field


class PaginationMeta(BaseModel):
    """Page-based pagination info"""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    pages: int = Field(..., ge=0)

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


# Per-endpoint limits
class PaginationLimits:
    STATEMENTS = {"min": 1, "max": 400, "default": 31}
    TRANSACTIONS = {"min": 1, "max": 100, "default": 20}
    SPLITS = {"min": 1, "max": 100, "default": 20}
    CHECKOUTS = {"min": 1, "max": 100, "default": 20}
    USER_REWARDS = {"min": 1, "max": 100, "default": 20}
    RANKING = {"min": 1, "max": 100, "default": 50}
