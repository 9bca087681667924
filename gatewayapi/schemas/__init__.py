from .user import CurrentUser
from .statement import DailyStatement, StatementListResponse
from .transaction import SplitCreateRequest, SplitResponse
from .checkout import PublicCheckoutResponse, VariantCreateRequest
from .gamification import ProgressResponse, UserRewardResponse
