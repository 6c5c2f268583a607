from textquiz.schemas.deliveries import (
    DeliveryListResponse,
    DeliveryResponse,
    DeliveryStatusCounts,
)
from textquiz.schemas.llm import GeneratedQuestion
from textquiz.schemas.users import (
    RecentAnswer,
    SignupRequest,
    SignupResponse,
    UserStatsResponse,
)

__all__ = [
    "SignupRequest",
    "SignupResponse",
    "RecentAnswer",
    "UserStatsResponse",
    "DeliveryResponse",
    "DeliveryStatusCounts",
    "DeliveryListResponse",
    "GeneratedQuestion",
]
