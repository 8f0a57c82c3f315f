from .router import router
from .service import RewardsService

__all__ = ["router", "RewardsService"]
