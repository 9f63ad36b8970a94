from app.economy.streak.service import StreakService
from app.economy.streak.service_facade import StreakServiceFacade

__all__ = [
    "StreakService",
    "StreakServiceFacade",
]
