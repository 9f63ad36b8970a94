from app.workers.tasks.streak_rewards import run_streak_reward_delivery

__all__ = [
    "run_streak_reward_delivery",
]
