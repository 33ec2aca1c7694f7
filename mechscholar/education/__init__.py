"""
MechScholar Education Package
Progress ledger and the reward subsystems built on it
"""

from .achievement_system import ACHIEVEMENTS, Achievement, AchievementManager, RewardBundle
from .adaptive_difficulty import DIFFICULTY_TIERS, AdaptiveDifficultyManager, DifficultyTier
from .characters import CHARACTER_TYPES, CharacterType, get_character_type
from .conditions import GameplayEvent
from .event_system import GAME_EVENTS, EventManager, GameEvent
from .power_ups import POWER_UPS, PowerUp, PowerUpManager
from .progress_tracker import ProgressTracker

__all__ = [
    'ProgressTracker', 'GameplayEvent',
    'CHARACTER_TYPES', 'CharacterType', 'get_character_type',
    'ACHIEVEMENTS', 'Achievement', 'AchievementManager', 'RewardBundle',
    'POWER_UPS', 'PowerUp', 'PowerUpManager',
    'GAME_EVENTS', 'GameEvent', 'EventManager',
    'DIFFICULTY_TIERS', 'DifficultyTier', 'AdaptiveDifficultyManager',
]
