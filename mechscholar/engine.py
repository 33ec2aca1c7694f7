"""
MechScholar Progression Engine - Orchestration
Wires the ledger and every reward subsystem around one shared progress document
Version: 2.0
"""

import logging
import random
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ConfigManager, get_config_manager
from .education.achievement_system import AchievementManager
from .education.adaptive_difficulty import AdaptiveDifficultyManager
from .education.conditions import GameplayEvent
from .education.event_system import EventManager
from .education.power_ups import PowerUpManager
from .education.progress_tracker import ProgressTracker
from .storage.save_manager import SaveManager, create_save_manager
from .utils.clock import Clock, ensure_clock
from .utils.logger import setup_logger
from .utils.validators import validate_subject

logger = logging.getLogger(__name__)


class EngineStatus(Enum):
    """Engine lifecycle states"""
    RUNNING = "running"
    SHUT_DOWN = "shut_down"


@dataclass
class AnswerOutcome:
    """
    Everything one answered question changed.

    ``next_difficulty`` is the tier suggested for the next question in this
    subject from the recent-answer window. Rewards are always tiered by
    ``difficulty``, which comes from lifetime accuracy.
    """
    subject: str
    is_correct: bool
    difficulty: str
    next_difficulty: str
    rewards: Dict[str, int] = field(default_factory=dict)
    achievements: List[str] = field(default_factory=list)
    events_triggered: List[str] = field(default_factory=list)
    events_completed: List[str] = field(default_factory=list)
    events_failed: List[str] = field(default_factory=list)
    events_expired: List[str] = field(default_factory=list)
    power_up_drop: Optional[str] = None


class ProgressionEngine:
    """Single entry point for the game layer"""

    def __init__(self, config: Optional[ConfigManager] = None, clock: Optional[Clock] = None,
                 rng: Optional[random.Random] = None, save_manager: Optional[SaveManager] = None):
        self.config = config or get_config_manager()
        self.clock = ensure_clock(clock)
        self.rng = rng or random.Random()
        self.lock = threading.RLock()

        storage_config = self.config.get_storage_config()
        event_config = self.config.get_event_config()
        difficulty_config = self.config.get_difficulty_config()

        if save_manager is None:
            save_manager = create_save_manager(storage_config, self.config.base_path, clock=self.clock)
        self.save_manager = save_manager

        self.progress_tracker = ProgressTracker(
            save_manager,
            clock=self.clock,
            auto_save_interval_ms=storage_config.auto_save_interval_ms,
        )
        self.achievements = AchievementManager(self.progress_tracker)
        self.power_ups = PowerUpManager(self.progress_tracker, rng=self.rng)
        self.events = EventManager(
            self.progress_tracker,
            rng=self.rng,
            trigger_cooldown_ms=event_config.trigger_cooldown_ms,
            base_drop_rate=event_config.base_drop_rate,
            history_limit=event_config.history_limit,
        )
        self.difficulty = AdaptiveDifficultyManager(
            self.progress_tracker,
            response_time_target_ms=difficulty_config.response_time_target_ms,
            rolling_window=difficulty_config.rolling_window,
        )

        self.progress_tracker.add_effect_source(self.power_ups)
        self.progress_tracker.add_effect_source(self.events)

        self.status = EngineStatus.RUNNING
        logger.info("Progression engine initialized")

    def record_answer(self, subject: str, is_correct: bool, response_time_ms: int,
                      topic: Optional[str] = None) -> Optional[AnswerOutcome]:
        """Report one answered question to every subsystem in order, or None for an invalid subject"""
        if not validate_subject(subject):
            logger.warning(f"Ignoring answer for invalid subject {subject!r}")
            return None

        with self.lock:
            tier = self.difficulty.get_current_difficulty(subject)

            rewards = self.progress_tracker.record_answer(subject, is_correct, response_time_ms, tier.id)
            self.difficulty.record_answer(subject, is_correct, response_time_ms, topic)
            unlocked = self.achievements.record_answer(subject, is_correct, response_time_ms)

            event_data = GameplayEvent(
                question_answered=True,
                is_correct=is_correct,
                subject=subject,
                response_time_ms=response_time_ms,
                current_streak=self.achievements.session.current_streak,
            )
            # Update before triggering so a new event only sees the answers after it
            updates = self.events.update_events(event_data)
            triggered = self.events.check_event_triggers(event_data)

            outcome = AnswerOutcome(
                subject=subject,
                is_correct=is_correct,
                difficulty=tier.id,
                next_difficulty=self.difficulty.adjust_difficulty_dynamic(subject).id,
                rewards=rewards,
                achievements=[a.id for a in unlocked],
                events_triggered=[e.id for e in triggered],
                events_completed=[a.id for a in updates['completed']],
                events_failed=[a.id for a in updates['failed']],
                events_expired=[a.id for a in updates['expired']],
            )

            if is_correct:
                outcome.power_up_drop = self._roll_power_up_drop()

        return outcome

    def _roll_power_up_drop(self) -> Optional[str]:
        drop_rate = self.events.get_active_effects().power_up_drop_rate
        if self.rng.random() >= drop_rate:
            return None
        power_up = self.power_ups.grant_random_power_up('common')
        if power_up is None:
            return None
        self.progress_tracker.save_progress()
        logger.info(f"Power-up dropped: {power_up.name}")
        return power_up.id

    def use_special_ability(self) -> List[str]:
        """Count an ability use and run the checks that depend on it"""
        with self.lock:
            self.progress_tracker.use_special_ability()
            event_data = GameplayEvent(ability_used=True)
            unlocked = self.achievements.check_achievements(event_data)
            self.events.check_event_triggers(event_data)
        return [a.id for a in unlocked]

    def tick(self) -> Dict[str, List[str]]:
        """Periodic expiry cleanup"""
        with self.lock:
            expired_power_ups = self.power_ups.cleanup_expired_power_ups()
            updates = self.events.update_events(GameplayEvent())
        return {
            'power_ups_expired': expired_power_ups,
            'events_expired': [a.id for a in updates['expired']],
            'events_completed': [a.id for a in updates['completed']],
            'events_failed': [a.id for a in updates['failed']],
        }

    def start_session(self):
        with self.lock:
            self.progress_tracker.reset_session_stats()
            self.achievements.reset_session()
            self.difficulty.reset_session()
        logger.info("New session started")

    def get_snapshot(self) -> Dict[str, Any]:
        """Read-only view for the game UI"""
        with self.lock:
            return {
                'progress': self.progress_tracker.get_progress_summary(),
                'inventory': self.progress_tracker.get_inventory_summary(),
                'power_ups': self.power_ups.get_power_up_status(),
                'active_events': self.events.get_active_events(),
                'event_stats': self.events.get_event_stats(),
                'achievements': self.achievements.get_achievement_stats(),
                'next_achievements': self.achievements.get_next_achievements(),
                'session': self.difficulty.get_session_summary(),
            }

    def shutdown(self) -> bool:
        """Stop auto-save and write a final save"""
        with self.lock:
            if self.status == EngineStatus.SHUT_DOWN:
                return True
            self.progress_tracker.destroy()
            saved = self.progress_tracker.save_progress()
            self.status = EngineStatus.SHUT_DOWN
        logger.info("Progression engine shut down")
        return saved


def create_engine(base_path: Optional[Path] = None, clock: Optional[Clock] = None,
                  rng: Optional[random.Random] = None) -> ProgressionEngine:
    """Load configuration, set up logging and build an engine"""
    config = get_config_manager(base_path)
    logging_config = config.get_logging_config()
    setup_logger(config.resolve_path(logging_config.log_path),
                 level=logging_config.level,
                 console=logging_config.console)
    return ProgressionEngine(config=config, clock=clock, rng=rng)
