"""
MechScholar Progression Engine - Power-Up System
Time-boxed boosts bought with coins or earned from achievements and events
Version: 2.0
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type

from .achievement_system import AchievementRarity
from .conditions import HandlerRegistry
from .progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)

UNTIL_CONSUMED = -1
INSTANT = 0

RARITY_ORDER = {rarity.value: index for index, rarity in enumerate(AchievementRarity)}


# --- Effect variants ---

@dataclass(frozen=True)
class TimeFreeze:
    pass


@dataclass(frozen=True)
class CoinMultiplier:
    multiplier: float


@dataclass(frozen=True)
class Protection:
    charges: int = 1


@dataclass(frozen=True)
class HintReveal:
    pass


@dataclass(frozen=True)
class SubjectBonus:
    subject: str
    multiplier: float


@dataclass(frozen=True)
class FocusBonus:
    time_bonus: float
    accuracy_bonus: float


@dataclass(frozen=True)
class SystemOptimization:
    all_bonuses: float
    efficiency: float


@dataclass(frozen=True)
class PatternReveal:
    pass


@dataclass(frozen=True)
class DataAnalysis:
    show_stats: bool = True
    optimize_strategy: bool = True


@dataclass(frozen=True)
class SubjectMasteryBoost:
    subject: str
    difficulty_reduction: int
    reward_multiplier: float


POWER_UP_EFFECTS: Tuple[Type, ...] = (
    TimeFreeze, CoinMultiplier, Protection, HintReveal, SubjectBonus, FocusBonus,
    SystemOptimization, PatternReveal, DataAnalysis, SubjectMasteryBoost,
)


@dataclass(frozen=True)
class PowerUp:
    """Power-up definition"""
    id: str
    name: str
    icon: str
    description: str
    duration_ms: int
    cooldown_ms: int
    cost: int
    rarity: str
    effect: Any
    character_type: Optional[str] = None


@dataclass
class PowerUpActivation:
    """A power-up currently in effect"""
    id: str
    start_time: int
    end_time: int
    power_up: PowerUp
    charges: int = 0

    def is_expired(self, now_ms: int) -> bool:
        if self.power_up.duration_ms == UNTIL_CONSUMED:
            return False
        return now_ms > self.end_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'name': self.power_up.name,
            'effect': type(self.power_up.effect).__name__,
        }


@dataclass
class PowerUpEffects:
    """Folded snapshot of every active power-up"""
    time_multiplier: float = 1.0
    coin_multiplier: float = 1.0
    experience_multiplier: float = 1.0
    protection: int = 0
    hints: bool = False
    pattern_reveal: bool = False
    accuracy_bonus: float = 0.0
    efficiency: float = 1.0
    difficulty_reduction: int = 0
    subject_bonuses: Dict[str, float] = field(default_factory=dict)
    special_effects: List[str] = field(default_factory=list)
    time_frozen: bool = False

    def subject_multiplier(self, subject: str) -> float:
        return self.subject_bonuses.get(subject, 1.0)

    def add_special(self, tag: str):
        if tag not in self.special_effects:
            self.special_effects.append(tag)


POWER_UPS: Dict[str, PowerUp] = {p.id: p for p in [
    # Universal
    PowerUp('time_freeze', 'Time Freeze', '⏰', 'Stops the timer for 30 seconds',
            30000, 120000, 50, 'common', TimeFreeze()),
    PowerUp('double_coins', 'Double Coins', '🪙', 'Double coin rewards for 60 seconds',
            60000, 180000, 75, 'common', CoinMultiplier(2.0)),
    PowerUp('shield', 'Protection Shield', '🛡️', 'Protects from next wrong answer',
            UNTIL_CONSUMED, 90000, 40, 'common', Protection(1)),
    PowerUp('hint', 'Smart Hint', '💡', 'Reveals a helpful hint for current question',
            INSTANT, 60000, 25, 'common', HintReveal()),

    # ARIA
    PowerUp('study_boost', 'Study Boost', '📚', 'Increases reading comprehension rewards by 50%',
            120000, 300000, 100, 'rare', SubjectBonus('reading', 1.5), character_type='aria'),
    PowerUp('focus_enhancement', 'Focus Enhancement', '🎯',
            'Reduces question timer pressure and increases accuracy',
            90000, 240000, 80, 'uncommon', FocusBonus(1.5, 0.1), character_type='aria'),

    # NEXUS
    PowerUp('spell_weaving', 'Spell Weaving', '🔮', 'Quantum insight reveals answer patterns',
            45000, 200000, 120, 'rare', PatternReveal(), character_type='nexus'),
    PowerUp('elemental_mastery', 'Elemental Mastery', '⚡',
            'Science questions become easier and more rewarding',
            180000, 360000, 150, 'epic', SubjectMasteryBoost('science', 1, 2.0), character_type='nexus'),

    # TITAN
    PowerUp('data_analysis', 'Data Analysis', '🤖', 'Analyzes question patterns for strategic advantages',
            60000, 180000, 90, 'uncommon', DataAnalysis(), character_type='titan'),
    PowerUp('system_optimization', 'System Optimization', '⚙️',
            'Optimizes all game systems for maximum efficiency',
            300000, 600000, 200, 'legendary', SystemOptimization(1.25, 1.5), character_type='titan'),
]}


class PowerUpManager:
    """
    Activates owned power-ups, enforces cooldowns and folds active effects
    into a single multiplier snapshot.
    """

    def __init__(self, progress_tracker: ProgressTracker, rng: Optional[random.Random] = None,
                 power_ups: Optional[Dict[str, PowerUp]] = None):
        self.progress_tracker = progress_tracker
        self.clock = progress_tracker.clock
        self.rng = rng or random.Random()
        self.power_ups = power_ups if power_ups is not None else POWER_UPS

        self.active_power_ups: Dict[str, PowerUpActivation] = {}
        self.cooldowns: Dict[str, int] = {}

        logger.info(f"Power-up system initialized with {len(self.power_ups)} power-ups")

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def _cooldown_remaining(self, power_up: PowerUp) -> int:
        last_used = self.cooldowns.get(power_up.id)
        if last_used is None:
            return 0
        return max(0, power_up.cooldown_ms - (self.clock.now_ms() - last_used))

    def activate(self, power_up_id: str) -> Dict[str, Any]:
        """Consume one owned power-up and start its effect window"""
        power_up = self.power_ups.get(power_up_id)
        if power_up is None:
            return {'success': False, 'message': 'Power-up not found'}

        if self.progress_tracker.get_power_up_count(power_up_id) <= 0:
            return {'success': False, 'message': "You don't own this power-up"}

        remaining = self._cooldown_remaining(power_up)
        if remaining > 0:
            return {'success': False, 'message': f"Cooldown: {math.ceil(remaining / 1000)}s remaining"}

        now = self.clock.now_ms()
        if power_up.duration_ms > 0:
            end_time = now + power_up.duration_ms
        elif power_up.duration_ms == INSTANT:
            end_time = now
        else:
            end_time = UNTIL_CONSUMED

        activation = PowerUpActivation(
            id=power_up_id,
            start_time=now,
            end_time=end_time,
            power_up=power_up,
            charges=power_up.effect.charges if isinstance(power_up.effect, Protection) else 0,
        )

        self.active_power_ups[power_up_id] = activation
        self.cooldowns[power_up_id] = now
        self.progress_tracker.consume_power_up(power_up_id)

        logger.info(f"Power-up activated: {power_up.name}")
        return {'success': True, 'message': f"{power_up.name} activated!", 'activation': activation}

    def is_active(self, power_up_id: str) -> bool:
        activation = self.active_power_ups.get(power_up_id)
        if activation is None:
            return False
        if activation.is_expired(self.clock.now_ms()):
            del self.active_power_ups[power_up_id]
            return False
        return True

    def get_active_effects(self) -> PowerUpEffects:
        effects = PowerUpEffects()
        for power_up_id in list(self.active_power_ups):
            if self.is_active(power_up_id):
                activation = self.active_power_ups[power_up_id]
                _effects.dispatch(activation.power_up.effect, effects, activation)

        if effects.time_frozen:
            effects.time_multiplier = 0.0
        return effects

    def use_protection(self) -> bool:
        """Spend one shield charge against a wrong answer"""
        for power_up_id in list(self.active_power_ups):
            activation = self.active_power_ups[power_up_id]
            if not isinstance(activation.power_up.effect, Protection) or not self.is_active(power_up_id):
                continue
            activation.charges -= 1
            if activation.charges <= 0:
                del self.active_power_ups[power_up_id]
            logger.info("Shield absorbed a wrong answer")
            return True
        return False

    def calculate_enhanced_rewards(self, base_rewards: Dict[str, Any], subject: Optional[str] = None) -> Dict[str, Any]:
        effects = self.get_active_effects()
        enhanced = dict(base_rewards)

        enhanced['coins'] = math.floor(enhanced.get('coins', 0) * effects.coin_multiplier)
        enhanced['experience'] = math.floor(enhanced.get('experience', 0) * effects.experience_multiplier)

        subject_bonus = effects.subject_multiplier(subject) if subject else 1.0
        if subject_bonus != 1.0:
            enhanced['coins'] = math.floor(enhanced['coins'] * subject_bonus)
            enhanced['experience'] = math.floor(enhanced['experience'] * subject_bonus)

        enhanced['power_up_bonus'] = (
            effects.coin_multiplier > 1.0 or effects.experience_multiplier > 1.0 or subject_bonus > 1.0
        )
        enhanced['active_effects'] = list(effects.special_effects)
        return enhanced

    # ------------------------------------------------------------------
    # Shop and inventory
    # ------------------------------------------------------------------

    def _is_compatible(self, power_up: PowerUp) -> bool:
        if not power_up.character_type:
            return True
        character_type = self.progress_tracker.get_character_type()
        return character_type is not None and character_type.id == power_up.character_type

    def get_available_power_ups(self) -> List[Dict[str, Any]]:
        """Power-ups usable by the current character, by rarity then readiness"""
        available = []
        for power_up in self.power_ups.values():
            if not self._is_compatible(power_up):
                continue
            remaining = self._cooldown_remaining(power_up)
            available.append({
                'id': power_up.id,
                'name': power_up.name,
                'icon': power_up.icon,
                'description': power_up.description,
                'cost': power_up.cost,
                'rarity': power_up.rarity,
                'duration_ms': power_up.duration_ms,
                'character_type': power_up.character_type,
                'can_use': remaining == 0,
                'cooldown_remaining_ms': remaining,
                'owned': self.progress_tracker.get_power_up_count(power_up.id),
            })

        available.sort(key=lambda p: (RARITY_ORDER.get(p['rarity'], 0), not p['can_use']))
        return available

    def get_power_up_status(self) -> Dict[str, List[Dict[str, Any]]]:
        now = self.clock.now_ms()
        active = []
        for power_up_id in list(self.active_power_ups):
            if not self.is_active(power_up_id):
                continue
            activation = self.active_power_ups[power_up_id]
            remaining = -1 if activation.end_time == UNTIL_CONSUMED else max(0, activation.end_time - now)
            active.append({
                'id': power_up_id,
                'name': activation.power_up.name,
                'icon': activation.power_up.icon,
                'time_remaining_ms': remaining,
            })

        available = [p for p in self.get_available_power_ups() if p['can_use'] and p['owned'] > 0]
        return {'active': active, 'available': available}

    def purchase_power_up(self, power_up_id: str, quantity: int = 1) -> Dict[str, Any]:
        power_up = self.power_ups.get(power_up_id)
        if power_up is None:
            return {'success': False, 'message': 'Power-up not found'}
        if quantity <= 0:
            return {'success': False, 'message': 'Quantity must be positive'}

        total_cost = power_up.cost * quantity
        if self.progress_tracker.get_coin_balance() < total_cost:
            return {'success': False, 'message': 'Insufficient coins'}

        if not self._is_compatible(power_up):
            return {'success': False, 'message': 'Not compatible with your character'}

        if not self.progress_tracker.spend_coins(total_cost):
            return {'success': False, 'message': 'Insufficient coins'}
        self.progress_tracker.grant_power_up(power_up_id, quantity)

        logger.info(f"Purchased {quantity}x {power_up.name} for {total_cost} coins")
        return {
            'success': True,
            'message': f"Purchased {quantity}x {power_up.name}",
            'new_balance': self.progress_tracker.get_coin_balance(),
        }

    def grant_random_power_up(self, rarity: str = 'common') -> Optional[PowerUp]:
        candidates = [p for p in self.power_ups.values() if p.rarity == rarity]
        if not candidates:
            return None
        power_up = self.rng.choice(candidates)
        self.progress_tracker.grant_power_up(power_up.id)
        return power_up

    def cleanup_expired_power_ups(self) -> List[str]:
        now = self.clock.now_ms()
        expired = [pid for pid, activation in self.active_power_ups.items() if activation.is_expired(now)]
        for power_up_id in expired:
            del self.active_power_ups[power_up_id]
        if expired:
            logger.debug(f"Expired power-ups removed: {expired}")
        return expired

    def get_recommendations(self, session_data: Dict[str, Any]) -> List[Dict[str, str]]:
        """Suggest power-ups from session performance (accuracy in percent)"""
        recommendations = []

        if session_data.get('average_response_time_ms', 0) > 20000:
            recommendations.append({
                'power_up_id': 'time_freeze',
                'reason': 'You seem to need more time to think',
                'priority': 'high',
            })

        accuracy = session_data.get('accuracy')
        if accuracy is not None and accuracy < 60:
            recommendations.append({
                'power_up_id': 'hint',
                'reason': 'Hints could help improve your accuracy',
                'priority': 'high',
            })

        character_type = self.progress_tracker.get_character_type()
        if character_type:
            own = [p for p in self.power_ups.values() if p.character_type == character_type.id]
            if own:
                recommendations.append({
                    'power_up_id': own[0].id,
                    'reason': f"Perfect for your {character_type.name} abilities",
                    'priority': 'medium',
                })

        return recommendations


# ---------------------------------------------------------------------------
# Effect folders
# ---------------------------------------------------------------------------

_effects = HandlerRegistry('power-up effect', POWER_UP_EFFECTS)


@_effects.handles(TimeFreeze)
def _fold_time_freeze(effect: TimeFreeze, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.time_frozen = True


@_effects.handles(CoinMultiplier)
def _fold_coin_multiplier(effect: CoinMultiplier, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.coin_multiplier *= effect.multiplier


@_effects.handles(Protection)
def _fold_protection(effect: Protection, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.protection += activation.charges


@_effects.handles(HintReveal)
def _fold_hint(effect: HintReveal, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.hints = True


@_effects.handles(SubjectBonus)
def _fold_subject_bonus(effect: SubjectBonus, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.subject_bonuses[effect.subject] = max(effects.subject_multiplier(effect.subject), effect.multiplier)


@_effects.handles(FocusBonus)
def _fold_focus(effect: FocusBonus, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.time_multiplier *= effect.time_bonus
    effects.accuracy_bonus += effect.accuracy_bonus
    effects.add_special('focus')


@_effects.handles(SystemOptimization)
def _fold_optimization(effect: SystemOptimization, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.coin_multiplier *= effect.all_bonuses
    effects.experience_multiplier *= effect.all_bonuses
    effects.efficiency *= effect.efficiency
    effects.add_special('optimized')


@_effects.handles(PatternReveal)
def _fold_pattern_reveal(effect: PatternReveal, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.pattern_reveal = True
    effects.add_special('pattern_reveal')


@_effects.handles(DataAnalysis)
def _fold_data_analysis(effect: DataAnalysis, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.add_special('analysis')


@_effects.handles(SubjectMasteryBoost)
def _fold_subject_mastery(effect: SubjectMasteryBoost, effects: PowerUpEffects, activation: PowerUpActivation):
    effects.subject_bonuses[effect.subject] = max(effects.subject_multiplier(effect.subject),
                                                  effect.reward_multiplier)
    effects.difficulty_reduction = max(effects.difficulty_reduction, effect.difficulty_reduction)
    effects.add_special('mastery')


_effects.verify_complete()
