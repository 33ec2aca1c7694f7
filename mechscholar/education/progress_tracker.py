"""
MechScholar Progression Engine - Progress Tracker
Canonical ledger for coins, experience, subject accuracy and inventory
Version: 2.0 | Character-Aware Rewards
"""

import copy
import logging
import math
import threading
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..storage.migration import SLOT_BUCKETS, default_progress
from ..storage.save_manager import SaveManager
from ..utils.clock import Clock, ensure_clock
from ..utils.validators import (
    round_half_up,
    validate_character_name,
    validate_subject,
    validate_week_number,
)
from .characters import CHARACTER_TYPES, CharacterType, get_character_type

logger = logging.getLogger(__name__)

# Per-answer base rewards by difficulty tier
COIN_BASE_REWARDS = {'beginner': 3, 'easy': 3, 'medium': 5, 'hard': 8, 'expert': 10}
EXPERIENCE_BASE_REWARDS = {'beginner': 8, 'easy': 8, 'medium': 10, 'hard': 15, 'expert': 20}

FAST_ANSWER_MS = 10000
FAST_ANSWER_BONUS = 2

LEVEL_UP_COIN_BONUS = 50

# Equipment stat bonuses: slot -> item -> (stat, amount)
EQUIPMENT_STAT_BONUSES = {
    'weapon': {
        'plasma_sword': ('attack_power', 0.25),
        'neural_disruptor': ('attack_power', 0.5),
        'quantum_cannon': ('attack_power', 1.0),
    },
    'shield': {
        'energy_barrier': ('defense', 25),
        'adaptive_armor': ('defense', 35),
        'quantum_shield': ('defense', 50),
    },
    'tech': {
        'hint_scanner': ('accuracy', 25),
        'time_dilator': ('speed', 15),
        'answer_analyzer': ('accuracy', 35),
    },
    'core': {
        'xp_amplifier': ('intelligence', 50),
        'coin_magnet': ('luck', 100),
        'streak_keeper': ('energy', 50),
    },
}

CHARACTER_STAT_BONUSES = {
    'aria': {'attack_power': 0.1, 'accuracy': 15, 'speed': 5},
    'titan': {'attack_power': 0.2, 'defense': 10, 'energy': 20},
    'nexus': {'intelligence': 20, 'accuracy': 10, 'luck': 10},
}


class ProgressTracker:
    """
    Owns the single PlayerProgress document.

    Every other manager receives this tracker and mutates progress only
    through it, so the document is never duplicated or re-read.
    """

    def __init__(self, save_manager: SaveManager, clock: Optional[Clock] = None,
                 auto_save_interval_ms: Optional[int] = None):
        """Load saved progress (or start fresh) and optionally start auto-save"""
        self.save_manager = save_manager
        self.clock = ensure_clock(clock)
        self.character_types = CHARACTER_TYPES

        self._lock = threading.RLock()
        self._effect_sources: List[Any] = []

        self.progress: Dict[str, Any] = self._load_progress()

        if auto_save_interval_ms:
            self.save_manager.enable_auto_save(self.snapshot, auto_save_interval_ms)

        logger.info(f"Progress tracker initialized for {self.get_player_name()}")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_progress(self) -> Dict[str, Any]:
        document = self.save_manager.load()
        if document is None:
            logger.info("No saved progress found, starting fresh")
            document = default_progress()
        self._recompute_accuracies(document)
        document['badges'] = len(document['achievements'])
        return document

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the document, safe to serialize off-thread"""
        with self._lock:
            return copy.deepcopy(self.progress)

    def save_progress(self) -> bool:
        return self.save_manager.save(self.snapshot())

    def add_effect_source(self, source: Any):
        """
        Register a provider of temporary reward multipliers.

        ``source.get_active_effects()`` must return an object exposing
        ``coin_multiplier``, ``experience_multiplier`` and
        ``subject_multiplier(subject)``.
        """
        if source not in self._effect_sources:
            self._effect_sources.append(source)

    # ------------------------------------------------------------------
    # Character
    # ------------------------------------------------------------------

    def set_character(self, character_data: Dict[str, Any]) -> bool:
        """Choose the player's mech. Only allowed once per game."""
        with self._lock:
            if self.progress['character'] is not None:
                logger.warning("Character already chosen, ignoring set_character")
                return False

            type_id = character_data.get('type')
            character_type = get_character_type(type_id)
            if character_type is None:
                logger.warning(f"Unknown character type: {type_id}")
                return False

            name = character_data.get('name', character_type.name)
            valid, message = validate_character_name(name)
            if not valid:
                logger.warning(f"Rejected character name: {message}")
                return False
            name = name.strip()

            self.progress['character'] = {
                'id': character_data.get('id', type_id),
                'type': type_id,
                'name': name,
                'created_at': self.clock.now().isoformat(timespec='seconds'),
            }
            self.progress['player_name'] = name

            self._apply_character_starting_bonus(character_type)

        logger.info(f"Character set: {name} ({character_type.name})")
        self.save_progress()
        return True

    def _apply_character_starting_bonus(self, character_type: CharacterType):
        coin_bonus = character_type.coin_bonus
        if coin_bonus != 1.0:
            balance = self.progress['coin_balance']
            boosted = math.floor(balance * coin_bonus)
            self.progress['coin_balance'] = boosted
            # Only the bonus itself counts as newly earned
            self.progress['total_coins_earned'] += max(0, boosted - balance)

        if 'experience' in character_type.bonus_multipliers:
            self.progress['experience_multiplier'] *= character_type.experience_bonus

    def get_character(self) -> Optional[Dict[str, Any]]:
        return self.progress['character']

    def get_character_type(self) -> Optional[CharacterType]:
        character = self.progress['character']
        if not character:
            return None
        return get_character_type(character.get('type'))

    def get_player_name(self) -> str:
        character = self.progress['character']
        if character and character.get('name'):
            return character['name']
        return self.progress.get('player_name') or 'Young Scholar'

    def get_character_level(self) -> int:
        return self.progress['character_progression']['level']

    def get_character_experience(self) -> int:
        return self.progress['character_progression']['experience']

    @staticmethod
    def get_exp_needed_for_level(level: int) -> int:
        return math.floor(100 * math.pow(1.5, level - 1))

    # ------------------------------------------------------------------
    # Economy
    # ------------------------------------------------------------------

    def get_coin_balance(self) -> int:
        return self.progress['coin_balance']

    def award_coins(self, amount: int, reason: str = '') -> int:
        """Credit coins after multipliers. Returns the amount actually credited."""
        if amount <= 0:
            return 0

        with self._lock:
            character_type = self.get_character_type()
            multiplier = self.progress['experience_multiplier']
            if character_type:
                multiplier *= character_type.coin_bonus

            final_amount = math.floor(amount * multiplier)
            self.progress['coin_balance'] += final_amount
            self.progress['total_coins_earned'] += final_amount

            self.award_character_experience(math.floor(final_amount / 10))

        logger.debug(f"Awarded {final_amount} coins ({amount} base) {reason}".rstrip())
        self.save_progress()
        return final_amount

    def spend_coins(self, amount: int) -> bool:
        if amount < 0:
            return False
        with self._lock:
            if self.progress['coin_balance'] < amount:
                return False
            self.progress['coin_balance'] -= amount
        self.save_progress()
        return True

    def add_score(self, points: int) -> int:
        if points > 0:
            with self._lock:
                self.progress['total_score'] += points
        return self.progress['total_score']

    def award_character_experience(self, amount: int) -> int:
        """
        Add experience with the character bonus. At most one level is gained per
        call; surplus experience carries over to the next award.
        """
        with self._lock:
            character_type = self.get_character_type()
            bonus = character_type.experience_bonus if character_type else 1.0
            final_amount = math.floor(amount * bonus)
            if final_amount <= 0:
                return 0

            progression = self.progress['character_progression']
            progression['experience'] += final_amount

            exp_needed = self.get_exp_needed_for_level(progression['level'] + 1)
            if progression['experience'] >= exp_needed:
                progression['level'] += 1
                progression['experience'] -= exp_needed

                level_bonus = LEVEL_UP_COIN_BONUS * progression['level']
                self.progress['coin_balance'] += level_bonus
                self.progress['total_coins_earned'] += level_bonus

                logger.info(f"{self.get_player_name()} reached level {progression['level']}, "
                            f"+{level_bonus} coins")

        return final_amount

    # ------------------------------------------------------------------
    # Answers and accuracy
    # ------------------------------------------------------------------

    def _effect_multipliers(self, subject: Optional[str] = None):
        coin_multiplier = 1.0
        experience_multiplier = 1.0
        for source in self._effect_sources:
            effects = source.get_active_effects()
            coin_multiplier *= effects.coin_multiplier
            experience_multiplier *= effects.experience_multiplier
            if subject:
                coin_multiplier *= effects.subject_multiplier(subject)
        return coin_multiplier, experience_multiplier

    def calculate_coin_reward(self, subject: str, difficulty: str = 'medium',
                              time_spent_ms: int = 0) -> int:
        """Coins for one correct answer, before award_coins multipliers"""
        base = COIN_BASE_REWARDS.get(difficulty, COIN_BASE_REWARDS['medium'])
        if 0 < time_spent_ms < FAST_ANSWER_MS:
            base += FAST_ANSWER_BONUS

        character_type = self.get_character_type()
        if character_type:
            base = math.floor(base * character_type.subject_bonus(subject))

        coin_multiplier, _ = self._effect_multipliers(subject)
        return math.floor(base * coin_multiplier)

    def calculate_experience_reward(self, difficulty: str = 'medium') -> int:
        base = EXPERIENCE_BASE_REWARDS.get(difficulty, EXPERIENCE_BASE_REWARDS['medium'])
        _, experience_multiplier = self._effect_multipliers()
        return math.floor(base * experience_multiplier)

    def record_answer(self, subject: str, is_correct: bool, time_spent_ms: int = 0,
                      difficulty: str = 'medium') -> Dict[str, int]:
        """Record one answered question and pay out rewards for a correct one"""
        rewards = {'coins': 0, 'experience': 0}
        if not validate_subject(subject):
            logger.warning(f"Ignoring answer for invalid subject {subject!r}")
            return rewards

        time_spent_ms = max(0, int(time_spent_ms or 0))

        with self._lock:
            stats = self.progress['subject_stats'].setdefault(subject, {'correct': 0, 'total': 0})
            stats['total'] += 1

            session = self.progress['session_stats']
            session['questions_answered'] += 1
            session['time_spent_ms'] += time_spent_ms

            if is_correct:
                stats['correct'] += 1
                session['correct_answers'] += 1

                coin_reward = self.calculate_coin_reward(subject, difficulty, time_spent_ms)
                rewards['coins'] = self.award_coins(coin_reward, f"correct {subject} answer")
                rewards['experience'] = self.award_character_experience(
                    self.calculate_experience_reward(difficulty)
                )

            self._recompute_accuracies(self.progress)

        logger.debug(f"Answer recorded: {subject} correct={is_correct} rewards={rewards}")
        self.save_progress()
        return rewards

    @staticmethod
    def _recompute_accuracies(document: Dict[str, Any]):
        """Only writer of subject_accuracies"""
        accuracies = document['subject_accuracies']
        for subject, stats in document['subject_stats'].items():
            total = stats['total']
            accuracies[subject] = round_half_up(stats['correct'] / total * 100) if total > 0 else 0

    def get_accuracy(self, subject: str) -> int:
        return self.progress['subject_accuracies'].get(subject, 0)

    def get_subject_stats(self, subject: str) -> Dict[str, int]:
        return dict(self.progress['subject_stats'].get(subject, {'correct': 0, 'total': 0}))

    def get_overall_accuracy(self) -> int:
        correct = sum(stats['correct'] for stats in self.progress['subject_stats'].values())
        total = sum(stats['total'] for stats in self.progress['subject_stats'].values())
        return round_half_up(correct / total * 100) if total > 0 else 0

    def reset_session_stats(self):
        with self._lock:
            self.progress['session_stats'] = {
                'questions_answered': 0,
                'correct_answers': 0,
                'time_spent_ms': 0,
            }
        self.save_progress()

    # ------------------------------------------------------------------
    # Weeks, badges and achievements
    # ------------------------------------------------------------------

    def complete_week(self, week_number: int) -> bool:
        """Mark a week finished. Rewards are paid only on the first completion."""
        if not validate_week_number(week_number):
            logger.warning(f"Invalid week number: {week_number!r}")
            return False

        with self._lock:
            if week_number in self.progress['weeks_completed']:
                return False

            self.progress['weeks_completed'].append(week_number)
            self.recompute_badges()

            self.award_coins(50 + week_number * 15, f"week {week_number} complete")
            self.award_character_experience(100 + week_number * 25)

        logger.info(f"Week {week_number} completed")
        self.save_progress()
        return True

    def is_week_unlocked(self, week_number: int) -> bool:
        if week_number == 1:
            return True
        return (week_number - 1) in self.progress['weeks_completed']

    def recompute_badges(self) -> int:
        self.progress['badges'] = len(self.progress['achievements'])
        return self.progress['badges']

    def has_achievement(self, achievement_id: str) -> bool:
        return achievement_id in self.progress['achievements']

    def add_achievement(self, achievement_id: str) -> bool:
        """Append an achievement id once. Rewards are the caller's concern."""
        with self._lock:
            if achievement_id in self.progress['achievements']:
                return False
            self.progress['achievements'].append(achievement_id)
            self.recompute_badges()
        return True

    # ------------------------------------------------------------------
    # Daily rewards
    # ------------------------------------------------------------------

    def claim_daily_reward(self) -> Optional[Dict[str, Any]]:
        """Claim today's login reward, or None if already claimed today"""
        today = self.clock.today()

        with self._lock:
            daily = self.progress['daily_rewards']
            last_claimed = daily['last_claimed_date']

            if last_claimed == today.isoformat():
                return None

            yesterday = (today - timedelta(days=1)).isoformat()
            if last_claimed == yesterday:
                daily['streak'] += 1
            else:
                daily['streak'] = 1

            daily['last_claimed_date'] = today.isoformat()

            streak = daily['streak']
            total_coins = 15 + min(streak * 3, 30)
            self.award_coins(total_coins, 'daily reward')
            self.award_character_experience(20 + streak * 5)

            is_new_record = streak > daily.get('max_streak', 0)
            if is_new_record:
                daily['max_streak'] = streak

        logger.info(f"Daily reward claimed: {total_coins} coins, streak {streak}")
        self.save_progress()
        return {'coins': total_coins, 'streak': streak, 'is_new_record': is_new_record}

    # ------------------------------------------------------------------
    # Inventory and equipment
    # ------------------------------------------------------------------

    def _bucket(self, item_type: str, create: bool = False) -> Optional[Dict[str, Any]]:
        bucket_name = SLOT_BUCKETS.get(item_type)
        if bucket_name is None:
            return None
        inventory = self.progress['inventory']
        if create:
            return inventory.setdefault(bucket_name, {})
        return inventory.get(bucket_name)

    def purchase_item(self, item_id: str, item_type: str, cost: int) -> bool:
        """Spend coins on a shop item and add it to the inventory"""
        if item_type != 'armor' and item_type not in SLOT_BUCKETS:
            logger.warning(f"Unknown item type: {item_type}")
            return False

        with self._lock:
            if not self.spend_coins(cost):
                return False

            if item_type == 'armor':
                self.progress['armor_upgrades'][item_id] = True
                self.award_character_experience(math.floor(cost / 5))
            else:
                bucket = self._bucket(item_type, create=True)
                if item_type == 'power_up':
                    bucket[item_id] = self.get_power_up_count(item_id) + 1
                else:
                    bucket[item_id] = True
                    if item_type in ('cosmetic', 'decoration'):
                        self.progress['equipped_items'][item_type] = item_id

                self.award_character_experience(math.floor(cost / 10))

        logger.info(f"Purchased {item_type} '{item_id}' for {cost} coins")
        self.save_progress()
        return True

    def grant_power_up(self, power_up_id: str, quantity: int = 1) -> int:
        """Add consumable power-ups without charging for them"""
        if quantity <= 0:
            return self.get_power_up_count(power_up_id)
        with self._lock:
            bucket = self._bucket('power_up', create=True)
            bucket[power_up_id] = self.get_power_up_count(power_up_id) + quantity
            count = bucket[power_up_id]
        self.save_progress()
        return count

    def consume_power_up(self, power_up_id: str) -> bool:
        with self._lock:
            count = self.get_power_up_count(power_up_id)
            if count <= 0:
                return False
            self._bucket('power_up', create=True)[power_up_id] = count - 1
            if count == 1:
                self._unequip_power_up(power_up_id)
        self.save_progress()
        return True

    def _unequip_power_up(self, power_up_id: str):
        """The power-up slot may only hold stock that is still owned"""
        equipped = self.progress['equipped_items']
        if equipped.get('power_up') == power_up_id:
            equipped['power_up'] = None

    def get_power_up_count(self, power_up_id: str) -> int:
        value = self.progress['inventory'].get('power_ups', {}).get(power_up_id, 0)
        if value is True:
            return 1
        if isinstance(value, bool) or not isinstance(value, int):
            return 0
        return value

    def grant_item(self, item_id: str, item_type: str) -> bool:
        """Give a permanent item, e.g. an event cosmetic"""
        with self._lock:
            bucket = self._bucket(item_type, create=True)
            if bucket is None or item_type == 'power_up':
                return False
            bucket[item_id] = True
        self.save_progress()
        return True

    def has_armor_upgrade(self, armor_id: str) -> bool:
        return bool(self.progress['armor_upgrades'].get(armor_id))

    def get_equipped_armor_level(self, mech_type: str, armor_type: str) -> int:
        """Highest owned level among ids shaped like '<mech>_<armor>_<level>'"""
        prefix = f"{mech_type}_{armor_type}_"
        max_level = 0
        for armor_id, owned in self.progress['armor_upgrades'].items():
            if not owned or not armor_id.startswith(prefix):
                continue
            suffix = armor_id.rsplit('_', 1)[-1]
            level = int(suffix) if suffix.isdigit() and int(suffix) > 0 else 1
            max_level = max(max_level, level)
        return max_level

    def has_item(self, item_id: str, item_type: str) -> bool:
        if item_type == 'armor':
            return self.has_armor_upgrade(item_id)
        bucket = self._bucket(item_type)
        return bool(bucket and bucket.get(item_id))

    def equip_item(self, item_id: str, item_type: str) -> bool:
        """Equip an owned item into its slot"""
        if not self.has_item(item_id, item_type) or item_type not in SLOT_BUCKETS:
            return False
        with self._lock:
            self.progress['equipped_items'][item_type] = item_id
        self.save_progress()
        return True

    def use_power_up(self, item_id: str) -> bool:
        """Consume one power-up item into the equipped power-up slot"""
        with self._lock:
            value = self.progress['inventory']['power_ups'].get(item_id)
            if value is True:
                self.progress['equipped_items']['power_up'] = item_id
            elif self.get_power_up_count(item_id) > 0:
                self.progress['inventory']['power_ups'][item_id] -= 1
                self.progress['equipped_items']['power_up'] = item_id
                if self.get_power_up_count(item_id) == 0:
                    self._unequip_power_up(item_id)
            else:
                return False
        self.save_progress()
        return True

    def get_inventory_summary(self) -> Dict[str, Any]:
        inventory = self.progress['inventory']
        summary: Dict[str, Any] = {'power_ups': {}}

        for item_id in inventory.get('power_ups', {}):
            count = self.get_power_up_count(item_id)
            if count > 0:
                summary['power_ups'][item_id] = count

        for bucket_name in SLOT_BUCKETS.values():
            if bucket_name == 'power_ups':
                continue
            summary[bucket_name] = [item_id for item_id, owned in inventory.get(bucket_name, {}).items() if owned]

        summary['armor'] = [armor_id for armor_id, owned in self.progress['armor_upgrades'].items() if owned]
        return summary

    def get_equipped_effects(self) -> Dict[str, Any]:
        """Gameplay modifiers from character traits and equipped tool/power-up"""
        effects = {
            'speed_multiplier': 1.0,
            'jump_multiplier': 1.0,
            'score_multiplier': 1.0,
            'extra_time': 0,
            'shield': False,
            'auto_hint': False,
            'coin_magnet': False,
        }

        character_type = self.get_character_type()
        if character_type:
            effects['speed_multiplier'] *= character_type.bonus_multipliers.get('efficiency', 1.0)
            effects['score_multiplier'] *= character_type.bonus_multipliers.get('analysis', 1.0)

        equipped = self.progress['equipped_items']

        tool = equipped.get('tool')
        if tool == 'speed_boost':
            effects['speed_multiplier'] *= 1.5
        elif tool == 'jump_boost':
            effects['jump_multiplier'] *= 1.3
        elif tool == 'score_multiplier':
            effects['score_multiplier'] *= 1.5
        elif tool == 'coin_magnet':
            effects['coin_magnet'] = True
        elif tool == 'auto_hint':
            effects['auto_hint'] = True

        power_up = equipped.get('power_up')
        if power_up == 'extra_time':
            effects['extra_time'] = 30
        elif power_up == 'shield':
            effects['shield'] = True
        elif power_up == 'slow_motion':
            effects['extra_time'] = 15

        return effects

    # ------------------------------------------------------------------
    # Character upgrades and abilities
    # ------------------------------------------------------------------

    def unlock_character_upgrade(self, upgrade_id: str) -> bool:
        with self._lock:
            upgrades = self.progress['character_progression']['upgrades_unlocked']
            if upgrade_id in upgrades:
                return False
            upgrades.append(upgrade_id)
        self.save_progress()
        return True

    def is_character_upgrade_unlocked(self, upgrade_id: str) -> bool:
        return upgrade_id in self.progress['character_progression']['upgrades_unlocked']

    def use_special_ability(self) -> int:
        with self._lock:
            progression = self.progress['character_progression']
            progression['special_abilities_used'] += 1
            self.award_character_experience(5)
            used = progression['special_abilities_used']
        self.save_progress()
        return used

    # ------------------------------------------------------------------
    # Combat stats
    # ------------------------------------------------------------------

    def get_character_stats(self) -> Dict[str, float]:
        """Combat stats from level, chassis and equipped gear"""
        character_type = self.get_character_type()
        if not character_type:
            return {
                'attack_power': 1.0,
                'defense': 0,
                'speed': 30,
                'accuracy': 0,
                'luck': 0,
                'energy': 100,
                'intelligence': 0,
            }

        levels = self.get_character_level() - 1
        stats = {
            'attack_power': 1.0 + levels * 0.05,
            'defense': levels * 2,
            'speed': 30 + levels,
            'accuracy': levels * 3,
            'luck': levels * 2,
            'energy': 100 + levels * 5,
            'intelligence': levels * 3,
        }

        for stat, amount in CHARACTER_STAT_BONUSES.get(character_type.id, {}).items():
            stats[stat] += amount

        equipped = self.progress['equipped_items']
        for slot, items in EQUIPMENT_STAT_BONUSES.items():
            bonus = items.get(equipped.get(slot))
            if bonus:
                stat, amount = bonus
                stats[stat] += amount

        return stats

    def get_combat_multipliers(self) -> Dict[str, float]:
        stats = self.get_character_stats()
        return {
            'damage_multiplier': stats['attack_power'],
            'defense_reduction': stats['defense'],
            'time_bonus': stats['speed'],
            'accuracy_bonus': stats['accuracy'],
            'coin_bonus': 1 + stats['luck'] / 100,
            'xp_bonus': 1 + stats['intelligence'] / 100,
            'energy_capacity': stats['energy'],
        }

    def add_experience(self, base_amount: int) -> int:
        """Experience scaled by the intelligence stat"""
        multiplier = 1 + self.get_character_stats()['intelligence'] / 100
        final_amount = math.floor(base_amount * multiplier)
        self.award_character_experience(final_amount)
        self.save_progress()
        logger.debug(f"Added {final_amount} XP ({base_amount} base x {multiplier:.2f})")
        return final_amount

    def add_coins(self, base_amount: int, reason: str = 'combat victory') -> int:
        """Coins scaled by the luck stat, then through award_coins"""
        multiplier = 1 + self.get_character_stats()['luck'] / 100
        final_amount = math.floor(base_amount * multiplier)
        self.award_coins(final_amount, reason)
        return final_amount

    # ------------------------------------------------------------------
    # Summaries and data management
    # ------------------------------------------------------------------

    def get_progress_summary(self) -> Dict[str, Any]:
        character_type = self.get_character_type()
        level = self.get_character_level()
        save_info = self.save_manager.peek_info() or {}

        return {
            'player_name': self.get_player_name(),
            'character': copy.deepcopy(self.progress['character']),
            'character_type': character_type.id if character_type else None,
            'character_level': level,
            'character_experience': self.get_character_experience(),
            'exp_needed_for_next_level': self.get_exp_needed_for_level(level + 1),
            'total_score': self.progress['total_score'],
            'weeks_completed': list(self.progress['weeks_completed']),
            'badges': self.progress['badges'],
            'coin_balance': self.get_coin_balance(),
            'total_coins_earned': self.progress['total_coins_earned'],
            'overall_accuracy': self.get_overall_accuracy(),
            'subject_accuracies': dict(self.progress['subject_accuracies']),
            'current_streak': self.progress['daily_rewards']['streak'],
            'experience_multiplier': self.progress['experience_multiplier'],
            'last_played': save_info.get('last_played'),
            'special_abilities_used': self.progress['character_progression']['special_abilities_used'],
            'equipped_items': dict(self.progress['equipped_items']),
        }

    def _replace_progress(self, document: Dict[str, Any]):
        """Swap contents in place so holders of self.progress see the change"""
        with self._lock:
            self.progress.clear()
            self.progress.update(document)
            self._recompute_accuracies(self.progress)
            self.recompute_badges()

    def export_progress(self) -> Optional[str]:
        self.save_progress()
        return self.save_manager.export()

    def import_progress(self, json_string: str) -> bool:
        if not self.save_manager.import_save(json_string):
            return False
        document = self.save_manager.load()
        if document is None:
            return False
        self._replace_progress(document)
        logger.info("Progress imported")
        return True

    def reset_progress(self):
        self.save_manager.clear()
        self._replace_progress(default_progress())
        logger.info("Progress reset to default")

    def destroy(self):
        self.save_manager.disable_auto_save()
