"""
Save document defaults and forward migration
Version: 2.0

Migration is additive: missing fields are filled from defaults, existing
valid values are never removed or rewritten. Running it twice is a no-op.
"""

import copy
import logging
from datetime import datetime
from numbers import Number
from typing import Any, Dict, List, Optional, Tuple

from ..utils.exceptions import SaveFormatError

logger = logging.getLogger(__name__)

CURRENT_FORMAT_VERSION = "2.0"

# Envelope keys written by the first release of the game
LEGACY_ENVELOPE_KEYS = ('version', 'timestamp', 'data')

DEFAULT_SUBJECTS = ('math', 'reading', 'science', 'history')

EQUIPMENT_SLOTS = ('cosmetic', 'power_up', 'tool', 'decoration', 'weapon', 'shield', 'tech', 'core')

# Equipment slot -> inventory bucket
SLOT_BUCKETS = {
    'cosmetic': 'cosmetics',
    'power_up': 'power_ups',
    'tool': 'tools',
    'decoration': 'decorations',
    'weapon': 'weapons',
    'shield': 'shields',
    'tech': 'techs',
    'core': 'cores',
}

# camelCase keys of first-release documents -> current keys
LEGACY_KEY_MAP = {
    'playerName': 'player_name',
    'totalScore': 'total_score',
    'weeksCompleted': 'weeks_completed',
    'coinBalance': 'coin_balance',
    'totalCoinsEarned': 'total_coins_earned',
    'experienceMultiplier': 'experience_multiplier',
    'subjectAccuracies': 'subject_accuracies',
    'subjectStats': 'subject_stats',
    'equippedItems': 'equipped_items',
    'dailyRewards': 'daily_rewards',
    'sessionStats': 'session_stats',
    'characterProgression': 'character_progression',
    'armorUpgrades': 'armor_upgrades',
}

LEGACY_NESTED_KEY_MAP = {
    'equipped_items': {'powerUp': 'power_up'},
    'inventory': {'powerUps': 'power_ups'},
    'daily_rewards': {'maxStreak': 'max_streak'},
    'session_stats': {
        'questionsAnswered': 'questions_answered',
        'correctAnswers': 'correct_answers',
        'timeSpent': 'time_spent_ms',
    },
    'character_progression': {
        'upgradesUnlocked': 'upgrades_unlocked',
        'specialAbilitiesUsed': 'special_abilities_used',
    },
    'character': {'createdAt': 'created_at', 'typeName': 'type_name'},
}


def default_progress() -> Dict[str, Any]:
    """Fresh player document"""
    return {
        'character': None,
        'player_name': 'Young Scholar',
        'total_score': 0,
        'weeks_completed': [],
        'badges': 0,
        'coin_balance': 100,
        'total_coins_earned': 100,
        'experience_multiplier': 1.0,
        'subject_accuracies': {subject: 0 for subject in DEFAULT_SUBJECTS},
        'subject_stats': {subject: {'correct': 0, 'total': 0} for subject in DEFAULT_SUBJECTS},
        'equipped_items': {slot: None for slot in EQUIPMENT_SLOTS},
        'inventory': {bucket: {} for bucket in SLOT_BUCKETS.values()},
        'armor_upgrades': {},
        'daily_rewards': {
            'last_claimed_date': None,
            'streak': 0,
            'max_streak': 0,
        },
        'achievements': [],
        'session_stats': {
            'questions_answered': 0,
            'correct_answers': 0,
            'time_spent_ms': 0,
        },
        'character_progression': {
            'level': 1,
            'experience': 0,
            'upgrades_unlocked': [],
            'special_abilities_used': 0,
        },
    }


def _same_kind(value: Any, default: Any) -> bool:
    """Whether an existing value is acceptable where the default lives"""
    if default is None:
        return True
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, Number):
        return isinstance(value, Number) and not isinstance(value, bool)
    return isinstance(value, type(default))


def _fill_defaults(target: Dict[str, Any], defaults: Dict[str, Any], path: str = '') -> int:
    """Fill missing keys in place, returns the number of repairs"""
    repairs = 0
    for key, default in defaults.items():
        if key not in target:
            target[key] = copy.deepcopy(default)
            repairs += 1
        elif not _same_kind(target[key], default):
            logger.warning(f"Replacing malformed save field '{path}{key}'")
            target[key] = copy.deepcopy(default)
            repairs += 1
        elif isinstance(default, dict) and default:
            repairs += _fill_defaults(target[key], default, f"{path}{key}.")
    return repairs


def _unique_entries(values: List[Any], kind: type) -> List[Any]:
    """First occurrence of each entry of the expected kind, anything else is dropped"""
    entries = [v for v in values if isinstance(v, kind) and not isinstance(v, bool)]
    if len(entries) != len(values):
        logger.warning(f"Dropping {len(values) - len(entries)} malformed list entries from save")
    return list(dict.fromkeys(entries))


def _copy_legacy_keys(document: Dict[str, Any]) -> int:
    copied = 0
    for old, new in LEGACY_KEY_MAP.items():
        if old in document and new not in document:
            document[new] = copy.deepcopy(document[old])
            copied += 1

    for section, mapping in LEGACY_NESTED_KEY_MAP.items():
        inner = document.get(section)
        if not isinstance(inner, dict):
            continue
        for old, new in mapping.items():
            if old in inner and new not in inner:
                inner[new] = copy.deepcopy(inner[old])
                copied += 1

    daily = document.get('daily_rewards')
    if isinstance(daily, dict) and 'last_claimed_date' not in daily and 'lastClaimed' in daily:
        daily['last_claimed_date'] = parse_legacy_date(daily['lastClaimed'])
        copied += 1

    return copied


def parse_legacy_date(value: Any) -> Optional[str]:
    """First-release saves stored dates like 'Mon Jan 01 2024'"""
    if not isinstance(value, str) or not value:
        return None
    for fmt in ('%Y-%m-%d', '%a %b %d %Y'):
        try:
            return datetime.strptime(value, fmt).date().isoformat()
        except ValueError:
            continue
    logger.warning(f"Could not parse legacy daily reward date '{value}'")
    return None


def infer_character_type(character: Dict[str, Any]) -> str:
    """Older saves only kept the display name, guess the chassis from it"""
    hints = ' '.join(
        str(character.get(key, '')) for key in ('name', 'type_name', 'id')
    ).lower()
    if 'aria' in hints:
        return 'aria'
    if 'nexus' in hints:
        return 'nexus'
    return 'titan'


def migrate_document(document: Dict[str, Any], from_version: Optional[str] = None) -> Dict[str, Any]:
    """
    Bring a document of any known version up to the current shape in place.

    Args:
        document: Decoded save document.
        from_version: Format version recorded in the envelope, if any.

    Returns:
        The same document object, with every field present.
    """
    if not isinstance(document, dict):
        raise SaveFormatError("Save document must be a JSON object")

    repairs = _copy_legacy_keys(document)
    repairs += _fill_defaults(document, default_progress())

    for subject, stats in list(document['subject_stats'].items()):
        if not isinstance(stats, dict):
            document['subject_stats'][subject] = {'correct': 0, 'total': 0}
            repairs += 1
            continue
        repairs += _fill_defaults(stats, {'correct': 0, 'total': 0})

    character = document.get('character')
    if character is not None and not isinstance(character, dict):
        logger.warning("Dropping malformed save field 'character'")
        document['character'] = character = None
        repairs += 1
    if isinstance(character, dict) and not character.get('type'):
        character['type'] = infer_character_type(character)
        repairs += 1

    # Sets are stored as lists, keep the first occurrence of each id
    progression = document['character_progression']
    for container, key, kind in (
        (document, 'weeks_completed', int),
        (document, 'achievements', str),
        (progression, 'upgrades_unlocked', str),
    ):
        unique = _unique_entries(container[key], kind)
        if unique != container[key]:
            container[key] = unique
            repairs += 1

    if repairs:
        logger.info(f"Migrated save from version {from_version or 'unknown'} with {repairs} repairs")

    return document


def wrap_envelope(document: Dict[str, Any], saved_at: int) -> Dict[str, Any]:
    return {
        'format_version': CURRENT_FORMAT_VERSION,
        'saved_at': saved_at,
        'document': document,
    }


def unwrap_envelope(envelope: Any) -> Tuple[Optional[str], Optional[int], Dict[str, Any]]:
    """
    Split an envelope into (version, saved_at, document).

    Accepts the current envelope and the legacy ``{version, timestamp, data}`` one.
    """
    if not isinstance(envelope, dict):
        raise SaveFormatError("Save envelope must be a JSON object")

    if 'document' in envelope:
        version, saved_at, document = (
            envelope.get('format_version'), envelope.get('saved_at'), envelope['document']
        )
    elif 'data' in envelope:
        version, saved_at, document = (envelope.get(key) for key in LEGACY_ENVELOPE_KEYS)
    else:
        raise SaveFormatError("Save envelope has no document")

    if not isinstance(document, dict):
        raise SaveFormatError("Save document must be a JSON object")

    return version, saved_at, document
