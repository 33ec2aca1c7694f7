"""
MechScholar Character Catalog
Pilotable mechs, their subject strengths and reward bonuses
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class CharacterType:
    """Static definition of a playable mech"""
    id: str
    name: str
    description: str
    bonus_multipliers: Dict[str, float] = field(default_factory=dict)
    special_abilities: List[str] = field(default_factory=list)

    @property
    def coin_bonus(self) -> float:
        return self.bonus_multipliers.get('coins', 1.0)

    @property
    def experience_bonus(self) -> float:
        return self.bonus_multipliers.get('experience', 1.0)

    def subject_bonus(self, subject: str) -> float:
        return self.bonus_multipliers.get(subject, 1.0)

    def has_subject_strength(self, subject: str) -> bool:
        return subject in self.bonus_multipliers and subject not in NON_SUBJECT_BONUSES


# Bonus keys that are not school subjects
NON_SUBJECT_BONUSES = frozenset({
    'coins', 'experience', 'analysis', 'efficiency', 'defense', 'courage',
    'technology', 'innovation',
})


CHARACTER_TYPES: Dict[str, CharacterType] = {
    'aria': CharacterType(
        id='aria',
        name='ARIA',
        description='Agile reconnaissance mech built for reading and analysis',
        bonus_multipliers={
            'reading': 1.3,
            'analysis': 1.25,
            'efficiency': 1.2,
            'coins': 1.1,
        },
        special_abilities=['Neural Override', 'Cyber Analysis', 'Data Processing'],
    ),
    'titan': CharacterType(
        id='titan',
        name='TITAN',
        description='Heavy assault mech that excels at math and defense',
        bonus_multipliers={
            'math': 1.3,
            'defense': 1.35,
            'courage': 1.25,
            'coins': 1.1,
        },
        special_abilities=['Berserker Mode', 'Heavy Assault', 'Defensive Matrix'],
    ),
    'nexus': CharacterType(
        id='nexus',
        name='NEXUS',
        description='Research mech tuned for science and technology',
        bonus_multipliers={
            'science': 1.35,
            'technology': 1.3,
            'innovation': 1.25,
            'coins': 1.1,
            'experience': 1.1,
        },
        special_abilities=['Quantum Sync', 'Tech Innovation', 'System Analysis'],
    ),
}


def get_character_type(type_id: Optional[str]) -> Optional[CharacterType]:
    if not type_id:
        return None
    return CHARACTER_TYPES.get(type_id)
