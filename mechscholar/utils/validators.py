#!/usr/bin/env python3
"""
Generic validation functions for the MechScholar progression engine.
"""

import math
import re
from typing import Any, Tuple

SUBJECT_REGEX = re.compile(r"^[a-z][a-z0-9_]{0,31}$")

MAX_WEEK_NUMBER = 52


def validate_character_name(name: Any) -> Tuple[bool, str]:
    """
    Validates a pilot name chosen for a character.
    - Must be between 1 and 24 characters once trimmed.
    - Can contain letters, numbers, spaces, apostrophes and hyphens.

    Returns a tuple of (is_valid, message).
    """
    if not isinstance(name, str):
        return False, "Name must be text."
    name = name.strip()
    if not 1 <= len(name) <= 24:
        return False, "Name must be between 1 and 24 characters long."
    if not re.match(r"^[A-Za-z0-9 '\-]+$", name):
        return False, "Name may only contain letters, numbers, spaces, apostrophes and hyphens."
    return True, "Name is valid."


def validate_subject(subject: Any) -> bool:
    """
    Checks if a subject key is usable as a stats bucket.
    Lowercase identifiers only, e.g. 'math' or 'social_studies'.
    """
    return isinstance(subject, str) and bool(SUBJECT_REGEX.match(subject))


def validate_week_number(week: Any) -> bool:
    """Checks if a week number is a positive integer within the school year."""
    if isinstance(week, bool) or not isinstance(week, int):
        return False
    return 1 <= week <= MAX_WEEK_NUMBER


def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for positive values, unlike round()."""
    return int(math.floor(value + 0.5))
