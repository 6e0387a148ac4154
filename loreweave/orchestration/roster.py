# ABOUTME: Extracts the role roster from a numbered role prompt and validates roster/setup inputs.
# ABOUTME: "1. THE HUNTER (HUMAN)" becomes "THE HUNTER"; duplicates and blanks are rejected.

import re

from loreweave.models.world import normalize_name
from loreweave.orchestration.exceptions import IncompleteSetup

# "1. THE HUNTER (HUMAN)" / "2) The Mage"
ROLE_LINE_PATTERN = re.compile(r"^\s*\d+[.)]\s*(.+)$")

MAX_ROLE_LENGTH = 64


def extract_roster(role_prompt: str) -> list[str]:
    """
    Extract role names from numbered lines of a role prompt.

    Unnumbered lines are ignored; a trailing parenthetical qualifier is
    dropped.

    Examples:
        >>> extract_roster("Roles:\\n1. THE HUNTER (HUMAN)\\n2. THE WITCH")
        ['THE HUNTER', 'THE WITCH']

    Args:
        role_prompt: Free-form setup text listing roles

    Returns:
        Role names in prompt order (possibly empty)
    """
    roles = []
    for line in role_prompt.splitlines():
        match = ROLE_LINE_PATTERN.match(line)
        if not match:
            continue
        name = match.group(1).split("(")[0].strip()
        if name:
            roles.append(name)
    return roles


def validate_roster(roster: list[str]) -> list[str]:
    """
    Clean and validate a roster.

    Raises:
        IncompleteSetup: If the roster is empty, has blank, overlong or
            duplicate (case-insensitive) names
    """
    cleaned = [" ".join(role.split()) for role in roster]
    if not cleaned:
        raise IncompleteSetup("Roster is empty")
    if any(not role for role in cleaned):
        raise IncompleteSetup("Roster contains a blank role name")
    if any(len(role) > MAX_ROLE_LENGTH for role in cleaned):
        raise IncompleteSetup(f"Role names must be at most {MAX_ROLE_LENGTH} characters")

    seen: set[str] = set()
    for role in cleaned:
        key = normalize_name(role)
        if key in seen:
            raise IncompleteSetup(f"Duplicate role on roster: {role}")
        seen.add(key)
    return cleaned


def validate_choice_options(options: list[str]) -> list[str]:
    """Normalise the choice alphabet (upper-case, unique, non-empty)"""
    cleaned: list[str] = []
    for option in options:
        label = option.strip().upper()
        if label and label not in cleaned:
            cleaned.append(label)
    if not cleaned:
        raise IncompleteSetup("Choice alphabet is empty")
    return cleaned
