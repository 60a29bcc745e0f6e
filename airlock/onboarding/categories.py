"""
Airlock - Onboarding Categories
===============================

The role categories a new member picks from before verifying.

DESIGN:
    Each category maps one select menu to one selection key. The built-in
    table matches the live server; ONBOARDING_CATEGORIES_FILE can point at
    a JSON file with the same shape to replace it:

        [
          {"name": "Pronouns", "key": "pronoun", "description": "...",
           "emoji": "🏳️‍🌈",
           "roles": [{"id": 123, "name": "He/Him", "key": "hehim", "emoji": "👨"}]}
        ]
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from airlock.core.logger import logger


# One select row per category plus the Finish button row
MAX_PANEL_CATEGORIES = 4


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class OnboardingRole:
    """One selectable option inside a category."""

    id: int
    name: str
    key: str
    emoji: Optional[str] = None

    def as_selection(self) -> Dict[str, Any]:
        """Value stored in SelectionState for this option."""
        return {"key": self.key, "label": self.name, "role_id": self.id}


@dataclass(frozen=True)
class OnboardingCategory:
    """
    A required single-choice category.

    Attributes:
        name: Display name ("Pronouns").
        key: Selection key the choice is stored under ("pronoun").
        roles: Options, each backed by a guild role.
    """

    name: str
    key: str
    description: str
    roles: Tuple[OnboardingRole, ...]
    emoji: Optional[str] = None

    @property
    def role_ids(self) -> List[int]:
        return [role.id for role in self.roles]

    def find_role(self, option_key: str) -> Optional[OnboardingRole]:
        for role in self.roles:
            if role.key == option_key:
                return role
        return None

    def sibling_role_ids(self, role_id: int) -> List[int]:
        return [rid for rid in self.role_ids if rid != role_id]

    def selection_from_roles(self, member_role_ids: Iterable[int]) -> Optional[Dict[str, Any]]:
        """First option whose role the member already holds, as a selection value."""
        held = set(member_role_ids)
        for role in self.roles:
            if role.id in held:
                return role.as_selection()
        return None


# =============================================================================
# Built-in Table
# =============================================================================

DEFAULT_CATEGORIES: Tuple[OnboardingCategory, ...] = (
    OnboardingCategory(
        name="Pronouns",
        key="pronoun",
        description="Select your pronouns (Req.)",
        emoji="🏳️‍🌈",
        roles=(
            OnboardingRole(1346026355749425162, "He/Him", "hehim", "👨"),
            OnboardingRole(1346026308253122591, "She/Her", "sheher", "👩"),
            OnboardingRole(1346026355112022036, "They/Them", "theythem", "🧑"),
        ),
    ),
    OnboardingCategory(
        name="Region",
        key="continent",
        description="Select your region (Req.)",
        emoji="🌍",
        roles=(
            OnboardingRole(1346009391907737631, "North America", "na", "🌎"),
            OnboardingRole(1346008779929550891, "South America", "sa", "🌎"),
            OnboardingRole(1346007791344680980, "Europe", "eu", "🌍"),
            OnboardingRole(1346008937371275317, "Asia", "asia", "🌏"),
            OnboardingRole(1346008958178955366, "Australia", "oceania", "🦘"),
            OnboardingRole(1346009038306934836, "Africa", "africa", "🌍"),
        ),
    ),
    OnboardingCategory(
        name="Age",
        key="age",
        description="Select your age range (Req.)",
        emoji="🎂",
        roles=(
            OnboardingRole(1364164214272561203, "18-25", "age_18_25", "🔞"),
            OnboardingRole(1346238384003219577, "25+", "age_25_plus", "🔞"),
        ),
    ),
    OnboardingCategory(
        name="Gaming",
        key="gaming",
        description="Do you enjoy video gaming (Req.)",
        emoji="🎮",
        roles=(
            OnboardingRole(1363056342088290314, "Gamer", "gamer", "🎮"),
            OnboardingRole(1363056678299504710, "Non-Gamer", "grass", "🌱"),
        ),
    ),
)


# =============================================================================
# Loading
# =============================================================================

def _parse_category(raw: Dict[str, Any]) -> OnboardingCategory:
    roles = tuple(
        OnboardingRole(
            id=int(r["id"]),
            name=str(r["name"]),
            key=str(r["key"]),
            emoji=r.get("emoji"),
        )
        for r in raw["roles"]
    )
    if not roles:
        raise ValueError(f"Category {raw['name']!r} has no roles")
    if not re.fullmatch(r"\w+", str(raw["key"])):
        raise ValueError(f"Category key {raw['key']!r} must be a single word")
    return OnboardingCategory(
        name=str(raw["name"]),
        key=str(raw["key"]),
        description=str(raw.get("description") or f"Select your {raw['name'].lower()}"),
        emoji=raw.get("emoji"),
        roles=roles,
    )


def load_categories(path: Optional[str] = None) -> Tuple[OnboardingCategory, ...]:
    """
    Load the category table.

    Args:
        path: JSON file to read. None uses the built-in table.

    Raises:
        ValueError: If the file is malformed or repeats a selection key.
    """
    if not path:
        return DEFAULT_CATEGORIES

    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        categories = tuple(_parse_category(item) for item in data)
    except (OSError, KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid onboarding categories file {path}: {e}") from e

    if not categories or len(categories) > MAX_PANEL_CATEGORIES:
        raise ValueError(f"{path} must define 1-{MAX_PANEL_CATEGORIES} categories, got {len(categories)}")

    keys = [c.key for c in categories]
    if len(set(keys)) != len(keys):
        raise ValueError(f"Duplicate selection keys in {path}: {keys}")

    logger.info("Onboarding Categories Loaded", [
        ("File", path),
        ("Categories", ", ".join(c.name for c in categories)),
    ])
    return categories


def find_category(categories: Iterable[OnboardingCategory], slug: str) -> Optional[OnboardingCategory]:
    """Match a select menu slug against selection keys and category names."""
    slug = slug.strip().lower()
    for category in categories:
        if slug in (category.key.lower(), category.name.lower()):
            return category
    return None


__all__ = [
    "DEFAULT_CATEGORIES",
    "MAX_PANEL_CATEGORIES",
    "OnboardingCategory",
    "OnboardingRole",
    "find_category",
    "load_categories",
]
