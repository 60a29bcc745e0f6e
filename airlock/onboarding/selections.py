"""
Airlock - Selection State
=========================

Holds each member's partially completed onboarding answers between the
select menus and the Finish button.
"""

from typing import Any, Dict, Iterable, List

from airlock.core.constants import SELECTION_CATEGORIES
from airlock.onboarding.models import SelectionSnapshot


class SelectionState:
    """
    Per-member selection snapshots with partial-merge updates.

    No expiry: entries are cleared on verification or when the member
    leaves.
    """

    def __init__(self, categories: Iterable[str] = SELECTION_CATEGORIES) -> None:
        self.categories = tuple(categories)
        self._selections: Dict[int, SelectionSnapshot] = {}

    def __len__(self) -> int:
        return len(self._selections)

    def default_snapshot(self) -> SelectionSnapshot:
        return {category: None for category in self.categories}

    def get(self, subject_id: int) -> SelectionSnapshot:
        """Return a copy of the member's snapshot, or the default one."""
        stored = self._selections.get(subject_id)
        if stored is None:
            return self.default_snapshot()
        return dict(stored)

    def set(self, subject_id: int, category: str, value: Any) -> SelectionSnapshot:
        """
        Merge one category into the member's snapshot.

        Raises:
            ValueError: If the category is not one of the configured keys.
        """
        if category not in self.categories:
            raise ValueError(f"Unknown selection category: {category!r}")

        updated = self.get(subject_id)
        updated[category] = value
        self._selections[subject_id] = updated
        return dict(updated)

    def clear(self, subject_id: int) -> None:
        self._selections.pop(subject_id, None)

    def missing_categories(self, snapshot: SelectionSnapshot) -> List[str]:
        return [c for c in self.categories if not snapshot.get(c)]

    def is_complete(self, snapshot: SelectionSnapshot) -> bool:
        return not self.missing_categories(snapshot)


__all__ = ["SelectionState"]
