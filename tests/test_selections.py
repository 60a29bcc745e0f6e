"""
Airlock - Selection State Tests
===============================
"""

import pytest

from airlock.onboarding.selections import SelectionState


class TestSelectionState:
    """Tests for get/set/clear and completeness."""

    def test_default_snapshot(self, selections):
        """Unknown members get every category unset."""
        assert selections.get(1) == {"pronoun": None, "continent": None, "age": None, "gaming": None}
        assert len(selections) == 0

    def test_set_merges(self, selections):
        """Each set keeps previously stored categories."""
        selections.set(1, "pronoun", {"key": "hehim"})
        snapshot = selections.set(1, "age", {"key": "age_25_plus"})

        assert snapshot["pronoun"] == {"key": "hehim"}
        assert snapshot["age"] == {"key": "age_25_plus"}
        assert snapshot["continent"] is None

    def test_set_overwrites_same_category(self, selections):
        """Choosing again replaces the earlier answer."""
        selections.set(1, "gaming", "gamer")
        selections.set(1, "gaming", "grass")
        assert selections.get(1)["gaming"] == "grass"

    def test_get_returns_copy(self, selections):
        """Mutating a returned snapshot does not change the store."""
        selections.set(1, "pronoun", "sheher")
        snapshot = selections.get(1)
        snapshot["pronoun"] = "changed"
        assert selections.get(1)["pronoun"] == "sheher"

    def test_unknown_category_rejected(self, selections):
        """Keys outside the category list raise ValueError."""
        with pytest.raises(ValueError):
            selections.set(1, "favourite_colour", "blue")
        assert len(selections) == 0

    def test_members_are_independent(self, selections):
        """One member's answers never show up for another."""
        selections.set(1, "pronoun", "hehim")
        assert selections.get(2)["pronoun"] is None

    def test_clear(self, selections):
        """Clearing returns the member to defaults; clearing again is fine."""
        selections.set(1, "pronoun", "hehim")
        selections.clear(1)
        selections.clear(1)
        assert selections.get(1)["pronoun"] is None
        assert len(selections) == 0

    def test_completeness(self, selections):
        """A snapshot is complete only when every category is set."""
        for category in ("pronoun", "continent", "age"):
            selections.set(1, category, "x")
        snapshot = selections.get(1)
        assert selections.missing_categories(snapshot) == ["gaming"]
        assert selections.is_complete(snapshot) is False

        assert selections.is_complete(selections.set(1, "gaming", "x")) is True

    def test_custom_categories(self):
        """Category keys come from the constructor."""
        state = SelectionState(["colour"])
        assert state.get(1) == {"colour": None}
        state.set(1, "colour", "red")
        with pytest.raises(ValueError):
            state.set(1, "pronoun", "hehim")
