import pytest

from grade_levels import GRADE_LEVELS, GradeLevelRegistry, sort_grades


def test_fixed_order_with_unknown_last():
    assert sort_grades(["10", "K", "2", "Unknown"]) == ["K", "2", "10", "Unknown"]


def test_unknown_tokens_keep_encounter_order():
    assert sort_grades(["zeta", "3", "alpha", "K"]) == ["K", "3", "zeta", "alpha"]


@pytest.mark.parametrize(
    "token, position",
    [("K", 0), ("1", 1), ("12", 12), ("Grade 3", 3), (" 9 ", 9), ("Unknown", None), ("k", None), ("", None)],
)
def test_position(token, position):
    assert GRADE_LEVELS.position(token) == position


def test_custom_order_table():
    registry = GradeLevelRegistry({"K": 5, "1": 0})
    assert registry.sort(["K", "2", "1"]) == ["1", "K", "2"]
    assert registry.known_tokens() == ("1", "K")


def test_empty_table_rejected():
    with pytest.raises(ValueError):
        GradeLevelRegistry({})
