import os
import random
import sys
from datetime import datetime

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from gamebook.dice import (
    MAX_DICE_COUNT,
    SkillCheckResolver,
    find_outcome_for_roll,
    make_skill_check,
    parse_dice,
    roll_damage,
    roll_dice,
)
from gamebook.errors import InvalidDiceSpec


class ScriptedRandom:
    """Random source returning a fixed sequence of draws."""

    def __init__(self, values):
        self.values = list(values)
        self.calls = []

    def randint(self, a, b):
        self.calls.append((a, b))
        return self.values.pop(0)


class FixedRandom:
    def __init__(self, value):
        self.value = value

    def randint(self, a, b):
        return self.value


SOURCES = [random.Random(1931), random.Random()]


@pytest.mark.parametrize("rng", SOURCES, ids=["seeded", "unseeded"])
@pytest.mark.parametrize("spec,count,sides", [("1D6", 1, 6), ("3D6", 3, 6), ("2D10", 2, 10)])
def test_roll_dice_string_spec_stays_in_range(rng, spec, count, sides):
    for _ in range(300):
        assert count <= roll_dice(spec, rng) <= count * sides


@pytest.mark.parametrize("rng", SOURCES, ids=["seeded", "unseeded"])
def test_roll_dice_numeric_spec_stays_in_range(rng):
    results = {roll_dice(20, rng) for _ in range(500)}
    assert min(results) >= 1
    assert max(results) <= 20


@pytest.mark.parametrize("spec", ["D6", "2X6", "", "abc", "2D", None, [1], True])
def test_roll_dice_invalid_spec_returns_zero(spec):
    assert roll_dice(spec, ScriptedRandom([])) == 0


def test_roll_dice_sums_each_draw():
    rng = ScriptedRandom([2, 5, 6])
    assert roll_dice("3D6", rng) == 13
    assert rng.calls == [(1, 6), (1, 6), (1, 6)]


def test_parse_dice_accepts_lowercase_and_numbers():
    assert parse_dice("2d8") == (2, 8)
    assert parse_dice(12) == (1, 12)
    assert parse_dice(4.0) == (1, 4)


def test_parse_dice_rejects_zero_sides():
    with pytest.raises(InvalidDiceSpec):
        parse_dice("1D0")


def test_dice_count_is_capped():
    assert parse_dice(f"{MAX_DICE_COUNT}D6") == (MAX_DICE_COUNT, 6)
    with pytest.raises(InvalidDiceSpec, match="Too many dice"):
        parse_dice("1000000000D6")
    rng = ScriptedRandom([])
    assert roll_dice("1000000000D6", rng) == 0
    assert roll_damage("1000000000D6+2", rng) == 2
    assert rng.calls == []


def test_roll_damage_expressions():
    assert roll_damage("1D6+2", ScriptedRandom([4])) == 6
    assert roll_damage("2D4 - 1", ScriptedRandom([1, 3])) == 3
    assert roll_damage(5) == 5
    assert roll_damage("lots") == 0
    assert roll_damage(None) == 0


def test_find_outcome_for_roll_matches_ranges_and_single_values():
    outcomes = {"1-3": "low", "4": "four", "5-6": "high"}
    assert find_outcome_for_roll(2, outcomes) == "low"
    assert find_outcome_for_roll(4, outcomes) == "four"
    assert find_outcome_for_roll(6, outcomes) == "high"
    assert find_outcome_for_roll(7, outcomes) is None


def test_full_skill_succeeds_for_every_draw():
    for draw in range(1, 101):
        result = make_skill_check("Climb", {"Climb": 100}, {}, rng=FixedRandom(draw))
        assert result.success, draw


@pytest.mark.parametrize("rng", SOURCES, ids=["seeded", "unseeded"])
def test_full_skill_succeeds_with_real_random(rng):
    assert all(make_skill_check("Climb", {"Climb": 100}, {}, rng=rng) for _ in range(200))


def test_threshold_is_inclusive():
    assert make_skill_check("Climb", {"Climb": 40}, {}, rng=FixedRandom(40)).success
    assert not make_skill_check("Climb", {"Climb": 40}, {}, rng=FixedRandom(41)).success


def test_skills_take_precedence_over_stats():
    result = make_skill_check("DEX", {"DEX": 20}, {"DEX": 90}, rng=FixedRandom(50))
    assert not result.success
    result = make_skill_check("DEX", {}, {"DEX": 60}, rng=FixedRandom(55))
    assert result.success


def test_sanity_always_reads_stats():
    result = make_skill_check(
        "Sanity", {"Sanity": 90}, {"sanity": 30}, rng=FixedRandom(50)
    )
    assert not result.success
    assert result.threshold == 30


def test_unknown_skill_counts_as_zero():
    assert not make_skill_check("Pilot", {}, {}, rng=FixedRandom(1)).success


@pytest.mark.parametrize(
    "difficulty,threshold",
    [("normal", 80.0), ("hard", 40.0), ("extreme", 16.0), ("legendary", 80.0)],
)
def test_difficulty_scales_threshold(difficulty, threshold):
    result = make_skill_check("Climb", {"Climb": 80}, {}, difficulty, rng=FixedRandom(1))
    assert result.threshold == pytest.approx(threshold)


def test_bonus_is_added_before_difficulty():
    result = make_skill_check(
        "Climb", {"Climb": 30}, {}, "hard", bonus=30, rng=FixedRandom(30)
    )
    assert result.threshold == pytest.approx(30.0)
    assert result.success


def test_opposed_value_must_also_be_beaten():
    assert not make_skill_check(
        "Climb", {"Climb": 90}, {}, opposed_value=30, rng=FixedRandom(40)
    ).success
    assert make_skill_check(
        "Climb", {"Climb": 90}, {}, opposed_value=30, rng=FixedRandom(25)
    ).success


def test_tries_reports_passing_attempt():
    messages = []
    rng = ScriptedRandom([3, 90, 95, 20])
    result = make_skill_check(
        "Climb",
        {"Climb": 50},
        {},
        tries="1D3",
        rng=rng,
        notify=lambda channel, message: messages.append((channel, message)),
    )
    assert result.success
    assert result.attempts == 3
    assert result.passed_on_try == 3
    assert messages == [("skillCheck", "20 Pass (passed on try 3)")]


def test_tries_reports_total_failure():
    messages = []
    rng = ScriptedRandom([2, 90, 95])
    result = make_skill_check(
        "Climb",
        {"Climb": 50},
        {},
        tries="1D3",
        rng=rng,
        notify=lambda channel, message: messages.append((channel, message)),
    )
    assert not result.success
    assert result.attempts == 2
    assert messages == [("skillCheck", "Failed 2 times.")]
    assert rng.values == []


def test_single_roll_notification():
    messages = []
    make_skill_check(
        "Climb",
        {"Climb": 50},
        {},
        rng=FixedRandom(37),
        notify=lambda channel, message: messages.append(message),
    )
    assert messages == ["37 Pass"]


def test_custom_roll_counts_hours_and_items():
    resolver = SkillCheckResolver(
        FixedRandom(95), custom_roll_items=("Lantern", "Climbing Rope", "Map of the Catacombs")
    )
    moment = datetime(1931, 9, 1, 10, 30)
    result = resolver.make_skill_check(
        "CustomRoll",
        {},
        {},
        inventory=["Lantern", "Climbing Rope", "Pocket Watch"],
        current_date=moment,
    )
    # 20 base + 7 full hours until 18:00 + two qualifying items
    assert result.threshold == 20 + 5 * 7 + 20 * 2
    assert result.success
    resolver.rng = FixedRandom(96)
    assert not resolver.custom_roll(["Lantern", "Climbing Rope"], moment).success


def test_custom_roll_after_deadline_has_no_hourly_bonus():
    resolver = SkillCheckResolver(FixedRandom(21))
    result = resolver.custom_roll([], datetime(1931, 9, 1, 19, 0))
    assert result.threshold == 20
    assert not result.success


def test_custom_roll_threshold_is_not_clamped():
    resolver = SkillCheckResolver(
        FixedRandom(100), custom_roll_items=("Lantern", "Climbing Rope", "Map of the Catacombs")
    )
    result = resolver.custom_roll(
        ["Lantern", "Climbing Rope", "Map of the Catacombs"], datetime(1931, 9, 1, 8, 0)
    )
    assert result.threshold == 20 + 5 * 10 + 20 * 3
    assert result.success
