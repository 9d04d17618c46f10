"""Common constants used throughout the gamebook package."""

# SPDX-License-Identifier: GPL-3.0-or-later

INVESTIGATOR_ORDER = (
    ("Professor Grunewald", "13"),
    ("Ernest Holt", "36"),
    ("Lydia Lau", "37"),
    ("Devon Wilson", "554"),
)

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

LOCATION_SUFFIX = " Location"
PREVIOUS_ENTRY = "previousEntry"
END_MARKER = "THE END"

DIFFICULTY_MODIFIERS = {"normal": 1.0, "hard": 0.5, "extreme": 0.2}

CUSTOM_ROLL_SKILL = "CustomRoll"
CUSTOM_ROLL_BASE_BONUS = 20
CUSTOM_ROLL_HOURLY_BONUS = 5
CUSTOM_ROLL_ITEM_BONUS = 20

__all__ = [
    "INVESTIGATOR_ORDER",
    "WEEKDAYS",
    "LOCATION_SUFFIX",
    "PREVIOUS_ENTRY",
    "END_MARKER",
    "DIFFICULTY_MODIFIERS",
    "CUSTOM_ROLL_SKILL",
    "CUSTOM_ROLL_BASE_BONUS",
    "CUSTOM_ROLL_HOURLY_BONUS",
    "CUSTOM_ROLL_ITEM_BONUS",
]
