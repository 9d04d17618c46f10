import os
import sys
import unittest
from datetime import datetime

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from gamebook.effects import (
    Combat,
    DayAdvance,
    DirectEffects,
    EffectApplicator,
    EndGame,
    HealthSet,
    HourSet,
    InventoryGrant,
    Opponent,
    OutcomeTable,
    SanitySet,
    SkillCheckBranch,
    TimeAdvance,
    parse_effects,
)
from gamebook.errors import ContentError
from gamebook.session import GameSession


def _session(**overrides) -> GameSession:
    values = dict(
        character="Professor Grunewald",
        current_entry="1",
        current_date=datetime(1931, 9, 1, 8, 0),
    )
    values.update(overrides)
    return GameSession(**values)


class ParseEffectsTest(unittest.TestCase):
    def test_direct_effects_keep_fixed_order(self):
        bundle = parse_effects(
            {"time": 2, "inventory": ["Lantern"], "sanity": 40, "health": 100}
        )
        self.assertIsInstance(bundle, DirectEffects)
        self.assertEqual(
            bundle.effects,
            (
                HealthSet(100),
                SanitySet(40),
                InventoryGrant(("Lantern",)),
                TimeAdvance(2.0),
            ),
        )

    def test_empty_effects(self):
        self.assertEqual(parse_effects(None), DirectEffects())
        self.assertFalse(parse_effects({}))

    def test_check_excludes_direct_effects(self):
        with self.assertLogs("gamebook.effects", level="WARNING") as logs:
            effect = parse_effects(
                {
                    "check": {"skill": "Climb", "success": "5", "failure": "6"},
                    "health": 10,
                    "inventory": ["Rope"],
                }
            )
        self.assertEqual(effect, SkillCheckBranch("Climb", "5", "6"))
        self.assertIn("health", logs.output[0])
        self.assertIn("inventory", logs.output[0])

    def test_check_options(self):
        effect = parse_effects(
            {
                "check": {
                    "skill": "Dodge",
                    "success": "5",
                    "failure": "6",
                    "difficulty": "hard",
                    "tries": "1D3",
                    "opposedValue": 45,
                    "bonus": 10,
                },
                "dailyLimit": 1,
            }
        )
        self.assertEqual(
            effect, SkillCheckBranch("Dodge", "5", "6", "hard", "1D3", 45, 10, 1)
        )

    def test_check_requires_branches(self):
        with self.assertRaises(ContentError):
            parse_effects({"check": {"skill": "Climb", "success": "5"}})

    def test_outcome_table(self):
        effect = parse_effects(
            {
                "diceRoll": "1D6",
                "outcomes": {
                    "1-3": {"description": "Hit", "damage": "1D4", "nextEntry": "8"},
                    "4-6": {"description": "Miss"},
                },
            }
        )
        self.assertIsInstance(effect, OutcomeTable)
        self.assertEqual(effect.dice, "1D6")
        outcomes = effect.as_mapping()
        self.assertEqual(outcomes["1-3"].next_entry, "8")
        self.assertIsNone(outcomes["4-6"].next_entry)

    def test_end_game(self):
        self.assertEqual(parse_effects({"endGame": True}), EndGame())

    def test_day_advance_default_hour(self):
        self.assertEqual(parse_effects({"dayAdvance": 2}).effects, (DayAdvance(2, 6),))

    def test_invalid_values_raise(self):
        with self.assertRaises(ContentError):
            parse_effects({"health": "plenty"})
        with self.assertRaises(ContentError):
            parse_effects({"inventory": 7})

    def test_hours_must_fall_within_the_day(self):
        self.assertEqual(parse_effects({"setHour": 0}).effects, (HourSet(0),))
        self.assertEqual(parse_effects({"setHour": 23}).effects, (HourSet(23),))
        for raw in (
            {"setHour": 25},
            {"setHour": -1},
            {"dayAdvance": 1, "defaultHour": 24},
        ):
            with self.assertRaises(ContentError):
                parse_effects(raw)

    def test_combat_is_a_control_path(self):
        with self.assertLogs("gamebook.effects", level="WARNING") as logs:
            effect = parse_effects(
                {
                    "combat": {
                        "type": "Handgun",
                        "weaponDamage": "1D10",
                        "opponent": {"name": "Ghoul", "health": 12, "attackChance": 45},
                        "win": "15",
                        "lose": "16",
                    },
                    "time": 1,
                }
            )
        self.assertIn("time", logs.output[0])
        self.assertEqual(
            effect,
            Combat(
                opponent=Opponent("Ghoul", 12, 45, "1D3", 12, 0),
                win="15",
                lose="16",
                action="handgun",
                weapon_damage="1D10",
            ),
        )

    def test_combat_needs_opponent_and_outcomes(self):
        opponent = {"name": "Ghoul", "health": 12}
        for raw in (
            {"opponent": opponent, "win": "15"},
            {"opponent": {"name": "Ghoul"}, "win": "15", "lose": "16"},
            {"opponent": opponent, "win": "15", "lose": "16", "type": "sword"},
        ):
            with self.assertRaises(ContentError):
                parse_effects({"combat": raw})

    def test_unknown_key_warns(self):
        with self.assertLogs("gamebook.effects", level="WARNING") as logs:
            parse_effects({"teleport": "R'lyeh"})
        self.assertIn("teleport", logs.output[0])


class EffectApplicatorTest(unittest.TestCase):
    def setUp(self):
        self.messages = []
        self.applicator = EffectApplicator(
            lambda channel, message: self.messages.append((channel, message))
        )

    def test_health_is_an_absolute_target(self):
        session = _session(health=50)
        self.applicator.apply(parse_effects({"health": 100}), session)
        self.assertEqual(session.health, 100)
        self.assertEqual(self.messages, [("health", "Health increased by 50")])

    def test_sanity_target_below_current(self):
        session = _session(sanity=70)
        self.applicator.apply(parse_effects({"sanity": 60}), session)
        self.assertEqual(session.sanity, 60)
        self.assertEqual(self.messages, [("sanity", "Sanity decreased by 10")])

    def test_no_clamping(self):
        session = _session(health=10)
        self.applicator.change_health(session, -25)
        self.assertEqual(session.health, -15)

    def test_inventory_is_deduplicated(self):
        session = _session(inventory=["Magical Artifact"])
        self.applicator.apply(
            parse_effects({"inventory": ["Magical Artifact", "Lantern"]}), session
        )
        self.assertEqual(session.inventory, ["Magical Artifact", "Lantern"])

    def test_time_crosses_midnight(self):
        session = _session(current_date=datetime(1931, 9, 1, 22, 0))
        self.applicator.apply(parse_effects({"time": 5}), session)
        self.assertEqual(session.current_date, datetime(1931, 9, 2, 3, 0))

    def test_supplementary_effects(self):
        session = _session(inventory=["Letter"], skills={"Occult": 20})
        self.applicator.apply(
            parse_effects(
                {
                    "removeItem": "Letter",
                    "skills": {"Occult": 5, "Climb": 10},
                    "setLocale": "Kingsport",
                    "message": "The fog lifts.",
                }
            ),
            session,
        )
        self.assertEqual(session.inventory, [])
        self.assertEqual(session.skills, {"Occult": 25, "Climb": 10})
        self.assertEqual(session.current_locale, "Kingsport")
        self.assertEqual(session.pending_message, "The fog lifts.")

    def test_meetings_are_scheduled_and_kept(self):
        session = _session(current_date=datetime(1931, 9, 1, 18, 30))
        self.applicator.apply(
            parse_effects(
                {
                    "scheduleMeeting": {
                        "entry": "18",
                        "location": "River Docks",
                        "time": 20,
                        "meetingWith": "Captain Morrow",
                    }
                }
            ),
            session,
        )
        self.assertEqual(
            session.scheduled_meetings,
            [
                {
                    "location": "River Docks",
                    "entry": "18",
                    "time": 20,
                    "meetingWith": "Captain Morrow",
                }
            ],
        )
        self.applicator.apply(parse_effects({"meetingCompleted": "18"}), session)
        self.assertEqual(session.scheduled_meetings, [])
        self.assertEqual(session.current_date, datetime(1931, 9, 1, 20, 0))

    def test_completing_unknown_meeting_warns(self):
        session = _session()
        with self.assertLogs("gamebook.effects", level="WARNING"):
            self.applicator.apply(parse_effects({"meetingCompleted": {"entry": "99"}}), session)
        self.assertEqual(session.current_date, datetime(1931, 9, 1, 8, 0))

    def test_meeting_time_must_be_an_hour(self):
        with self.assertRaises(ContentError):
            parse_effects({"scheduleMeeting": {"entry": "18", "time": 30}})

    def test_boarding_and_leaving_ship(self):
        session = _session(current_date=datetime(1931, 9, 1, 21, 0))
        self.applicator.apply(parse_effects({"onShip": True}), session)
        self.assertTrue(session.on_ship)
        self.assertEqual(session.ship_journey_start_date, datetime(1931, 9, 1, 21, 0))
        self.assertEqual(session.journey_day(), 0)
        session.advance_clock(4)
        self.assertEqual(session.journey_day(), 1)
        self.applicator.apply(parse_effects({"onShip": False}), session)
        self.assertFalse(session.on_ship)
        self.assertIsNone(session.journey_day())

    def test_day_advance_and_set_hour(self):
        session = _session(current_date=datetime(1931, 9, 1, 15, 30))
        self.applicator.apply(parse_effects({"dayAdvance": 1, "defaultHour": 7}), session)
        self.assertEqual(session.current_date, datetime(1931, 9, 2, 7, 0))
        self.applicator.apply(parse_effects({"setHour": 6}), session)
        self.assertEqual(session.current_date, datetime(1931, 9, 3, 6, 0))
        self.applicator.apply(parse_effects({"setHour": 20}), session)
        self.assertEqual(session.current_date, datetime(1931, 9, 3, 20, 0))


if __name__ == "__main__":
    unittest.main()
