# SPDX-License-Identifier: GPL-3.0-or-later

import json
import os
import sys
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from gamebook.persistence import InMemorySaveStore
from web_service import create_app

FIXTURE_DIR = os.path.join(os.path.dirname(__file__), "fixtures", "content")


class FixedRandom:
    def __init__(self, value):
        self.value = value

    def randint(self, a, b):
        return self.value


class WebServiceTest(unittest.TestCase):
    def setUp(self):
        self.app = create_app(FIXTURE_DIR, rng=FixedRandom(1), store=InMemorySaveStore())
        self.client = self.app.test_client()

    def state(self):
        resp = self.client.get("/state")
        self.assertEqual(resp.status_code, 200)
        return json.loads(resp.data)

    def test_main_page_shows_entry_and_choices(self):
        resp = self.client.get("/")
        html = resp.data.decode()
        self.assertEqual(resp.status_code, 200)
        self.assertIn("You are in a dark room...", html)
        self.assertIn("action='/choose/1'", html)
        self.assertIn("Turn on the light", html)
        self.assertIn("Health: 60", html)

    def test_choose_navigates(self):
        resp = self.client.post("/choose/1")
        self.assertEqual(resp.status_code, 302)
        payload = self.state()
        self.assertEqual(payload["session"]["currentEntry"], "2")
        self.assertEqual(payload["description"], "The light reveals a desk with a strange artifact on it.")
        self.assertEqual(payload["choices"], ["Take the artifact", "Go back"])

    def test_out_of_range_choice_is_ignored(self):
        self.client.post("/choose/9")
        self.assertEqual(self.state()["session"]["currentEntry"], "1")

    def test_death_requires_allocation(self):
        self.client.post("/death")
        payload = self.state()
        self.assertEqual(payload["investigator"], "Ernest Holt")
        self.assertTrue(payload["allocationPending"])
        self.assertIn("/allocate", self.client.get("/").data.decode())

        self.client.post("/choose/1")
        self.assertEqual(self.state()["session"]["currentEntry"], "36")

        form = self.client.get("/allocate").data.decode()
        self.assertIn("Allocate 150 skill points", form)
        self.assertIn("name='skill:Spot Hidden'", form)

        resp = self.client.post("/allocate", data={"skill:Spot Hidden": "200"})
        self.assertEqual(resp.status_code, 400)
        self.assertTrue(self.state()["allocationPending"])

        resp = self.client.post(
            "/allocate",
            data={"skill:Spot Hidden": "40", "new_skill": "Occult", "new_points": "60"},
        )
        self.assertEqual(resp.status_code, 302)
        payload = self.state()
        self.assertFalse(payload["allocationPending"])
        self.assertEqual(payload["session"]["skills"], {"Spot Hidden": 75, "Occult": 60})

        self.client.post("/choose/1")
        self.assertEqual(self.state()["session"]["currentEntry"], "1")

    def test_allocate_without_pending_redirects(self):
        resp = self.client.get("/allocate")
        self.assertEqual(resp.status_code, 302)

    def test_game_over_and_restart(self):
        for _ in range(4):
            if self.state()["allocationPending"]:
                self.client.post("/allocate", data={})
            self.client.post("/death")
        payload = self.state()
        self.assertEqual(payload["state"], "game_over")
        self.assertIsNone(payload["session"])
        self.assertIn("Game over", self.client.get("/").data.decode())

        self.client.post("/restart")
        payload = self.state()
        self.assertEqual(payload["state"], "active")
        self.assertEqual(payload["investigator"], "Professor Grunewald")

    def test_save_and_load(self):
        self.client.post("/choose/1")
        self.client.post("/save")
        self.client.post("/restart")
        self.assertEqual(self.state()["session"]["currentEntry"], "1")
        self.client.post("/load")
        payload = self.state()
        self.assertEqual(payload["session"]["currentEntry"], "2")
        self.assertEqual(payload["description"], "The light reveals a desk with a strange artifact on it.")

    def test_notifications_are_shown_once(self):
        self.client.post("/choose/1")
        self.client.post("/choose/1")
        html = self.client.get("/").data.decode()
        self.assertIn("Health increased by 40", html)
        self.assertNotIn("Health increased by 40", self.client.get("/").data.decode())


class UnavailableServiceTest(unittest.TestCase):
    def test_missing_content_returns_503(self):
        missing = os.path.join(os.path.dirname(__file__), "fixtures", "does-not-exist")
        with patch("web_service.logger") as mock_logger:
            app = create_app(missing, store=InMemorySaveStore())
        mock_logger.error.assert_called_once()
        client = app.test_client()
        self.assertEqual(client.get("/").status_code, 503)
        self.assertEqual(client.post("/choose/1").status_code, 503)
        resp = client.get("/state")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(json.loads(resp.data)["state"], "unavailable")


if __name__ == "__main__":
    unittest.main()
