"""Flask web service exposing the gamebook over HTTP."""

# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import json
import logging
import os
import threading
from html import escape
from pathlib import Path
from typing import Any, Dict, List

from flask import Flask, Response, redirect, request
from dotenv import load_dotenv

from gamebook.config import GameConfig, load_game_config
from gamebook.dice import RandomSource
from gamebook.errors import ContentLoadFailure, SkillAllocationError
from gamebook.game import Game, MemorySink
from gamebook.lifecycle import LifecycleState
from gamebook.persistence import DEFAULT_SLOT, InMemorySaveStore, SaveStore, SQLiteSaveStore


load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_DIR = Path(__file__).resolve().parent / "data"
SKILL_FIELD_PREFIX = "skill:"

current_config: GameConfig = load_game_config()

PAGE_STYLE = (
    "<style>"
    "body{font-family:Georgia,serif;max-width:46em;margin:2em auto;color:#222}"
    ".heading{white-space:pre-line}"
    ".choices form{margin:.3em 0}"
    ".stats{border-top:1px solid #999;margin-top:1.5em;padding-top:.5em}"
    ".notice{background:#f4ecd8;padding:.3em .6em;margin:.2em 0}"
    ".controls form{display:inline-block;margin-right:.5em}"
    "</style>"
)


def _default_store() -> SaveStore:
    """Use SQLite when ``GAMEBOOK_SAVE_PATH`` is set, memory otherwise."""

    path = os.environ.get("GAMEBOOK_SAVE_PATH")
    if path:
        return SQLiteSaveStore(path)
    return InMemorySaveStore()


def _paragraphs(text: str) -> str:
    blocks = [block for block in text.split("\n\n") if block.strip()]
    return "".join(
        "<p>" + escape(block).replace("\n", "<br>") + "</p>" for block in blocks
    )


def _render_page(content: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset='utf-8'>"
        "<title>Gamebook</title>"
        + PAGE_STYLE
        + "</head><body>"
        + content
        + "</body></html>"
    )


def _post_button(action: str, label: str) -> str:
    return (
        f"<form method='post' action='{action}'>"
        f"<button type='submit'>{escape(label)}</button>"
        "</form>"
    )


def create_app(
    content_dir: str | os.PathLike[str] | None = None,
    *,
    rng: RandomSource | None = None,
    store: SaveStore | None = None,
) -> Flask:
    """Return a configured Flask application ready to serve the game."""

    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    app = Flask(__name__)
    config_in_use = current_config
    directory = content_dir or os.environ.get("GAMEBOOK_CONTENT_DIR") or DEFAULT_CONTENT_DIR
    sink = MemorySink()
    state_lock = threading.Lock()
    game: Game | None = None
    load_error = ""
    try:
        game = Game.from_directory(
            directory,
            sink,
            config_in_use,
            rng=rng,
            store=store if store is not None else _default_store(),
        )
    except ContentLoadFailure as exc:
        logger.error("Game content unavailable: %s", exc)
        load_error = str(exc)
    else:
        game.start()

    def _unavailable() -> Response:
        body = (
            "<h1>Game unavailable</h1>"
            + f"<p>Could not load game content: {escape(load_error)}</p>"
        )
        return Response(_render_page(body), status=503)

    def _notices() -> str:
        return "".join(
            f"<div class='notice {escape(channel)}'>{escape(message)}</div>"
            for channel, message, _ in sink.drain_notifications()
        )

    def _stats_html() -> str:
        rows = [
            f"<li>{escape(str(name))}: {escape(str(value))}</li>"
            for name, value in sink.stats.items()
        ]
        if sink.date:
            rows.append(f"<li>Date: {escape(sink.date)}</li>")
        return "<ul class='stats'>" + "".join(rows) + "</ul>"

    def _controls() -> str:
        return (
            "<div class='controls'>"
            + _post_button("/save", "Save")
            + _post_button("/load", "Load")
            + _post_button("/death", "Investigator died")
            + _post_button("/restart", "Restart")
            + "</div>"
        )

    @app.route("/", methods=["GET"])
    def main_page() -> Response | str:
        if game is None:
            return _unavailable()
        with state_lock:
            notices = _notices()
            if game.state is LifecycleState.GAME_OVER:
                body = (
                    "<h1>Game over</h1>"
                    + notices
                    + "<p>All investigators are dead.</p>"
                    + _post_button("/restart", "Start a new game")
                )
                return _render_page(body)
            choices = "".join(
                _post_button(f"/choose/{idx}", option.label)
                for idx, option in enumerate(sink.choices, 1)
            )
            allocation = ""
            if game.allocation_pending:
                allocation = (
                    "<p><a href='/allocate'>Allocate skill points</a> to continue.</p>"
                )
            body = (
                notices
                + f"<h2 class='heading'>{escape(sink.heading)}</h2>"
                + _paragraphs(sink.description)
                + allocation
                + f"<div class='choices'>{choices}</div>"
                + _stats_html()
                + _controls()
            )
        return _render_page(body)

    @app.route("/choose/<int:number>", methods=["POST"])
    def choose(number: int) -> Response:
        if game is None:
            return _unavailable()
        with state_lock:
            game.choose(number - 1)
        return redirect("/")

    @app.route("/death", methods=["POST"])
    def death() -> Response:
        if game is None:
            return _unavailable()
        with state_lock:
            game.signal_death()
        return redirect("/")

    @app.route("/restart", methods=["POST"])
    def restart() -> Response:
        if game is None:
            return _unavailable()
        logger.info("Restarting game")
        with state_lock:
            game.restart()
        return redirect("/")

    @app.route("/save", methods=["POST"])
    def save() -> Response:
        if game is None:
            return _unavailable()
        with state_lock:
            game.save(request.form.get("slot") or DEFAULT_SLOT)
        return redirect("/")

    @app.route("/load", methods=["POST"])
    def load() -> Response:
        if game is None:
            return _unavailable()
        with state_lock:
            game.load(request.form.get("slot") or DEFAULT_SLOT)
        return redirect("/")

    def _allocation_form(error: str = "") -> str:
        session = game.session
        points = session.unallocated_points if session else 0
        fields: List[str] = []
        for skill in sorted(session.skills if session else {}):
            fields.append(
                f"<label>{escape(skill)} "
                f"<input type='number' min='0' name='{escape(SKILL_FIELD_PREFIX + skill)}' value='0'>"
                "</label><br>"
            )
        fields.append(
            "<label>New skill <input type='text' name='new_skill'></label> "
            "<input type='number' min='0' name='new_points' value='0'><br>"
        )
        error_html = f"<p class='notice'>{escape(error)}</p>" if error else ""
        return _render_page(
            f"<h1>Allocate {points} skill points</h1>"
            + error_html
            + "<form method='post' action='/allocate'>"
            + "".join(fields)
            + "<button type='submit'>Confirm</button></form>"
        )

    def _read_allocation() -> Dict[str, Any]:
        allocation: Dict[str, Any] = {}
        for key, value in request.form.items():
            if key.startswith(SKILL_FIELD_PREFIX):
                allocation[key[len(SKILL_FIELD_PREFIX):]] = value or 0
        new_skill = (request.form.get("new_skill") or "").strip()
        if new_skill:
            allocation[new_skill] = request.form.get("new_points") or 0
        return allocation

    @app.route("/allocate", methods=["GET", "POST"])
    def allocate() -> Response | str:
        if game is None:
            return _unavailable()
        with state_lock:
            if not game.allocation_pending:
                return redirect("/")
            if request.method == "GET":
                return _allocation_form()
            try:
                game.complete_allocation(_read_allocation())
            except SkillAllocationError as exc:
                logger.warning("Rejected skill allocation: %s", exc)
                return Response(_allocation_form(str(exc)), status=400)
        return redirect("/")

    @app.route("/state", methods=["GET"])
    def state_snapshot() -> Response:
        if game is None:
            payload: Dict[str, Any] = {"state": "unavailable", "error": load_error}
            return Response(json.dumps(payload), status=503, mimetype="application/json")
        with state_lock:
            payload = game.snapshot()
            payload.update(
                {
                    "heading": sink.heading,
                    "description": sink.description,
                    "date": sink.date,
                    "stats": dict(sink.stats),
                }
            )
        return Response(json.dumps(payload, default=str), mimetype="application/json")

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 7860)))
