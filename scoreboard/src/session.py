"""Session orchestration: migrate stored data, recompute totals, pick winners.

Entrypoint for scoring a saved session from the command line:
    python -m scoreboard.src.session template.yml session.json
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Final

from scoreboard.src.loader import LoaderError, load_document
from scoreboard.src.migration import migrate_scores, migrate_template
from scoreboard.src.models import ScoringContext, score_parts
from scoreboard.src.scoring import calculate_column_score, calculate_player_total, get_auto_column_error
from scoreboard.src.templates import calculate_winners, create_virtual_template

logger = logging.getLogger(__name__)

SCORING_RULES: Final[tuple[str, ...]] = (
    "HIGHEST_WINS",
    "LOWEST_WINS",
    "COOP",
    "COMPETITIVE_NO_SCORE",
    "COOP_NO_SCORE",
)


def recalculate_totals(players: list[dict[str, Any]], template: dict[str, Any]) -> list[dict[str, Any]]:
    """New player dicts with `totalScore` recomputed; the input list is left untouched."""
    return [
        {**p, "totalScore": calculate_player_total(p, template, players)}
        for p in players
    ]


def migrate_session(session: dict[str, Any], template: dict[str, Any]) -> dict[str, Any]:
    template = migrate_template(template)
    players = [
        {**p, "scores": migrate_scores(p.get("scores") or {}, template)}
        for p in session.get("players") or []
        if isinstance(p, dict)
    ]
    return {**session, "players": recalculate_totals(players, template)}


def _column_scores(player: dict[str, Any], template: dict[str, Any], players: list[dict[str, Any]]) -> dict[str, float]:
    columns = template.get("columns") or []
    scores = player.get("scores") or {}
    context = ScoringContext(all_columns=columns, player_scores=scores, all_players=players)
    return {
        col["id"]: calculate_column_score(col, score_parts(scores.get(col["id"])), context)
        for col in columns
    }


def score_session(
    template: dict[str, Any] | None,
    session: dict[str, Any],
    rule: str | None = None,
) -> dict[str, Any]:
    """
    Score a stored session against its template.

    A missing template is replaced by a column-less virtual one, so players
    keep only their manual bonus as total.
    """
    if not template:
        logger.warning("Template %r missing, scoring with a virtual template", session.get("templateId"))
        template = create_virtual_template(str(session.get("templateId") or ""), "Unknown")
    template = migrate_template(template)
    migrated = migrate_session(session, template)
    players = migrated["players"]

    errors: dict[str, str] = {}
    diagnostic_ctx = ScoringContext(all_columns=template.get("columns") or [], all_players=players)
    for col in template.get("columns") or []:
        code = get_auto_column_error(col, diagnostic_ctx)
        if code:
            errors[col["id"]] = code

    scoring_rule = rule or session.get("scoringRule") or template.get("defaultScoringRule") or "HIGHEST_WINS"
    return {
        "templateId": template.get("id"),
        "scoringRule": scoring_rule,
        "players": [
            {
                "id": p.get("id"),
                "name": p.get("name"),
                "totalScore": p["totalScore"],
                "columns": _column_scores(p, template, players),
            }
            for p in players
        ],
        "winnerIds": calculate_winners(players, scoring_rule),
        "errors": errors,
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Score a saved board-game session against its template.")
    parser.add_argument("template", help="Template file (.json or .yml)")
    parser.add_argument("session", help="Session file (.json or .yml)")
    parser.add_argument("--rule", choices=SCORING_RULES, default=None, help="Override the session's scoring rule.")
    parser.add_argument("--indent", type=int, default=2)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.getenv("SCOREBOARD_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        template = load_document(args.template)
        session = load_document(args.session)
    except LoaderError as e:
        logger.error("%s", e)
        return 2

    summary = score_session(template, session, args.rule)
    json.dump(summary, sys.stdout, ensure_ascii=False, indent=args.indent)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
