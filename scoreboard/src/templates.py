from __future__ import annotations

import time
from typing import Any, Callable

from scoreboard.src.migration import migrate_template
from scoreboard.src.models import ScoringRule, generate_id

_COOP_RULES = ("COOP", "COOP_NO_SCORE")


def create_virtual_template(
    template_id: str,
    name: str,
    bgg_id: str | None = None,
    timestamp: int | None = None,
    player_count: int = 0,
    scoring_rule: ScoringRule = "HIGHEST_WINS",
) -> dict[str, Any]:
    """
    Stand-in template for a session whose template is missing, or for simple
    mode. No columns: players only have a manually entered total.
    """
    ts = int(time.time() * 1000) if timestamp is None else timestamp
    return {
        "id": template_id,
        "name": name,
        "bggId": bgg_id or "",
        "columns": [],
        "createdAt": ts,
        "updatedAt": ts,
        "lastPlayerCount": player_count,
        "defaultScoringRule": scoring_rule,
        "hasImage": False,
        "description": "Virtual Template (Original Missing)",
    }


def is_disposable_template(template: dict[str, Any]) -> bool:
    """True for an unconfigured quick-start board: no columns, image, colors or pin."""
    if template.get("columns"):
        return False
    if template.get("imageId") or template.get("cloudImageId") or template.get("hasImage"):
        return False
    if template.get("supportedColors"):
        return False
    if template.get("isPinned"):
        return False
    return True


def calculate_winners(players: list[dict[str, Any]], rule: ScoringRule = "HIGHEST_WINS") -> list[str]:
    if rule in _COOP_RULES:
        if any(p.get("isForceLost") for p in players):
            return []
        return [p["id"] for p in players]

    valid = [p for p in players if not p.get("isForceLost")]
    if not valid:
        return []

    totals = [p.get("totalScore") or 0 for p in valid]
    target = min(totals) if rule == "LOWEST_WINS" else max(totals)
    candidates = [p for p in valid if (p.get("totalScore") or 0) == target]

    if any(p.get("tieBreaker") for p in candidates):
        candidates = [p for p in candidates if p.get("tieBreaker")]
    return [p["id"] for p in candidates]


def prepare_template_for_save(
    template: dict[str, Any],
    is_builtin: Callable[[str], bool],
) -> dict[str, Any]:
    """Migrate a template; built-in templates are forked under a fresh id."""
    migrated = migrate_template(template)
    if is_builtin(migrated["id"]):
        return {**migrated, "id": generate_id(), "sourceTemplateId": migrated["id"]}
    return migrated
