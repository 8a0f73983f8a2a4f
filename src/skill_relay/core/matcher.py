"""Name matching for --skill selection, with typo-tolerant suggestions.

Selection is exact (case-insensitive) against the directory name or the
frontmatter display name. Names that select nothing get a "did you mean"
hint scored with rapidfuzz.
"""

import logging

from rapidfuzz import fuzz

from skill_relay.models import Installable

logger = logging.getLogger("skill-relay.matcher")

SUGGESTION_THRESHOLD = 0.6


def suggest(name: str, choices: list[str], threshold: float = SUGGESTION_THRESHOLD) -> str | None:
    """Closest choice to ``name``, or None when nothing is close enough."""
    query = name.lower()
    best, best_score = None, 0.0
    for choice in choices:
        score = fuzz.ratio(query, choice.lower()) / 100.0
        if score > best_score:
            best, best_score = choice, score
    if best is None or best_score < threshold:
        return None
    logger.debug("Suggestion for '%s': %s (%.2f)", name, best, best_score)
    return best


def _matches(item: Installable, wanted: set[str]) -> bool:
    return item.name.lower() in wanted or item.display_name.lower() in wanted


def select_by_name(found: list[Installable], names: list[str]) -> tuple[list[Installable], list[str]]:
    """Split a --skill request into (selected installables, unmatched names)."""
    wanted = {n.lower() for n in names}
    selected = [item for item in found if _matches(item, wanted)]
    matched = {item.name.lower() for item in selected} | {item.display_name.lower() for item in selected}
    unmatched = [n for n in names if n.lower() not in matched]
    return selected, unmatched


def describe_unmatched(unmatched: list[str], found: list[Installable]) -> list[str]:
    """One human-readable line per unmatched name."""
    choices = sorted({item.display_name for item in found})
    lines = []
    for name in unmatched:
        hint = suggest(name, choices)
        line = f"No skill or command named '{name}'"
        if hint:
            line += f"; did you mean '{hint}'?"
        lines.append(line)
    return lines
