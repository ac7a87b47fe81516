"""Heuristic item/subskill matching used to backfill missing alignments."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Sequence, Set

from schemas import DIFFICULTY_LEVELS, Item, Standard, Subskill

logger = logging.getLogger(__name__)

MATCH_WEIGHTS: Mapping[str, float] = {
    "title": 0.30,
    "content": 0.40,
    "keywords": 0.20,
    "difficulty": 0.10,
}
DEFAULT_MIN_SCORE = 0.3
MAX_MATCHES_PER_ITEM = 3
_MIN_TOKEN_LENGTH = 3


@dataclass
class MatchResult:
    """Subskills chosen for one item, with parallel scores (best first)."""

    item_id: str
    subskill_ids: List[str] = field(default_factory=list)
    match_scores: List[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "itemId": self.item_id,
            "subskillIds": list(self.subskill_ids),
            "matchScores": list(self.match_scores),
        }


def _tokens(text: str) -> List[str]:
    return [word for word in str(text or "").lower().split() if len(word) >= _MIN_TOKEN_LENGTH]


def text_similarity(first: str, second: str) -> float:
    """Word-overlap ratio ``|A & B| / |A | B|`` over tokens of three or more characters."""

    words_a: Set[str] = set(_tokens(first))
    words_b: Set[str] = set(_tokens(second))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def keyword_match(item: Item, subskill: Subskill) -> float:
    """Fraction of subskill keywords found in the item's words (substring either way)."""

    keywords = [str(keyword).lower() for keyword in subskill.keywords]
    if not keywords:
        return 0.0

    item_words = _tokens(item.title) + _tokens(item.question)
    item_words.extend(
        keyword.lower() for keyword in item.metadata.keywords if len(keyword) >= _MIN_TOKEN_LENGTH
    )

    matched = sum(
        1
        for keyword in keywords
        if any(keyword in word or word in keyword for word in item_words)
    )
    return matched / len(keywords)


def difficulty_alignment(item_difficulty: str, subskill_difficulty: str) -> float:
    try:
        distance = abs(
            DIFFICULTY_LEVELS.index(item_difficulty) - DIFFICULTY_LEVELS.index(subskill_difficulty)
        )
    except ValueError:
        return 0.0
    return max(0.0, 1.0 - distance / 3.0)


def score(item: Item, subskill: Subskill) -> float:
    """Weighted similarity between ``item`` and ``subskill`` in ``[0, 1]``."""

    total = (
        MATCH_WEIGHTS["title"] * text_similarity(item.title, subskill.title)
        + MATCH_WEIGHTS["content"] * text_similarity(item.question, subskill.description)
        + MATCH_WEIGHTS["keywords"] * keyword_match(item, subskill)
        + MATCH_WEIGHTS["difficulty"] * difficulty_alignment(item.difficulty, subskill.difficulty)
    )
    return min(1.0, max(0.0, total))


def rank_subskills(
    item: Item,
    subskills: Sequence[Subskill],
    *,
    min_score: float = DEFAULT_MIN_SCORE,
    limit: int = MAX_MATCHES_PER_ITEM,
) -> List[tuple[Subskill, float]]:
    """Return ``(subskill, score)`` pairs at or above ``min_score``, best first.

    The sort is stable, so equal scores keep the subskills' sequence order.
    """

    scored = [(subskill, score(item, subskill)) for subskill in subskills]
    qualifying = [pair for pair in scored if pair[1] >= min_score]
    qualifying.sort(key=lambda pair: pair[1], reverse=True)
    return qualifying[: max(0, int(limit))]


def auto_assign(
    items: Iterable[Item],
    standards_by_id: Mapping[str, Standard],
    subskills_for_standard: Callable[[str], Sequence[Subskill]],
    *,
    min_score: float = DEFAULT_MIN_SCORE,
) -> List[MatchResult]:
    """Overwrite each item's subskill links with its best-matching subskills.

    ``subskills_for_standard`` must return the standard's subskills ordered by
    sequence. Items whose standard is unknown, has no subskills, or yields no
    match at or above ``min_score`` are left untouched and are not reported.
    """

    results: List[MatchResult] = []
    for item in items:
        standard = standards_by_id.get(item.standard_id)
        if standard is None:
            logger.debug("Skipping item %s: standard %s not found", item.id, item.standard_id)
            continue

        candidates = subskills_for_standard(standard.id)
        if not candidates:
            continue

        matches = rank_subskills(item, candidates, min_score=min_score)
        if not matches:
            continue

        subskill_ids = [subskill.id for subskill, _ in matches]
        item.subskill_ids = subskill_ids
        results.append(
            MatchResult(
                item_id=item.id,
                subskill_ids=list(subskill_ids),
                match_scores=[value for _, value in matches],
            )
        )

    logger.info("Auto-assigned subskills to %d item(s) (min score %.2f)", len(results), min_score)
    return results
