"""Grade level ordering used when laying out the standards hierarchy."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

UNKNOWN_GRADE = "Unknown"
"""Bucket label for standards without a grade level."""

_DEFAULT_ORDER: Dict[str, int] = {
    "K": 0,
    **{str(grade): grade for grade in range(1, 14)},
}

_NON_GRADE_CHARS = re.compile(r"[^\dK]")


@dataclass(frozen=True)
class GradeLevel:
    """A grade token together with its resolved sort position."""

    token: str
    position: Optional[int]

    @property
    def known(self) -> bool:
        return self.position is not None


class GradeLevelRegistry:
    """Resolve grade tokens (``K``, ``1``..``13``) to a fixed sort order.

    Tokens are normalised by dropping everything that is not a digit or an
    upper-case ``K``, so ``"Grade 3"`` resolves like ``"3"``. Tokens
    missing from the table sort after every known grade.
    """

    def __init__(self, order: Mapping[str, int] | None = None) -> None:
        table = dict(order) if order is not None else dict(_DEFAULT_ORDER)
        if not table:
            raise ValueError("Grade order table may not be empty")
        self._order = {key.upper(): int(value) for key, value in table.items()}

    # ------------------------------------------------------------------
    @staticmethod
    def normalize(token: str) -> str:
        # Strip before upper-casing so the lowercase k in "Unknown" does not survive.
        return _NON_GRADE_CHARS.sub("", str(token or "")).upper()

    def resolve(self, token: str) -> GradeLevel:
        normalized = self.normalize(token)
        return GradeLevel(token=token, position=self._order.get(normalized))

    def position(self, token: str) -> Optional[int]:
        """Return the sort position of ``token`` or ``None`` when it is unknown."""

        return self.resolve(token).position

    def sort_key(self, token: str) -> tuple[int, int]:
        level = self.resolve(token)
        if level.position is None:
            return (1, 0)
        return (0, level.position)

    def sort(self, tokens: Iterable[str]) -> List[str]:
        """Order ``tokens`` by grade; unknown tokens go last in encounter order.

        ``sorted`` is stable, which keeps ties in their original order.
        """

        return sorted(tokens, key=self.sort_key)

    def known_tokens(self) -> Sequence[str]:
        return tuple(sorted(self._order, key=lambda key: (self._order[key], key)))


GRADE_LEVELS = GradeLevelRegistry()
"""Default registry shared by the hierarchy builder and the viewer."""


def sort_grades(tokens: Iterable[str]) -> List[str]:
    return GRADE_LEVELS.sort(tokens)
