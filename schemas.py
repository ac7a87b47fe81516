"""Pydantic schemas for standards, subskills and items plus JSON helpers."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import List, Literal, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

__all__ = [
    "DIFFICULTY_LEVELS",
    "ITEM_TYPES",
    "Difficulty",
    "ItemType",
    "Standard",
    "Subskill",
    "ItemMetadata",
    "Item",
    "difficulty_index",
    "parse_json_safe",
]

Difficulty = Literal["beginning", "developing", "proficient", "advanced"]
ItemType = Literal[
    "multiple_choice",
    "true_false",
    "short_answer",
    "extended_response",
    "performance_task",
    "drag_and_drop",
    "graphing",
    "equation_editor",
]

DIFFICULTY_LEVELS: tuple[str, ...] = ("beginning", "developing", "proficient", "advanced")
ITEM_TYPES: tuple[str, ...] = (
    "multiple_choice",
    "true_false",
    "short_answer",
    "extended_response",
    "performance_task",
    "drag_and_drop",
    "graphing",
    "equation_editor",
)


def difficulty_index(level: str) -> int:
    """Return the position of ``level`` on the ordered difficulty scale (0..3)."""

    return DIFFICULTY_LEVELS.index(level)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _BankModel(BaseModel):
    """Base model: snake_case in Python, camelCase in item-bank JSON files."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Standard(_BankModel):
    id: str
    code: str = ""
    parent_category: str = ""
    description: str = ""
    grade_level: str = Field(
        default="",
        description="Grade token (K, 1..12). Blank values are grouped under 'Unknown'.",
    )
    domain: str = ""
    cluster: str = ""
    standard_id: str = ""
    subskill_ids: List[str] = Field(default_factory=list)
    complexity: float = 0.0
    related_standards: List[str] = Field(default_factory=list)


class Subskill(_BankModel):
    id: str
    standard_id: str
    title: str = ""
    description: str = ""
    sequence: int = Field(default=1, description="1-based position within the owning standard.")
    exemplar_ids: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    difficulty: Difficulty = "developing"
    estimated_time_minutes: int = 20
    prerequisites: List[str] = Field(default_factory=list)
    related_subskills: List[str] = Field(default_factory=list)
    generated_by: Literal["ai", "human", "template"] = "template"
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    status: Literal["draft", "reviewed", "approved"] = "draft"


class ItemMetadata(_BankModel):
    estimated_time_minutes: int = 5
    calculator_allowed: bool = False
    keywords: List[str] = Field(default_factory=list)
    real_world_context: bool | None = None
    context: Literal["abstract", "real-world", "academic", "professional"] = "abstract"
    format: Literal["numeric", "algebraic", "geometric", "statistical", "verbal"] = "numeric"
    depth_of_knowledge: Literal[1, 2, 3, 4] = 2
    blooms_taxonomy: Literal[
        "remember", "understand", "apply", "analyze", "evaluate", "create"
    ] = "apply"
    common_misconceptions: List[str] = Field(default_factory=list)
    related_standards: List[str] = Field(default_factory=list)
    generated_by: Literal["template", "ai", "human", "variation"] = "template"
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    review_status: Literal["pending", "approved", "needs_revision", "rejected"] = "pending"
    author: str = "system"
    created: datetime = Field(default_factory=_utcnow)
    last_modified: datetime = Field(default_factory=_utcnow)


class Item(_BankModel):
    id: str
    standard_id: str
    subskill_ids: List[str] = Field(default_factory=list)
    type: ItemType = "short_answer"
    difficulty: Difficulty = "developing"
    title: str = ""
    question: str = ""
    correct_answer: str | int | float = ""
    distractors: List[str | int | float] | None = None
    explanation: str = ""
    hints: List[str] = Field(default_factory=list)
    metadata: ItemMetadata = Field(default_factory=ItemMetadata)


_T = TypeVar("_T", bound=BaseModel)


def _find_first_json_object(text: str) -> tuple[str, int, int]:
    start = text.find("{")
    while start != -1:
        depth = 0
        for idx in range(start, len(text)):
            char = text[idx]
            if char == "{" and (idx == 0 or text[idx - 1] != "\\"):
                depth += 1
            elif char == "}" and (idx == 0 or text[idx - 1] != "\\"):
                depth -= 1
                if depth == 0:
                    candidate = text[start : idx + 1]
                    try:
                        json.loads(candidate)
                    except ValueError:
                        break
                    return candidate, start, idx + 1
        start = text.find("{", start + 1)
    raise ValueError("No JSON object found in provided text")


def parse_json_safe(text: str, model: Type[_T]) -> _T:
    """Parse ``text`` into ``model``, falling back to the first embedded JSON object.

    LLM replies frequently wrap the payload in prose. Leading text is tolerated,
    trailing text after the object is not.
    """

    first_error: Exception | None = None
    try:
        return model.model_validate_json(text)
    except (ValidationError, ValueError, TypeError) as exc:
        first_error = exc

    try:
        snippet, _, end = _find_first_json_object(text)
    except ValueError:
        if first_error:
            raise first_error
        raise

    trailing = text[end:]
    if trailing.strip():
        if isinstance(first_error, ValidationError):
            raise first_error
        raise ValueError("Trailing content detected after JSON object")

    return model.model_validate_json(snippet)
