"""Decompose standards into subskills from domain templates or an LLM."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError

from llm_client import LLMClient, LLMClientError
from schemas import DIFFICULTY_LEVELS, Difficulty, Standard, Subskill, parse_json_safe

logger = logging.getLogger(__name__)

DEFAULT_SUBSKILL_COUNT = 4

_MINUTES_BY_DIFFICULTY: Dict[str, int] = {
    "beginning": 15,
    "developing": 20,
    "proficient": 25,
    "advanced": 30,
}

# (title, description, keywords) per domain; unknown domains use Algebra.
_TEMPLATES: Dict[str, List[tuple[str, str, List[str]]]] = {
    "Algebra": [
        (
            "Identify and simplify algebraic expressions",
            "Students recognize algebraic expressions, combine like terms and use the "
            "distributive property to rewrite expressions in simpler equivalent forms.",
            ["expressions", "simplify", "distributive property", "like terms"],
        ),
        (
            "Solve linear equations with one variable",
            "Students solve linear equations with inverse operations, check their solutions "
            "and handle equations that have the variable on both sides.",
            ["equations", "solve", "inverse operations", "solutions"],
        ),
        (
            "Apply algebraic reasoning to word problems",
            "Students translate real-world situations into equations and solve the resulting "
            "problems with algebraic methods.",
            ["word problems", "translation", "applications", "reasoning"],
        ),
        (
            "Analyze and interpret solutions in context",
            "Students judge whether a solution is reasonable for the original problem and "
            "explain the reasoning behind that judgement.",
            ["interpretation", "context", "reasonableness", "explanation"],
        ),
    ],
    "Geometry": [
        (
            "Identify and classify geometric figures",
            "Students recognize two- and three-dimensional shapes and classify them by their "
            "defining properties.",
            ["shapes", "classification", "properties", "figures"],
        ),
        (
            "Apply geometric formulas and theorems",
            "Students use area, perimeter and volume formulas and apply geometric theorems to "
            "solve problems.",
            ["formulas", "theorems", "area", "perimeter", "volume"],
        ),
        (
            "Analyze geometric relationships and transformations",
            "Students reason about congruence, similarity and transformations of figures in "
            "the coordinate plane.",
            ["transformations", "congruence", "similarity", "coordinates"],
        ),
        (
            "Solve geometric problems with proofs",
            "Students construct logical arguments and proofs that justify geometric "
            "relationships.",
            ["proofs", "logic", "arguments", "justification"],
        ),
    ],
    "Functions": [
        (
            "Understand function notation and terminology",
            "Students use function notation, identify domain and range and describe what "
            "makes a relation a function.",
            ["function notation", "domain", "range", "input", "output"],
        ),
        (
            "Graph and analyze function behavior",
            "Students graph functions and analyze key features such as intercepts, maxima "
            "and minima.",
            ["graphing", "analysis", "intercepts", "extrema", "behavior"],
        ),
        (
            "Connect different representations of functions",
            "Students move between tables, graphs, equations and verbal descriptions of the "
            "same function.",
            ["representations", "translation", "tables", "graphs", "equations"],
        ),
        (
            "Apply functions to model real-world situations",
            "Students use functions to represent real-world relationships and solve problems "
            "about them.",
            ["modeling", "applications", "real-world", "relationships"],
        ),
    ],
    "Statistics & Probability": [
        (
            "Collect and organize data",
            "Students design data collection methods and organize the results with "
            "appropriate representations.",
            ["data collection", "organization", "sampling", "representation"],
        ),
        (
            "Calculate and interpret statistical measures",
            "Students compute measures of center, spread and position and interpret what "
            "they say about the data.",
            ["measures of center", "spread", "mean", "median", "mode", "range"],
        ),
        (
            "Analyze data distributions and patterns",
            "Students describe the shape, center and spread of distributions and identify "
            "patterns in data.",
            ["distributions", "patterns", "shape", "analysis", "visualization"],
        ),
        (
            "Calculate and apply probability concepts",
            "Students calculate theoretical and experimental probabilities and apply them to "
            "real situations.",
            ["probability", "theoretical", "experimental", "outcomes", "events"],
        ),
    ],
    "Number & Quantity": [
        (
            "Understand number systems and properties",
            "Students work with real and rational numbers and use the properties of the "
            "number system.",
            ["number systems", "properties", "rational", "irrational", "real numbers"],
        ),
        (
            "Perform operations with complex numbers",
            "Students add, subtract, multiply and divide complex numbers and use them in "
            "problem solving.",
            ["complex numbers", "operations", "imaginary numbers", "problem solving"],
        ),
        (
            "Work with vectors and matrices",
            "Students perform basic vector and matrix operations and apply them to solve "
            "problems.",
            ["vectors", "matrices", "operations", "applications"],
        ),
        (
            "Apply quantitative reasoning",
            "Students use units, dimensional analysis and quantitative reasoning when "
            "solving problems.",
            ["quantitative reasoning", "units", "dimensional analysis", "problem solving"],
        ),
    ],
}


@dataclass
class SubskillGenerationRequest:
    standard_id: str
    standard_description: str
    grade_level: str
    domain: str
    cluster: str
    target_subskill_count: int = DEFAULT_SUBSKILL_COUNT
    custom_instructions: Optional[str] = None

    @classmethod
    def for_standard(
        cls,
        standard: Standard,
        *,
        target_count: int = DEFAULT_SUBSKILL_COUNT,
        custom_instructions: Optional[str] = None,
    ) -> "SubskillGenerationRequest":
        return cls(
            standard_id=standard.id,
            standard_description=standard.description,
            grade_level=standard.grade_level,
            domain=standard.domain,
            cluster=standard.cluster,
            target_subskill_count=target_count,
            custom_instructions=custom_instructions,
        )


@dataclass
class SubskillGenerationResult:
    success: bool
    subskills: List[Subskill] = field(default_factory=list)
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    quality_score: Optional[float] = None


class _GeneratedSubskill(BaseModel):
    model_config = {"populate_by_name": True}

    title: str
    description: str
    difficulty: Difficulty
    estimated_time_minutes: int = Field(alias="estimatedTimeMinutes")
    prerequisites: List[str] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)


class _GeneratedSubskills(BaseModel):
    subskills: List[_GeneratedSubskill]


def difficulty_for_position(index: int, total: int) -> str:
    """Spread difficulties across ``total`` subskills, easiest first."""

    if total <= 2:
        return "beginning" if index == 0 else "proficient"
    position = index / (total - 1)
    if position < 0.33:
        return "beginning"
    if position < 0.67:
        return "developing"
    if position < 0.9:
        return "proficient"
    return "advanced"


def quality_score(subskills: Sequence[Subskill], request: SubskillGenerationRequest) -> float:
    """Share of five structural checks that a generated set passes."""

    checks = 0
    if len(subskills) == request.target_subskill_count:
        checks += 1
    if sorted(s.sequence for s in subskills) == list(range(1, len(subskills) + 1)):
        checks += 1
    if all(s.title and s.description and s.estimated_time_minutes > 0 for s in subskills):
        checks += 1
    levels = [DIFFICULTY_LEVELS.index(s.difficulty) for s in subskills]
    if all(current >= previous for previous, current in zip(levels, levels[1:])):
        checks += 1
    if subskills and all(50 <= len(s.description) <= 500 for s in subskills):
        checks += 1
    return checks / 5


def _response_quality(skill: _GeneratedSubskill) -> float:
    points = 0
    if 10 < len(skill.title) <= 60:
        points += 25
    if 50 <= len(skill.description) <= 300:
        points += 25
    points += 20  # difficulty already validated by the schema
    if 5 <= skill.estimated_time_minutes <= 60:
        points += 15
    if skill.keywords:
        points += 15
    return points / 100


def build_prompt(request: SubskillGenerationRequest) -> str:
    extra = (
        f"\nADDITIONAL INSTRUCTIONS: {request.custom_instructions}\n"
        if request.custom_instructions
        else ""
    )
    count = request.target_subskill_count
    return (
        "You are an expert in K-12 mathematics curriculum design. Break the following "
        f"standard into {count} distinct, assessable subskills.\n\n"
        "STANDARD DETAILS:\n"
        f"- Grade Level: {request.grade_level}\n"
        f"- Domain: {request.domain}\n"
        f"- Cluster: {request.cluster}\n"
        f'- Standard: "{request.standard_description}"\n\n'
        "REQUIREMENTS:\n"
        f"1. Create exactly {count} subskills, each specific, measurable and distinct.\n"
        "2. For each subskill give a title (10-60 characters), a description, a difficulty "
        "(beginning, developing, proficient or advanced), prerequisites, 3-7 keywords and "
        "the estimated minutes to master it (5-60).\n"
        f"{extra}\n"
        "Respond with a single JSON object and nothing after it:\n"
        '{"subskills": [{"title": "...", "description": "...", "difficulty": "developing", '
        '"estimatedTimeMinutes": 15, "prerequisites": [], "keywords": ["..."]}]}'
    )


class SubskillGenerator:
    """Generate subskills; AI generation requires an injected :class:`LLMClient`."""

    def __init__(self, client: Optional[LLMClient] = None) -> None:
        self.client = client

    def generate(
        self,
        request: SubskillGenerationRequest,
        *,
        use_ai: bool = True,
    ) -> SubskillGenerationResult:
        if use_ai and self.client is not None:
            return self._generate_with_ai(request, self.client)
        return self._generate_with_templates(request)

    def generate_batch(
        self,
        requests: Sequence[SubskillGenerationRequest],
        *,
        use_ai: bool = True,
        delay_seconds: float = 0.1,
        progress: Optional[Callable[[int, int], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> List[SubskillGenerationResult]:
        results: List[SubskillGenerationResult] = []
        total = len(requests)
        for index, request in enumerate(requests, start=1):
            results.append(self.generate(request, use_ai=use_ai))
            if progress is not None:
                progress(index, total)
            # Spacing between calls keeps a remote endpoint from being flooded.
            if delay_seconds > 0 and index < total:
                sleep(delay_seconds)
        return results

    # ------------------------------------------------------------------
    def _generate_with_templates(self, request: SubskillGenerationRequest) -> SubskillGenerationResult:
        templates = _TEMPLATES.get(request.domain, _TEMPLATES["Algebra"])
        count = min(max(0, request.target_subskill_count), len(templates))
        warnings: List[str] = []
        if count < request.target_subskill_count:
            warnings.append(
                f"Only {count} templates available for domain '{request.domain}'"
            )

        subskills: List[Subskill] = []
        for index in range(count):
            title, description, keywords = templates[index]
            difficulty = difficulty_for_position(index, request.target_subskill_count)
            subskills.append(
                Subskill(
                    id=f"subskill_{request.standard_id}_{index + 1}",
                    standard_id=request.standard_id,
                    title=title,
                    description=description,
                    sequence=index + 1,
                    keywords=list(keywords),
                    difficulty=difficulty,
                    estimated_time_minutes=_MINUTES_BY_DIFFICULTY[difficulty],
                    generated_by="template",
                    status="draft",
                )
            )

        return SubskillGenerationResult(
            success=True,
            subskills=subskills,
            warnings=warnings,
            quality_score=quality_score(subskills, request),
        )

    def _generate_with_ai(
        self, request: SubskillGenerationRequest, client: LLMClient
    ) -> SubskillGenerationResult:
        messages = [{"role": "user", "content": build_prompt(request)}]
        try:
            raw = client.complete(messages)
            parsed = parse_json_safe(raw, _GeneratedSubskills)
        except (LLMClientError, ValidationError, ValueError) as exc:
            logger.warning("AI subskill generation failed for %s: %s", request.standard_id, exc)
            return SubskillGenerationResult(success=False, error=f"AI generation failed: {exc}")

        extra_keywords = [
            value.lower() for value in (request.domain, request.cluster) if value and value.strip()
        ]
        subskills = [
            Subskill(
                id=f"subskill_{request.standard_id}_{index}",
                standard_id=request.standard_id,
                title=skill.title,
                description=skill.description,
                sequence=index,
                keywords=[*skill.keywords, *extra_keywords],
                difficulty=skill.difficulty,
                estimated_time_minutes=skill.estimated_time_minutes,
                prerequisites=list(skill.prerequisites),
                generated_by="ai",
                quality_score=_response_quality(skill),
                status="draft",
            )
            for index, skill in enumerate(parsed.subskills, start=1)
        ]
        warnings: List[str] = []
        if len(subskills) != request.target_subskill_count:
            warnings.append(
                f"Requested {request.target_subskill_count} subskills, received {len(subskills)}"
            )
        return SubskillGenerationResult(
            success=True,
            subskills=subskills,
            warnings=warnings,
            quality_score=quality_score(subskills, request),
        )
