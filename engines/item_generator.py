"""Template-based practice item generation per math domain."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Callable, Dict, List, Optional, Sequence

from schemas import DIFFICULTY_LEVELS, Item, ItemMetadata, Standard, Subskill

logger = logging.getLogger(__name__)

DEFAULT_ITEM_TYPES: tuple[str, ...] = ("multiple_choice", "short_answer")
DEFAULT_DIFFICULTIES: tuple[str, ...] = ("developing", "proficient")

_DOMAIN_KEYWORDS: Dict[str, List[str]] = {
    "Algebra": ["equations", "expressions", "variables", "polynomials"],
    "Geometry": ["shapes", "angles", "area", "volume", "triangles"],
    "Functions": ["graphs", "relationships", "input", "output", "linear"],
    "Statistics & Probability": ["data", "mean", "median", "probability", "statistics"],
    "Number & Quantity": ["numbers", "operations", "complex", "vectors", "matrices"],
}

_MISCONCEPTIONS: Dict[str, List[str]] = {
    "Algebra": [
        "Distributing to only the first term in parentheses",
        "Combining terms that are not like terms",
        "Dropping a negative sign when moving terms",
    ],
    "Geometry": [
        "Confusing area and perimeter formulas",
        "Reporting answers without units",
        "Forgetting to square the radius",
    ],
    "Functions": [
        "Swapping input and output values",
        "Confusing domain with range",
        "Reading the y-intercept as the slope",
    ],
    "Statistics & Probability": [
        "Confusing mean and median",
        "Treating dependent events as independent",
    ],
    "Number & Quantity": [
        "Treating i squared as 1",
        "Adding real and imaginary parts together",
    ],
}

_FORMATS: Dict[str, str] = {
    "Geometry": "geometric",
    "Statistics & Probability": "statistical",
    "Functions": "algebraic",
}

_BLOOMS = ("remember", "understand", "apply", "analyze")


@dataclass
class ItemGenerationResult:
    success: bool
    item: Optional[Item] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class _Draft:
    question: str
    answer: str
    explanation: str
    hints: List[str]
    distractors: List[str] = field(default_factory=list)


def _fmt(value: Fraction | float | int) -> str:
    if isinstance(value, Fraction):
        if value.denominator == 1:
            return str(value.numerator)
        return f"{value.numerator}/{value.denominator}"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def _scale(difficulty: str) -> int:
    return DIFFICULTY_LEVELS.index(difficulty) + 1


def _algebra(standard: Standard, difficulty: str, rng: random.Random) -> _Draft:
    a = _scale(difficulty) + 1
    b = rng.randint(1, 9)
    x = rng.randint(-5, 9)
    c = a * x + b
    return _Draft(
        question=f"Solve for x: {a}x + {b} = {c}",
        answer=str(x),
        explanation=f"Subtract {b} from both sides to get {a}x = {c - b}, then divide by {a}.",
        hints=["Undo the addition first", "Divide both sides by the coefficient of x"],
        distractors=[str(x + 1), str(-x if x else 2), _fmt(Fraction(c, a))],
    )


def _geometry(standard: Standard, difficulty: str, rng: random.Random) -> _Draft:
    if "circle" in standard.description.lower():
        radius = rng.choice([2, 3, 4, 5, 6, 8])
        answer = round(2 * 3.14 * radius, 2)
        return _Draft(
            question=f"Find the circumference of a circle with radius {radius} units. (Use pi = 3.14)",
            answer=_fmt(answer),
            explanation=f"C = 2 x pi x r = 2 x 3.14 x {radius} = {_fmt(answer)} units.",
            hints=["Recall the circumference formula", "Multiply the diameter by pi"],
            distractors=[_fmt(round(3.14 * radius, 2)), _fmt(round(3.14 * radius * radius, 2))],
        )
    a = rng.choice([3, 4, 5, 6, 8, 10])
    b = rng.choice([3, 4, 5, 6, 8, 10])
    area = Fraction(a * b, 2)
    return _Draft(
        question=f"Find the area of a right triangle with legs {a} and {b} units.",
        answer=_fmt(area),
        explanation=f"Area = 1/2 x {a} x {b} = {_fmt(area)} square units.",
        hints=["Draw a diagram", "The legs are the base and the height"],
        distractors=[str(a * b), str(a + b), _fmt(area + 1)],
    )


def _functions(standard: Standard, difficulty: str, rng: random.Random) -> _Draft:
    slope = rng.randint(1, 5) * (1 if difficulty in ("beginning", "developing") else -1)
    intercept = rng.randint(-5, 5)
    sign = "+" if intercept >= 0 else "-"
    return _Draft(
        question=f"What is the slope of the line y = {slope}x {sign} {abs(intercept)}?",
        answer=str(slope),
        explanation=f"In y = mx + b the coefficient m is the slope, so m = {slope}.",
        hints=["Compare with y = mx + b", "The slope multiplies x"],
        distractors=[str(intercept), str(-slope), str(slope + 1)],
    )


def _statistics(standard: Standard, difficulty: str, rng: random.Random) -> _Draft:
    values = [rng.randint(1, 20) for _ in range(3 + _scale(difficulty))]
    mean = Fraction(sum(values), len(values))
    return _Draft(
        question=f"Find the mean of the data set: {', '.join(str(v) for v in values)}",
        answer=f"{float(mean):.1f}",
        explanation=f"Mean = ({' + '.join(str(v) for v in values)}) / {len(values)} = {float(mean):.1f}",
        hints=["Add all the values", "Divide by how many values there are"],
        distractors=[str(sorted(values)[len(values) // 2]), str(max(values) - min(values))],
    )


def _number(standard: Standard, difficulty: str, rng: random.Random) -> _Draft:
    a = rng.randint(1, 9)
    b = rng.randint(2, 9)
    c = a + _scale(difficulty)
    d = b - 1
    return _Draft(
        question=f"Simplify: ({a} + {b}i) + ({c} - {d}i)",
        answer=f"{a + c} + i",
        explanation=f"Add real parts ({a} + {c} = {a + c}) and imaginary parts ({b}i - {d}i = i).",
        hints=["Group the real parts", "Group the imaginary parts"],
        distractors=[f"{a + c} + {b + d}i", f"{a + c + 1}", f"{a + c} - i"],
    )


def _general(standard: Standard, difficulty: str, rng: random.Random) -> _Draft:
    excerpt = standard.description[:100]
    return _Draft(
        question=f'Based on the standard "{excerpt}", explain and solve a problem that applies it.',
        answer="Solution requires application of the stated standard.",
        explanation="Apply the concepts described in the standard to solve the problem.",
        hints=["Review the standard carefully", "Break the problem into smaller parts"],
    )


_BUILDERS: Dict[str, Callable[[Standard, str, random.Random], _Draft]] = {
    "Algebra": _algebra,
    "Geometry": _geometry,
    "Functions": _functions,
    "Statistics & Probability": _statistics,
    "Number & Quantity": _number,
}


def build_metadata(standard: Standard, difficulty: str, rng: random.Random) -> ItemMetadata:
    level = DIFFICULTY_LEVELS.index(difficulty)
    context = "abstract" if level == 0 else rng.choice(["real-world", "academic"])
    keywords = [value.lower() for value in (standard.domain, standard.cluster) if value]
    keywords.extend(_DOMAIN_KEYWORDS.get(standard.domain, []))
    return ItemMetadata(
        estimated_time_minutes=max(1, round(2 * (0.5 + 0.5 * level))),
        calculator_allowed="mental math" not in standard.description.lower(),
        keywords=keywords,
        real_world_context=context == "real-world",
        context=context,
        format=_FORMATS.get(standard.domain, "numeric"),
        depth_of_knowledge=level + 1,
        blooms_taxonomy=_BLOOMS[level],
        common_misconceptions=list(
            _MISCONCEPTIONS.get(standard.domain, ["Misreading what the question asks"])
        ),
        generated_by="template",
        review_status="pending",
        author="item-bank template generator",
    )


class TemplateItemGenerator:
    """Build items for a standard; pass a seeded ``random.Random`` for repeatable output."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self._counter = 0

    def _next_id(self, standard: Standard) -> str:
        self._counter += 1
        code = standard.code or standard.id
        return f"{code}_{self._counter:04d}_{self.rng.randrange(16**6):06x}"

    def create_item(self, standard: Standard, item_type: str, difficulty: str) -> ItemGenerationResult:
        builder = _BUILDERS.get(standard.domain, _general)
        draft = builder(standard, difficulty, self.rng)

        distractors: Optional[List[str]] = None
        answer: str = draft.answer
        question = draft.question
        warnings: List[str] = []
        if item_type == "multiple_choice":
            distractors = [d for d in dict.fromkeys(draft.distractors) if d != draft.answer]
            if not distractors:
                warnings.append("No distractors available; item may need manual review")
        elif item_type == "true_false":
            claim = draft.answer
            if draft.distractors and self.rng.random() < 0.5:
                claim = draft.distractors[0]
            question = f"True or false: the answer to \"{draft.question}\" is {claim}."
            answer = "true" if claim == draft.answer else "false"
            distractors = ["false" if answer == "true" else "true"]

        domain_label = standard.domain or "Mathematics"
        item = Item(
            id=self._next_id(standard),
            standard_id=standard.id,
            subskill_ids=[],
            type=item_type,
            difficulty=difficulty,
            title=f"{domain_label}: {standard.cluster}".rstrip(": "),
            question=question,
            correct_answer=answer,
            distractors=distractors,
            explanation=draft.explanation,
            hints=list(draft.hints),
            metadata=build_metadata(standard, difficulty, self.rng),
        )
        return ItemGenerationResult(success=True, item=item, warnings=warnings)

    def generate_items(
        self,
        standard: Standard,
        *,
        count: int = 3,
        item_types: Sequence[str] = DEFAULT_ITEM_TYPES,
        difficulties: Sequence[str] = DEFAULT_DIFFICULTIES,
    ) -> List[ItemGenerationResult]:
        results: List[ItemGenerationResult] = []
        for _ in range(max(0, count)):
            item_type = self.rng.choice(list(item_types))
            difficulty = self.rng.choice(list(difficulties))
            results.append(self.create_item(standard, item_type, difficulty))
        return results

    def generate_items_for_subskills(
        self,
        standard: Standard,
        subskills: Sequence[Subskill],
        *,
        count: int = 3,
        item_types: Sequence[str] = DEFAULT_ITEM_TYPES,
    ) -> List[ItemGenerationResult]:
        """Spread ``count`` items round-robin over ``subskills``, linking each to its subskill.

        Each item takes its subskill's difficulty. Without subskills this falls
        back to unlinked :meth:`generate_items`.
        """

        if not subskills:
            return self.generate_items(standard, count=count, item_types=item_types)

        results: List[ItemGenerationResult] = []
        for position in range(max(0, count)):
            subskill = subskills[position % len(subskills)]
            result = self.create_item(standard, self.rng.choice(list(item_types)), subskill.difficulty)
            if result.item is not None:
                result.item.subskill_ids = [subskill.id]
            results.append(result)
        return results
