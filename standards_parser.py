"""Parse the curriculum standards CSV into :class:`schemas.Standard` records."""
from __future__ import annotations

import csv
import io
import logging
import math
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from schemas import Standard

logger = logging.getLogger(__name__)

HEADER_MARKER = "root_std_name"
DEFAULT_GRADE = "9"
DEFAULT_DOMAIN = "General"

GRADE_BY_CODE: Dict[str, str] = {
    "enVAGA_CCA1": "9",
    "enVAGA_CCA2": "11",
    "enVAGA_CCGM": "12",
}

DOMAIN_BY_CATEGORY: Dict[str, str] = {
    "Interpreting Functions": "Functions",
    "Reasoning with Equations and Inequalities": "Algebra",
    "Congruence": "Geometry",
    "Interpreting Categorical and Quantitative Data": "Statistics & Probability",
    "Building Functions": "Functions",
    "Vector and Matrix Quantities": "Number & Quantity",
    "Trigonometric Functions": "Functions",
    "The Complex Number System": "Number & Quantity",
    "Similarity, Right Triangles, and Trigonometry": "Geometry",
    "Using Probability to Make Decisions": "Statistics & Probability",
    "Seeing Structure in Expressions": "Algebra",
    "Conditional Probability and the Rules of Probability": "Statistics & Probability",
    "Arithmetic with Polynomials and Rational Expressions": "Algebra",
    "Linear, Quadratic, and Exponential Models": "Functions",
    "Analyze functions using different representations": "Functions",
    "Making Inferences and Justifying Conclusions": "Statistics & Probability",
    "Expressing Geometric Properties with Equations": "Geometry",
    "Construct and compare linear, quadratic, and exponential models and solve problems": "Functions",
    "Build new functions from existing functions": "Functions",
    "Write expressions in equivalent forms to solve problems": "Algebra",
    "Solve equations and inequalities in one variable": "Algebra",
    "Understand the concept of a function and use function notation": "Functions",
    "Use probability to evaluate outcomes of decisions": "Statistics & Probability",
    "Perform arithmetic operations with complex numbers": "Number & Quantity",
    "Use properties of rational and irrational numbers": "Number & Quantity",
    "Perform arithmetic operations on polynomials": "Algebra",
    "Represent data on two quantitative variables on a scatter plot, and describe how the variables are related": "Statistics & Probability",
    "Create equations that describe numbers or relationships": "Algebra",
    "Construct viable arguments and critique the reasoning of others": "Mathematical Practice",
    "Solve real-world and mathematical problems involving area, surface area, and volume": "Geometry",
    "Summarize, represent, and interpret data on a single count or measurement variable": "Statistics & Probability",
    "Represent and model with vector quantities": "Number & Quantity",
}

COMPLEXITY_KEYWORDS: tuple[str, ...] = (
    "prove",
    "derive",
    "theorem",
    "complex",
    "advanced",
    "abstract",
    "multiple",
    "compound",
    "transform",
    "analyze",
    "evaluate",
)

_LEADING_VERB = re.compile(
    r"^(Understand|Use|Apply|Analyze|Create|Represent|Model|Construct|Solve|Build|"
    r"Summarize|Interpret|Compare|Evaluate)\s+",
    re.IGNORECASE,
)
_CONNECTIVES = re.compile(r"\s+(and|or|to|of|for|in|with|by|on|from|as)\s+", re.IGNORECASE)


class StandardsParseError(ValueError):
    """Raised when a standards file is missing or yields no usable rows."""


def extract_cluster(parent_category: str) -> str:
    """Short topic label from a parent category.

    >>> extract_cluster("Interpreting Categorical and Quantitative Data")
    'Interpreting Categorical Quantitative Data'
    """

    cluster = _LEADING_VERB.sub("", parent_category, count=1)
    cluster = _CONNECTIVES.sub(" ", cluster)
    return cluster.split(",")[0].strip()


def calculate_complexity(description: str) -> float:
    lowered = description.lower()
    hits = sum(lowered.count(keyword) for keyword in COMPLEXITY_KEYWORDS)
    raw = min(len(description) / 200, 5) + hits * 0.5
    return math.floor(raw * 10 + 0.5) / 10


def build_standard(code: str, parent_category: str, description: str, index: int) -> Optional[Standard]:
    code = code.strip()
    parent_category = parent_category.strip()
    description = description.replace('"', "").strip()
    if not code or not description:
        return None

    return Standard(
        id=f"std_{index}",
        code=code,
        parent_category=parent_category,
        description=description,
        grade_level=GRADE_BY_CODE.get(code, DEFAULT_GRADE),
        domain=DOMAIN_BY_CATEGORY.get(parent_category, DEFAULT_DOMAIN),
        cluster=extract_cluster(parent_category),
        standard_id=code,
        complexity=calculate_complexity(description),
    )


def parse_rows(rows: Iterable[Sequence[str]]) -> List[Standard]:
    """Build standards from CSV rows; malformed rows are skipped."""

    standards: List[Standard] = []
    index = 0
    for row_number, row in enumerate(rows):
        if row_number == 0 and any(HEADER_MARKER in cell for cell in row):
            continue
        index += 1
        if not row or not any(cell.strip() for cell in row):
            continue
        if len(row) < 3:
            logger.debug("Skipping row %d: expected 3 columns, got %d", index, len(row))
            continue

        standard = build_standard(row[0], row[1], row[2], index)
        if standard is None:
            logger.debug("Skipping row %d: blank code or description", index)
            continue
        standards.append(standard)
    return standards


def parse_csv_text(text: str) -> List[Standard]:
    return parse_rows(csv.reader(io.StringIO(text)))


def parse_standards_file(path: str | Path) -> List[Standard]:
    source = Path(path)
    if not source.exists():
        raise StandardsParseError(f"Standards file not found: {source}")

    with source.open("r", encoding="utf-8", newline="") as fh:
        standards = parse_rows(csv.reader(fh))

    if not standards:
        raise StandardsParseError(f"No standards could be parsed from {source}")
    logger.info("Parsed %d standards from %s", len(standards), source)
    return standards
