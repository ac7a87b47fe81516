"""Markdown summary of an organized item bank."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from hierarchy import CoverageStatistics, Hierarchy
from schemas import DIFFICULTY_LEVELS

OVERALL_COVERAGE_TARGET = 80
LOW_COVERAGE_TARGET = 60
MAX_BEGINNING_SHARE = 40.0
MIN_ADVANCED_SHARE = 10.0


def recommendations(stats: CoverageStatistics) -> List[str]:
    lines: List[str] = []
    if stats.overall_coverage < OVERALL_COVERAGE_TARGET:
        lines.append(
            f"**Overall coverage is below {OVERALL_COVERAGE_TARGET}%**. "
            "Consider generating more items for subskills without items."
        )
    for entry in stats.grade_level_coverage:
        if entry["coverage"] < LOW_COVERAGE_TARGET:
            lines.append(
                f"**Grade {entry['grade']} has low coverage ({entry['coverage']}%)**. "
                "Focus on this grade level."
            )
    for entry in stats.domain_coverage:
        if entry["coverage"] < LOW_COVERAGE_TARGET:
            lines.append(
                f"**{entry['domain']} domain has low coverage ({entry['coverage']}%)**. "
                "Consider generating more items for this domain."
            )

    total = sum(stats.difficulty_distribution.values())
    if total:
        beginning = stats.difficulty_distribution.get("beginning", 0) / total * 100
        advanced = stats.difficulty_distribution.get("advanced", 0) / total * 100
        if beginning > MAX_BEGINNING_SHARE:
            lines.append(
                f"**High proportion of beginning-level items ({beginning:.1f}%)**. "
                "Consider developing more challenging items."
            )
        if advanced < MIN_ADVANCED_SHARE:
            lines.append(
                f"**Low proportion of advanced-level items ({advanced:.1f}%)**. "
                "Consider developing more advanced assessments."
            )
    return lines


def generate_summary_report(
    hierarchy: Hierarchy,
    stats: CoverageStatistics,
    *,
    generated_at: Optional[datetime] = None,
) -> str:
    stamp = (generated_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    meta = hierarchy.metadata
    out: List[str] = [
        "# Math Item Bank Organization Report",
        "",
        f"Generated on: {stamp}",
        "",
        "## Overview",
        "",
        f"- **Total Grades**: {meta.total_grades}",
        f"- **Total Standards**: {meta.total_standards}",
        f"- **Total Items**: {meta.total_items}",
        f"- **Total Subskills**: {meta.total_subskills}",
        f"- **Overall Coverage**: {stats.overall_coverage}%",
        "",
        "## Grade Level Breakdown",
        "",
        "| Grade | Standards | Items | Subskills | Coverage |",
        "|-------|-----------|-------|-----------|----------|",
    ]
    for grade in hierarchy.grades:
        out.append(
            f"| {grade.grade} | {grade.total_standards} | {grade.total_items} | "
            f"{grade.total_subskills} | {stats.coverage_for_grade(grade.grade)}% |"
        )

    domain_totals: Dict[str, List[int]] = {}
    for grade in hierarchy.grades:
        for domain in grade.domains:
            totals = domain_totals.setdefault(domain.domain, [0, 0, 0])
            totals[0] += domain.total_standards
            totals[1] += domain.total_items
            totals[2] += domain.total_subskills

    out += [
        "",
        "## Domain Coverage",
        "",
        "| Domain | Standards | Items | Subskills | Coverage |",
        "|--------|-----------|-------|-----------|----------|",
    ]
    for name in sorted(domain_totals):
        standards, items, subskills = domain_totals[name]
        out.append(
            f"| {name} | {standards} | {items} | {subskills} | {stats.coverage_for_domain(name)}% |"
        )

    out += ["", "## Difficulty Distribution", ""]
    for level in DIFFICULTY_LEVELS:
        out.append(f"- **{level.capitalize()}**: {stats.difficulty_distribution.get(level, 0)} items")

    out += ["", "## Recommendations", ""]
    advice = recommendations(stats)
    if advice:
        out += [f"- {line}" for line in advice]
    else:
        out.append("- No coverage issues detected.")
    return "\n".join(out) + "\n"
