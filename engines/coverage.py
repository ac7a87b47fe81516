"""Subskill coverage analysis and gap reporting over the item bank."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from hierarchy import Hierarchy, index_items_by_subskill
from schemas import DIFFICULTY_LEVELS, Item, Standard, Subskill

DEFAULT_LOW_COVERAGE_THRESHOLD = 5


@dataclass
class SubskillAnalysis:
    total_subskills: int = 0
    subskills_by_standard: Dict[str, int] = field(default_factory=dict)
    subskills_by_domain: Dict[str, int] = field(default_factory=dict)
    average_subskills_per_standard: float = 0.0
    coverage_by_difficulty: Dict[str, int] = field(
        default_factory=lambda: {level: 0 for level in DIFFICULTY_LEVELS}
    )
    subskills_without_items: List[str] = field(default_factory=list)
    items_by_subskill: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "totalSubskills": self.total_subskills,
            "subskillsByStandard": dict(self.subskills_by_standard),
            "subskillsByDomain": dict(self.subskills_by_domain),
            "averageSubskillsPerStandard": self.average_subskills_per_standard,
            "coverageByDifficulty": dict(self.coverage_by_difficulty),
            "subskillsWithoutItems": list(self.subskills_without_items),
            "itemsBySubskill": dict(self.items_by_subskill),
        }


@dataclass
class CoverageGaps:
    standards_without_subskills: List[str] = field(default_factory=list)
    subskills_without_items: List[str] = field(default_factory=list)
    domains_with_low_coverage: List[str] = field(default_factory=list)
    difficulty_imbalances: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def has_gaps(self) -> bool:
        return bool(
            self.standards_without_subskills
            or self.subskills_without_items
            or self.domains_with_low_coverage
            or self.difficulty_imbalances
        )

    def to_dict(self) -> dict:
        return {
            "standardsWithoutSubskills": list(self.standards_without_subskills),
            "subskillsWithoutItems": list(self.subskills_without_items),
            "domainsWithLowCoverage": list(self.domains_with_low_coverage),
            "difficultyImbalances": {
                domain: list(levels) for domain, levels in self.difficulty_imbalances.items()
            },
        }


def analyze_subskills(
    standards: Sequence[Standard],
    subskills: Sequence[Subskill],
    items: Sequence[Item],
) -> SubskillAnalysis:
    """Count subskills per standard, domain and difficulty, and items per subskill."""

    analysis = SubskillAnalysis(total_subskills=len(subskills))

    per_standard: Dict[str, int] = {}
    for subskill in subskills:
        per_standard[subskill.standard_id] = per_standard.get(subskill.standard_id, 0) + 1

    for standard in standards:
        count = per_standard.get(standard.id, 0)
        analysis.subskills_by_standard[standard.id] = count
        domain_total = analysis.subskills_by_domain.get(standard.domain, 0)
        analysis.subskills_by_domain[standard.domain] = domain_total + count

    # Standards without subskills are left out of the mean.
    populated = [count for count in analysis.subskills_by_standard.values() if count > 0]
    if populated:
        analysis.average_subskills_per_standard = sum(populated) / len(populated)

    for subskill in subskills:
        if subskill.difficulty in analysis.coverage_by_difficulty:
            analysis.coverage_by_difficulty[subskill.difficulty] += 1

    items_by_subskill = index_items_by_subskill(items)
    for subskill in subskills:
        count = len(items_by_subskill.get(subskill.id, ()))
        analysis.items_by_subskill[subskill.id] = count
        if count == 0:
            analysis.subskills_without_items.append(subskill.id)

    return analysis


def _missing_levels(subskills: Sequence[Subskill]) -> List[str]:
    present = {subskill.difficulty for subskill in subskills}
    return [level for level in DIFFICULTY_LEVELS if level not in present]


def _gaps_from_counts(
    subskills_by_domain: Mapping[str, int],
    domain_subskills: Mapping[str, Sequence[Subskill]],
    *,
    low_coverage_threshold: int,
) -> tuple[List[str], Dict[str, List[str]]]:
    low = [domain for domain, count in subskills_by_domain.items() if count < low_coverage_threshold]
    imbalances: Dict[str, List[str]] = {}
    for domain in subskills_by_domain:
        missing = _missing_levels(domain_subskills.get(domain, ()))
        if missing:
            imbalances[domain] = missing
    return low, imbalances


def coverage_gaps(
    standards: Sequence[Standard],
    subskills: Sequence[Subskill],
    items: Sequence[Item],
    *,
    low_coverage_threshold: int = DEFAULT_LOW_COVERAGE_THRESHOLD,
) -> CoverageGaps:
    """Report what is missing from the flat collections."""

    analysis = analyze_subskills(standards, subskills, items)

    domain_by_standard = {standard.id: standard.domain for standard in standards}
    domain_subskills: Dict[str, List[Subskill]] = {}
    for subskill in subskills:
        domain = domain_by_standard.get(subskill.standard_id)
        if domain is not None:
            domain_subskills.setdefault(domain, []).append(subskill)

    low, imbalances = _gaps_from_counts(
        analysis.subskills_by_domain,
        domain_subskills,
        low_coverage_threshold=low_coverage_threshold,
    )
    return CoverageGaps(
        standards_without_subskills=[
            standard.id for standard in standards if not standard.subskill_ids
        ],
        subskills_without_items=list(analysis.subskills_without_items),
        domains_with_low_coverage=low,
        difficulty_imbalances=imbalances,
    )


def gaps_from_hierarchy(
    hierarchy: Hierarchy,
    *,
    low_coverage_threshold: int = DEFAULT_LOW_COVERAGE_THRESHOLD,
) -> CoverageGaps:
    """Same report as :func:`coverage_gaps`, read from an organized hierarchy.

    Only subskills reachable through a standard's ``subskill_ids`` are seen
    here, so orphaned or unlisted subskills do not appear.
    """

    standards_without: List[str] = []
    without_items: List[str] = []
    seen_subskills: set[str] = set()
    subskills_by_domain: Dict[str, int] = {}
    domain_subskills: Dict[str, List[Subskill]] = {}

    for grade in hierarchy.grades:
        for domain in grade.domains:
            subskills_by_domain.setdefault(domain.domain, 0)
            bucket = domain_subskills.setdefault(domain.domain, [])
            for standard_node in domain.standard_nodes():
                if not standard_node.standard.subskill_ids:
                    standards_without.append(standard_node.standard.id)
                subskills_by_domain[domain.domain] += standard_node.total_subskills
                for node in standard_node.subskills:
                    bucket.append(node.subskill)
                    if node.subskill.id in seen_subskills:
                        continue
                    seen_subskills.add(node.subskill.id)
                    if node.item_count == 0:
                        without_items.append(node.subskill.id)

    low, imbalances = _gaps_from_counts(
        subskills_by_domain,
        domain_subskills,
        low_coverage_threshold=low_coverage_threshold,
    )
    return CoverageGaps(
        standards_without_subskills=standards_without,
        subskills_without_items=without_items,
        domains_with_low_coverage=low,
        difficulty_imbalances=imbalances,
    )
