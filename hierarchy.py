"""Grade -> domain -> cluster -> standard hierarchy built from the flat item bank."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Sequence, TypeVar

from grade_levels import UNKNOWN_GRADE, sort_grades
from schemas import DIFFICULTY_LEVELS, Item, Standard, Subskill

__all__ = [
    "SubskillNode",
    "StandardNode",
    "ClusterNode",
    "DomainNode",
    "GradeNode",
    "HierarchyMetadata",
    "Hierarchy",
    "CoverageStatistics",
    "group_by",
    "index_items_by_subskill",
    "organize",
    "coverage_statistics",
]

_V = TypeVar("_V")
_K = TypeVar("_K", bound=Hashable)


def group_by(values: Iterable[_V], key: Callable[[_V], _K]) -> Dict[_K, List[_V]]:
    """Group ``values`` by ``key``; groups and members keep encounter order."""

    groups: Dict[_K, List[_V]] = {}
    for value in values:
        groups.setdefault(key(value), []).append(value)
    return groups


def index_items_by_subskill(items: Iterable[Item]) -> Dict[str, List[Item]]:
    """Multimap subskill id -> items; an item with k subskill ids appears under k keys."""

    index: Dict[str, List[Item]] = {}
    for item in items:
        for subskill_id in item.subskill_ids:
            index.setdefault(subskill_id, []).append(item)
    return index


def _bucket(value: str | None) -> str:
    if value is None or not str(value).strip():
        return UNKNOWN_GRADE
    return str(value)


def _percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    # Half-up rounding; the builtin round() would send 12.5 to 12.
    return int(math.floor(100 * part / whole + 0.5))


def _empty_distribution() -> Dict[str, int]:
    return {level: 0 for level in DIFFICULTY_LEVELS}


def _item_dict(item: Item, standard_id: str) -> Dict[str, Any]:
    return {
        "item": item.to_json_dict(),
        "subskillIds": list(item.subskill_ids),
        "standardsAlignment": [standard_id],
    }


# ----------------------------------------------------------------------
# nodes
# ----------------------------------------------------------------------
@dataclass
class SubskillNode:
    subskill: Subskill
    items: List[Item] = field(default_factory=list)
    difficulty_distribution: Dict[str, int] = field(default_factory=_empty_distribution)

    @property
    def item_count(self) -> int:
        return len(self.items)

    def to_dict(self, standard_id: str) -> Dict[str, Any]:
        return {
            "subskill": self.subskill.to_json_dict(),
            "items": [_item_dict(item, standard_id) for item in self.items],
            "itemCount": self.item_count,
            "difficultyDistribution": dict(self.difficulty_distribution),
        }


@dataclass
class StandardNode:
    standard: Standard
    subskills: List[SubskillNode] = field(default_factory=list)
    items: List[Item] = field(default_factory=list)
    coverage_percentage: int = 0

    @property
    def total_items(self) -> int:
        return len(self.items)

    @property
    def total_subskills(self) -> int:
        return len(self.subskills)

    @property
    def total_standards(self) -> int:
        return 1

    @property
    def subskills_with_items(self) -> int:
        return sum(1 for node in self.subskills if node.item_count > 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "standard": self.standard.to_json_dict(),
            "subskills": [node.to_dict(self.standard.id) for node in self.subskills],
            "items": [_item_dict(item, self.standard.id) for item in self.items],
            "totalItems": self.total_items,
            "totalSubskills": self.total_subskills,
            "coveragePercentage": self.coverage_percentage,
        }


@dataclass
class _Aggregate:
    """Counts summed from child nodes."""

    def _children(self) -> Sequence[Any]:
        raise NotImplementedError

    @property
    def total_standards(self) -> int:
        return sum(child.total_standards for child in self._children())

    @property
    def total_items(self) -> int:
        return sum(child.total_items for child in self._children())

    @property
    def total_subskills(self) -> int:
        return sum(child.total_subskills for child in self._children())

    @property
    def subskills_with_items(self) -> int:
        return sum(child.subskills_with_items for child in self._children())

    def standard_nodes(self) -> List[StandardNode]:
        nodes: List[StandardNode] = []
        for child in self._children():
            if isinstance(child, StandardNode):
                nodes.append(child)
            else:
                nodes.extend(child.standard_nodes())
        return nodes

    def _totals(self) -> Dict[str, int]:
        return {
            "totalStandards": self.total_standards,
            "totalItems": self.total_items,
            "totalSubskills": self.total_subskills,
        }


@dataclass
class ClusterNode(_Aggregate):
    cluster: str
    standards: List[StandardNode] = field(default_factory=list)

    def _children(self) -> Sequence[StandardNode]:
        return self.standards

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cluster": self.cluster,
            "standards": [node.to_dict() for node in self.standards],
            **self._totals(),
        }


@dataclass
class DomainNode(_Aggregate):
    domain: str
    clusters: List[ClusterNode] = field(default_factory=list)

    def _children(self) -> Sequence[ClusterNode]:
        return self.clusters

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "clusters": [node.to_dict() for node in self.clusters],
            **self._totals(),
        }


@dataclass
class GradeNode(_Aggregate):
    grade: str
    domains: List[DomainNode] = field(default_factory=list)

    def _children(self) -> Sequence[DomainNode]:
        return self.domains

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grade": self.grade,
            "domains": [node.to_dict() for node in self.domains],
            **self._totals(),
        }


@dataclass
class HierarchyMetadata:
    total_grades: int
    total_standards: int
    total_items: int
    total_subskills: int
    grade_levels: List[str]
    domains: List[str]
    last_updated: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalGrades": self.total_grades,
            "totalStandards": self.total_standards,
            "totalItems": self.total_items,
            "totalSubskills": self.total_subskills,
            "gradeLevels": list(self.grade_levels),
            "domains": list(self.domains),
            "lastUpdated": self.last_updated,
        }


@dataclass
class Hierarchy:
    grades: List[GradeNode]
    metadata: HierarchyMetadata

    def standard_nodes(self) -> List[StandardNode]:
        nodes: List[StandardNode] = []
        for grade in self.grades:
            nodes.extend(grade.standard_nodes())
        return nodes

    def find_standard(self, standard_id: str) -> StandardNode | None:
        for node in self.standard_nodes():
            if node.standard.id == standard_id:
                return node
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grades": [grade.to_dict() for grade in self.grades],
            "metadata": self.metadata.to_dict(),
        }


# ----------------------------------------------------------------------
# builder
# ----------------------------------------------------------------------
def _build_subskill_node(subskill: Subskill, items_by_subskill: Mapping[str, List[Item]]) -> SubskillNode:
    linked = list(items_by_subskill.get(subskill.id, ()))
    distribution = _empty_distribution()
    for item in linked:
        if item.difficulty in distribution:
            distribution[item.difficulty] += 1
    return SubskillNode(subskill=subskill, items=linked, difficulty_distribution=distribution)


def _build_standard_node(
    standard: Standard,
    subskills_by_id: Mapping[str, Subskill],
    items_by_subskill: Mapping[str, List[Item]],
) -> StandardNode:
    # Dangling ids are skipped; reporting them is the validator's job.
    resolved = [
        subskills_by_id[subskill_id]
        for subskill_id in (standard.subskill_ids or [])
        if subskill_id in subskills_by_id
    ]
    subskill_nodes = [_build_subskill_node(subskill, items_by_subskill) for subskill in resolved]

    unique_items: Dict[str, Item] = {}
    for node in subskill_nodes:
        for item in node.items:
            unique_items.setdefault(item.id, item)

    with_items = sum(1 for node in subskill_nodes if node.item_count > 0)
    return StandardNode(
        standard=standard,
        subskills=subskill_nodes,
        items=list(unique_items.values()),
        coverage_percentage=_percentage(with_items, len(subskill_nodes)),
    )


def _build_cluster(
    cluster: str,
    standards: Sequence[Standard],
    subskills_by_id: Mapping[str, Subskill],
    items_by_subskill: Mapping[str, List[Item]],
) -> ClusterNode:
    return ClusterNode(
        cluster=cluster,
        standards=[
            _build_standard_node(standard, subskills_by_id, items_by_subskill)
            for standard in standards
        ],
    )


def _build_domain(
    domain: str,
    standards: Sequence[Standard],
    subskills_by_id: Mapping[str, Subskill],
    items_by_subskill: Mapping[str, List[Item]],
) -> DomainNode:
    clusters = group_by(standards, lambda standard: _bucket(standard.cluster))
    return DomainNode(
        domain=domain,
        clusters=[
            _build_cluster(name, clusters[name], subskills_by_id, items_by_subskill)
            for name in sorted(clusters)
        ],
    )


def _build_grade(
    grade: str,
    standards: Sequence[Standard],
    subskills_by_id: Mapping[str, Subskill],
    items_by_subskill: Mapping[str, List[Item]],
) -> GradeNode:
    domains = group_by(standards, lambda standard: _bucket(standard.domain))
    return GradeNode(
        grade=grade,
        domains=[
            _build_domain(name, domains[name], subskills_by_id, items_by_subskill)
            for name in sorted(domains)
        ],
    )


def organize(
    standards: Sequence[Standard],
    items: Sequence[Item],
    subskills: Sequence[Subskill],
) -> Hierarchy:
    """Fold the flat collections into a grade/domain/cluster/standard tree.

    The inputs are only read. Item totals above the standard level are sums of
    per-standard de-duplicated counts, so an item aligned with two standards is
    counted once in each of them.
    """

    subskills_by_id = {subskill.id: subskill for subskill in subskills}
    items_by_subskill = index_items_by_subskill(items)

    grades = group_by(standards, lambda standard: _bucket(standard.grade_level))
    grade_nodes = [
        _build_grade(grade, grades[grade], subskills_by_id, items_by_subskill)
        for grade in sort_grades(grades)
    ]

    domains = sorted({domain.domain for grade in grade_nodes for domain in grade.domains})
    metadata = HierarchyMetadata(
        total_grades=len(grade_nodes),
        total_standards=len(standards),
        total_items=len(items),
        total_subskills=len(subskills),
        grade_levels=[grade.grade for grade in grade_nodes],
        domains=domains,
        last_updated=datetime.now(timezone.utc).isoformat(),
    )
    return Hierarchy(grades=grade_nodes, metadata=metadata)


# ----------------------------------------------------------------------
# hierarchy-wide coverage
# ----------------------------------------------------------------------
@dataclass
class CoverageStatistics:
    overall_coverage: int
    grade_level_coverage: List[Dict[str, Any]]
    domain_coverage: List[Dict[str, Any]]
    difficulty_distribution: Dict[str, int]

    def coverage_for_grade(self, grade: str) -> int:
        for entry in self.grade_level_coverage:
            if entry["grade"] == grade:
                return int(entry["coverage"])
        return 0

    def coverage_for_domain(self, domain: str) -> int:
        for entry in self.domain_coverage:
            if entry["domain"] == domain:
                return int(entry["coverage"])
        return 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallCoverage": self.overall_coverage,
            "gradeLevelCoverage": [dict(entry) for entry in self.grade_level_coverage],
            "domainCoverage": [dict(entry) for entry in self.domain_coverage],
            "difficultyDistribution": dict(self.difficulty_distribution),
        }


def coverage_statistics(hierarchy: Hierarchy) -> CoverageStatistics:
    """Share of subskills with at least one item, per grade, per domain and overall."""

    distribution = _empty_distribution()
    grade_coverage: List[Dict[str, Any]] = []
    domain_totals: Dict[str, List[int]] = {}

    total = 0
    covered = 0
    for grade in hierarchy.grades:
        total += grade.total_subskills
        covered += grade.subskills_with_items
        grade_coverage.append(
            {
                "grade": grade.grade,
                "coverage": _percentage(grade.subskills_with_items, grade.total_subskills),
            }
        )
        for domain in grade.domains:
            counts = domain_totals.setdefault(domain.domain, [0, 0])
            counts[0] += domain.total_subskills
            counts[1] += domain.subskills_with_items

        for standard in grade.standard_nodes():
            for node in standard.subskills:
                for level, count in node.difficulty_distribution.items():
                    distribution[level] += count

    domain_coverage = [
        {"domain": name, "coverage": _percentage(counts[1], counts[0])}
        for name, counts in sorted(domain_totals.items())
    ]
    return CoverageStatistics(
        overall_coverage=_percentage(covered, total),
        grade_level_coverage=grade_coverage,
        domain_coverage=domain_coverage,
        difficulty_distribution=distribution,
    )
