"""Integrity checks for subskills, standards and items.

Findings are returned as data. Nothing here raises for well-typed input or
mutates the collections it inspects.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from schemas import Item, Standard, Subskill


@dataclass
class ValidationReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, object]:
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _duplicates(ids: Sequence[str]) -> List[str]:
    """Return every repeated occurrence of an id, in encounter order."""
    seen: set[str] = set()
    repeated: List[str] = []
    for identifier in ids:
        if identifier in seen:
            repeated.append(identifier)
        seen.add(identifier)
    return repeated


def _is_blank(value: object) -> bool:
    return value is None or not str(value).strip()


def _sequence_gap(sequences: Sequence[int]) -> tuple[int, int] | None:
    """Return ``(expected, found)`` for the first break in ``1..n``."""
    for position, value in enumerate(sorted(sequences), start=1):
        if value != position:
            return position, value
    return None


def validate_subskill_data(
    standards: Sequence[Standard],
    subskills: Sequence[Subskill],
) -> ValidationReport:
    """Validate subskills against their standards.

    Errors: duplicate ids, subskills whose standard is unknown, blank title or
    description. Warnings: non-positive estimated time, and the first gap in
    each standard's sequence numbers.
    """
    report = ValidationReport()

    duplicate_ids = _duplicates([subskill.id for subskill in subskills])
    if duplicate_ids:
        report.errors.append(f"Duplicate subskill IDs: {', '.join(duplicate_ids)}")

    standard_ids = {standard.id for standard in standards}
    orphaned = [subskill.id for subskill in subskills if subskill.standard_id not in standard_ids]
    if orphaned:
        report.errors.append(f"Orphaned subskills (no standard found): {', '.join(orphaned)}")

    for subskill in subskills:
        if _is_blank(subskill.title):
            report.errors.append(f"Subskill {subskill.id} missing title")
        if _is_blank(subskill.description):
            report.errors.append(f"Subskill {subskill.id} missing description")
        if subskill.estimated_time_minutes <= 0:
            report.warnings.append(
                f"Subskill {subskill.id} has invalid estimated time: {subskill.estimated_time_minutes}"
            )

    sequences_by_standard: Dict[str, List[int]] = {}
    for subskill in subskills:
        sequences_by_standard.setdefault(subskill.standard_id, []).append(subskill.sequence)

    for standard in standards:
        gap = _sequence_gap(sequences_by_standard.get(standard.id, []))
        if gap is not None:
            expected, found = gap
            report.warnings.append(
                f"Standard {standard.id} has subskill sequence gap: expected {expected}, found {found}"
            )

    return report


def validate_item_bank(
    standards: Sequence[Standard],
    subskills: Sequence[Subskill],
    items: Sequence[Item],
) -> ValidationReport:
    """Subskill checks plus item-level reference checks.

    Unresolvable item subskill ids are warnings because the hierarchy builder
    skips them rather than failing.
    """
    report = validate_subskill_data(standards, subskills)

    duplicate_items = _duplicates([item.id for item in items])
    if duplicate_items:
        report.errors.append(f"Duplicate item IDs: {', '.join(duplicate_items)}")

    standard_ids = {standard.id for standard in standards}
    orphaned_items = [item.id for item in items if item.standard_id not in standard_ids]
    if orphaned_items:
        report.errors.append(f"Items with unknown standard: {', '.join(orphaned_items)}")

    subskill_ids = {subskill.id for subskill in subskills}
    for item in items:
        dangling = [ref for ref in item.subskill_ids if ref not in subskill_ids]
        if dangling:
            report.warnings.append(
                f"Item {item.id} references unknown subskills: {', '.join(dangling)}"
            )

    for standard in standards:
        dangling = [ref for ref in standard.subskill_ids if ref not in subskill_ids]
        if dangling:
            report.warnings.append(
                f"Standard {standard.id} references unknown subskills: {', '.join(dangling)}"
            )

    return report
