"""In-memory store for standards, subskills and items with JSON snapshots."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from engines import coverage, matching, validation
from engines.subskill_generator import (
    DEFAULT_SUBSKILL_COUNT,
    SubskillGenerationRequest,
    SubskillGenerationResult,
    SubskillGenerator,
)
from hierarchy import Hierarchy, organize
from schemas import DIFFICULTY_LEVELS, Item, ItemMetadata, Standard, Subskill

logger = logging.getLogger(__name__)

_SUBSKILL_STATUSES = ("draft", "reviewed", "approved")


class ItemBankLoadError(ValueError):
    """Raised when an item-bank snapshot cannot be parsed into the schemas."""


@dataclass
class ItemFilter:
    """Criteria for :meth:`ItemBank.filter_items`. Empty fields do not filter."""

    grade_levels: Sequence[str] = ()
    domains: Sequence[str] = ()
    difficulties: Sequence[str] = ()
    item_types: Sequence[str] = ()
    keywords: Sequence[str] = ()
    calculator_allowed: Optional[bool] = None
    max_time: Optional[int] = None
    subskill_ids: Sequence[str] = ()
    subskill_status: Sequence[str] = ()


class ItemBank:
    """Single owner of the standards, subskills and items collections.

    All mutations go through this class so that cross-references stay
    consistent; in particular :meth:`delete_subskill` is the only way to drop a
    subskill and it removes every reference to it.
    """

    def __init__(
        self,
        standards: Optional[Iterable[Standard]] = None,
        subskills: Optional[Iterable[Subskill]] = None,
        items: Optional[Iterable[Item]] = None,
    ) -> None:
        self._standards: List[Standard] = list(standards or [])
        self._subskills: List[Subskill] = list(subskills or [])
        self._items: List[Item] = list(items or [])

    # ------------------------------------------------------------------
    # standards
    # ------------------------------------------------------------------
    @property
    def standards(self) -> List[Standard]:
        return list(self._standards)

    def add_standards(self, standards: Iterable[Standard]) -> None:
        self._standards.extend(standards)

    def get_standard(self, standard_id: str) -> Optional[Standard]:
        for standard in self._standards:
            if standard.id == standard_id:
                return standard
        return None

    def standards_by_grade(self, grade: str) -> List[Standard]:
        return [standard for standard in self._standards if standard.grade_level == grade]

    def standards_by_domain(self, domain: str) -> List[Standard]:
        return [standard for standard in self._standards if standard.domain == domain]

    def search_standards(self, query: str) -> List[Standard]:
        needle = query.lower()
        return [
            standard
            for standard in self._standards
            if needle in standard.description.lower()
            or needle in standard.parent_category.lower()
            or needle in standard.domain.lower()
            or needle in standard.cluster.lower()
        ]

    # ------------------------------------------------------------------
    # subskills
    # ------------------------------------------------------------------
    @property
    def subskills(self) -> List[Subskill]:
        return list(self._subskills)

    def add_subskill(self, subskill: Subskill) -> None:
        self._subskills.append(subskill)
        standard = self.get_standard(subskill.standard_id)
        if standard is not None and subskill.id not in standard.subskill_ids:
            standard.subskill_ids.append(subskill.id)

    def add_subskills(self, subskills: Iterable[Subskill]) -> None:
        for subskill in subskills:
            self.add_subskill(subskill)

    def get_subskill(self, subskill_id: str) -> Optional[Subskill]:
        for subskill in self._subskills:
            if subskill.id == subskill_id:
                return subskill
        return None

    def update_subskill(self, subskill_id: str, **updates: Any) -> bool:
        """Apply a partial update through schema validation.

        Returns False when the subskill is absent or the result fails
        validation. Moving a subskill to another standard moves its id between
        the standards' ``subskill_ids``.
        """

        for index, subskill in enumerate(self._subskills):
            if subskill.id != subskill_id:
                continue
            updates.pop("id", None)
            try:
                updated = Subskill.model_validate({**subskill.model_dump(), **updates})
            except ValidationError as exc:
                logger.warning("Rejected update for subskill %s: %s", subskill_id, exc)
                return False
            if updated.standard_id != subskill.standard_id:
                previous = self.get_standard(subskill.standard_id)
                if previous is not None:
                    previous.subskill_ids = [ref for ref in previous.subskill_ids if ref != subskill_id]
                owner = self.get_standard(updated.standard_id)
                if owner is not None and subskill_id not in owner.subskill_ids:
                    owner.subskill_ids.append(subskill_id)
            self._subskills[index] = updated
            return True
        return False

    def delete_subskill(self, subskill_id: str) -> bool:
        """Remove a subskill and every reference to it. Returns False if absent."""

        index = next(
            (pos for pos, subskill in enumerate(self._subskills) if subskill.id == subskill_id),
            None,
        )
        if index is None:
            return False

        for standard in self._standards:
            if subskill_id in standard.subskill_ids:
                standard.subskill_ids = [ref for ref in standard.subskill_ids if ref != subskill_id]
        for item in self._items:
            if subskill_id in item.subskill_ids:
                item.subskill_ids = [ref for ref in item.subskill_ids if ref != subskill_id]
        for subskill in self._subskills:
            if subskill_id in subskill.prerequisites:
                subskill.prerequisites = [ref for ref in subskill.prerequisites if ref != subskill_id]
            if subskill_id in subskill.related_subskills:
                subskill.related_subskills = [
                    ref for ref in subskill.related_subskills if ref != subskill_id
                ]

        del self._subskills[index]
        logger.debug("Deleted subskill %s", subskill_id)
        return True

    def subskills_by_standard(self, standard_id: str) -> List[Subskill]:
        owned = [subskill for subskill in self._subskills if subskill.standard_id == standard_id]
        return sorted(owned, key=lambda subskill: subskill.sequence)

    def subskills_by_domain(self, domain: str) -> List[Subskill]:
        standard_ids = {standard.id for standard in self.standards_by_domain(domain)}
        return [subskill for subskill in self._subskills if subskill.standard_id in standard_ids]

    def subskills_by_difficulty(self, difficulty: str) -> List[Subskill]:
        return [subskill for subskill in self._subskills if subskill.difficulty == difficulty]

    def subskills_by_status(self, status: str) -> List[Subskill]:
        return [subskill for subskill in self._subskills if subskill.status == status]

    def search_subskills(self, query: str) -> List[Subskill]:
        needle = query.lower()
        return [
            subskill
            for subskill in self._subskills
            if needle in subskill.title.lower()
            or needle in subskill.description.lower()
            or any(needle in keyword.lower() for keyword in subskill.keywords)
        ]

    def subskill_relationships(self) -> Dict[str, Dict[str, List[str]]]:
        """Prerequisite and related-subskill edges keyed by subskill id.

        Edges are reported as stored; cycles are not detected.
        """

        return {
            subskill.id: {
                "prerequisites": list(subskill.prerequisites),
                "related": list(subskill.related_subskills),
            }
            for subskill in self._subskills
        }

    # ------------------------------------------------------------------
    # items
    # ------------------------------------------------------------------
    @property
    def items(self) -> List[Item]:
        return list(self._items)

    def add_item(self, item: Item) -> None:
        self._items.append(item)

    def add_items(self, items: Iterable[Item]) -> None:
        self._items.extend(items)

    def get_item(self, item_id: str) -> Optional[Item]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def update_item(self, item_id: str, **updates: Any) -> bool:
        """Partial update; metadata is merged and ``last_modified`` refreshed.

        Returns False when the item is absent or the result fails validation.
        """

        for index, item in enumerate(self._items):
            if item.id != item_id:
                continue
            updates.pop("id", None)
            metadata_updates = updates.pop("metadata", None) or {}
            if isinstance(metadata_updates, ItemMetadata):
                metadata_updates = metadata_updates.model_dump(exclude_unset=True)
            metadata = {
                **item.metadata.model_dump(),
                **metadata_updates,
                "last_modified": datetime.now(timezone.utc),
            }
            try:
                self._items[index] = Item.model_validate({**item.model_dump(), **updates, "metadata": metadata})
            except ValidationError as exc:
                logger.warning("Rejected update for item %s: %s", item_id, exc)
                return False
            return True
        return False

    def remove_item(self, item_id: str) -> bool:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                del self._items[index]
                return True
        return False

    def assign_subskills_to_item(self, item_id: str, subskill_ids: Sequence[str]) -> bool:
        item = self.get_item(item_id)
        if item is None:
            return False
        item.subskill_ids = list(subskill_ids)
        return True

    def items_by_subskill(self, subskill_id: str) -> List[Item]:
        return [item for item in self._items if subskill_id in item.subskill_ids]

    def clear_items(self) -> None:
        self._items = []

    def clear_all(self) -> None:
        self._standards = []
        self._subskills = []
        self._items = []

    # ------------------------------------------------------------------
    # filtering & statistics
    # ------------------------------------------------------------------
    def filter_items(self, filters: ItemFilter) -> List[Item]:
        results = list(self._items)

        if filters.grade_levels:
            standard_ids = {
                standard.id for standard in self._standards if standard.grade_level in filters.grade_levels
            }
            results = [item for item in results if item.standard_id in standard_ids]
        if filters.domains:
            standard_ids = {
                standard.id for standard in self._standards if standard.domain in filters.domains
            }
            results = [item for item in results if item.standard_id in standard_ids]
        if filters.difficulties:
            results = [item for item in results if item.difficulty in filters.difficulties]
        if filters.item_types:
            results = [item for item in results if item.type in filters.item_types]
        if filters.keywords:
            needles = [keyword.lower() for keyword in filters.keywords]
            results = [item for item in results if _matches_keywords(item, needles)]
        if filters.calculator_allowed is not None:
            results = [
                item
                for item in results
                if item.metadata.calculator_allowed == filters.calculator_allowed
            ]
        if filters.max_time is not None:
            results = [
                item for item in results if item.metadata.estimated_time_minutes <= filters.max_time
            ]
        if filters.subskill_ids:
            wanted = set(filters.subskill_ids)
            results = [item for item in results if wanted.intersection(item.subskill_ids)]
        if filters.subskill_status:
            status_ids = {
                subskill.id
                for subskill in self._subskills
                if subskill.status in filters.subskill_status
            }
            results = [item for item in results if status_ids.intersection(item.subskill_ids)]
        return results

    def statistics(self) -> Dict[str, Any]:
        items_by_grade: Dict[str, int] = {}
        items_by_domain: Dict[str, int] = {}
        for standard in self._standards:
            items_by_grade.setdefault(standard.grade_level, 0)
            items_by_domain.setdefault(standard.domain, 0)

        standards_by_id = {standard.id: standard for standard in self._standards}
        items_by_difficulty = {level: 0 for level in DIFFICULTY_LEVELS}
        items_by_type: Dict[str, int] = {}
        for item in self._items:
            standard = standards_by_id.get(item.standard_id)
            if standard is not None:
                items_by_grade[standard.grade_level] += 1
                items_by_domain[standard.domain] += 1
            items_by_difficulty[item.difficulty] += 1
            items_by_type[item.type] = items_by_type.get(item.type, 0) + 1

        average = 0.0
        if self._items:
            average = sum(DIFFICULTY_LEVELS.index(item.difficulty) + 1 for item in self._items) / len(
                self._items
            )

        analysis = self.analysis()
        with_subskills = sum(1 for item in self._items if item.subskill_ids)
        return {
            "totalItems": len(self._items),
            "itemsByGrade": items_by_grade,
            "itemsByDifficulty": items_by_difficulty,
            "itemsByType": items_by_type,
            "itemsByDomain": items_by_domain,
            "averageDifficulty": average,
            "subskillStats": {
                "totalSubskills": analysis.total_subskills,
                "subskillsByDomain": dict(analysis.subskills_by_domain),
                "subskillsByStatus": {
                    status: len(self.subskills_by_status(status)) for status in _SUBSKILL_STATUSES
                },
                "subskillsByDifficulty": dict(analysis.coverage_by_difficulty),
                "averageSubskillsPerStandard": analysis.average_subskills_per_standard,
                "itemsWithSubskills": with_subskills,
                "itemsWithoutSubskills": len(self._items) - with_subskills,
            },
        }

    # ------------------------------------------------------------------
    # core delegates
    # ------------------------------------------------------------------
    def organize(self) -> Hierarchy:
        return organize(self._standards, self._items, self._subskills)

    def analysis(self) -> coverage.SubskillAnalysis:
        return coverage.analyze_subskills(self._standards, self._subskills, self._items)

    def coverage_gaps(
        self, *, low_coverage_threshold: int = coverage.DEFAULT_LOW_COVERAGE_THRESHOLD
    ) -> coverage.CoverageGaps:
        return coverage.coverage_gaps(
            self._standards,
            self._subskills,
            self._items,
            low_coverage_threshold=low_coverage_threshold,
        )

    def validate(self) -> validation.ValidationReport:
        return validation.validate_subskill_data(self._standards, self._subskills)

    def validate_all(self) -> validation.ValidationReport:
        return validation.validate_item_bank(self._standards, self._subskills, self._items)

    def auto_assign_subskills(
        self,
        item_ids: Optional[Iterable[str]] = None,
        *,
        min_score: Optional[float] = None,
    ) -> List[matching.MatchResult]:
        """Overwrite item subskill links with their best matches.

        ``item_ids`` restricts the run to those items; by default every item
        is considered.
        """

        targets = self._items
        if item_ids is not None:
            wanted = set(item_ids)
            targets = [item for item in self._items if item.id in wanted]

        results = matching.auto_assign(
            targets,
            {standard.id: standard for standard in self._standards},
            self.subskills_by_standard,
            min_score=matching.DEFAULT_MIN_SCORE if min_score is None else min_score,
        )
        logger.info("Auto-assigned subskills for %d of %d items", len(results), len(targets))
        return results

    # ------------------------------------------------------------------
    # generation
    # ------------------------------------------------------------------
    def generate_subskills_for_standard(
        self,
        standard_id: str,
        generator: SubskillGenerator,
        *,
        target_count: int = DEFAULT_SUBSKILL_COUNT,
        use_ai: bool = True,
        custom_instructions: Optional[str] = None,
    ) -> SubskillGenerationResult:
        standard = self.get_standard(standard_id)
        if standard is None:
            return SubskillGenerationResult(success=False, error=f"Standard {standard_id} not found")

        request = SubskillGenerationRequest.for_standard(
            standard, target_count=target_count, custom_instructions=custom_instructions
        )
        result = generator.generate(request, use_ai=use_ai)
        if result.success:
            self.add_subskills(result.subskills)
        return result

    def generate_subskills_batch(
        self,
        standard_ids: Sequence[str],
        generator: SubskillGenerator,
        *,
        target_count: int = DEFAULT_SUBSKILL_COUNT,
        use_ai: bool = True,
        delay_seconds: float = 0.1,
        progress: Optional[Callable[[int, int], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> List[SubskillGenerationResult]:
        requests = []
        for standard_id in standard_ids:
            standard = self.get_standard(standard_id)
            if standard is None:
                logger.debug("Skipping generation for unknown standard %s", standard_id)
                continue
            requests.append(SubskillGenerationRequest.for_standard(standard, target_count=target_count))

        results = generator.generate_batch(
            requests,
            use_ai=use_ai,
            delay_seconds=delay_seconds,
            progress=progress,
            sleep=sleep,
        )
        succeeded = 0
        for result in results:
            if result.success:
                self.add_subskills(result.subskills)
                succeeded += 1
        logger.info("Generated subskills for %d of %d standards", succeeded, len(requests))
        return results

    # ------------------------------------------------------------------
    # snapshots
    # ------------------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "standards": [standard.to_json_dict() for standard in self._standards],
            "subskills": [subskill.to_json_dict() for subskill in self._subskills],
            "items": [item.to_json_dict() for item in self._items],
        }

    def to_json(self, path: str | Path) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as fh:
            json.dump(self.to_dict(), fh, indent=2, ensure_ascii=False)
        logger.info(
            "Saved item bank to %s (%d standards, %d subskills, %d items)",
            target,
            len(self._standards),
            len(self._subskills),
            len(self._items),
        )
        return target

    @classmethod
    def from_dict(cls, raw: Any) -> "ItemBank":
        if not isinstance(raw, dict):
            raise ItemBankLoadError("Item bank root must be a JSON object")

        collections: Dict[str, list] = {}
        for key in ("standards", "subskills", "items"):
            value = raw.get(key)
            if value is None:
                value = []
            if not isinstance(value, list):
                raise ItemBankLoadError(f"Item bank '{key}' must be a JSON list")
            collections[key] = value

        try:
            standards = [Standard.model_validate(entry) for entry in collections["standards"]]
            subskills = [Subskill.model_validate(entry) for entry in collections["subskills"]]
            items = [Item.model_validate(entry) for entry in collections["items"]]
        except ValidationError as exc:
            raise ItemBankLoadError(f"Invalid item bank record: {exc}") from exc

        return cls(standards, subskills, items)

    @classmethod
    def from_json(cls, path: str | Path) -> "ItemBank":
        source = Path(path)
        if not source.exists():
            raise ItemBankLoadError(f"Item bank file not found: {source}")

        try:
            with source.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ItemBankLoadError(f"Item bank file is not valid JSON: {exc}") from exc

        bank = cls.from_dict(raw)
        logger.info(
            "Loaded item bank from %s (%d standards, %d subskills, %d items)",
            source,
            len(bank._standards),
            len(bank._subskills),
            len(bank._items),
        )
        return bank


def _matches_keywords(item: Item, needles: Sequence[str]) -> bool:
    title = item.title.lower()
    question = item.question.lower()
    tags = [keyword.lower() for keyword in item.metadata.keywords]
    return any(
        needle in title or needle in question or any(needle in tag for tag in tags)
        for needle in needles
    )
