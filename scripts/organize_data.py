"""Organize an item-bank snapshot into a grade hierarchy and write a coverage report."""
from __future__ import annotations

import argparse
import csv
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Sequence

from pydantic import ValidationError

from env_validation import EnvironmentError, Settings
from hierarchy import coverage_statistics
from item_bank import ItemBank, ItemBankLoadError
from report import generate_summary_report
from schemas import Subskill

logger = logging.getLogger(__name__)

_LIST_COLUMNS = ("exemplarIds", "prerequisites", "relatedSubskills", "keywords")


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--input",
        type=str,
        default=settings.item_bank_path,
        help=f"Item bank snapshot to organize (default: {settings.item_bank_path})",
    )
    parser.add_argument(
        "--subskills-csv",
        type=str,
        default=None,
        help="Optional CSV of extra subskills (list columns separated by ';')",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="organized-item-bank.json",
        help="Where to write the organized hierarchy (default: organized-item-bank.json)",
    )
    parser.add_argument(
        "--report",
        type=str,
        default="organization-report.md",
        help="Where to write the markdown report (default: organization-report.md)",
    )
    parser.add_argument(
        "--auto-assign",
        action="store_true",
        help="Re-link items to their best-matching subskills before organizing",
    )
    parser.add_argument(
        "--min-score",
        type=float,
        default=settings.match_threshold,
        help=f"Minimum match score for --auto-assign (default: {settings.match_threshold})",
    )
    return parser


def load_subskills_csv(path: str | Path) -> List[Subskill]:
    subskills: List[Subskill] = []
    with Path(path).open("r", encoding="utf-8", newline="") as fh:
        for index, row in enumerate(csv.DictReader(fh), start=1):
            record: Dict[str, object] = {key.strip(): (value or "").strip() for key, value in row.items() if key}
            for column in _LIST_COLUMNS:
                raw = str(record.get(column, ""))
                record[column] = [part.strip() for part in raw.split(";") if part.strip()]
            if not str(record.get("sequence", "")).isdigit():
                record["sequence"] = index
            if not str(record.get("estimatedTimeMinutes", "")).isdigit():
                record["estimatedTimeMinutes"] = 20
            for key in ("difficulty", "generatedBy", "status", "qualityScore"):
                if record.get(key) == "":
                    record.pop(key)
            subskills.append(Subskill.model_validate(record))
    return subskills


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        settings = Settings.from_env()
    except EnvironmentError as exc:
        logger.error("%s", exc)
        return 2
    args = _build_parser(settings).parse_args(argv)

    try:
        bank = ItemBank.from_json(args.input)
    except ItemBankLoadError as exc:
        logger.error("%s", exc)
        return 2

    if args.subskills_csv:
        try:
            extra = load_subskills_csv(args.subskills_csv)
        except (OSError, ValidationError) as exc:
            logger.error("Could not read subskills CSV %s: %s", args.subskills_csv, exc)
            return 2
        bank.add_subskills(extra)
        logger.info("Loaded %d subskills from %s", len(extra), args.subskills_csv)

    if args.auto_assign:
        bank.auto_assign_subskills(min_score=args.min_score)

    hierarchy = bank.organize()
    stats = coverage_statistics(hierarchy)
    meta = hierarchy.metadata
    logger.info(
        "Organized %d grades, %d standards, %d items, %d subskills (overall coverage %d%%)",
        meta.total_grades,
        meta.total_standards,
        meta.total_items,
        meta.total_subskills,
        stats.overall_coverage,
    )

    organized = {
        "hierarchy": hierarchy.to_dict(),
        "statistics": stats.to_dict(),
        "metadata": {
            **meta.to_dict(),
            "organizedAt": datetime.now(timezone.utc).isoformat(),
            "sourceFiles": [args.input] + ([args.subskills_csv] if args.subskills_csv else []),
        },
    }
    Path(args.output).write_text(json.dumps(organized, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    logger.info("Saved organized data to %s", args.output)

    Path(args.report).write_text(generate_summary_report(hierarchy, stats), encoding="utf-8")
    logger.info("Saved summary report to %s", args.report)

    report = bank.validate_all()
    for warning in report.warnings:
        logger.warning("%s", warning)
    if not report.is_valid:
        for error in report.errors:
            logger.error("%s", error)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
