"""Build an item bank from a standards CSV: subskills, template items and subskill links."""
from __future__ import annotations

import argparse
import logging
import random
from typing import Optional, Sequence

from engines.item_generator import TemplateItemGenerator
from engines.subskill_generator import DEFAULT_SUBSKILL_COUNT, SubskillGenerator
from env_validation import EnvironmentError, Settings, validate_environment
from export_manager import EXPORT_FORMATS, ExportError, ExportOptions, export, generate_filename, save_export
from item_bank import ItemBank
from llm_client import LLMClient, LLMConfig
from standards_parser import StandardsParseError, parse_standards_file

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("standards", type=str, help="Path to the standards CSV file")
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Snapshot path (default: ITEM_BANK_PATH or item-bank.json)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only process the first N standards",
    )
    parser.add_argument(
        "--subskills-per-standard",
        type=int,
        default=DEFAULT_SUBSKILL_COUNT,
        help=f"Subskills to generate per standard (default: {DEFAULT_SUBSKILL_COUNT})",
    )
    parser.add_argument(
        "--items-per-standard",
        type=int,
        default=3,
        help="Template items per standard, spread over its subskills (default: 3)",
    )
    parser.add_argument(
        "--use-ai",
        action="store_true",
        help="Generate subskills through the configured LLM endpoint (LLM_API_URL)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for template items")
    parser.add_argument(
        "--export-format",
        choices=EXPORT_FORMATS,
        default=None,
        help="Also export the bank in this format",
    )
    parser.add_argument("--export-path", type=str, default=None, help="Export target path")
    parser.add_argument(
        "--no-answers",
        action="store_true",
        help="Redact answers from the export",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    args = _build_parser().parse_args(argv)

    try:
        validate_environment()
        settings = Settings.from_env()
        client: Optional[LLMClient] = LLMClient(LLMConfig.from_env()) if args.use_ai else None
        standards = parse_standards_file(args.standards)
    except (EnvironmentError, StandardsParseError) as exc:
        logger.error("%s", exc)
        return 2

    if args.limit is not None:
        standards = standards[: max(0, args.limit)]

    bank = ItemBank(standards)
    results = bank.generate_subskills_batch(
        [standard.id for standard in standards],
        SubskillGenerator(client),
        target_count=args.subskills_per_standard,
        use_ai=args.use_ai,
        delay_seconds=settings.generation_delay_seconds,
    )
    for result in results:
        if not result.success:
            logger.warning("Subskill generation failed: %s", result.error)

    items = TemplateItemGenerator(random.Random(args.seed))
    for standard in standards:
        for outcome in items.generate_items_for_subskills(
            standard,
            bank.subskills_by_standard(standard.id),
            count=args.items_per_standard,
            item_types=("multiple_choice", "true_false", "short_answer"),
        ):
            if outcome.success and outcome.item is not None:
                bank.add_item(outcome.item)

    unlinked = [item.id for item in bank.items if not item.subskill_ids]
    if unlinked:
        bank.auto_assign_subskills(unlinked, min_score=settings.match_threshold)
    logger.info(
        "Generated %d items, %d linked to subskills",
        len(bank.items),
        sum(1 for item in bank.items if item.subskill_ids),
    )
    bank.to_json(args.output or settings.item_bank_path)

    if args.export_format:
        options = ExportOptions(format=args.export_format, include_answers=not args.no_answers)
        try:
            save_export(export(bank, options), args.export_path or generate_filename(args.export_format))
        except ExportError as exc:
            logger.error("%s", exc)
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
