"""Serialize an item bank to JSON, CSV, QTI and Moodle XML."""
from __future__ import annotations

import csv
import io
import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from item_bank import ItemBank, ItemFilter
from schemas import Item, Standard

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("json", "csv", "qti", "moodle")
EXPORT_VERSION = "1.0"
REDACTED = "REDACTED"
QTI_NAMESPACE = "http://www.imsglobal.org/xsd/imsqti_v2p1"

_ITEM_CSV_HEADERS = (
    "ID",
    "Standard ID",
    "Type",
    "Difficulty",
    "Title",
    "Question",
    "Correct Answer",
    "Explanation",
    "Estimated Time (minutes)",
    "Calculator Allowed",
    "Keywords",
)
_STANDARD_CSV_HEADERS = ("ID", "Code", "Grade Level", "Domain", "Cluster", "Parent Category", "Description")


class ExportError(ValueError):
    """Raised for unsupported export formats or unwritable targets."""


@dataclass
class ExportOptions:
    format: str = "json"
    include_answers: bool = True
    include_metadata: bool = True
    filter: Optional[ItemFilter] = None


def _selected(bank: ItemBank, options: ExportOptions) -> tuple[List[Standard], List[Item]]:
    if options.filter is None:
        return bank.standards, bank.items
    items = bank.filter_items(options.filter)
    used = {item.standard_id for item in items}
    return [standard for standard in bank.standards if standard.id in used], items


def _item_payload(item: Item, options: ExportOptions) -> Dict[str, Any]:
    if options.include_metadata:
        payload = item.to_json_dict()
    else:
        payload = {
            "id": item.id,
            "standardId": item.standard_id,
            "type": item.type,
            "difficulty": item.difficulty,
            "title": item.title,
            "question": item.question,
            "explanation": item.explanation,
            "hints": list(item.hints),
            "correctAnswer": item.correct_answer,
        }
        if item.distractors is not None:
            payload["distractors"] = list(item.distractors)
    if not options.include_answers:
        payload.pop("correctAnswer", None)
        payload.pop("distractors", None)
    return payload


def _standard_payload(standard: Standard, options: ExportOptions) -> Dict[str, Any]:
    if options.include_metadata:
        return standard.to_json_dict()
    return {
        "id": standard.id,
        "code": standard.code,
        "gradeLevel": standard.grade_level,
        "domain": standard.domain,
        "cluster": standard.cluster,
        "description": standard.description,
    }


def export_json(bank: ItemBank, options: ExportOptions) -> str:
    standards, items = _selected(bank, options)
    document = {
        "metadata": {
            "exportedAt": datetime.now(timezone.utc).isoformat(),
            "version": EXPORT_VERSION,
            "totalItems": len(items),
            "totalStandards": len(standards),
            "includeAnswers": options.include_answers,
            "includeMetadata": options.include_metadata,
        },
        "standards": [_standard_payload(standard, options) for standard in standards],
        "items": [_item_payload(item, options) for item in items],
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def export_csv(items: Sequence[Item], options: ExportOptions) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(_ITEM_CSV_HEADERS)
    for item in items:
        writer.writerow(
            [
                item.id,
                item.standard_id,
                item.type,
                item.difficulty,
                item.title,
                item.question,
                str(item.correct_answer) if options.include_answers else REDACTED,
                item.explanation,
                item.metadata.estimated_time_minutes,
                str(item.metadata.calculator_allowed).lower(),
                "; ".join(item.metadata.keywords),
            ]
        )
    return buffer.getvalue()


def export_standards_csv(standards: Sequence[Standard]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(_STANDARD_CSV_HEADERS)
    for standard in standards:
        writer.writerow(
            [
                standard.id,
                standard.code,
                standard.grade_level,
                standard.domain,
                standard.cluster,
                standard.parent_category,
                standard.description,
            ]
        )
    return buffer.getvalue()


def _choices(item: Item) -> List[str]:
    return [str(item.correct_answer)] + [str(choice) for choice in item.distractors or []]


def _tostring(root: ET.Element) -> str:
    ET.indent(root)
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode")


def _qti_item(parent: ET.Element, item: Item, include_answers: bool) -> None:
    node = ET.SubElement(parent, "assessmentItem", identifier=f"item_{item.id}", title=item.title)
    is_choice = item.type == "multiple_choice" and bool(item.distractors)

    declaration = ET.SubElement(
        node,
        "responseDeclaration",
        identifier="RESPONSE",
        cardinality="single",
        baseType="identifier" if is_choice else "string",
    )
    if include_answers:
        correct = ET.SubElement(declaration, "correctResponse")
        ET.SubElement(correct, "value").text = "choice_0" if is_choice else str(item.correct_answer)

    body = ET.SubElement(node, "itemBody")
    ET.SubElement(body, "p").text = item.question
    if is_choice:
        interaction = ET.SubElement(
            body, "choiceInteraction", responseIdentifier="RESPONSE", shuffle="true", maxChoices="1"
        )
        for index, choice in enumerate(_choices(item)):
            simple = ET.SubElement(interaction, "simpleChoice", identifier=f"choice_{index}", fixed="false")
            simple.text = choice


def export_qti(items: Sequence[Item], options: ExportOptions) -> str:
    root = ET.Element("assessmentTest", xmlns=QTI_NAMESPACE, identifier="mathTest", title="Math Item Bank")
    part = ET.SubElement(
        root, "testPart", identifier="mathTestPart", navigationMode="linear", submissionMode="individual"
    )
    section = ET.SubElement(part, "assessmentSection", identifier="section_1", title="Items", visible="true")
    for item in items:
        _qti_item(section, item, options.include_answers)
    return _tostring(root)


def _moodle_text(parent: ET.Element, tag: str, text: str, **attrs: str) -> ET.Element:
    node = ET.SubElement(parent, tag, **attrs)
    ET.SubElement(node, "text").text = text
    return node


def _moodle_answer(parent: ET.Element, text: str, fraction: str, feedback: str) -> None:
    answer = ET.SubElement(parent, "answer", fraction=fraction, format="moodle_auto_format")
    ET.SubElement(answer, "text").text = text
    _moodle_text(answer, "feedback", feedback)


def _moodle_item(parent: ET.Element, item: Item, include_answers: bool) -> None:
    is_choice = item.type == "multiple_choice" and bool(item.distractors)
    question = ET.SubElement(parent, "question", type="multichoice" if is_choice else "shortanswer")
    _moodle_text(question, "name", item.title)
    _moodle_text(question, "questiontext", item.question, format="html")
    ET.SubElement(question, "defaultgrade").text = "1.0000000"
    ET.SubElement(question, "penalty").text = "0.3333333"
    ET.SubElement(question, "hidden").text = "0"

    if is_choice:
        ET.SubElement(question, "single").text = "true"
        ET.SubElement(question, "shuffleanswers").text = "true"
        ET.SubElement(question, "answernumbering").text = "abc"
        _moodle_text(question, "correctfeedback", item.explanation if include_answers else "")
        correct = str(item.correct_answer)
        for choice in _choices(item):
            is_correct = choice == correct
            fraction = "100" if include_answers and is_correct else "0"
            feedback = item.explanation if include_answers and is_correct else "Incorrect"
            _moodle_answer(question, choice, fraction, feedback)
        return

    ET.SubElement(question, "usecase").text = "0"
    if include_answers:
        _moodle_answer(question, str(item.correct_answer), "100", item.explanation)


def export_moodle(items: Sequence[Item], options: ExportOptions) -> str:
    root = ET.Element("quiz")
    for item in items:
        _moodle_item(root, item, options.include_answers)
    return _tostring(root)


def export(bank: ItemBank, options: ExportOptions) -> str:
    """Render ``bank`` in ``options.format``."""

    fmt = options.format.lower()
    if fmt == "json":
        return export_json(bank, options)

    _, items = _selected(bank, options)
    if fmt == "csv":
        return export_csv(items, options)
    if fmt == "qti":
        return export_qti(items, options)
    if fmt == "moodle":
        return export_moodle(items, options)
    raise ExportError(f"Unsupported export format: {options.format}")


def generate_filename(fmt: str, *, include_date: bool = True, today: Optional[date] = None) -> str:
    extension = "xml" if fmt in ("qti", "moodle") else fmt
    stamp = (today or date.today()).isoformat() if include_date else ""
    suffix = f"_{fmt}" if fmt in ("qti", "moodle") else ""
    return f"math_item_bank{suffix}_{stamp}.{extension}" if stamp else f"math_item_bank{suffix}.{extension}"


def save_export(content: str, path: str | Path) -> Path:
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise ExportError(f"Could not write export to {target}: {exc}") from exc
    logger.info("Wrote export to %s", target)
    return target
