import csv
import io
import json
import xml.etree.ElementTree as ET
from datetime import date

import pytest

from export_manager import (
    ExportError,
    ExportOptions,
    export,
    export_standards_csv,
    generate_filename,
    save_export,
)
from item_bank import ItemBank, ItemFilter
from schemas import Item, Standard


@pytest.fixture
def mc_bank(sample_bank: ItemBank) -> ItemBank:
    sample_bank.add_item(
        Item(
            id="item_mc",
            standard_id="std_1",
            type="multiple_choice",
            title="Pick x",
            question="If 2x = 8, what is x?",
            correct_answer="4",
            distractors=["2", "6", "16"],
            explanation="Divide both sides by 2 & check.",
        )
    )
    return sample_bank


def test_json_export_with_filter(mc_bank: ItemBank):
    options = ExportOptions(format="json", filter=ItemFilter(domains=["Geometry"]))
    data = json.loads(export(mc_bank, options))

    assert data["metadata"]["totalItems"] == 1
    assert [s["id"] for s in data["standards"]] == ["std_3"]
    assert data["items"][0]["correctAnswer"] == 6


def test_json_export_redacts_answers(mc_bank: ItemBank):
    for include_metadata in (True, False):
        options = ExportOptions(include_answers=False, include_metadata=include_metadata)
        data = json.loads(export(mc_bank, options))
        for item in data["items"]:
            assert "correctAnswer" not in item
            assert "distractors" not in item


def test_json_export_without_metadata_strips_fields(mc_bank: ItemBank):
    data = json.loads(export(mc_bank, ExportOptions(include_metadata=False)))
    assert "metadata" not in data["items"][0]
    assert set(data["standards"][0]) == {"id", "code", "gradeLevel", "domain", "cluster", "description"}


def test_csv_export(mc_bank: ItemBank):
    rows = list(csv.reader(io.StringIO(export(mc_bank, ExportOptions(format="csv", include_answers=False)))))
    assert rows[0][0] == "ID"
    assert len(rows) == 4
    assert {row[6] for row in rows[1:]} == {"REDACTED"}
    assert rows[3][7] == "Divide both sides by 2 & check."


def test_standards_csv_quotes_commas():
    text = export_standards_csv([Standard(id="s", description="one, two")])
    rows = list(csv.reader(io.StringIO(text)))
    assert rows[1][-1] == "one, two"


def test_qti_export_is_well_formed(mc_bank: ItemBank):
    xml_text = export(mc_bank, ExportOptions(format="qti"))
    root = ET.fromstring(xml_text.split("\n", 1)[1])
    items = [el for el in root.iter() if el.tag.endswith("assessmentItem")]
    assert len(items) == 3
    choices = [el.text for el in root.iter() if el.tag.endswith("simpleChoice")]
    assert choices == ["4", "2", "6", "16"]
    values = [el.text for el in root.iter() if el.tag.endswith("value")]
    assert values == ["2", "6", "choice_0"]


def test_qti_export_without_answers_has_no_correct_response(mc_bank: ItemBank):
    xml_text = export(mc_bank, ExportOptions(format="qti", include_answers=False))
    assert "correctResponse" not in xml_text


def test_moodle_export(mc_bank: ItemBank):
    root = ET.fromstring(export(mc_bank, ExportOptions(format="moodle")).split("\n", 1)[1])
    questions = root.findall("question")
    assert [q.get("type") for q in questions] == ["shortanswer", "shortanswer", "multichoice"]
    answers = questions[2].findall("answer")
    assert [a.get("fraction") for a in answers] == ["100", "0", "0", "0"]
    assert questions[2].find("correctfeedback/text").text == "Divide both sides by 2 & check."


def test_moodle_export_without_answers(mc_bank: ItemBank):
    root = ET.fromstring(
        export(mc_bank, ExportOptions(format="moodle", include_answers=False)).split("\n", 1)[1]
    )
    questions = root.findall("question")
    assert questions[0].findall("answer") == []
    assert {a.get("fraction") for a in questions[2].findall("answer")} == {"0"}
    assert not questions[2].find("correctfeedback/text").text
    assert "Divide both sides" not in ET.tostring(root, encoding="unicode")


def test_unknown_format_raises(sample_bank: ItemBank):
    with pytest.raises(ExportError):
        export(sample_bank, ExportOptions(format="pdf"))


def test_generate_filename():
    day = date(2024, 5, 1)
    assert generate_filename("json", today=day) == "math_item_bank_2024-05-01.json"
    assert generate_filename("qti", today=day) == "math_item_bank_qti_2024-05-01.xml"
    assert generate_filename("csv", include_date=False) == "math_item_bank.csv"


def test_save_export(tmp_path):
    target = save_export("hello", tmp_path / "nested" / "out.txt")
    assert target.read_text(encoding="utf-8") == "hello"
