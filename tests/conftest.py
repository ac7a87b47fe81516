import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _sample_collections():
    from schemas import Item, Standard, Subskill

    standards = [
        Standard(
            id="std_1",
            code="A.REI.1",
            parent_category="Reasoning with Equations and Inequalities",
            description="Solve linear equations and inequalities in one variable",
            grade_level="9",
            domain="Algebra",
            cluster="Reasoning Equations Inequalities",
            subskill_ids=["ss_1a", "ss_1b"],
        ),
        Standard(
            id="std_2",
            code="A.SSE.1",
            parent_category="Seeing Structure in Expressions",
            description="Interpret expressions that represent a quantity",
            grade_level="9",
            domain="Algebra",
            cluster="Reasoning Equations Inequalities",
        ),
        Standard(
            id="std_3",
            code="G.SRT.8",
            parent_category="Similarity, Right Triangles, and Trigonometry",
            description="Use right triangles to solve applied problems",
            grade_level="11",
            domain="Geometry",
            cluster="Similarity",
            subskill_ids=["ss_3a"],
        ),
    ]
    subskills = [
        Subskill(
            id="ss_1a",
            standard_id="std_1",
            title="Solve linear equations",
            description="solve linear equations for x",
            sequence=1,
            keywords=["equations", "solve"],
            difficulty="developing",
        ),
        Subskill(
            id="ss_1b",
            standard_id="std_1",
            title="Graph linear inequalities",
            description="graph the solution set of a linear inequality",
            sequence=2,
            keywords=["inequality", "graph"],
            difficulty="proficient",
        ),
        Subskill(
            id="ss_3a",
            standard_id="std_3",
            title="Find triangle area",
            description="compute the area of a right triangle from its legs",
            sequence=1,
            keywords=["triangle", "area"],
            difficulty="beginning",
        ),
    ]
    items = [
        Item(
            id="item_1",
            standard_id="std_1",
            subskill_ids=["ss_1a"],
            difficulty="developing",
            title="Solve for x",
            question="Solve 2x+3=7 for x",
            correct_answer="2",
        ),
        Item(
            id="item_2",
            standard_id="std_3",
            difficulty="beginning",
            title="Right triangle area",
            question="Find the area of a right triangle with legs 3 and 4",
            correct_answer=6,
        ),
    ]
    return standards, subskills, items


@pytest.fixture
def sample_collections():
    """Fresh (standards, subskills, items) lists for one test."""
    return _sample_collections()


@pytest.fixture
def sample_bank():
    from item_bank import ItemBank

    standards, subskills, items = _sample_collections()
    return ItemBank(standards, subskills, items)


@pytest.fixture
def bank_file(tmp_path, sample_bank):
    path = tmp_path / "item-bank.json"
    sample_bank.to_json(path)
    return path
