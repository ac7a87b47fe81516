import pytest

from engines.coverage import analyze_subskills, coverage_gaps, gaps_from_hierarchy
from hierarchy import organize
from schemas import Standard, Subskill


def test_analyze_subskills_counts(sample_collections):
    standards, subskills, items = sample_collections
    analysis = analyze_subskills(standards, subskills, items)

    assert analysis.total_subskills == 3
    assert analysis.subskills_by_standard == {"std_1": 2, "std_2": 0, "std_3": 1}
    assert analysis.subskills_by_domain == {"Algebra": 2, "Geometry": 1}
    # std_2 has none and is left out of the mean
    assert analysis.average_subskills_per_standard == pytest.approx(1.5)
    assert analysis.coverage_by_difficulty == {
        "beginning": 1,
        "developing": 1,
        "proficient": 1,
        "advanced": 0,
    }
    assert analysis.items_by_subskill == {"ss_1a": 1, "ss_1b": 0, "ss_3a": 0}
    assert analysis.subskills_without_items == ["ss_1b", "ss_3a"]


def test_coverage_gaps_flags_low_algebra(sample_collections):
    standards, subskills, items = sample_collections
    gaps = coverage_gaps(standards, subskills, items)

    assert gaps.standards_without_subskills == ["std_2"]
    assert gaps.subskills_without_items == ["ss_1b", "ss_3a"]
    assert "Algebra" in gaps.domains_with_low_coverage
    assert gaps.difficulty_imbalances["Algebra"] == ["beginning", "advanced"]
    assert gaps.difficulty_imbalances["Geometry"] == ["developing", "proficient", "advanced"]
    assert gaps.has_gaps


def test_low_coverage_threshold_is_configurable(sample_collections):
    standards, subskills, items = sample_collections
    gaps = coverage_gaps(standards, subskills, items, low_coverage_threshold=2)
    assert gaps.domains_with_low_coverage == ["Geometry"]


def test_balanced_domain_reports_no_imbalance():
    standard = Standard(id="s", domain="Algebra", subskill_ids=["a", "b", "c", "d"])
    subskills = [
        Subskill(id=ss_id, standard_id="s", sequence=pos + 1, difficulty=level)
        for pos, (ss_id, level) in enumerate(
            zip("abcd", ["beginning", "developing", "proficient", "advanced"])
        )
    ]
    gaps = coverage_gaps([standard], subskills, [], low_coverage_threshold=4)
    assert gaps.difficulty_imbalances == {}
    assert gaps.domains_with_low_coverage == []
    assert gaps.standards_without_subskills == []


def test_gaps_from_hierarchy_matches_flat_report(sample_collections):
    standards, subskills, items = sample_collections
    flat = coverage_gaps(standards, subskills, items)
    tree = gaps_from_hierarchy(organize(standards, items, subskills))

    assert tree.standards_without_subskills == flat.standards_without_subskills
    assert sorted(tree.subskills_without_items) == sorted(flat.subskills_without_items)
    assert sorted(tree.domains_with_low_coverage) == sorted(flat.domains_with_low_coverage)
    assert tree.difficulty_imbalances == flat.difficulty_imbalances


def test_empty_bank_has_no_gaps():
    gaps = coverage_gaps([], [], [])
    assert not gaps.has_gaps
    assert gaps.to_dict() == {
        "standardsWithoutSubskills": [],
        "subskillsWithoutItems": [],
        "domainsWithLowCoverage": [],
        "difficultyImbalances": {},
    }
