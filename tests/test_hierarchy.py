from hierarchy import coverage_statistics, group_by, organize
from schemas import Item, Standard, Subskill


def test_group_by_keeps_encounter_order():
    grouped = group_by(["apple", "avocado", "banana"], lambda word: word[0])
    assert list(grouped) == ["a", "b"]
    assert grouped["a"] == ["apple", "avocado"]


def test_two_algebra_standards_coverage(sample_collections):
    standards, subskills, items = sample_collections
    hierarchy = organize(standards, items, subskills)

    std_1 = hierarchy.find_standard("std_1")
    std_2 = hierarchy.find_standard("std_2")
    assert std_1.coverage_percentage == 50
    assert std_2.coverage_percentage == 0

    grade_9 = hierarchy.grades[0]
    assert grade_9.grade == "9"
    algebra = grade_9.domains[0]
    assert algebra.domain == "Algebra"
    assert algebra.total_subskills == 2
    assert algebra.total_standards == 2
    assert algebra.total_items == 1


def test_totals_are_sums_of_children(sample_collections):
    standards, subskills, items = sample_collections
    hierarchy = organize(standards, items, subskills)

    for grade in hierarchy.grades:
        assert grade.total_items == sum(domain.total_items for domain in grade.domains)
        assert grade.total_subskills == sum(domain.total_subskills for domain in grade.domains)
        for domain in grade.domains:
            assert domain.total_standards == sum(cluster.total_standards for cluster in domain.clusters)
            for cluster in domain.clusters:
                assert cluster.total_items == sum(node.total_items for node in cluster.standards)


def test_metadata_reflects_inputs(sample_collections):
    standards, subskills, items = sample_collections
    meta = organize(standards, items, subskills).metadata
    assert meta.total_grades == 2
    assert meta.total_standards == 3
    assert meta.total_items == 2
    assert meta.total_subskills == 3
    assert meta.grade_levels == ["9", "11"]
    assert meta.domains == ["Algebra", "Geometry"]


def test_organize_is_deterministic_and_leaves_inputs_alone(sample_collections):
    standards, subskills, items = sample_collections
    before = [standard.model_dump() for standard in standards]

    first = organize(standards, items, subskills).to_dict()
    second = organize(standards, items, subskills).to_dict()
    first["metadata"].pop("lastUpdated")
    second["metadata"].pop("lastUpdated")

    assert first == second
    assert [standard.model_dump() for standard in standards] == before


def test_item_linked_twice_within_standard_counts_once():
    standard = Standard(id="s", grade_level="9", domain="Algebra", subskill_ids=["a", "b"])
    subskills = [Subskill(id="a", standard_id="s"), Subskill(id="b", standard_id="s", sequence=2)]
    item = Item(id="i", standard_id="s", subskill_ids=["a", "b"])

    node = organize([standard], [item], subskills).find_standard("s")
    assert node.total_items == 1
    assert node.coverage_percentage == 100


def test_item_shared_by_two_standards_is_counted_in_each():
    standards = [
        Standard(id="s1", grade_level="9", domain="Algebra", cluster="C", subskill_ids=["a"]),
        Standard(id="s2", grade_level="9", domain="Algebra", cluster="C", subskill_ids=["b"]),
    ]
    subskills = [Subskill(id="a", standard_id="s1"), Subskill(id="b", standard_id="s2")]
    item = Item(id="shared", standard_id="s1", subskill_ids=["a", "b"])

    hierarchy = organize(standards, [item], subskills)
    cluster = hierarchy.grades[0].domains[0].clusters[0]
    # One physical item, counted once per standard it reaches.
    assert cluster.total_items == 2
    assert hierarchy.metadata.total_items == 1


def test_dangling_subskill_ids_are_skipped():
    standard = Standard(id="s", grade_level="9", subskill_ids=["ghost", "real"])
    subskills = [Subskill(id="real", standard_id="s")]

    node = organize([standard], [], subskills).find_standard("s")
    assert [child.subskill.id for child in node.subskills] == ["real"]
    assert node.coverage_percentage == 0


def test_blank_fields_are_grouped_as_unknown():
    standard = Standard(id="s", grade_level="  ", domain="", cluster="")
    hierarchy = organize([standard], [], [])
    grade = hierarchy.grades[0]
    assert grade.grade == "Unknown"
    assert grade.domains[0].domain == "Unknown"
    assert grade.domains[0].clusters[0].cluster == "Unknown"


def test_grades_follow_fixed_order():
    standards = [Standard(id=f"s{grade}", grade_level=grade) for grade in ["10", "K", "2", "Unknown"]]
    hierarchy = organize(standards, [], [])
    assert [grade.grade for grade in hierarchy.grades] == ["K", "2", "10", "Unknown"]


def test_domains_and_clusters_sorted_by_name():
    standards = [
        Standard(id="s1", grade_level="9", domain="Geometry", cluster="Zeta"),
        Standard(id="s2", grade_level="9", domain="Algebra", cluster="Beta"),
        Standard(id="s3", grade_level="9", domain="Algebra", cluster="Alpha"),
    ]
    grade = organize(standards, [], []).grades[0]
    assert [domain.domain for domain in grade.domains] == ["Algebra", "Geometry"]
    assert [cluster.cluster for cluster in grade.domains[0].clusters] == ["Alpha", "Beta"]


def test_coverage_percentage_rounds_half_up():
    ids = [f"ss{index}" for index in range(8)]
    standard = Standard(id="s", grade_level="9", subskill_ids=ids)
    subskills = [Subskill(id=ss_id, standard_id="s", sequence=pos + 1) for pos, ss_id in enumerate(ids)]
    item = Item(id="i", standard_id="s", subskill_ids=["ss0"])

    # 1 of 8 is 12.5%
    node = organize([standard], [item], subskills).find_standard("s")
    assert node.coverage_percentage == 13


def test_coverage_statistics(sample_collections):
    standards, subskills, items = sample_collections
    stats = coverage_statistics(organize(standards, items, subskills))

    # ss_1a covered, ss_1b and ss_3a not
    assert stats.overall_coverage == 33
    assert stats.coverage_for_grade("9") == 50
    assert stats.coverage_for_grade("11") == 0
    assert stats.coverage_for_domain("Algebra") == 50
    assert stats.coverage_for_domain("Nowhere") == 0
    assert stats.difficulty_distribution == {
        "beginning": 0,
        "developing": 1,
        "proficient": 0,
        "advanced": 0,
    }
    assert stats.to_dict()["overallCoverage"] == 33


def test_empty_input_yields_empty_hierarchy():
    hierarchy = organize([], [], [])
    assert hierarchy.grades == []
    assert hierarchy.metadata.total_grades == 0
    assert coverage_statistics(hierarchy).overall_coverage == 0


def test_to_dict_uses_camel_case(sample_collections):
    standards, subskills, items = sample_collections
    data = organize(standards, items, subskills).to_dict()
    standard_entry = data["grades"][0]["domains"][0]["clusters"][0]["standards"][0]
    assert set(standard_entry) >= {"standard", "subskills", "items", "totalItems", "coveragePercentage"}
    assert standard_entry["standard"]["gradeLevel"] == "9"
