from datetime import datetime, timezone

from hierarchy import coverage_statistics, organize
from report import generate_summary_report, recommendations


def test_summary_report_tables(sample_collections):
    standards, subskills, items = sample_collections
    hierarchy = organize(standards, items, subskills)
    stats = coverage_statistics(hierarchy)

    text = generate_summary_report(
        hierarchy, stats, generated_at=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    )

    assert text.startswith("# Math Item Bank Organization Report\n")
    assert "Generated on: 2024-01-02 03:04:05 UTC" in text
    assert "| 9 | 2 | 1 | 2 | 50% |" in text
    # item_2 is not linked to any subskill, so it does not reach the tree
    assert "| 11 | 1 | 0 | 1 | 0% |" in text
    assert "| Algebra | 2 | 1 | 2 | 50% |" in text
    assert "- **Developing**: 1 items" in text
    assert "**Overall coverage is below 80%**" in text


def test_recommendations_for_empty_bank_do_not_divide_by_zero():
    stats = coverage_statistics(organize([], [], []))
    assert recommendations(stats) == [
        "**Overall coverage is below 80%**. Consider generating more items for subskills without items."
    ]
