"""Tests for tree building, descendant traversal and aggregation."""

import random

from clauditor.models import MonitorSummary, ProcessMetrics
from clauditor.tree import aggregate, build_tree, descendants_of, sort_by_total_cpu, summarize
from conftest import make_record


class TestBuildTree:
    """Tests for build_tree."""

    def test_children_in_observed_order(self):
        """Test children are listed in input order under their parent."""
        tree = build_tree([(1, 0), (10, 1), (12, 10), (11, 10)])

        assert tree == {0: [1], 1: [10], 10: [12, 11]}

    def test_unknown_parent_is_accepted(self):
        """Test a parent that is not itself in the table is still a key."""
        tree = build_tree([(50, 49)])

        assert tree == {49: [50]}

    def test_self_parent_ignored(self):
        """Test a pid never becomes its own child."""
        assert build_tree([(0, 0), (1, 0)]) == {0: [1]}

    def test_empty(self):
        """Test an empty table gives an empty tree."""
        assert build_tree([]) == {}


class TestDescendantsOf:
    """Tests for descendants_of."""

    def test_example_chain(self):
        """Test a child and grandchild are returned in pre-order."""
        tree = build_tree([(1, 0), (10, 1), (11, 10), (12, 11)])

        assert descendants_of(10, tree) == [11, 12]

    def test_pre_order_with_siblings(self):
        """Test each child's subtree comes before the next sibling."""
        tree = {10: [11, 14], 11: [12, 13], 14: [15]}

        assert descendants_of(10, tree) == [11, 12, 13, 14, 15]

    def test_leaf_has_no_descendants(self):
        """Test a pid without children returns an empty list."""
        assert descendants_of(99, {10: [11]}) == []

    def test_cycle_terminates(self):
        """Test malformed cyclic input neither loops nor repeats pids."""
        tree = {10: [11], 11: [12], 12: [10, 11]}

        assert descendants_of(10, tree) == [11, 12]

    def test_duplicate_children_reported_once(self):
        """Test a pid listed under two parents appears once."""
        tree = {10: [11, 12], 11: [13], 12: [13]}

        assert descendants_of(10, tree) == [11, 13, 12]

    def test_depth_cap(self):
        """Test traversal stops at max_depth."""
        tree = {i: [i + 1] for i in range(100)}

        assert descendants_of(0, tree, max_depth=3) == [1, 2, 3]

    def test_never_contains_root_or_duplicates(self):
        """Test root exclusion and uniqueness over random forests."""
        rng = random.Random(1234)
        for _ in range(50):
            pids = list(range(2, 200))
            rng.shuffle(pids)
            pairs = [(pid, rng.choice([1] + pids[:i])) for i, pid in enumerate(pids)]
            tree = build_tree(pairs)

            for root in [1] + pids[:20]:
                result = descendants_of(root, tree)
                assert root not in result
                assert len(result) == len(set(result))


class TestAggregate:
    """Tests for aggregate."""

    def test_example_totals(self):
        """Test own usage plus descendant usage."""
        metrics = {11: ProcessMetrics(2.0, 0.5), 12: ProcessMetrics(1.0, 0.25)}

        result = aggregate(make_record(10, cpu=5.0, mem=1.0), [11, 12], metrics)

        assert result.total_cpu_percent == 8.0
        assert result.total_memory_percent == 1.75
        assert result.descendant_pids == (11, 12)
        assert result.cpu_percent == 5.0

    def test_missing_descendant_counts_zero(self):
        """Test a descendant that exited between queries contributes nothing."""
        metrics = {11: ProcessMetrics(2.0, 0.5)}

        result = aggregate(make_record(10, cpu=5.0, mem=1.0), [11, 12], metrics)

        assert result.total_cpu_percent == 7.0
        assert result.total_memory_percent == 1.5
        assert result.descendant_pids == (11, 12)

    def test_totals_never_below_own(self):
        """Test negative readings cannot push totals below own usage."""
        metrics = {11: ProcessMetrics(-4.0, -1.0)}

        result = aggregate(make_record(10, cpu=5.0, mem=1.0), [11], metrics)

        assert result.total_cpu_percent >= result.cpu_percent
        assert result.total_memory_percent >= result.memory_percent

    def test_idempotent(self):
        """Test the same inputs always give the same totals."""
        record = make_record(10, cpu=5.0, mem=1.0)
        metrics = {11: ProcessMetrics(2.0, 0.5), 12: ProcessMetrics(1.0, 0.25)}

        first = aggregate(record, [11, 12], metrics)
        second = aggregate(record, [11, 12], metrics)

        assert first == second

    def test_input_record_unchanged(self):
        """Test aggregation returns a new record."""
        record = make_record(10, cpu=5.0)

        aggregate(record, [11], {11: ProcessMetrics(2.0, 0.0)})

        assert record.total_cpu_percent == 5.0
        assert record.descendant_pids == ()


class TestSortByTotalCpu:
    """Tests for sort_by_total_cpu."""

    def test_descending(self):
        """Test highest total CPU comes first."""
        records = [make_record(1, cpu=1.0), make_record(2, cpu=9.0), make_record(3, cpu=4.0)]

        assert [r.pid for r in sort_by_total_cpu(records)] == [2, 3, 1]

    def test_stable_under_ties(self):
        """Test equal totals keep their input order."""
        records = [
            make_record(5, cpu=2.0),
            make_record(3, cpu=7.0),
            make_record(9, cpu=2.0),
            make_record(1, cpu=2.0),
        ]

        assert [r.pid for r in sort_by_total_cpu(records)] == [3, 5, 9, 1]


def test_summarize():
    """Test header totals sum subtree totals."""
    records = [
        aggregate(make_record(1, cpu=5.0, mem=1.0), [2], {2: ProcessMetrics(1.0, 1.0)}),
        make_record(3, cpu=2.0, mem=0.5),
    ]

    assert summarize(records) == MonitorSummary(
        process_count=2,
        total_cpu_percent=8.0,
        total_memory_percent=2.5,
    )
    assert summarize([]) == MonitorSummary(0, 0, 0)
