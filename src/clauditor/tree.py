"""Process hierarchy and subtree resource totals."""

import dataclasses
from collections.abc import Iterable, Sequence

from clauditor.models import MonitorSummary, ProcessMetricsIndex, ProcessRecord, ProcessTree

MAX_TREE_DEPTH = 1024


def build_tree(pairs: Iterable[tuple[int, int]]) -> ProcessTree:
    """
    Build the parent -> children mapping for every process on the system.

    Children keep the order in which they were observed. A pid whose parent
    is unknown simply never appears as anyone's child.
    """
    tree: ProcessTree = {}
    for pid, ppid in pairs:
        if pid == ppid:
            continue
        tree.setdefault(ppid, []).append(pid)
    return tree


def descendants_of(pid: int, tree: ProcessTree, max_depth: int = MAX_TREE_DEPTH) -> list[int]:
    """
    Return all descendants of ``pid`` in depth-first pre-order.

    Each child is followed by its own descendants before the next sibling.
    The result never contains ``pid`` and never repeats a pid, even if the
    tree is malformed and contains a cycle; traversal stops at ``max_depth``.
    """
    descendants: list[int] = []
    visited = {pid}
    # Stack of (pid, depth), children pushed in reverse to pop in order
    stack = [(child, 1) for child in reversed(tree.get(pid, []))]

    while stack:
        current, depth = stack.pop()
        if current in visited:
            continue
        visited.add(current)
        descendants.append(current)

        if depth < max_depth:
            stack.extend((child, depth + 1) for child in reversed(tree.get(current, [])))

    return descendants


def aggregate(
    record: ProcessRecord,
    descendants: Sequence[int],
    metrics: ProcessMetricsIndex,
) -> ProcessRecord:
    """
    Return a copy of ``record`` with subtree totals and descendant pids filled in.

    Descendants missing from ``metrics`` (exited between the two queries)
    contribute nothing. Negative readings are treated as zero.
    """
    child_cpu = 0.0
    child_mem = 0.0
    for child_pid in descendants:
        child = metrics.get(child_pid)
        if child is None:
            continue
        child_cpu += max(0.0, child.cpu_percent)
        child_mem += max(0.0, child.memory_percent)

    return dataclasses.replace(
        record,
        total_cpu_percent=record.cpu_percent + child_cpu,
        total_memory_percent=record.memory_percent + child_mem,
        descendant_pids=tuple(descendants),
    )


def sort_by_total_cpu(records: Iterable[ProcessRecord]) -> list[ProcessRecord]:
    """Sort by total CPU, highest first; equal totals keep their input order."""
    # sorted() is stable with reverse=True as well
    return sorted(records, key=lambda r: r.total_cpu_percent, reverse=True)


def summarize(records: Sequence[ProcessRecord]) -> MonitorSummary:
    """Sum the subtree totals of all monitored processes."""
    return MonitorSummary(
        process_count=len(records),
        total_cpu_percent=sum(r.total_cpu_percent for r in records),
        total_memory_percent=sum(r.total_memory_percent for r in records),
    )
