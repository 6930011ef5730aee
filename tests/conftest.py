"""Shared fixtures for clauditor tests."""

import pytest

from clauditor.models import ProcessMetrics, ProcessRecord, RawProcess, RunState

LSTART = "Mon Jan  1 12:00:00 2024"


class FakeSource:
    """In-memory process table; counts how often each query runs."""

    def __init__(self, table=None, metrics=None, pairs=None) -> None:
        self.table = list(table or [])
        self.metrics_index = dict(metrics or {})
        self.pairs = list(pairs or [])
        self.calls: list[str] = []

    def process_table(self) -> list[RawProcess]:
        self.calls.append("process_table")
        return list(self.table)

    def metrics(self) -> dict[int, ProcessMetrics]:
        self.calls.append("metrics")
        return dict(self.metrics_index)

    def parent_pairs(self) -> list[tuple[int, int]]:
        self.calls.append("parent_pairs")
        return list(self.pairs)


def make_raw(pid, ppid=1, cpu=0.0, mem=0.0, state="S", command="/usr/local/bin/claude"):
    return RawProcess(
        pid=pid,
        ppid=ppid,
        cpu_percent=cpu,
        memory_percent=mem,
        state=state,
        start_time=LSTART,
        command_line=command,
    )


def make_record(pid, cpu=0.0, mem=0.0, working_dir="", args="", state=RunState.RUNNING, descendants=()):
    return ProcessRecord(
        pid=pid,
        ppid=1,
        cpu_percent=cpu,
        memory_percent=mem,
        total_cpu_percent=cpu,
        total_memory_percent=mem,
        state=state,
        command="claude",
        args=args,
        start_time=LSTART,
        working_dir=working_dir,
        descendant_pids=tuple(descendants),
    )


@pytest.fixture
def example_source() -> FakeSource:
    """
    pid 1 is unrelated, 10 is a monitored session, 11 its child, 12 its grandchild.
    """
    return FakeSource(
        table=[
            make_raw(1, ppid=0, command="/sbin/init"),
            make_raw(10, ppid=1, cpu=5.0, mem=1.0, command="/usr/local/bin/claude --cwd=/work/alpha"),
            make_raw(11, ppid=10, cpu=2.0, command="node mcp-server.js"),
            make_raw(12, ppid=11, cpu=1.0, command="/bin/zsh -c npm test"),
        ],
        metrics={
            1: ProcessMetrics(0.1, 0.2),
            10: ProcessMetrics(5.0, 1.0),
            11: ProcessMetrics(2.0, 0.5),
            12: ProcessMetrics(1.0, 0.25),
        },
        pairs=[(1, 0), (10, 1), (11, 10), (12, 11)],
    )
