"""Data models for clauditor."""

from dataclasses import dataclass
from enum import Enum


class RunState(Enum):
    """Whether a monitored process is scheduled or stopped."""

    RUNNING = "running"
    PAUSED = "paused"

    @classmethod
    def from_code(cls, code: str) -> "RunState":
        """Map a ps state character to a run state ('T' means stopped)."""
        return cls.PAUSED if code == "T" else cls.RUNNING


@dataclass(slots=True, frozen=True)
class RawProcess:
    """One row of the OS process table, as reported by ps or psutil."""

    pid: int
    ppid: int
    cpu_percent: float
    memory_percent: float
    state: str  # 'R', 'S', 'T', 'Z', etc.
    start_time: str  # lstart format, e.g. 'Mon Jan  1 12:00:00 2024'
    command_line: str

    def to_line(self) -> str:
        """Render the record as a ``ps -eo pid,ppid,pcpu,pmem,state,lstart,command`` line."""
        return (
            f"{self.pid} {self.ppid} {self.cpu_percent:.1f} {self.memory_percent:.1f} "
            f"{self.state} {self.start_time} {self.command_line}"
        )


@dataclass(slots=True, frozen=True)
class ProcessMetrics:
    """Own CPU and memory usage of a single process."""

    cpu_percent: float
    memory_percent: float


@dataclass(slots=True, frozen=True)
class ProcessRecord:
    """Immutable view of one monitored process and its subtree."""

    pid: int
    ppid: int
    cpu_percent: float  # own usage only
    memory_percent: float
    total_cpu_percent: float  # own + all descendants
    total_memory_percent: float
    state: RunState
    command: str  # executable basename
    args: str
    start_time: str
    working_dir: str = ""
    descendant_pids: tuple[int, ...] = ()

    @property
    def is_paused(self) -> bool:
        return self.state is RunState.PAUSED

    @property
    def child_count(self) -> int:
        return len(self.descendant_pids)


@dataclass(slots=True, frozen=True)
class MonitorSummary:
    """Totals over all monitored processes, shown in the header."""

    process_count: int
    total_cpu_percent: float
    total_memory_percent: float


# parent pid -> direct child pids, covering every process on the system
ProcessTree = dict[int, list[int]]

# pid -> own metrics, covering every process on the system
ProcessMetricsIndex = dict[int, ProcessMetrics]
