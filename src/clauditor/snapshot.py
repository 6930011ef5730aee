"""Process table queries.

Each query is independent: the full table, the per-process metrics and the
parent links are fetched separately and are not taken at the same instant.
A query that cannot run returns an empty result instead of raising.
"""

import logging
import os
import subprocess
import time
from datetime import datetime
from typing import Protocol

import psutil

from clauditor.models import ProcessMetrics, ProcessMetricsIndex, RawProcess

logger = logging.getLogger(__name__)

PS_TABLE_FORMAT = "pid,ppid,pcpu,pmem,state,lstart,command"
PS_METRICS_FORMAT = "pid,pcpu,pmem"
PS_PARENT_FORMAT = "pid,ppid"
PS_TIMEOUT = 10.0

# pid, ppid, pcpu, pmem, state, 5 lstart fields, then at least the executable
_MIN_TABLE_FIELDS = 11
_LSTART_FIELDS = 5

# psutil status string -> ps state character
_STATUS_CODES = {
    "running": "R",
    "sleeping": "S",
    "disk-sleep": "D",
    "stopped": "T",
    "tracing-stop": "t",
    "zombie": "Z",
    "dead": "X",
    "wake-kill": "K",
    "waking": "W",
    "parked": "P",
    "idle": "I",
    "locked": "L",
    "waiting": "W",
    "suspended": "T",
}


class ProcessSource(Protocol):
    """The three process table queries the core relies on."""

    def process_table(self) -> list[RawProcess]: ...

    def metrics(self) -> ProcessMetricsIndex: ...

    def parent_pairs(self) -> list[tuple[int, int]]: ...


def format_lstart(create_time: float) -> str:
    """Format an epoch timestamp the way ``ps -o lstart`` does."""
    started = datetime.fromtimestamp(create_time)
    return f"{started:%a %b} {started.day:2d} {started:%H:%M:%S %Y}"


def status_code(status: str | None) -> str:
    """Translate a psutil status string into a ps state character."""
    return _STATUS_CODES.get(status or "", "?")


def lifetime_cpu_percent(cpu_times, create_time: float | None, now: float) -> float:
    """
    CPU usage averaged over the process lifetime, as ``ps -o pcpu`` reports it.

    Stateless, so independent queries never disturb each other's sampling.
    """
    if cpu_times is None or not create_time:
        return 0.0
    elapsed = now - create_time
    if elapsed <= 0:
        return 0.0
    return round(100.0 * (cpu_times.user + cpu_times.system) / elapsed, 1)


class PsutilSource:
    """
    Process table source backed by psutil.

    Processes that vanish, deny access or turn into zombies mid-iteration are
    skipped individually.
    """

    def process_table(self) -> list[RawProcess]:
        processes: list[RawProcess] = []
        attrs = [
            "pid",
            "ppid",
            "name",
            "status",
            "cpu_times",
            "memory_percent",
            "create_time",
            "cmdline",
        ]
        now = time.time()

        try:
            for proc in psutil.process_iter(attrs=attrs):
                try:
                    with proc.oneshot():
                        info = proc.info

                        cmdline = info.get("cmdline") or []
                        command_line = " ".join(cmdline) if cmdline else info.get("name") or ""
                        create_time = info.get("create_time")

                        processes.append(
                            RawProcess(
                                pid=info.get("pid", 0),
                                ppid=info.get("ppid") or 0,
                                cpu_percent=lifetime_cpu_percent(
                                    info.get("cpu_times"), create_time, now
                                ),
                                memory_percent=round(info.get("memory_percent") or 0.0, 1),
                                state=status_code(info.get("status")),
                                start_time=format_lstart(create_time) if create_time else "",
                                command_line=command_line,
                            )
                        )
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue
        except (psutil.Error, OSError):
            logger.debug("Process table query failed", exc_info=True)
            return []

        return processes

    def metrics(self) -> ProcessMetricsIndex:
        index: ProcessMetricsIndex = {}
        now = time.time()

        try:
            for proc in psutil.process_iter(attrs=["pid", "cpu_times", "create_time", "memory_percent"]):
                try:
                    info = proc.info
                    index[info["pid"]] = ProcessMetrics(
                        cpu_percent=lifetime_cpu_percent(
                            info.get("cpu_times"), info.get("create_time"), now
                        ),
                        memory_percent=round(info.get("memory_percent") or 0.0, 1),
                    )
                except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                    continue
        except (psutil.Error, OSError):
            logger.debug("Metrics query failed", exc_info=True)
            return {}

        return index

    def parent_pairs(self) -> list[tuple[int, int]]:
        pairs: list[tuple[int, int]] = []

        try:
            for proc in psutil.process_iter(attrs=["pid", "ppid"]):
                ppid = proc.info.get("ppid")
                if ppid is not None:
                    pairs.append((proc.info["pid"], ppid))
        except (psutil.Error, OSError):
            logger.debug("Parent query failed", exc_info=True)
            return []

        return pairs


def parse_process_line(line: str) -> RawProcess | None:
    """
    Parse one line of ``ps -eo pid,ppid,pcpu,pmem,state,lstart,command``.

    Returns None for lines that do not have the expected shape.
    """
    parts = line.split()
    if len(parts) < _MIN_TABLE_FIELDS:
        return None

    try:
        pid = int(parts[0])
        ppid = int(parts[1])
        cpu = float(parts[2])
        mem = float(parts[3])
    except ValueError:
        return None

    lstart_end = 5 + _LSTART_FIELDS
    return RawProcess(
        pid=pid,
        ppid=ppid,
        cpu_percent=cpu,
        memory_percent=mem,
        state=parts[4],
        start_time=" ".join(parts[5:lstart_end]),
        command_line=" ".join(parts[lstart_end:]),
    )


def parse_metrics_line(line: str) -> tuple[int, ProcessMetrics] | None:
    """Parse one line of ``ps -eo pid,pcpu,pmem``."""
    parts = line.split()
    if len(parts) < 3:
        return None
    try:
        return int(parts[0]), ProcessMetrics(cpu_percent=float(parts[1]), memory_percent=float(parts[2]))
    except ValueError:
        return None


def parse_parent_line(line: str) -> tuple[int, int] | None:
    """Parse one line of ``ps -eo pid,ppid``."""
    parts = line.split()
    if len(parts) < 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


class PsCommandSource:
    """Process table source that shells out to ``ps``."""

    def __init__(self, ps_path: str = "ps", timeout: float = PS_TIMEOUT) -> None:
        self._ps_path = ps_path
        self._timeout = timeout

    def _run(self, fmt: str) -> list[str]:
        """Run ps with the given output format and return the body lines."""
        try:
            result = subprocess.run(
                [self._ps_path, "-eo", fmt],
                capture_output=True,
                text=True,
                check=True,
                timeout=self._timeout,
                env={**os.environ, "LC_ALL": "C"},
            )
        except (OSError, subprocess.SubprocessError):
            logger.debug("ps -eo %s failed", fmt, exc_info=True)
            return []

        # First line is the column header
        return result.stdout.strip().splitlines()[1:]

    def process_table(self) -> list[RawProcess]:
        processes = []
        for line in self._run(PS_TABLE_FORMAT):
            parsed = parse_process_line(line)
            if parsed is None:
                logger.debug("Skipping malformed ps line: %r", line)
                continue
            processes.append(parsed)
        return processes

    def metrics(self) -> ProcessMetricsIndex:
        index: ProcessMetricsIndex = {}
        for line in self._run(PS_METRICS_FORMAT):
            parsed = parse_metrics_line(line)
            if parsed is not None:
                pid, metrics = parsed
                index[pid] = metrics
        return index

    def parent_pairs(self) -> list[tuple[int, int]]:
        pairs = []
        for line in self._run(PS_PARENT_FORMAT):
            parsed = parse_parent_line(line)
            if parsed is not None:
                pairs.append(parsed)
        return pairs


def default_source(use_ps: bool = False) -> ProcessSource:
    """Return the process source selected by configuration."""
    return PsCommandSource() if use_ps else PsutilSource()
