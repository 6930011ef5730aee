"""Formatting helpers for the process list."""

import re
from collections.abc import Sequence

import psutil

from clauditor.models import ProcessRecord

_PROJECT_ARG_PATTERNS = (
    re.compile(r"--cwd[= ](\S+)"),
    re.compile(r"--project[= ](\S+)"),
    re.compile(r'"([^"]+)"'),
)


def format_memory(percent: float, total_mem_gb: float | None = None) -> str:
    """Convert a memory percentage into MB/GB of the machine's RAM."""
    if total_mem_gb is None:
        total_mem_gb = psutil.virtual_memory().total / (1024**3)
    used_gb = (percent / 100) * total_mem_gb
    if used_gb < 1:
        return f"{used_gb * 1024:.0f}MB"
    return f"{used_gb:.1f}GB"


def shorten_path(path: str, max_len: int = 30) -> str:
    """Shorten a path to its last components, '-' when empty."""
    if not path:
        return "-"
    if len(path) <= max_len:
        return path

    parts = path.split("/")
    if len(parts) <= 2:
        return path

    shortened = ".../" + "/".join(parts[-2:])
    if len(shortened) <= max_len:
        return shortened

    return ".../" + parts[-1][: max_len - 4]


def extract_project_name(record: ProcessRecord) -> str:
    """
    Best-effort project name for a session.

    Prefers the last component of the working directory, then path-like
    arguments, then a truncated argument string, then the command name.
    """
    if record.working_dir:
        parts = [p for p in record.working_dir.split("/") if p]
        if parts:
            return parts[-1]

    args = record.args
    for pattern in _PROJECT_ARG_PATTERNS:
        match = pattern.search(args)
        if match and match.group(1):
            path = match.group(1)
            return path.split("/")[-1] or path

    if "--resume" in args:
        return "resumed session"

    if len(args) > 20:
        return args[:20] + "..."

    return args or record.command


def cpu_style(cpu: float) -> str:
    if cpu > 80:
        return "red"
    if cpu > 50:
        return "yellow"
    if cpu > 20:
        return "cyan"
    return "green"


def mem_style(mem: float) -> str:
    if mem > 50:
        return "red"
    if mem > 25:
        return "yellow"
    return "green"


def total_style(percent: float) -> str:
    """Colour for header totals."""
    if percent > 80:
        return "red"
    if percent > 50:
        return "yellow"
    return "green"


def state_indicator(record: ProcessRecord) -> str:
    return "||" if record.is_paused else ">"


def format_table(records: Sequence[ProcessRecord]) -> str:
    """Plain-text table of monitored processes, used by ``--once``."""
    if not records:
        return "No Claude processes running"

    lines = [f"{'ST':<3}{'PID':<8}{'CPU':>7}{'MEM':>7}{'CHILD':>7}  {'PROJECT':<20}WORKING DIR"]
    for record in records:
        children = str(record.child_count) if record.child_count else "-"
        lines.append(
            f"{state_indicator(record):<3}{record.pid:<8}"
            f"{record.total_cpu_percent:6.1f}%{record.total_memory_percent:6.1f}%"
            f"{children:>7}  {extract_project_name(record)[:18]:<20}"
            f"{shorten_path(record.working_dir, 35)}"
        )
    return "\n".join(lines)
