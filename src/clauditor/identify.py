"""Decide which processes belong to the monitored CLI and turn them into records."""

import re
from functools import lru_cache

from clauditor.config import DEFAULT_CONFIG, MonitorConfig
from clauditor.models import ProcessRecord, RawProcess, RunState

_CWD_ARG = re.compile(r"--cwd[= ](\S+)")


@lru_cache(maxsize=8)
def _token_pattern(token: str) -> re.Pattern[str]:
    # Token as a whole word: after start/whitespace/'/', before whitespace/end/'--'
    return re.compile(rf"(^|\s|/)({re.escape(token)})(\s|$|--)")


def is_monitored_process(line: str, config: MonitorConfig = DEFAULT_CONFIG) -> bool:
    """
    Check whether a process table line is a session of the monitored CLI.

    Known lookalikes are excluded before the positive match: the tool's own
    helper shells, the desktop application and this monitor itself.
    Missing a session is preferred over monitoring an unrelated process.
    """
    if config.token not in line:
        return False

    if any(marker in line for marker in config.artifact_markers):
        return False

    if any(marker in line for marker in config.desktop_markers):
        return False

    if any(name in line for name in config.self_names):
        return False

    return _token_pattern(config.token).search(line) is not None


def extract_cwd_arg(args: str) -> str:
    """Return the value of a ``--cwd`` argument, or an empty string."""
    match = _CWD_ARG.search(args)
    return match.group(1) if match else ""


def to_record(raw: RawProcess) -> ProcessRecord:
    """
    Build a ProcessRecord for a monitored process.

    Totals start out equal to the process's own usage; the aggregator adds
    the descendants later.
    """
    executable, _, args = raw.command_line.strip().partition(" ")
    command = executable.rsplit("/", 1)[-1] or executable

    return ProcessRecord(
        pid=raw.pid,
        ppid=raw.ppid,
        cpu_percent=raw.cpu_percent,
        memory_percent=raw.memory_percent,
        total_cpu_percent=raw.cpu_percent,
        total_memory_percent=raw.memory_percent,
        state=RunState.from_code(raw.state),
        command=command,
        args=args,
        start_time=raw.start_time,
        working_dir=extract_cwd_arg(args),
    )
