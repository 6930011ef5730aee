"""Runtime configuration for clauditor."""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MIN_POLL_RATE = 0.1


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """
    Settings shared by the collector, the identification filter and the UI.

    Attributes:
        token: Executable name identifying a monitored CLI session.
        artifact_markers: Paths of the tool's own helper shells, never monitored.
        desktop_markers: Markers of the desktop application bundle.
        self_names: Names under which this monitor itself runs.
        poll_rate: Seconds between refresh ticks.
        cwd_workers: Threads used for working directory lookups.
        use_ps: Query the process table through ``ps`` instead of psutil.
    """

    token: str = "claude"
    artifact_markers: tuple[str, ...] = (".claude/shell-snapshots",)
    desktop_markers: tuple[str, ...] = ("Claude.app",)
    self_names: tuple[str, ...] = ("clauditor", "claude-monitor")
    poll_rate: float = 2.0
    cwd_workers: int = 8
    use_ps: bool = False

    def __post_init__(self) -> None:
        # Frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, "poll_rate", max(MIN_POLL_RATE, self.poll_rate))
        object.__setattr__(self, "cwd_workers", max(1, self.cwd_workers))

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "MonitorConfig":
        """
        Build a config from ``CLAUDITOR_*`` environment variables.

        Unparseable values are ignored and the default is kept.
        """
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        token = env.get("CLAUDITOR_TOKEN", "").strip()
        if token:
            kwargs["token"] = token

        poll_rate = _parse_number(env, "CLAUDITOR_POLL_RATE", float)
        if poll_rate is not None:
            kwargs["poll_rate"] = poll_rate

        workers = _parse_number(env, "CLAUDITOR_CWD_WORKERS", int)
        if workers is not None:
            kwargs["cwd_workers"] = workers

        use_ps = env.get("CLAUDITOR_USE_PS", "").strip().lower()
        if use_ps:
            kwargs["use_ps"] = use_ps in ("1", "true", "yes", "on")

        return cls(**kwargs)


def _parse_number(env, name, kind):
    raw = env.get(name)
    if raw is None or raw == "":
        return None
    try:
        return kind(raw)
    except ValueError:
        logger.debug("Ignoring invalid %s=%r", name, raw)
        return None


DEFAULT_CONFIG = MonitorConfig()
