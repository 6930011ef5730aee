"""One refresh tick: discover, filter, build the tree, aggregate, resolve cwd."""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor

import psutil

from clauditor.config import DEFAULT_CONFIG, MonitorConfig
from clauditor.identify import is_monitored_process, to_record
from clauditor.models import ProcessRecord
from clauditor.snapshot import ProcessSource, PsutilSource
from clauditor.tree import aggregate, build_tree, descendants_of, sort_by_total_cpu

logger = logging.getLogger(__name__)


def resolve_cwd(pid: int) -> str:
    """Return the working directory of ``pid``, or an empty string if unavailable."""
    try:
        return psutil.Process(pid).cwd() or ""
    except (psutil.Error, OSError):
        # Process exited or belongs to another user
        return ""


class ProcessCollector:
    """
    Produces the list of monitored processes for a single refresh.

    Every call fetches fresh data; nothing is cached between calls.
    """

    def __init__(
        self,
        source: ProcessSource | None = None,
        config: MonitorConfig = DEFAULT_CONFIG,
        cwd_resolver=resolve_cwd,
    ) -> None:
        """
        Initialize the ProcessCollector.

        Args:
            source: Process table queries. Defaults to psutil.
            config: Identification markers and worker count.
            cwd_resolver: Callable mapping a pid to its working directory.
        """
        self._source = source if source is not None else PsutilSource()
        self._config = config
        self._cwd_resolver = cwd_resolver

    @property
    def source(self) -> ProcessSource:
        return self._source

    def discover(self) -> list[ProcessRecord]:
        """Fetch the process table and keep the monitored processes only."""
        return [
            to_record(raw)
            for raw in self._source.process_table()
            if is_monitored_process(raw.to_line(), self._config)
        ]

    def collect(self) -> list[ProcessRecord]:
        """
        Run a full refresh tick.

        The tree and the metrics come from separate queries, so a child that
        exits or spawns in between may be counted with stale usage or missed.
        """
        records = self.discover()
        if not records:
            return []

        tree = build_tree(self._source.parent_pairs())
        metrics = self._source.metrics()

        records = [aggregate(record, descendants_of(record.pid, tree), metrics) for record in records]
        records = self._resolve_working_dirs(records)

        return sort_by_total_cpu(records)

    def _resolve_working_dirs(self, records: list[ProcessRecord]) -> list[ProcessRecord]:
        """Look up working directories concurrently for records without one."""
        pending = [r for r in records if not r.working_dir]
        if not pending:
            return records

        workers = min(self._config.cwd_workers, len(pending))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cwd") as pool:
            resolved = dict(zip((r.pid for r in pending), pool.map(self._lookup_cwd, pending)))

        return [
            dataclasses.replace(r, working_dir=resolved[r.pid]) if r.pid in resolved else r
            for r in records
        ]

    def _lookup_cwd(self, record: ProcessRecord) -> str:
        try:
            return self._cwd_resolver(record.pid)
        except Exception:
            logger.debug("cwd lookup for pid %d failed", record.pid, exc_info=True)
            return ""
