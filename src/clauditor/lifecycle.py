"""Kill, pause and resume whole process subtrees.

Every action rebuilds the process tree itself instead of reusing the one from
the last refresh, so children spawned since then are included. The list shown
to the user may therefore be slightly older than the subtree acted upon.
"""

import logging
import signal
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import psutil

from clauditor.snapshot import ProcessSource, PsutilSource
from clauditor.tree import build_tree, descendants_of

logger = logging.getLogger(__name__)

SignalSender = Callable[[int, int], None]


def send_signal(pid: int, sig: int) -> None:
    """Deliver ``sig`` to ``pid``; raises if the process is gone or not ours."""
    psutil.Process(pid).send_signal(sig)


class CascadeState(Enum):
    PENDING = "pending"
    SIGNALLING = "signalling"
    DONE = "done"


@dataclass(slots=True)
class CascadeResult:
    """Outcome of one cascade: which pids were signalled and which failed."""

    root: int
    sig: int
    attempted: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)
    root_ok: bool = False


class SignalCascade:
    """
    Sends one signal to a fixed sequence of pids.

    Every pid is attempted even when earlier ones fail. Failures are recorded
    but never raised; success is decided by the root pid alone.
    """

    def __init__(self, root: int, order: list[int], sig: int, sender: SignalSender) -> None:
        self._order = order
        self._sender = sender
        self._state = CascadeState.PENDING
        self._result = CascadeResult(root=root, sig=sig)

    @property
    def state(self) -> CascadeState:
        return self._state

    @property
    def result(self) -> CascadeResult:
        return self._result

    def run(self) -> CascadeResult:
        if self._state is not CascadeState.PENDING:
            return self._result

        self._state = CascadeState.SIGNALLING
        for pid in self._order:
            ok = self._deliver(pid)
            if pid == self._result.root:
                self._result.root_ok = ok
        self._state = CascadeState.DONE
        return self._result

    def _deliver(self, pid: int) -> bool:
        self._result.attempted.append(pid)
        try:
            self._sender(pid, self._result.sig)
        except (psutil.Error, OSError) as exc:
            logger.debug("Signal %d to pid %d failed: %s", self._result.sig, pid, exc)
            self._result.failed.append(pid)
            return False
        return True


class LifecycleController:
    """Terminate, suspend and resume a monitored process with its descendants."""

    def __init__(self, source: ProcessSource | None = None, sender: SignalSender = send_signal) -> None:
        self._source = source if source is not None else PsutilSource()
        self._sender = sender

    def _descendants(self, pid: int) -> list[int]:
        return descendants_of(pid, build_tree(self._source.parent_pairs()))

    def _run(self, action: str, pid: int, order: list[int], sig: int) -> bool:
        result = SignalCascade(pid, order, sig, self._sender).run()
        if result.root_ok:
            logger.info("%s pid %d (%d descendants)", action, pid, len(order) - 1)
        else:
            logger.info("%s pid %d failed", action, pid)
        if result.failed:
            logger.debug("%s pid %d: no signal delivered to %s", action, pid, result.failed)
        return result.root_ok

    def terminate(self, pid: int) -> bool:
        """Kill the deepest descendants first, then the root."""
        if pid <= 0:
            return False
        descendants = self._descendants(pid)
        order = list(reversed(descendants)) + [pid]
        return self._run("terminate", pid, order, signal.SIGKILL)

    def suspend(self, pid: int) -> bool:
        """Stop descendants in tree order, then the root."""
        if pid <= 0:
            return False
        order = self._descendants(pid) + [pid]
        return self._run("suspend", pid, order, signal.SIGSTOP)

    def resume(self, pid: int) -> bool:
        """Continue the root first, then its descendants in tree order."""
        if pid <= 0:
            return False
        order = [pid] + self._descendants(pid)
        return self._run("resume", pid, order, signal.SIGCONT)


def terminate(pid: int) -> bool:
    """Kill ``pid`` and all its descendants."""
    return LifecycleController().terminate(pid)


def suspend(pid: int) -> bool:
    """Pause ``pid`` and all its descendants."""
    return LifecycleController().suspend(pid)


def resume(pid: int) -> bool:
    """Resume ``pid`` and all its descendants."""
    return LifecycleController().resume(pid)
