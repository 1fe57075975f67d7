"""
Script supervisor — runs one report script at a time as a child process.

Nothing here blocks: the owner calls poll() from a timer and drains the
resulting RunEvents from a queue.
"""

from __future__ import annotations

import logging
import queue
import subprocess
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger("tenant_reports.launcher.supervisor")

STARTED = "started"
FINISHED = "finished"
FAILED = "failed"


class LauncherBusy(RuntimeError):
    """A script is already running."""
    pass


@dataclass(frozen=True)
class RunEvent:
    kind: str                      # started | finished | failed
    script: Path
    returncode: Optional[int] = None
    elapsed: float = 0.0
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.kind == FINISHED


@dataclass
class ScriptRun:
    """The active child process and what started it."""
    script: Path
    process: subprocess.Popen
    started: float = field(default_factory=time.monotonic)

    @property
    def elapsed(self) -> float:
        return round(time.monotonic() - self.started, 1)


class ScriptSupervisor:
    def __init__(self, interpreter: Optional[str] = None, extra_args: Sequence[str] = ()):
        self.interpreter = interpreter or sys.executable
        self.extra_args = list(extra_args)
        self.current: Optional[ScriptRun] = None
        self._events: "queue.SimpleQueue[RunEvent]" = queue.SimpleQueue()

    @property
    def busy(self) -> bool:
        return self.current is not None

    def start(self, script: Path) -> ScriptRun:
        """Launch `script` with the configured interpreter."""
        if self.current is not None:
            raise LauncherBusy(f"{self.current.script.name} is still running")

        script = Path(script)
        command = [self.interpreter, str(script), *self.extra_args]
        logger.info(f"Starting {command}")
        try:
            process = subprocess.Popen(command, cwd=str(script.parent))
        except OSError as e:
            logger.error(f"Failed to start {script.name}: {e}")
            self._events.put(RunEvent(FAILED, script, message=str(e)))
            raise

        self.current = ScriptRun(script=script, process=process)
        self._events.put(RunEvent(STARTED, script))
        return self.current

    def poll(self) -> Optional[RunEvent]:
        """Check the active run; post and return its completion event if it ended."""
        run = self.current
        if run is None:
            return None
        returncode = run.process.poll()
        if returncode is None:
            return None

        self.current = None
        kind = FINISHED if returncode == 0 else FAILED
        event = RunEvent(kind, run.script, returncode=returncode, elapsed=run.elapsed)
        logger.info(f"{run.script.name} {kind} (exit {returncode}, {event.elapsed}s)")
        self._events.put(event)
        return event

    def drain(self) -> list[RunEvent]:
        """Pending events, oldest first."""
        events = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                return events
