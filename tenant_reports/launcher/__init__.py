"""Desktop launcher for the report scripts. The Tk window lives in launcher.app."""

from .discovery import discover_scripts, display_name
from .supervisor import FAILED, FINISHED, STARTED, LauncherBusy, RunEvent, ScriptRun, ScriptSupervisor

__all__ = [
    "discover_scripts",
    "display_name",
    "LauncherBusy",
    "RunEvent",
    "ScriptRun",
    "ScriptSupervisor",
    "STARTED",
    "FINISHED",
    "FAILED",
]
