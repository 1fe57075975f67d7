"""
Report launcher window — one button per report script, one run at a time.

Usage:
    report-launcher              # scripts beside the launching script, else the working directory
    report-launcher ./scripts
"""

from __future__ import annotations

import argparse
import logging
import sys
import tkinter as tk
from datetime import datetime
from pathlib import Path
from tkinter import messagebox, ttk
from typing import Optional, Sequence

from .discovery import discover_scripts, display_name
from .supervisor import FINISHED, STARTED, LauncherBusy, RunEvent, ScriptSupervisor

logger = logging.getLogger("tenant_reports.launcher.app")

POLL_INTERVAL_MS = 500
LAUNCHER_SCRIPT = "script_launcher.py"


class LauncherApp:
    """Tk front end over a ScriptSupervisor. All callbacks run on the Tk thread."""

    def __init__(self, root: tk.Tk, scripts: Sequence[Path], supervisor: Optional[ScriptSupervisor] = None):
        self.root = root
        self.scripts = list(scripts)
        self.supervisor = supervisor or ScriptSupervisor()
        self.buttons: dict[Path, tk.Button] = {}
        self.status_var = tk.StringVar(value="Ready")

        self.root.title("Tenant Report Launcher")
        self.root.geometry("460x520")
        self.root.protocol("WM_DELETE_WINDOW", self.on_close)
        self.create_widgets()
        self.root.after(POLL_INTERVAL_MS, self.poll)

    def create_widgets(self):
        header = tk.Label(self.root, text="📊 Tenant Reports", font=("Segoe UI", 14, "bold"))
        header.pack(pady=(12, 6))

        buttons_frame = ttk.Frame(self.root, padding=(12, 0))
        buttons_frame.pack(fill="x")
        if not self.scripts:
            tk.Label(buttons_frame, text="No scripts found.").pack()
        for script in self.scripts:
            btn = tk.Button(
                buttons_frame,
                text=display_name(script),
                width=40,
                command=lambda s=script: self.launch(s),
            )
            btn.pack(pady=3)
            self.buttons[script] = btn

        status = tk.Label(self.root, textvariable=self.status_var, anchor="w")
        status.pack(fill="x", padx=12, pady=(10, 2))

        log_frame = ttk.Frame(self.root, padding=(12, 0, 12, 12))
        log_frame.pack(fill="both", expand=True)
        self.log = tk.Listbox(log_frame, height=10)
        scrollbar = ttk.Scrollbar(log_frame, orient="vertical", command=self.log.yview)
        self.log.configure(yscrollcommand=scrollbar.set)
        self.log.pack(side="left", fill="both", expand=True)
        scrollbar.pack(side="right", fill="y")

    def set_buttons_enabled(self, enabled: bool):
        state = "normal" if enabled else "disabled"
        for btn in self.buttons.values():
            btn.config(state=state)

    def launch(self, script: Path):
        try:
            self.supervisor.start(script)
        except LauncherBusy as e:
            logger.warning(f"Launch refused: {e}")
            messagebox.showwarning("Busy", str(e))
            return
        except OSError as e:
            messagebox.showerror("Launch failed", f"Could not start {script.name}:\n{e}")
        self.set_buttons_enabled(not self.supervisor.busy)
        self.handle_events()

    def poll(self):
        self.supervisor.poll()
        self.handle_events()
        self.root.after(POLL_INTERVAL_MS, self.poll)

    def handle_events(self):
        for event in self.supervisor.drain():
            self.show_event(event)
        if not self.supervisor.busy:
            self.set_buttons_enabled(True)

    def show_event(self, event: RunEvent):
        name = display_name(event.script)
        if event.kind == STARTED:
            text = f"▶ Running {name}..."
        elif event.kind == FINISHED:
            text = f"✅ {name} finished in {event.elapsed}s"
        elif event.returncode is None:
            text = f"❌ {name} could not start: {event.message}"
        else:
            text = f"❌ {name} failed (exit {event.returncode}) after {event.elapsed}s"
        self.status_var.set(text)
        self.log.insert("end", f"{datetime.now():%H:%M:%S}  {text}")
        self.log.see("end")

    def on_close(self):
        if self.supervisor.busy:
            running = self.supervisor.current.script.name
            if not messagebox.askyesno("Script running", f"{running} is still running. Close anyway?"):
                return
        self.root.destroy()


def default_script_dir() -> Path:
    """The directory of the launched script, falling back to the working directory."""
    argv0 = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if argv0 and argv0.suffix == ".py" and argv0.parent.is_dir():
        return argv0.parent.resolve()
    return Path.cwd()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="report-launcher", description="Launch tenant report scripts")
    parser.add_argument("directory", nargs="?", type=Path, help="Directory holding the report scripts")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress at INFO level")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    directory = args.directory or default_script_dir()
    exclude = [Path(directory) / LAUNCHER_SCRIPT]
    if sys.argv and sys.argv[0].endswith(".py"):
        exclude.append(Path(sys.argv[0]))
    try:
        scripts = discover_scripts(directory, exclude=exclude)
    except NotADirectoryError as e:
        print(f"❌ {e}")
        return 1

    root = tk.Tk()
    LauncherApp(root, scripts)
    root.mainloop()
    return 0


def run():
    sys.exit(main())
