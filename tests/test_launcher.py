import time
from pathlib import Path

import pytest

from tenant_reports.launcher import (
    FAILED,
    FINISHED,
    STARTED,
    LauncherBusy,
    ScriptSupervisor,
    discover_scripts,
    display_name,
)


def write_script(directory: Path, name: str, body: str = "") -> Path:
    path = directory / name
    path.write_text(body)
    return path


def wait_for_event(supervisor: ScriptSupervisor, timeout: float = 20.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        event = supervisor.poll()
        if event is not None:
            return event
        time.sleep(0.05)
    pytest.fail("script did not finish in time")


def test_discover_scripts(tmp_path):
    for name in ["license_audit.py", "Device_Report.py", "_helpers.py", "notes.txt", "script_launcher.py"]:
        write_script(tmp_path, name)
    (tmp_path / "package.py").mkdir()

    scripts = discover_scripts(tmp_path, exclude=[tmp_path / "script_launcher.py"])
    assert [p.name for p in scripts] == ["Device_Report.py", "license_audit.py"]


def test_discover_scripts_missing_directory(tmp_path):
    with pytest.raises(NotADirectoryError):
        discover_scripts(tmp_path / "missing")


def test_display_name():
    assert display_name(Path("device_compliance_report.py")) == "Device Compliance Report"
    assert display_name(Path("license-audit.py")) == "License Audit"


def test_successful_run(tmp_path):
    script = write_script(tmp_path, "ok.py", "print('done')\n")
    supervisor = ScriptSupervisor()
    run = supervisor.start(script)
    assert run.script == script
    assert supervisor.busy

    event = wait_for_event(supervisor)
    assert event.kind == FINISHED
    assert event.succeeded
    assert event.returncode == 0
    assert not supervisor.busy
    assert [e.kind for e in supervisor.drain()] == [STARTED, FINISHED]
    assert supervisor.drain() == []


def test_failed_run(tmp_path):
    script = write_script(tmp_path, "bad.py", "import sys\nsys.exit(3)\n")
    supervisor = ScriptSupervisor()
    supervisor.start(script)
    event = wait_for_event(supervisor)
    assert event.kind == FAILED
    assert event.returncode == 3


def test_one_run_at_a_time(tmp_path):
    slow = write_script(tmp_path, "slow.py", "import time\ntime.sleep(1)\n")
    other = write_script(tmp_path, "other.py")
    supervisor = ScriptSupervisor()
    supervisor.start(slow)
    with pytest.raises(LauncherBusy):
        supervisor.start(other)
    assert supervisor.poll() is None
    wait_for_event(supervisor)
    supervisor.start(other)
    assert wait_for_event(supervisor).kind == FINISHED


def test_unstartable_interpreter(tmp_path):
    script = write_script(tmp_path, "ok.py")
    supervisor = ScriptSupervisor(interpreter=str(tmp_path / "no-such-python"))
    with pytest.raises(OSError):
        supervisor.start(script)
    assert not supervisor.busy
    events = supervisor.drain()
    assert [e.kind for e in events] == [FAILED]
    assert events[0].returncode is None
