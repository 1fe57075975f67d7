"""Find the report scripts a launcher window offers as buttons."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger("tenant_reports.launcher.discovery")


def discover_scripts(directory: Path, exclude: Optional[Iterable[Path]] = None) -> list[Path]:
    """
    Sorted *.py files directly inside `directory`.
    Private modules (leading underscore) and anything in `exclude` are skipped.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise NotADirectoryError(f"Script directory not found: {directory}")

    skipped = {Path(p).resolve() for p in (exclude or ())}
    scripts = [
        path for path in directory.glob("*.py")
        if path.is_file()
        and not path.name.startswith("_")
        and path.resolve() not in skipped
    ]
    scripts.sort(key=lambda p: p.name.lower())
    logger.info(f"Discovered {len(scripts)} scripts in {directory}")
    return scripts


def display_name(script: Path) -> str:
    """`device_compliance_report.py` → `Device Compliance Report`."""
    return " ".join(word.capitalize() for word in script.stem.replace("-", "_").split("_") if word)
