"""Host and invocation checks that run before anything is touched."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pvetemplate.constants import CONFIG_EXTENSIONS, REQUIRED_BINARIES
from pvetemplate.exceptions import PreflightError, StepError
from pvetemplate.utils import command_exists, is_root, log, run

USAGE = "Usage: pve-template <path_to_config.yml> (e.g. pve-template /home/user/config.yml)"


def check_root() -> None:
    if not is_root():
        raise PreflightError("Please run as root")


def validate_config_path(raw: str) -> Path:
    """Accept only ``.yml``/``.yaml`` paths; existence is checked later."""
    if not raw or not raw.endswith(CONFIG_EXTENSIONS):
        raise PreflightError(USAGE)
    return Path(raw)


def _install_packages(packages: List[str]) -> None:
    log("INFO", f"Installing missing packages: {', '.join(packages)}")
    try:
        run(["apt", "update"])
        run(["apt", "install", "-y", *packages])
    except StepError as exc:
        raise PreflightError(f"Failed to install {', '.join(packages)}: {exc}") from exc


def ensure_dependencies(binaries: Optional[Dict[str, Optional[str]]] = None, install: bool = True) -> None:
    """Make sure every required binary is on PATH, installing what apt can provide."""
    if binaries is None:
        binaries = REQUIRED_BINARIES

    missing = [name for name in binaries if not command_exists(name)]
    if not missing:
        log("DEBUG", f"Dependencies present: {', '.join(binaries)}")
        return

    unavailable = [name for name in missing if binaries[name] is None]
    if unavailable:
        raise PreflightError(
            f"Required command(s) not found: {', '.join(unavailable)}. "
            "This tool must run on a Proxmox VE host."
        )

    packages = sorted({binaries[name] for name in missing})  # type: ignore[misc]
    for name in missing:
        log("WARN", f"{name} is not installed")
    if not install:
        raise PreflightError(f"Missing package(s): {', '.join(packages)}. Install them and try again.")
    _install_packages(packages)

    still_missing = [name for name in missing if not command_exists(name)]
    if still_missing:
        raise PreflightError(f"Required command(s) still missing after install: {', '.join(still_missing)}")


def locate_iso(iso_dir: Path, iso_name: str) -> Path:
    iso_path = iso_dir / iso_name
    if not iso_path.is_file():
        raise PreflightError(
            f"iso file not found at: {iso_path}. "
            "Please check the config file to ensure the iso file is correct."
        )
    return iso_path
