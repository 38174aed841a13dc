"""Utility functions for pve-template-builder."""

from __future__ import annotations

import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import List

try:
    import bcrypt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("bcrypt is required but not installed") from exc

try:
    from passlib.hash import sha512_crypt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("passlib is required but not installed") from exc

from pvetemplate.constants import (
    _LOG_VERBOSE,
    DISK_SIZE_RE,
    PASSWORD_HASH_SCHEMES,
)
from pvetemplate.exceptions import ConfigError, StepError

_REDACTED_OPTIONS = {"--cipassword"}


def log(level: str, message: str) -> None:
    """Lightweight structured logging with a colour per level."""
    if level == "DEBUG" and not _LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def validate_disk_size(raw: str) -> str:
    if not DISK_SIZE_RE.match(raw):
        raise ConfigError(
            f"Invalid disk_size '{raw}'. Use a number with optional suffix: K, M, G, T (e.g. '32G')"
        )
    return raw


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def is_root() -> bool:
    return os.geteuid() == 0


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def hash_password(password: str, scheme: str = "sha512") -> str:
    """Hash a cleartext password for ``qm set --cipassword``.

    ``sha512`` yields the same ``$6$`` crypt format as ``openssl passwd -6``;
    ``bcrypt`` yields a ``$2b$`` hash.
    """
    if scheme not in PASSWORD_HASH_SCHEMES:
        supported = ", ".join(sorted(PASSWORD_HASH_SCHEMES))
        raise ConfigError(f"Unsupported password_hash '{scheme}'. Supported: {supported}")
    if scheme == "bcrypt":
        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
        return hashed.decode("utf-8")
    return sha512_crypt.using(rounds=5000).hash(password)


def command_label(cmd: List[str]) -> str:
    """Short name for a command, e.g. ``qm create`` or ``qemu-img resize``."""
    return " ".join([Path(cmd[0]).name, *cmd[1:2]])


def display_command(cmd: List[str]) -> str:
    """Render a command for the log with secrets masked."""
    shown: List[str] = []
    mask_next = False
    for part in cmd:
        if mask_next:
            shown.append("********")
            mask_next = False
            continue
        shown.append(shlex.quote(part))
        mask_next = part in _REDACTED_OPTIONS
    return " ".join(shown)


def run(cmd: List[str], check: bool = True, **kwargs) -> subprocess.CompletedProcess:
    """Run command with logging, capturing its output.

    With ``check`` set, a nonzero exit status raises :class:`StepError` carrying
    the command label and exit code.
    """
    log("DEBUG", f"Running: {display_command(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, **kwargs)
    except FileNotFoundError:
        # Same status a shell reports for a missing binary.
        raise StepError(command_label(cmd), 127, f"{cmd[0]}: command not found")
    if result.stdout:
        log("DEBUG", result.stdout.rstrip())
    if check and result.returncode != 0:
        stderr = (result.stderr or "").strip() or None
        raise StepError(command_label(cmd), result.returncode, stderr)
    return result
