"""Custom exceptions for pve-template-builder."""

from __future__ import annotations

from typing import Optional


class TemplateError(RuntimeError):
    """Base class for every error the builder reports to the user."""

    exit_code = 1


class PreflightError(TemplateError):
    """Raised when the host or the invocation is not fit to run."""


class ConfigError(TemplateError):
    """Raised when the template config cannot be read or is incomplete."""


class StepError(TemplateError):
    """Raised when a delegated command exits with a nonzero status."""

    def __init__(self, command: str, returncode: int, stderr: Optional[str] = None) -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"Command '{command}' failed with exit code {returncode}")

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        return self.returncode if self.returncode > 0 else 1


class VMExistsError(StepError):
    """Raised when the template ID is already taken by a VM."""

    def __init__(self, vmid: int) -> None:
        self.vmid = vmid
        super().__init__("qm status", 1)
        self.args = (f"VM with ID {vmid} already exists.",)
