"""Thin wrapper around the Proxmox ``qm`` and ``qemu-img`` command lines."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pvetemplate.utils import display_command, log, run


class QemuManager:
    """Build and run hypervisor commands, or only log them in dry-run mode."""

    def __init__(self, dry_run: bool = False, qm_binary: str = "qm", qemu_img_binary: str = "qemu-img") -> None:
        self.dry_run = dry_run
        self.qm_binary = qm_binary
        self.qemu_img_binary = qemu_img_binary
        self.history: List[List[str]] = []

    def _execute(self, cmd: List[str]) -> None:
        self.history.append(cmd)
        if self.dry_run:
            log("INFO", f"[dry-run] {display_command(cmd)}")
            return
        run(cmd)

    def _qm(self, *args: str) -> None:
        self._execute([self.qm_binary, *args])

    def status(self, vmid: int) -> Optional[str]:
        """Return the ``qm status`` line for a VM, or None when it does not exist."""
        if self.dry_run:
            return None
        result = run([self.qm_binary, "status", str(vmid)], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def exists(self, vmid: int) -> bool:
        return self.status(vmid) is not None

    def create(
        self,
        vmid: int,
        name: str,
        cores: int,
        memory: int,
        storage: str,
        bridge: str = "vmbr0",
        serial_console: bool = False,
    ) -> None:
        args = [
            "create",
            str(vmid),
            "--name",
            name,
            "--cpu",
            "host",
            "--sockets",
            "1",
            "--cores",
            str(cores),
            "--memory",
            str(memory),
            "--bios",
            "ovmf",
            "--ostype",
            "l26",
            "--machine",
            "q35",
            "--agent",
            "1",
            "--efidisk0",
            f"{storage}:0,pre-enrolled-keys=0",
            "--net0",
            f"virtio,bridge={bridge},firewall=1",
        ]
        if serial_console:
            args.extend(["--vga", "serial0", "--serial0", "socket"])
        self._qm(*args)

    def importdisk(self, vmid: int, image: Path, storage: str) -> None:
        self._qm("importdisk", str(vmid), str(image), storage)

    def set(self, vmid: int, *options: str) -> None:
        self._qm("set", str(vmid), *options)

    def template(self, vmid: int) -> None:
        self._qm("template", str(vmid))

    def resize_image(self, image: Path, size: str) -> None:
        self._execute([self.qemu_img_binary, "resize", str(image), size])
