"""Template build pipeline for pve-template-builder."""

from __future__ import annotations

import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from pvetemplate.exceptions import StepError, VMExistsError
from pvetemplate.models import RunContext
from pvetemplate.qm import QemuManager
from pvetemplate.utils import ensure_directory, hash_password, log

SEPARATOR = "-" * 20


class TemplateBuilder:
    """Run the template build steps in order and always drop the scratch disk."""

    STEPS = (
        "copy_iso",
        "resize_disk",
        "create_vm",
        "import_disks",
        "write_snippet",
        "apply_cloud_init",
        "convert_to_template",
    )

    def __init__(self, ctx: RunContext, qm: Optional[QemuManager] = None) -> None:
        self.ctx = ctx
        self.cfg = ctx.config
        self.qm = qm if qm is not None else QemuManager(dry_run=ctx.dry_run)

    @property
    def vmid(self) -> int:
        return self.cfg.template_id

    def build(self) -> None:
        with self.scratch_disk():
            for step in self.STEPS:
                getattr(self, step)()
                self.ctx.completed_steps.append(step)
        log("SUCCESS", "Template created successfully!")

    @contextmanager
    def scratch_disk(self) -> Iterator[Path]:
        """Scope of the temporary disk image; cleanup runs on every exit path."""
        try:
            yield self.ctx.disk_image_path
        finally:
            self.cleanup()

    def copy_iso(self) -> None:
        target = self.ctx.disk_image_path
        if target.exists():
            log("INFO", f"Disk image already present at {target}; skipping copy")
            return
        log("INFO", f"Copying iso file to {target.parent}/...")
        if self.ctx.dry_run:
            log("INFO", f"[dry-run] cp {self.ctx.iso_path} {target}")
            return
        try:
            ensure_directory(target.parent)
            shutil.copyfile(self.ctx.iso_path, target)
        except OSError as exc:
            raise StepError("cp", 1, str(exc)) from exc
        log("INFO", f"iso file copied to {target}")

    def resize_disk(self) -> None:
        log("INFO", f"Resizing image file to {self.cfg.disk_size}...")
        self.qm.resize_image(self.ctx.disk_image_path, self.cfg.disk_size)

    def create_vm(self) -> None:
        if self.qm.exists(self.vmid):
            raise VMExistsError(self.vmid)

        log("INFO", "Creating a new VM...")
        self.qm.create(
            self.vmid,
            name=self.cfg.template_name,
            cores=self.cfg.cores,
            memory=self.cfg.memory,
            storage=self.cfg.node_storage,
            bridge=self.cfg.bridge,
            serial_console=self.cfg.serial_console,
        )
        log("SUCCESS", "VM created successfully.")
        log("INFO", SEPARATOR)

    def import_disks(self) -> None:
        storage = self.cfg.node_storage
        log("INFO", "Importing disks (including cloudinit)...")
        self.qm.importdisk(self.vmid, self.ctx.disk_image_path, storage)
        # disk-0 is the EFI disk created with the VM, so the import lands on disk-1.
        self.qm.set(
            self.vmid,
            "--scsihw",
            "virtio-scsi-pci",
            "--virtio0",
            f"{storage}:vm-{self.vmid}-disk-1,iothread=1",
        )
        self.qm.set(self.vmid, "--boot", "c", "--bootdisk", "virtio0")
        self.qm.set(self.vmid, "--ide2", f"{storage}:cloudinit")
        log("SUCCESS", "Disks imported successfully.")
        log("INFO", SEPARATOR)

    def write_snippet(self) -> None:
        snippet = self.ctx.snippet_path
        log("INFO", "Creating snippets file...")
        if self.ctx.dry_run:
            log("INFO", f"[dry-run] write {len(self.cfg.cloudinit_config)} bytes to {snippet}")
            return
        try:
            ensure_directory(snippet.parent)
            snippet.write_text(self.cfg.cloudinit_config)
        except OSError as exc:
            raise StepError("write snippet", 1, str(exc)) from exc
        log("DEBUG", self.cfg.cloudinit_config.rstrip())
        log("SUCCESS", f"Snippets file created at {snippet}")
        log("INFO", SEPARATOR)

    def apply_cloud_init(self) -> None:
        log("INFO", "Setting cloud-init settings...")
        self.qm.set(self.vmid, "--cicustom", self.cfg.cicustom)
        if self.cfg.tags:
            self.qm.set(self.vmid, "--tags", self.cfg.tags_csv())
        self.qm.set(self.vmid, "--ciuser", self.cfg.cloudinit_user)
        hashed = hash_password(self.cfg.cloudinit_password, self.cfg.password_hash)
        self.qm.set(self.vmid, "--cipassword", hashed)

        ssh_keys = Path(self.cfg.ssh_keys).expanduser()
        if ssh_keys.is_file() or self.ctx.dry_run:
            self.qm.set(self.vmid, "--sshkeys", str(ssh_keys))
        else:
            log("WARN", f"SSH key file {ssh_keys} not found; template will have no SSH keys")

        self.qm.set(self.vmid, "--ipconfig0", self.cfg.ipconfig0)
        log("SUCCESS", "Cloud-init settings set successfully.")
        log("INFO", SEPARATOR)

    def convert_to_template(self) -> None:
        log("INFO", f"Converting VM {self.vmid} to a template...")
        self.qm.template(self.vmid)

    def cleanup(self) -> None:
        image = self.ctx.disk_image_path
        if self.ctx.dry_run:
            log("DEBUG", f"[dry-run] would remove {image}")
            return
        try:
            image.unlink(missing_ok=True)
        except OSError as exc:
            log("WARN", f"Failed to remove {image}: {exc}")
            return
        log("DEBUG", f"Removed temporary disk image {image}")
