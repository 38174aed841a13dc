"""Data models for pve-template-builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from pvetemplate.constants import (
    DEFAULT_BRIDGE,
    DEFAULT_DISK_SIZE,
    DEFAULT_IPCONFIG0,
    DEFAULT_PASSWORD_HASH,
    DEFAULT_SNIPPET_NAME,
    DEFAULT_SNIPPET_STORAGE,
    DEFAULT_SSH_KEYS,
)


@dataclass
class TemplateConfig:
    iso: str
    template_name: str
    template_id: int
    node_storage: str
    cores: int
    memory: int  # MiB
    cloudinit_user: str
    cloudinit_password: str
    tags: List[str]
    cloudinit_config: str  # vendor-data document, written verbatim
    disk_size: str = DEFAULT_DISK_SIZE
    bridge: str = DEFAULT_BRIDGE
    ssh_keys: str = DEFAULT_SSH_KEYS
    ipconfig0: str = DEFAULT_IPCONFIG0
    snippet_name: str = DEFAULT_SNIPPET_NAME
    snippet_storage: str = DEFAULT_SNIPPET_STORAGE
    serial_console: bool = False
    password_hash: str = DEFAULT_PASSWORD_HASH

    def tags_csv(self) -> str:
        return ",".join(self.tags)

    @property
    def cicustom(self) -> str:
        return f"vendor={self.snippet_storage}:snippets/{self.snippet_name}"


@dataclass
class RunContext:
    """Everything one build needs, handed from step to step."""

    config: TemplateConfig
    config_path: Path
    iso_path: Path
    disk_image_path: Path
    snippet_path: Path
    dry_run: bool = False
    completed_steps: List[str] = field(default_factory=list)
