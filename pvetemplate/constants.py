"""Global constants and path configuration for pve-template-builder."""

from __future__ import annotations

import os
import re
from pathlib import Path

# Proxmox keeps uploaded ISOs and cloud-init snippets under the "local" storage.
ISO_DIR = Path(os.environ.get("PVE_ISO_DIR", "/var/lib/vz/template/iso"))
SNIPPETS_DIR = Path(os.environ.get("PVE_SNIPPETS_DIR", "/var/lib/vz/snippets"))
# The working copy of the ISO is resized and imported from here, then removed.
SCRATCH_DIR = Path(os.environ.get("PVE_SCRATCH_DIR", "/tmp"))

CONFIG_EXTENSIONS = (".yml", ".yaml")

TRUTHY = {"1", "true", "yes", "on"}

REQUIRED_KEYS = (
    "iso",
    "template_name",
    "template_id",
    "node_storage",
    "cores",
    "memory",
    "cloudinit_user",
    "cloudinit_password",
    "tags",
    "cloudinit_config",
)

# Older configs used these names for the cloud-init credentials.
LEGACY_KEY_ALIASES = {
    "default_username": "cloudinit_user",
    "default_password": "cloudinit_password",
}

DEFAULT_DISK_SIZE = "32G"
DEFAULT_BRIDGE = "vmbr0"
DEFAULT_SSH_KEYS = "~/.ssh/authorized_keys"
DEFAULT_IPCONFIG0 = "ip=dhcp"
DEFAULT_SNIPPET_NAME = "vendor.yaml"
DEFAULT_SNIPPET_STORAGE = "local"
DEFAULT_PASSWORD_HASH = "sha512"

PASSWORD_HASH_SCHEMES = {"sha512", "bcrypt"}

# Binary -> Debian package that provides it. None means it cannot be installed here.
REQUIRED_BINARIES = {
    "qm": None,
    "qemu-img": "qemu-utils",
}

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in {"1", "true", "yes", "on"}

DISK_SIZE_RE = re.compile(r"^\d+[KMGTkmgt]?$")

_SENSITIVE_FIELDS = {"cloudinit_password"}
