"""Shared test fixtures."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest
import yaml

from pvetemplate.exceptions import StepError
from pvetemplate.models import RunContext, TemplateConfig
from pvetemplate.utils import command_label


@pytest.fixture
def config_data() -> dict:
    """Return a complete template config as it would appear in YAML."""
    return {
        "iso": "noble-server-cloudimg-amd64.img",
        "template_name": "ubuntu-2404-cloudinit",
        "template_id": 9000,
        "node_storage": "local-lvm",
        "cores": 2,
        "memory": 2048,
        "cloudinit_user": "ubuntu",
        "cloudinit_password": "changeme",
        "tags": ["ubuntu", "template"],
        "cloudinit_config": "#cloud-config\npackages:\n  - qemu-guest-agent\n",
    }


@pytest.fixture
def write_config(tmp_path):
    """Write a mapping to a YAML file under tmp_path and return its path."""

    def _write(data, name: str = "template.yml"):
        path = tmp_path / name
        if isinstance(data, str):
            path.write_text(data)
        else:
            path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path

    return _write


@pytest.fixture
def template_config() -> TemplateConfig:
    return TemplateConfig(
        iso="noble-server-cloudimg-amd64.img",
        template_name="ubuntu-2404-cloudinit",
        template_id=9000,
        node_storage="local-lvm",
        cores=2,
        memory=2048,
        cloudinit_user="ubuntu",
        cloudinit_password="changeme",
        tags=["ubuntu", "template"],
        cloudinit_config="#cloud-config\npackages:\n  - qemu-guest-agent\n",
    )


@pytest.fixture
def run_context(tmp_path, template_config) -> RunContext:
    """A RunContext whose ISO, scratch and snippet paths all live in tmp_path."""
    iso_dir = tmp_path / "iso"
    iso_dir.mkdir()
    iso_path = iso_dir / template_config.iso
    iso_path.write_bytes(b"qcow2-image")
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    keys = tmp_path / "authorized_keys"
    keys.write_text("ssh-ed25519 AAAAC3Nza test@example\n")
    template_config.ssh_keys = str(keys)
    return RunContext(
        config=template_config,
        config_path=tmp_path / "template.yml",
        iso_path=iso_path,
        disk_image_path=scratch / template_config.iso,
        snippet_path=tmp_path / "snippets" / template_config.snippet_name,
    )


class FakeHost:
    """Stand-in for the ``run`` helper that records hypervisor commands.

    ``existing`` lists VM IDs that ``qm status`` reports; ``fail_on`` names a
    command (e.g. ``"qm create"``) that exits with ``returncode``.
    """

    def __init__(self, existing=(), fail_on=None, returncode=1):
        self.existing = set(existing)
        self.fail_on = fail_on
        self.returncode = returncode
        self.commands = []

    def __call__(self, cmd, check=True, **kwargs):
        self.commands.append(list(cmd))
        if cmd[:2] == ["qm", "status"]:
            found = int(cmd[2]) in self.existing
            return subprocess.CompletedProcess(
                cmd, 0 if found else 2, stdout="status: stopped\n" if found else "", stderr=""
            )
        if command_label(cmd) == self.fail_on:
            raise StepError(self.fail_on, self.returncode, "simulated failure")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def labels(self):
        return [command_label(cmd) for cmd in self.commands]


@pytest.fixture
def fake_host():
    """Patch the hypervisor command runner; call with FakeHost kwargs."""
    patchers = []

    def _install(**kwargs):
        host = FakeHost(**kwargs)
        patcher = patch("pvetemplate.qm.run", side_effect=host)
        patcher.start()
        patchers.append(patcher)
        return host

    yield _install
    for patcher in patchers:
        patcher.stop()
