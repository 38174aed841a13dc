"""Template config loading for pve-template-builder."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from pvetemplate.constants import (
    DEFAULT_BRIDGE,
    DEFAULT_DISK_SIZE,
    DEFAULT_IPCONFIG0,
    DEFAULT_PASSWORD_HASH,
    DEFAULT_SNIPPET_NAME,
    DEFAULT_SNIPPET_STORAGE,
    DEFAULT_SSH_KEYS,
    LEGACY_KEY_ALIASES,
    PASSWORD_HASH_SCHEMES,
    REQUIRED_KEYS,
    TRUTHY,
)
from pvetemplate.exceptions import ConfigError
from pvetemplate.models import TemplateConfig
from pvetemplate.utils import log, validate_disk_size

CLOUD_CONFIG_HEADER = "#cloud-config"


def read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    if not path.is_file():
        raise ConfigError(f"Config path must point to a regular file: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}")
    except UnicodeDecodeError as exc:
        raise ConfigError(f"Config file {path} is not valid UTF-8 text: {exc}")
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} contains invalid YAML: {exc}")
    if not isinstance(data, dict):
        got = type(data).__name__ if data is not None else "an empty document"
        raise ConfigError(f"Config file {path} must contain a YAML mapping, got {got}")
    return data


def _apply_legacy_aliases(data: Dict[str, Any]) -> Dict[str, Any]:
    resolved = dict(data)
    for legacy, canonical in LEGACY_KEY_ALIASES.items():
        if legacy not in resolved:
            continue
        value = resolved.pop(legacy)
        if canonical in resolved:
            log("WARN", f"Both '{canonical}' and '{legacy}' are set; ignoring '{legacy}'")
            continue
        log("WARN", f"Config key '{legacy}' is deprecated; use '{canonical}' instead")
        resolved[canonical] = value
    return resolved


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _as_int(data: Dict[str, Any], key: str) -> int:
    raw = data[key]
    if isinstance(raw, bool):
        raise ConfigError(f"{key} must be an integer (got '{raw}')")
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ConfigError(f"{key} must be an integer (got '{raw}')")
    if value < 1:
        raise ConfigError(f"{key} must be >= 1 (got {value})")
    return value


def _as_str(data: Dict[str, Any], key: str, default: str = "") -> str:
    raw = data.get(key)
    if raw is None:
        return default
    value = str(raw).strip()
    return value or default


def _as_filename(data: Dict[str, Any], key: str, default: str = "") -> str:
    """A bare file name; anything that would escape its base directory is rejected."""
    value = _as_str(data, key, default)
    if Path(value).name != value or value in (".", ".."):
        raise ConfigError(f"{key} must be a bare file name, not a path (got '{value}')")
    return value


def _as_bool(data: Dict[str, Any], key: str, default: bool = False) -> bool:
    raw = data.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in TRUTHY


def _as_tags(raw: Any) -> List[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(tag).strip() for tag in raw if str(tag).strip()]
    tag = str(raw).strip()
    return [tag] if tag else []


def render_cloudinit_config(raw: Any) -> str:
    """Turn the embedded ``cloudinit_config`` value into snippet text.

    Strings are passed through untouched. Structured values are dumped back to
    YAML in their original key order under a ``#cloud-config`` header.
    """
    if isinstance(raw, str):
        return raw if raw.endswith("\n") else raw + "\n"
    body = yaml.safe_dump(raw, default_flow_style=False, sort_keys=False)
    return f"{CLOUD_CONFIG_HEADER}\n{body}"


def load_template_config(path: Path) -> TemplateConfig:
    data = _apply_legacy_aliases(read_config_file(path))

    missing = [key for key in REQUIRED_KEYS if _is_blank(data.get(key))]
    if missing:
        raise ConfigError(
            f"Config file {path} is missing required key(s): {', '.join(missing)}"
        )

    password_hash = _as_str(data, "password_hash", DEFAULT_PASSWORD_HASH).lower()
    if password_hash not in PASSWORD_HASH_SCHEMES:
        supported = ", ".join(sorted(PASSWORD_HASH_SCHEMES))
        raise ConfigError(f"Unsupported password_hash '{password_hash}'. Supported: {supported}")

    tags = _as_tags(data["tags"])
    if not tags:
        log("WARN", "No tags configured; the template will be untagged")

    return TemplateConfig(
        iso=_as_filename(data, "iso"),
        template_name=_as_str(data, "template_name"),
        template_id=_as_int(data, "template_id"),
        node_storage=_as_str(data, "node_storage"),
        cores=_as_int(data, "cores"),
        memory=_as_int(data, "memory"),
        cloudinit_user=_as_str(data, "cloudinit_user"),
        cloudinit_password=str(data["cloudinit_password"]),
        tags=tags,
        cloudinit_config=render_cloudinit_config(data["cloudinit_config"]),
        disk_size=validate_disk_size(_as_str(data, "disk_size", DEFAULT_DISK_SIZE)),
        bridge=_as_str(data, "bridge", DEFAULT_BRIDGE),
        ssh_keys=_as_str(data, "ssh_keys", DEFAULT_SSH_KEYS),
        ipconfig0=_as_str(data, "ipconfig0", DEFAULT_IPCONFIG0),
        snippet_name=_as_filename(data, "snippet_name", DEFAULT_SNIPPET_NAME),
        snippet_storage=_as_str(data, "snippet_storage", DEFAULT_SNIPPET_STORAGE),
        serial_console=_as_bool(data, "serial_console", False),
        password_hash=password_hash,
    )
