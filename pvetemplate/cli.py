"""CLI entry points for pve-template-builder."""

from __future__ import annotations

import argparse
import dataclasses
import traceback
from pathlib import Path
from typing import List, Optional

from pvetemplate import __version__
from pvetemplate.builder import TemplateBuilder
from pvetemplate.config import load_template_config
from pvetemplate.constants import (
    _SENSITIVE_FIELDS,
    ISO_DIR,
    SCRATCH_DIR,
    SNIPPETS_DIR,
)
from pvetemplate.exceptions import PreflightError, StepError, TemplateError
from pvetemplate.models import RunContext, TemplateConfig
from pvetemplate.preflight import (
    USAGE,
    check_root,
    ensure_dependencies,
    locate_iso,
    validate_config_path,
)
from pvetemplate.utils import log


class _ArgumentParser(argparse.ArgumentParser):
    """Report bad arguments as a usage error instead of exiting with status 2."""

    def error(self, message):
        raise PreflightError(f"{USAGE} ({message})")


def show_config(cfg: TemplateConfig) -> None:
    """Print the resolved template configuration."""
    for field in dataclasses.fields(cfg):
        value = getattr(cfg, field.name)
        if field.name in _SENSITIVE_FIELDS:
            print(f"  {field.name}: ********")
        elif field.name == "cloudinit_config":
            print(f"  {field.name}: |")
            for line in value.rstrip().splitlines():
                print(f"    {line}")
        else:
            print(f"  {field.name}: {value}")


def build_context(
    cfg: TemplateConfig,
    config_path: Path,
    iso_path: Path,
    dry_run: bool = False,
    scratch_dir: Optional[Path] = None,
    snippets_dir: Optional[Path] = None,
) -> RunContext:
    if scratch_dir is None:
        scratch_dir = SCRATCH_DIR
    if snippets_dir is None:
        snippets_dir = SNIPPETS_DIR
    return RunContext(
        config=cfg,
        config_path=config_path,
        iso_path=iso_path,
        disk_image_path=scratch_dir / cfg.iso,
        snippet_path=snippets_dir / cfg.snippet_name,
        dry_run=dry_run,
    )


def print_summary(ctx: RunContext) -> None:
    """Print a short banner describing the template that was built."""
    cfg = ctx.config
    lines: List[str] = [
        f"  Template: {cfg.template_name} (ID {cfg.template_id})",
        f"  Storage:  {cfg.node_storage} | Disk: {cfg.disk_size}",
        f"  CPU/RAM:  {cfg.cores} cores, {cfg.memory} MiB",
        f"  User:     {cfg.cloudinit_user}",
        f"  Snippet:  {ctx.snippet_path} ({cfg.cicustom})",
        f"  Config:   {ctx.config_path}",
    ]
    if cfg.tags:
        lines.append(f"  Tags:     {cfg.tags_csv()}")
    lines.append("")
    lines.append(f"  Clone with: qm clone {cfg.template_id} <new-id> --name <new-name> --full")

    max_len = max(len(line) for line in lines)
    border_len = max_len + 2
    banner_colour = "\033[0;36m"
    reset = "\033[0m"
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)
    for line in lines:
        print(f"{banner_colour}{line}{reset}", flush=True)
    print(f"{banner_colour}{'=' * border_len}{reset}", flush=True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = _ArgumentParser(
        prog="pve-template",
        description="Create a cloud-init ready Proxmox VE VM template from a YAML config",
    )
    parser.add_argument("config", nargs="*", metavar="CONFIG", help="Path to the template config (.yml or .yaml)")
    parser.add_argument("--dry-run", action="store_true", help="Check everything and print the plan without changing anything")
    parser.add_argument("--show-config", action="store_true", help="Show the resolved template configuration and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    usage_error: Optional[PreflightError] = None
    try:
        args = parser.parse_args(argv)
    except PreflightError as exc:
        usage_error = exc

    try:
        check_root()
        if usage_error is not None:
            raise usage_error
        if len(args.config) != 1:
            raise PreflightError(USAGE)
        config_path = validate_config_path(args.config[0])
        cfg = load_template_config(config_path)

        if args.show_config:
            show_config(cfg)
            return 0

        ensure_dependencies(install=not args.dry_run)
        iso_path = locate_iso(ISO_DIR, cfg.iso)
    except TemplateError as exc:
        log("ERROR", str(exc))
        return exc.exit_code

    ctx = build_context(cfg, config_path, iso_path, dry_run=args.dry_run)
    log("INFO", f"Config: {config_path}")
    log("INFO", f"Template: {cfg.template_name} (ID {cfg.template_id}) on {cfg.node_storage}")
    log("INFO", f"Source ISO: {iso_path} | Disk: {cfg.disk_size} | Cores: {cfg.cores} | Memory: {cfg.memory} MiB")
    if args.dry_run:
        log("INFO", "=== Dry run: no command will be executed ===")

    builder = TemplateBuilder(ctx)
    try:
        builder.build()
    except StepError as exc:
        log("ERROR", f"Error: {exc}")
        if exc.stderr:
            log("ERROR", exc.stderr)
        return exc.exit_code
    except TemplateError as exc:
        log("ERROR", str(exc))
        return exc.exit_code
    except KeyboardInterrupt:
        log("WARN", "Interrupted")
        return 130
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        traceback.print_exc()
        return 1

    if args.dry_run:
        log("INFO", "=== Dry run complete (no template created) ===")
    else:
        print_summary(ctx)
    return 0
