# File: bundlepatch/cli/patch.py
#!/usr/bin/env python3
from __future__ import annotations

"""
CLI entrypoint: patch (default) or restore every installation found.

No prompts. Exit code 0 when every targeted installation finished without
aborting, 1 when any aborted, none was found or a post-run step failed, 2 on
configuration errors.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from bundlepatch.core.configuration.loader import (
    ConfigError,
    ConfigPaths,
    Settings,
    expand_path,
    load_patch_tables,
    load_settings,
)
from bundlepatch.core.errors import ConfigurationDefect
from bundlepatch.core.install.cache import clear_caches
from bundlepatch.core.install.discovery import discover_installations
from bundlepatch.core.install.settings import disable_auto_update
from bundlepatch.core.install.workers import run_installations
from bundlepatch.core.patch_engine.config import PatchEngineConfig
from bundlepatch.core.patch_engine.definitions import PatchTable
from bundlepatch.core.patch_engine.orchestrator import PatchOrchestrator, RunReport
from bundlepatch.core.utils.logging import ConsoleLog


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundlepatch",
        description="Apply versioned literal patches to an installed application and repair its integrity manifest.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--restore",
        action="store_true",
        help="Restore the newest backup of every artifact instead of patching.",
    )
    mode.add_argument(
        "--dry-run",
        action="store_true",
        help="Classify and compute patches without backing up or writing anything.",
    )
    parser.add_argument(
        "--target-dir",
        type=Path,
        default=None,
        help="Install root to patch. Default: probe the configured search paths.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings file (default: config/bundlepatch.yml found upward, or $BUNDLEPATCH_CONFIG).",
    )
    parser.add_argument(
        "--disable-auto-update",
        action="store_true",
        help="After a successful patch run, switch off the host application's self-update.",
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="After a successful run, remove the configured cache directories.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel installation workers (default from settings).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only print the final per-installation summary.",
    )
    return parser


def _targets(args: argparse.Namespace, settings: Settings, log: ConsoleLog) -> List[Path]:
    if args.target_dir is not None:
        return [args.target_dir.expanduser().resolve()]
    found = discover_installations(settings.search_roots(), settings.layout)
    for t in found:
        log.info(f"found installation: {t}")
    return found


def _post_run(args: argparse.Namespace, settings: Settings, log: ConsoleLog) -> None:
    if args.disable_auto_update:
        toggle = settings.settings_toggle
        if toggle is None:
            log.warn("--disable-auto-update given but install.settings is not configured")
        elif disable_auto_update(expand_path(toggle.path), toggle.key, toggle.value):
            log.info(f"set {toggle.key} = {toggle.value!r} in {toggle.path}")
        else:
            log.info(f"{toggle.key} already set in {toggle.path}")
    if args.clear_cache:
        for d in clear_caches(settings.cache_roots()):
            log.info(f"cleared cache: {d}")


def _print_reports(reports: List[RunReport]) -> None:
    for r in reports:
        print(f"{r.target}: {r.summary()}")
        for w in r.warnings:
            print(f"  - {w}")


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    log = ConsoleLog("bundlepatch", quiet=args.quiet)

    try:
        settings = load_settings(ConfigPaths.detect(args.config))
        if args.restore:
            table = PatchTable()
        elif settings.patch_tables is None:
            raise ConfigError(f"'patch_tables' is not set in {settings.source}")
        else:
            table = load_patch_tables(settings.patch_tables)
    except (ConfigError, ConfigurationDefect) as e:
        log.error(str(e))
        return 2

    targets = _targets(args, settings, log)
    if not targets:
        log.error("no installation found; use --target-dir")
        return 1

    def job(root: Path) -> RunReport:
        cfg = PatchEngineConfig(root=root, layout=settings.layout, table=table, policy=settings.policy)
        orch = PatchOrchestrator(cfg, log=ConsoleLog(f"bundlepatch:{root.name}", quiet=args.quiet), dry_run=args.dry_run)
        return orch.restore() if args.restore else orch.run()

    mode = "restore" if args.restore else "patch"
    reports, code = run_installations(targets, job, workers=args.workers or settings.workers, mode=mode)
    _print_reports(reports)

    if code == 0 and not args.dry_run:
        try:
            _post_run(args, settings, log)
        except (ConfigError, OSError) as e:
            log.error(f"post-run step failed: {e}")
            return 1
    return code


if __name__ == "__main__":
    raise SystemExit(main())
