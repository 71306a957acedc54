"""
wdspatch command line
=====================

Patches every install image in a Windows Deployment Services repository
with the update packages found in a local WSUS content mirror.

Usage:
    wdspatch                                     # Prompt for both paths
    wdspatch --scratch C:\\Temp --wsus-content Z:\\WsusContent
    wdspatch --dry-run --verbose                 # Log without changing anything

The scratch folder and WSUS content path are read from the command line,
then from the configuration file, and finally asked for interactively
before any other work starts.

Exit codes: 0 when every image was updated, 1 when the run could not
start (scratch folder, inventory, privileges, input) and 2 when at least
one image failed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Callable, Dict, List, Optional

from . import config as _config
from .driver import run_updates
from .models import CLEANUP_POLICIES, EXIT_SETUP_FAILED
from .naming import use_system_date_format
from .servicing_ops import get_servicing_ops

SCRATCH_PROMPT = "Scratch folder path (e.g. C:\\Temp): "
CONTENT_PROMPT = "WSUS content path (e.g. Z:\\WsusContent): "

logger = logging.getLogger("wdspatch")


def _setup_logging(log_cfg: Dict[str, Any]) -> None:
    """Configure the root logging handler based on the config.

    Parameters
    ----------
    log_cfg : dict
        Logging configuration with 'level' and optional 'file'.
    """
    level_name = str(log_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    handlers: List[logging.Handler] = []
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    handlers.append(stream_handler)
    log_file = log_cfg.get("file")
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        handlers.append(file_handler)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wdspatch",
        description="Patch WDS install images with updates from a WSUS content folder",
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Path to YAML/JSON configuration file"
    )
    parser.add_argument(
        "--dump-default-config",
        type=str,
        dest="dump_cfg",
        help="Dump the default configuration to the specified path and exit",
    )
    parser.add_argument("--scratch", type=str, help="Scratch folder for exports and mounts")
    parser.add_argument("--wsus-content", type=str, help="WSUS content directory")
    parser.add_argument(
        "--image",
        action="append",
        dest="images",
        metavar="GLOB",
        help="Only update images whose name matches GLOB (repeatable)",
    )
    parser.add_argument(
        "--cleanup",
        choices=CLEANUP_POLICIES,
        help="Cleanup policy for temporary files when an image fails",
    )
    parser.add_argument("--tool-name", type=str, help="Name recorded in the update annotation")
    parser.add_argument(
        "--dry-run", action="store_true", help="Log servicing operations without running them"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser


def _apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> None:
    paths = cfg.setdefault("paths", {})
    updater = cfg.setdefault("updater", {})
    if args.scratch:
        paths["scratch_path"] = args.scratch
    if args.wsus_content:
        paths["wsus_content_path"] = args.wsus_content
    if args.images:
        updater["image_filters"] = list(args.images)
    if args.cleanup:
        updater["cleanup_policy"] = args.cleanup
    if args.tool_name:
        updater["tool_name"] = args.tool_name
    if args.dry_run:
        cfg.setdefault("servicing", {})["mode"] = "dry-run"
    if args.verbose:
        cfg.setdefault("logging", {})["level"] = "DEBUG"


def _prompt_missing_paths(cfg: Dict[str, Any], prompt: Callable[[str], str]) -> bool:
    """Ask for any path the command line and config left empty.

    Returns
    -------
    bool
        False if the operator gave an empty answer.
    """
    paths = cfg.setdefault("paths", {})
    for key, question in (("scratch_path", SCRATCH_PROMPT), ("wsus_content_path", CONTENT_PROMPT)):
        if paths.get(key):
            continue
        answer = prompt(question).strip().strip('"')
        if not answer:
            print(f"ERROR: {key.replace('_', ' ')} is required")
            return False
        paths[key] = answer
    return True


def main(argv: Optional[List[str]] = None, prompt: Callable[[str], str] = input) -> int:
    """Entry point for the image updater.

    Parameters
    ----------
    argv : list of str, optional
        Command line arguments; defaults to ``sys.argv[1:]``.
    prompt : callable
        Function used to ask for missing paths.

    Returns
    -------
    int
        Process exit code.
    """
    args = _build_parser().parse_args(argv)

    if args.dump_cfg:
        _config.dump_default_config(args.dump_cfg)
        print(f"Default configuration written to {args.dump_cfg}")
        return 0

    try:
        cfg = _config.load_config(args.config)
    except ValueError as exc:
        print(f"ERROR: {exc}")
        return EXIT_SETUP_FAILED
    _apply_overrides(cfg, args)

    try:
        if not _prompt_missing_paths(cfg, prompt):
            return EXIT_SETUP_FAILED
    except (EOFError, KeyboardInterrupt):
        print("\nAborted by user")
        return EXIT_SETUP_FAILED

    _setup_logging(cfg.get("logging", {}))
    use_system_date_format()

    servicing_cfg = cfg.get("servicing", {})
    dry_run = servicing_cfg.get("mode") == "dry-run"
    ops = get_servicing_ops(
        dry_run=dry_run, powershell=servicing_cfg.get("powershell", "powershell.exe")
    )
    if dry_run:
        logger.warning("DRY-RUN MODE - no images will be changed")
    elif not ops.check_admin_privileges():
        logger.error("Administrator privileges required for image servicing")
        return EXIT_SETUP_FAILED

    try:
        settings = _config.build_settings(cfg)
    except ValueError as exc:
        logger.error("%s", exc)
        return EXIT_SETUP_FAILED

    logger.info("Scratch folder: %s", settings.scratch_path)
    logger.info("WSUS content:   %s", settings.wsus_content_path)

    try:
        run = run_updates(settings, ops)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130

    if not run.setup_ok:
        logger.error("Run aborted before any image was processed")
    return run.exit_code


if __name__ == "__main__":
    sys.exit(main())
