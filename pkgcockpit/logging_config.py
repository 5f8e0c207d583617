#===============================================================================
#  Package Cockpit | logging_config.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Root logger setup for the CLI: a DEBUG file log plus a rich console handler.
#  Calling configure_logging() again only adjusts the console level.
#
#    PKGCOCKPIT_LOG_FILE  - full path of the log file
#    PKGCOCKPIT_LOG_DIR   - directory for cockpit.log (ignored if LOG_FILE set)
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .constants import library_dir

LOG_FILE_ENV = "PKGCOCKPIT_LOG_FILE"
LOG_DIR_ENV = "PKGCOCKPIT_LOG_DIR"
DEFAULT_LOG_NAME = "cockpit.log"

_HANDLER_TAG = "_pkgcockpit_handler"
_LOG_PATH: Optional[Path] = None
_CONSOLE_HANDLER: Optional[RichHandler] = None


def resolve_log_path() -> Path:
    env_file = os.environ.get(LOG_FILE_ENV)
    if env_file:
        return Path(env_file).expanduser()
    env_dir = os.environ.get(LOG_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser() / DEFAULT_LOG_NAME
    return library_dir() / "logs" / DEFAULT_LOG_NAME


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> Path:
    """Install the cockpit handlers on the root logger once; returns the log file path."""
    global _LOG_PATH, _CONSOLE_HANDLER

    console_level = logging.DEBUG if verbose else logging.WARNING
    if _LOG_PATH is not None and _CONSOLE_HANDLER is not None:
        _CONSOLE_HANDLER.setLevel(console_level)
        return _LOG_PATH

    log_path = resolve_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    setattr(file_handler, _HANDLER_TAG, True)
    root.addHandler(file_handler)

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    console_handler.setLevel(console_level)
    setattr(console_handler, _HANDLER_TAG, True)
    root.addHandler(console_handler)

    _LOG_PATH = log_path
    _CONSOLE_HANDLER = console_handler
    logging.getLogger(__name__).debug(f"Writing logs to {log_path}")
    return log_path


def reset_logging() -> None:
    """Remove the handlers added by configure_logging (used by tests)."""
    global _LOG_PATH, _CONSOLE_HANDLER

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()
    _LOG_PATH = None
    _CONSOLE_HANDLER = None
