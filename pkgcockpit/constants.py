#===============================================================================
#  Package Cockpit | constants.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Central place for file/folder naming conventions and tunable defaults.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path

APP_TITLE = "Package Cockpit"
SETTINGS_FILE_NAME = "settings.json"
PACKAGES_FOLDER_NAME = "Packages"
MODELS_FOLDER_NAME = "Models"
OUTPUTS_FOLDER_NAME = "Outputs"
ASSETS_FOLDER_NAME = "Assets"
VENV_FOLDER_NAME = "venv"

# Library root; can be pointed elsewhere with PKGCOCKPIT_HOME
HOME_ENV = "PKGCOCKPIT_HOME"
DEFAULT_LIBRARY_DIR = Path.home() / ".pkgcockpit"

# Bundled base interpreter used to create package venvs
PYTHON_DIR_NAME = "Python310"

UPDATE_CHECK_INTERVAL = timedelta(minutes=15)

SHUTDOWN_TIMEOUT_ENV = "PKGCOCKPIT_SHUTDOWN_TIMEOUT"
DEFAULT_SHUTDOWN_TIMEOUT = 5.0

# Per-observer queue size for progress subscriptions
PROGRESS_QUEUE_SIZE = 256

GITHUB_API_ROOT = "https://api.github.com"
GITHUB_CACHE_TTL = timedelta(minutes=15)
HTTP_TIMEOUT = 20

WEB_URL_PATTERN = r"(https?:\/\/)([^:\s]+):(\d+)"


def library_dir() -> Path:
    configured = os.environ.get(HOME_ENV, "").strip()
    if configured:
        return Path(configured).expanduser()
    return DEFAULT_LIBRARY_DIR


def shutdown_timeout() -> float:
    try:
        return float(os.environ.get(SHUTDOWN_TIMEOUT_ENV, DEFAULT_SHUTDOWN_TIMEOUT))
    except ValueError:
        return DEFAULT_SHUTDOWN_TIMEOUT
