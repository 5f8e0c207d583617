#===============================================================================
#  Package Cockpit | settings.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Load/save of persistent cockpit settings (installed packages, runtime
#  paths). All mutation goes through SettingsStore.transaction(), which hands
#  the callback a private copy and publishes it atomically on success.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from .constants import MODELS_FOLDER_NAME, OUTPUTS_FOLDER_NAME, PACKAGES_FOLDER_NAME, SETTINGS_FILE_NAME
from .models import InstalledPackage

logger = logging.getLogger(__name__)

T = TypeVar("T")


def default_settings() -> Dict[str, Any]:
    return {
        "installed_packages": [],               # list of InstalledPackage dicts
        "active_installed_package_id": None,
        "python_runtime_path": "",              # optional override for the base interpreter
        "pip_cache_dir": "",
    }


def load_settings(settings_path: Path) -> Dict[str, Any]:
    """Load settings from disk (or create defaults)."""
    d = default_settings()
    if not settings_path.exists():
        return d
    try:
        data = json.loads(settings_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read {settings_path} ({e}); using defaults")
        return d
    for k in d:
        if k not in data:
            data[k] = d[k]
    return data


def save_settings(settings_path: Path, data: Dict[str, Any]) -> None:
    """Persist settings atomically (temp file + replace)."""
    settings_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".settings-", suffix=".json", dir=str(settings_path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps(data, indent=2))
        os.replace(tmp, settings_path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


@dataclass
class Settings:
    """Typed working copy handed to transaction callbacks."""
    installed_packages: List[InstalledPackage] = field(default_factory=list)
    active_installed_package_id: Optional[str] = None
    python_runtime_path: str = ""
    pip_cache_dir: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def find(self, package_id: str) -> Optional[InstalledPackage]:
        return next((p for p in self.installed_packages if p.id == package_id), None)

    def add_installed_package(self, package: InstalledPackage) -> None:
        self.installed_packages.append(package)
        if self.active_installed_package_id is None:
            self.active_installed_package_id = package.id

    def remove_installed_package_and_update_active(self, package_id: str) -> None:
        self.installed_packages = [p for p in self.installed_packages if p.id != package_id]
        if self.active_installed_package_id == package_id:
            self.active_installed_package_id = (
                self.installed_packages[0].id if self.installed_packages else None
            )

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "installed_packages": [p.to_dict() for p in self.installed_packages],
            "active_installed_package_id": self.active_installed_package_id,
            "python_runtime_path": self.python_runtime_path,
            "pip_cache_dir": self.pip_cache_dir,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        known = set(default_settings())
        return cls(
            installed_packages=[InstalledPackage.from_dict(p) for p in data.get("installed_packages") or []],
            active_installed_package_id=data.get("active_installed_package_id"),
            python_runtime_path=data.get("python_runtime_path") or "",
            pip_cache_dir=data.get("pip_cache_dir") or "",
            extra={k: v for k, v in data.items() if k not in known},
        )


class SettingsStore:
    """Single-writer settings file under the library directory."""

    def __init__(self, library_dir: Path, file_name: str = SETTINGS_FILE_NAME):
        self.library_dir = Path(library_dir)
        self.path = self.library_dir / file_name
        self._lock = threading.RLock()
        self._data = load_settings(self.path)

    @property
    def packages_dir(self) -> Path:
        return self.library_dir / PACKAGES_FOLDER_NAME

    @property
    def models_dir(self) -> Path:
        return self.library_dir / MODELS_FOLDER_NAME

    @property
    def outputs_dir(self) -> Path:
        return self.library_dir / OUTPUTS_FOLDER_NAME

    def snapshot(self) -> Settings:
        """A detached copy; changing it has no effect on the store."""
        with self._lock:
            return Settings.from_dict(self._data)

    @property
    def installed_packages(self) -> List[InstalledPackage]:
        return self.snapshot().installed_packages

    def find_package(self, package_id: str) -> Optional[InstalledPackage]:
        return self.snapshot().find(package_id)

    def transaction(self, fn: Callable[[Settings], T]) -> T:
        """Run fn on a private copy and persist the result atomically.

        If fn raises, neither the file nor the in-memory state change.
        """
        with self._lock:
            working = Settings.from_dict(self._data)
            result = fn(working)
            new_data = working.to_dict()
            save_settings(self.path, new_data)
            self._data = new_data
            return result

    def update_package(self, package_id: str, fn: Callable[[InstalledPackage], None]) -> None:
        def apply(settings: Settings) -> None:
            package = settings.find(package_id)
            if package is not None:
                fn(package)
        self.transaction(apply)
