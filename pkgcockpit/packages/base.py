#===============================================================================
#  Package Cockpit | packages/base.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Common interface for package adapters plus the per-launch PackageRun that
#  watches console output for the adapter's startup marker.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from abc import ABC, abstractmethod
from datetime import timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .. import compat
from ..constants import UPDATE_CHECK_INTERVAL, WEB_URL_PATTERN
from ..github_api import GithubApi
from ..models import (
    InstalledPackage,
    InstalledPackageVersion,
    LaunchOptionDefinition,
    PackageDifficulty,
    PackagePrerequisite,
    PackageVersionOptions,
    ProgressReport,
    SharedFolderMethod,
    SharedFolderType,
    SharedOutputType,
    TorchVariant,
)
from ..prerequisites import PrerequisiteRunner
from ..process import OutputCallback, ProcessHandle
from ..settings import SettingsStore

logger = logging.getLogger(__name__)

WEB_URL_RE = re.compile(WEB_URL_PATTERN)

ProgressCallback = Callable[[ProgressReport], None]
StartupCallback = Callable[[str], None]


class PackageRun:
    """One launch of a package: its process, served URL and startup signal."""

    def __init__(
        self,
        package_name: str,
        startup_marker: Optional[str],
        on_output: Optional[OutputCallback] = None,
        on_startup_complete: Optional[StartupCallback] = None,
    ):
        self.package_name = package_name
        self.startup_marker = startup_marker
        self.on_output = on_output
        self.on_startup_complete = on_startup_complete
        self.web_url = ""
        self.process: Optional[ProcessHandle] = None
        self.startup_complete = asyncio.Event()

    def is_startup_line(self, line: str) -> bool:
        if not self.startup_marker:
            return False
        return self.startup_marker.lower() in line.lower()

    def handle_console_line(self, line: str) -> None:
        if self.on_output:
            self.on_output(line)

        if self.startup_complete.is_set() or not self.is_startup_line(line):
            return

        match = WEB_URL_RE.search(line)
        if match:
            self.web_url = match.group(0)
        self.startup_complete.set()
        logger.info(f"{self.package_name} started: {self.web_url or '(no url)'}")
        if self.on_startup_complete:
            self.on_startup_complete(self.web_url)

    async def wait_for_startup(self, timeout: Optional[float] = None) -> str:
        await asyncio.wait_for(self.startup_complete.wait(), timeout)
        return self.web_url

    @property
    def is_running(self) -> bool:
        return self.process is not None and self.process.is_running

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        if self.process is not None:
            await self.process.shutdown(timeout)


class BasePackage(ABC):
    """Compile-time metadata and lifecycle operations for one package type.

    One instance per type; per-installation state lives in InstalledPackage
    and per-launch state in PackageRun.
    """

    name: str = ""
    display_name: str = ""
    author: str = ""
    blurb: str = ""
    repository_name: str = ""
    license_type: str = ""
    license_url: str = ""
    main_branch: str = "main"
    launch_command: str = ""
    output_folder_name: str = "outputs"
    should_ignore_releases: bool = False
    startup_marker: Optional[str] = None
    update_check_interval: timedelta = UPDATE_CHECK_INTERVAL
    difficulty: PackageDifficulty = PackageDifficulty.SIMPLE
    available_shared_folder_methods: Sequence[SharedFolderMethod] = (
        SharedFolderMethod.SYMLINK,
        SharedFolderMethod.NONE,
    )
    recommended_shared_folder_method: SharedFolderMethod = SharedFolderMethod.SYMLINK
    available_torch_variants: Sequence[TorchVariant] = (TorchVariant.CPU,)
    prerequisites: Sequence[PackagePrerequisite] = (PackagePrerequisite.GIT, PackagePrerequisite.PYTHON310)

    def __init__(self, prerequisite_runner: PrerequisiteRunner, settings: SettingsStore, github_api: GithubApi):
        self.prerequisite_runner = prerequisite_runner
        self.settings = settings
        self.github_api = github_api

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

    @property
    @abstractmethod
    def launch_options(self) -> List[LaunchOptionDefinition]:
        ...

    @property
    @abstractmethod
    def shared_folders(self) -> Dict[SharedFolderType, List[str]]:
        ...

    @property
    def shared_output_folders(self) -> Dict[SharedOutputType, List[str]]:
        return {}

    def install_dir_for(self, installed: InstalledPackage) -> Path:
        return installed.full_path(self.settings.library_dir)

    def supports_shared_folder_method(self, method: SharedFolderMethod) -> bool:
        return method in self.available_shared_folder_methods

    def default_torch_variant(self) -> TorchVariant:
        """Best guess for this machine, limited to what the package supports."""
        preferred: List[TorchVariant] = []
        if shutil.which("nvidia-smi"):
            preferred.append(TorchVariant.CUDA)
        if compat.CURRENT_PLATFORM is compat.PlatformKind.MACOS:
            preferred.append(TorchVariant.MPS)
        preferred.append(TorchVariant.CPU)
        for variant in preferred:
            if variant in self.available_torch_variants:
                return variant
        return self.available_torch_variants[0]

    def new_run(
        self,
        on_output: Optional[OutputCallback] = None,
        on_startup_complete: Optional[StartupCallback] = None,
    ) -> PackageRun:
        return PackageRun(
            self.name, self.startup_marker, on_output=on_output, on_startup_complete=on_startup_complete
        )

    @abstractmethod
    async def get_latest_version(self, include_prerelease: bool = False) -> PackageVersionOptions:
        ...

    @abstractmethod
    async def install(
        self,
        install_dir: Path,
        version: PackageVersionOptions,
        torch_variant: TorchVariant,
        shared_folder_method: SharedFolderMethod,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> InstalledPackageVersion:
        ...

    @abstractmethod
    async def run(
        self,
        install_dir: Path,
        command: str,
        arguments: Sequence[str],
        run: PackageRun,
    ) -> PackageRun:
        ...

    @abstractmethod
    async def check_for_updates(self, installed: InstalledPackage) -> bool:
        ...

    @abstractmethod
    async def update(
        self,
        installed: InstalledPackage,
        version: Optional[PackageVersionOptions] = None,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> InstalledPackageVersion:
        ...

    async def wait_for_shutdown(self, run: PackageRun, timeout: Optional[float] = None) -> None:
        """Stop a run started by this adapter; bounded wait, then kill."""
        await run.shutdown(timeout)

    @abstractmethod
    async def setup_model_folders(self, install_dir: Path, method: SharedFolderMethod) -> None:
        ...

    @abstractmethod
    async def remove_model_folder_links(self, install_dir: Path, method: SharedFolderMethod) -> None:
        ...
