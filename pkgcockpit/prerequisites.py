#===============================================================================
#  Package Cockpit | prerequisites.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Locates and runs prerequisite tools (git, dotnet, base Python) on behalf of
#  package adapters. Primary source is a bundled copy under ./Assets, then PATH.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from . import compat
from .constants import ASSETS_FOLDER_NAME
from .exceptions import PrerequisiteMissingError
from .models import PackagePrerequisite
from .process import OutputCallback, ProcessHandle, ProcessResult, run_process
from .python_env import PythonInstall, resolve_base_install

logger = logging.getLogger(__name__)


class PrerequisiteRunner:
    """Runs git/dotnet with captured or streamed output."""

    def __init__(self, library_dir: Path, python_runtime_path: Optional[str] = None):
        self.library_dir = Path(library_dir)
        self.python_runtime_path = python_runtime_path

    @property
    def assets_dir(self) -> Path:
        return self.library_dir / ASSETS_FOLDER_NAME

    def _bundled_or_path(self, name: str, bundled: Path) -> Optional[str]:
        if bundled.exists():
            return str(bundled)
        return shutil.which(name)

    @property
    def git_path(self) -> Optional[str]:
        exe = compat.switch(windows="git.exe", linux="git", macos="git")
        return self._bundled_or_path("git", self.assets_dir / "PortableGit" / "bin" / exe)

    @property
    def dotnet_path(self) -> Optional[str]:
        exe = compat.switch(windows="dotnet.exe", linux="dotnet", macos="dotnet")
        return self._bundled_or_path("dotnet", self.assets_dir / "dotnet" / exe)

    def python_install(self) -> PythonInstall:
        return resolve_base_install(self.library_dir, self.python_runtime_path)

    def check_installed(self, prerequisite: PackagePrerequisite) -> bool:
        if prerequisite is PackagePrerequisite.GIT:
            return self.git_path is not None
        if prerequisite is PackagePrerequisite.DOTNET:
            return self.dotnet_path is not None
        if prerequisite is PackagePrerequisite.PYTHON310:
            try:
                self.python_install()
            except PrerequisiteMissingError:
                return False
            return True
        if prerequisite is PackagePrerequisite.VCREDIST:
            # only meaningful on Windows; assumed present elsewhere
            return True
        return False

    def ensure_installed(self, prerequisites: Iterable[PackagePrerequisite]) -> None:
        missing = [p.value for p in prerequisites if not self.check_installed(p)]
        if missing:
            raise PrerequisiteMissingError(f"Missing prerequisites: {', '.join(missing)}")

    def _require(self, path: Optional[str], name: str) -> str:
        if not path:
            raise PrerequisiteMissingError(f"{name} was not found in {self.assets_dir} or on PATH")
        return path

    async def get_git_output(self, args: Sequence[str], cwd: Optional[Path] = None) -> ProcessResult:
        """Run git and return the result without checking the exit code."""
        git = self._require(self.git_path, "git")
        return await run_process(git, args, cwd=cwd)

    async def run_git(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> ProcessResult:
        git = self._require(self.git_path, "git")
        result = await run_process(git, args, cwd=cwd, on_output=on_output)
        return result.check(f"git {' '.join(args)}")

    async def run_dotnet(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> ProcessResult:
        dotnet = self._require(self.dotnet_path, "dotnet")
        result = await run_process(dotnet, args, cwd=cwd, env=env, on_output=on_output)
        return result.check(f"dotnet {' '.join(args)}")

    async def start_dotnet(
        self,
        args: Sequence[str],
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> ProcessHandle:
        """Start dotnet without waiting for it to exit."""
        dotnet = self._require(self.dotnet_path, "dotnet")
        handle = ProcessHandle("dotnet")
        return await handle.start(dotnet, args, cwd=cwd, env=env, on_output=on_output)
