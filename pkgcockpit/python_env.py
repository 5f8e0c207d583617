#===============================================================================
#  Package Cockpit | python_env.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Resolves the base Python interpreter and creates per-package virtual
#  environments, dependency installs and script runs inside them.
#
#  Notes
#  -----
#  - Runners are cheap: creating one never touches disk. setup() creates the
#    venv on demand.
#  - Environment overlay order: extras -> Tcl/Tk (default or queried) ->
#    overrides. Later keys win.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import json
import logging
import os
import shlex
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Union

from . import compat
from .constants import ASSETS_FOLDER_NAME, PYTHON_DIR_NAME
from .exceptions import PrerequisiteMissingError, ProcessError
from .process import OutputCallback, ProcessHandle, ProcessResult, run_process

logger = logging.getLogger(__name__)

TCLTK_QUERY_SCRIPT = """\
import json
import tkinter

root = tkinter.Tk()
print(json.dumps({
    "TclLibrary": root.tk.exprstring("$tcl_library"),
    "TkLibrary": root.tk.exprstring("$tk_library"),
}))
"""


@dataclass(frozen=True)
class TclTkLibraries:
    tcl_library: str = ""
    tk_library: str = ""


def parse_tcltk_query(output: str) -> TclTkLibraries:
    """Parse the JSON printed by TCLTK_QUERY_SCRIPT. Raises ValueError on junk."""
    data = json.loads(output.strip().splitlines()[-1])
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected Tcl/Tk query output: {output!r}")
    return TclTkLibraries(
        tcl_library=str(data.get("TclLibrary") or ""),
        tk_library=str(data.get("TkLibrary") or ""),
    )


class PythonInstall:
    """A base interpreter installation that venvs are created from."""

    def __init__(self, root_path: Path):
        self.root_path = Path(root_path)

    def __repr__(self) -> str:
        return f"PythonInstall({str(self.root_path)!r})"

    @property
    def python_exe_path(self) -> Path:
        return compat.switch(
            windows=self.root_path / "python.exe",
            linux=self.root_path / "bin" / "python3",
            macos=self.root_path / "bin" / "python3",
        )

    @property
    def default_tcltk_path(self) -> str:
        return str(compat.switch(
            windows=self.root_path / "tcl" / "tcl8.6",
            linux=self.root_path / "lib" / "tcl8.6",
            macos=self.root_path / "lib" / "tcl8.6",
        ))

    def exists(self) -> bool:
        return self.python_exe_path.exists()

    def create_venv_runner(
        self,
        venv_path: Path,
        working_dir: Optional[Path] = None,
        env_vars: Optional[Mapping[str, str]] = None,
        override_env_vars: Optional[Mapping[str, str]] = None,
        with_default_tcltk: bool = False,
    ) -> "VenvRunner":
        runner = VenvRunner(self, venv_path, working_dir=working_dir)

        if env_vars:
            runner.environment_variables.update(env_vars)

        if with_default_tcltk:
            runner.environment_variables["TCL_LIBRARY"] = self.default_tcltk_path
            runner.environment_variables["TK_LIBRARY"] = self.default_tcltk_path

        if override_env_vars:
            runner.environment_variables.update(override_env_vars)

        return runner

    async def create_venv_runner_async(
        self,
        venv_path: Path,
        working_dir: Optional[Path] = None,
        env_vars: Optional[Mapping[str, str]] = None,
        override_env_vars: Optional[Mapping[str, str]] = None,
        with_default_tcltk: bool = False,
        with_queried_tcltk: bool = False,
    ) -> "VenvRunner":
        """Like create_venv_runner, optionally asking the interpreter for its Tcl/Tk paths.

        A failed query is logged and otherwise ignored.
        """
        runner = self.create_venv_runner(
            venv_path,
            working_dir=working_dir,
            env_vars=env_vars,
            with_default_tcltk=with_default_tcltk,
        )

        if with_queried_tcltk:
            try:
                libs = await self.query_tcltk_library()
            except (ProcessError, ValueError) as e:
                logger.error(f"Failed to query Tcl/Tk library paths: {e}")
            else:
                if libs.tcl_library:
                    runner.environment_variables["TCL_LIBRARY"] = libs.tcl_library
                if libs.tk_library:
                    runner.environment_variables["TK_LIBRARY"] = libs.tk_library

        if override_env_vars:
            runner.environment_variables.update(override_env_vars)

        return runner

    async def query_tcltk_library(self) -> TclTkLibraries:
        result = await run_process(self.python_exe_path, ["-c", TCLTK_QUERY_SCRIPT])
        if not result.is_success or not result.stdout.strip():
            raise ProcessError(
                f"Tcl/Tk query failed (rc={result.exit_code})",
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return parse_tcltk_query(result.stdout)


def resolve_base_install(library_dir: Path, configured: Optional[str] = None) -> PythonInstall:
    """Return the interpreter used to create package venvs.

    Resolution order:
      1) configured path (settings 'python_runtime_path') if it exists
      2) bundled runtime at <library>/Assets/Python310
      3) the interpreter running the cockpit
    """
    if configured:
        install = PythonInstall(Path(configured))
        if install.exists():
            return install

    bundled = PythonInstall(Path(library_dir) / ASSETS_FOLDER_NAME / PYTHON_DIR_NAME)
    if bundled.exists():
        return bundled

    current = PythonInstall(Path(sys.base_prefix))
    if current.exists():
        return current

    raise PrerequisiteMissingError(
        f"No Python interpreter found. Bundle one at {bundled.root_path} "
        "or configure python_runtime_path in settings."
    )


class VenvRunner:
    """One virtual environment, bound to a path; nothing happens until setup()."""

    def __init__(self, base_install: PythonInstall, venv_path: Path, working_dir: Optional[Path] = None):
        self.base_install = base_install
        self.venv_path = Path(venv_path)
        self.working_dir = Path(working_dir) if working_dir else None
        self.environment_variables: Dict[str, str] = {}
        self.pip_cache_dir: Optional[Path] = None

    @property
    def python_path(self) -> Path:
        return compat.switch(
            windows=self.venv_path / "Scripts" / "python.exe",
            linux=self.venv_path / "bin" / "python",
            macos=self.venv_path / "bin" / "python",
        )

    @property
    def bin_dir(self) -> Path:
        return self.python_path.parent

    def exists(self) -> bool:
        return self.python_path.exists()

    def build_env(self) -> Dict[str, str]:
        env = {
            "VIRTUAL_ENV": str(self.venv_path),
            "PATH": str(self.bin_dir) + os.pathsep + os.environ.get("PATH", ""),
        }
        env.update(self.environment_variables)
        return env

    async def setup(self, existing_ok: bool = True, on_output: Optional[OutputCallback] = None) -> None:
        """Create the venv (if needed) and upgrade pip."""
        if self.exists():
            if existing_ok:
                return
            raise ProcessError(f"Virtual environment already exists at {self.venv_path}")

        if not self.base_install.exists():
            raise PrerequisiteMissingError(f"Base Python not found at {self.base_install.python_exe_path}")

        self.venv_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Creating venv at {self.venv_path}")
        result = await run_process(
            self.base_install.python_exe_path,
            ["-m", "venv", str(self.venv_path)],
            cwd=self.working_dir,
            on_output=on_output,
        )
        result.check("Creating virtual environment")

        if not self.exists():
            raise ProcessError(f"Virtualenv created but python not found at {self.python_path}")

        await self.pip_install(["--upgrade", "pip"], on_output=on_output)

    def _pip_args(self, args: Union[str, Sequence[str]]) -> List[str]:
        parts = shlex.split(args) if isinstance(args, str) else [str(a) for a in args]
        if self.pip_cache_dir and str(self.pip_cache_dir).strip():
            self.pip_cache_dir.mkdir(parents=True, exist_ok=True)
            parts += ["--cache-dir", str(self.pip_cache_dir)]
        return parts

    async def pip_install(
        self, args: Union[str, Sequence[str]], on_output: Optional[OutputCallback] = None
    ) -> ProcessResult:
        parts = self._pip_args(args)
        result = await self.run(["-m", "pip", "install", *parts], on_output=on_output)
        return result.check(f"pip install {' '.join(parts)}")

    async def pip_install_requirements(
        self, requirements: Path, on_output: Optional[OutputCallback] = None
    ) -> Optional[ProcessResult]:
        if not requirements.exists():
            logger.info(f"No requirements file at {requirements}, skipping")
            return None
        return await self.pip_install(["-r", str(requirements)], on_output=on_output)

    async def run(
        self, args: Sequence[str], on_output: Optional[OutputCallback] = None
    ) -> ProcessResult:
        return await run_process(
            self.python_path,
            args,
            cwd=self.working_dir,
            env=self.build_env(),
            on_output=on_output,
        )

    async def run_detached(
        self,
        args: Sequence[str],
        on_output: Optional[OutputCallback] = None,
        name: str = "",
    ) -> ProcessHandle:
        """Start a long-running script and return its handle without waiting."""
        handle = ProcessHandle(name or self.venv_path.parent.name)
        return await handle.start(
            self.python_path,
            args,
            cwd=self.working_dir,
            env=self.build_env(),
            on_output=on_output,
        )
