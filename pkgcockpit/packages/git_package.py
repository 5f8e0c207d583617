#===============================================================================
#  Package Cockpit | packages/git_package.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Shared implementation for packages that live in a GitHub repository:
#  version resolution (latest release or branch tip), clone/checkout,
#  update detection against the remote, update, venv + torch provisioning and
#  the symlink shared-folder strategy.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import asyncio
import logging
from abc import abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .. import compat
from ..constants import VENV_FOLDER_NAME
from ..exceptions import CockpitError, GithubApiError, InstallationError
from ..github_api import same_repository
from ..models import (
    InstalledPackage,
    InstalledPackageVersion,
    PackageVersionOptions,
    ProgressKind,
    ProgressReport,
    SharedFolderMethod,
    TorchVariant,
)
from ..process import OutputCallback
from ..python_env import VenvRunner
from ..shared_folders import SharedFolderLinker
from .base import BasePackage, PackageRun, ProgressCallback

logger = logging.getLogger(__name__)

TORCH_INDEX_URLS: Dict[TorchVariant, Optional[str]] = {
    TorchVariant.CPU: "https://download.pytorch.org/whl/cpu",
    TorchVariant.CUDA: "https://download.pytorch.org/whl/cu121",
    TorchVariant.ROCM: "https://download.pytorch.org/whl/rocm6.0",
    TorchVariant.DIRECTML: None,
    TorchVariant.MPS: None,
}


def report_progress(progress: Optional[ProgressCallback], percentage: float, message: str,
            kind: ProgressKind = ProgressKind.INSTALL) -> None:
    if progress:
        progress(ProgressReport(percentage, message, is_indeterminate=percentage < 0, kind=kind))


class BaseGitPackage(BasePackage):
    """Base for every adapter installed from a GitHub repo."""

    use_queried_tcltk: bool = False

    @property
    def github_url(self) -> str:
        return f"https://github.com/{self.author}/{self.repository_name}"

    def is_canonical_remote(self, url: str) -> bool:
        return bool(url) and same_repository(url, self.github_url)

    # ------------------------------------------------------------------
    # Version resolution
    # ------------------------------------------------------------------
    async def _remote_head(self, branch: str, cwd: Optional[Path] = None, remote: Optional[str] = None) -> str:
        """Commit sha at the tip of branch on the remote (origin by default)."""
        result = await self.prerequisite_runner.run_git(
            ["ls-remote", remote or "origin", f"refs/heads/{branch}"], cwd=cwd
        )
        line = result.stdout.strip().splitlines()
        if not line:
            raise InstallationError(f"Branch {branch!r} not found on {remote or 'origin'}")
        return line[0].split()[0]

    async def get_latest_version(self, include_prerelease: bool = False) -> PackageVersionOptions:
        if not self.should_ignore_releases:
            owner, repo = self.author, self.repository_name
            try:
                release = await asyncio.to_thread(
                    self.github_api.get_latest_release, owner, repo, include_prerelease
                )
            except GithubApiError as e:
                logger.warning(f"Release lookup failed for {self.name}, using {self.main_branch}: {e}")
                release = None
            if release:
                return PackageVersionOptions(
                    release_tag=release["tag_name"],
                    is_latest=True,
                    is_prerelease=bool(release.get("prerelease")),
                )

        sha = await self._remote_head(self.main_branch, remote=self.github_url)
        return PackageVersionOptions(branch=self.main_branch, commit=sha, is_latest=True)

    async def current_commit(self, install_dir: Path) -> str:
        result = await self.prerequisite_runner.run_git(["rev-parse", "HEAD"], cwd=install_dir)
        return result.stdout.strip()

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------
    async def download_package(
        self,
        install_dir: Path,
        version: PackageVersionOptions,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> InstalledPackageVersion:
        """Clone the repo into install_dir at the requested tag/branch/commit."""
        ref = version.release_tag or version.branch or self.main_branch
        report_progress(progress, -1, f"Cloning {self.display_name} ({ref})...", ProgressKind.DOWNLOAD)

        install_dir.parent.mkdir(parents=True, exist_ok=True)
        await self.prerequisite_runner.run_git(
            ["clone", "--branch", ref, self.github_url, str(install_dir)],
            on_output=on_output,
        )
        if not version.is_release and version.commit:
            await self.prerequisite_runner.run_git(["checkout", version.commit], cwd=install_dir, on_output=on_output)

        sha = await self.current_commit(install_dir)
        report_progress(progress, 100, f"Downloaded {self.display_name}", ProgressKind.DOWNLOAD)
        return self._version_from(version, sha)

    def _version_from(self, version: PackageVersionOptions, sha: str) -> InstalledPackageVersion:
        if version.is_release:
            return InstalledPackageVersion(
                release_version=version.release_tag,
                commit_sha=sha,
                is_prerelease=version.is_prerelease,
            )
        return InstalledPackageVersion(branch=version.branch or self.main_branch, commit_sha=sha)

    @abstractmethod
    async def install_package(
        self,
        install_dir: Path,
        torch_variant: TorchVariant,
        shared_folder_method: SharedFolderMethod,
        version: PackageVersionOptions,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        """Package-specific dependency/build/config step after the clone."""

    async def install(
        self,
        install_dir: Path,
        version: PackageVersionOptions,
        torch_variant: TorchVariant,
        shared_folder_method: SharedFolderMethod,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> InstalledPackageVersion:
        self.prerequisite_runner.ensure_installed(self.prerequisites)

        installed_version = await self.download_package(install_dir, version, progress, on_output)
        await self.install_package(install_dir, torch_variant, shared_folder_method, version, progress, on_output)

        report_progress(progress, -1, "Setting up shared folders...")
        await self.setup_model_folders(install_dir, shared_folder_method)
        report_progress(progress, 100, f"{self.display_name} installed")
        return installed_version

    # ------------------------------------------------------------------
    # Python environment helpers
    # ------------------------------------------------------------------
    def run_environment(self) -> Dict[str, str]:
        """Extra environment variables for the package process."""
        return {}

    async def venv_runner(self, install_dir: Path) -> VenvRunner:
        base = self.prerequisite_runner.python_install()
        runner = await base.create_venv_runner_async(
            install_dir / VENV_FOLDER_NAME,
            working_dir=install_dir,
            env_vars=self.run_environment(),
            with_default_tcltk=compat.is_windows(),
            with_queried_tcltk=self.use_queried_tcltk,
        )
        pip_cache = self.settings.snapshot().pip_cache_dir
        if pip_cache.strip():
            runner.pip_cache_dir = Path(pip_cache)
        return runner

    async def setup_venv(self, install_dir: Path, on_output: Optional[OutputCallback] = None) -> VenvRunner:
        runner = await self.venv_runner(install_dir)
        await runner.setup(existing_ok=True, on_output=on_output)
        return runner

    def torch_install_args(self, torch_variant: TorchVariant) -> List[str]:
        args = ["torch", "torchvision", "torchaudio"]
        if torch_variant is TorchVariant.DIRECTML:
            return args + ["torch-directml"]
        index = TORCH_INDEX_URLS.get(torch_variant)
        if index:
            args += ["--index-url", index]
        return args

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    async def ensure_canonical_remote(self, install_dir: Path) -> None:
        """Rewrite origin if it points somewhere other than our repo (e.g. an old fork).

        A failed lookup counts as "needs migration"; only the rewrite itself can raise.
        """
        needs_migrate = False
        try:
            result = await self.prerequisite_runner.get_git_output(["remote", "get-url", "origin"], install_dir)
            needs_migrate = not result.is_success or not self.is_canonical_remote(result.stdout.strip())
        except CockpitError as e:
            logger.warning(f"Could not read origin for {install_dir}: {e}")
            needs_migrate = True

        if needs_migrate:
            logger.info(f"Migrating origin of {install_dir} to {self.github_url}")
            await self.prerequisite_runner.run_git(["remote", "set-url", "origin", self.github_url], cwd=install_dir)

    async def check_for_updates(self, installed: InstalledPackage) -> bool:
        install_dir = self.install_dir_for(installed)
        await self.ensure_canonical_remote(install_dir)

        current = installed.version
        if current.is_release_mode:
            latest = await self.get_latest_version(include_prerelease=current.is_prerelease)
            return bool(latest.release_tag) and latest.release_tag != current.release_version

        branch = current.branch or self.main_branch
        remote_sha = await self._remote_head(branch, cwd=install_dir)
        return remote_sha != current.commit_sha

    async def update_dependencies(
        self,
        install_dir: Path,
        torch_variant: TorchVariant,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        """Refresh dependencies after new code was checked out."""

    async def update(
        self,
        installed: InstalledPackage,
        version: Optional[PackageVersionOptions] = None,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> InstalledPackageVersion:
        install_dir = self.install_dir_for(installed)
        if not install_dir.exists():
            raise InstallationError(f"{installed.display_name} is not installed at {install_dir}")

        await self.ensure_canonical_remote(install_dir)

        if version is None:
            if installed.version.is_release_mode:
                version = await self.get_latest_version(include_prerelease=installed.version.is_prerelease)
            else:
                version = PackageVersionOptions(branch=installed.version.branch or self.main_branch, is_latest=True)

        git = self.prerequisite_runner
        report_progress(progress, -1, "Fetching updates...", ProgressKind.UPDATE)
        await git.run_git(["fetch", "--tags", "origin"], cwd=install_dir, on_output=on_output)

        if version.is_release:
            await git.run_git(["checkout", "--force", version.release_tag], cwd=install_dir, on_output=on_output)
        else:
            branch = version.branch or self.main_branch
            await git.run_git(["checkout", "--force", branch], cwd=install_dir, on_output=on_output)
            await git.run_git(["pull", "--autostash", "origin", branch], cwd=install_dir, on_output=on_output)
            if version.commit:
                await git.run_git(["checkout", version.commit], cwd=install_dir, on_output=on_output)

        report_progress(progress, -1, "Updating dependencies...", ProgressKind.UPDATE)
        await self.update_dependencies(
            install_dir, installed.torch_variant or self.default_torch_variant(), progress, on_output
        )

        sha = await self.current_commit(install_dir)
        report_progress(progress, 100, "Update complete", ProgressKind.UPDATE)
        return self._version_from(version, sha)

    # ------------------------------------------------------------------
    # Shared folders
    # ------------------------------------------------------------------
    async def setup_model_folders(self, install_dir: Path, method: SharedFolderMethod) -> None:
        if method is not SharedFolderMethod.SYMLINK or not self.supports_shared_folder_method(method):
            return
        SharedFolderLinker(self.settings.models_dir).setup_links(self.shared_folders, install_dir)
        if self.shared_output_folders:
            SharedFolderLinker(self.settings.outputs_dir).setup_links(self.shared_output_folders, install_dir)

    async def remove_model_folder_links(self, install_dir: Path, method: SharedFolderMethod) -> None:
        if method is not SharedFolderMethod.SYMLINK or not self.supports_shared_folder_method(method):
            return
        SharedFolderLinker(self.settings.models_dir).remove_links(self.shared_folders, install_dir)
        if self.shared_output_folders:
            SharedFolderLinker(self.settings.outputs_dir).remove_links(self.shared_output_folders, install_dir)


class PythonGitPackage(BaseGitPackage):
    """Git package whose dependencies live in a venv inside the install dir."""

    requirements_file: str = "requirements.txt"
    available_torch_variants: Sequence[TorchVariant] = (
        TorchVariant.CPU,
        TorchVariant.CUDA,
        TorchVariant.DIRECTML,
        TorchVariant.ROCM,
        TorchVariant.MPS,
    )

    async def install_dependencies(
        self,
        install_dir: Path,
        torch_variant: TorchVariant,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> VenvRunner:
        report_progress(progress, -1, "Creating virtual environment...")
        runner = await self.setup_venv(install_dir, on_output=on_output)

        report_progress(progress, -1, f"Installing torch ({torch_variant.value})...")
        await runner.pip_install(self.torch_install_args(torch_variant), on_output=on_output)

        report_progress(progress, -1, "Installing requirements...")
        await runner.pip_install_requirements(install_dir / self.requirements_file, on_output=on_output)
        return runner

    async def install_package(
        self,
        install_dir: Path,
        torch_variant: TorchVariant,
        shared_folder_method: SharedFolderMethod,
        version: PackageVersionOptions,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        await self.install_dependencies(install_dir, torch_variant, progress, on_output)

    async def update_dependencies(
        self,
        install_dir: Path,
        torch_variant: TorchVariant,
        progress: Optional[ProgressCallback] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> None:
        await self.install_dependencies(install_dir, torch_variant, progress, on_output)

    async def run(
        self,
        install_dir: Path,
        command: str,
        arguments: Sequence[str],
        run: PackageRun,
    ) -> PackageRun:
        runner = await self.venv_runner(install_dir)
        if not runner.exists():
            raise InstallationError(f"No virtual environment at {runner.venv_path}; reinstall {self.display_name}")
        script = command or self.launch_command
        run.process = await runner.run_detached(
            [str(install_dir / script), *arguments],
            on_output=run.handle_console_line,
            name=self.name,
        )
        return run
