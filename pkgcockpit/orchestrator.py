#===============================================================================
#  Package Cockpit | orchestrator.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-10-17
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  Front door for package lifecycle operations: install, update, update checks,
#  launch/stop, uninstall and launch-argument edits.
#
#  Rules
#  -----
#    - one install/update/uninstall/launch per package at a time (PackageBusyError)
#    - an InstalledPackage is registered only after install fully succeeds
#    - update checks are rate limited per package and never raise
#    - every operation reports through the injected EventHub
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence

from .constants import PACKAGES_FOLDER_NAME
from .exceptions import (
    CockpitError,
    ConfigurationError,
    InstallationError,
    PackageBusyError,
    PackageNotFoundError,
    ProcessError,
)
from .launch_options import default_launch_args, render_launch_args
from .models import (
    InstalledPackage,
    LaunchOption,
    Notice,
    NoticeSeverity,
    PackageVersionOptions,
    ProgressKind,
    SharedFolderMethod,
    TorchVariant,
)
from .packages import BasePackage, PackageFactory, PackageRun
from .packages.base import StartupCallback
from .process import OutputCallback
from .progress import EventHub, ProgressReporter
from .settings import Settings, SettingsStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _remove_file(path: str) -> None:
    os.unlink(path)


def _remove_dir(path: str) -> None:
    os.rmdir(path)


def delete_verbose(root: Path) -> List[str]:
    """Delete a directory tree, continuing past locked entries.

    Returns the paths that could not be removed (files, or folders that are
    not already explained by a failed child). Symlinks are removed, never followed.
    """
    root = Path(root)
    failed: List[str] = []
    if root.is_symlink():
        _remove_file(str(root))
        return failed
    if not root.exists():
        return failed

    def note(path: str, e: OSError) -> None:
        logger.warning(f"Could not delete {path}: {e}")
        failed.append(path)

    for dirpath, dirnames, filenames in os.walk(root, topdown=False):
        for name in filenames:
            path = os.path.join(dirpath, name)
            try:
                _remove_file(path)
            except OSError as e:
                note(path, e)
        for name in dirnames:
            path = os.path.join(dirpath, name)
            try:
                if os.path.islink(path):
                    _remove_file(path)
                else:
                    _remove_dir(path)
            except OSError as e:
                if not any(f.startswith(path + os.sep) for f in failed):
                    note(path, e)

    try:
        _remove_dir(str(root))
    except OSError as e:
        if not failed:
            note(str(root), e)
    return failed


@dataclass
class RunningPackage:
    """An installed package with a live process."""
    installed: InstalledPackage
    adapter: BasePackage
    run: PackageRun

    @property
    def web_url(self) -> str:
        return self.run.web_url

    @property
    def is_running(self) -> bool:
        return self.run.is_running

    async def wait_for_startup(self, timeout: Optional[float] = None) -> str:
        return await self.run.wait_for_startup(timeout)


class InstallationOrchestrator:
    """Drives adapters and keeps the settings store in step with what is on disk."""

    def __init__(
        self,
        settings: SettingsStore,
        factory: PackageFactory,
        hub: EventHub,
        clock: Clock = _utcnow,
    ):
        self.settings = settings
        self.factory = factory
        self.hub = hub
        self.clock = clock
        self._slots: Dict[str, asyncio.Lock] = {}
        self._check_locks: Dict[str, asyncio.Lock] = {}
        self._running: Dict[str, RunningPackage] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _require_installed(self, package_id: str) -> InstalledPackage:
        installed = self.settings.find_package(package_id)
        if installed is None:
            raise PackageNotFoundError(f"No installed package with id {package_id!r}")
        return installed

    def _adapter_for(self, installed: InstalledPackage) -> BasePackage:
        return self.factory.get(installed.package_name)

    @contextlib.asynccontextmanager
    async def _package_slot(self, key: str, action: str) -> AsyncIterator[None]:
        lock = self._slots.setdefault(key, asyncio.Lock())
        if lock.locked():
            raise PackageBusyError(f"Cannot {action} {key}: another operation is in progress")
        async with lock:
            yield

    def _notify_error(self, title: str, error: BaseException) -> None:
        detail = str(error)
        if isinstance(error, ProcessError) and error.output:
            detail = f"{detail}\n\n{error.output}"
        self.hub.notify(Notice(title, detail, NoticeSeverity.ERROR, persistent=True))

    def _notify_success(self, title: str, message: str) -> None:
        self.hub.notify(Notice(title, message, NoticeSeverity.SUCCESS))

    def is_running(self, package_id: str) -> bool:
        running = self._running.get(package_id)
        return running is not None and running.is_running

    def list_installed(self) -> List[InstalledPackage]:
        return self.settings.installed_packages

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------
    async def install(
        self,
        package_name: str,
        display_name: Optional[str] = None,
        version: Optional[PackageVersionOptions] = None,
        shared_folder_method: Optional[SharedFolderMethod] = None,
        torch_variant: Optional[TorchVariant] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> InstalledPackage:
        adapter = self.factory.get(package_name)
        display_name = display_name or adapter.display_name
        library_path = f"{PACKAGES_FOLDER_NAME}/{display_name}"
        install_dir = self.settings.library_dir / library_path

        method = shared_folder_method or adapter.recommended_shared_folder_method
        if not adapter.supports_shared_folder_method(method):
            logger.info(f"{adapter.name} does not support {method.value} shared folders; using None")
            method = SharedFolderMethod.NONE
        torch = torch_variant or adapter.default_torch_variant()

        async with self._package_slot(library_path, "install"):
            if any(p.library_path == library_path for p in self.settings.installed_packages):
                raise InstallationError(f"{display_name} is already installed at {install_dir}")
            if install_dir.exists() and any(install_dir.iterdir()):
                raise InstallationError(f"Install directory {install_dir} is not empty")

            reporter = ProgressReporter(self.hub, display_name, ProgressKind.INSTALL)
            reporter.report(-1, f"Installing {display_name}...", indeterminate=True)
            try:
                if version is None:
                    version = await adapter.get_latest_version()
                installed_version = await adapter.install(
                    install_dir, version, torch, method, progress=reporter, on_output=on_output
                )
            except Exception as e:
                logger.error(f"Error installing {adapter.name}: {e}")
                reporter.fail("Install failed")
                leftovers = delete_verbose(install_dir)
                if leftovers:
                    logger.warning(f"{len(leftovers)} path(s) left behind in {install_dir}")
                self._notify_error(f"Error installing {display_name}", e)
                raise

            installed = InstalledPackage(
                package_name=adapter.name,
                display_name=display_name,
                library_path=library_path,
                version=installed_version,
                launch_args=default_launch_args(adapter.launch_options),
                shared_folder_method=method,
                torch_variant=torch,
            )
            self.settings.transaction(lambda s: s.add_installed_package(installed))

        reporter.report(100, "Install complete")
        self._notify_success("Install complete", f"{display_name} {installed_version.display_version} installed")
        return installed

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------
    async def update(
        self,
        package_id: str,
        version: Optional[PackageVersionOptions] = None,
        on_output: Optional[OutputCallback] = None,
    ) -> InstalledPackage:
        installed = self._require_installed(package_id)
        adapter = self._adapter_for(installed)
        name = installed.display_name

        async with self._package_slot(installed.library_path, "update"):
            reporter = ProgressReporter(self.hub, name, ProgressKind.UPDATE)
            reporter.report(0, f"Updating {name}", indeterminate=True)
            try:
                new_version = await adapter.update(installed, version, progress=reporter, on_output=on_output)
            except Exception as e:
                logger.error(f"Error updating package ({adapter.name}): {e}")
                reporter.fail("Update failed")
                self._notify_error(f"Error updating {name}", e)
                raise

            checked_at = self.clock()

            def apply(package: InstalledPackage) -> None:
                package.version = new_version
                package.update_available = False
                package.last_update_check = checked_at

            self.settings.update_package(package_id, apply)

        reporter.report(100, "Update complete")
        self._notify_success("Update complete", f"{name} has been updated to {new_version.display_version}.")
        return self._require_installed(package_id)

    async def check_for_updates(self, package_id: str, force: bool = False) -> bool:
        """True if the package has an update. Cached per adapter interval; failures read as False."""
        installed = self._require_installed(package_id)
        adapter = self._adapter_for(installed)

        lock = self._check_locks.setdefault(package_id, asyncio.Lock())
        async with lock:
            # a racing caller may have just refreshed the cache
            installed = self._require_installed(package_id)
            now = self.clock()
            last = installed.last_update_check
            if not force and last is not None and now - last < adapter.update_check_interval:
                return installed.update_available

            try:
                has_update = await adapter.check_for_updates(installed)
            except (CockpitError, OSError) as e:
                logger.error(f"Error checking {installed.package_name} for updates: {e}")
                return False

            def apply(package: InstalledPackage) -> None:
                package.update_available = has_update
                package.last_update_check = now

            self.settings.update_package(package_id, apply)
            return has_update

    # ------------------------------------------------------------------
    # Launch / stop
    # ------------------------------------------------------------------
    async def launch(
        self,
        package_id: str,
        on_output: Optional[OutputCallback] = None,
        on_startup_complete: Optional[StartupCallback] = None,
    ) -> RunningPackage:
        installed = self._require_installed(package_id)
        adapter = self._adapter_for(installed)

        # held until the run is registered in _running
        async with self._package_slot(installed.library_path, "launch"):
            if self.is_running(package_id):
                raise PackageBusyError(f"{installed.display_name} is already running")

            install_dir = adapter.install_dir_for(installed)
            arguments = render_launch_args(adapter.launch_options, installed.launch_args)

            def activate(settings: Settings) -> None:
                settings.active_installed_package_id = package_id

            self.settings.transaction(activate)

            run = adapter.new_run(on_output=on_output, on_startup_complete=on_startup_complete)
            await adapter.run(install_dir, adapter.launch_command, arguments, run)
            running = RunningPackage(installed, adapter, run)
            self._running[package_id] = running
        return running

    async def stop(self, package_id: str, timeout: Optional[float] = None) -> None:
        running = self._running.pop(package_id, None)
        if running is None:
            return
        await running.adapter.wait_for_shutdown(running.run, timeout)

    async def stop_all(self, timeout: Optional[float] = None) -> None:
        await asyncio.gather(*(self.stop(pid, timeout) for pid in list(self._running)))

    # ------------------------------------------------------------------
    # Uninstall
    # ------------------------------------------------------------------
    async def uninstall(self, package_id: str) -> List[str]:
        """Delete the package directory; returns paths that could not be removed.

        The settings record is only dropped when nothing was left behind.
        """
        installed = self._require_installed(package_id)
        adapter = self._adapter_for(installed)
        name = installed.display_name

        async with self._package_slot(installed.library_path, "uninstall"):
            await self.stop(package_id)

            reporter = ProgressReporter(self.hub, name)
            reporter.report(-1, "Uninstalling...", indeterminate=True)

            install_dir = adapter.install_dir_for(installed)
            if installed.shared_folder_method is SharedFolderMethod.SYMLINK:
                await adapter.remove_model_folder_links(install_dir, installed.shared_folder_method)

            failed = await asyncio.to_thread(delete_verbose, install_dir)
            if failed:
                reporter.fail(f"{len(failed)} path(s) could not be deleted")
                self.hub.notify(Notice(
                    f"Error uninstalling {name}",
                    "Some files could not be deleted. Please close any open files in the "
                    "package directory and try again.\n" + "\n".join(failed),
                    NoticeSeverity.ERROR,
                    persistent=True,
                ))
                return failed

            self.settings.transaction(lambda s: s.remove_installed_package_and_update_active(package_id))

        reporter.report(100, "Uninstalled")
        self._notify_success("Success", f"Package {name} uninstalled")
        return []

    # ------------------------------------------------------------------
    # Launch arguments
    # ------------------------------------------------------------------
    def set_launch_args(self, package_id: str, args: Sequence[LaunchOption]) -> None:
        installed = self._require_installed(package_id)
        adapter = self._adapter_for(installed)
        known = {d.name for d in adapter.launch_options}
        unknown = [a.name for a in args if a.name not in known]
        if unknown:
            raise ConfigurationError(f"Unknown launch option(s) for {adapter.name}: {', '.join(unknown)}")

        new_args = list(args)

        def apply(package: InstalledPackage) -> None:
            package.launch_args = new_args

        self.settings.update_package(package_id, apply)
